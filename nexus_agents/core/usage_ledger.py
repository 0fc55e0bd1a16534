"""Usage Ledger — pure token/cost accumulation across model rounds.

Invariants:
    - fold() and combine() are associative and commutative: any partial total
      is a consistent prefix of the final total
    - Token counts are summed, never overwritten
    - Cost of a round uses the price of the model that served that round
    - UsageTotals is immutable; every fold returns a new value

Design Decisions:
    - Cost accumulated per round (not recomputed from summed tokens) so a
      mid-conversation model change is priced correctly
    - Unknown models fall back to the table's default price with a warning,
      never a crash: telemetry must not break a response
    - "mixed" as the model label when rounds disagree keeps combine() commutative
"""

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping

logger = logging.getLogger(__name__)

MIXED_MODELS = "mixed"
_PER_MILLION = 1_000_000


@dataclass(frozen=True)
class RoundUsage:
    """Token counts reported by one model call."""
    input_tokens: int
    output_tokens: int
    model: str = ""


@dataclass(frozen=True)
class ModelPrice:
    """USD per million tokens."""
    input_per_million: float
    output_per_million: float


# Published list prices, USD per million tokens.
DEFAULT_PRICES: dict[str, ModelPrice] = {
    "claude-3-5-haiku-20241022": ModelPrice(0.80, 4.00),
    "claude-3-5-sonnet-20241022": ModelPrice(3.00, 15.00),
    "claude-3-7-sonnet-20250219": ModelPrice(3.00, 15.00),
    "claude-3-opus-20240229": ModelPrice(15.00, 75.00),
    "claude-haiku-4-5": ModelPrice(1.00, 5.00),
    "claude-sonnet-4-5": ModelPrice(3.00, 15.00),
    "claude-opus-4-1": ModelPrice(15.00, 75.00),
}


@dataclass(frozen=True)
class PriceTable:
    """Read-only model -> price mapping shared across requests."""
    prices: Mapping[str, ModelPrice] = field(default_factory=dict)
    default: ModelPrice = ModelPrice(3.00, 15.00)

    def __post_init__(self):
        object.__setattr__(self, "prices", MappingProxyType(dict(self.prices)))

    def price_for(self, model: str) -> ModelPrice:
        price = self.prices.get(model)
        if price is None:
            logger.warning(
                "No price for model %r, using default", model,
            )
            return self.default
        return price

    @classmethod
    def from_overrides(
        cls,
        overrides: Mapping[str, Mapping[str, float]] | None = None,
        default_input: float = 3.00,
        default_output: float = 15.00,
    ) -> "PriceTable":
        """DEFAULT_PRICES with per-model overrides applied on top."""
        prices = dict(DEFAULT_PRICES)
        for model, p in (overrides or {}).items():
            prices[model] = ModelPrice(
                float(p["input_per_million"]), float(p["output_per_million"]),
            )
        return cls(prices, ModelPrice(default_input, default_output))


@dataclass(frozen=True)
class UsageTotals:
    input_tokens: int = 0
    output_tokens: int = 0
    estimated_cost_usd: float = 0.0
    model: str = ""

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    @classmethod
    def empty(cls) -> "UsageTotals":
        return cls()

    def to_dict(self) -> dict:
        return {
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "total_tokens": self.total_tokens,
            "estimated_cost_usd": round(self.estimated_cost_usd, 6),
            "model": self.model,
        }


def round_cost(usage: RoundUsage, prices: PriceTable) -> float:
    price = prices.price_for(usage.model)
    return (
        usage.input_tokens / _PER_MILLION * price.input_per_million
        + usage.output_tokens / _PER_MILLION * price.output_per_million
    )


def _merge_model(a: str, b: str) -> str:
    if not a:
        return b
    if not b or a == b:
        return a
    return MIXED_MODELS


def fold(totals: UsageTotals, usage: RoundUsage, prices: PriceTable) -> UsageTotals:
    """Add one round to running totals."""
    return UsageTotals(
        input_tokens=totals.input_tokens + usage.input_tokens,
        output_tokens=totals.output_tokens + usage.output_tokens,
        estimated_cost_usd=totals.estimated_cost_usd + round_cost(usage, prices),
        model=_merge_model(totals.model, usage.model),
    )


def combine(a: UsageTotals, b: UsageTotals) -> UsageTotals:
    """Merge two partial totals (sum of sums = sum)."""
    return UsageTotals(
        input_tokens=a.input_tokens + b.input_tokens,
        output_tokens=a.output_tokens + b.output_tokens,
        estimated_cost_usd=a.estimated_cost_usd + b.estimated_cost_usd,
        model=_merge_model(a.model, b.model),
    )


def fold_all(rounds: Iterable[RoundUsage], prices: PriceTable) -> UsageTotals:
    totals = UsageTotals.empty()
    for usage in rounds:
        totals = fold(totals, usage, prices)
    return totals
