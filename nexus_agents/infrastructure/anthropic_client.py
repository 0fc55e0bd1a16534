"""Resilient Anthropic Client — one retry policy for every model call in the process.

Invariants:
    - Each SDK failure is classified once: (error_type, retryable, retry_after_ms)
    - Retryable: 429, 5xx (529 Overloaded included), connection failures
    - Not retryable: timeouts, other 4xx, anything unrecognised
    - Exhausted or non-retryable failures leave as AnthropicAPIError carrying
      api_error_type and, for 429, the server's retry_after_ms
    - SDK-level retries are disabled (max_retries=0); this loop is the only one

Design Decisions:
    - The turn engine, classifier, content generator and chat responder share
      one client instance, so rate-limit backoff is observed process-wide
    - Retry-After wins over computed backoff when the server sends one
    - Backoff: base * 2^attempt, capped, ±25% jitter
    - Optional request fields (system, tools, temperature) omitted when empty
"""

import asyncio
import logging
import random
from dataclasses import dataclass

import anthropic
from anthropic import (
    APIConnectionError,
    APIError,
    APIStatusError,
    APITimeoutError,
    RateLimitError,
)

from nexus_agents.core.errors import AnthropicAPIError, ErrorContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallFailure:
    error_type: str
    retryable: bool
    retry_after_ms: int | None = None


def _retry_after_ms(error: APIStatusError) -> int | None:
    response = getattr(error, "response", None)
    raw = response.headers.get("retry-after") if response is not None else None
    if not raw:
        return None
    try:
        return int(float(raw) * 1000)
    except ValueError:
        return None


def classify_failure(error: Exception) -> CallFailure:
    """Map an SDK exception to its retry decision."""
    # APITimeoutError subclasses APIConnectionError; check it first.
    if isinstance(error, APITimeoutError):
        return CallFailure("timeout", retryable=False)
    if isinstance(error, RateLimitError):
        return CallFailure("rate_limit", True, _retry_after_ms(error))
    if isinstance(error, APIConnectionError):
        return CallFailure("connection_error", retryable=True)
    if isinstance(error, APIStatusError) and error.status_code >= 500:
        return CallFailure("connection_error", retryable=True)
    if isinstance(error, APIError):
        return CallFailure("client_error", retryable=False)
    return CallFailure("unknown", retryable=False)


class ResilientAnthropicClient:
    """AsyncAnthropic behind a classify-then-retry loop."""

    def __init__(
        self,
        api_key: str,
        max_retries: int = 3,
        base_delay_ms: int = 1000,
        max_delay_ms: int = 60_000,
        timeout_seconds: float = 300,
    ):
        self.client = anthropic.AsyncAnthropic(
            api_key=api_key, timeout=timeout_seconds, max_retries=0,
        )
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms

    async def create_message(
        self,
        *,
        model: str,
        max_tokens: int,
        messages: list,
        system: str = "",
        tools: list | None = None,
        temperature: float | None = None,
        context: ErrorContext | None = None,
    ):
        request = {"model": model, "max_tokens": max_tokens, "messages": messages}
        optional = {"system": system or None, "tools": tools or None, "temperature": temperature}
        request.update({k: v for k, v in optional.items() if v is not None})

        attempt = 0
        while True:
            try:
                response = await self.client.messages.create(**request)
            except Exception as e:
                failure = classify_failure(e)
                if not failure.retryable or attempt >= self.max_retries:
                    raise self._give_up(e, failure, context) from e
                delay = failure.retry_after_ms or self._backoff(attempt)
                logger.warning(
                    "Anthropic %s, retrying in %dms: %s", failure.error_type, delay, e,
                    extra={"attempt": attempt + 1, "model": model},
                )
                await asyncio.sleep(delay / 1000)
                attempt += 1
                continue

            logger.info(
                "Anthropic call ok",
                extra={
                    "model": model,
                    "attempt": attempt + 1,
                    "input_tokens": response.usage.input_tokens,
                    "output_tokens": response.usage.output_tokens,
                },
            )
            return response

    def _give_up(
        self, error: Exception, failure: CallFailure, context: ErrorContext | None,
    ) -> AnthropicAPIError:
        if failure.error_type == "unknown":
            logger.error("Unexpected Anthropic error: %s", error, exc_info=error)
            message = str(error)
        elif failure.error_type == "rate_limit":
            message = "Rate limit exceeded after retries"
        elif failure.error_type == "connection_error":
            message = f"Transient failure after {self.max_retries} retries: {error}"
        elif failure.error_type == "timeout":
            message = "API timeout"
        else:
            message = str(error)
        return AnthropicAPIError(
            message, failure.error_type,
            retry_after_ms=failure.retry_after_ms, context=context,
        )

    def _backoff(self, attempt: int) -> int:
        delay = min(self.max_delay_ms, self.base_delay_ms * (2 ** attempt))
        return int(delay * random.uniform(0.75, 1.25))  # nosec B311


# Singleton (initialized on startup)
_anthropic_client: ResilientAnthropicClient | None = None


def init_anthropic_client(api_key: str, **kwargs) -> ResilientAnthropicClient:
    global _anthropic_client
    _anthropic_client = ResilientAnthropicClient(api_key, **kwargs)
    return _anthropic_client


def get_anthropic_client() -> ResilientAnthropicClient:
    if _anthropic_client is None:
        raise RuntimeError("Anthropic client not initialized")
    return _anthropic_client
