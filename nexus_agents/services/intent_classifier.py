"""Intent Classifier — one sub-model call mapping a message onto the Intent enum.

Invariants:
    - classify() returns a member of Intent or raises ClassificationError
    - Exactly one model call per classification (no retries here; the
      client handles transport retries)
    - Usage of the call always reported to the caller, on a parse failure
      through ClassificationError.usage

Design Decisions:
    - Temperature 0: classification should be repeatable
    - parse_classification has 3 fallback levels (direct JSON, embedded
      {...} block, bare label in free text)
    - Ambiguous bare text (two or more labels mentioned) is rejected rather
      than guessed
"""

import json
import logging
import re
from dataclasses import dataclass

from nexus_agents.core.domain_types import INTENT_VALUES, Intent
from nexus_agents.core.errors import ClassificationError
from nexus_agents.core.usage_ledger import RoundUsage
from nexus_agents.infrastructure.anthropic_client import ResilientAnthropicClient

logger = logging.getLogger(__name__)

# LLM prompt, not a format string.
CLASSIFIER_SYSTEM_PROMPT = """You classify messages sent to a collaborative document editor.

Pick exactly ONE intent:
- create_document: start a new document from scratch
- edit_document: modify or improve the existing document
- append_content: add new content while keeping what is already there
- replace_content: throw away the existing content and write new content
- format_content: change structure or styling without changing meaning
- clear_document: empty the document
- general_chat: anything that is not a request to change a document

Return ONLY a JSON object, no markdown, no explanation:
{"intent": "<one of the labels above>", "confidence": <0.0-1.0>}"""


@dataclass(frozen=True)
class Classification:
    intent: Intent
    confidence: float
    usage: RoundUsage


def parse_classification(text: str) -> tuple[Intent, float]:
    """Extract (intent, confidence) from the classifier's reply.

    Fallback levels:
    1. Direct json.loads
    2. Regex: first {...} block (handles ```json wrapping)
    3. Exactly one known label mentioned in the raw text
    """
    text = text.strip()

    data = None
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        match = re.search(r"\{[\s\S]*\}", text)
        if match:
            try:
                data = json.loads(match.group())
            except json.JSONDecodeError:
                data = None

    if isinstance(data, dict) and "intent" in data:
        label = str(data["intent"]).strip().lower()
        if label not in INTENT_VALUES:
            raise ClassificationError(f"Unknown intent label: {label!r}")
        return Intent(label), _confidence(data.get("confidence"))

    found = [v for v in INTENT_VALUES if re.search(rf"\b{v}\b", text.lower())]
    if len(found) == 1:
        logger.warning("Classifier returned non-JSON reply, using bare label")
        return Intent(found[0]), 0.5
    raise ClassificationError(f"Unparseable classification: {text[:200]!r}")


def _confidence(value) -> float:
    try:
        return min(1.0, max(0.0, float(value)))
    except (TypeError, ValueError):
        return 0.5


class IntentClassifier:
    def __init__(self, client: ResilientAnthropicClient, model: str):
        self.client = client
        self.model = model

    async def classify(self, message: str) -> Classification:
        response = await self.client.create_message(
            model=self.model,
            max_tokens=100,
            system=CLASSIFIER_SYSTEM_PROMPT,
            messages=[{"role": "user", "content": message}],
            temperature=0.0,
        )
        usage = RoundUsage(
            response.usage.input_tokens, response.usage.output_tokens, self.model,
        )
        text = "".join(
            b.text for b in response.content if getattr(b, "type", None) == "text"
        )
        try:
            intent, confidence = parse_classification(text)
        except ClassificationError as e:
            e.usage = usage
            raise
        logger.info(
            "Message classified (confidence %.2f)", confidence,
            extra={"intent": intent.value},
        )
        return Classification(intent, confidence, usage)
