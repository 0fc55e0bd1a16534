"""Content Generator — intent-aware HTML generation for editor tools.

Invariants:
    - Returns the full replacement document HTML, never a diff
    - Usage of the generation call reported alongside the content
    - Failures raise (AnthropicAPIError); the editor handler decides on fallback

Design Decisions:
    - Single user message carries intent, instruction, and current content
      (tool-free call, no system prompt needed)
    - Empty current content shown to the model as "No existing content"
"""

import logging
from dataclasses import dataclass

from nexus_agents.core.domain_types import Intent
from nexus_agents.core.usage_ledger import RoundUsage
from nexus_agents.infrastructure.anthropic_client import ResilientAnthropicClient

logger = logging.getLogger(__name__)

NO_CONTENT = "No existing content"

# LLM prompt template, formatted with intent/message/current content.
_PROMPT_TEMPLATE = """You are a content generator for a collaborative text editor.

User intent: {intent}
User message: {message}
Current content: {current}

Instructions based on intent:
- If intent is "create_document": Generate completely new content from scratch
- If intent is "append_content": Add the requested content to the EXISTING content, preserving what's already there
- If intent is "edit_document": Modify and improve the existing content
- If intent is "replace_content": Replace the existing content completely with new content
- If intent is "format_content": Reformat the existing content according to the request

For append_content specifically: keep all existing content and add the new content in the requested location (top, bottom, or a specific section).

Generate well-structured HTML content that directly addresses the user's request.
Use tags like <h1>, <h2>, <p>, <ul>, <ol>, <li>, <strong>, <em>, <div>.
Return ONLY the complete HTML content that should replace the document, no additional text or explanations."""


@dataclass(frozen=True)
class GeneratedContent:
    content: str
    usage: RoundUsage


def build_prompt(intent: Intent, message: str, current_content: str) -> str:
    return _PROMPT_TEMPLATE.format(
        intent=intent.value, message=message,
        current=current_content or NO_CONTENT,
    )


class ContentGenerator:
    def __init__(
        self, client: ResilientAnthropicClient, model: str, max_tokens: int = 4000,
    ):
        self.client = client
        self.model = model
        self.max_tokens = max_tokens

    async def generate(
        self, intent: Intent, message: str, current_content: str,
    ) -> GeneratedContent:
        response = await self.client.create_message(
            model=self.model,
            max_tokens=self.max_tokens,
            messages=[{
                "role": "user",
                "content": build_prompt(intent, message, current_content),
            }],
        )
        text = "".join(
            b.text for b in response.content
            if getattr(b, "type", None) == "text" and b.text
        )
        if not text.strip():
            raise ValueError("Content model returned no text")
        logger.info(
            "Content generated (%d chars)", len(text), extra={"intent": intent.value},
        )
        return GeneratedContent(
            text,
            RoundUsage(
                response.usage.input_tokens, response.usage.output_tokens, self.model,
            ),
        )
