"""Chat Responder — direct, tool-free answer for general_chat messages."""

import logging

from nexus_agents.core.usage_ledger import RoundUsage
from nexus_agents.infrastructure.anthropic_client import ResilientAnthropicClient

logger = logging.getLogger(__name__)

CHAT_SYSTEM_PROMPT = (
    "You are a helpful assistant inside a collaborative document editor. "
    "Answer the user's message directly and concisely. You cannot change "
    "the document from this conversation; if the user asks for a document "
    "change, tell them how to phrase it as an editing request."
)


class ChatResponder:
    def __init__(
        self, client: ResilientAnthropicClient, model: str, max_tokens: int = 1024,
    ):
        self.client = client
        self.model = model
        self.max_tokens = max_tokens

    async def answer(self, message: str) -> tuple[str, RoundUsage]:
        response = await self.client.create_message(
            model=self.model,
            max_tokens=self.max_tokens,
            system=CHAT_SYSTEM_PROMPT,
            messages=[{"role": "user", "content": message}],
        )
        text = "".join(
            b.text for b in response.content if getattr(b, "type", None) == "text"
        )
        usage = RoundUsage(
            response.usage.input_tokens, response.usage.output_tokens, self.model,
        )
        return text, usage
