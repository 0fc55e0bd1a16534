"""Anthropic Reasoning Model — adapts the Messages API to the ReasoningModel protocol.

Invariants:
    - Block order preserved in both directions (log -> wire, wire -> ModelResponse)
    - Unknown response block types are skipped, never fatal
    - Usage reported against the requested model id (the price-table key)

Design Decisions:
    - Only this module knows the Anthropic wire shape; core stays vendor-neutral
"""

import logging
from typing import Sequence

from nexus_agents.core.conversation import (
    ConversationLog, Message, ModelResponse, TextBlock, ToolCallRequest, ToolResult,
)
from nexus_agents.core.usage_ledger import RoundUsage
from nexus_agents.infrastructure.anthropic_client import ResilientAnthropicClient

logger = logging.getLogger(__name__)


def block_to_wire(block) -> dict:
    if isinstance(block, TextBlock):
        return {"type": "text", "text": block.text}
    if isinstance(block, ToolCallRequest):
        return {
            "type": "tool_use", "id": block.call_id,
            "name": block.tool_name, "input": block.input,
        }
    if isinstance(block, ToolResult):
        wire = {
            "type": "tool_result", "tool_use_id": block.call_id,
            "content": block.content,
        }
        if block.is_error:
            wire["is_error"] = True
        return wire
    raise TypeError(f"Unsupported block type: {type(block).__name__}")


def message_to_wire(message: Message) -> dict:
    return {
        "role": message.role.value,
        "content": [block_to_wire(b) for b in message.blocks],
    }


def log_to_wire(log: ConversationLog) -> list[dict]:
    return [message_to_wire(m) for m in log.messages]


def response_from_wire(response, model_id: str) -> ModelResponse:
    blocks: list[TextBlock | ToolCallRequest] = []
    for block in response.content:
        kind = getattr(block, "type", None)
        if kind == "text":
            blocks.append(TextBlock(block.text))
        elif kind == "tool_use":
            blocks.append(ToolCallRequest(block.id, block.name, dict(block.input or {})))
        else:
            logger.debug("Skipping response block of type %s", kind)
    usage = RoundUsage(
        response.usage.input_tokens, response.usage.output_tokens, model_id,
    )
    return ModelResponse(tuple(blocks), usage, getattr(response, "stop_reason", None))


class AnthropicReasoningModel:
    """ReasoningModel backed by the resilient Anthropic client."""

    def __init__(self, client: ResilientAnthropicClient, max_tokens: int = 4096):
        self.client = client
        self.max_tokens = max_tokens

    async def complete(
        self, log: ConversationLog, tool_schemas: Sequence[dict], model_id: str,
    ) -> ModelResponse:
        response = await self.client.create_message(
            model=model_id,
            max_tokens=self.max_tokens,
            system=log.system,
            tools=list(tool_schemas),
            messages=log_to_wire(log),
        )
        return response_from_wire(response, model_id)
