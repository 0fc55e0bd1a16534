"""Session Handlers — get_session_messages, search_session_messages, analyze_token_usage.

Invariants:
    - Read-only: no handler writes to the message store
    - analyze_token_usage merges stored per-message totals with combine(),
      so the session total equals the sum of the message totals
    - Messages without token_usage meta are counted but contribute nothing

Design Decisions:
    - limit clamped to [1, 200]: the result is fed back to the model verbatim
"""

import logging

from nexus_agents.core.execution_context import ExecutionContext
from nexus_agents.core.format_messages import preview
from nexus_agents.core.repository_protocols import MessageStore
from nexus_agents.core.usage_ledger import UsageTotals, combine
from nexus_agents.services.define_session_tools import TOOLS_SESSION
from nexus_agents.services.tool_registry import Tool

logger = logging.getLogger(__name__)

_MAX_LIMIT = 200


def _clamp(value, default: int) -> int:
    try:
        return max(1, min(_MAX_LIMIT, int(value)))
    except (TypeError, ValueError):
        return default


def totals_from_meta(meta: dict | None) -> UsageTotals | None:
    usage = (meta or {}).get("token_usage")
    if not isinstance(usage, dict):
        return None
    return UsageTotals(
        input_tokens=int(usage.get("input_tokens", 0)),
        output_tokens=int(usage.get("output_tokens", 0)),
        estimated_cost_usd=float(usage.get("estimated_cost_usd", 0.0)),
        model=usage.get("model") or "",
    )


def _summary(message: dict) -> dict:
    return {
        "id": message["id"],
        "session_id": message["session_id"],
        "role": message["role"],
        "content": preview(message["content"], 500),
        "created_at": message.get("created_at"),
    }


class SessionHandlers:
    """Conversation analytics tool handlers."""

    def __init__(self, messages: MessageStore):
        self.messages = messages

    async def get_session_messages(
        self, input_data: dict, context: ExecutionContext,
    ) -> dict:
        session_id = input_data.get("session_id") or context.session_id
        rows = await self.messages.list_messages(
            session_id, _clamp(input_data.get("limit"), 20),
        )
        return {
            "session_id": session_id,
            "count": len(rows),
            "messages": [_summary(r) for r in rows],
        }

    async def search_session_messages(
        self, input_data: dict, context: ExecutionContext,
    ) -> dict:
        query = (input_data.get("query") or "").strip()
        if not query:
            raise ValueError("query must not be empty")
        rows = await self.messages.search_messages(
            query, input_data.get("session_id"),
            _clamp(input_data.get("limit"), 10),
        )
        return {
            "query": query,
            "count": len(rows),
            "results": [_summary(r) for r in rows],
        }

    async def analyze_token_usage(
        self, input_data: dict, context: ExecutionContext,
    ) -> dict:
        session_id = input_data.get("session_id") or context.session_id
        rows = await self.messages.list_messages(
            session_id, _clamp(input_data.get("limit"), _MAX_LIMIT),
        )
        total = UsageTotals.empty()
        by_model: dict[str, UsageTotals] = {}
        measured = 0
        for row in rows:
            totals = totals_from_meta(row.get("meta"))
            if totals is None:
                continue
            measured += 1
            total = combine(total, totals)
            key = totals.model or "unknown"
            by_model[key] = combine(by_model.get(key, UsageTotals.empty()), totals)

        return {
            "session_id": session_id,
            "message_count": len(rows),
            "measured_messages": measured,
            "totals": total.to_dict(),
            "by_model": {m: t.to_dict() for m, t in sorted(by_model.items())},
        }

    def tools(self) -> list[Tool]:
        return [
            Tool.from_schema(schema, getattr(self, schema["name"]))
            for schema in TOOLS_SESSION
        ]
