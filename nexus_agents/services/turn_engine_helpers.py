"""Turn Engine Helpers — pure chunk/result/meta builders for the turn loop.

Invariants:
    - All functions are pure (stateless, deterministic apart from timestamps)
    - tool_results_for() preserves the order of the records it is given
    - A failed tool call always produces an is_error ToolResult, never a gap

Design Decisions:
    - Extracted from turn_engine.py so the loop reads as control flow only
    - Error chunk payload built from NexusError.to_chunk_data() so REST and
      stream errors share one shape
"""

from typing import Iterable

from nexus_agents.core.chunks import (
    STATUS_COMPLETE, STATUS_EXECUTING_TOOL, STATUS_PERSISTENCE_FAILED,
    STATUS_STARTING, STATUS_TURN_COMPLETE, AgentChunk, metadata_chunk,
)
from nexus_agents.core.conversation import ToolCallRequest, ToolResult
from nexus_agents.core.domain_types import ChunkType
from nexus_agents.core.errors import NexusError
from nexus_agents.core.format_messages import (
    format_tool_error, format_tool_result, preview,
)
from nexus_agents.core.tool_records import ToolCallRecord
from nexus_agents.core.usage_ledger import UsageTotals


# -- Tool results --------------------------------------------------------------

def tool_result_for(record: ToolCallRecord) -> ToolResult:
    if record.succeeded:
        return ToolResult(record.call_id, format_tool_result(record.result))
    return ToolResult(
        record.call_id, format_tool_error(record.error_message or "unknown error"),
        is_error=True,
    )


def tool_results_for(records: Iterable[ToolCallRecord]) -> list[ToolResult]:
    return [tool_result_for(r) for r in records]


# -- Chunk builders ------------------------------------------------------------

def starting_chunk(agent_id: str, agent_name: str, session_id: str) -> AgentChunk:
    return metadata_chunk(
        STATUS_STARTING,
        agent_id=agent_id, agent_name=agent_name, session_id=session_id,
    )


def executing_tool_chunk(request: ToolCallRequest, turn: int) -> AgentChunk:
    return metadata_chunk(
        STATUS_EXECUTING_TOOL,
        tool_name=request.tool_name, call_id=request.call_id,
        input_preview=preview(request.input, 200), turn=turn,
    )


def turn_complete_chunk(turn: int, totals: UsageTotals) -> AgentChunk:
    return metadata_chunk(STATUS_TURN_COMPLETE, turn=turn, usage=totals.to_dict())


def persistence_failed_chunk(message: str) -> AgentChunk:
    return metadata_chunk(STATUS_PERSISTENCE_FAILED, message=message)


def complete_chunk(summary: dict) -> AgentChunk:
    return metadata_chunk(STATUS_COMPLETE, **summary)


def error_chunk_from(error: NexusError, **fields) -> AgentChunk:
    return AgentChunk(ChunkType.ERROR, {**error.to_chunk_data(), **fields})


# -- Persistence / summary -----------------------------------------------------

def assistant_meta(
    agent_id: str,
    records: list[ToolCallRecord],
    totals: UsageTotals,
    turns: int,
    ceiling_reached: bool = False,
    error: NexusError | None = None,
) -> dict:
    """Meta stored with the assistant message (tool log + usage)."""
    meta = {
        "agent_id": agent_id,
        "tool_calls": [r.to_dict() for r in records],
        "token_usage": totals.to_dict(),
        "turns": turns,
        "ceiling_reached": ceiling_reached,
    }
    if error is not None:
        meta["error"] = {"code": error.code, "message": error.message}
    return meta


def completion_summary(
    session_id: str,
    agent_id: str,
    records: list[ToolCallRecord],
    totals: UsageTotals,
    turns: int,
    ceiling_reached: bool,
    message_id: str | None,
) -> dict:
    return {
        "session_id": session_id,
        "agent_id": agent_id,
        "turns": turns,
        "ceiling_reached": ceiling_reached,
        "tool_call_count": len(records),
        "failed_tool_calls": sum(1 for r in records if not r.succeeded),
        "usage": totals.to_dict(),
        "message_id": message_id,
        "messages_saved": 1 if message_id else 0,
    }
