"""Chunk Protocol — typed stream units and their builders.

Invariants:
    - Every chunk is self-contained: no chunk refers to a later chunk, so any
      prefix of a stream is interpretable on its own
    - content chunks concatenate (in order) to the final text
    - A stream ends with metadata{status: complete} or an error chunk
    - metadata chunks are advisory; a text-only consumer may ignore them

Design Decisions:
    - Builders instead of constructors at call sites: one place for payload shape
    - timestamp in epoch milliseconds (what browser consumers expect)
"""

import json
import time
from dataclasses import dataclass, field
from typing import Any

from nexus_agents.core.domain_types import ChunkType
from nexus_agents.core.tool_records import ToolCallRecord

STATUS_STARTING = "starting"
STATUS_EXECUTING_TOOL = "executing_tool"
STATUS_TURN_COMPLETE = "turn_complete"
STATUS_PERSISTENCE_FAILED = "persistence_failed"
STATUS_COMPLETE = "complete"


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class AgentChunk:
    type: ChunkType
    data: Any
    timestamp: int = field(default_factory=_now_ms)

    @property
    def is_terminal(self) -> bool:
        if self.type == ChunkType.ERROR:
            return True
        return (
            self.type == ChunkType.METADATA
            and isinstance(self.data, dict)
            and self.data.get("status") == STATUS_COMPLETE
        )

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "data": self.data,
            "timestamp": self.timestamp,
        }


# -- Builders ------------------------------------------------------------------

def content_chunk(text: str) -> AgentChunk:
    return AgentChunk(ChunkType.CONTENT, text)


def tool_call_chunk(record: ToolCallRecord) -> AgentChunk:
    return AgentChunk(ChunkType.TOOL_CALL, record.to_dict())


def metadata_chunk(status: str, **fields: Any) -> AgentChunk:
    return AgentChunk(ChunkType.METADATA, {"status": status, **fields})


def error_chunk(message: str, code: str = "INTERNAL_ERROR", **fields: Any) -> AgentChunk:
    return AgentChunk(ChunkType.ERROR, {"code": code, "message": message, **fields})


# -- Wire format ---------------------------------------------------------------

def sse_line(chunk: AgentChunk) -> str:
    """Format chunk as an SSE data line."""
    return f"data: {json.dumps(chunk.to_dict(), ensure_ascii=False, default=str)}\n\n"
