"""Domain Types — enums and identity types shared across the orchestration core.

Invariants:
    - All closed sets (chunk types, intents, engine states) encoded as Enums
    - str Enums: serialize to JSON without custom encoders

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - Intent lives here (not in the router) so the tool mapping and the
      classifier prompt share one source of truth
"""

from enum import Enum
from typing import NewType


# ─── Identity Types ──────────────────────────────────────────────

SessionId = NewType("SessionId", str)
DocumentId = NewType("DocumentId", str)
MessageId = NewType("MessageId", str)


# ─── Enums ───────────────────────────────────────────────────────

class ChunkType(str, Enum):
    """Kinds of externally observable stream units."""
    CONTENT = "content"
    TOOL_CALL = "tool_call"
    METADATA = "metadata"
    ERROR = "error"


class ToolCallStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class EngineState(str, Enum):
    """Turn engine lifecycle. done/aborted/cancelled are terminal."""
    START = "start"
    AWAITING_MODEL = "awaiting_model"
    EXECUTING_TOOLS = "executing_tools"
    DONE = "done"
    ABORTED = "aborted"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (
            EngineState.DONE, EngineState.ABORTED, EngineState.CANCELLED,
        )


class Intent(str, Enum):
    """Closed set of intents the single-turn router understands."""
    CREATE_DOCUMENT = "create_document"
    EDIT_DOCUMENT = "edit_document"
    APPEND_CONTENT = "append_content"
    REPLACE_CONTENT = "replace_content"
    FORMAT_CONTENT = "format_content"
    CLEAR_DOCUMENT = "clear_document"
    GENERAL_CHAT = "general_chat"


INTENT_VALUES: tuple[str, ...] = tuple(i.value for i in Intent)
