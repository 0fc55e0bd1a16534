"""Execution Context — per-request identity passed down the call chain.

Invariants:
    - Immutable after creation (frozen dataclass + read-only metadata view)
    - session_id always present; user_id/project_id optional
    - document_id comes only from metadata["document_id"]; project_id is a
      separate scope and never names a document

Design Decisions:
    - MappingProxyType for metadata: handlers can read the bag but never mutate it
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping
from uuid import uuid4


@dataclass(frozen=True)
class ExecutionContext:
    session_id: str
    user_id: str | None = None
    project_id: str | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(
            self, "metadata", MappingProxyType(dict(self.metadata)),
        )

    @property
    def is_premium(self) -> bool:
        """Strict check: only a literal True grants elevated access."""
        return self.metadata.get("premium") is True

    @property
    def document_id(self) -> str | None:
        value = self.metadata.get("document_id")
        return str(value) if value else None


def new_session_id() -> str:
    """Session id for callers that did not supply one."""
    return f"session-{uuid4().hex[:12]}"
