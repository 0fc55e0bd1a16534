"""Boundary Protocols — contracts between core and shell.

Invariants:
    - Core NEVER imports from shell: dependency arrows point inward only
    - All IO operations accessed through Protocol types
    - Implementations provided by shell via dependency injection

Design Decisions:
    - Protocol over ABC: structural subtyping, test fakes need no inheritance
    - Async in Protocol: boundary methods are async because implementations do IO
"""

from typing import Any, Protocol, Sequence

from nexus_agents.core.conversation import ConversationLog, ModelResponse


class ReasoningModel(Protocol):
    """External model that reads the log and may request tool calls."""
    async def complete(
        self, log: ConversationLog, tool_schemas: Sequence[dict], model_id: str,
    ) -> ModelResponse: ...


class MessageStore(Protocol):
    """Append-only chat message persistence, implemented by shell."""
    async def append_message(
        self, session_id: str, role: str, content: str,
        meta: dict | None = None,
    ) -> str: ...

    async def list_messages(
        self, session_id: str, limit: int = 50,
    ) -> list[dict[str, Any]]: ...

    async def search_messages(
        self, query: str, session_id: str | None = None, limit: int = 10,
    ) -> list[dict[str, Any]]: ...


class DocumentStore(Protocol):
    """Editor document persistence, implemented by shell."""
    async def get_content(self, document_id: str) -> str | None: ...
    async def update_content(self, document_id: str, content: str) -> None: ...
    async def create(self, title: str, content: str = "") -> str: ...
