"""SQL Stores — MessageStore and DocumentStore over async SQLAlchemy.

Invariants:
    - append_message() commits exactly one row and returns its id
    - Each call opens and closes its own session (no session shared across requests)
    - Failures surface as DatabaseError via DatabaseSessionManager

Design Decisions:
    - Session-per-call through db_manager.session(): stores are used from the
      turn engine's producer task, outside any FastAPI request scope
    - search_messages is a case-insensitive LIKE with % and _ in the query
      escaped; no full-text index needed at this scale
"""

import logging
from typing import Any

from sqlalchemy import select

from nexus_agents.core.errors import ResourceNotFoundError
from nexus_agents.infrastructure.database import DatabaseSessionManager
from nexus_agents.models.chat_message import ChatMessage
from nexus_agents.models.document import Document

logger = logging.getLogger(__name__)


def _message_dict(row: ChatMessage) -> dict[str, Any]:
    return {
        "id": row.id,
        "session_id": row.session_id,
        "role": row.role,
        "content": row.content,
        "meta": row.meta or {},
        "created_at": row.created_at.isoformat() if row.created_at else None,
    }


class SqlMessageStore:
    """Append-only chat messages."""

    def __init__(self, manager: DatabaseSessionManager):
        self.manager = manager

    async def append_message(
        self, session_id: str, role: str, content: str,
        meta: dict | None = None,
    ) -> str:
        async with self.manager.session() as db:
            row = ChatMessage(
                session_id=session_id, role=role, content=content, meta=meta,
            )
            db.add(row)
            await db.commit()
            logger.debug(
                "Message persisted", extra={"session_id": session_id},
            )
            return row.id

    async def list_messages(
        self, session_id: str, limit: int = 50,
    ) -> list[dict[str, Any]]:
        """Most recent `limit` messages, returned oldest first."""
        async with self.manager.session() as db:
            result = await db.execute(
                select(ChatMessage)
                .where(ChatMessage.session_id == session_id)
                .order_by(ChatMessage.created_at.desc())
                .limit(limit)
            )
            rows = list(result.scalars().all())
        rows.reverse()
        return [_message_dict(r) for r in rows]

    async def search_messages(
        self, query: str, session_id: str | None = None, limit: int = 10,
    ) -> list[dict[str, Any]]:
        stmt = select(ChatMessage).where(
            ChatMessage.content.icontains(query, autoescape=True),
        )
        if session_id:
            stmt = stmt.where(ChatMessage.session_id == session_id)
        stmt = stmt.order_by(ChatMessage.created_at.desc()).limit(limit)
        async with self.manager.session() as db:
            result = await db.execute(stmt)
            return [_message_dict(r) for r in result.scalars().all()]


class SqlDocumentStore:
    """Editor documents."""

    def __init__(self, manager: DatabaseSessionManager):
        self.manager = manager

    async def get_content(self, document_id: str) -> str | None:
        async with self.manager.session() as db:
            doc = await db.get(Document, document_id)
            return doc.content if doc else None

    async def update_content(self, document_id: str, content: str) -> None:
        async with self.manager.session() as db:
            doc = await db.get(Document, document_id)
            if doc is None:
                raise ResourceNotFoundError("Document", document_id)
            doc.content = content
            await db.commit()

    async def create(self, title: str, content: str = "") -> str:
        async with self.manager.session() as db:
            doc = Document(title=title or "Untitled", content=content)
            db.add(doc)
            await db.commit()
            return doc.id


# Singletons (initialized on startup)
_message_store: SqlMessageStore | None = None
_document_store: SqlDocumentStore | None = None


def init_stores(manager: DatabaseSessionManager) -> tuple[SqlMessageStore, SqlDocumentStore]:
    global _message_store, _document_store
    _message_store = SqlMessageStore(manager)
    _document_store = SqlDocumentStore(manager)
    return _message_store, _document_store


def get_message_store() -> SqlMessageStore:
    if _message_store is None:
        raise RuntimeError("Stores not initialized")
    return _message_store


def get_document_store() -> SqlDocumentStore:
    if _document_store is None:
        raise RuntimeError("Stores not initialized")
    return _document_store
