"""ChatMessage ORM — append-only conversation record per session.

Invariants:
    - Rows are never updated after insert
    - role is 'user' or 'assistant'
    - meta carries tool-call records and token usage for assistant rows

Design Decisions:
    - session_id is a plain indexed string, not a FK: sessions are owned by
      the caller and may not exist as rows here
    - JSON meta over a separate tool_calls table: the tool log is only ever
      read back together with its message
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Text, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column

from nexus_agents.db.base import Base


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4()),
    )
    session_id: Mapped[str] = mapped_column(
        String(100), nullable=False, index=True,
    )
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    meta: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
