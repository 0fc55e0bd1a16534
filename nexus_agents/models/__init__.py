"""ORM Models — SQLAlchemy declarative models for persisted entities.

Invariants:
    - All models inherit from Base (db/base.py)
    - Messages are scoped by session_id; documents stand alone

Design Decisions:
    - One file per entity for locality
    - All models imported here so Base.metadata is complete before
      create_all() or Alembic autogenerate runs
"""

from nexus_agents.models.chat_message import ChatMessage  # noqa: F401
from nexus_agents.models.document import Document  # noqa: F401
