"""SQLAlchemy Declarative Base — shared base class for chat_messages and documents.

Invariants:
    - All models inherit from Base
    - Base.metadata is the single source of truth for Alembic

Design Decisions:
    - Constraint naming convention fixed here so migrations get stable names
"""

from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase

NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)
