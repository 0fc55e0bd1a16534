"""Database Session Manager — async engine, per-call sessions, SQLAlchemy error mapping.

Invariants:
    - A session that raises is rolled back before the error leaves session()
    - SQLAlchemy exceptions leave as DatabaseError (core/errors.py); any other
      exception (e.g. ResourceNotFoundError from a store) passes through as is
    - Stores open one short session per call; nothing holds a session across
      a model round

Design Decisions:
    - Module singleton set by init_db() in the lifespan; get_db_manager() for
      callers that run outside a request (the turn engine's producer task)
    - expire_on_commit=False: rows are read after commit (ids, timestamps)
    - SQLite URLs skip pool sizing (aiosqlite in tests and local runs)
    - Error mapping as an ordered table, most specific class first
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.exc import (
    DBAPIError, IntegrityError, OperationalError, SQLAlchemyError,
)
from sqlalchemy.ext.asyncio import (
    AsyncSession, async_sessionmaker, create_async_engine,
)

from nexus_agents.core.errors import DatabaseError

logger = logging.getLogger(__name__)

# (exception class, user-facing message, operation label)
_ERROR_MAP: tuple[tuple[type[SQLAlchemyError], str, str], ...] = (
    (IntegrityError, "Integrity constraint violated", "commit"),
    (OperationalError, "Connection or operational error", "execute"),
    (DBAPIError, "Database driver error", "query"),
    (SQLAlchemyError, "Database operation failed", "unknown"),
)


def _to_database_error(error: SQLAlchemyError) -> DatabaseError:
    for cls, message, operation in _ERROR_MAP:
        if isinstance(error, cls):
            return DatabaseError(message, operation)
    return DatabaseError("Database operation failed", "unknown")


class DatabaseSessionManager:
    """Owns the async engine and hands out auto-rollback sessions."""

    def __init__(
        self, database_url: str, pool_size: int = 20, max_overflow: int = 10,
    ):
        engine_kwargs = {"pool_pre_ping": True}
        if not database_url.startswith("sqlite"):
            engine_kwargs.update(
                pool_size=pool_size, max_overflow=max_overflow, pool_recycle=3600,
            )
        self.engine = create_async_engine(database_url, **engine_kwargs)
        self._session_factory = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False,
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        db = self._session_factory()
        try:
            yield db
        except SQLAlchemyError as e:
            await db.rollback()
            mapped = _to_database_error(e)
            logger.error(
                "Database %s failed: %s", mapped.operation, e,
                extra={"error_code": mapped.code},
            )
            raise mapped from e
        except Exception:
            await db.rollback()
            raise
        finally:
            await db.close()

    async def health_check(self) -> bool:
        """SELECT 1 round-trip, for the readiness probe."""
        try:
            async with self.session() as db:
                await db.execute(text("SELECT 1"))
        except Exception as e:
            logger.error("Database health check failed: %s", e)
            return False
        return True

    async def dispose(self) -> None:
        await self.engine.dispose()


# Singleton (initialized on startup)
db_manager: DatabaseSessionManager | None = None


def init_db(database_url: str, **kwargs) -> DatabaseSessionManager:
    global db_manager
    db_manager = DatabaseSessionManager(database_url, **kwargs)
    return db_manager


def get_db_manager() -> DatabaseSessionManager:
    if db_manager is None:
        raise RuntimeError("Database not initialized")
    return db_manager
