"""Alembic environment — runs migrations for chat_messages and documents on the async engine.

Design Decisions:
    - URL comes from Settings (DATABASE_URL, postgresql:// already normalised
      to postgresql+asyncpg://); alembic.ini's sqlalchemy.url is only the
      fallback when Settings still holds its default
    - Importing nexus_agents.models registers both tables on Base.metadata
    - NullPool: a migration run opens exactly one connection
"""

import asyncio
from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy.ext.asyncio import create_async_engine

from alembic import context

import nexus_agents.models  # noqa: F401
from nexus_agents.config import Settings, get_settings
from nexus_agents.db.base import Base

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def _resolve_url() -> str:
    url = get_settings().database_url
    if url == Settings.model_fields["database_url"].default:
        return config.get_main_option("sqlalchemy.url") or url
    return url


def _configure(**kwargs) -> None:
    context.configure(target_metadata=Base.metadata, compare_type=True, **kwargs)
    with context.begin_transaction():
        context.run_migrations()


async def _migrate_online(url: str) -> None:
    engine = create_async_engine(url, poolclass=pool.NullPool)
    try:
        async with engine.connect() as connection:
            await connection.run_sync(lambda sync_conn: _configure(connection=sync_conn))
    finally:
        await engine.dispose()


if context.is_offline_mode():
    _configure(
        url=_resolve_url(), literal_binds=True, dialect_opts={"paramstyle": "named"},
    )
else:
    asyncio.run(_migrate_online(_resolve_url()))
