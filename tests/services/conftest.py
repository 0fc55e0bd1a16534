"""Service test fixtures — async DB, SQL stores, fakes, FastAPI test client.

Invariants:
    - Every test gets a fresh in-memory SQLite database
    - db_manager patched so readiness checks and stores see the test DB
    - client overrides every route dependency (directory, message store,
      intent router): ASGITransport does not run the lifespan

Design Decisions:
    - SQLite in-memory: fast, no external dependency, sufficient for store and
      route tests (PostgreSQL-specific features not exercised here)
    - StaticPool: one shared connection, so every session sees the same
      in-memory database
    - Fake stores (plain classes) for engine and router tests that only need
      to observe persistence calls
"""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession, async_sessionmaker, create_async_engine,
)
from sqlalchemy.pool import StaticPool

import nexus_agents.infrastructure.database as db_module
import nexus_agents.models  # noqa: F401 registers tables on Base.metadata
import nexus_agents.services.agent_directory as agents_module
from nexus_agents.db.base import Base
from nexus_agents.infrastructure.database import DatabaseSessionManager
from nexus_agents.infrastructure.message_store import (
    SqlDocumentStore, SqlMessageStore, get_message_store,
)
from nexus_agents.main import app
from nexus_agents.services.agent_directory import get_agent_directory
from nexus_agents.services.intent_router import get_intent_router

from tests.services.fakes import FakeDocumentStore, FakeMessageStore


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", echo=False, poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )


@pytest.fixture
def fake_manager(test_engine, test_session_factory):
    manager = DatabaseSessionManager.__new__(DatabaseSessionManager)
    manager.engine = test_engine
    manager._session_factory = test_session_factory
    return manager


@pytest.fixture
def message_store(fake_manager):
    return SqlMessageStore(fake_manager)


@pytest.fixture
def document_store(fake_manager):
    return SqlDocumentStore(fake_manager)


@pytest.fixture
def fake_messages():
    return FakeMessageStore()


@pytest.fixture
def fake_documents():
    return FakeDocumentStore({"doc-1": "<p>Hello</p>"})


# -- API client ----------------------------------------------------------------


@pytest.fixture
def overrides():
    """Mutable dependency map; tests fill it before issuing requests."""
    return {}


@pytest.fixture
async def client(fake_manager, message_store, overrides):
    """FastAPI test client with every service dependency overridden."""
    app.dependency_overrides[get_message_store] = (
        lambda: overrides.get("messages", message_store)
    )
    app.dependency_overrides[get_agent_directory] = lambda: overrides["directory"]
    app.dependency_overrides[get_intent_router] = lambda: overrides["router"]

    original_manager = db_module.db_manager
    original_directory = agents_module._directory
    db_module.db_manager = fake_manager

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
    db_module.db_manager = original_manager
    agents_module._directory = original_directory
