"""Agent directory tests — wiring, premium gate, collected execution.

Tests cover:
    - build_agent_directory registers both agents with frozen registries
    - Editor and session agents expose disjoint capability sets
    - resolve unknown → ResourceNotFoundError; duplicate agent id rejected
    - Premium agent: can_execute only with premium is True
    - execute() equals stream() collected (content, tool calls, metadata)
    - collect_chunks marks error streams unsuccessful
"""

import pytest

from nexus_agents.config import Settings
from nexus_agents.core.chunks import content_chunk, error_chunk, metadata_chunk
from nexus_agents.core.errors import ResourceNotFoundError
from nexus_agents.core.execution_context import ExecutionContext
from nexus_agents.core.usage_ledger import PriceTable
from nexus_agents.services.agent_directory import (
    DOCUMENT_EDITOR_ID, SESSION_MANAGER_ID, Agent, AgentDirectory,
    build_agent_directory, collect_chunks,
)
from nexus_agents.services.content_generator import ContentGenerator
from nexus_agents.services.tool_registry import CapabilityRegistry
from nexus_agents.services.turn_engine import TurnEngine, TurnRequest

from tests.services.fakes import FakeDocumentStore, FakeMessageStore
from tests.services.mock_anthropic import MockAnthropicClient
from tests.services.mock_reasoning import (
    ScriptedReasoningModel, text_reply, tool_reply,
)

CTX = ExecutionContext("sess-1")


# -- Helpers -------------------------------------------------------------------

def _directory(model, messages=None):
    return build_agent_directory(
        Settings(agent_max_turns=4),
        model,
        ContentGenerator(MockAnthropicClient([]), "claude-sonnet-4-5"),
        messages or FakeMessageStore(),
        FakeDocumentStore({"doc-1": "<p>x</p>"}),
        PriceTable.from_overrides(),
    )


def _agent(agent_id="a", is_premium=False):
    engine = TurnEngine(
        ScriptedReasoningModel([]), CapabilityRegistry(), PriceTable(), "m",
    )
    return Agent(agent_id, "A", "desc", engine, is_premium=is_premium)


# --- Wiring -------------------------------------------------------------------

def test_both_agents_registered_with_frozen_registries():
    directory = _directory(ScriptedReasoningModel([]))
    assert len(directory) == 2
    editor = directory.resolve(DOCUMENT_EDITOR_ID)
    session = directory.resolve(SESSION_MANAGER_ID)
    assert editor.registry.frozen and session.registry.frozen
    assert "clear_document" in editor.registry
    assert "analyze_token_usage" in session.registry
    assert not set(editor.registry.identifiers()) & set(session.registry.identifiers())
    assert editor.engine.max_turns == 4


def test_list_metadata_shape():
    meta = _directory(ScriptedReasoningModel([])).list_metadata()
    assert {m["id"] for m in meta} == {DOCUMENT_EDITOR_ID, SESSION_MANAGER_ID}
    assert all(m["capabilities"] for m in meta)


def test_resolve_unknown():
    with pytest.raises(ResourceNotFoundError):
        AgentDirectory().resolve("no-such-agent")


def test_duplicate_agent_rejected():
    directory = AgentDirectory()
    directory.register(_agent("a"))
    with pytest.raises(ValueError):
        directory.register(_agent("a"))


# --- Premium gate -------------------------------------------------------------

def test_premium_agent_requires_premium_context():
    agent = _agent(is_premium=True)
    assert not agent.can_execute(None)
    assert not agent.can_execute(CTX)
    assert not agent.can_execute(ExecutionContext("s", metadata={"premium": "true"}))
    assert agent.can_execute(ExecutionContext("s", metadata={"premium": True}))
    assert _agent().can_execute(None)


# --- Execute ------------------------------------------------------------------

async def test_execute_collects_stream():
    messages = FakeMessageStore()
    model = ScriptedReasoningModel([
        tool_reply(("c1", "get_session_messages", {}), text="Looking. "),
        text_reply("Nothing here yet."),
    ])
    agent = _directory(model, messages).resolve(SESSION_MANAGER_ID)
    response = await agent.execute(TurnRequest("what did we discuss?", CTX))

    assert response.success
    assert response.content == "Looking. Nothing here yet."
    assert [t["tool_name"] for t in response.tool_calls] == ["get_session_messages"]
    assert response.metadata["status"] == "complete"
    assert response.metadata["turns"] == 2
    assert response.error is None
    assert messages.saved[-1]["content"] == response.content


def test_collect_chunks_error():
    response = collect_chunks([
        metadata_chunk("starting"), content_chunk("par"), content_chunk("tial"),
        error_chunk("down", code="ANTHROPIC_API_ERROR"),
    ])
    assert not response.success
    assert response.content == "partial"
    assert response.error["code"] == "ANTHROPIC_API_ERROR"
