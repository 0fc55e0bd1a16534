"""Turn engine tests — bounded loop, chunk stream, usage, terminal states.

Tests cover:
    - Text-only reply: starting → content → turn_complete → complete
    - Usage additivity: final totals equal the sum of every round
    - Prefix consistency: turn_complete totals never decrease and end at the final total
    - Tool results fed back in request order, one result per call, same call ids
    - One failing + one succeeding tool: both recorded, loop continues
    - Never-stopping model: exactly max_turns model calls, DONE with ceiling_reached,
      text from every round kept and persisted
    - Reasoning model error / timeout: ABORTED, error chunk last, partial persisted
    - Unexpected internal error: InternalError chunk, ABORTED
    - Consumer disconnect (during a model call or a tool call): CANCELLED,
      in-flight tool cancelled, no persistence, no error chunk
    - Persistence failure surfaces as metadata, run still completes
    - History seeds the log ahead of the new user message

Design Decisions:
    - run() driven directly with an unbounded channel when the test needs the
      TurnOutcome; stream() used for consumer-side behavior
    - ScriptedReasoningModel snapshots the log on every call
"""

import asyncio

import pytest

from nexus_agents.core.chunks import (
    STATUS_COMPLETE, STATUS_EXECUTING_TOOL, STATUS_PERSISTENCE_FAILED,
    STATUS_STARTING, STATUS_TURN_COMPLETE,
)
from nexus_agents.core.conversation import Message, ToolResult
from nexus_agents.core.domain_types import (
    ChunkType, EngineState, MessageRole, ToolCallStatus,
)
from nexus_agents.core.errors import AnthropicAPIError
from nexus_agents.core.execution_context import ExecutionContext
from nexus_agents.core.usage_ledger import ModelPrice, PriceTable
from nexus_agents.services.chunk_channel import ChunkChannel
from nexus_agents.services.tool_registry import CapabilityRegistry, Tool
from nexus_agents.services.turn_engine import TurnEngine, TurnRequest

from tests.services.fakes import FakeMessageStore
from tests.services.mock_reasoning import (
    MODEL, ScriptedReasoningModel, text_reply, tool_reply,
)

PRICES = PriceTable({MODEL: ModelPrice(3.0, 15.0)})
CTX = ExecutionContext("sess-1")


# -- Helpers -------------------------------------------------------------------

def _schema(name):
    return {"name": name, "description": name, "input_schema": {"type": "object"}}


def _registry(calls=None):
    calls = calls if calls is not None else []

    async def lookup(input_data, context):
        calls.append(("lookup", input_data))
        return {"value": input_data.get("key", "").upper()}

    async def explode(input_data, context):
        calls.append(("explode", input_data))
        raise RuntimeError("kaboom")

    return CapabilityRegistry([
        Tool.from_schema(_schema("lookup"), lookup),
        Tool.from_schema(_schema("explode"), explode),
    ]).freeze()


def _engine(model, store=None, **kwargs):
    kwargs.setdefault("max_turns", 5)
    return TurnEngine(
        reasoning_model=model,
        registry=kwargs.pop("registry", None) or _registry(),
        prices=PRICES,
        model=MODEL,
        system_prompt="You are a test agent.",
        message_store=store,
        agent_id="test-agent",
        agent_name="Test Agent",
        **kwargs,
    )


async def _run(engine, message="hello", history=()):
    """Run to completion; returns (outcome, chunks)."""
    channel = ChunkChannel()
    outcome = await engine.run(TurnRequest(message, CTX, tuple(history)), channel)
    chunks = [c async for c in channel]
    return outcome, chunks


def _statuses(chunks):
    return [
        c.data["status"] for c in chunks if c.type == ChunkType.METADATA
    ]


# --- Happy path ---------------------------------------------------------------

async def test_text_only_reply():
    store = FakeMessageStore()
    outcome, chunks = await _run(_engine(ScriptedReasoningModel([text_reply("Hi!")]), store))

    assert [c.type for c in chunks] == [
        ChunkType.METADATA, ChunkType.CONTENT, ChunkType.METADATA, ChunkType.METADATA,
    ]
    assert _statuses(chunks) == [STATUS_STARTING, STATUS_TURN_COMPLETE, STATUS_COMPLETE]
    assert chunks[1].data == "Hi!"
    assert outcome.state == EngineState.DONE
    assert outcome.text == "Hi!"
    assert not outcome.ceiling_reached

    assert len(store.saved) == 1
    saved = store.saved[0]
    assert saved["role"] == MessageRole.ASSISTANT.value
    assert saved["content"] == "Hi!"
    assert saved["meta"]["agent_id"] == "test-agent"
    assert outcome.message_id == saved["id"]
    assert chunks[-1].data["message_id"] == saved["id"]


async def test_usage_is_sum_of_rounds():
    model = ScriptedReasoningModel([
        tool_reply(("c1", "lookup", {"key": "a"}), tokens=(100, 10)),
        tool_reply(("c2", "lookup", {"key": "b"}), tokens=(200, 20)),
        text_reply("done", tokens=(300, 30)),
    ])
    outcome, chunks = await _run(_engine(model))

    assert outcome.usage.input_tokens == 600
    assert outcome.usage.output_tokens == 60
    expected_cost = 600 / 1e6 * 3.0 + 60 / 1e6 * 15.0
    assert outcome.usage.estimated_cost_usd == pytest.approx(expected_cost)
    final = chunks[-1].data["usage"]
    assert final["input_tokens"] == 600
    assert final["output_tokens"] == 60


async def test_turn_complete_totals_are_consistent_prefixes():
    model = ScriptedReasoningModel([
        tool_reply(("c1", "lookup", {}), tokens=(10, 1)),
        tool_reply(("c2", "lookup", {}), tokens=(20, 2)),
        text_reply("done", tokens=(30, 3)),
    ])
    outcome, chunks = await _run(_engine(model))

    partials = [
        c.data["usage"] for c in chunks
        if c.type == ChunkType.METADATA and c.data["status"] == STATUS_TURN_COMPLETE
    ]
    assert [p["input_tokens"] for p in partials] == [10, 30, 60]
    assert partials[-1]["total_tokens"] == outcome.usage.total_tokens


async def test_content_chunks_concatenate_to_final_text():
    model = ScriptedReasoningModel([
        tool_reply(("c1", "lookup", {}), text="Let me check. "),
        text_reply("Found it."),
    ])
    outcome, chunks = await _run(_engine(model))
    content = "".join(c.data for c in chunks if c.type == ChunkType.CONTENT)
    assert content == outcome.text == "Let me check. Found it."


# --- Tool execution -----------------------------------------------------------

async def test_tool_results_follow_request_order():
    calls = []
    model = ScriptedReasoningModel([
        tool_reply(
            ("c-b", "lookup", {"key": "b"}),
            ("c-a", "lookup", {"key": "a"}),
        ),
        text_reply("ok"),
    ])
    outcome, chunks = await _run(_engine(model, registry=_registry(calls)))

    assert [c[1]["key"] for c in calls] == ["b", "a"]
    second_call = model.calls[1]["messages"]
    results_msg = second_call[-1]
    assert results_msg.role == MessageRole.USER
    assert all(isinstance(b, ToolResult) for b in results_msg.blocks)
    assert [b.call_id for b in results_msg.blocks] == ["c-b", "c-a"]

    tool_chunks = [c for c in chunks if c.type == ChunkType.TOOL_CALL]
    assert [c.data["call_id"] for c in tool_chunks] == ["c-b", "c-a"]


async def test_executing_tool_chunk_precedes_tool_call_chunk():
    model = ScriptedReasoningModel([
        tool_reply(("c1", "lookup", {"key": "x"})), text_reply("ok"),
    ])
    _, chunks = await _run(_engine(model))
    idx_exec = next(
        i for i, c in enumerate(chunks)
        if c.type == ChunkType.METADATA and c.data["status"] == STATUS_EXECUTING_TOOL
    )
    idx_call = next(i for i, c in enumerate(chunks) if c.type == ChunkType.TOOL_CALL)
    assert idx_exec < idx_call
    assert chunks[idx_exec].data["tool_name"] == "lookup"


async def test_failing_tool_does_not_stop_loop():
    model = ScriptedReasoningModel([
        tool_reply(("c1", "explode", {}), ("c2", "lookup", {"key": "q"})),
        text_reply("Partial answer."),
    ])
    outcome, _ = await _run(_engine(model))

    assert outcome.state == EngineState.DONE
    assert [r.status for r in outcome.tool_calls] == [
        ToolCallStatus.ERROR, ToolCallStatus.SUCCESS,
    ]
    assert outcome.tool_calls[0].error_message == "kaboom"

    results = model.calls[1]["messages"][-1].blocks
    assert results[0].is_error
    assert "kaboom" in results[0].content
    assert not results[1].is_error
    assert "Q" in results[1].content


async def test_unknown_tool_reported_to_model():
    model = ScriptedReasoningModel([
        tool_reply(("c1", "does_not_exist", {})), text_reply("sorry"),
    ])
    outcome, _ = await _run(_engine(model))
    assert outcome.tool_calls[0].error_message == "Tool 'does_not_exist' does not exist."
    assert model.calls[1]["messages"][-1].blocks[0].is_error


async def test_tool_schemas_sent_in_registration_order():
    model = ScriptedReasoningModel([text_reply("hi")])
    await _run(_engine(model))
    assert [s["name"] for s in model.calls[0]["tool_schemas"]] == ["lookup", "explode"]
    assert model.calls[0]["model_id"] == MODEL


# --- Turn ceiling -------------------------------------------------------------

async def test_never_stopping_model_hits_ceiling():
    store = FakeMessageStore()
    model = ScriptedReasoningModel(
        [tool_reply(("c", "lookup", {}), text="step ")], forever=True,
    )
    outcome, chunks = await _run(_engine(model, store, max_turns=3))

    assert model.call_count == 3
    assert outcome.state == EngineState.DONE
    assert outcome.ceiling_reached
    assert len(outcome.tool_calls) == 3
    assert chunks[-1].data["status"] == STATUS_COMPLETE
    assert chunks[-1].data["ceiling_reached"] is True
    assert store.saved[0]["meta"]["ceiling_reached"] is True
    assert outcome.text == "step step step "
    assert store.saved[0]["content"] == "step step step "


def test_max_turns_must_be_positive():
    with pytest.raises(ValueError):
        _engine(ScriptedReasoningModel([]), max_turns=0)


# --- Abort --------------------------------------------------------------------

async def test_model_error_aborts_with_partial_persisted():
    store = FakeMessageStore()
    model = ScriptedReasoningModel([
        tool_reply(("c1", "lookup", {}), text="Working on it. ", tokens=(100, 10)),
        AnthropicAPIError("overloaded", "connection_error"),
    ])
    outcome, chunks = await _run(_engine(model, store))

    assert outcome.state == EngineState.ABORTED
    assert chunks[-1].type == ChunkType.ERROR
    assert chunks[-1].data["code"] == "ANTHROPIC_API_ERROR"
    assert chunks[-1].data["usage"]["input_tokens"] == 100
    assert sum(1 for c in chunks if c.is_terminal) == 1

    saved = store.saved[0]
    assert saved["content"] == "Working on it. "
    assert saved["meta"]["error"]["code"] == "ANTHROPIC_API_ERROR"
    assert len(saved["meta"]["tool_calls"]) == 1


async def test_generic_model_exception_aborts():
    model = ScriptedReasoningModel([RuntimeError("socket closed")])
    outcome, chunks = await _run(_engine(model))
    assert outcome.state == EngineState.ABORTED
    assert chunks[-1].data["code"] == "REASONING_MODEL_ERROR"
    assert "socket closed" in outcome.error_message


async def test_model_timeout_aborts():
    model = ScriptedReasoningModel([text_reply("late")], delay=1.0)
    outcome, chunks = await _run(_engine(model, model_timeout_seconds=0.05))
    assert outcome.state == EngineState.ABORTED
    assert chunks[-1].type == ChunkType.ERROR
    assert chunks[-1].data["code"] == "REASONING_MODEL_TIMEOUT"


async def test_unexpected_error_becomes_internal_error_chunk():
    model = ScriptedReasoningModel([lambda log: None])
    outcome, chunks = await _run(_engine(model))
    assert outcome.state == EngineState.ABORTED
    assert chunks[-1].type == ChunkType.ERROR
    assert chunks[-1].data["code"] == "INTERNAL_ERROR"
    assert chunks[-1].data["message"] == "An unexpected error occurred"


# --- Persistence --------------------------------------------------------------

async def test_persistence_failure_is_metadata_not_error():
    outcome, chunks = await _run(_engine(
        ScriptedReasoningModel([text_reply("fine")]), FakeMessageStore(fail=True),
    ))
    assert outcome.state == EngineState.DONE
    assert STATUS_PERSISTENCE_FAILED in _statuses(chunks)
    assert chunks[-1].data["status"] == STATUS_COMPLETE
    assert chunks[-1].data["messages_saved"] == 0
    assert not any(c.type == ChunkType.ERROR for c in chunks)


async def test_no_store_means_no_persistence():
    outcome, chunks = await _run(_engine(ScriptedReasoningModel([text_reply("x")])))
    assert outcome.message_id is None
    assert chunks[-1].data["messages_saved"] == 0


# --- History ------------------------------------------------------------------

async def test_history_precedes_new_message():
    history = [
        Message.user_text("earlier question"),
        Message(MessageRole.ASSISTANT, Message.user_text("earlier answer").blocks),
    ]
    model = ScriptedReasoningModel([text_reply("ok")])
    await _run(_engine(model), message="new question", history=history)

    sent = model.calls[0]["messages"]
    assert len(sent) == 3
    assert sent[-1].blocks[0].text == "new question"
    assert model.calls[0]["system"] == "You are a test agent."


# --- Streaming / cancellation -------------------------------------------------

async def test_stream_yields_until_terminal():
    engine = _engine(ScriptedReasoningModel([
        tool_reply(("c1", "lookup", {})), text_reply("done"),
    ]), buffer_size=1)
    chunks = [c async for c in engine.stream(TurnRequest("hi", CTX))]
    assert chunks[0].data["status"] == STATUS_STARTING
    assert chunks[-1].is_terminal
    assert sum(1 for c in chunks if c.is_terminal) == 1


async def test_consumer_disconnect_cancels_without_persisting():
    store = FakeMessageStore()
    model = ScriptedReasoningModel([text_reply("never seen")], delay=5.0)
    stream = _engine(model, store).stream(TurnRequest("hi", CTX))

    first = await stream.__anext__()
    assert first.data["status"] == STATUS_STARTING
    await asyncio.wait_for(stream.aclose(), 1)

    assert store.saved == []
    assert model.call_count <= 1


async def test_consumer_disconnect_during_tool_abandons_it():
    store = FakeMessageStore()
    started = asyncio.Event()
    cancelled = []

    async def slow(input_data, context):
        started.set()
        try:
            await asyncio.sleep(5)
        except asyncio.CancelledError:
            cancelled.append(True)
            raise
        return {"done": True}

    registry = CapabilityRegistry([Tool.from_schema(_schema("slow"), slow)]).freeze()
    model = ScriptedReasoningModel([tool_reply(("c1", "slow", {})), text_reply("late")])
    stream = _engine(model, store, registry=registry).stream(TurnRequest("hi", CTX))

    seen = []
    async for chunk in stream:
        seen.append(chunk)
        if chunk.type == ChunkType.METADATA and chunk.data["status"] == STATUS_EXECUTING_TOOL:
            break
    await asyncio.wait_for(started.wait(), 1)
    await asyncio.wait_for(stream.aclose(), 1)

    assert cancelled == [True]
    assert store.saved == []
    assert model.call_count == 1
    assert not any(c.type in (ChunkType.ERROR, ChunkType.TOOL_CALL) for c in seen)


async def test_cancelled_run_propagates_cancellation():
    model = ScriptedReasoningModel([text_reply("x")], delay=5.0)
    engine = _engine(model)
    channel = ChunkChannel()
    task = asyncio.create_task(engine.run(TurnRequest("hi", CTX), channel))
    await channel.__anext__()
    channel.disconnect()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
