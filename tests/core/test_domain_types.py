"""Domain type tests — enum values and terminal states."""

import json

from nexus_agents.core.domain_types import (
    INTENT_VALUES, ChunkType, EngineState, Intent,
)


def test_terminal_states():
    terminal = {s for s in EngineState if s.is_terminal}
    assert terminal == {EngineState.DONE, EngineState.ABORTED, EngineState.CANCELLED}


def test_intent_values_closed_set():
    assert len(INTENT_VALUES) == 7
    assert "general_chat" in INTENT_VALUES
    assert Intent("clear_document") is Intent.CLEAR_DOCUMENT


def test_str_enums_serialize_as_values():
    assert json.dumps({"t": ChunkType.CONTENT}) == '{"t": "content"}'
