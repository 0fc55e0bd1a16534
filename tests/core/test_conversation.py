"""Conversation log tests — append-only log and response accessors.

Tests cover:
    - messages property returns a snapshot (later appends do not leak in)
    - append_tool_results keeps order and skips empty batches
    - turn_count counts assistant messages
    - ModelResponse text / tool-call accessors preserve block order
"""

from nexus_agents.core.conversation import (
    ConversationLog, Message, ModelResponse, TextBlock, ToolCallRequest,
    ToolResult,
)
from nexus_agents.core.domain_types import MessageRole
from nexus_agents.core.usage_ledger import RoundUsage


def _response(*blocks):
    return ModelResponse(tuple(blocks), RoundUsage(1, 1, "m"))


def test_messages_snapshot_is_stable():
    log = ConversationLog("sys", [Message.user_text("hi")])
    snapshot = log.messages
    log.append(Message.user_text("again"))
    assert len(snapshot) == 1
    assert len(log) == 2
    assert log.system == "sys"


def test_tool_results_appended_as_one_user_message_in_order():
    log = ConversationLog("")
    log.append_tool_results([
        ToolResult("b", "2"), ToolResult("a", "1", is_error=True),
    ])
    assert len(log) == 1
    msg = log.messages[0]
    assert msg.role == MessageRole.USER
    assert [b.call_id for b in msg.blocks] == ["b", "a"]


def test_empty_tool_results_not_appended():
    log = ConversationLog("")
    log.append_tool_results([])
    assert len(log) == 0


def test_turn_count():
    log = ConversationLog("", [Message.user_text("q")])
    log.append_assistant(_response(TextBlock("a")))
    log.append_assistant(_response(TextBlock("b")))
    assert log.turn_count == 2


def test_response_accessors():
    response = _response(
        TextBlock("one "), ToolCallRequest("c1", "t", {}), TextBlock("two"),
    )
    assert response.has_tool_calls
    assert response.text == "one two"
    assert [r.call_id for r in response.tool_call_requests] == ["c1"]
    assert response.model == "m"


def test_text_only_response_has_no_tool_calls():
    assert not _response(TextBlock("done")).has_tool_calls
