"""Editor handler tests — generation, fallback, document resolution, clear.

Tests cover:
    - Generated content written to the document, usage reported
    - Content model failure → deterministic fallback, used_fallback=True
    - append fallback keeps the existing content
    - Missing document id → DocumentRequiredError (create_document excepted)
    - create_document without a document creates one
    - clear_document writes the placeholder without calling the model
    - tools() exposes one Tool per editor schema, in schema order
"""

import pytest

from nexus_agents.core.errors import DocumentRequiredError, ResourceNotFoundError
from nexus_agents.core.execution_context import ExecutionContext
from nexus_agents.core.format_messages import CLEARED_DOCUMENT_HTML
from nexus_agents.services.content_generator import ContentGenerator
from nexus_agents.services.define_editor_tools import TOOLS_EDITOR
from nexus_agents.services.handle_editor import EditorHandlers

from tests.services.fakes import FakeDocumentStore
from tests.services.mock_anthropic import MockAnthropicClient, text_message

CTX = ExecutionContext("sess-1")
DOC_CTX = ExecutionContext("sess-1", metadata={"document_id": "doc-1"})


# -- Helpers -------------------------------------------------------------------

def _handlers(responses, docs=None):
    client = MockAnthropicClient(responses)
    store = FakeDocumentStore(docs if docs is not None else {"doc-1": "<p>Hello</p>"})
    return EditorHandlers(store, ContentGenerator(client, "claude-sonnet-4-5")), store, client


# --- Generation ---------------------------------------------------------------

async def test_edit_writes_generated_content():
    handlers, store, client = _handlers([text_message("<p>Hello, world</p>", tokens=(70, 30))])
    result = await handlers.edit_document({"message": "add world"}, DOC_CTX)

    assert store.docs["doc-1"] == "<p>Hello, world</p>"
    assert result["document_updated"] is True
    assert result["document_id"] == "doc-1"
    assert result["used_fallback"] is False
    assert result["generation_usage"] == {
        "input_tokens": 70, "output_tokens": 30, "model": "claude-sonnet-4-5",
    }
    prompt = client.calls[0]["messages"][0]["content"]
    assert "edit_document" in prompt
    assert "<p>Hello</p>" in prompt


async def test_input_document_id_wins_over_context():
    handlers, store, _ = _handlers(
        [text_message("<p>x</p>")], {"doc-1": "a", "doc-2": "b"},
    )
    result = await handlers.replace_content(
        {"message": "x", "document_id": "doc-2"}, DOC_CTX,
    )
    assert result["document_id"] == "doc-2"
    assert store.docs == {"doc-1": "a", "doc-2": "<p>x</p>"}


async def test_generation_failure_uses_fallback():
    handlers, store, _ = _handlers([RuntimeError("model down")])
    result = await handlers.append_content({"message": "a footnote"}, DOC_CTX)

    assert result["used_fallback"] is True
    assert result["generation_usage"] is None
    assert store.docs["doc-1"].startswith("<p>Hello</p>")
    assert "a footnote" in store.docs["doc-1"]


async def test_empty_generation_uses_fallback():
    handlers, store, _ = _handlers([text_message("   ")])
    result = await handlers.format_content({"message": "bullets"}, DOC_CTX)
    assert result["used_fallback"] is True


# --- Document resolution ------------------------------------------------------

@pytest.mark.parametrize("name", [
    "edit_document", "append_content", "replace_content", "format_content",
    "clear_document",
])
async def test_document_required(name):
    handlers, _, client = _handlers([])
    with pytest.raises(DocumentRequiredError):
        await getattr(handlers, name)({"message": "x"}, CTX)
    assert client.calls == []


async def test_missing_document_raises_not_found():
    handlers, _, _ = _handlers([], docs={})
    with pytest.raises(ResourceNotFoundError):
        await handlers.edit_document({"message": "x", "document_id": "no-such-doc"}, CTX)


async def test_create_without_document_creates_one():
    handlers, store, _ = _handlers([text_message("<h1>Plan</h1>")], docs={})
    result = await handlers.create_document({"message": "a plan", "title": "Plan"}, CTX)
    assert result["document_id"] in store.docs
    assert store.docs[result["document_id"]] == "<h1>Plan</h1>"


async def test_project_scope_is_not_a_document():
    handlers, store, _ = _handlers([text_message("<h1>Plan</h1>")], docs={})
    context = ExecutionContext("s1", project_id="proj-7")
    result = await handlers.create_document({"message": "write a plan"}, context)
    assert result["document_id"] != "proj-7"
    assert list(store.docs) == [result["document_id"]]


# --- Clear --------------------------------------------------------------------

async def test_clear_document_skips_model():
    handlers, store, client = _handlers([])
    result = await handlers.clear_document({}, DOC_CTX)
    assert result == {
        "response": "Document has been cleared.",
        "document_updated": True,
        "document_id": "doc-1",
    }
    assert store.docs["doc-1"] == CLEARED_DOCUMENT_HTML
    assert client.calls == []


# --- Wiring -------------------------------------------------------------------

def test_tools_follow_schema_order():
    handlers, _, _ = _handlers([])
    assert [t.identifier for t in handlers.tools()] == [s["name"] for s in TOOLS_EDITOR]
