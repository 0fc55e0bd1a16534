"""Editor Tool Schemas — Anthropic Tool Use format for document mutation tools.

Invariants:
    - One tool per non-chat Intent; tool name == intent value
    - Every tool takes the user's instruction as `message`
    - document_id optional in schema: handlers fall back to the context's
      document, and fail (except create_document) when neither is known

Design Decisions:
    - Tool name equal to the intent label: the router's intent -> tool
      mapping is an identity for editor intents, still written out explicitly
"""

_DOCUMENT_ID = {
    "type": "string",
    "description": "Target document id. Defaults to the current document.",
}
_MESSAGE = {
    "type": "string",
    "description": "The user's instruction, verbatim.",
}


def _editor_tool(name: str, description: str, **extra_props) -> dict:
    return {
        "name": name,
        "description": description,
        "input_schema": {
            "type": "object",
            "properties": {
                "message": _MESSAGE,
                "document_id": _DOCUMENT_ID,
                **extra_props,
            },
            "required": ["message"],
        },
    }


TOOLS_EDITOR = [
    _editor_tool(
        "create_document",
        "Creates a new document (or fills an empty one) with generated HTML "
        "content based on the user's request.",
        title={"type": "string", "description": "Title for a new document."},
    ),
    _editor_tool(
        "edit_document",
        "Modifies and improves the existing document content.",
    ),
    _editor_tool(
        "append_content",
        "Adds new content to the document while preserving existing content.",
    ),
    _editor_tool(
        "replace_content",
        "Replaces the entire document content with newly generated content.",
    ),
    _editor_tool(
        "format_content",
        "Reformats the existing content (headings, lists, emphasis) "
        "without changing its meaning.",
    ),
    {
        "name": "clear_document",
        "description": "Clears all content from the document.",
        "input_schema": {
            "type": "object",
            "properties": {"document_id": _DOCUMENT_ID},
            "required": [],
        },
    },
]
