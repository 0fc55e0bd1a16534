"""Format Messages — pure text builders for tool results, previews, and fallbacks.

Invariants:
    - All functions are pure and deterministic
    - format_tool_result never raises on unserializable values (falls back to str)
    - fallback_content always returns non-empty HTML

Design Decisions:
    - Fallback content keeps the editor usable while the content model is down:
      append preserves the existing content, clear returns the placeholder
"""

import html
import json
from typing import Any

from nexus_agents.core.domain_types import Intent

CLEARED_DOCUMENT_HTML = "<p>Document cleared.</p>"
CANNED_APOLOGY = (
    "I apologize, but I encountered an error processing your request. "
    "Please try again."
)

_ACTION_DESCRIPTIONS = {
    Intent.CREATE_DOCUMENT: "created content for",
    Intent.EDIT_DOCUMENT: "updated",
    Intent.APPEND_CONTENT: "added content to",
    Intent.REPLACE_CONTENT: "replaced the content of",
    Intent.FORMAT_CONTENT: "formatted",
    Intent.CLEAR_DOCUMENT: "cleared",
}


def format_tool_result(result: Any) -> str:
    """Serialize a tool result for the reasoning model."""
    if isinstance(result, str):
        return result
    return json.dumps(result, ensure_ascii=False, default=str)


def format_tool_error(message: str) -> str:
    return json.dumps({"error": message}, ensure_ascii=False)


def preview(value: Any, limit: int = 300) -> str:
    text = value if isinstance(value, str) else format_tool_result(value)
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def action_description(intent: Intent) -> str:
    return _ACTION_DESCRIPTIONS.get(intent, "updated")


def editor_confirmation(intent: Intent) -> str:
    """Assistant reply after an editor tool succeeded."""
    if intent == Intent.CLEAR_DOCUMENT:
        return "Document has been cleared."
    return f"I've {action_description(intent)} the document as requested."


def fallback_content(intent: Intent, message: str, current_content: str) -> str:
    """Deterministic document content when the content model is unavailable."""
    safe = html.escape(message)
    if intent == Intent.APPEND_CONTENT:
        addition = f"<p><strong>Added content:</strong> {safe}</p>"
        lowered = message.lower()
        if "top" in lowered or "beginning" in lowered:
            return addition + current_content
        return current_content + addition
    if intent == Intent.CREATE_DOCUMENT:
        return (
            "<h1>New Document</h1>"
            f"<p>This document was created based on your request: \"{safe}\"</p>"
            "<p>AI services are temporarily unavailable, but your document "
            "has been initialized and is ready for editing.</p>"
        )
    if intent == Intent.EDIT_DOCUMENT:
        return current_content + (
            f"<hr><p><em>Note: editing was requested (\"{safe}\") but AI "
            "services are temporarily unavailable. Please try again in a "
            "moment.</em></p>"
        )
    if intent == Intent.CLEAR_DOCUMENT:
        return CLEARED_DOCUMENT_HTML
    return current_content + f"<p><strong>Update:</strong> {safe}</p>"
