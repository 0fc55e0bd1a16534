"""Editor Handlers — create/edit/append/replace/format/clear document tools.

Invariants:
    - Every handler returns {response, document_updated, document_id, ...}
    - Content generation failure never fails the tool: deterministic
      fallback content is written instead (used_fallback=True)
    - Document store failures DO propagate: the invoker records them as
      status=error
    - Missing document (no input id, no context id) raises DocumentRequiredError,
      except create_document which creates one

Design Decisions:
    - Handlers take (input, context) so they can be registered as Tool
      handlers directly
    - Generation usage returned inside the result as informational data;
      it is not part of the turn engine's totals
"""

import logging

from nexus_agents.core.domain_types import Intent
from nexus_agents.core.errors import DocumentRequiredError, ResourceNotFoundError
from nexus_agents.core.execution_context import ExecutionContext
from nexus_agents.core.format_messages import (
    CLEARED_DOCUMENT_HTML, editor_confirmation, fallback_content, preview,
)
from nexus_agents.core.repository_protocols import DocumentStore
from nexus_agents.core.usage_ledger import RoundUsage
from nexus_agents.services.content_generator import ContentGenerator
from nexus_agents.services.define_editor_tools import TOOLS_EDITOR
from nexus_agents.services.tool_registry import Tool

logger = logging.getLogger(__name__)


def _usage_dict(usage: RoundUsage | None) -> dict | None:
    if usage is None:
        return None
    return {
        "input_tokens": usage.input_tokens,
        "output_tokens": usage.output_tokens,
        "model": usage.model,
    }


class EditorHandlers:
    """Document mutation tool handlers."""

    def __init__(self, documents: DocumentStore, generator: ContentGenerator):
        self.documents = documents
        self.generator = generator

    # -- Tool handlers ---------------------------------------------------------

    async def create_document(self, input_data: dict, context: ExecutionContext) -> dict:
        document_id = self._document_id(input_data, context)
        if document_id is None:
            document_id = await self.documents.create(
                input_data.get("title") or "Untitled",
            )
            logger.info(
                "Document created",
                extra={"session_id": context.session_id, "tool_name": "create_document"},
            )
        return await self._generate_into(Intent.CREATE_DOCUMENT, document_id, input_data)

    async def edit_document(self, input_data: dict, context: ExecutionContext) -> dict:
        return await self._generate_into(
            Intent.EDIT_DOCUMENT,
            self._require_document(input_data, context, "edit_document"),
            input_data,
        )

    async def append_content(self, input_data: dict, context: ExecutionContext) -> dict:
        return await self._generate_into(
            Intent.APPEND_CONTENT,
            self._require_document(input_data, context, "append_content"),
            input_data,
        )

    async def replace_content(self, input_data: dict, context: ExecutionContext) -> dict:
        return await self._generate_into(
            Intent.REPLACE_CONTENT,
            self._require_document(input_data, context, "replace_content"),
            input_data,
        )

    async def format_content(self, input_data: dict, context: ExecutionContext) -> dict:
        return await self._generate_into(
            Intent.FORMAT_CONTENT,
            self._require_document(input_data, context, "format_content"),
            input_data,
        )

    async def clear_document(self, input_data: dict, context: ExecutionContext) -> dict:
        document_id = self._require_document(input_data, context, "clear_document")
        await self.documents.update_content(document_id, CLEARED_DOCUMENT_HTML)
        return {
            "response": editor_confirmation(Intent.CLEAR_DOCUMENT),
            "document_updated": True,
            "document_id": document_id,
        }

    # -- Wiring ----------------------------------------------------------------

    def tools(self) -> list[Tool]:
        """Tool records for every editor schema, in schema order."""
        return [
            Tool.from_schema(schema, getattr(self, schema["name"]))
            for schema in TOOLS_EDITOR
        ]

    # -- Internals -------------------------------------------------------------

    @staticmethod
    def _document_id(input_data: dict, context: ExecutionContext) -> str | None:
        value = input_data.get("document_id") or context.document_id
        return str(value) if value else None

    def _require_document(
        self, input_data: dict, context: ExecutionContext, tool_name: str,
    ) -> str:
        document_id = self._document_id(input_data, context)
        if document_id is None:
            raise DocumentRequiredError(tool_name)
        return document_id

    async def _generate_into(
        self, intent: Intent, document_id: str, input_data: dict,
    ) -> dict:
        current = await self.documents.get_content(document_id)
        if current is None:
            raise ResourceNotFoundError("Document", document_id)

        message = input_data.get("message", "")
        usage = None
        used_fallback = False
        try:
            generated = await self.generator.generate(intent, message, current)
            content, usage = generated.content, generated.usage
        except Exception as e:
            logger.warning(
                "Content generation failed, using fallback: %s", e,
                extra={"tool_name": intent.value},
            )
            content = fallback_content(intent, message, current)
            used_fallback = True

        await self.documents.update_content(document_id, content)
        return {
            "response": editor_confirmation(intent),
            "document_updated": True,
            "document_id": document_id,
            "content_preview": preview(content, 200),
            "content_length": len(content),
            "used_fallback": used_fallback,
            "generation_usage": _usage_dict(usage),
        }
