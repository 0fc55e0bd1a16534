"""Intent Router — single-turn path: classify, run exactly one tool, persist two messages.

Invariants:
    - route() never raises (CancelledError aside): every failure yields the
      canned apology with intent=general_chat, document_updated=False
    - At most one tool invocation per request, chosen by INTENT_TOOLS
    - general_chat never touches a tool
    - User + assistant message persisted as a pair on every path; the user
      message is never written twice
    - Usage folds every sub-model call made on the path (classifier,
      content generator, chat responder)

Design Decisions:
    - User message persisted first so it survives any later failure
    - A tool call that records status=error is escalated into the fallback:
      the single-turn path has no next turn to feed the error back into
    - Tool runs through the same ToolInvoker as the turn engine (same
      permission check, timeout, and record shape)
"""

import logging
import uuid
from dataclasses import dataclass, field

from nexus_agents.core.conversation import ToolCallRequest
from nexus_agents.core.domain_types import Intent, MessageRole
from nexus_agents.core.errors import (
    ClassificationError, NexusError, ToolExecutionError,
)
from nexus_agents.core.execution_context import ExecutionContext
from nexus_agents.core.format_messages import CANNED_APOLOGY
from nexus_agents.core.repository_protocols import MessageStore
from nexus_agents.core.tool_records import ToolCallRecord
from nexus_agents.core.usage_ledger import (
    PriceTable, RoundUsage, UsageTotals, fold,
)
from nexus_agents.services.chat_responder import ChatResponder
from nexus_agents.services.intent_classifier import IntentClassifier
from nexus_agents.services.tool_invoker import ToolInvoker

logger = logging.getLogger(__name__)

INTENT_TOOLS: dict[Intent, str] = {
    Intent.CREATE_DOCUMENT: "create_document",
    Intent.EDIT_DOCUMENT: "edit_document",
    Intent.APPEND_CONTENT: "append_content",
    Intent.REPLACE_CONTENT: "replace_content",
    Intent.FORMAT_CONTENT: "format_content",
    Intent.CLEAR_DOCUMENT: "clear_document",
}


@dataclass(frozen=True)
class IntentRequest:
    message: str
    context: ExecutionContext
    document_id: str | None = None

    @property
    def target_document(self) -> str | None:
        return self.document_id or self.context.document_id


@dataclass(frozen=True)
class IntentResponse:
    response: str
    intent: Intent
    document_updated: bool
    document_id: str | None = None
    tool_call: ToolCallRecord | None = None
    usage: UsageTotals = field(default_factory=UsageTotals.empty)
    error_code: str | None = None

    def to_dict(self) -> dict:
        return {
            "response": self.response,
            "intent": self.intent.value,
            "document_updated": self.document_updated,
            "document_id": self.document_id,
            "tool_call": self.tool_call.to_dict() if self.tool_call else None,
            "usage": self.usage.to_dict(),
            "error_code": self.error_code,
        }


class _Progress:
    """What the request has done so far (read by the fallback)."""

    def __init__(self):
        self.user_saved = False
        self.usage = UsageTotals.empty()


class IntentRouter:
    def __init__(
        self,
        classifier: IntentClassifier,
        invoker: ToolInvoker,
        chat: ChatResponder,
        messages: MessageStore,
        prices: PriceTable,
    ):
        self.classifier = classifier
        self.invoker = invoker
        self.chat = chat
        self.messages = messages
        self.prices = prices

    async def route(self, request: IntentRequest) -> IntentResponse:
        progress = _Progress()
        try:
            return await self._route(request, progress)
        except Exception as e:
            code = e.code if isinstance(e, NexusError) else "INTERNAL_ERROR"
            logger.error(
                "Intent routing failed, using fallback: %s", e,
                extra={"session_id": request.context.session_id, "error_code": code},
                exc_info=not isinstance(e, NexusError),
            )
            await self._persist_fallback(request, progress)
            return IntentResponse(
                response=CANNED_APOLOGY,
                intent=Intent.GENERAL_CHAT,
                document_updated=False,
                document_id=request.target_document,
                usage=progress.usage,
                error_code=code,
            )

    async def _route(self, request: IntentRequest, progress: _Progress) -> IntentResponse:
        session_id = request.context.session_id
        await self.messages.append_message(
            session_id, MessageRole.USER.value, request.message,
            {"document_id": request.target_document},
        )
        progress.user_saved = True

        try:
            classification = await self.classifier.classify(request.message)
        except ClassificationError as e:
            if e.usage is not None:
                progress.usage = fold(progress.usage, e.usage, self.prices)
            raise
        progress.usage = fold(progress.usage, classification.usage, self.prices)
        intent = classification.intent

        record = None
        if intent == Intent.GENERAL_CHAT:
            text, usage = await self.chat.answer(request.message)
            progress.usage = fold(progress.usage, usage, self.prices)
            document_updated = False
            document_id = request.target_document
        else:
            record = await self._run_tool(request, intent, progress)
            result = record.result if isinstance(record.result, dict) else {}
            text = result.get("response", "")
            document_updated = bool(result.get("document_updated", False))
            document_id = result.get("document_id") or request.target_document

        await self.messages.append_message(
            session_id, MessageRole.ASSISTANT.value, text,
            {
                "intent": intent.value,
                "confidence": classification.confidence,
                "document_updated": document_updated,
                "document_id": document_id,
                "tool_calls": [record.to_dict()] if record else [],
                "token_usage": progress.usage.to_dict(),
            },
        )
        logger.info(
            "Intent routed",
            extra={"session_id": session_id, "intent": intent.value},
        )
        return IntentResponse(
            response=text,
            intent=intent,
            document_updated=document_updated,
            document_id=document_id,
            tool_call=record,
            usage=progress.usage,
        )

    async def _run_tool(
        self, request: IntentRequest, intent: Intent, progress: _Progress,
    ) -> ToolCallRecord:
        tool_name = INTENT_TOOLS[intent]
        tool_input = {"message": request.message}
        if request.target_document:
            tool_input["document_id"] = request.target_document
        record = await self.invoker.invoke(
            ToolCallRequest(f"route-{uuid.uuid4().hex[:12]}", tool_name, tool_input),
            request.context,
        )
        if not record.succeeded:
            raise ToolExecutionError(tool_name, record.error_message or "unknown error")

        generation = (record.result or {}).get("generation_usage")
        if isinstance(generation, dict):
            progress.usage = fold(progress.usage, RoundUsage(
                int(generation.get("input_tokens", 0)),
                int(generation.get("output_tokens", 0)),
                generation.get("model", ""),
            ), self.prices)
        return record

    async def _persist_fallback(self, request: IntentRequest, progress: _Progress) -> None:
        """Best-effort: user message (if not yet saved) + apology."""
        session_id = request.context.session_id
        try:
            if not progress.user_saved:
                await self.messages.append_message(
                    session_id, MessageRole.USER.value, request.message,
                    {"document_id": request.target_document},
                )
                progress.user_saved = True
            await self.messages.append_message(
                session_id, MessageRole.ASSISTANT.value, CANNED_APOLOGY,
                {
                    "intent": Intent.GENERAL_CHAT.value,
                    "document_updated": False,
                    "fallback": True,
                    "token_usage": progress.usage.to_dict(),
                },
            )
        except Exception as e:
            logger.error(
                "Failed to persist fallback messages: %s", e,
                extra={"session_id": session_id},
            )


# Singleton (initialized on startup)
_router: IntentRouter | None = None


def init_intent_router(router: IntentRouter) -> IntentRouter:
    global _router
    _router = router
    return router


def get_intent_router() -> IntentRouter:
    if _router is None:
        raise RuntimeError("Intent router not initialized")
    return _router
