"""Error Hierarchy — every failure the orchestrator can name, with its wire shapes.

Invariants:
    - Each error carries code, category, severity and an HTTP status
    - to_response() is the REST envelope; to_chunk_data() is the error chunk payload
    - INFO/WARNING severities are reported as recoverable, ERROR/CRITICAL are not
    - Messages are written for the client; stack traces and driver text stay in logs

Design Decisions:
    - One NexusError base so the FastAPI handler and the turn engine each need
      a single except clause
    - ErrorContext travels with the error (session, agent, tool, turn) instead
      of being re-derived at the logging site
    - Tool failures become ToolCallRecords at the invocation site and never
      propagate; ReasoningModelError is the only error that ends a turn loop
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from nexus_agents.core.usage_ledger import RoundUsage


class ErrorSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    VALIDATION = "validation"
    PERMISSION = "permission"
    RESOURCE_NOT_FOUND = "resource_not_found"
    CONFIGURATION = "configuration"
    DATABASE = "database"
    EXTERNAL_API = "external_api"
    INTERNAL = "internal"
    TIMEOUT = "timeout"


_RECOVERABLE = frozenset({ErrorSeverity.INFO, ErrorSeverity.WARNING})


@dataclass
class ErrorContext:
    """Where the failure happened; every field optional."""
    session_id: str | None = None
    agent_id: str | None = None
    tool_name: str | None = None
    turn_number: int | None = None
    user_message: str | None = None
    retry_after_ms: int | None = None
    debug_info: dict[str, Any] | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def public_fields(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "agent_id": self.agent_id,
            "tool_name": self.tool_name,
            "turn_number": self.turn_number,
            "retry_after_ms": self.retry_after_ms,
        }


class NexusError(Exception):
    """Root of the hierarchy."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.http_status = http_status
        self.context = context if context is not None else ErrorContext()

    @property
    def recoverable(self) -> bool:
        return self.severity in _RECOVERABLE

    def to_response(self) -> dict:
        return {"error": {
            "code": self.code,
            "message": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "timestamp": self.context.timestamp.isoformat(),
            "context": self.context.public_fields(),
        }}

    def to_chunk_data(self) -> dict:
        return {
            "code": self.code,
            "message": self.context.user_message or self.message,
            "severity": self.severity.value,
            "recoverable": self.recoverable,
        }


# ─── Request Errors (4xx) ──────────────────────────────────────

class ToolNotFoundError(NexusError):
    """Requested tool is not registered."""
    def __init__(self, tool_name: str, context: ErrorContext | None = None):
        super().__init__(
            f"Tool '{tool_name}' does not exist.",
            "UNKNOWN_TOOL", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
        )
        self.tool_name = tool_name


class ToolPermissionError(NexusError):
    """Tool requires elevated access the context does not grant."""
    def __init__(self, tool_name: str, context: ErrorContext | None = None):
        super().__init__(
            f"Elevated access required for tool '{tool_name}'.",
            "TOOL_PERMISSION_DENIED", ErrorCategory.PERMISSION,
            ErrorSeverity.ERROR, context, 403,
        )
        self.tool_name = tool_name


class ToolTimeoutError(NexusError):
    """Tool handler exceeded its time box."""
    def __init__(
        self, tool_name: str, timeout_seconds: float,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            f"Tool '{tool_name}' timed out after {timeout_seconds:g}s.",
            "TOOL_TIMEOUT", ErrorCategory.TIMEOUT,
            ErrorSeverity.ERROR, context, 504,
        )
        self.tool_name = tool_name


class DocumentRequiredError(NexusError):
    """Editor tool called without a target document."""
    def __init__(self, tool_name: str, context: ErrorContext | None = None):
        super().__init__(
            f"Tool '{tool_name}' requires a document_id.",
            "DOCUMENT_REQUIRED", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )


class ResourceNotFoundError(NexusError):
    """Requested resource does not exist."""
    def __init__(
        self, resource_type: str, resource_id: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            "RESOURCE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
        )


class AgentAccessDeniedError(NexusError):
    """Premium agent invoked without premium context."""
    def __init__(self, agent_id: str, context: ErrorContext | None = None):
        super().__init__(
            f"Agent '{agent_id}' requires premium access.",
            "AGENT_ACCESS_DENIED", ErrorCategory.PERMISSION,
            ErrorSeverity.ERROR, context, 403,
        )


class ClassificationError(NexusError):
    """Intent classifier returned something outside the closed set.

    usage is set when the model call itself succeeded, so callers can still
    account for the tokens it spent.
    """
    def __init__(
        self, message: str, context: ErrorContext | None = None,
        usage: "RoundUsage | None" = None,
    ):
        super().__init__(
            message, "CLASSIFICATION_FAILED", ErrorCategory.VALIDATION,
            ErrorSeverity.WARNING, context, 502,
        )
        self.usage = usage


# ─── Startup Wiring Errors ──────────────────────────────────────

class DuplicateToolError(NexusError):
    """Two tools registered under the same identifier."""
    def __init__(self, identifier: str):
        super().__init__(
            f"Tool '{identifier}' is already registered",
            "DUPLICATE_TOOL", ErrorCategory.CONFIGURATION,
            ErrorSeverity.CRITICAL, None, 500,
        )
        self.identifier = identifier


class RegistryFrozenError(NexusError):
    """Registration attempted after startup."""
    def __init__(self, identifier: str):
        super().__init__(
            f"Registry is frozen; cannot register '{identifier}'",
            "REGISTRY_FROZEN", ErrorCategory.CONFIGURATION,
            ErrorSeverity.CRITICAL, None, 500,
        )


# ─── Infrastructure and Runtime Errors (5xx) ────────────────────

class DatabaseError(NexusError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation


class ReasoningModelError(NexusError):
    """Reasoning model call failed; unrecoverable for the current request."""
    def __init__(
        self,
        message: str,
        code: str = "REASONING_MODEL_ERROR",
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message, code, ErrorCategory.EXTERNAL_API,
            ErrorSeverity.CRITICAL, context, 503,
        )


class AnthropicAPIError(ReasoningModelError):
    """Anthropic API call failed."""
    def __init__(
        self,
        message: str,
        api_error_type: str,
        retry_after_ms: int | None = None,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.retry_after_ms = retry_after_ms
        super().__init__(
            f"Anthropic API error ({api_error_type}): {message}",
            "ANTHROPIC_API_ERROR", ctx,
        )
        self.api_error_type = api_error_type


class InternalError(NexusError):
    """Unexpected bug; message is safe to show, details stay in the logs."""
    def __init__(
        self, message: str = "An unexpected error occurred",
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message, "INTERNAL_ERROR", ErrorCategory.INTERNAL,
            ErrorSeverity.CRITICAL, context, 500,
        )


class ToolExecutionError(NexusError):
    """A tool call recorded status=error where the caller needs it to succeed."""
    def __init__(self, tool_name: str, message: str, context: ErrorContext | None = None):
        super().__init__(
            f"Tool '{tool_name}' failed: {message}",
            "TOOL_EXECUTION_ERROR", ErrorCategory.INTERNAL,
            ErrorSeverity.ERROR, context, 500,
        )
        self.tool_name = tool_name
