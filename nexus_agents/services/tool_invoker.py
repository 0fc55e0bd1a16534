"""Tool Invoker — error boundary around a single tool invocation.

Invariants:
    - invoke() never raises for tool-side problems: unknown tool, denied
      permission, handler exception and timeout all become status=error records
    - execution_time_ms measured around the handler only
    - asyncio.CancelledError is NOT swallowed: consumer disconnect must be able
      to abandon an in-flight tool call

Design Decisions:
    - Timeout is not a distinct error class for the loop: it is recorded exactly
      like any other handler failure
    - Per-tool timeout overrides the process default when set
"""

import asyncio
import inspect
import logging
import time

from nexus_agents.core.conversation import ToolCallRequest
from nexus_agents.core.errors import (
    NexusError, ToolPermissionError, ToolTimeoutError,
)
from nexus_agents.core.execution_context import ExecutionContext
from nexus_agents.core.tool_records import ToolCallRecord
from nexus_agents.services.tool_registry import CapabilityRegistry

logger = logging.getLogger(__name__)


class ToolInvoker:
    """Resolves, authorizes, and time-boxes tool handlers."""

    def __init__(
        self, registry: CapabilityRegistry, default_timeout_seconds: float = 60.0,
    ):
        self.registry = registry
        self.default_timeout_seconds = default_timeout_seconds

    async def invoke(
        self, request: ToolCallRequest, context: ExecutionContext,
    ) -> ToolCallRecord:
        name, call_id, tool_input = request.tool_name, request.call_id, request.input
        tool = self.registry.get(name)
        if tool is None:
            logger.warning("Unknown tool requested", extra={"tool_name": name})
            return ToolCallRecord.failure(
                name, call_id, tool_input, f"Tool '{name}' does not exist.",
            )
        if not self.registry.can_invoke(tool, context):
            logger.warning(
                "Tool permission denied",
                extra={"tool_name": name, "session_id": context.session_id},
            )
            return ToolCallRecord.failure(
                name, call_id, tool_input, ToolPermissionError(name).message,
            )

        timeout = tool.timeout_seconds or self.default_timeout_seconds
        started = time.perf_counter()
        try:
            result = await asyncio.wait_for(
                self._call(tool.handler, tool_input, context), timeout,
            )
        except asyncio.TimeoutError:
            elapsed = _elapsed_ms(started)
            logger.warning(
                "Tool timed out",
                extra={"tool_name": name, "execution_time_ms": elapsed},
            )
            return ToolCallRecord.failure(
                name, call_id, tool_input,
                ToolTimeoutError(name, timeout).message, elapsed,
            )
        except NexusError as e:
            elapsed = _elapsed_ms(started)
            logger.warning(
                "Tool error: %s", e.message,
                extra={"tool_name": name, "error_code": e.code},
            )
            return ToolCallRecord.failure(name, call_id, tool_input, e.message, elapsed)
        except Exception as e:
            elapsed = _elapsed_ms(started)
            logger.error(
                "Unexpected error in tool '%s': %s", name, e,
                extra={"tool_name": name}, exc_info=True,
            )
            return ToolCallRecord.failure(
                name, call_id, tool_input, str(e) or type(e).__name__, elapsed,
            )

        elapsed = _elapsed_ms(started)
        logger.info(
            "Tool executed",
            extra={"tool_name": name, "execution_time_ms": elapsed},
        )
        return ToolCallRecord.success(name, call_id, tool_input, result, elapsed)

    @staticmethod
    async def _call(handler, tool_input: dict, context: ExecutionContext):
        result = handler(tool_input, context)
        if inspect.isawaitable(result):
            result = await result
        return result


def _elapsed_ms(started: float) -> int:
    return max(0, int((time.perf_counter() - started) * 1000))
