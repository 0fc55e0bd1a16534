"""Tool Call Records — one immutable record per tool invocation.

Invariants:
    - Exactly one of result / error_message is meaningful, selected by status
    - execution_time_ms >= 0
    - Records are appended for every invocation, success or failure
"""

from dataclasses import dataclass
from typing import Any

from nexus_agents.core.domain_types import ToolCallStatus


@dataclass(frozen=True)
class ToolCallRecord:
    tool_name: str
    call_id: str
    input: dict
    status: ToolCallStatus
    execution_time_ms: int = 0
    result: Any = None
    error_message: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == ToolCallStatus.SUCCESS

    @classmethod
    def success(
        cls, tool_name: str, call_id: str, input: dict,
        result: Any, execution_time_ms: int,
    ) -> "ToolCallRecord":
        return cls(
            tool_name=tool_name, call_id=call_id, input=input,
            status=ToolCallStatus.SUCCESS,
            execution_time_ms=execution_time_ms, result=result,
        )

    @classmethod
    def failure(
        cls, tool_name: str, call_id: str, input: dict,
        error_message: str, execution_time_ms: int = 0,
    ) -> "ToolCallRecord":
        return cls(
            tool_name=tool_name, call_id=call_id, input=input,
            status=ToolCallStatus.ERROR,
            execution_time_ms=execution_time_ms, error_message=error_message,
        )

    def to_dict(self) -> dict:
        data = {
            "tool_name": self.tool_name,
            "call_id": self.call_id,
            "input": self.input,
            "status": self.status.value,
            "execution_time_ms": self.execution_time_ms,
        }
        if self.succeeded:
            data["result"] = self.result
        else:
            data["error_message"] = self.error_message
        return data
