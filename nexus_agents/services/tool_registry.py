"""Capability Registry — ordered identifier -> Tool mapping shared across requests.

Invariants:
    - Identifiers are unique: a second register() of the same id raises
      DuplicateToolError (no silent overwrite of the old handler)
    - list_schemas() returns schemas in registration order, as copies
    - After freeze() the registry is read-only; concurrent requests only read
    - can_invoke() fails closed for elevated tools on missing/ambiguous context

Design Decisions:
    - Explicit registration, no auto-discovery: every tool visible at its
      define_*_tools.py + handler wiring site
    - Stable schema order: the list is presented verbatim to the reasoning
      model, so it must not vary between requests (prompt caching, debugging)
    - Duplicate id is a hard construction-time error rather than log-and-overwrite
"""

import copy
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable

from nexus_agents.core.errors import (
    DuplicateToolError, RegistryFrozenError, ToolNotFoundError,
)
from nexus_agents.core.execution_context import ExecutionContext

logger = logging.getLogger(__name__)

ToolHandler = Callable[[dict, ExecutionContext], Awaitable[Any]]


@dataclass(frozen=True)
class Tool:
    """A named, schema-described capability the reasoning model may request."""
    identifier: str
    schema: dict
    handler: ToolHandler
    requires_elevated_access: bool = False
    timeout_seconds: float | None = None

    @classmethod
    def from_schema(
        cls, schema: dict, handler: ToolHandler, **kwargs: Any,
    ) -> "Tool":
        """Identifier taken from the schema name (the name the model will use)."""
        return cls(identifier=schema["name"], schema=schema, handler=handler, **kwargs)


class CapabilityRegistry:
    """Read-mostly tool registry. Populate at startup, then freeze()."""

    def __init__(self, tools: Iterable[Tool] = ()):
        self._tools: dict[str, Tool] = {}
        self._frozen = False
        self.register_all(tools)

    def register(self, tool: Tool) -> None:
        if self._frozen:
            raise RegistryFrozenError(tool.identifier)
        if tool.identifier in self._tools:
            logger.error(
                "Duplicate tool registration rejected",
                extra={"tool_name": tool.identifier},
            )
            raise DuplicateToolError(tool.identifier)
        self._tools[tool.identifier] = tool

    def register_all(self, tools: Iterable[Tool]) -> None:
        for tool in tools:
            self.register(tool)

    def freeze(self) -> "CapabilityRegistry":
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def resolve(self, identifier: str) -> Tool:
        tool = self._tools.get(identifier)
        if tool is None:
            raise ToolNotFoundError(identifier)
        return tool

    def get(self, identifier: str) -> Tool | None:
        return self._tools.get(identifier)

    def list_schemas(self) -> list[dict]:
        return [copy.deepcopy(t.schema) for t in self._tools.values()]

    def identifiers(self) -> list[str]:
        return list(self._tools)

    def can_invoke(self, tool: Tool, context: ExecutionContext | None) -> bool:
        if not tool.requires_elevated_access:
            return True
        if context is None:
            return False
        return context.is_premium

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._tools
