"""Tool invocation records passed through the interceptor chain."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional

from .registry import Tool, ToolResult


@dataclass(frozen=True)
class ToolInvocation:
    """A single tool call requested by an agent.

    ``tool`` is None when the name is outside the agent's capability set.
    """

    call_id: str
    agent_id: str
    tool_name: str
    arguments: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    tool: Optional[Tool] = None
    capability_set: str = ""

    @property
    def description(self) -> str:
        return self.tool.description if self.tool else ""


@dataclass(frozen=True)
class ToolInvocationRecord:
    """Invocation plus the result the agent saw."""

    invocation: ToolInvocation
    result: ToolResult

    @property
    def ok(self) -> bool:
        return self.result.ok


__all__ = ["ToolInvocation", "ToolInvocationRecord"]
