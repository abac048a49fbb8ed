"""Tool descriptors, the immutable tool registry and capability sets."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Union

from agentcrew.errors import DuplicateToolError, UnknownTool

ToolFunction = Callable[[Mapping[str, Any]], Union[Any, Awaitable[Any]]]


@dataclass(frozen=True, slots=True)
class NativeImplementation:
    """Tool backed by a plain callable (sync or async)."""

    fn: ToolFunction


@dataclass(frozen=True, slots=True)
class DelegatingAgent:
    """Tool that runs another agent and returns its final reply."""

    agent_id: str


ToolImplementation = Union[NativeImplementation, DelegatingAgent]

DELEGATION_PARAMETERS: Mapping[str, Any] = MappingProxyType({
    "type": "object",
    "properties": {
        "task": {
            "type": "string",
            "description": "Detailed task for the agent. It cannot see the current conversation.",
        },
    },
    "required": ["task"],
})


@dataclass(frozen=True)
class Tool:
    """Describes one callable action exposed to agents by name."""

    name: str
    description: str
    implementation: ToolImplementation
    parameters: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def native(
        cls,
        name: str,
        description: str,
        fn: ToolFunction,
        parameters: Optional[Mapping[str, Any]] = None,
    ) -> "Tool":
        return cls(
            name=name,
            description=description,
            implementation=NativeImplementation(fn),
            parameters=MappingProxyType(dict(parameters or {})),
        )

    @classmethod
    def for_agent(cls, agent_id: str, description: str, name: Optional[str] = None) -> "Tool":
        """Expose an agent as a tool (``call_<agent_id>`` by default)."""
        return cls(
            name=name or f"call_{agent_id}",
            description=description,
            implementation=DelegatingAgent(agent_id),
            parameters=DELEGATION_PARAMETERS,
        )

    @property
    def is_delegating(self) -> bool:
        return isinstance(self.implementation, DelegatingAgent)

    def get_schema(self) -> Dict[str, Any]:
        """Return OpenAI-compatible function schema."""
        parameters = dict(self.parameters) or {"type": "object", "properties": {}}
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": parameters,
            },
        }


class ToolErrorKind(str, Enum):
    CAPABILITY_VIOLATION = "capability_violation"
    TOOL_ERROR = "tool_error"
    TIMEOUT = "timeout"
    ABORTED = "aborted"


@dataclass(frozen=True, slots=True)
class ToolResult:
    """Outcome of one tool invocation, successful or not."""

    ok: bool
    value: Any = None
    error: Optional[str] = None
    error_kind: Optional[ToolErrorKind] = None

    @classmethod
    def success(cls, value: Any) -> "ToolResult":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str, kind: ToolErrorKind = ToolErrorKind.TOOL_ERROR) -> "ToolResult":
        return cls(ok=False, error=error, error_kind=kind)

    def as_text(self) -> str:
        """Render the result as message content."""
        if not self.ok:
            return f"Error ({self.error_kind.value if self.error_kind else 'error'}): {self.error}"
        if isinstance(self.value, str):
            return self.value
        if self.value is None:
            return ""
        try:
            return json.dumps(self.value, ensure_ascii=False, default=str)
        except (TypeError, ValueError):
            return str(self.value)


class CapabilitySet:
    """A named, fixed subset of the registry assigned to one agent."""

    __slots__ = ("_name", "_tools")

    def __init__(self, name: str, tools: Iterable[Tool] = ()) -> None:
        self._name = name
        self._tools: Mapping[str, Tool] = MappingProxyType({t.name: t for t in tools})

    @property
    def name(self) -> str:
        return self._name

    @property
    def names(self) -> frozenset[str]:
        return frozenset(self._tools)

    def contains(self, tool_name: str) -> bool:
        return tool_name in self._tools

    __contains__ = contains

    def get(self, tool_name: str) -> Optional[Tool]:
        return self._tools.get(tool_name)

    def list_tools(self) -> List[Tool]:
        return list(self._tools.values())

    def describe(self) -> List[Dict[str, Any]]:
        """Schemas for the tools visible to the owning agent."""
        return [tool.get_schema() for tool in self._tools.values()]

    def __len__(self) -> int:
        return len(self._tools)

    def __iter__(self) -> Iterator[Tool]:
        return iter(self._tools.values())

    def __repr__(self) -> str:
        return f"CapabilitySet(name={self._name!r}, tools={sorted(self._tools)!r})"


class ToolRegistry:
    """Read-only catalog of every tool available in a session.

    Built once from the tools supplied by the external provider; safe to share
    across sessions because nothing mutates it after construction.
    """

    __slots__ = ("_tools",)

    def __init__(self, tools: Optional[Iterable[Tool]] = None) -> None:
        catalog: Dict[str, Tool] = {}
        for tool in tools or ():
            if tool.name in catalog:
                raise DuplicateToolError(tool.name)
            catalog[tool.name] = tool
        self._tools: Mapping[str, Tool] = MappingProxyType(catalog)

    @classmethod
    def register(cls, tools: Iterable[Tool]) -> "ToolRegistry":
        return cls(tools)

    def extend(self, tools: Iterable[Tool]) -> "ToolRegistry":
        """Return a new registry with additional tools."""
        return ToolRegistry([*self._tools.values(), *tools])

    def get_tool(self, name: str) -> Tool:
        if name not in self._tools:
            raise UnknownTool([name])
        return self._tools[name]

    def get(self, name: str) -> Optional[Tool]:
        return self._tools.get(name)

    def list_tools(self) -> List[Tool]:
        return list(self._tools.values())

    def list_names(self) -> List[str]:
        return list(self._tools)

    def subset(self, names: Iterable[str], name: str = "default") -> CapabilitySet:
        """Build a capability set from tool names.

        Raises:
            UnknownTool: If any name is absent from the registry
        """
        wanted = list(dict.fromkeys(names))
        missing = [n for n in wanted if n not in self._tools]
        if missing:
            raise UnknownTool(missing)
        return CapabilitySet(name, (self._tools[n] for n in wanted))

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def __iter__(self) -> Iterator[Tool]:
        return iter(self._tools.values())


def tool_from_langchain(tool: Any) -> Tool:
    """Adapt a LangChain ``BaseTool`` into a native Tool."""
    from langchain_core.utils.function_calling import convert_to_openai_tool

    schema = convert_to_openai_tool(tool)["function"]

    async def _invoke(arguments: Mapping[str, Any]) -> Any:
        return await tool.ainvoke(dict(arguments))

    return Tool.native(
        name=tool.name,
        description=tool.description or schema.get("description", ""),
        fn=_invoke,
        parameters=schema.get("parameters", {}),
    )
