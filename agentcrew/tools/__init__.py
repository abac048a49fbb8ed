"""Tool registry, capability sets and invocation records."""

from .invocation import ToolInvocation, ToolInvocationRecord
from .registry import (
    CapabilitySet,
    DelegatingAgent,
    NativeImplementation,
    Tool,
    ToolErrorKind,
    ToolRegistry,
    ToolResult,
    tool_from_langchain,
)

__all__ = [
    "CapabilitySet",
    "DelegatingAgent",
    "NativeImplementation",
    "Tool",
    "ToolErrorKind",
    "ToolInvocation",
    "ToolInvocationRecord",
    "ToolRegistry",
    "ToolResult",
    "tool_from_langchain",
]
