"""Exception hierarchy for AgentCrew sessions, tools and agents."""

from __future__ import annotations

from typing import Iterable, Optional


class AgentCrewError(Exception):
    """Base exception for AgentCrew errors."""

    def __init__(self, message: str, user_message: Optional[str] = None):
        super().__init__(message)
        self.user_message = user_message or message


# ========== Tool errors ==========


class UnknownTool(AgentCrewError):
    """A capability set referenced tool names missing from the registry."""

    def __init__(self, names: Iterable[str]):
        self.names = sorted(set(names))
        super().__init__(f"Unknown tool(s): {', '.join(self.names)}")


class DuplicateToolError(AgentCrewError):
    """Two tools with the same name were registered."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Duplicate tool name: {name}")


class CapabilityViolation(AgentCrewError):
    """An agent requested a tool outside its capability set."""

    def __init__(self, agent_id: str, tool_name: str, capability_set: str = ""):
        self.agent_id = agent_id
        self.tool_name = tool_name
        self.capability_set = capability_set
        super().__init__(
            f"Agent '{agent_id}' is not allowed to call tool '{tool_name}'"
            + (f" (capability set: {capability_set})" if capability_set else ""),
            user_message=f"Tool not available: {tool_name}",
        )


class ToolInvocationError(AgentCrewError):
    """The external tool call failed (provider error, timeout)."""

    def __init__(self, tool_name: str, message: str, kind: str = "tool_error"):
        self.tool_name = tool_name
        self.kind = kind
        super().__init__(f"Tool '{tool_name}' failed: {message}")


# ========== Agent errors ==========


class FatalAgentError(AgentCrewError):
    """Agent backend unreachable or returned unusable output."""

    def __init__(self, agent_id: str, message: str):
        self.agent_id = agent_id
        super().__init__(f"Agent '{agent_id}' failed: {message}")


# ========== Session errors ==========


class SessionStateError(AgentCrewError):
    """Operation not valid in the current session state."""


class SessionClosedError(SessionStateError):
    """The session already completed or aborted."""


class SessionBusyError(SessionStateError):
    """The session is already being driven by another run."""


class ConfigurationError(AgentCrewError):
    """Invalid crew or tool configuration."""


__all__ = [
    "AgentCrewError",
    "UnknownTool",
    "DuplicateToolError",
    "CapabilityViolation",
    "ToolInvocationError",
    "FatalAgentError",
    "SessionStateError",
    "SessionClosedError",
    "SessionBusyError",
    "ConfigurationError",
]
