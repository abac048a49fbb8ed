"""Abstract language model backend used by agents."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Protocol, Sequence, runtime_checkable

from agentcrew.orchestration.history import Message


def new_call_id() -> str:
    return f"call_{uuid.uuid4().hex[:12]}"


@dataclass(frozen=True)
class ToolCallRequest:
    """A tool call the backend wants executed."""

    name: str
    arguments: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    call_id: str = field(default_factory=new_call_id)


@dataclass(frozen=True)
class BackendResponse:
    content: str = ""
    tool_calls: Sequence[ToolCallRequest] = ()


@dataclass(frozen=True)
class GenerationRequest:
    """Everything the backend sees for one generation step."""

    agent_id: str
    instructions: str
    messages: Sequence[Message]
    tools: Sequence[Dict[str, Any]] = ()


@runtime_checkable
class AgentBackend(Protocol):
    async def generate(self, request: GenerationRequest) -> BackendResponse: ...


__all__ = [
    "AgentBackend",
    "BackendResponse",
    "GenerationRequest",
    "ToolCallRequest",
    "new_call_id",
]
