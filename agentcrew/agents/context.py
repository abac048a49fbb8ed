"""Per-agent execution contexts, per-turn context and cancellation."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Awaitable, Optional, Tuple, TypeVar

from agentcrew.tools.registry import CapabilitySet

from .backend import AgentBackend

if TYPE_CHECKING:
    from .dispatcher import ToolDispatcher

T = TypeVar("T")


@dataclass(frozen=True, eq=False)
class ExecutionContext:
    """Backend and tool slice owned by exactly one agent."""

    backend: AgentBackend
    capabilities: CapabilitySet
    max_tool_rounds: int = 10

    def __post_init__(self) -> None:
        if self.max_tool_rounds < 1:
            raise ValueError("max_tool_rounds must be >= 1")


class TurnCancelled(asyncio.CancelledError):
    """Raised at an await point once the session was cancelled."""

    def __init__(self, reason: str = "cancelled"):
        super().__init__(reason)
        self.reason = reason


class CancellationToken:
    """Session-level cancellation signal observed at backend and tool awaits."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: Optional[str] = None

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise TurnCancelled(self._reason or "cancelled")

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless cancellation fires first."""
        self.raise_if_cancelled()

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if task in done:
            return task.result()

        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        raise TurnCancelled(self._reason or "cancelled")


@dataclass(frozen=True)
class TurnContext:
    """What an agent needs while acting: dispatcher, cancellation and call stack."""

    dispatcher: "ToolDispatcher"
    cancellation: CancellationToken
    call_stack: Tuple[str, ...] = ()

    def nested(self, agent_id: str) -> "TurnContext":
        return replace(self, call_stack=(*self.call_stack, agent_id))


__all__ = [
    "CancellationToken",
    "ExecutionContext",
    "TurnCancelled",
    "TurnContext",
]
