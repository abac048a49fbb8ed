"""Invocation interceptor interface and the middleware chain that runs them."""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Union

from agentcrew.tools.invocation import ToolInvocation
from agentcrew.tools.registry import ToolErrorKind, ToolResult

LOGGER = logging.getLogger(__name__)


class DecisionAction(str, Enum):
    PROCEED = "proceed"
    OVERRIDE = "override"
    ABORT = "abort"


@dataclass(frozen=True)
class InterceptDecision:
    """What a ``before`` hook wants to happen to the call."""

    action: DecisionAction
    result: Optional[ToolResult] = None
    reason: str = ""

    @classmethod
    def proceed(cls) -> "InterceptDecision":
        return cls(action=DecisionAction.PROCEED)

    @classmethod
    def override(cls, result: Any) -> "InterceptDecision":
        """Skip the tool and answer with ``result`` instead."""
        if not isinstance(result, ToolResult):
            result = ToolResult.success(result)
        return cls(action=DecisionAction.OVERRIDE, result=result)

    @classmethod
    def abort(cls, reason: str) -> "InterceptDecision":
        return cls(action=DecisionAction.ABORT, reason=reason)


MaybeAwaitable = Union[Any, Awaitable[Any]]


class InvocationInterceptor:
    """Hook pair invoked around every tool dispatch.

    Subclasses override either hook; both may be plain or ``async`` methods.
    """

    def before(self, call: ToolInvocation) -> MaybeAwaitable:
        return InterceptDecision.proceed()

    def after(self, call: ToolInvocation, result: ToolResult) -> MaybeAwaitable:
        return result


async def _resolve(value: MaybeAwaitable) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


ToolHandler = Callable[[ToolInvocation], Awaitable[ToolResult]]


class InterceptorChain:
    """Ordered list of interceptors applied as middleware.

    ``before`` hooks run first to last and the first non-proceed decision stops
    the descent. ``after`` hooks of every interceptor that was entered then run
    last to first on the produced result.
    """

    def __init__(self, interceptors: Optional[Iterable[InvocationInterceptor]] = None) -> None:
        self._interceptors: List[InvocationInterceptor] = list(interceptors or [])

    @property
    def interceptors(self) -> tuple[InvocationInterceptor, ...]:
        return tuple(self._interceptors)

    def __len__(self) -> int:
        return len(self._interceptors)

    async def run(self, call: ToolInvocation, handler: ToolHandler) -> ToolResult:
        entered: List[InvocationInterceptor] = []
        result: Optional[ToolResult] = None

        for interceptor in self._interceptors:
            decision = await _resolve(interceptor.before(call))
            entered.append(interceptor)

            if decision is None or decision.action == DecisionAction.PROCEED:
                continue

            if decision.action == DecisionAction.OVERRIDE:
                LOGGER.debug(f"{type(interceptor).__name__} overrode {call.tool_name}")
                result = decision.result
            else:
                LOGGER.info(f"{type(interceptor).__name__} aborted {call.tool_name}: {decision.reason}")
                result = ToolResult.failure(decision.reason or "aborted by interceptor", ToolErrorKind.ABORTED)
            break

        if result is None:
            result = await handler(call)

        for interceptor in reversed(entered):
            transformed = await _resolve(interceptor.after(call, result))
            if transformed is not None:
                result = transformed if isinstance(transformed, ToolResult) else ToolResult.success(transformed)

        return result


__all__ = [
    "DecisionAction",
    "InterceptDecision",
    "InvocationInterceptor",
    "InterceptorChain",
]
