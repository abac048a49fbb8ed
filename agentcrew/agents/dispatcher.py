"""Tool dispatcher: capability check, interceptor chain, then invocation.

Delegating tools run another agent on a fresh history. The delegation call
stack is tracked on the TurnContext so cycles and runaway depth fail the call
instead of recursing.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Iterable, Mapping, Optional, Union

from agentcrew.errors import CapabilityViolation, FatalAgentError, ToolInvocationError
from agentcrew.interceptors.base import InterceptorChain, InvocationInterceptor
from agentcrew.orchestration.history import ConversationHistory, Message
from agentcrew.tools.invocation import ToolInvocation, ToolInvocationRecord
from agentcrew.tools.registry import DelegatingAgent, NativeImplementation, ToolErrorKind, ToolResult
from agentcrew.utils.logging_utils import log_error, log_tool_call, log_tool_result

from .backend import ToolCallRequest
from .context import TurnContext

if TYPE_CHECKING:
    from .agent import Agent

LOGGER = logging.getLogger(__name__)

MAX_DELEGATION_DEPTH = 5


class ToolDispatcher:
    """Routes tool calls requested by agents.

    Args:
        interceptors: Chain (or iterable of interceptors) wrapped around each call
        agents: Directory of agents reachable through delegating tools
        tool_timeout: Seconds before a native tool call fails with ``timeout``.
            Only the call is abandoned: a sync tool keeps running in its worker
            thread until it returns, so side effects may still happen.
        max_delegation_depth: Maximum nested delegations below the acting agent
        log_result_max_length: Preview length for result logging
    """

    def __init__(
        self,
        interceptors: Union[InterceptorChain, Iterable[InvocationInterceptor], None] = None,
        agents: Optional[Mapping[str, "Agent"]] = None,
        tool_timeout: Optional[float] = None,
        max_delegation_depth: int = MAX_DELEGATION_DEPTH,
        log_result_max_length: int = 500,
    ):
        if isinstance(interceptors, InterceptorChain):
            self.interceptors = interceptors
        else:
            self.interceptors = InterceptorChain(interceptors)
        self._agents = dict(agents or {})
        self.tool_timeout = tool_timeout
        self.max_delegation_depth = max_delegation_depth
        self.log_result_max_length = log_result_max_length

    def get_agent(self, agent_id: str) -> Optional["Agent"]:
        return self._agents.get(agent_id)

    async def dispatch(self, agent: "Agent", request: ToolCallRequest, context: TurnContext) -> ToolInvocationRecord:
        """Execute one requested call on behalf of ``agent``. Never raises for tool failures."""
        capabilities = agent.capabilities
        call = ToolInvocation(
            call_id=request.call_id,
            agent_id=agent.id,
            tool_name=request.name,
            arguments=MappingProxyType(dict(request.arguments or {})),
            tool=capabilities.get(request.name),
            capability_set=capabilities.name,
        )
        log_tool_call(LOGGER, agent.id, call.tool_name, dict(call.arguments))

        if call.tool is None:
            violation = CapabilityViolation(agent.id, call.tool_name, capabilities.name)
            LOGGER.warning(str(violation))
            result = ToolResult.failure(str(violation), ToolErrorKind.CAPABILITY_VIOLATION)
        else:
            try:
                result = await self.interceptors.run(call, lambda c: self._invoke(c, context))
            except Exception as e:
                # 拦截器自身出错只让这次调用失败，不终止会话
                log_error(LOGGER, e, context=f"interceptor chain around {agent.id}.{call.tool_name}")
                result = ToolResult.failure(f"Interceptor failed: {type(e).__name__}: {e}", ToolErrorKind.ABORTED)

        log_tool_result(
            LOGGER,
            call.tool_name,
            result.as_text(),
            success=result.ok,
            max_length=self.log_result_max_length,
        )
        return ToolInvocationRecord(invocation=call, result=result)

    async def _invoke(self, call: ToolInvocation, context: TurnContext) -> ToolResult:
        implementation = call.tool.implementation
        if isinstance(implementation, DelegatingAgent):
            return await self._delegate(implementation.agent_id, call, context)
        if isinstance(implementation, NativeImplementation):
            return await self._call_native(implementation, call)
        return ToolResult.failure(f"Unsupported implementation for {call.tool_name}")

    async def _call_native(self, implementation: NativeImplementation, call: ToolInvocation) -> ToolResult:
        fn = implementation.fn
        try:
            if inspect.iscoroutinefunction(fn):
                pending: Any = fn(call.arguments)
            else:
                # 同步工具放到线程里执行，避免阻塞事件循环
                pending = asyncio.to_thread(fn, call.arguments)

            if self.tool_timeout:
                value = await asyncio.wait_for(pending, timeout=self.tool_timeout)
            else:
                value = await pending

            if inspect.isawaitable(value):
                value = await value
        except asyncio.TimeoutError:
            error = ToolInvocationError(call.tool_name, f"timed out after {self.tool_timeout}s", kind="timeout")
            LOGGER.warning(str(error))
            return ToolResult.failure(str(error), ToolErrorKind.TIMEOUT)
        except Exception as e:
            error = e if isinstance(e, ToolInvocationError) else ToolInvocationError(call.tool_name, str(e))
            LOGGER.error(str(error))
            LOGGER.debug("Tool traceback:", exc_info=e)
            return ToolResult.failure(str(error), ToolErrorKind.TOOL_ERROR)

        return ToolResult.success(value)

    async def _delegate(self, agent_id: str, call: ToolInvocation, context: TurnContext) -> ToolResult:
        target = self._agents.get(agent_id)
        if target is None:
            return ToolResult.failure(f"Agent '{agent_id}' not found")

        stack = context.call_stack
        if agent_id in stack:
            chain = " → ".join([*stack, agent_id])
            LOGGER.warning(f"Delegation loop detected: {chain}")
            return ToolResult.failure(f"Delegation loop detected: {chain}")

        # 调用栈第一个元素是当前轮次的发言 agent
        if len(stack) > self.max_delegation_depth:
            LOGGER.warning(f"Delegation depth exceeded: {' → '.join(stack)}")
            return ToolResult.failure(
                f"Maximum delegation depth ({self.max_delegation_depth}) exceeded"
            )

        task = str(call.arguments.get("task", "")).strip()
        if not task:
            return ToolResult.failure(f"Missing 'task' argument for agent '{agent_id}'")

        LOGGER.info(f"Delegating to {agent_id}: {task[:100]}")
        sub_history = ConversationHistory([Message.user(task)])
        try:
            turn = await target.act(sub_history, context.nested(agent_id))
        except FatalAgentError as e:
            LOGGER.error(str(e))
            return ToolResult.failure(str(e))

        return ToolResult.success(turn.final_content)


__all__ = ["ToolDispatcher", "MAX_DELEGATION_DEPTH"]
