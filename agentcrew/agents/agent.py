"""Agent: identity, instructions and an explicit execution context."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple

from agentcrew.errors import FatalAgentError
from agentcrew.orchestration.history import Message, Role
from agentcrew.tools.invocation import ToolInvocationRecord
from agentcrew.tools.registry import CapabilitySet
from agentcrew.utils.logging_utils import log_agent_response

from .backend import AgentBackend, BackendResponse, GenerationRequest
from .context import ExecutionContext, TurnContext

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class AgentTurn:
    """Messages one agent produced during a single turn (not yet in history)."""

    agent_id: str
    messages: Tuple[Message, ...] = ()
    tool_calls: Tuple[ToolInvocationRecord, ...] = ()

    @property
    def final_content(self) -> str:
        for message in reversed(self.messages):
            if message.role == Role.ASSISTANT:
                return message.content
        return ""


@dataclass(frozen=True, eq=False)
class Agent:
    id: str
    instructions: str
    context: ExecutionContext
    description: str = ""
    name: Optional[str] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Agent id must not be empty")

    @classmethod
    def create(
        cls,
        agent_id: str,
        instructions: str,
        backend: AgentBackend,
        capabilities: Optional[CapabilitySet] = None,
        description: str = "",
        max_tool_rounds: int = 10,
        name: Optional[str] = None,
    ) -> "Agent":
        """Build an agent together with its own ExecutionContext."""
        context = ExecutionContext(
            backend=backend,
            capabilities=capabilities if capabilities is not None else CapabilitySet(f"{agent_id}-tools"),
            max_tool_rounds=max_tool_rounds,
        )
        return cls(id=agent_id, instructions=instructions, context=context, description=description, name=name)

    @property
    def display_name(self) -> str:
        return self.name or self.id

    @property
    def capabilities(self) -> CapabilitySet:
        return self.context.capabilities

    async def act(self, history: Sequence[Message], context: TurnContext) -> AgentTurn:
        """Produce this agent's contribution for one turn.

        Each backend response may request tool calls; every call yields exactly
        one tool message and the loop continues until the backend replies
        without tool calls or ``max_tool_rounds`` is reached.

        Raises:
            FatalAgentError: Backend failed or returned unusable output
            TurnCancelled: The session was cancelled mid-turn
        """
        produced: list[Message] = []
        records: list[ToolInvocationRecord] = []
        tools = tuple(self.capabilities.describe())

        for _ in range(self.context.max_tool_rounds):
            request = GenerationRequest(
                agent_id=self.id,
                instructions=self.instructions,
                messages=(*history, *produced),
                tools=tools,
            )
            response = await context.cancellation.guard(self._generate(request))

            if response.content:
                produced.append(Message.assistant(self.id, response.content))

            if not response.tool_calls:
                break

            for call in response.tool_calls:
                context.cancellation.raise_if_cancelled()
                record = await context.cancellation.guard(context.dispatcher.dispatch(self, call, context))
                records.append(record)
                produced.append(
                    Message.tool(
                        self.id,
                        record.result.as_text(),
                        tool_call_id=call.call_id,
                        tool_name=call.name,
                        tool_arguments=call.arguments,
                        is_error=not record.ok,
                    )
                )
        else:
            LOGGER.warning(f"{self.id} reached max_tool_rounds ({self.context.max_tool_rounds})")

        turn = AgentTurn(agent_id=self.id, messages=tuple(produced), tool_calls=tuple(records))
        if turn.final_content:
            log_agent_response(LOGGER, self.id, turn.final_content)
        return turn

    async def _generate(self, request: GenerationRequest) -> BackendResponse:
        try:
            response = await self.context.backend.generate(request)
        except FatalAgentError:
            raise
        except Exception as e:
            LOGGER.debug("Backend traceback:", exc_info=e)
            raise FatalAgentError(self.id, f"{type(e).__name__}: {e}") from e

        if not isinstance(response, BackendResponse):
            raise FatalAgentError(self.id, f"backend returned unparseable output ({type(response).__name__})")
        return response


__all__ = ["Agent", "AgentTurn"]
