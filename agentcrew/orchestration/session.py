"""Turn scheduler: drives agents over a shared history until termination.

Session lifecycle::

    idle --submit_user_message--> running --terminate--> completed
                                          --fatal error / cancel--> aborted
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from agentcrew.agents.agent import Agent
from agentcrew.agents.context import CancellationToken, TurnCancelled, TurnContext
from agentcrew.agents.dispatcher import ToolDispatcher
from agentcrew.config.settings import OrchestrationSettings, get_settings
from agentcrew.errors import (
    ConfigurationError,
    FatalAgentError,
    SessionBusyError,
    SessionClosedError,
    SessionStateError,
)
from agentcrew.interceptors.base import InvocationInterceptor
from agentcrew.tools.invocation import ToolInvocationRecord
from agentcrew.tools.registry import DelegatingAgent
from agentcrew.utils.logging_utils import log_error, log_turn, log_user_message

from .history import ConversationHistory, Message
from .selection import RoundRobinSelection, SelectionStrategy
from .termination import (
    DEFAULT_APPROVAL_TOKEN,
    DEFAULT_MAX_ITERATIONS,
    KeywordPredicate,
    TerminationPredicate,
    TerminationState,
    TerminationStrategy,
)

LOGGER = logging.getLogger(__name__)


class SessionStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.COMPLETED, SessionStatus.ABORTED)


@dataclass(frozen=True)
class SessionOutcome:
    status: SessionStatus
    reason: str = ""


@dataclass(frozen=True)
class TurnOutcome:
    """Result of one scheduler step."""

    turn: int
    agent_id: Optional[str]
    status: SessionStatus
    messages: Tuple[Message, ...] = ()
    tool_calls: Tuple[ToolInvocationRecord, ...] = ()
    reason: str = ""

    @property
    def is_complete(self) -> bool:
        return self.status.is_terminal


@dataclass(frozen=True)
class TerminationConfig:
    """Declarative termination settings, turned into a fresh strategy per session."""

    max_iterations: int = DEFAULT_MAX_ITERATIONS
    allowed_terminators: Optional[Iterable[str]] = None
    approval_token: str = DEFAULT_APPROVAL_TOKEN
    predicate: Optional[TerminationPredicate] = None

    def build(self) -> TerminationStrategy:
        return TerminationStrategy(
            max_iterations=self.max_iterations,
            allowed_terminators=self.allowed_terminators,
            predicate=self.predicate or KeywordPredicate(self.approval_token),
        )


class Session:
    """One collaborative session over an ordered agent list.

    Use :func:`start_session` to build one; it validates the agent directory
    and wires the dispatcher.
    """

    def __init__(
        self,
        agents: Sequence[Agent],
        termination: TerminationStrategy,
        dispatcher: ToolDispatcher,
        selection: Optional[SelectionStrategy] = None,
        history: Optional[ConversationHistory] = None,
        session_id: Optional[str] = None,
    ):
        if not agents:
            raise ConfigurationError("A session needs at least one agent")
        self.session_id = session_id or uuid.uuid4().hex
        self._agents: Tuple[Agent, ...] = tuple(agents)
        self._termination = termination
        self._dispatcher = dispatcher
        self._selection = selection or RoundRobinSelection()
        self._history = history if history is not None else ConversationHistory()
        self._cancellation = CancellationToken()
        self._status = SessionStatus.IDLE
        self._outcome: Optional[SessionOutcome] = None
        self._busy = False

    # ========== Read access ==========

    @property
    def agents(self) -> Tuple[Agent, ...]:
        return self._agents

    @property
    def history(self) -> ConversationHistory:
        return self._history

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def outcome(self) -> Optional[SessionOutcome]:
        return self._outcome

    @property
    def termination_state(self) -> TerminationState:
        return self._termination.state

    @property
    def turn_count(self) -> int:
        return self._termination.state.turn_count

    @property
    def is_complete(self) -> bool:
        return self._termination.state.is_complete

    @property
    def is_busy(self) -> bool:
        return self._busy

    def get_agent(self, agent_id: str) -> Optional[Agent]:
        for agent in self._agents:
            if agent.id == agent_id:
                return agent
        return self._dispatcher.get_agent(agent_id)

    # ========== Caller surface ==========

    def submit_user_message(self, text: str) -> Message:
        """Append user input; the first message moves the session to running."""
        if self._status.is_terminal:
            raise SessionClosedError(f"Session {self.session_id} is {self._status.value}")
        if self._busy:
            raise SessionBusyError("Cannot add user input while a turn is in progress")

        message = Message.user(text)
        self._history.append(message)
        log_user_message(LOGGER, text)

        if self._status == SessionStatus.IDLE:
            self._status = SessionStatus.RUNNING
            LOGGER.info(f"Session {self.session_id} running with {len(self._agents)} agents")
        return message

    async def step(self) -> TurnOutcome:
        """Run exactly one agent turn."""
        self._ensure_runnable()
        self._busy = True
        try:
            return await self._run_turn()
        finally:
            self._busy = False

    async def invoke(self) -> AsyncIterator[Message]:
        """Run turns until the session stops, yielding messages as they are appended."""
        self._ensure_runnable()
        while self._status == SessionStatus.RUNNING:
            outcome = await self.step()
            for message in outcome.messages:
                yield message

    async def run_until_complete(self) -> List[Message]:
        """Run until completion or abort; returns the messages appended on the way."""
        produced: List[Message] = []
        async for message in self.invoke():
            produced.append(message)
        return produced

    def cancel(self, reason: str = "cancelled by caller") -> None:
        """Interrupt the in-flight turn (if any) and abort the session."""
        if self._status.is_terminal:
            return
        LOGGER.info(f"Cancelling session {self.session_id}: {reason}")
        self._cancellation.cancel(reason)
        if not self._busy:
            self._abort(f"cancelled: {reason}")

    # ========== Internals ==========

    def _ensure_runnable(self) -> None:
        if self._status == SessionStatus.IDLE:
            raise SessionStateError("Submit a user message before running the session")
        if self._status.is_terminal:
            raise SessionClosedError(f"Session {self.session_id} is {self._status.value}")
        if self._busy:
            raise SessionBusyError(f"Session {self.session_id} is already running a turn")

    def _abort(self, reason: str) -> None:
        self._status = SessionStatus.ABORTED
        self._outcome = SessionOutcome(SessionStatus.ABORTED, reason)
        LOGGER.warning(f"Session {self.session_id} aborted: {reason}")

    def _aborted_outcome(self, agent_id: Optional[str]) -> TurnOutcome:
        return TurnOutcome(
            turn=self.turn_count,
            agent_id=agent_id,
            status=self._status,
            reason=self._outcome.reason if self._outcome else "",
        )

    async def _run_turn(self) -> TurnOutcome:
        agent: Optional[Agent] = None
        try:
            self._cancellation.raise_if_cancelled()
            agent = await self._cancellation.guard(self._selection.select(self._agents, self._history))
            context = TurnContext(
                dispatcher=self._dispatcher,
                cancellation=self._cancellation,
                call_stack=(agent.id,),
            )
            turn = await agent.act(self._history, context)
        except TurnCancelled as e:
            # 取消时丢弃本轮的部分输出
            self._abort(f"cancelled: {e.reason}")
            return self._aborted_outcome(agent.id if agent else None)
        except asyncio.CancelledError:
            self._abort("cancelled: task cancelled")
            raise
        except FatalAgentError as e:
            log_error(LOGGER, e, context=f"turn {self.turn_count + 1}")
            self._termination.advance()
            self._abort(str(e))
            return self._aborted_outcome(e.agent_id)
        except Exception as e:
            log_error(LOGGER, e, context=f"turn {self.turn_count + 1}")
            self._termination.advance()
            self._abort(f"unexpected error: {type(e).__name__}: {e}")
            return self._aborted_outcome(agent.id if agent else None)

        self._history.extend(turn.messages)
        completed = self._termination.complete_turn(turn.messages)
        log_turn(LOGGER, self.turn_count, agent.id, len(turn.messages))

        if completed:
            self._status = SessionStatus.COMPLETED
            self._outcome = SessionOutcome(SessionStatus.COMPLETED, self._termination.state.reason or "")

        return TurnOutcome(
            turn=self.turn_count,
            agent_id=agent.id,
            status=self._status,
            messages=turn.messages,
            tool_calls=turn.tool_calls,
            reason=self._outcome.reason if self._outcome else "",
        )


# ========== Module-level API ==========


def _validate_directory(
    agents: Sequence[Agent],
    delegates: Sequence[Agent],
    allowed_terminators: Optional[frozenset[str]],
) -> Mapping[str, Agent]:
    directory: dict[str, Agent] = {}
    for agent in (*agents, *delegates):
        if agent.id in directory:
            raise ConfigurationError(f"Duplicate agent id: {agent.id}")
        directory[agent.id] = agent

    for agent in directory.values():
        for tool in agent.capabilities:
            impl = tool.implementation
            if isinstance(impl, DelegatingAgent) and impl.agent_id not in directory:
                raise ConfigurationError(
                    f"Tool '{tool.name}' of agent '{agent.id}' delegates to unknown agent '{impl.agent_id}'"
                )

    if allowed_terminators:
        participant_ids = {agent.id for agent in agents}
        unknown = sorted(allowed_terminators - participant_ids)
        if unknown:
            raise ConfigurationError(f"Unknown terminator agent(s): {', '.join(unknown)}")

    return directory


def start_session(
    agents: Sequence[Agent],
    termination: Union[TerminationStrategy, TerminationConfig, None] = None,
    *,
    selection: Optional[SelectionStrategy] = None,
    interceptors: Iterable[InvocationInterceptor] = (),
    delegates: Sequence[Agent] = (),
    settings: Optional[OrchestrationSettings] = None,
    session_id: Optional[str] = None,
    history: Optional[ConversationHistory] = None,
    result_preview_length: int = 500,
) -> Session:
    """Create an idle session.

    Args:
        agents: Participants, in selection order
        termination: Strategy instance or config; defaults come from settings
        selection: Selection policy (round robin by default)
        interceptors: Invocation interceptors, outermost first
        delegates: Agents reachable only through delegating tools
        settings: Orchestration settings (``get_settings().orchestration`` by default)
        session_id: Optional explicit id (used when resuming persisted history)
        history: Previously persisted history to continue from
        result_preview_length: Characters of each tool result written to the log
    """
    if not agents:
        raise ConfigurationError("A session needs at least one agent")

    settings = settings or get_settings().orchestration

    if termination is None:
        termination = TerminationConfig(
            max_iterations=settings.max_iterations,
            approval_token=settings.approval_token,
        )
    strategy = termination.build() if isinstance(termination, TerminationConfig) else termination

    directory = _validate_directory(agents, delegates, strategy.allowed_terminators)

    dispatcher = ToolDispatcher(
        interceptors=interceptors,
        agents=directory,
        tool_timeout=settings.tool_timeout,
        max_delegation_depth=settings.max_delegation_depth,
        log_result_max_length=result_preview_length,
    )
    return Session(
        agents=agents,
        termination=strategy,
        dispatcher=dispatcher,
        selection=selection,
        history=history,
        session_id=session_id,
    )


def submit_user_message(session: Session, text: str) -> Message:
    return session.submit_user_message(text)


async def run_until_complete(session: Session) -> List[Message]:
    return await session.run_until_complete()


__all__ = [
    "Session",
    "SessionOutcome",
    "SessionStatus",
    "TerminationConfig",
    "TurnOutcome",
    "run_until_complete",
    "start_session",
    "submit_user_message",
]
