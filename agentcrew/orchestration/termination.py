"""Termination strategy: content predicate for allowed agents plus an iteration ceiling."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Sequence

from agentcrew.errors import SessionClosedError

from .history import Message, Role

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 10
DEFAULT_APPROVAL_TOKEN = "approve"

TerminationPredicate = Callable[[Message], bool]


class KeywordPredicate:
    """Case-insensitive substring match ("approved" also matches "approve")."""

    def __init__(self, token: str = DEFAULT_APPROVAL_TOKEN):
        if not token:
            raise ValueError("token must not be empty")
        self.token = token.lower()

    def __call__(self, message: Message) -> bool:
        return self.token in message.content.lower()

    def __repr__(self) -> str:
        return f"KeywordPredicate({self.token!r})"


class VerdictPredicate:
    """Matches a structured ``VERDICT: <token>`` line.

    Unlike the keyword match, "not approved yet" or a quoted "approve" elsewhere
    in the message does not terminate.
    """

    _PATTERN = re.compile(r"^\s*VERDICT\s*:\s*([A-Za-z_-]+)\s*$", re.IGNORECASE | re.MULTILINE)

    def __init__(self, accepted: Iterable[str] = ("approve", "approved")):
        self.accepted = frozenset(v.lower() for v in accepted)

    def __call__(self, message: Message) -> bool:
        return any(m.group(1).lower() in self.accepted for m in self._PATTERN.finditer(message.content))

    def __repr__(self) -> str:
        return f"VerdictPredicate({sorted(self.accepted)!r})"


@dataclass
class TerminationState:
    turn_count: int = 0
    is_complete: bool = False
    allowed_terminators: Optional[frozenset[str]] = None
    reason: Optional[str] = None


class TerminationStrategy:
    """Decides after each turn whether the session is finished.

    Args:
        max_iterations: Hard ceiling on completed turns
        allowed_terminators: Agent ids whose messages may end the session.
            ``None`` lets any agent terminate; an empty set disables content
            termination so only the ceiling applies.
        predicate: Content check on the most recent assistant message
    """

    def __init__(
        self,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        allowed_terminators: Optional[Iterable[str]] = None,
        predicate: Optional[TerminationPredicate] = None,
    ):
        if max_iterations < 1:
            raise ValueError("max_iterations must be >= 1")
        self.max_iterations = max_iterations
        self.predicate: TerminationPredicate = predicate or KeywordPredicate()
        self.state = TerminationState(
            allowed_terminators=frozenset(allowed_terminators) if allowed_terminators is not None else None,
        )

    @property
    def allowed_terminators(self) -> Optional[frozenset[str]]:
        return self.state.allowed_terminators

    @property
    def is_complete(self) -> bool:
        return self.state.is_complete

    def should_agent_terminate(
        self,
        history: Sequence[Message],
        allowed_terminators: Optional[frozenset[str]],
    ) -> Optional[str]:
        """Return the terminating agent id, or None."""
        if allowed_terminators is not None and not allowed_terminators:
            return None

        last = None
        for message in reversed(history):
            if message.role == Role.ASSISTANT:
                last = message
                break
        if last is None:
            return None

        if allowed_terminators is not None and last.author not in allowed_terminators:
            return None
        return last.author if self.predicate(last) else None

    def evaluate(
        self,
        history: Sequence[Message],
        turn_count: int,
        allowed_terminators: Optional[frozenset[str]] = None,
    ) -> bool:
        if turn_count >= self.max_iterations:
            return True
        return self.should_agent_terminate(history, allowed_terminators) is not None

    def advance(self) -> int:
        """Count one finished turn (including turns that errored out)."""
        if self.state.is_complete:
            raise SessionClosedError("Termination already reached; no further turns accepted")
        self.state.turn_count += 1
        return self.state.turn_count

    def complete_turn(self, turn_messages: Sequence[Message]) -> bool:
        """Advance the count, then evaluate. Completion is permanent.

        Only ``turn_messages`` (what this turn appended) are inspected, so an
        approval left over from an earlier turn cannot end the session again.
        """
        turn_count = self.advance()

        terminator = self.should_agent_terminate(turn_messages, self.state.allowed_terminators)
        if terminator is not None:
            self._complete(f"terminated by {terminator}")
        elif turn_count >= self.max_iterations:
            self._complete(f"maximum iterations reached ({self.max_iterations})")

        return self.state.is_complete

    def _complete(self, reason: str) -> None:
        self.state.is_complete = True
        self.state.reason = reason
        LOGGER.info(f"Session complete after {self.state.turn_count} turns: {reason}")


__all__ = [
    "DEFAULT_APPROVAL_TOKEN",
    "DEFAULT_MAX_ITERATIONS",
    "KeywordPredicate",
    "TerminationPredicate",
    "TerminationState",
    "TerminationStrategy",
    "VerdictPredicate",
]
