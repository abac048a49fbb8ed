"""Shared, append-only conversation history."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, overload

USER = "user"


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Message:
    """One entry of the conversation log.

    ``author`` is the agent id, or ``"user"`` for human input. Tool messages are
    authored by the agent that requested the call.
    """

    author: str
    role: Role
    content: str
    timestamp: datetime = field(default_factory=_utcnow)
    tool_call_id: Optional[str] = None
    tool_name: Optional[str] = None
    tool_arguments: Optional[Mapping[str, Any]] = None
    is_error: bool = False

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(author=USER, role=Role.USER, content=content)

    @classmethod
    def assistant(cls, author: str, content: str) -> "Message":
        return cls(author=author, role=Role.ASSISTANT, content=content)

    @classmethod
    def tool(
        cls,
        author: str,
        content: str,
        *,
        tool_call_id: str,
        tool_name: str,
        tool_arguments: Optional[Mapping[str, Any]] = None,
        is_error: bool = False,
    ) -> "Message":
        return cls(
            author=author,
            role=Role.TOOL,
            content=content,
            tool_call_id=tool_call_id,
            tool_name=tool_name,
            tool_arguments=MappingProxyType(dict(tool_arguments or {})),
            is_error=is_error,
        )

    def to_record(self) -> Dict[str, Any]:
        """Plain-JSON representation (used by persistence)."""
        return {
            "author": self.author,
            "role": self.role.value,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
            "tool_call_id": self.tool_call_id,
            "tool_name": self.tool_name,
            "tool_arguments": dict(self.tool_arguments) if self.tool_arguments is not None else None,
            "is_error": self.is_error,
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Message":
        arguments = record.get("tool_arguments")
        return cls(
            author=record["author"],
            role=Role(record["role"]),
            content=record.get("content", ""),
            timestamp=datetime.fromisoformat(record["timestamp"]),
            tool_call_id=record.get("tool_call_id"),
            tool_name=record.get("tool_name"),
            tool_arguments=MappingProxyType(dict(arguments)) if arguments is not None else None,
            is_error=bool(record.get("is_error", False)),
        )


class ConversationHistory(Sequence[Message]):
    """Ordered log of messages shared by every agent in a session.

    Only appending is supported; timestamps must be non-decreasing.
    """

    def __init__(self, messages: Optional[Iterable[Message]] = None) -> None:
        self._messages: List[Message] = []
        if messages:
            self.extend(messages)

    def _check(self, message: Message, previous: Optional[Message]) -> None:
        if not isinstance(message, Message):
            raise TypeError(f"Expected Message, got {type(message).__name__}")
        if previous is not None and message.timestamp < previous.timestamp:
            raise ValueError(
                f"Message timestamp {message.timestamp.isoformat()} is older than "
                f"the last entry ({previous.timestamp.isoformat()})"
            )

    def append(self, message: Message) -> None:
        self._check(message, self._messages[-1] if self._messages else None)
        self._messages.append(message)

    def extend(self, messages: Iterable[Message]) -> None:
        """Append several messages atomically (all or nothing)."""
        batch = list(messages)
        previous = self._messages[-1] if self._messages else None
        for message in batch:
            self._check(message, previous)
            previous = message
        self._messages.extend(batch)

    @overload
    def __getitem__(self, index: int) -> Message: ...

    @overload
    def __getitem__(self, index: slice) -> List[Message]: ...

    def __getitem__(self, index):
        return self._messages[index]

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(tuple(self._messages))

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    def last(self, predicate: Optional[Callable[[Message], bool]] = None) -> Optional[Message]:
        for message in reversed(self._messages):
            if predicate is None or predicate(message):
                return message
        return None

    def last_assistant_message(self) -> Optional[Message]:
        return self.last(lambda m: m.role == Role.ASSISTANT)

    def to_records(self) -> List[Dict[str, Any]]:
        return [message.to_record() for message in self._messages]

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, Any]]) -> "ConversationHistory":
        return cls(Message.from_record(record) for record in records)

    def __repr__(self) -> str:
        return f"ConversationHistory({len(self._messages)} messages)"
