"""Data models owned by a session."""
from __future__ import annotations

import itertools
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator


@dataclass(frozen=True, slots=True)
class Document:
    """An uploaded PDF held in memory for the lifetime of a session."""

    name: str
    mime_type: str
    size: int
    content: bytes = field(repr=False)

    @property
    def stem(self) -> str:
        return self.name.split(".")[0] or "document"


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True, slots=True)
class Message:
    """Single transcript entry."""

    id: str
    role: Role
    text: str
    timestamp: float

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "role": self.role.value,
            "text": self.text,
            "timestamp": self.timestamp,
        }


class Transcript:
    """Ordered, append-only record of the conversation.

    Messages are frozen, so entries already appended can never change.
    Identifiers come from a per-transcript counter and stay unique even when
    several messages are created within the same clock tick.
    """

    def __init__(self) -> None:
        self._messages: list[Message] = []
        self._ids = itertools.count(1)

    def append(self, role: Role, text: str, *, timestamp: float | None = None) -> Message:
        message = Message(
            id=f"msg-{next(self._ids)}",
            role=role,
            text=text,
            timestamp=time.time() if timestamp is None else timestamp,
        )
        self._messages.append(message)
        return message

    def snapshot(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(tuple(self._messages))

    def __getitem__(self, index: int) -> Message:
        return self._messages[index]

    def to_list(self) -> list[dict[str, object]]:
        return [message.to_dict() for message in self._messages]


@dataclass(frozen=True, slots=True)
class VectorNode:
    """Cosmetic point shown while the embedding stage is running."""

    id: str
    x: float
    y: float
    active: bool = True


__all__ = ["Document", "Message", "Role", "Transcript", "VectorNode"]
