from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, Field

Role = Literal["system", "user", "assistant"]


class Message(BaseModel):
    role: Role
    content: str


class ChatRequest(BaseModel):
    messages: list[Message] = Field(default_factory=list)


class Conversation:
    """Append-only message history for one request."""

    def __init__(self, messages: Iterable[Message] = ()) -> None:
        self._messages: list[Message] = [message.model_copy() for message in messages]

    @classmethod
    def with_system_instruction(cls, messages: Iterable[Message], instruction: str) -> "Conversation":
        history = list(messages)
        if history and history[0].role == "system":
            return cls(history)
        return cls([Message(role="system", content=instruction), *history])

    def append(self, role: Role, content: str) -> None:
        self._messages.append(Message(role=role, content=content))

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    def payload(self) -> list[dict[str, str]]:
        return [message.model_dump() for message in self._messages]

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(tuple(self._messages))


@dataclass(frozen=True)
class ToolCall:
    name: Any
    args: Any = field(default_factory=dict)
