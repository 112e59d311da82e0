from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, Literal, Protocol, Sequence, TypeVar, Union


Role = Literal["system", "user", "assistant"]
Capability = Literal["extract", "score", "suggest", "rewrite"]

T = TypeVar("T")


@dataclass(frozen=True)
class ChatMessage:
    role: Role
    content: str


@dataclass(frozen=True)
class CompletionRequest:
    messages: Sequence[ChatMessage]
    temperature: float = 0.2
    max_tokens: int = 900
    json_mode: bool = False


@dataclass(frozen=True)
class ParseOk(Generic[T]):
    value: T


@dataclass(frozen=True)
class ParseFailed:
    reason: str
    raw: str = ""


ParseResult = Union[ParseOk[T], ParseFailed]


@dataclass(frozen=True)
class CompletionResult:
    text: str
    model: str
    usage: dict[str, Any] = field(default_factory=dict)


class CompletionClient(Protocol):
    """Transport to a chat-completion model. Raises on transport failures."""

    model: str

    async def complete(self, request: CompletionRequest) -> CompletionResult: ...
