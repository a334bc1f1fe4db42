from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


ROLES = {"user", "assistant"}
SENTIMENTS = {"positive", "neutral", "negative"}


@dataclass(frozen=True)
class Entity:
    type: str
    text: str


@dataclass(frozen=True)
class NLUAnnotation:
    keywords: tuple[str, ...] = ()
    entities: frozenset[Entity] = frozenset()
    sentiment: str = "neutral"

    def __post_init__(self) -> None:
        if self.sentiment not in SENTIMENTS:
            object.__setattr__(self, "sentiment", "neutral")


@dataclass(frozen=True)
class Message:
    role: str
    content: str
    nlu: NLUAnnotation | None = None

    def __post_init__(self) -> None:
        if self.role not in ROLES:
            raise ValueError(f"Unsupported message role: {self.role}")

    @classmethod
    def user(cls, content: str, nlu: NLUAnnotation | None = None) -> "Message":
        return cls(role="user", content=content, nlu=nlu)

    @classmethod
    def assistant(cls, content: str) -> "Message":
        return cls(role="assistant", content=content)


@dataclass
class Conversation:
    id: str
    last_activity: datetime
    messages: list[Message] = field(default_factory=list)
    # Replaced wholesale by the store, never merged.
    last_assessment: Any = None
    language: str | None = None

    def snapshot(self) -> "Conversation":
        return Conversation(
            id=self.id,
            last_activity=self.last_activity,
            messages=list(self.messages),
            last_assessment=self.last_assessment,
            language=self.language,
        )

    @property
    def user_turns(self) -> int:
        return sum(1 for message in self.messages if message.role == "user")
