from __future__ import annotations

import base64
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from memory.models import Entity, Message, NLUAnnotation


class UrgencyLevel(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    EMERGENCY = "Emergency"

    @classmethod
    def coerce(cls, value: Any) -> "UrgencyLevel":
        if isinstance(value, cls):
            return value
        cleaned = str(value or "").strip().lower()
        for level in cls:
            if level.value.lower() == cleaned:
                return level
        return cls.MEDIUM


class Intent(str, Enum):
    SYMPTOM_DESCRIPTION = "symptom_description"
    HELP_REQUEST = "help_request"
    QUESTION = "question"
    CONVERSATION_END = "conversation_end"


class CommandKind(str, Enum):
    WELCOME = "welcome"
    HELP = "help"
    RESET = "reset"
    QUICK_REPLY = "quick_reply"
    MORE_DETAILS = "more_details"
    REMEDIES = "remedies"


class Channel(str, Enum):
    WEB = "web"
    WHATSAPP = "whatsapp"


@dataclass(frozen=True)
class Command:
    kind: CommandKind
    quick_reply: int | None = None


@dataclass(frozen=True)
class Assessment:
    analysis: str
    probable_causes: tuple[str, ...]
    urgency_level: UrgencyLevel
    home_remedies: tuple[str, ...]
    medical_advice: str
    disclaimer: str

    def as_dict(self) -> dict[str, Any]:
        return {
            "analysis": self.analysis,
            "probable_causes": list(self.probable_causes),
            "urgency_level": self.urgency_level.value,
            "home_remedies": list(self.home_remedies),
            "medical_advice": self.medical_advice,
            "disclaimer": self.disclaimer,
        }


@dataclass(frozen=True)
class ChatReply:
    reply: str


@dataclass(frozen=True)
class Degraded:
    """Stand-in produced when model output could not be parsed."""

    result: Union[Assessment, ChatReply]
    raw_text: str
    reason: str


EngineResult = Union[Assessment, ChatReply, Degraded]


def unwrap(result: EngineResult) -> Union[Assessment, ChatReply]:
    return result.result if isinstance(result, Degraded) else result


@dataclass(frozen=True)
class NLUAnalysis:
    keywords: tuple[str, ...] = ()
    entities: tuple[Entity, ...] = ()
    sentiment: str = "neutral"
    categories: tuple[str, ...] = ()

    def annotation(self) -> NLUAnnotation:
        return NLUAnnotation(
            keywords=self.keywords,
            entities=frozenset(self.entities),
            sentiment=self.sentiment,
        )


@dataclass(frozen=True)
class IntentResult:
    intent: Intent
    annotation: NLUAnnotation
    degraded: bool = False


@dataclass(frozen=True)
class GenerationParams:
    max_tokens: int = 1500
    temperature: float = 0.7
    stop_sequences: tuple[str, ...] = ()
    min_tokens: int = 1
    repetition_penalty: float = 1.05


@dataclass(frozen=True)
class TranscriptionResult:
    transcript: str
    detected_language: str
    confidence: int = 0


@dataclass(frozen=True)
class SpeechAudio:
    audio: bytes
    content_type: str
    voice_id: str
    fallback: bool = False


@dataclass(frozen=True)
class Attachment:
    content_type: str
    content: bytes | None = None
    url: str | None = None

    @property
    def is_audio(self) -> bool:
        return self.content_type.lower().startswith("audio")


@dataclass
class RenderedReply:
    conversation_id: str
    channel: Channel
    kind: str
    text: str
    intent: Intent | None = None
    assessment: Assessment | None = None
    urgency_level: UrgencyLevel | None = None
    transcript: str | None = None
    tts_text: str | None = None
    audio: SpeechAudio | None = None
    meta: dict[str, Any] = field(default_factory=dict)

    def as_payload(self) -> dict[str, Any]:
        return {
            "conversation_id": self.conversation_id,
            "channel": self.channel.value,
            "kind": self.kind,
            "text": self.text,
            "intent": self.intent.value if self.intent else None,
            "urgency_level": self.urgency_level.value if self.urgency_level else None,
            "assessment": self.assessment.as_dict() if self.assessment else None,
            "transcript": self.transcript,
            "tts_text": self.tts_text,
            "audio_base64": base64.b64encode(self.audio.audio).decode("ascii") if self.audio else None,
            "audio_content_type": self.audio.content_type if self.audio else None,
            "voice_used": self.audio.voice_id if self.audio else None,
        }


__all__ = [
    "Assessment",
    "Attachment",
    "Channel",
    "ChatReply",
    "Command",
    "CommandKind",
    "Degraded",
    "EngineResult",
    "Entity",
    "GenerationParams",
    "Intent",
    "IntentResult",
    "Message",
    "NLUAnalysis",
    "NLUAnnotation",
    "RenderedReply",
    "SpeechAudio",
    "TranscriptionResult",
    "UrgencyLevel",
    "unwrap",
]
