from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any
from xml.sax.saxutils import escape

import httpx

from triage_core.errors import CollaboratorUnavailable, UnsupportedSpeechModel
from triage_core.language import DEFAULT_LANGUAGE, detect_script_language
from triage_core.models import SpeechAudio, TranscriptionResult

from .provider_http import json_body, provider_error_message, send

STT_MODELS: dict[str, str] = {
    "English": "en-US_Multimedia",
    "Spanish": "es-ES_Multimedia",
    "French": "fr-FR_Multimedia",
    "Hindi": "hi-IN_Multimedia",
    "German": "de-DE_Multimedia",
    "Portuguese": "pt-BR_Multimedia",
    "Italian": "it-IT_Multimedia",
    "Japanese": "ja-JP_Multimedia",
    "Korean": "ko-KR_Multimedia",
    "Chinese": "zh-CN_Multimedia",
    "Arabic": "ar-MS_Multimedia",
    "Dutch": "nl-NL_Multimedia",
    # 8kHz audio, e.g. phone voice notes
    "English-Telephony": "en-US_Telephony",
    "Spanish-Telephony": "es-ES_Telephony",
}


@dataclass(frozen=True)
class Voice:
    id: str
    gender: str
    description: str


TTS_VOICES: dict[str, tuple[Voice, ...]] = {
    "English": (
        Voice("en-US_AllisonV3Voice", "female", "American English - Allison"),
        Voice("en-US_MichaelV3Voice", "male", "American English - Michael"),
        Voice("en-US_EmilyV3Voice", "female", "American English - Emily"),
        Voice("en-US_HenryV3Voice", "male", "American English - Henry"),
        Voice("en-GB_CharlotteV3Voice", "female", "British English - Charlotte"),
        Voice("en-GB_JamesV3Voice", "male", "British English - James"),
        Voice("en-AU_HeidiExpressive", "female", "Australian English - Heidi (Expressive)"),
        Voice("en-AU_JackExpressive", "male", "Australian English - Jack (Expressive)"),
    ),
    "Spanish": (
        Voice("es-ES_LauraV3Voice", "female", "Castilian Spanish - Laura"),
        Voice("es-ES_EnriqueV3Voice", "male", "Castilian Spanish - Enrique"),
        Voice("es-LA_SofiaV3Voice", "female", "Latin American Spanish - Sofia"),
        Voice("es-US_SofiaV3Voice", "female", "US Spanish - Sofia"),
    ),
    "French": (
        Voice("fr-FR_ReneeV3Voice", "female", "French - Renee"),
        Voice("fr-FR_NicolasV3Voice", "male", "French - Nicolas"),
        Voice("fr-CA_LouiseV3Voice", "female", "Canadian French - Louise"),
    ),
    "German": (
        Voice("de-DE_BirgitV3Voice", "female", "German - Birgit"),
        Voice("de-DE_DieterV3Voice", "male", "German - Dieter"),
        Voice("de-DE_ErikaV3Voice", "female", "German - Erika"),
    ),
    "Italian": (Voice("it-IT_FrancescaV3Voice", "female", "Italian - Francesca"),),
    "Portuguese": (Voice("pt-BR_IsabelaV3Voice", "female", "Brazilian Portuguese - Isabela"),),
    "Japanese": (Voice("ja-JP_EmiV3Voice", "female", "Japanese - Emi"),),
    "Korean": (Voice("ko-KR_JinV3Voice", "female", "Korean - Jin"),),
    "Dutch": (Voice("nl-NL_MerelV3Voice", "female", "Dutch - Merel"),),
    "Chinese": (
        Voice("zh-CN_LiNaVoice", "female", "Chinese - LiNa"),
        Voice("zh-CN_WangWeiVoice", "male", "Chinese - WangWei"),
    ),
    # No Hindi voice is offered; the English voice reads transliterated text.
    "Hindi": (Voice("en-US_AllisonV3Voice", "female", "Hindi (via English voice)"),),
}

AUDIO_FORMATS: dict[str, str] = {
    "mp3": "audio/mp3",
    "wav": "audio/wav",
    "ogg": "audio/ogg;codecs=opus",
    "webm": "audio/webm;codecs=opus",
    "flac": "audio/flac",
}

_UNSUPPORTED_MODEL_STATUSES = (400, 404)
_UNSUPPORTED_MODEL = re.compile(
    r"not supported|unsupported|\bmodel\b.*\b(?:not found|not available|invalid|unknown)\b|\b(?:invalid|unknown)\b.*\bmodel\b",
    re.IGNORECASE,
)


def select_voice(language: str, gender: str | None = None) -> Voice:
    voices = TTS_VOICES.get(language) or TTS_VOICES[DEFAULT_LANGUAGE]
    if gender:
        for voice in voices:
            if voice.gender == gender.lower():
                return voice
    return voices[0]


def voice_catalog() -> dict[str, Any]:
    return {
        "voices": [
            {
                "language": language,
                "voices": [{"id": v.id, "gender": v.gender, "description": v.description} for v in voices],
            }
            for language, voices in TTS_VOICES.items()
        ],
        "formats": list(AUDIO_FORMATS),
    }


def _clamp_percent(value: int) -> int:
    return max(-100, min(100, int(value)))


def build_ssml(text: str, voice_id: str, *, pitch: int = 0, rate: int = 0) -> str:
    attrs: list[str] = []
    if pitch:
        attrs.append(f'pitch="{pitch:+d}%"')
    if rate:
        attrs.append(f'rate="{rate:+d}%"')
    body = escape(text, {'"': "&quot;", "'": "&apos;"})
    if attrs:
        body = f"<prosody {' '.join(attrs)}>{body}</prosody>"
    return f'<speak version="1.0"><voice name="{voice_id}">{body}</voice></speak>'


def assemble_transcript(payload: dict[str, Any]) -> tuple[str, int]:
    parts: list[str] = []
    confidence = 0.0
    for result in payload.get("results") or []:
        if not isinstance(result, dict) or not result.get("final"):
            continue
        alternatives = result.get("alternatives") or []
        if not alternatives or not isinstance(alternatives[0], dict):
            continue
        best = alternatives[0]
        transcript = str(best.get("transcript") or "").strip()
        if transcript:
            parts.append(transcript)
        score = best.get("confidence")
        if isinstance(score, (int, float)):
            confidence = max(confidence, float(score))
    return " ".join(parts), round(confidence * 100)


class WatsonSpeechToText:
    def __init__(
        self,
        *,
        api_key: str | None,
        url: str | None,
        timeout_seconds: float = 60.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.url = (url or "").rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    def transcribe(self, audio: bytes, content_type: str, language_hint: str) -> TranscriptionResult:
        if not self.api_key or not self.url:
            raise CollaboratorUnavailable("Speech-to-text credentials are not configured.", service="stt")
        model = STT_MODELS.get(language_hint) or STT_MODELS[DEFAULT_LANGUAGE]
        response = send(
            "POST",
            f"{self.url}/v1/recognize",
            service="stt",
            timeout_seconds=self.timeout_seconds,
            connect_seconds=10.0,
            transport=self.transport,
            params={
                "model": model,
                "smart_formatting": "true",
                "word_confidence": "true",
                "timestamps": "true",
                "low_latency": "true",
            },
            auth=("apikey", self.api_key),
            headers={"Content-Type": content_type or "audio/webm"},
            content=audio,
        )
        if response.status_code >= 400:
            message = provider_error_message(response)
            unsupported = (
                response.status_code in _UNSUPPORTED_MODEL_STATUSES and _UNSUPPORTED_MODEL.search(message) is not None
            )
            error_type = UnsupportedSpeechModel if unsupported else CollaboratorUnavailable
            raise error_type(
                f"Speech-to-text failed: {message}",
                service="stt",
                status_code=response.status_code,
            )
        transcript, confidence = assemble_transcript(json_body(response, service="stt"))
        base_language = language_hint.split("-", 1)[0] if language_hint in STT_MODELS else DEFAULT_LANGUAGE
        detected = detect_script_language(transcript) or base_language
        return TranscriptionResult(transcript=transcript, detected_language=detected, confidence=confidence)


class WatsonTextToSpeech:
    def __init__(
        self,
        *,
        api_key: str | None,
        url: str | None,
        timeout_seconds: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.url = (url or "").rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    def voice_for(self, language: str, gender: str | None = None) -> str:
        return select_voice(language, gender).id

    def synthesize(
        self,
        text: str,
        voice_id: str,
        audio_format: str = "mp3",
        *,
        pitch: int = 0,
        rate: int = 0,
    ) -> SpeechAudio:
        if not self.api_key or not self.url:
            raise CollaboratorUnavailable("Text-to-speech credentials are not configured.", service="tts")
        accept = AUDIO_FORMATS.get(audio_format) or AUDIO_FORMATS["mp3"]
        pitch, rate = _clamp_percent(pitch), _clamp_percent(rate)
        request: dict[str, Any]
        if pitch or rate:
            request = {
                "headers": {"Content-Type": "application/ssml+xml"},
                "content": build_ssml(text, voice_id, pitch=pitch, rate=rate).encode("utf-8"),
            }
        else:
            request = {"json": {"text": text}}
        response = send(
            "POST",
            f"{self.url}/v1/synthesize",
            service="tts",
            timeout_seconds=self.timeout_seconds,
            transport=self.transport,
            params={"voice": voice_id, "accept": accept},
            auth=("apikey", self.api_key),
            **request,
        )
        if response.status_code >= 400:
            raise CollaboratorUnavailable(
                f"Text-to-speech failed: {provider_error_message(response)}",
                service="tts",
                status_code=response.status_code,
            )
        return SpeechAudio(audio=response.content, content_type=accept.split(";")[0], voice_id=voice_id)
