from __future__ import annotations

from typing import Protocol

from .models import GenerationParams, NLUAnalysis, SpeechAudio, TranscriptionResult


class TextGenerator(Protocol):
    def generate(self, prompt: str, params: GenerationParams) -> str: ...


class LanguageAnalyzer(Protocol):
    def analyze(self, text: str) -> NLUAnalysis: ...


class Transcriber(Protocol):
    def transcribe(self, audio: bytes, content_type: str, language_hint: str) -> TranscriptionResult: ...


class Synthesizer(Protocol):
    def voice_for(self, language: str, gender: str | None = None) -> str: ...

    def synthesize(
        self,
        text: str,
        voice_id: str,
        audio_format: str = "mp3",
        *,
        pitch: int = 0,
        rate: int = 0,
    ) -> SpeechAudio: ...


class MediaFetcher(Protocol):
    def fetch(self, url: str) -> tuple[bytes, str]: ...
