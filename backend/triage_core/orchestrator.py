from __future__ import annotations

import logging
from dataclasses import replace
from typing import Sequence

from memory.conversation_store import ConversationStore
from memory.models import Message

from . import messages
from .attempts import Attempt, run_attempts
from .collaborators import MediaFetcher, Synthesizer, Transcriber
from .engine import AssessmentEngine
from .errors import CollaboratorUnavailable, InputError, UnsupportedSpeechModel
from .formatter import ResponseFormatter
from .intent import IntentAdapter
from .language import DEFAULT_LANGUAGE, detect_language
from .logging_config import log_conversation_event
from .models import (
    Assessment,
    Attachment,
    Channel,
    ChatReply,
    Command,
    CommandKind,
    Degraded,
    Intent,
    RenderedReply,
    SpeechAudio,
    TranscriptionResult,
    UrgencyLevel,
    unwrap,
)
from .safety import SafetyClassifier

logger = logging.getLogger(__name__)

TELEPHONY_FALLBACK_MODEL = "English-Telephony"


class ConversationOrchestrator:
    """Per-request control flow shared by both channels.

    Order is fixed: sweep, transcription, emergency check, command check, intent and
    append, engine, store update, formatting. Emergency and command replies never reach
    an external AI collaborator.
    """

    channel: Channel = Channel.WEB

    def __init__(
        self,
        *,
        store: ConversationStore,
        classifier: SafetyClassifier,
        intent_adapter: IntentAdapter,
        engine: AssessmentEngine,
        transcriber: Transcriber | None = None,
        synthesizer: Synthesizer | None = None,
        media: MediaFetcher | None = None,
    ) -> None:
        self.store = store
        self.classifier = classifier
        self.intent_adapter = intent_adapter
        self.engine = engine
        self.transcriber = transcriber
        self.synthesizer = synthesizer
        self.media = media
        self.formatter = ResponseFormatter(self.channel, classifier)

    def resolve_language(self, conversation_id: str, text: str, requested: str | None) -> str:
        if requested:
            return requested
        conversation = self.store.get(conversation_id)
        if conversation is not None and conversation.language:
            return conversation.language
        return DEFAULT_LANGUAGE

    def reset_conversation(self, conversation_id: str) -> None:
        removed = self.store.reset(conversation_id)
        log_conversation_event(logger, "reset", conversation_id, channel=self.channel.value, existed=removed)

    def handle_inbound_message(
        self,
        conversation_id: str,
        text: str | None,
        attachments: Sequence[Attachment] = (),
        language: str | None = None,
        *,
        speak: bool = False,
    ) -> RenderedReply:
        self.store.sweep()

        transcript: str | None = None
        audio = next((item for item in attachments if item.is_audio), None)
        if audio is not None:
            try:
                transcription = self.transcribe_attachment(audio, language or DEFAULT_LANGUAGE)
            except CollaboratorUnavailable as exc:
                log_conversation_event(logger, "voice_error", conversation_id, channel=self.channel.value, service=exc.service)
                return self._reply(conversation_id, "voice_error", messages.voice_error_message(str(exc)))
            transcript = transcription.transcript.strip()
            if not transcript:
                return self._reply(conversation_id, "voice_unclear", messages.VOICE_UNCLEAR_MESSAGE)
            text = transcript

        text = (text or "").strip()
        if not text:
            raise InputError("No message text or audio was received.")

        reply = self._route(conversation_id, text, language, transcript)
        reply.transcript = transcript
        if speak:
            self._attach_speech(reply, language or self.resolve_language(conversation_id, text, None))
        return reply

    def _route(self, conversation_id: str, text: str, language: str | None, transcript: str | None) -> RenderedReply:
        if self.classifier.is_emergency(text):
            log_conversation_event(logger, "emergency", conversation_id, channel=self.channel.value)
            reply = self._reply(conversation_id, "emergency", messages.EMERGENCY_MESSAGE)
            reply.urgency_level = UrgencyLevel.EMERGENCY
            return reply

        command = self.classifier.classify_command(text)
        if command is not None:
            log_conversation_event(logger, "command", conversation_id, channel=self.channel.value, command=command.kind.value)
            return self._handle_command(conversation_id, command)

        intent_result = self.intent_adapter.classify(text)
        if intent_result.intent is Intent.CONVERSATION_END:
            reply = self._reply(conversation_id, "goodbye", messages.GOODBYE_MESSAGE)
            reply.intent = intent_result.intent
            return reply

        resolved_language = self.resolve_language(conversation_id, text, language)
        self.store.set_language(conversation_id, resolved_language)
        conversation = self.store.append(conversation_id, Message.user(text, intent_result.annotation))

        try:
            result = self.engine.analyze(conversation.messages, resolved_language, intent=intent_result.intent)
        except CollaboratorUnavailable as exc:
            logger.error("Generation failed for %s: %s", self.channel.value, exc)
            log_conversation_event(logger, "error", conversation_id, channel=self.channel.value, service=exc.service)
            reply = self._reply(conversation_id, "error", messages.MODEL_UNAVAILABLE_MESSAGE)
            reply.intent = intent_result.intent
            return reply

        value = unwrap(result)
        if isinstance(value, Assessment):
            self.store.append(conversation_id, Message.assistant(f"Assessment: {value.analysis}"))
            self.store.set_last_assessment(conversation_id, value)
            reply = RenderedReply(
                conversation_id=conversation_id,
                channel=self.channel,
                kind="assessment",
                text=self.formatter.format_assessment(value, transcript),
                assessment=value,
                urgency_level=value.urgency_level,
                tts_text=self.formatter.tts_text(value),
            )
        else:
            self.store.append(conversation_id, Message.assistant(value.reply))
            reply = RenderedReply(
                conversation_id=conversation_id,
                channel=self.channel,
                kind="chat",
                text=self.formatter.format_chat_reply(value, transcript),
                tts_text=self.formatter.tts_text(value),
            )
        reply.intent = intent_result.intent
        if isinstance(result, Degraded):
            reply.meta["degraded"] = result.reason
            log_conversation_event(logger, "degraded", conversation_id, channel=self.channel.value, kind=reply.kind)
        else:
            log_conversation_event(logger, reply.kind, conversation_id, channel=self.channel.value)
        return reply

    def _handle_command(self, conversation_id: str, command: Command) -> RenderedReply:
        if command.kind is CommandKind.WELCOME:
            return self._reply(conversation_id, "welcome", messages.WELCOME_MESSAGE)
        if command.kind is CommandKind.HELP:
            return self._reply(conversation_id, "help", messages.HELP_MESSAGE)
        if command.kind is CommandKind.RESET:
            self.store.reset(conversation_id)
            return self._reply(conversation_id, "reset", messages.CONVERSATION_CLEARED)

        conversation = self.store.get(conversation_id)
        assessment = conversation.last_assessment if conversation is not None else None
        if command.kind is CommandKind.QUICK_REPLY:
            text = self.formatter.format_quick_reply(command.quick_reply or 0, assessment)
        elif command.kind is CommandKind.MORE_DETAILS:
            text = self.formatter.format_more_details(assessment)
        else:
            text = self.formatter.format_remedies(assessment)
        return RenderedReply(
            conversation_id=conversation_id,
            channel=self.channel,
            kind=command.kind.value,
            text=text,
            urgency_level=assessment.urgency_level if assessment is not None else None,
            tts_text=self.formatter.strip_markup(text),
        )

    def _reply(self, conversation_id: str, kind: str, template: str) -> RenderedReply:
        text = self.formatter.render_template(template)
        return RenderedReply(
            conversation_id=conversation_id,
            channel=self.channel,
            kind=kind,
            text=text,
            tts_text=self.formatter.strip_markup(text),
        )

    def transcribe_attachment(self, attachment: Attachment, language: str) -> TranscriptionResult:
        content = attachment.content
        content_type = attachment.content_type
        if content is None:
            if not attachment.url:
                raise InputError("Audio attachment has neither content nor a URL.")
            if self.media is None:
                raise CollaboratorUnavailable("Media download is not configured.", service="media")
            content, fetched_type = self.media.fetch(attachment.url)
            content_type = fetched_type or content_type
        return self.transcribe_audio(content, content_type, language)

    def transcribe_audio(self, audio: bytes, content_type: str, language: str) -> TranscriptionResult:
        transcriber = self.transcriber
        if transcriber is None:
            raise CollaboratorUnavailable("Speech-to-text is not configured.", service="stt")
        attempts = [Attempt(name=f"stt:{language}", run=lambda: transcriber.transcribe(audio, content_type, language))]
        if language != TELEPHONY_FALLBACK_MODEL:
            attempts.append(
                Attempt(
                    name=f"stt:{TELEPHONY_FALLBACK_MODEL}",
                    run=lambda: transcriber.transcribe(audio, content_type, TELEPHONY_FALLBACK_MODEL),
                    condition=lambda error: isinstance(error, UnsupportedSpeechModel),
                )
            )
        return run_attempts(attempts).value

    def synthesize(
        self,
        text: str,
        language: str = DEFAULT_LANGUAGE,
        *,
        gender: str | None = None,
        audio_format: str = "mp3",
        pitch: int = 0,
        rate: int = 0,
    ) -> SpeechAudio:
        synthesizer = self.synthesizer
        if synthesizer is None:
            raise CollaboratorUnavailable("Text-to-speech is not configured.", service="tts")
        voice_id = synthesizer.voice_for(language, gender)
        attempts = [
            Attempt(
                name=f"tts:{voice_id}",
                run=lambda: synthesizer.synthesize(text, voice_id, audio_format, pitch=pitch, rate=rate),
            )
        ]
        if language.strip().lower() != DEFAULT_LANGUAGE.lower():
            fallback_voice = synthesizer.voice_for(DEFAULT_LANGUAGE, gender)
            attempts.append(
                Attempt(
                    name=f"tts:{fallback_voice}",
                    run=lambda: synthesizer.synthesize(text, fallback_voice, audio_format, pitch=pitch, rate=rate),
                )
            )
        outcome = run_attempts(attempts)
        if outcome.fell_back:
            return replace(outcome.value, fallback=True)
        return outcome.value

    def _attach_speech(self, reply: RenderedReply, language: str) -> None:
        if not reply.tts_text:
            return
        try:
            reply.audio = self.synthesize(reply.tts_text, language)
        except CollaboratorUnavailable as exc:
            logger.warning("Dropping spoken reply: %s", exc)
            reply.meta["audio_error"] = str(exc)


class WebChatOrchestrator(ConversationOrchestrator):
    channel = Channel.WEB

    def analyze_symptoms(self, symptoms: str, language: str | None = None) -> RenderedReply:
        """One-shot assessment of a single description; nothing is stored."""
        text = (symptoms or "").strip()
        if not text:
            raise InputError("Symptoms are required.")
        if self.classifier.is_emergency(text):
            reply = self._reply("", "emergency", messages.EMERGENCY_MESSAGE)
            reply.urgency_level = UrgencyLevel.EMERGENCY
            return reply

        result = self.engine.analyze([Message.user(text)], language or DEFAULT_LANGUAGE, force_assessment=True)
        value = unwrap(result)
        if isinstance(value, ChatReply):
            reply = RenderedReply(
                conversation_id="",
                channel=self.channel,
                kind="chat",
                text=self.formatter.format_chat_reply(value),
                tts_text=self.formatter.tts_text(value),
            )
        else:
            reply = RenderedReply(
                conversation_id="",
                channel=self.channel,
                kind="assessment",
                text=self.formatter.format_assessment(value),
                assessment=value,
                urgency_level=value.urgency_level,
                tts_text=self.formatter.tts_text(value),
            )
        if isinstance(result, Degraded):
            reply.meta["degraded"] = result.reason
        return reply


class WhatsAppOrchestrator(ConversationOrchestrator):
    channel = Channel.WHATSAPP

    def resolve_language(self, conversation_id: str, text: str, requested: str | None) -> str:
        return requested or detect_language(text)

    def handle_inbound_message(
        self,
        conversation_id: str,
        text: str | None,
        attachments: Sequence[Attachment] = (),
        language: str | None = None,
        *,
        speak: bool = False,
    ) -> RenderedReply:
        try:
            return super().handle_inbound_message(conversation_id, text, attachments, language, speak=speak)
        except InputError:
            return self._reply(conversation_id, "input_error", messages.NO_MESSAGE_RECEIVED)
