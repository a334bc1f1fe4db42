from __future__ import annotations

import logging
import uuid
from datetime import timedelta
from pathlib import Path

from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import BaseModel, Field
from twilio.twiml.messaging_response import MessagingResponse

from memory import ConversationStore
from triage_core import (
    AssessmentEngine,
    CollaboratorUnavailable,
    InputError,
    IntentAdapter,
    ModelTimeout,
    SafetyClassifier,
    SafetyLexicon,
    TriageSettings,
    WebChatOrchestrator,
    WhatsAppOrchestrator,
)
from triage_core.collaborators import LanguageAnalyzer, MediaFetcher, Synthesizer, TextGenerator, Transcriber
from triage_core.logging_config import configure_logging, log_conversation_event
from triage_core.messages import ERROR_MESSAGE, NO_MESSAGE_RECEIVED
from triage_core.models import Attachment, GenerationParams
from triage_core.settings import bootstrap_local_env
from triage_tools import (
    IAMTokenProvider,
    TwilioMediaFetcher,
    WatsonNLUClient,
    WatsonSpeechToText,
    WatsonTextToSpeech,
    WatsonxGenerator,
    voice_catalog,
)

bootstrap_local_env()

logger = logging.getLogger(__name__)


class ChatRequest(BaseModel):
    message: str = ""
    conversation_id: str | None = None
    language: str = "English"
    speak: bool = False


class AnalyzeRequest(BaseModel):
    symptoms: str = ""
    language: str = "English"


class TTSRequest(BaseModel):
    text: str = ""
    language: str = "English"
    voice_preference: str | None = "female"
    audio_format: str = "mp3"
    pitch: int = Field(default=0, ge=-100, le=100)
    rate: int = Field(default=0, ge=-100, le=100)


class TriageApp:
    def __init__(
        self,
        settings: TriageSettings | None = None,
        *,
        generator: TextGenerator | None = None,
        nlu: LanguageAnalyzer | None = None,
        transcriber: Transcriber | None = None,
        synthesizer: Synthesizer | None = None,
        media: MediaFetcher | None = None,
    ) -> None:
        self.settings = settings or TriageSettings.from_env()
        settings = self.settings

        lexicon = SafetyLexicon.from_file(settings.safety_lexicon_path) if settings.safety_lexicon_path else SafetyLexicon()
        self.store = ConversationStore(
            ttl=timedelta(seconds=settings.conversation_ttl_seconds),
            max_messages=settings.max_messages,
        )
        self.classifier = SafetyClassifier(lexicon)

        self.generator = generator or WatsonxGenerator(
            project_id=settings.watsonx_project_id,
            url=settings.watsonx_url,
            model_id=settings.watsonx_model_id,
            tokens=IAMTokenProvider(settings.ibm_cloud_api_key),
            timeout_seconds=settings.generation_timeout_seconds,
        )
        if nlu is None and settings.nlu_api_key and settings.nlu_url:
            nlu = WatsonNLUClient(api_key=settings.nlu_api_key, url=settings.nlu_url)
        self.nlu = nlu
        self.transcriber = transcriber or WatsonSpeechToText(api_key=settings.stt_api_key, url=settings.stt_url)
        self.synthesizer = synthesizer or WatsonTextToSpeech(api_key=settings.tts_api_key, url=settings.tts_url)
        self.media = media or TwilioMediaFetcher(
            account_sid=settings.twilio_account_sid,
            auth_token=settings.twilio_auth_token,
        )

        self.engine = AssessmentEngine(
            self.generator,
            assess_after_user_turns=settings.assess_after_user_turns,
            history_window=settings.history_window,
            params=GenerationParams(
                max_tokens=settings.generation_max_tokens,
                temperature=settings.generation_temperature,
            ),
        )
        shared = {
            "store": self.store,
            "classifier": self.classifier,
            "intent_adapter": IntentAdapter(self.nlu),
            "engine": self.engine,
            "transcriber": self.transcriber,
            "synthesizer": self.synthesizer,
            "media": self.media,
        }
        self.web = WebChatOrchestrator(**shared)
        self.whatsapp = WhatsAppOrchestrator(**shared)


container = TriageApp()
configure_logging(container.settings)
app = FastAPI(title="Health Triage Backend")

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(container.settings.allowed_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


_ALLOWED_AUDIO_MIME_TYPES = {
    "audio/mpeg",
    "audio/mp3",
    "audio/mp4",
    "audio/m4a",
    "audio/wav",
    "audio/x-wav",
    "audio/webm",
    "audio/ogg",
    "audio/flac",
}
_ALLOWED_AUDIO_EXTENSIONS = {".mp3", ".mp4", ".m4a", ".wav", ".webm", ".ogg", ".flac"}


def _collaborator_http_error(exc: CollaboratorUnavailable) -> HTTPException:
    if isinstance(exc, ModelTimeout):
        return HTTPException(status_code=504, detail=str(exc))
    return HTTPException(status_code=502, detail=str(exc))


def _select_upload(primary: UploadFile | None, fallback: UploadFile | None, *, field_hint: str) -> UploadFile:
    upload = primary or fallback
    if upload is None:
        raise HTTPException(status_code=400, detail=f"Missing multipart file field '{field_hint}'.")
    return upload


def _audio_content_type(upload: UploadFile) -> str:
    file_name = (upload.filename or "").strip() or "audio-upload"
    mime_type = (upload.content_type or "").lower().split(";")[0].strip()
    ext = Path(file_name).suffix.lower().strip()
    if mime_type not in _ALLOWED_AUDIO_MIME_TYPES and ext not in _ALLOWED_AUDIO_EXTENSIONS:
        raise HTTPException(status_code=415, detail="Unsupported audio format.")
    if mime_type.startswith("audio/"):
        return mime_type
    return f"audio/{ext.lstrip('.')}"


async def _read_upload_bytes(upload: UploadFile, *, max_bytes: int) -> bytes:
    raw = await upload.read(max_bytes + 1)
    if len(raw) > max_bytes:
        raise HTTPException(
            status_code=413,
            detail=f"Audio file exceeds {max_bytes // (1024 * 1024)}MB limit.",
        )
    if not raw:
        raise HTTPException(status_code=400, detail="Uploaded file is empty.")
    return raw


def _twiml(text: str) -> Response:
    twiml = MessagingResponse()
    twiml.message(text)
    return Response(content=str(twiml), media_type="text/xml")


@app.get("/health")
def health():
    return {"status": "ok", "conversations": len(container.store)}


@app.post("/chat")
def chat(payload: ChatRequest):
    conversation_id = (payload.conversation_id or "").strip() or f"web-{uuid.uuid4().hex}"
    try:
        reply = container.web.handle_inbound_message(
            conversation_id,
            payload.message,
            language=payload.language,
            speak=payload.speak,
        )
    except InputError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return reply.as_payload()


@app.post("/chat/voice")
async def chat_voice(
    audio: UploadFile | None = File(default=None),
    file: UploadFile | None = File(default=None),
    conversation_id: str | None = Form(default=None),
    language: str = Form(default="English"),
    speak: bool = Form(default=False),
):
    upload = _select_upload(audio, file, field_hint="audio")
    content_type = _audio_content_type(upload)
    audio_bytes = await _read_upload_bytes(upload, max_bytes=container.settings.max_audio_bytes)
    resolved_id = (conversation_id or "").strip() or f"web-{uuid.uuid4().hex}"
    try:
        reply = await run_in_threadpool(
            container.web.handle_inbound_message,
            resolved_id,
            None,
            (Attachment(content_type=content_type, content=audio_bytes),),
            language,
            speak=speak,
        )
    except InputError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return reply.as_payload()


@app.post("/analyze")
def analyze(payload: AnalyzeRequest):
    try:
        reply = container.web.analyze_symptoms(payload.symptoms, payload.language)
    except InputError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except CollaboratorUnavailable as exc:
        raise _collaborator_http_error(exc) from exc
    return reply.as_payload()


@app.post("/voice/transcribe")
async def voice_transcribe(
    audio: UploadFile | None = File(default=None),
    file: UploadFile | None = File(default=None),
    language: str = Form(default="English"),
):
    upload = _select_upload(audio, file, field_hint="audio")
    content_type = _audio_content_type(upload)
    audio_bytes = await _read_upload_bytes(upload, max_bytes=container.settings.max_audio_bytes)
    try:
        result = await run_in_threadpool(container.web.transcribe_audio, audio_bytes, content_type, language)
    except CollaboratorUnavailable as exc:
        raise _collaborator_http_error(exc) from exc
    return {
        "transcript": result.transcript,
        "detected_language": result.detected_language,
        "confidence": result.confidence,
    }


@app.post("/tts")
def text_to_speech(payload: TTSRequest):
    text = payload.text.strip()
    if not text:
        raise HTTPException(status_code=400, detail="Text is required.")
    try:
        audio = container.web.synthesize(
            text,
            payload.language,
            gender=payload.voice_preference,
            audio_format=payload.audio_format,
            pitch=payload.pitch,
            rate=payload.rate,
        )
    except CollaboratorUnavailable as exc:
        raise _collaborator_http_error(exc) from exc
    return Response(
        content=audio.audio,
        media_type=audio.content_type,
        headers={
            "X-Voice-Used": audio.voice_id,
            "X-Fallback": "true" if audio.fallback else "false",
            "X-Language": payload.language,
        },
    )


@app.get("/tts/voices")
def tts_voices():
    return voice_catalog()


@app.post("/whatsapp")
async def whatsapp_webhook(
    Body: str = Form(default=""),
    From: str = Form(default=""),
    NumMedia: str = Form(default="0"),
    MediaUrl0: str | None = Form(default=None),
    MediaContentType0: str | None = Form(default=None),
):
    sender = From.strip()
    if not sender:
        return _twiml(NO_MESSAGE_RECEIVED)

    attachments: list[Attachment] = []
    try:
        media_count = int(NumMedia or "0")
    except ValueError:
        media_count = 0
    if media_count > 0 and MediaUrl0 and (MediaContentType0 or "").lower().startswith("audio"):
        attachments.append(Attachment(content_type=MediaContentType0 or "audio/ogg", url=MediaUrl0))

    try:
        reply = await run_in_threadpool(container.whatsapp.handle_inbound_message, sender, Body, attachments)
    except Exception as exc:
        if container.settings.debug:
            raise
        logger.exception("WhatsApp webhook failed")
        log_conversation_event(logger, "error", sender, channel="whatsapp", error_type=type(exc).__name__)
        return _twiml(ERROR_MESSAGE)
    return _twiml(reply.text)


@app.delete("/conversations/{conversation_id}", status_code=204)
def delete_conversation(conversation_id: str):
    container.web.reset_conversation(conversation_id)
    return Response(status_code=204)
