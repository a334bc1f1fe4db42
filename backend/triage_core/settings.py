from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

logger = logging.getLogger(__name__)

_ENV_KEY_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")

DEFAULT_WATSONX_URL = "https://us-south.ml.cloud.ibm.com"
DEFAULT_WATSONX_MODEL_ID = "ibm/granite-3-8b-instruct"
DEFAULT_MAX_AUDIO_BYTES = 10 * 1024 * 1024


def load_local_env_file(path: Path) -> None:
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError:
        return
    for raw in lines:
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        if not _ENV_KEY_RE.fullmatch(key):
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
            value = value[1:-1]
        os.environ.setdefault(key, value)


def bootstrap_local_env() -> None:
    repo_root = Path(__file__).resolve().parents[2]
    for candidate in (repo_root / ".env", repo_root / "backend/.env"):
        if candidate.exists():
            load_local_env_file(candidate)


def _int(env: Mapping[str, str], key: str, default: int, *, minimum: int = 1) -> int:
    raw = (env.get(key) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring malformed %s=%r, using %s", key, raw, default)
        return default
    if value < minimum:
        logger.warning("Ignoring out-of-range %s=%r, using %s", key, raw, default)
        return default
    return value


def _float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = (env.get(key) or "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring malformed %s=%r, using %s", key, raw, default)
        return default
    if value < 0:
        logger.warning("Ignoring negative %s=%r, using %s", key, raw, default)
        return default
    return value


def _flag(env: Mapping[str, str], key: str) -> bool:
    return (env.get(key) or "false").strip().lower() in {"1", "true", "yes"}


def _optional(env: Mapping[str, str], key: str) -> str | None:
    value = (env.get(key) or "").strip()
    return value or None


@dataclass(frozen=True)
class TriageSettings:
    ibm_cloud_api_key: str | None = None
    watsonx_project_id: str | None = None
    watsonx_url: str = DEFAULT_WATSONX_URL
    watsonx_model_id: str = DEFAULT_WATSONX_MODEL_ID
    nlu_api_key: str | None = None
    nlu_url: str | None = None
    stt_api_key: str | None = None
    stt_url: str | None = None
    tts_api_key: str | None = None
    tts_url: str | None = None
    twilio_account_sid: str | None = None
    twilio_auth_token: str | None = None
    conversation_ttl_seconds: int = 3600
    max_messages: int = 10
    history_window: int = 6
    assess_after_user_turns: int = 2
    generation_timeout_seconds: float = 45.0
    generation_max_tokens: int = 1500
    generation_temperature: float = 0.7
    safety_lexicon_path: str | None = None
    max_audio_bytes: int = DEFAULT_MAX_AUDIO_BYTES
    allowed_origins: tuple[str, ...] = ("http://localhost:3000",)
    log_level: str = "INFO"
    debug: bool = False

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "TriageSettings":
        env = os.environ if env is None else env
        origins = tuple(
            origin.strip() for origin in (env.get("ALLOWED_ORIGINS") or "http://localhost:3000").split(",") if origin.strip()
        )
        return cls(
            ibm_cloud_api_key=_optional(env, "IBM_CLOUD_API_KEY"),
            watsonx_project_id=_optional(env, "WATSONX_PROJECT_ID"),
            watsonx_url=(_optional(env, "WATSONX_URL") or DEFAULT_WATSONX_URL).rstrip("/"),
            watsonx_model_id=_optional(env, "WATSONX_MODEL_ID") or DEFAULT_WATSONX_MODEL_ID,
            nlu_api_key=_optional(env, "IBM_NLU_API_KEY"),
            nlu_url=_optional(env, "IBM_NLU_URL"),
            stt_api_key=_optional(env, "IBM_STT_API_KEY"),
            stt_url=_optional(env, "IBM_STT_URL"),
            tts_api_key=_optional(env, "IBM_TTS_API_KEY"),
            tts_url=_optional(env, "IBM_TTS_URL"),
            twilio_account_sid=_optional(env, "TWILIO_ACCOUNT_SID"),
            twilio_auth_token=_optional(env, "TWILIO_AUTH_TOKEN"),
            conversation_ttl_seconds=_int(env, "TRIAGE_CONVERSATION_TTL_SECONDS", 3600),
            max_messages=_int(env, "TRIAGE_MAX_MESSAGES", 10),
            history_window=_int(env, "TRIAGE_HISTORY_WINDOW", 6),
            assess_after_user_turns=_int(env, "TRIAGE_ASSESS_AFTER_USER_TURNS", 2),
            generation_timeout_seconds=_float(env, "TRIAGE_GENERATION_TIMEOUT_SECONDS", 45.0),
            generation_max_tokens=_int(env, "TRIAGE_GENERATION_MAX_TOKENS", 1500),
            generation_temperature=_float(env, "TRIAGE_GENERATION_TEMPERATURE", 0.7),
            safety_lexicon_path=_optional(env, "TRIAGE_SAFETY_LEXICON"),
            max_audio_bytes=_int(env, "TRIAGE_MAX_AUDIO_BYTES", DEFAULT_MAX_AUDIO_BYTES),
            allowed_origins=origins or ("http://localhost:3000",),
            log_level=(_optional(env, "TRIAGE_LOG_LEVEL") or "INFO").upper(),
            debug=_flag(env, "TRIAGE_DEBUG"),
        )
