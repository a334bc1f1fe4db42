from __future__ import annotations

import hashlib
import logging

from .settings import TriageSettings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_HANDLER_NAME = "triage-console"


def configure_logging(settings: TriageSettings) -> logging.Logger:
    """Install one console handler on the root logger; safe to call repeatedly."""
    root_logger = logging.getLogger()
    level = getattr(logging, settings.log_level, logging.INFO)
    root_logger.setLevel(level)
    for handler in root_logger.handlers:
        if handler.get_name() == _HANDLER_NAME:
            handler.setLevel(level)
            return root_logger

    console_handler = logging.StreamHandler()
    console_handler.set_name(_HANDLER_NAME)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(console_handler)
    return root_logger


def conversation_digest(conversation_id: str) -> str:
    # Phone numbers are personal data; logs only ever see this digest.
    return hashlib.sha1(conversation_id.strip().lower().encode("utf-8")).hexdigest()[:12]


def log_conversation_event(logger: logging.Logger, event_type: str, conversation_id: str, **details) -> None:
    digest = conversation_digest(conversation_id)
    logger.info(
        "Conversation event %s for %s",
        event_type,
        digest,
        extra={
            "event_type": "conversation_event",
            "conversation_event_type": event_type,
            "conversation_digest": digest,
            **details,
        },
    )
