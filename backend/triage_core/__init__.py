from .attempts import Attempt, AttemptOutcome, run_attempts
from .engine import AssessmentEngine, extract_json_object
from .errors import (
    CollaboratorUnavailable,
    InputError,
    ModelTimeout,
    ModelUnavailable,
    ParseRecovered,
    StateError,
    TriageError,
    UnsupportedSpeechModel,
)
from .formatter import ResponseFormatter
from .intent import IntentAdapter
from .orchestrator import ConversationOrchestrator, WebChatOrchestrator, WhatsAppOrchestrator
from .safety import SafetyClassifier, SafetyLexicon
from .settings import TriageSettings

__all__ = [
    "AssessmentEngine",
    "Attempt",
    "AttemptOutcome",
    "CollaboratorUnavailable",
    "ConversationOrchestrator",
    "InputError",
    "IntentAdapter",
    "ModelTimeout",
    "ModelUnavailable",
    "ParseRecovered",
    "ResponseFormatter",
    "SafetyClassifier",
    "SafetyLexicon",
    "StateError",
    "TriageError",
    "TriageSettings",
    "UnsupportedSpeechModel",
    "WebChatOrchestrator",
    "WhatsAppOrchestrator",
    "extract_json_object",
    "run_attempts",
]
