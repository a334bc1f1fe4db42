from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .models import Assessment, Command, CommandKind
from .rendering import bulleted, numbered, urgency_emoji

# Reviewed as a safety artifact: additions here change which messages never reach the model.
DEFAULT_EMERGENCY_PHRASES: tuple[str, ...] = (
    "chest pain",
    "can't breathe",
    "cannot breathe",
    "heart attack",
    "stroke",
    "unconscious",
    "severe bleeding",
    "suicide",
    "overdose",
    "choking",
    "seizure",
    "not breathing",
    "dying",
    "emergency",
    "passing out",
    "numbness face",
    "slurred speech",
    "severe head",
)

DEFAULT_COMMANDS: dict[str, tuple[str, ...]] = {
    CommandKind.WELCOME.value: ("hi", "hello", "start"),
    CommandKind.HELP.value: ("help",),
    CommandKind.RESET.value: ("new", "reset", "clear"),
    CommandKind.MORE_DETAILS.value: ("more", "details", "explain"),
    CommandKind.REMEDIES.value: ("remedies", "remedy", "treatment"),
}

QUICK_REPLY_NUMBERS = (1, 2, 3)

_APOSTROPHES = str.maketrans({"’": "'", "‘": "'", "ʼ": "'"})


def normalize_text(text: str) -> str:
    # Per-character mapping only, so a match inside s is still a match inside s + anything.
    return (text or "").translate(_APOSTROPHES).casefold()


@dataclass(frozen=True)
class SafetyLexicon:
    emergency_phrases: tuple[str, ...] = DEFAULT_EMERGENCY_PHRASES
    commands: dict[str, tuple[str, ...]] = field(default_factory=lambda: dict(DEFAULT_COMMANDS))

    @classmethod
    def from_mapping(cls, payload: dict[str, Any]) -> "SafetyLexicon":
        phrases = payload.get("emergency_phrases", DEFAULT_EMERGENCY_PHRASES)
        if not isinstance(phrases, (list, tuple)) or not all(isinstance(item, str) for item in phrases):
            raise ValueError("emergency_phrases must be a list of strings")
        cleaned_phrases = tuple(normalize_text(item).strip() for item in phrases if item.strip())
        if not cleaned_phrases:
            raise ValueError("emergency_phrases must not be empty")

        commands = dict(DEFAULT_COMMANDS)
        raw_commands = payload.get("commands") or {}
        if not isinstance(raw_commands, dict):
            raise ValueError("commands must be an object")
        known = {kind.value for kind in CommandKind if kind is not CommandKind.QUICK_REPLY}
        for kind, words in raw_commands.items():
            if kind not in known:
                raise ValueError(f"Unknown command kind: {kind}")
            if not isinstance(words, (list, tuple)):
                raise ValueError(f"Command words for '{kind}' must be a list")
            commands[kind] = tuple(normalize_text(str(word)).strip() for word in words if str(word).strip())
        return cls(emergency_phrases=cleaned_phrases, commands=commands)

    @classmethod
    def from_file(cls, path: str | Path) -> "SafetyLexicon":
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
        if not isinstance(payload, dict):
            raise ValueError("Safety lexicon file must contain a JSON object")
        return cls.from_mapping(payload)


class SafetyClassifier:
    def __init__(self, lexicon: SafetyLexicon | None = None) -> None:
        self.lexicon = lexicon or SafetyLexicon()
        self._command_index: dict[str, CommandKind] = {}
        for kind, words in self.lexicon.commands.items():
            for word in words:
                self._command_index[word] = CommandKind(kind)

    def is_emergency(self, text: str) -> bool:
        cleaned = normalize_text(text)
        return any(phrase in cleaned for phrase in self.lexicon.emergency_phrases)

    def classify_command(self, text: str) -> Command | None:
        cleaned = normalize_text(text).strip()
        if not cleaned:
            return None
        if cleaned.isdigit() and int(cleaned) in QUICK_REPLY_NUMBERS and cleaned == str(int(cleaned)):
            return Command(kind=CommandKind.QUICK_REPLY, quick_reply=int(cleaned))
        kind = self._command_index.get(cleaned)
        return Command(kind=kind) if kind else None

    def handle_quick_reply(self, number: int, last_assessment: Assessment | None) -> str | None:
        if last_assessment is None:
            return None
        assessment = last_assessment
        if number == 1:
            return (
                "📚 *Details*\n\n"
                f"*Condition:*\n{assessment.analysis}\n\n"
                f"*Causes:*\n{numbered(assessment.probable_causes)}\n\n"
                "_Any questions?_"
            )
        if number == 2:
            return (
                "💊 *Treatment Tips*\n\n"
                "⚠️ Always consult a doctor before taking medications.\n\n"
                f"*Recommended:*\n{bulleted(assessment.home_remedies)}\n\n"
                "*OTC options:* Ask your pharmacist about suitable pain relievers "
                "or symptom-specific medications.\n\n"
                "_Need more info?_"
            )
        if number == 3:
            return (
                "⚠️ *Warning Signs*\n\n"
                "*Seek immediate care if:*\n"
                "• Difficulty breathing\n"
                "• Chest pain\n"
                "• High fever (>103°F/39.4°C)\n"
                "• Confusion\n"
                "• Symptoms rapidly worsen\n\n"
                f"*Your urgency:* {urgency_emoji(assessment.urgency_level)} {assessment.urgency_level.value}\n\n"
                "_How are you feeling now?_"
            )
        return None
