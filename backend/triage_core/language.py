from __future__ import annotations

import re

DEFAULT_LANGUAGE = "English"

_DEVANAGARI = re.compile(r"[ऀ-ॿ]")
_SPANISH_WORDS = re.compile(r"\b(hola|tengo|dolor|fiebre|cabeza|estómago)\b", re.IGNORECASE)

SCRIPT_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("Hindi", _DEVANAGARI),
    ("Chinese", re.compile(r"[一-鿿]")),
    ("Japanese", re.compile(r"[぀-ゟ゠-ヿ]")),
    ("Korean", re.compile(r"[가-힯]")),
    ("Arabic", re.compile(r"[؀-ۿ]")),
)


def detect_language(text: str) -> str:
    """Cheap heuristic used on the WhatsApp channel, where no language is supplied."""
    if _DEVANAGARI.search(text or ""):
        return "Hindi"
    if _SPANISH_WORDS.search(text or ""):
        return "Spanish"
    return DEFAULT_LANGUAGE


def detect_script_language(text: str) -> str | None:
    for language, pattern in SCRIPT_PATTERNS:
        if pattern.search(text or ""):
            return language
    return None
