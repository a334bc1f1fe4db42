from __future__ import annotations

from typing import Any

URGENCY_EMOJI = {
    "emergency": "🚨",
    "high": "⚠️",
    "medium": "🟡",
    "low": "🟢",
}


def urgency_emoji(level: Any) -> str:
    value = getattr(level, "value", level)
    return URGENCY_EMOJI.get(str(value or "").lower(), "📋")


def numbered(items: tuple[str, ...] | list[str]) -> str:
    return "\n".join(f"{index}. {item}" for index, item in enumerate(items, start=1))


def bulleted(items: tuple[str, ...] | list[str]) -> str:
    return "\n".join(f"• {item}" for item in items)
