from __future__ import annotations

import re
import unicodedata

from .messages import (
    CHAT_FOLLOWUP,
    NO_ASSESSMENT_MESSAGE,
    NO_REMEDIES_MESSAGE,
    QUICK_REPLY_LEGEND,
)
from .models import Assessment, Channel, ChatReply
from .rendering import bulleted, numbered, urgency_emoji
from .safety import SafetyClassifier

URGENCY_INDICATORS = {
    "emergency": "🔴 EMERGENCY",
    "high": "🟠 HIGH",
    "medium": "🟡 MEDIUM",
    "low": "🟢 LOW",
}


def urgency_indicator(level: object) -> str:
    value = getattr(level, "value", level)
    return URGENCY_INDICATORS.get(str(value or "").lower(), "⚪ UNKNOWN")


class ResponseFormatter:
    """Renders engine and classifier output for one channel.

    WhatsApp text uses WhatsApp markup (``*bold*``, ``_italic_``) and carries the quick-reply
    legend. The web channel receives the same content as Markdown, without the legend.
    Every method is a pure function of its arguments.
    """

    BOLD_PATTERN = re.compile(r"(?<!\*)\*([^*\n]+)\*(?!\*)")
    ITALIC_PATTERN = re.compile(r"(?<![\w])_([^_\n]+)_(?![\w])")
    BULLET_PATTERN = re.compile(r"^\s*(?:•|-|\*)\s+", re.MULTILINE)
    RULE_PATTERN = re.compile(r"^\s*-{3,}\s*$", re.MULTILINE)
    HEADER_PATTERN = re.compile(r"^\s*#+\s*", re.MULTILINE)

    def __init__(self, channel: Channel, classifier: SafetyClassifier) -> None:
        self.channel = channel
        self.classifier = classifier

    def _render(self, text: str) -> str:
        if self.channel is Channel.WHATSAPP:
            return text
        bold = self.BOLD_PATTERN.sub(r"**\1**", text)
        return self.ITALIC_PATTERN.sub(r"*\1*", bold)

    def render_template(self, text: str) -> str:
        return self._render(text)

    def format_assessment(self, assessment: Assessment, voice_transcript: str | None = None) -> str:
        voice_note = f'🎤 _"{voice_transcript}"_\n\n' if voice_transcript else ""
        sections = [
            f"{urgency_emoji(assessment.urgency_level)} *Health Assessment*",
            f"*Summary:*\n{assessment.analysis}",
            f"*Possible Causes:*\n{numbered(assessment.probable_causes)}",
            f"*Urgency:* {urgency_indicator(assessment.urgency_level)}",
            f"*Home Care:*\n{bulleted(assessment.home_remedies)}",
            f"*Medical Advice:*\n{assessment.medical_advice}",
        ]
        footer = ["---"]
        if self.channel is Channel.WHATSAPP:
            footer.append(QUICK_REPLY_LEGEND)
        body = "\n\n".join(sections) + "\n\n" + "\n".join(footer) + f"\n\n_{assessment.disclaimer}_"
        return self._render(voice_note + body)

    def format_chat_reply(self, reply: ChatReply, voice_transcript: str | None = None) -> str:
        voice_note = f'🎤 _Voice: "{voice_transcript}"_\n\n' if voice_transcript else ""
        followup = CHAT_FOLLOWUP if self.channel is Channel.WHATSAPP else ""
        return self._render(voice_note + reply.reply + followup)

    def format_quick_reply(self, number: int, assessment: Assessment | None) -> str:
        text = self.classifier.handle_quick_reply(number, assessment)
        return self._render(text if text is not None else NO_ASSESSMENT_MESSAGE)

    def format_more_details(self, assessment: Assessment | None) -> str:
        if assessment is None:
            return self._render(NO_ASSESSMENT_MESSAGE)
        return self._render(
            "📚 *Detailed Assessment*\n\n"
            f"*Analysis:*\n{assessment.analysis}\n\n"
            f"*Causes:*\n{numbered(assessment.probable_causes)}\n\n"
            f"*Home Remedies:*\n{bulleted(assessment.home_remedies)}\n\n"
            f"*When to see a doctor:*\n{assessment.medical_advice}\n\n"
            "_Ask me any follow-up questions!_"
        )

    def format_remedies(self, assessment: Assessment | None) -> str:
        if assessment is None or not assessment.home_remedies:
            return self._render(NO_REMEDIES_MESSAGE)
        return self._render(
            "🌿 *Home Remedies*\n\n"
            f"{numbered(assessment.home_remedies)}\n\n"
            "_See a doctor if symptoms persist beyond 3-5 days._"
        )

    def tts_text(self, result: Assessment | ChatReply | str) -> str:
        if isinstance(result, Assessment):
            parts = [f"Analysis: {result.analysis}"]
            if result.probable_causes:
                parts.append(f"Probable causes include {', '.join(result.probable_causes)}.")
            parts.append(f"Urgency level is {result.urgency_level.value}.")
            parts.append(f"Medical advice: {result.medical_advice}")
            return self.strip_markup(" ".join(parts))
        if isinstance(result, ChatReply):
            return self.strip_markup(result.reply)
        return self.strip_markup(result)

    @classmethod
    def strip_markup(cls, text: str) -> str:
        cleaned = cls.RULE_PATTERN.sub("", text or "")
        cleaned = cls.HEADER_PATTERN.sub("", cleaned)
        cleaned = cls.BULLET_PATTERN.sub("", cleaned)
        cleaned = cleaned.replace("**", "").replace("*", "")
        cleaned = cls.ITALIC_PATTERN.sub(r"\1", cleaned)
        cleaned = "".join(
            char for char in cleaned if unicodedata.category(char) != "So" and char not in "\ufe0f\u200d"
        )
        lines = [re.sub(r"[ \t]+", " ", line).strip() for line in cleaned.splitlines()]
        return "\n".join(line for line in lines if line)
