from __future__ import annotations

from triage_core.formatter import ResponseFormatter
from triage_core.messages import NO_ASSESSMENT_MESSAGE, NO_REMEDIES_MESSAGE, QUICK_REPLY_LEGEND
from triage_core.models import Assessment, Channel, ChatReply, UrgencyLevel
from triage_core.rendering import bulleted, numbered, urgency_emoji
from triage_core.safety import SafetyClassifier

ASSESSMENT = Assessment(
    analysis="Likely seasonal allergies.",
    probable_causes=("Pollen", "Dust mites"),
    urgency_level=UrgencyLevel.HIGH,
    home_remedies=("Saline rinse", "Keep windows closed"),
    medical_advice="See a doctor within 24 hours if breathing worsens.",
    disclaimer="This is not a medical diagnosis.",
)


def _formatter(channel: Channel = Channel.WHATSAPP) -> ResponseFormatter:
    return ResponseFormatter(channel, SafetyClassifier())


def test_format_assessment_is_idempotent():
    formatter = _formatter()
    assert formatter.format_assessment(ASSESSMENT) == formatter.format_assessment(ASSESSMENT)
    web = _formatter(Channel.WEB)
    assert web.format_assessment(ASSESSMENT, "voice text") == web.format_assessment(ASSESSMENT, "voice text")


def test_whatsapp_assessment_layout():
    text = _formatter().format_assessment(ASSESSMENT)
    assert text.startswith("⚠️ *Health Assessment*")
    assert "*Summary:*\nLikely seasonal allergies." in text
    assert "1. Pollen\n2. Dust mites" in text
    assert "*Urgency:* 🟠 HIGH" in text
    assert "• Saline rinse\n• Keep windows closed" in text
    assert "*Medical Advice:*\nSee a doctor within 24 hours" in text
    assert QUICK_REPLY_LEGEND in text
    assert text.endswith("_This is not a medical diagnosis._")


def test_voice_transcript_is_prefixed():
    text = _formatter().format_assessment(ASSESSMENT, "my nose is running")
    assert text.startswith('🎤 _"my nose is running"_\n\n')


def test_web_assessment_uses_markdown_and_omits_legend():
    text = _formatter(Channel.WEB).format_assessment(ASSESSMENT)
    assert "**Health Assessment**" in text
    assert "**Summary:**" in text
    assert QUICK_REPLY_LEGEND not in text
    assert "1=Details" not in text
    assert text.endswith("*This is not a medical diagnosis.*")


def test_quick_reply_without_assessment_returns_fixed_message():
    assert _formatter().format_quick_reply(2, None) == NO_ASSESSMENT_MESSAGE


def test_quick_reply_with_assessment_delegates_to_templates():
    text = _formatter().format_quick_reply(2, ASSESSMENT)
    assert "Treatment Tips" in text
    assert "• Saline rinse" in text


def test_more_details_and_remedies():
    formatter = _formatter()
    details = formatter.format_more_details(ASSESSMENT)
    assert details.startswith("📚 *Detailed Assessment*")
    assert details.endswith("_Ask me any follow-up questions!_")
    remedies = formatter.format_remedies(ASSESSMENT)
    assert "1. Saline rinse\n2. Keep windows closed" in remedies
    assert formatter.format_more_details(None) == NO_ASSESSMENT_MESSAGE
    assert formatter.format_remedies(None) == NO_REMEDIES_MESSAGE


def test_chat_reply_gets_followup_only_on_whatsapp():
    reply = ChatReply(reply="How long has it lasted?")
    assert _formatter().format_chat_reply(reply).endswith("_Ask me anything else about your health!_")
    assert _formatter(Channel.WEB).format_chat_reply(reply) == "How long has it lasted?"


def test_tts_text_is_plain_prose():
    text = _formatter().tts_text(ASSESSMENT)
    assert text.startswith("Analysis: Likely seasonal allergies.")
    assert "Probable causes include Pollen, Dust mites." in text
    assert "Urgency level is High." in text
    for marker in ("*", "_", "•", "⚠"):
        assert marker not in text


def test_strip_markup_removes_structure():
    rendered = _formatter().format_assessment(ASSESSMENT)
    stripped = ResponseFormatter.strip_markup(rendered)
    assert "*" not in stripped
    assert "•" not in stripped
    assert "---" not in stripped
    assert "Health Assessment" in stripped
    assert "Saline rinse" in stripped
    assert ResponseFormatter.strip_markup(stripped) == stripped


def test_chat_reply_tts_strips_emphasis():
    assert _formatter().tts_text(ChatReply(reply="Please *rest* and _hydrate_.")) == "Please rest and hydrate."


def test_rendering_helpers():
    assert urgency_emoji(UrgencyLevel.EMERGENCY) == "🚨"
    assert urgency_emoji("unknown") == "📋"
    assert numbered(["a", "b"]) == "1. a\n2. b"
    assert bulleted(("a",)) == "• a"
    assert numbered(()) == ""
