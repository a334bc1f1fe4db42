from __future__ import annotations

import json
import logging
from typing import Any, Iterator, Sequence

from memory.models import Message

from .collaborators import TextGenerator
from .errors import ParseRecovered
from .messages import DEFAULT_DISCLAIMER, DEFAULT_MEDICAL_ADVICE, DEGRADED_DISCLAIMER, GATHERING_FALLBACK_REPLY
from .models import Assessment, ChatReply, Degraded, EngineResult, GenerationParams, Intent, UrgencyLevel

logger = logging.getLogger(__name__)

DEFAULT_ASSESS_AFTER_USER_TURNS = 2
DEFAULT_HISTORY_WINDOW = 6
MAX_PROMPT_KEYWORDS = 5

GATHERING = "gathering"
ASSESSING = "assessing"

SAFETY_PREAMBLE = """You are Dr. Health, a compassionate and knowledgeable AI medical assistant. You provide thorough, detailed health guidance.

EMERGENCY SIGNS: heart attack, chest pain, cardiac symptoms, can't breathe, difficulty breathing, choking, stroke, face drooping, arm weakness, slurred speech, severe bleeding, unconscious, seizure, suicidal thoughts, overdose, anaphylaxis, severe allergic reaction.
For ANY emergency, skip ALL questions and provide an immediate Emergency assessment.

You never give a definitive diagnosis. Offer probable causes only and always recommend professional care when in doubt."""

URGENCY_POLICY = """URGENCY LEVELS:
- Low: Self-care at home (cold, minor headache, small cuts)
- Medium: See doctor within 2-3 days (persistent fever, infections)
- High: See doctor within 24 hours (high fever >103°F, severe pain, concerning symptoms)
- Emergency: Call 911/emergency services NOW (heart attack, stroke, severe bleeding, can't breathe)"""

GATHERING_INSTRUCTION = (
    "- This is early in the conversation. Ask 1-2 caring follow-up questions about duration, "
    "severity (1-10), other symptoms, or triggers."
)
ASSESSING_INSTRUCTION = "- The user has provided enough information. Provide a detailed assessment now."
EMERGENCY_INSTRUCTION = (
    "- The user described an emergency. Provide an Emergency assessment now with immediate actions "
    "while waiting for help."
)

CHAT_CONTRACT = (
    '{"type":"chat","reply":"I understand you\'re experiencing [symptom]. To help you better, could you tell me: '
    '1) How long have you had this? 2) On a scale of 1-10, how severe is it?"}'
)

ASSESSMENT_CONTRACT = """{
  "type":"assessment",
  "data":{
    "analysis":"[3-4 detailed sentences explaining the condition and why the symptoms occur]",
    "probable_causes":["[Most likely cause]","[Second possibility]","[Third possibility]"],
    "urgency_level":"[Low/Medium/High/Emergency]",
    "home_remedies":["[Specific actionable remedy]","[What to avoid]","[Lifestyle adjustment]"],
    "medical_advice":"[When to see a doctor, which specialist, warning signs to watch for]",
    "disclaimer":"%s"
  }
}""" % DEFAULT_DISCLAIMER

INTENT_HINTS = {
    Intent.HELP_REQUEST: "The user is asking for help; explain what information you need from them.",
    Intent.QUESTION: "The user asked a question; answer it directly before anything else.",
}


def iter_json_objects(raw_text: str) -> Iterator[dict[str, Any]]:
    """Yield every balanced ``{...}`` span that parses as a JSON object, left to right.

    Braces inside JSON string literals do not count towards depth, so prose such as code
    fences or a leading sentence around the document is tolerated.
    """
    text = (raw_text or "").strip()
    if not text:
        return
    try:
        payload = json.loads(text)
        if isinstance(payload, dict):
            yield payload
            return
    except json.JSONDecodeError:
        pass

    for start_idx in [idx for idx, char in enumerate(text) if char == "{"]:
        depth = 0
        in_string = False
        escaped = False
        for end_idx in range(start_idx, len(text)):
            char = text[end_idx]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
            if depth == 0:
                candidate = text[start_idx : end_idx + 1]
                try:
                    payload = json.loads(candidate)
                except json.JSONDecodeError:
                    break
                if isinstance(payload, dict):
                    yield payload
                break


def extract_json_object(raw_text: str) -> dict[str, Any] | None:
    return next(iter_json_objects(raw_text), None)


def _string_list(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        cleaned = value.strip()
        return (cleaned,) if cleaned else ()
    if isinstance(value, (list, tuple)):
        return tuple(str(item).strip() for item in value if item is not None and str(item).strip())
    return ()


def _text(value: Any, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def parse_assessment(data: dict[str, Any]) -> Assessment:
    analysis = data.get("analysis")
    if not isinstance(analysis, str) or not analysis.strip():
        raise ParseRecovered("Assessment is missing its analysis.")
    return Assessment(
        analysis=analysis.strip(),
        probable_causes=_string_list(data.get("probable_causes")),
        urgency_level=UrgencyLevel.coerce(data.get("urgency_level")),
        home_remedies=_string_list(data.get("home_remedies")),
        medical_advice=_text(data.get("medical_advice"), DEFAULT_MEDICAL_ADVICE),
        disclaimer=_text(data.get("disclaimer"), DEFAULT_DISCLAIMER),
    )


def interpret_payload(payload: dict[str, Any]) -> Assessment | ChatReply:
    declared = str(payload.get("type") or "").strip().lower()
    reply = payload.get("reply")
    data = payload.get("data")

    if declared == "chat":
        if isinstance(reply, str) and reply.strip():
            return ChatReply(reply=reply.strip())
        raise ParseRecovered("Chat payload has no reply text.")
    if declared == "assessment":
        if isinstance(data, dict):
            return parse_assessment(data)
        if "analysis" in payload:
            return parse_assessment(payload)
        raise ParseRecovered("Assessment payload has no data object.")
    if declared:
        raise ParseRecovered(f"Unknown payload type '{declared}'.")

    if isinstance(reply, str) and reply.strip():
        return ChatReply(reply=reply.strip())
    if isinstance(data, dict):
        return parse_assessment(data)
    if "analysis" in payload:
        return parse_assessment(payload)
    raise ParseRecovered("Payload has no recognizable type, reply or data.")


class AssessmentEngine:
    def __init__(
        self,
        generator: TextGenerator,
        *,
        assess_after_user_turns: int = DEFAULT_ASSESS_AFTER_USER_TURNS,
        history_window: int = DEFAULT_HISTORY_WINDOW,
        params: GenerationParams | None = None,
    ) -> None:
        if assess_after_user_turns < 1:
            raise ValueError("assess_after_user_turns must be at least 1")
        if history_window < 1:
            raise ValueError("history_window must be at least 1")
        self.generator = generator
        self.assess_after_user_turns = assess_after_user_turns
        self.history_window = history_window
        self.params = params or GenerationParams()

    def state_for(self, history: Sequence[Message], *, emergency: bool = False, force_assessment: bool = False) -> str:
        if emergency or force_assessment:
            return ASSESSING
        user_turns = sum(1 for message in history if message.role == "user")
        return ASSESSING if user_turns >= self.assess_after_user_turns else GATHERING

    def build_prompt(
        self,
        history: Sequence[Message],
        language: str,
        *,
        state: str,
        intent: Intent | None = None,
        emergency: bool = False,
    ) -> str:
        if emergency:
            flow = EMERGENCY_INSTRUCTION
        elif state == ASSESSING:
            flow = ASSESSING_INSTRUCTION
        else:
            flow = GATHERING_INSTRUCTION
        hint = INTENT_HINTS.get(intent) if intent else None
        if hint:
            flow = f"{flow}\n- {hint}"

        if state == ASSESSING:
            contract = f"FOR DETAILED ASSESSMENT:\n{ASSESSMENT_CONTRACT}"
        else:
            contract = f"FOR FOLLOW-UP (gathering info):\n{CHAT_CONTRACT}"

        system_prompt = "\n\n".join(
            [
                SAFETY_PREAMBLE,
                f"CONVERSATION FLOW:\n{flow}",
                f"Language: Respond entirely in {language}.",
                "OUTPUT - Return ONLY valid JSON (no markdown, no backticks, no extra text):",
                contract,
                URGENCY_POLICY,
            ]
        )
        recent = list(history)[-self.history_window :]
        conversation = "\n\n".join(self._render_line(message) for message in recent)
        return f"System: {system_prompt}\n\nChat History:\n{conversation}\n\nAssistant:"

    @staticmethod
    def _render_line(message: Message) -> str:
        if message.role == "user":
            content = message.content
            if message.nlu and message.nlu.keywords:
                content = f"{content} [Keywords: {', '.join(message.nlu.keywords[:MAX_PROMPT_KEYWORDS])}]"
            return f"User: {content}"
        return f"Assistant: {message.content}"

    def analyze(
        self,
        history: Sequence[Message],
        language: str,
        *,
        intent: Intent | None = None,
        emergency: bool = False,
        force_assessment: bool = False,
    ) -> EngineResult:
        """Run one generation turn over ``history`` and recover a typed result.

        Collaborator failures (``ModelUnavailable``/``ModelTimeout``) propagate. Output that
        does not match the contract never does: it comes back wrapped in ``Degraded``.
        """
        state = self.state_for(history, emergency=emergency, force_assessment=force_assessment)
        prompt = self.build_prompt(history, language, state=state, intent=intent, emergency=emergency)
        raw_text = self.generator.generate(prompt, self.params)
        logger.debug("Raw model output (%s): %s", state, raw_text)

        try:
            result = self.parse(raw_text)
        except ParseRecovered as exc:
            logger.warning("Model output did not match the contract (%s): %s", state, exc)
            return Degraded(
                result=self.fallback(state, raw_text, emergency=emergency),
                raw_text=raw_text,
                reason=str(exc),
            )

        if emergency and isinstance(result, Assessment) and result.urgency_level is not UrgencyLevel.EMERGENCY:
            result = Assessment(
                analysis=result.analysis,
                probable_causes=result.probable_causes,
                urgency_level=UrgencyLevel.EMERGENCY,
                home_remedies=result.home_remedies,
                medical_advice=result.medical_advice,
                disclaimer=result.disclaimer,
            )
        return result

    @staticmethod
    def parse(raw_text: str) -> Assessment | ChatReply:
        last_error: ParseRecovered | None = None
        for payload in iter_json_objects(raw_text):
            try:
                return interpret_payload(payload)
            except ParseRecovered as exc:
                last_error = exc
        if last_error is None:
            raise ParseRecovered("No JSON object found in model output.")
        raise last_error

    @staticmethod
    def fallback(state: str, raw_text: str, *, emergency: bool = False) -> Assessment | ChatReply:
        if state == GATHERING:
            return ChatReply(reply=GATHERING_FALLBACK_REPLY)
        return Assessment(
            analysis=raw_text,
            probable_causes=(),
            urgency_level=UrgencyLevel.EMERGENCY if emergency else UrgencyLevel.MEDIUM,
            home_remedies=(),
            medical_advice=DEFAULT_MEDICAL_ADVICE,
            disclaimer=DEGRADED_DISCLAIMER,
        )
