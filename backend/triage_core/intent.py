from __future__ import annotations

import logging
import re

from memory.models import NLUAnnotation

from .collaborators import LanguageAnalyzer
from .models import Intent, IntentResult, NLUAnalysis

logger = logging.getLogger(__name__)


class IntentAdapter:
    """Maps NLU keyword and category signals onto routing intents.

    NLU downtime never blocks a conversation: any failure classifies the message as a
    symptom description with an empty annotation.
    """

    HELP_PATTERN = re.compile(r"help|assist", re.IGNORECASE)
    HEALTH_CATEGORY_PATTERN = re.compile(r"health|medicine", re.IGNORECASE)
    END_PATTERN = re.compile(r"thank|bye", re.IGNORECASE)
    QUESTION_PATTERN = re.compile(r"\?|\bwhat\b|\bhow\b", re.IGNORECASE)

    def __init__(self, nlu: LanguageAnalyzer | None) -> None:
        self.nlu = nlu

    def classify(self, text: str) -> IntentResult:
        if self.nlu is None:
            return self._fallback()
        try:
            analysis = self.nlu.analyze(text)
        except Exception as exc:
            logger.warning("NLU unavailable, defaulting to symptom_description: %s", exc)
            return self._fallback()
        return IntentResult(intent=self.infer(text, analysis), annotation=analysis.annotation())

    def infer(self, text: str, analysis: NLUAnalysis) -> Intent:
        keyword_text = " ".join(analysis.keywords)
        if self.HELP_PATTERN.search(keyword_text):
            return Intent.HELP_REQUEST
        if any(self.HEALTH_CATEGORY_PATTERN.search(category) for category in analysis.categories):
            return Intent.SYMPTOM_DESCRIPTION
        if self.END_PATTERN.search(keyword_text):
            return Intent.CONVERSATION_END
        if "?" in (text or "") or self.QUESTION_PATTERN.search(keyword_text):
            return Intent.QUESTION
        return Intent.SYMPTOM_DESCRIPTION

    @staticmethod
    def _fallback() -> IntentResult:
        return IntentResult(intent=Intent.SYMPTOM_DESCRIPTION, annotation=NLUAnnotation(), degraded=True)
