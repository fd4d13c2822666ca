"""
Sentiment Classifier

Scores the emotional polarity of a shopper's message and flags it
for human escalation.  Three layers are tried in order:

1. Explicit escalation phrases ("speak to human", "lawyer", ...).
2. A single LLM call returning ``{score, label, reason}`` as JSON.
3. Additive keyword scoring.

Sentiment must never block the chat pipeline, so LLM failures and
malformed replies silently drop to the keyword layer.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from backend.app.llm.llm_client import ChatClient, parse_json
from backend.app.llm.prompts import SENTIMENT_PROMPT
from backend.app.schema.agent_schema import SentimentLabel, SentimentResult

logger = logging.getLogger(__name__)

ESCALATION_PHRASES: tuple[str, ...] = (
    "speak to human",
    "talk to agent",
    "real person",
    "manager",
    "complaint",
    "terrible",
    "worst",
    "sue",
    "lawyer",
    "refund now",
)

POSITIVE_WORDS: tuple[str, ...] = (
    "thanks", "great", "awesome", "love", "perfect",
    "excellent", "happy", "satisfied",
)

NEGATIVE_WORDS: tuple[str, ...] = (
    "bad", "terrible", "awful", "hate", "disappointed",
    "frustrated", "angry", "worst", "broken",
)

POSITIVE_WEIGHT = 0.2
NEGATIVE_WEIGHT = -0.3
EXPLICIT_ESCALATION_SCORE = -0.8
LABEL_MARGIN = 0.1
DEFAULT_ESCALATE_THRESHOLD = -0.5


def _clamp(score: float) -> float:
    return max(-1.0, min(1.0, score))


def label_for(score: float) -> SentimentLabel:
    if score > LABEL_MARGIN:
        return SentimentLabel.POSITIVE
    if score < -LABEL_MARGIN:
        return SentimentLabel.NEGATIVE
    return SentimentLabel.NEUTRAL


class SentimentClassifier:
    """Keyword-first sentiment scorer with an optional LLM layer.

    Usage::

        classifier = SentimentClassifier(client=ChatClient())
        result = classifier.analyze("This is the worst service ever")
        result.needs_escalation   # True
    """

    def __init__(
        self,
        client: Optional[ChatClient] = None,
        escalate_threshold: float = DEFAULT_ESCALATE_THRESHOLD,
    ) -> None:
        self._client = client
        self.escalate_threshold = escalate_threshold

    def analyze(self, message: str) -> SentimentResult:
        lowered = message.lower()

        for phrase in ESCALATION_PHRASES:
            if phrase in lowered:
                return SentimentResult(
                    score=EXPLICIT_ESCALATION_SCORE,
                    label=SentimentLabel.NEGATIVE,
                    needs_escalation=True,
                    reason="Explicit escalation request detected",
                )

        llm_result = self._analyze_with_llm(message)
        if llm_result is not None:
            return llm_result

        return self.keyword_analysis(message)

    def keyword_analysis(self, message: str) -> SentimentResult:
        """Additive keyword scoring used when the LLM is unavailable."""
        lowered = message.lower()
        score = 0.0
        for word in POSITIVE_WORDS:
            if word in lowered:
                score += POSITIVE_WEIGHT
        for word in NEGATIVE_WORDS:
            if word in lowered:
                score += NEGATIVE_WEIGHT

        score = round(_clamp(score), 4)
        return SentimentResult(
            score=score,
            label=label_for(score),
            needs_escalation=score < self.escalate_threshold,
            reason="Keyword-based analysis",
        )

    def _analyze_with_llm(self, message: str) -> Optional[SentimentResult]:
        if self._client is None or not self._client.is_available():
            return None

        try:
            raw = self._client.chat(
                SENTIMENT_PROMPT.format(message=message),
                temperature=0.3,
                max_tokens=150,
            )
        except Exception as exc:
            logger.warning("Sentiment LLM call failed, using keywords: %s", exc)
            return None

        return self._result_from_payload(parse_json(raw))

    def _result_from_payload(self, parsed: dict[str, Any]) -> Optional[SentimentResult]:
        score = parsed.get("score")
        if isinstance(score, bool) or not isinstance(score, (int, float)):
            if parsed:
                logger.warning("Sentiment LLM reply had no numeric score: %s", parsed)
            return None

        score = _clamp(float(score))
        try:
            label = SentimentLabel(str(parsed.get("label", "")).lower())
        except ValueError:
            label = label_for(score)

        return SentimentResult(
            score=score,
            label=label,
            needs_escalation=score < self.escalate_threshold,
            reason=str(parsed.get("reason") or ""),
        )
