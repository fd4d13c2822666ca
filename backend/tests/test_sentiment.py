"""
Tests for the sentiment classifier: escalation phrases, the LLM layer
and the keyword fallback.
"""

from __future__ import annotations

import pytest

from backend.app.llm.sentiment import (
    ESCALATION_PHRASES,
    EXPLICIT_ESCALATION_SCORE,
    SentimentClassifier,
    label_for,
)
from backend.app.schema.agent_schema import SentimentLabel
from backend.tests.fakes import FakeChatClient


@pytest.fixture
def keyword_only() -> SentimentClassifier:
    return SentimentClassifier(FakeChatClient(available=False))


class TestEscalationPhrases:
    @pytest.mark.parametrize("phrase", ESCALATION_PHRASES)
    def test_every_phrase_escalates(self, keyword_only, phrase):
        result = keyword_only.analyze(f"Honestly, {phrase.upper()} please")
        assert result.needs_escalation is True
        assert result.score == EXPLICIT_ESCALATION_SCORE
        assert result.label == SentimentLabel.NEGATIVE

    def test_phrase_short_circuits_llm(self):
        client = FakeChatClient(default='{"score": 0.9, "label": "positive"}')
        result = SentimentClassifier(client).analyze("Let me talk to agent right now")

        assert result.needs_escalation is True
        assert client.prompts == []


class TestKeywordAnalysis:
    def test_positive_message(self, keyword_only):
        result = keyword_only.analyze("Thanks, this is great")
        assert result.score == pytest.approx(0.4)
        assert result.label == SentimentLabel.POSITIVE
        assert result.needs_escalation is False

    def test_mildly_negative_message_is_not_escalated(self, keyword_only):
        result = keyword_only.analyze("I am disappointed with the colour")
        assert result.score == pytest.approx(-0.3)
        assert result.label == SentimentLabel.NEGATIVE
        assert result.needs_escalation is False

    def test_strongly_negative_message_is_escalated(self, keyword_only):
        result = keyword_only.analyze("The zip is bad and the strap is broken")
        assert result.score == pytest.approx(-0.6)
        assert result.needs_escalation is True

    def test_neutral_message(self, keyword_only):
        result = keyword_only.analyze("show me blue jeans")
        assert result.score == 0.0
        assert result.label == SentimentLabel.NEUTRAL

    def test_score_clamped_low(self, keyword_only):
        result = keyword_only.analyze("bad awful hate disappointed frustrated angry broken")
        assert result.score == -1.0

    def test_score_clamped_high(self, keyword_only):
        result = keyword_only.analyze(
            "thanks great awesome love perfect excellent happy satisfied"
        )
        assert result.score == 1.0

    def test_custom_threshold(self):
        strict = SentimentClassifier(None, escalate_threshold=-0.2)
        assert strict.analyze("I am disappointed").needs_escalation is True


class TestLLMLayer:
    def test_fenced_llm_reply_is_used(self):
        client = FakeChatClient(
            default='```json\n{"score": 0.6, "label": "positive", "reason": "pleased"}\n```'
        )
        result = SentimentClassifier(client).analyze("the delivery was quick")

        assert result.score == pytest.approx(0.6)
        assert result.label == SentimentLabel.POSITIVE
        assert result.reason == "pleased"
        assert len(client.prompts) == 1

    def test_llm_score_is_clamped(self):
        client = FakeChatClient(default='{"score": -5, "label": "negative"}')
        result = SentimentClassifier(client).analyze("the delivery was late")

        assert result.score == -1.0
        assert result.needs_escalation is True

    def test_unknown_label_derived_from_score(self):
        client = FakeChatClient(default='{"score": -0.3, "label": "mixed"}')
        result = SentimentClassifier(client).analyze("so-so experience")
        assert result.label == SentimentLabel.NEGATIVE

    def test_non_json_reply_falls_back_to_keywords(self):
        client = FakeChatClient(default="The customer seems happy.")
        result = SentimentClassifier(client).analyze("thanks!")

        assert result.reason == "Keyword-based analysis"
        assert result.score == pytest.approx(0.2)

    def test_missing_score_falls_back_to_keywords(self):
        client = FakeChatClient(default='{"label": "positive"}')
        result = SentimentClassifier(client).analyze("great")
        assert result.reason == "Keyword-based analysis"

    def test_llm_error_falls_back_to_keywords(self):
        client = FakeChatClient(error=RuntimeError("timeout"))
        result = SentimentClassifier(client).analyze("I love it")

        assert result.reason == "Keyword-based analysis"
        assert result.label == SentimentLabel.POSITIVE


class TestLabelFor:
    @pytest.mark.parametrize(
        "score, label",
        [
            (0.5, SentimentLabel.POSITIVE),
            (0.1, SentimentLabel.NEUTRAL),
            (-0.1, SentimentLabel.NEUTRAL),
            (-0.11, SentimentLabel.NEGATIVE),
        ],
    )
    def test_margins(self, score, label):
        assert label_for(score) == label
