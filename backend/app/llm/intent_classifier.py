"""
Intent Classifier

Maps a shopper's free-text query to an :class:`Intent` using an
ordered list of keyword rules.  The first rule that matches wins, so
the list order is the precedence: e.g. "return" beats "compare", and
"checkout" beats the generic "what/which" search verbs.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional

from backend.app.schema.agent_schema import Intent

logger = logging.getLogger(__name__)

_GREETING_RE = re.compile(
    r"^(hi|hello|hey|good\s*(morning|afternoon|evening)|greetings)\b"
)
# "ar" only as a standalone word; "compare", "search" and "are" contain it.
_AR_WORD_RE = re.compile(r"\bar\b")


def _contains_any(*keywords: str) -> Callable[[str], bool]:
    def predicate(text: str) -> bool:
        return any(k in text for k in keywords)

    return predicate


@dataclass(frozen=True)
class IntentRule:
    """A single classification rule.

    Attributes
    ----------
    name : str
        Short identifier used in logs and tests.
    intent : Intent
        Label returned when the rule matches.
    predicate : Callable[[str], bool]
        Receives the lower-cased, stripped query.
    """

    name: str
    intent: Intent
    predicate: Callable[[str], bool]

    def matches(self, text: str) -> bool:
        return self.predicate(text)


DEFAULT_RULES: tuple[IntentRule, ...] = (
    IntentRule("greeting", Intent.GREETING, lambda t: bool(_GREETING_RE.match(t))),
    IntentRule(
        "order_tracking",
        Intent.ORDER_STATUS,
        _contains_any("track", "order status", "where is my order", "my orders"),
    ),
    IntentRule("returns", Intent.RETURNS, _contains_any("return", "refund", "exchange")),
    IntentRule(
        "checkout",
        Intent.CHECKOUT,
        _contains_any("checkout", "buy now", "place order"),
    ),
    IntentRule(
        "ar_vr",
        Intent.AR_VR,
        lambda t: bool(_AR_WORD_RE.search(t))
        or _contains_any("try on", "virtual", "3d", "view in room")(t),
    ),
    IntentRule(
        "compare",
        Intent.COMPARE,
        _contains_any("compare", "vs", "versus", "difference"),
    ),
    IntentRule(
        "recommend",
        Intent.RECOMMEND,
        _contains_any("recommend", "suggest", "similar", "like this"),
    ),
    IntentRule(
        "availability",
        Intent.AVAILABILITY,
        _contains_any(
            "available", "store", "near me", "offline",
            "bandra", "mumbai", "delhi", "bangalore",
        ),
    ),
    IntentRule(
        "analytics",
        Intent.ANALYTICS,
        _contains_any("analytics", "metrics", "insights", "dashboard"),
    ),
    IntentRule(
        "search",
        Intent.SEARCH,
        _contains_any("search", "find", "looking for", "show me", "what", "which"),
    ),
)


class IntentClassifier:
    """Deterministic, first-match-wins keyword classifier.

    Usage::

        classifier = IntentClassifier()
        classifier.classify("track my order")   # Intent.ORDER_STATUS
    """

    def __init__(
        self,
        rules: tuple[IntentRule, ...] = DEFAULT_RULES,
        default: Intent = Intent.GENERAL,
    ) -> None:
        self._rules = tuple(rules)
        self._default = default

    @property
    def rules(self) -> tuple[IntentRule, ...]:
        return self._rules

    def match(self, query: str) -> Optional[IntentRule]:
        """Return the first rule matching *query*, or ``None``."""
        text = query.lower().strip()
        for rule in self._rules:
            if rule.matches(text):
                return rule
        return None

    def classify(self, query: str) -> Intent:
        rule = self.match(query)
        intent = rule.intent if rule is not None else self._default
        logger.debug(
            "Classified '%s' -> %s (rule=%s)",
            query,
            intent.value,
            rule.name if rule else "default",
        )
        return intent
