"""
Analytics Store

In-memory log of assistant interactions and the KPIs derived from it:

    - containment rate   : share of recent queries resolved without escalation
    - average sentiment  : mean over the recent sentiment history
    - intent / agent mix : frequency counts over recent interactions
    - popular queries    : case- and whitespace-folded query counts
    - insights           : threshold-based warnings and highlights

All metrics are computed on demand over fixed-size windows, so reads
never grow with total traffic.  In production this would be backed by
a dedicated analytics database or Redis.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Literal, Optional

import numpy as np
import pandas as pd

from backend.app.engine.bounded_log import BoundedLog
from backend.app.schema.agent_schema import (
    DashboardMetrics,
    Insight,
    Intent,
    IntentShare,
    Interaction,
    PopularQuery,
)

logger = logging.getLogger(__name__)

# Read windows.
CONTAINMENT_WINDOW = 100
DISTRIBUTION_WINDOW = 500

# KPI targets.
CONTAINMENT_TARGET = 0.85
NEGATIVE_SENTIMENT_ALERT = -0.2
POSITIVE_SENTIMENT_HIGHLIGHT = 0.3


class AnalyticsStore:
    """Bounded interaction log plus on-demand dashboard metrics.

    Parameters
    ----------
    interaction_capacity : int
        Maximum interactions retained; the oldest is evicted first.
    history_capacity : int
        Maximum entries in each of the sentiment and query histories.

    Usage::

        analytics = AnalyticsStore()
        analytics.log_interaction({"query": "show me shoes", "intent": "search"})
        metrics = analytics.get_dashboard_metrics()
    """

    def __init__(
        self,
        interaction_capacity: int = 10_000,
        history_capacity: int = 1_000,
    ) -> None:
        self._interactions: BoundedLog[Interaction] = BoundedLog(interaction_capacity)
        self._sentiment_history: BoundedLog[dict[str, Any]] = BoundedLog(history_capacity)
        self._query_history: BoundedLog[dict[str, Any]] = BoundedLog(history_capacity)
        self._total = 0
        self._counter_lock = threading.Lock()

    # Recording

    def log_interaction(self, data: dict[str, Any]) -> str:
        """Record one interaction and return its ID.

        *data* may carry ``query``, ``intent``, ``agent_used``,
        ``response_time_ms``, ``sentiment``, ``success``, ``products``
        (a list, only its length is kept), ``user_id`` and ``session_id``.
        """
        interaction = Interaction(
            id=f"INT-{uuid.uuid4().hex[:12]}",
            user_id=data.get("user_id") or "anonymous",
            query=data.get("query"),
            intent=data.get("intent"),
            agent_used=data.get("agent_used"),
            response_time_ms=data.get("response_time_ms") or 0.0,
            sentiment=data.get("sentiment"),
            success=data.get("success") is not False,
            product_count=len(data.get("products") or []),
            session_id=data.get("session_id"),
        )

        self._interactions.append(interaction)
        with self._counter_lock:
            self._total += 1

        timestamp = interaction.timestamp.isoformat()
        if interaction.sentiment is not None:
            self._sentiment_history.append(
                {"score": interaction.sentiment.score, "timestamp": timestamp}
            )
        if interaction.query:
            self._query_history.append(
                {
                    "query": interaction.query,
                    "intent": interaction.intent,
                    "timestamp": timestamp,
                }
            )

        logger.debug(
            "Logged interaction %s (intent=%s, agent=%s, success=%s)",
            interaction.id,
            interaction.intent,
            interaction.agent_used,
            interaction.success,
        )
        return interaction.id

    # Metrics

    @property
    def total_interactions(self) -> int:
        """Interactions ever logged, including evicted ones."""
        with self._counter_lock:
            return self._total

    def __len__(self) -> int:
        return len(self._interactions)

    def recent_interactions(self, last: Optional[int] = None) -> list[Interaction]:
        return self._interactions.read(last)

    def get_containment_rate(self) -> float:
        """Share of the last 100 interactions that were not escalated."""
        recent = self._interactions.read(CONTAINMENT_WINDOW)
        if not recent:
            return 1.0
        escalated = sum(1 for i in recent if i.intent == Intent.ESCALATION)
        return 1 - escalated / len(recent)

    def get_average_sentiment(self) -> float:
        scores = [entry["score"] for entry in self._sentiment_history.read()]
        if not scores:
            return 0.0
        return float(np.mean(scores))

    def get_popular_queries(self, limit: int = 10) -> list[PopularQuery]:
        """Most frequent queries, folded to lower case and trimmed."""
        counts = Counter(
            entry["query"].lower().strip() for entry in self._query_history.read()
        )
        return [
            PopularQuery(query=query, count=count)
            for query, count in counts.most_common(limit)
        ]

    def get_intent_distribution(self) -> list[IntentShare]:
        intents = [
            i.intent.value
            for i in self._interactions.read(DISTRIBUTION_WINDOW)
            if i.intent is not None
        ]
        if not intents:
            return []

        counts = pd.Series(intents).value_counts(sort=False)
        total = int(counts.sum())
        return [
            IntentShare(
                intent=str(intent),
                count=int(count),
                percentage=round(100 * int(count) / total, 1),
            )
            for intent, count in counts.items()
        ]

    def get_agent_usage(self) -> dict[str, int]:
        agents = [
            i.agent_used
            for i in self._interactions.read(DISTRIBUTION_WINDOW)
            if i.agent_used
        ]
        return dict(Counter(agents))

    def generate_insights(self) -> list[Insight]:
        insights: list[Insight] = []

        avg_sentiment = self.get_average_sentiment()
        if avg_sentiment < NEGATIVE_SENTIMENT_ALERT:
            insights.append(Insight(
                type="warning",
                category="sentiment",
                message=(
                    "Customer sentiment is trending negative. "
                    "Consider reviewing recent interactions."
                ),
                value=round(avg_sentiment, 2),
            ))
        elif avg_sentiment > POSITIVE_SENTIMENT_HIGHLIGHT:
            insights.append(Insight(
                type="positive",
                category="sentiment",
                message="Customer sentiment is positive! Keep up the good work.",
                value=round(avg_sentiment, 2),
            ))

        containment = self.get_containment_rate()
        if containment < CONTAINMENT_TARGET:
            insights.append(Insight(
                type="warning",
                category="containment",
                message=(
                    f"Containment rate ({containment * 100:.1f}%) is below "
                    f"target ({CONTAINMENT_TARGET * 100:.0f}%)."
                ),
                value=containment,
            ))

        top = self.get_popular_queries(3)
        if top:
            insights.append(Insight(
                type="info",
                category="trending",
                message=f"Top searches: {', '.join(q.query for q in top)}",
                data=[q.model_dump() for q in top],
            ))

        return insights

    def get_dashboard_metrics(self) -> DashboardMetrics:
        return DashboardMetrics(
            total_interactions=self.total_interactions,
            containment_rate=self.get_containment_rate(),
            average_sentiment=self.get_average_sentiment(),
            intent_distribution=self.get_intent_distribution(),
            agent_usage=self.get_agent_usage(),
            popular_queries=self.get_popular_queries(5),
            insights=self.generate_insights(),
        )

    # Export

    def export_data(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        fmt: Literal["json", "summary"] = "json",
    ) -> list[dict[str, Any]] | dict[str, Any]:
        """Return retained interactions in ``[start_date, end_date]``.

        ``fmt="summary"`` returns counts, the covered date range and the
        current dashboard metrics instead of the raw records.
        """
        data = [
            i for i in self._interactions.read()
            if (start_date is None or i.timestamp >= _as_utc(start_date))
            and (end_date is None or i.timestamp <= _as_utc(end_date))
        ]

        if fmt == "summary":
            return {
                "total": len(data),
                "date_range": {
                    "start": data[0].timestamp.isoformat() if data else None,
                    "end": data[-1].timestamp.isoformat() if data else None,
                },
                "metrics": self.get_dashboard_metrics().model_dump(mode="json"),
            }

        return [i.model_dump(mode="json") for i in data]

    def reset(self) -> None:
        """Clear all state.  Intended for test teardown."""
        self._interactions.clear()
        self._sentiment_history.clear()
        self._query_history.clear()
        with self._counter_lock:
            self._total = 0
        logger.info("Analytics store reset.")


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
