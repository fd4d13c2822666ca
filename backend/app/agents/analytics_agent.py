"""
Analytics Agent

Answers admin questions about assistant usage from the analytics
store: dashboard metrics, insights and trends.  It only reads; the
orchestrator is the single writer of interaction records.
"""

from __future__ import annotations

import logging

from backend.app.agents.base_agent import BaseAgent
from backend.app.engine.analytics_store import AnalyticsStore
from backend.app.schema.agent_schema import AgentResponse, QueryContext

logger = logging.getLogger(__name__)


class AnalyticsAgent(BaseAgent):
    name = "analyticsEngine"

    def __init__(self, analytics: AnalyticsStore) -> None:
        self._analytics = analytics

    def process(self, query: str, context: QueryContext) -> AgentResponse:
        lowered = query.lower()

        if any(w in lowered for w in ("metrics", "dashboard", "stats")):
            metrics = self._analytics.get_dashboard_metrics()
            return self.respond(
                f"Here are the current analytics: {metrics.total_interactions} total "
                f"interactions, {metrics.containment_rate * 100:.1f}% containment rate.",
                payload={"metrics": metrics.model_dump(mode="json")},
            )

        if "insight" in lowered or "trend" in lowered:
            insights = self._analytics.generate_insights()
            text = (
                "Key insights: " + " ".join(i.message for i in insights)
                if insights
                else "No significant insights at this time."
            )
            return self.respond(
                text,
                payload={"insights": [i.model_dump(mode="json") for i in insights]},
            )

        return self.respond(
            'Analytics are being collected. Ask about "metrics", "insights", '
            'or "trends" for more details.',
            payload={
                "summary": {
                    "interactions": self._analytics.total_interactions,
                    "sentiment": round(self._analytics.get_average_sentiment(), 2),
                }
            },
        )
