"""
Customer Experience Agent

Owns the emotional side of a conversation: sentiment scoring,
escalation to human support, greetings and response tone.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, Optional

from backend.app.agents.base_agent import BaseAgent
from backend.app.llm.sentiment import SentimentClassifier
from backend.app.schema.agent_schema import (
    AgentResponse,
    Escalation,
    QueryContext,
    SentimentLabel,
    SentimentResult,
)

logger = logging.getLogger(__name__)

HIGH_PRIORITY_SCORE = -0.7

ESCALATION_MESSAGE = (
    "I understand you'd like to speak with a human agent. I've created a "
    "support ticket and our team will contact you shortly. In the meantime, "
    "is there anything else I can help clarify?"
)

GREETING_SUGGESTIONS = [
    "Browse our latest products",
    "Check your orders",
    "Get personalized recommendations",
]


class CustomerExperienceAgent(BaseAgent):
    """Sentiment, escalation and greeting handling."""

    name = "customerExperience"

    def __init__(self, sentiment: SentimentClassifier) -> None:
        self._sentiment = sentiment

    def analyze_sentiment(self, message: str) -> SentimentResult:
        return self._sentiment.analyze(message)

    def generate_greeting(
        self,
        user_name: Optional[str] = None,
        returning_user: bool = False,
        time_of_day: bool = False,
        now: Optional[datetime] = None,
    ) -> dict[str, Any]:
        """Build a greeting line plus starter suggestions."""
        greeting = "Hello"
        if time_of_day:
            hour = (now or datetime.now()).hour
            if hour < 12:
                greeting = "Good morning"
            elif hour < 17:
                greeting = "Good afternoon"
            else:
                greeting = "Good evening"

        if user_name:
            greeting += f", {user_name}"

        greeting += "! Welcome back to VIKAS." if returning_user else "! Welcome to VIKAS."

        return {"greeting": greeting, "suggestions": list(GREETING_SUGGESTIONS)}

    def handle_escalation(
        self,
        context: QueryContext,
        sentiment: Optional[SentimentResult] = None,
    ) -> Escalation:
        """Open a support ticket for a human agent."""
        priority = (
            "high"
            if sentiment is not None and sentiment.score < HIGH_PRIORITY_SCORE
            else "normal"
        )
        escalation = Escalation(
            ticket_id=f"ESC-{uuid.uuid4().hex[:10].upper()}",
            message=ESCALATION_MESSAGE,
            priority=priority,
            context={
                "user_id": context.user_id,
                "session_id": context.session_id,
                "sentiment": sentiment.model_dump(mode="json") if sentiment else None,
                "last_messages": context.conversation_history[-5:],
            },
        )
        logger.info(
            "Escalation %s opened (priority=%s, user=%s)",
            escalation.ticket_id,
            priority,
            context.user_id or "anonymous",
        )
        return escalation

    def process(self, query: str, context: QueryContext) -> AgentResponse:
        sentiment = self.analyze_sentiment(query)

        if sentiment.needs_escalation:
            escalation = self.handle_escalation(context, sentiment)
            return self.respond(
                escalation.message, sentiment=sentiment, escalation=escalation
            )

        if sentiment.label == SentimentLabel.NEGATIVE:
            tone = "empathetic"
        elif sentiment.label == SentimentLabel.POSITIVE:
            tone = "enthusiastic"
        else:
            tone = "friendly"

        return self.respond(
            "",
            sentiment=sentiment,
            payload={"response_tone": tone},
        )
