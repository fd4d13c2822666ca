"""
Orchestrator

The central entry point for the shopping assistant:

1. Scores the query's sentiment and escalates hostile conversations
   to a human straight away (no intent routing on that path).
2. Classifies the intent with the keyword rule list.
3. Routes to exactly one specialised agent, or answers inline for
   greetings and comparisons, or falls back to retrieval for general
   questions.
4. Logs one interaction per query to the analytics store and returns
   the agent's response stamped with intent, sentiment and agent name.

Any unexpected exception is caught here, logged as a failed
interaction, and turned into a generic apology; nothing is re-raised
to the caller.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Optional

from backend.app.agents.analytics_agent import AnalyticsAgent
from backend.app.agents.base_agent import BaseAgent
from backend.app.agents.customer_experience import CustomerExperienceAgent
from backend.app.agents.immersive_experience import ImmersiveExperienceAgent
from backend.app.agents.order_fulfillment import OrderFulfillmentAgent
from backend.app.agents.personalization import PersonalizationAgent
from backend.app.agents.product_inventory import ProductInventoryAgent
from backend.app.engine.analytics_store import AnalyticsStore
from backend.app.engine.catalog_store import CatalogStore, InMemoryCatalogStore
from backend.app.llm.intent_classifier import IntentClassifier
from backend.app.llm.llm_client import ChatClient
from backend.app.llm.rag import RetrievalService
from backend.app.llm.sentiment import SentimentClassifier
from backend.app.schema.agent_schema import (
    AgentResponse,
    Intent,
    QueryContext,
    SentimentResult,
)
from backend.app.settings import Settings

logger = logging.getLogger(__name__)

ERROR_MESSAGE = (
    "I encountered an error. Please try again or browse our products directly."
)
COMPARE_GUIDANCE = (
    "Please select 2 or more products to compare. You can add products to "
    "compare from the product pages."
)
WELCOME_SUFFIX = (
    " I'm VIKAS AI, your personal shopping assistant. Ask me about products, "
    "check store availability, track orders, or get personalized recommendations!"
)
WELCOME_SUGGESTIONS = [
    "Find tshirts available at Mumbai store",
    "Show me trending products",
    "Track my order",
    "Recommend something for me",
]


class Orchestrator:
    """Sentiment gate, intent router and interaction logger.

    All collaborators are injected so tests can substitute fakes.

    Usage::

        orchestrator = build_orchestrator()
        result = orchestrator.process(
            "Find tshirts available at Mumbai store",
            QueryContext(user_id="42"),
        )
        result.intent      # Intent.AVAILABILITY
        result.agent_used  # "productInventory"
    """

    def __init__(
        self,
        *,
        classifier: IntentClassifier,
        customer_experience: CustomerExperienceAgent,
        product_inventory: ProductInventoryAgent,
        personalization: PersonalizationAgent,
        order_fulfillment: OrderFulfillmentAgent,
        immersive_experience: ImmersiveExperienceAgent,
        analytics_agent: AnalyticsAgent,
        retrieval: RetrievalService,
        analytics: AnalyticsStore,
    ) -> None:
        self._classifier = classifier
        self._customer_experience = customer_experience
        self._retrieval = retrieval
        self._analytics = analytics

        # ESCALATION is reached only through dispatch(); the sentiment
        # gate in process() handles escalations before classification.
        self._routes: dict[Intent, BaseAgent] = {
            Intent.SEARCH: product_inventory,
            Intent.AVAILABILITY: product_inventory,
            Intent.PRODUCT_INFO: product_inventory,
            Intent.RECOMMEND: personalization,
            Intent.ORDER_STATUS: order_fulfillment,
            Intent.RETURNS: order_fulfillment,
            Intent.CHECKOUT: order_fulfillment,
            Intent.AR_VR: immersive_experience,
            Intent.ESCALATION: customer_experience,
            Intent.ANALYTICS: analytics_agent,
        }

    @property
    def routes(self) -> dict[Intent, BaseAgent]:
        return dict(self._routes)

    @property
    def analytics(self) -> AnalyticsStore:
        return self._analytics

    @property
    def retrieval(self) -> RetrievalService:
        return self._retrieval

    # Public API

    def process(
        self,
        query: str,
        context: Optional[QueryContext] = None,
    ) -> AgentResponse:
        """Run one query through the full pipeline."""
        context = context or QueryContext()
        started = time.perf_counter()
        sentiment: Optional[SentimentResult] = None

        try:
            sentiment = self._customer_experience.analyze_sentiment(query)

            if sentiment.needs_escalation:
                escalation = self._customer_experience.handle_escalation(context, sentiment)
                self._log(
                    query,
                    context,
                    intent=Intent.ESCALATION,
                    agent_used=self._customer_experience.name,
                    sentiment=sentiment,
                    started=started,
                    success=True,
                )
                return AgentResponse(
                    success=True,
                    response=escalation.message,
                    agent_used=self._customer_experience.name,
                    intent=Intent.ESCALATION,
                    sentiment=sentiment,
                    escalation=escalation,
                )

            intent = self._classifier.classify(query)
            response = self.dispatch(intent, query, context)

            logger.info(
                "Query '%s' -> intent=%s, agent=%s, success=%s",
                query,
                intent.value,
                response.agent_used,
                response.success,
            )

            self._log(
                query,
                context,
                intent=intent,
                agent_used=response.agent_used,
                sentiment=sentiment,
                started=started,
                success=response.success,
                products=response.products,
            )

            return response.model_copy(update={"intent": intent, "sentiment": sentiment})

        except Exception as exc:
            logger.exception("Orchestrator error: %s", exc)
            self._log(
                query,
                context,
                intent=Intent.GENERAL,
                agent_used="error",
                sentiment=sentiment,
                started=started,
                success=False,
            )
            return AgentResponse(
                success=False,
                response=ERROR_MESSAGE,
                agent_used="error",
                intent=Intent.GENERAL,
            )

    def dispatch(
        self,
        intent: Intent,
        query: str,
        context: QueryContext,
    ) -> AgentResponse:
        """Route an already-classified query to its handler."""
        if intent == Intent.GREETING:
            return self._greet(context)

        if intent == Intent.COMPARE:
            if len(context.product_ids) >= 2:
                result = self._retrieval.compare_products(context.product_ids)
            else:
                result = AgentResponse(success=True, response=COMPARE_GUIDANCE)
            return result.model_copy(update={"agent_used": ProductInventoryAgent.name})

        agent = self._routes.get(intent)
        if agent is None:
            return self._retrieval.query(query)

        result = agent.process(query, context)
        return result.model_copy(update={"agent_used": agent.name})

    def get_welcome_message(self, context: Optional[QueryContext] = None) -> dict[str, Any]:
        context = context or QueryContext()
        greeting = self._customer_experience.generate_greeting(
            user_name=context.user_name,
            returning_user=bool(context.user_id),
        )
        return {
            "success": True,
            "message": greeting["greeting"] + WELCOME_SUFFIX,
            "suggestions": list(WELCOME_SUGGESTIONS),
        }

    def get_analytics(self):
        return self._analytics.get_dashboard_metrics()

    # Internal helpers

    def _greet(self, context: QueryContext) -> AgentResponse:
        greeting = self._customer_experience.generate_greeting(
            user_name=context.user_name,
            returning_user=bool(context.user_id),
        )
        return AgentResponse(
            success=True,
            response=f"{greeting['greeting']} How can I help you today?",
            agent_used=self._customer_experience.name,
            payload={"suggestions": greeting["suggestions"]},
        )

    def _log(
        self,
        query: str,
        context: QueryContext,
        *,
        intent: Intent,
        agent_used: str,
        sentiment: Optional[SentimentResult],
        started: float,
        success: bool,
        products: Optional[list] = None,
    ) -> None:
        """Record the interaction; failures here never reach the shopper."""
        try:
            self._analytics.log_interaction({
                "query": query,
                "intent": intent,
                "agent_used": agent_used,
                "sentiment": sentiment,
                "response_time_ms": (time.perf_counter() - started) * 1000,
                "success": success,
                "products": products,
                "user_id": context.user_id,
                "session_id": context.session_id,
            })
        except Exception as exc:
            logger.warning("Failed to log interaction: %s", exc)


def build_orchestrator(
    settings: Optional[Settings] = None,
    *,
    store: Optional[CatalogStore] = None,
    client: Optional[ChatClient] = None,
    analytics: Optional[AnalyticsStore] = None,
) -> Orchestrator:
    """Wire an :class:`Orchestrator` with default collaborators.

    Any of *store*, *client* or *analytics* may be supplied to replace
    the default built from *settings*.  The default client is the
    shared :meth:`ChatClient.from_settings` instance, so the health
    check and the agents see the same availability state.
    """
    settings = settings or Settings()

    if client is None:
        client = ChatClient.from_settings(settings)
    if store is None:
        store = InMemoryCatalogStore.from_directory(settings.catalog_dir)
    if analytics is None:
        analytics = AnalyticsStore(
            interaction_capacity=settings.interaction_capacity,
            history_capacity=settings.history_capacity,
        )

    retrieval = RetrievalService(store, client)
    sentiment = SentimentClassifier(client, escalate_threshold=settings.escalate_threshold)

    return Orchestrator(
        classifier=IntentClassifier(),
        customer_experience=CustomerExperienceAgent(sentiment),
        product_inventory=ProductInventoryAgent(store, retrieval),
        personalization=PersonalizationAgent(store, client),
        order_fulfillment=OrderFulfillmentAgent(store),
        immersive_experience=ImmersiveExperienceAgent(store),
        analytics_agent=AnalyticsAgent(analytics),
        retrieval=retrieval,
        analytics=analytics,
    )
