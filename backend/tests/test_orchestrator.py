"""
Tests for the orchestrator: sentiment gate, intent routing, inline
greeting/compare handling, interaction logging and the error boundary.

Everything runs against the sample catalog with the LLM offline, so
answers come from the rule-based paths.
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from backend.app.engine.analytics_store import AnalyticsStore
from backend.app.llm.intent_classifier import IntentClassifier
from backend.app.llm.orchestrator import (
    COMPARE_GUIDANCE,
    ERROR_MESSAGE,
    Orchestrator,
    build_orchestrator,
)
from backend.app.schema.agent_schema import Intent, QueryContext
from backend.app.settings import Settings


@pytest.fixture
def orchestrator(catalog, offline_client, analytics) -> Orchestrator:
    return build_orchestrator(
        Settings(llm_enabled=False),
        store=catalog,
        client=offline_client,
        analytics=analytics,
    )


SHOPPER = QueryContext(user_id="42", user_name="Asha", session_id="s-1")


class TestRouting:
    @pytest.mark.parametrize(
        "query, intent, agent",
        [
            ("hello", Intent.GREETING, "customerExperience"),
            ("track my order", Intent.ORDER_STATUS, "orderFulfillment"),
            ("I want to return and compare two jackets", Intent.RETURNS, "orderFulfillment"),
            ("ready to checkout", Intent.CHECKOUT, "orderFulfillment"),
            ("can I try on these", Intent.AR_VR, "immersiveExperience"),
            ("compare iPhone vs Pixel", Intent.COMPARE, "productInventory"),
            ("recommend something for me", Intent.RECOMMEND, "personalization"),
            ("Find tshirts available at Mumbai store", Intent.AVAILABILITY, "productInventory"),
            ("dashboard metrics", Intent.ANALYTICS, "analyticsEngine"),
            ("what is the best laptop", Intent.SEARCH, "productInventory"),
            ("xyz123", Intent.GENERAL, "rag"),
        ],
    )
    def test_intent_and_agent(self, orchestrator, query, intent, agent):
        result = orchestrator.process(query, SHOPPER)

        assert result.success is True
        assert result.intent == intent
        assert result.agent_used == agent
        assert result.sentiment is not None

    def test_route_table(self, orchestrator):
        routes = {intent: agent.name for intent, agent in orchestrator.routes.items()}
        assert routes == {
            Intent.SEARCH: "productInventory",
            Intent.AVAILABILITY: "productInventory",
            Intent.PRODUCT_INFO: "productInventory",
            Intent.RECOMMEND: "personalization",
            Intent.ORDER_STATUS: "orderFulfillment",
            Intent.RETURNS: "orderFulfillment",
            Intent.CHECKOUT: "orderFulfillment",
            Intent.AR_VR: "immersiveExperience",
            Intent.ESCALATION: "customerExperience",
            Intent.ANALYTICS: "analyticsEngine",
        }

    def test_dispatch_reaches_unclassifiable_routes(self, orchestrator):
        result = orchestrator.dispatch(Intent.PRODUCT_INFO, "denim jeans", SHOPPER)
        assert result.agent_used == "productInventory"
        assert result.products[0]["id"] == "P-1002"

    def test_anonymous_order_query_asks_for_login(self, orchestrator):
        result = orchestrator.process("track my order", QueryContext())
        assert result.response == "Please log in to access your orders."


class TestInlineHandlers:
    def test_greeting(self, orchestrator):
        result = orchestrator.process("hello", SHOPPER)

        assert result.response == "Hello, Asha! Welcome back to VIKAS. How can I help you today?"
        assert len(result.payload["suggestions"]) == 3

    def test_anonymous_greeting(self, orchestrator):
        result = orchestrator.process("hi", QueryContext())
        assert result.response == "Hello! Welcome to VIKAS. How can I help you today?"

    def test_compare_without_products_gives_guidance(self, orchestrator):
        result = orchestrator.process("compare iPhone vs Pixel", SHOPPER)

        assert result.success is True
        assert result.response == COMPARE_GUIDANCE

    def test_compare_with_products(self, orchestrator):
        context = QueryContext(product_ids=["P-1007", "P-1008"])
        result = orchestrator.process("compare these", context)

        assert result.agent_used == "productInventory"
        assert {p["id"] for p in result.products} == {"P-1007", "P-1008"}
        assert "Best price: Smartphone Pixel 8" in result.response


class TestEscalation:
    def test_hostile_message_escalates_with_high_priority(self, orchestrator, analytics):
        result = orchestrator.process(
            "I want a refund, this is the worst service, get me a manager", SHOPPER
        )

        assert result.success is True
        assert result.intent == Intent.ESCALATION
        assert result.agent_used == "customerExperience"
        assert result.escalation.priority == "high"
        assert result.escalation.context["user_id"] == "42"
        assert result.sentiment.score == -0.8

        record = analytics.recent_interactions()[-1]
        assert record.intent == Intent.ESCALATION
        assert record.agent_used == "customerExperience"

    def test_escalation_skips_classification_and_handlers(self, orchestrator):
        with patch.object(IntentClassifier, "classify") as classify, patch.object(
            orchestrator, "dispatch"
        ) as dispatch:
            result = orchestrator.process("let me speak to human support", SHOPPER)

        assert result.intent == Intent.ESCALATION
        classify.assert_not_called()
        dispatch.assert_not_called()

    def test_escalations_lower_containment(self, orchestrator):
        orchestrator.process("show me jeans", SHOPPER)
        orchestrator.process("get me a manager", SHOPPER)

        assert orchestrator.get_analytics().containment_rate == pytest.approx(0.5)


class TestLogging:
    def test_one_interaction_per_query(self, orchestrator, analytics):
        orchestrator.process("hello", SHOPPER)
        orchestrator.process("dashboard metrics", SHOPPER)
        orchestrator.process("get me a manager", SHOPPER)

        assert analytics.total_interactions == 3

    def test_interaction_fields(self, orchestrator, analytics):
        orchestrator.process("Find tshirts available at Mumbai store", SHOPPER)
        record = analytics.recent_interactions()[-1]

        assert record.query == "Find tshirts available at Mumbai store"
        assert record.intent == Intent.AVAILABILITY
        assert record.agent_used == "productInventory"
        assert record.user_id == "42"
        assert record.session_id == "s-1"
        assert record.product_count == 1
        assert record.response_time_ms >= 0

    def test_analytics_failure_does_not_reach_shopper(self, catalog, offline_client):
        broken = MagicMock(spec=AnalyticsStore)
        broken.log_interaction.side_effect = RuntimeError("disk full")
        orchestrator = build_orchestrator(
            Settings(llm_enabled=False), store=catalog, client=offline_client, analytics=broken
        )

        result = orchestrator.process("hello", SHOPPER)
        assert result.success is True


class TestErrorBoundary:
    def test_unexpected_error_returns_apology(self, orchestrator, analytics):
        with patch.object(IntentClassifier, "classify", side_effect=RuntimeError("boom")):
            result = orchestrator.process("show me jeans", SHOPPER)

        assert result.success is False
        assert result.response == ERROR_MESSAGE
        assert result.agent_used == "error"
        assert result.intent == Intent.GENERAL

        record = analytics.recent_interactions()[-1]
        assert record.success is False
        assert record.agent_used == "error"

    def test_handler_error_is_caught(self, orchestrator):
        with patch(
            "backend.app.agents.order_fulfillment.OrderFulfillmentAgent.process",
            side_effect=ValueError("bad order"),
        ):
            result = orchestrator.process("track my order", SHOPPER)

        assert result.success is False
        assert result.response == ERROR_MESSAGE


class TestWelcomeAndAnalytics:
    def test_welcome_message(self, orchestrator):
        welcome = orchestrator.get_welcome_message()

        assert welcome["success"] is True
        assert welcome["message"].startswith("Hello! Welcome to VIKAS. I'm VIKAS AI")
        assert len(welcome["suggestions"]) == 4

    def test_welcome_back(self, orchestrator):
        welcome = orchestrator.get_welcome_message(SHOPPER)
        assert welcome["message"].startswith("Hello, Asha! Welcome back to VIKAS.")

    def test_dashboard_after_traffic(self, orchestrator):
        orchestrator.process("Shoes ", SHOPPER)
        orchestrator.process("shoes", SHOPPER)
        metrics = orchestrator.get_analytics()

        assert metrics.total_interactions == 2
        assert metrics.popular_queries[0].query == "shoes"
        assert metrics.popular_queries[0].count == 2


class TestWiring:
    def test_default_client_is_the_shared_instance(self, catalog, offline_client):
        settings = Settings(llm_enabled=False)
        with patch(
            "backend.app.llm.orchestrator.ChatClient.from_settings",
            return_value=offline_client,
        ) as from_settings:
            orchestrator = build_orchestrator(settings, store=catalog)

        from_settings.assert_called_once_with(settings)
        assert orchestrator.retrieval._client is offline_client
