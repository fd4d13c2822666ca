"""
Tests for the HTTP surface: the AI router and the health check.

The lazily-built orchestrator is replaced with one wired to the sample
catalog and an offline LLM client.
"""

from __future__ import annotations

import logging
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from backend.app.llm.orchestrator import build_orchestrator
from backend.app.main import app
from backend.app.routes.ai import query_route
from backend.app.settings import Settings


@pytest.fixture
def client(monkeypatch, catalog, offline_client, analytics) -> TestClient:
    orchestrator = build_orchestrator(
        Settings(llm_enabled=False),
        store=catalog,
        client=offline_client,
        analytics=analytics,
    )
    monkeypatch.setattr(query_route, "_orchestrator", orchestrator)
    return TestClient(app)


class TestQueryEndpoint:
    def test_availability_query(self, client):
        resp = client.post(
            "/api/ai/query",
            json={"query": "Find tshirts available at Mumbai store", "user_id": "42"},
        )

        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["intent"] == "availability"
        assert body["agent_used"] == "productInventory"
        assert body["products"][0]["id"] == "P-1001"

    def test_escalation(self, client):
        resp = client.post(
            "/api/ai/query",
            json={"query": "I want a refund, this is the worst service, get me a manager"},
        )

        body = resp.json()
        assert body["intent"] == "escalation"
        assert body["escalation"]["priority"] == "high"
        assert body["products"] == []

    def test_sentiment_is_returned(self, client):
        resp = client.post(
            "/api/ai/query",
            json={"query": "I want a refund, this is the worst service, get me a manager"},
        )

        sentiment = resp.json()["sentiment"]
        assert sentiment["label"] == "negative"
        assert sentiment["needs_escalation"] is True
        assert sentiment["score"] < -0.5

    def test_order_lookup_is_scoped_to_user_id(self, client):
        resp = client.post(
            "/api/ai/query",
            json={"query": "track order 1001", "user_id": "7"},
        )

        body = resp.json()
        assert body["intent"] == "order_status"
        assert body["payload"]["order"] is None

    def test_compare_guidance(self, client):
        resp = client.post("/api/ai/query", json={"query": "compare iPhone vs Pixel"})
        assert resp.json()["response"].startswith("Please select 2 or more products")

    def test_blank_query_rejected(self, client):
        resp = client.post("/api/ai/query", json={"query": "   "})
        assert resp.status_code == 400

    def test_missing_query_rejected(self, client):
        resp = client.post("/api/ai/query", json={})
        assert resp.status_code == 422

    def test_unexpected_failure_is_500(self, client):
        with patch.object(query_route._orchestrator, "process", side_effect=RuntimeError("boom")):
            resp = client.post("/api/ai/query", json={"query": "hello"})

        assert resp.status_code == 500
        assert "boom" in resp.json()["detail"]


class TestHelperEndpoints:
    def test_welcome(self, client):
        resp = client.get("/api/ai/welcome", params={"user_id": "42", "user_name": "Asha"})

        body = resp.json()
        assert body["message"].startswith("Hello, Asha! Welcome back to VIKAS.")
        assert len(body["suggestions"]) == 4

    def test_analytics(self, client):
        client.post("/api/ai/query", json={"query": "hello"})
        resp = client.get("/api/ai/analytics")

        assert resp.status_code == 200
        body = resp.json()
        assert body["total_interactions"] == 1
        assert body["containment_rate"] == 1.0

    def test_compare(self, client):
        resp = client.post("/api/ai/compare", json={"product_ids": ["P-1007", "P-1008"]})

        assert resp.status_code == 200
        assert len(resp.json()["products"]) == 2

    def test_compare_requires_two_ids(self, client):
        resp = client.post("/api/ai/compare", json={"product_ids": ["P-1007"]})
        assert resp.status_code == 422

    def test_recommendations(self, client):
        resp = client.get("/api/ai/recommendations/P-1007")
        assert [p["id"] for p in resp.json()["products"]] == ["P-1008", "P-1010"]

    def test_product_question(self, client):
        resp = client.post("/api/ai/product/P-1003/ask", json={"question": "Is it in stock?"})

        assert resp.status_code == 200
        assert "Running Shoes Air Flex" in resp.json()["response"]


class TestHealth:
    def test_health_reports_degraded_without_model(self, client):
        with patch("backend.app.main._llm.is_available", return_value=False):
            resp = client.get("/health")

        assert resp.status_code == 200
        assert resp.json()["status"] == "degraded"
        assert resp.json()["ollama_connected"] is False

    def test_startup_continues_when_model_unreachable(self, client, caplog):
        with patch(
            "backend.app.main._llm.check_ready",
            side_effect=RuntimeError("Cannot connect to Ollama."),
        ), caplog.at_level(logging.WARNING, logger="backend.app.main"):
            with TestClient(app) as started:
                resp = started.get("/api/ai/welcome")

        assert resp.status_code == 200
        assert "Starting in fallback mode" in caplog.text
        assert "Cannot connect to Ollama." in caplog.text
