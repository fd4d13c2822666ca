"""
Routes for the VIKAS shopping assistant

Every chat message from the storefront widget goes through the
**Orchestrator**, which:
1. Scores sentiment and escalates to a human when needed.
2. Classifies the intent.
3. Routes to the matching specialised agent.
4. Logs the interaction for the analytics dashboard.

Product-page helpers (compare, similar products, product Q&A) call the
retrieval service directly.

Endpoints
---------
POST  /api/ai/query                       - chat query
GET   /api/ai/welcome                     - welcome message and suggestions
GET   /api/ai/analytics                   - dashboard metrics
POST  /api/ai/compare                     - compare two or more products
GET   /api/ai/recommendations/{id}        - similar products
POST  /api/ai/product/{id}/ask            - question about one product
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, HTTPException

from backend.app.schema.agent_schema import (
    AgentResponse,
    CompareRequest,
    DashboardMetrics,
    ProductQuestionRequest,
    QueryContext,
    QueryRequest,
    QueryResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ai", tags=["ai"])

# The orchestrator is initialised lazily on first request.
_orchestrator = None


def _get_orchestrator():
    """Lazy-initialise the Orchestrator singleton."""
    global _orchestrator
    if _orchestrator is None:
        from backend.app.llm.orchestrator import build_orchestrator
        from backend.app.settings import get_settings
        _orchestrator = build_orchestrator(get_settings())
    return _orchestrator


def _to_response(result: AgentResponse) -> QueryResponse:
    return QueryResponse(
        success=result.success,
        response=result.response,
        intent=result.intent,
        agent_used=result.agent_used,
        products=result.products or [],
        sentiment=result.sentiment,
        escalation=result.escalation,
        payload=result.payload,
    )


@router.post("/query", response_model=QueryResponse)
def query(request: QueryRequest) -> QueryResponse:
    """Answer a free-text shopper query through the orchestrator."""
    if not request.query.strip():
        raise HTTPException(status_code=400, detail="Query is required")

    # user_id is trusted as sent. Deployments must put an auth layer in
    # front that sets it from the session; order lookups are scoped by it.
    context = QueryContext(
        user_id=request.user_id,
        user_name=request.user_name,
        product_id=request.product_id,
        product_ids=request.product_ids,
        session_id=request.session_id,
    )

    try:
        result = _get_orchestrator().process(request.query, context)
    except Exception as exc:
        logger.exception("Query failed: %s", exc)
        raise HTTPException(
            status_code=500,
            detail=f"Query processing failed: {exc}",
        )

    return _to_response(result)


@router.get("/welcome")
def welcome(
    user_id: Optional[str] = None,
    user_name: Optional[str] = None,
) -> dict[str, Any]:
    context = QueryContext(user_id=user_id, user_name=user_name)
    return _get_orchestrator().get_welcome_message(context)


@router.get("/analytics", response_model=DashboardMetrics)
def analytics() -> DashboardMetrics:
    try:
        return _get_orchestrator().get_analytics()
    except Exception as exc:
        logger.exception("Analytics failed: %s", exc)
        raise HTTPException(status_code=500, detail="Failed to get analytics")


@router.post("/compare", response_model=QueryResponse)
def compare(request: CompareRequest) -> QueryResponse:
    result = _get_orchestrator().retrieval.compare_products(request.product_ids)
    return _to_response(result)


@router.get("/recommendations/{product_id}", response_model=QueryResponse)
def recommendations(product_id: str, limit: int = 6) -> QueryResponse:
    result = _get_orchestrator().retrieval.get_recommendations(product_id, limit=limit)
    return _to_response(result)


@router.post("/product/{product_id}/ask", response_model=QueryResponse)
def ask_product(product_id: str, request: ProductQuestionRequest) -> QueryResponse:
    if not request.question.strip():
        raise HTTPException(status_code=400, detail="Question is required")

    result = _get_orchestrator().retrieval.answer_product_question(
        product_id, request.question
    )
    return _to_response(result)
