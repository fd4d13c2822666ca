"""
Agent Schema

Pydantic models shared by the orchestrator, the specialised agents
and the analytics store: intents, sentiment, request context, the
uniform agent response, and analytics records.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


# Enums
class Intent(str, Enum):
    """Closed set of labels the intent classifier can produce."""

    SEARCH       = "search"
    RECOMMEND    = "recommend"
    COMPARE      = "compare"
    PRODUCT_INFO = "product_info"
    AVAILABILITY = "availability"
    ORDER_STATUS = "order_status"
    RETURNS      = "returns"
    CHECKOUT     = "checkout"
    AR_VR        = "ar_vr"
    GREETING     = "greeting"
    ESCALATION   = "escalation"
    ANALYTICS    = "analytics"
    GENERAL      = "general"


class SentimentLabel(str, Enum):
    POSITIVE = "positive"
    NEUTRAL  = "neutral"
    NEGATIVE = "negative"


# Per-request values
class SentimentResult(BaseModel):
    """Emotional polarity of a single message."""

    model_config = ConfigDict(frozen=True)

    score: float = Field(..., ge=-1.0, le=1.0)
    label: SentimentLabel
    needs_escalation: bool = False
    reason: str = ""


class QueryContext(BaseModel):
    """Caller-supplied context for one query.  Immutable per request."""

    model_config = ConfigDict(frozen=True)

    user_id: Optional[str] = None
    user_name: Optional[str] = None
    product_id: Optional[str] = None
    product_ids: list[str] = Field(default_factory=list)
    session_id: Optional[str] = None
    user_agent: str = ""
    device_features: dict[str, Any] = Field(default_factory=dict)
    conversation_history: list[str] = Field(default_factory=list)


class Escalation(BaseModel):
    """Hand-off ticket created when a conversation needs a human."""

    ticket_id: str
    message: str
    priority: Literal["high", "normal"] = "normal"
    escalated: bool = True
    context: dict[str, Any] = Field(default_factory=dict)


class AgentResponse(BaseModel):
    """Uniform response returned by every agent and by the orchestrator.

    ``success``, ``response`` and ``agent_used`` are always present.
    Handler-specific extras (suggestions, metrics, AR features, order
    lists, ...) go into ``payload`` rather than ad-hoc attributes.
    """

    success: bool = True
    response: str = ""
    agent_used: str = "orchestrator"
    intent: Optional[Intent] = None
    sentiment: Optional[SentimentResult] = None
    products: Optional[list[dict[str, Any]]] = None
    escalation: Optional[Escalation] = None
    payload: dict[str, Any] = Field(default_factory=dict)


# Analytics records
class Interaction(BaseModel):
    """One logged query/response cycle."""

    id: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    user_id: str = "anonymous"
    query: Optional[str] = None
    intent: Optional[Intent] = None
    agent_used: Optional[str] = None
    response_time_ms: float = 0.0
    sentiment: Optional[SentimentResult] = None
    success: bool = True
    product_count: int = 0
    session_id: Optional[str] = None


class IntentShare(BaseModel):
    intent: str
    count: int
    percentage: float


class PopularQuery(BaseModel):
    query: str
    count: int


class Insight(BaseModel):
    type: Literal["warning", "positive", "info"]
    category: str
    message: str
    value: Optional[float] = None
    data: Optional[list[dict[str, Any]]] = None


class DashboardMetrics(BaseModel):
    """Aggregate metrics derived on demand from the analytics log."""

    total_interactions: int
    containment_rate: float
    average_sentiment: float
    intent_distribution: list[IntentShare] = Field(default_factory=list)
    agent_usage: dict[str, int] = Field(default_factory=dict)
    popular_queries: list[PopularQuery] = Field(default_factory=list)
    insights: list[Insight] = Field(default_factory=list)
    last_updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# HTTP request / response models
class QueryRequest(BaseModel):
    """A natural-language query from the storefront chat widget."""

    query: str = Field(
        ...,
        description="The shopper's question.",
        min_length=1,
        examples=["Find tshirts available at Mumbai store"],
    )
    user_id: Optional[str] = None
    user_name: Optional[str] = None
    product_id: Optional[str] = None
    product_ids: list[str] = Field(default_factory=list)
    session_id: Optional[str] = None


class QueryResponse(BaseModel):
    """Response body for ``POST /api/ai/query``."""

    success: bool
    response: str
    intent: Optional[Intent] = None
    agent_used: str
    products: list[dict[str, Any]] = Field(default_factory=list)
    sentiment: Optional[SentimentResult] = None
    escalation: Optional[Escalation] = None
    payload: dict[str, Any] = Field(default_factory=dict)


class CompareRequest(BaseModel):
    product_ids: list[str] = Field(..., min_length=2)


class ProductQuestionRequest(BaseModel):
    question: str = Field(..., min_length=1)
