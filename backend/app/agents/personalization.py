"""
Personalization Agent

Builds a lightweight preference profile from a shopper's orders and
cart, and turns it into product recommendations.

Profile weights: purchases count 1.0 and cart lines 0.7 towards the
category/brand affinity scores.  The preferred price band is
0.5x-1.5x the average price seen in that history.
"""

from __future__ import annotations

import json
import logging
from collections import defaultdict
from typing import Any, Optional

from backend.app.agents.base_agent import BaseAgent
from backend.app.engine.catalog_store import CatalogStore
from backend.app.llm.llm_client import ChatClient
from backend.app.llm.prompts import RECOMMENDATION_EXPLANATION_PROMPT
from backend.app.schema.agent_schema import AgentResponse, QueryContext
from backend.app.schema.catalog_schema import Product, ProductCriteria

logger = logging.getLogger(__name__)

PREFERENCE_WEIGHTS: dict[str, float] = {
    "purchase": 1.0,
    "cart": 0.7,
}

TOP_N_PREFERENCES = 5
PROFILE_ORDER_LIMIT = 20


def _top(scores: dict[str, float]) -> list[dict[str, Any]]:
    ranked = sorted(scores.items(), key=lambda kv: kv[1], reverse=True)
    return [
        {"name": name, "score": round(score, 2)}
        for name, score in ranked[:TOP_N_PREFERENCES]
    ]


class PersonalizationAgent(BaseAgent):
    """History-driven recommendations."""

    name = "personalization"

    def __init__(
        self,
        store: CatalogStore,
        client: Optional[ChatClient] = None,
    ) -> None:
        self._store = store
        self._client = client

    def build_user_profile(self, user_id: Optional[str]) -> dict[str, Any]:
        """Aggregate category, brand and price preferences for *user_id*."""
        empty = {"has_history": False, "preferences": {}, "stats": {}}
        if not user_id:
            return empty

        try:
            orders = self._store.find_orders(user_id, limit=PROFILE_ORDER_LIMIT)
            cart = self._store.get_cart(user_id)
        except Exception as exc:
            logger.warning("Could not load history for user %s: %s", user_id, exc)
            return empty

        categories: dict[str, float] = defaultdict(float)
        brands: dict[str, float] = defaultdict(float)
        price_points: list[float] = []

        for order in orders:
            for item in order.items:
                if item.category:
                    categories[item.category] += PREFERENCE_WEIGHTS["purchase"]
                if item.brand:
                    brands[item.brand] += PREFERENCE_WEIGHTS["purchase"]
                if item.price:
                    price_points.append(float(item.price))

        for line in cart:
            product = self._store.get_product(line.product_id)
            if product is None:
                continue
            categories[product.category] += PREFERENCE_WEIGHTS["cart"]
            if product.brand:
                brands[product.brand] += PREFERENCE_WEIGHTS["cart"]
            if product.price:
                price_points.append(float(product.price))

        avg_price = sum(price_points) / len(price_points) if price_points else None

        return {
            "has_history": bool(orders or cart),
            "preferences": {
                "categories": _top(categories),
                "brands": _top(brands),
                "avg_price": avg_price,
                "price_range": (
                    {"min": avg_price * 0.5, "max": avg_price * 1.5}
                    if avg_price
                    else None
                ),
            },
            "stats": {"total_orders": len(orders), "cart_items": len(cart)},
        }

    def get_recommendations(
        self,
        user_id: Optional[str],
        limit: int = 10,
        exclude_ids: Optional[list[str]] = None,
    ) -> dict[str, Any]:
        profile = self.build_user_profile(user_id)
        preferences = profile["preferences"]

        criteria = ProductCriteria(
            exclude_ids=list(exclude_ids or []),
            in_stock=True,
            limit=limit,
        )
        top_categories = preferences.get("categories") or []
        if profile["has_history"] and top_categories:
            criteria.category = top_categories[0]["name"]
        price_range = preferences.get("price_range")
        if price_range:
            criteria.min_price = price_range["min"]
            criteria.max_price = price_range["max"]

        products = self._store.find_products(criteria)

        if profile["has_history"]:
            favourite = top_categories[0]["name"] if top_categories else "similar products"
            reason = f"Based on your interest in {favourite}"
        else:
            reason = "Top rated products for you"

        return {
            "products": products,
            "personalized": profile["has_history"],
            "reason": reason,
            "profile": profile,
        }

    def explain_recommendation(self, product: Product, profile: dict[str, Any]) -> str:
        """One or two sentences on why *product* suits this shopper."""
        if self._client is None or not self._client.is_available():
            return "Recommended based on your shopping preferences."

        prompt = RECOMMENDATION_EXPLANATION_PROMPT.format(
            title=product.title,
            category=product.category,
            price=f"{product.price:g}",
            preferences=json.dumps(profile.get("preferences", {}), default=str),
        )
        try:
            return self._client.chat(prompt, temperature=0.7, max_tokens=100)
        except Exception as exc:
            logger.warning("Recommendation explanation failed: %s", exc)
            return "Recommended based on your shopping history."

    def process(self, query: str, context: QueryContext) -> AgentResponse:
        recommendations = self.get_recommendations(
            context.user_id,
            exclude_ids=[context.product_id] if context.product_id else None,
        )
        products: list[Product] = recommendations["products"]

        if not products:
            return self.respond(
                "I couldn't find recommendations right now. "
                "Try browsing our trending products.",
                products=[],
                payload={"personalized": recommendations["personalized"]},
            )

        return self.respond(
            recommendations["reason"],
            products=[p.summary() for p in products],
            payload={"personalized": recommendations["personalized"]},
        )
