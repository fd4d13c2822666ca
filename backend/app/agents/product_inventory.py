"""
Product & Inventory Agent

Product search, per-store availability and pricing.  Free-text
questions are answered through the retrieval service; the structured
helpers below back the product pages and store pickers.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from backend.app.agents.base_agent import BaseAgent
from backend.app.engine.catalog_store import CatalogStore
from backend.app.llm.rag import RetrievalService, extract_keywords
from backend.app.schema.agent_schema import AgentResponse, QueryContext
from backend.app.schema.catalog_schema import ProductCriteria

logger = logging.getLogger(__name__)

_LOCATION_WORDS = ("where", "location", "address")


class ProductInventoryAgent(BaseAgent):
    """Search and stock lookups across online and physical stores."""

    name = "productInventory"

    def __init__(self, store: CatalogStore, retrieval: RetrievalService) -> None:
        self._store = store
        self._retrieval = retrieval

    def search_products(
        self,
        query: str,
        category: Optional[str] = None,
        brand: Optional[str] = None,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
        in_stock: bool = False,
        limit: int = 10,
    ) -> dict[str, Any]:
        products = self._store.find_products(
            ProductCriteria(
                keywords=extract_keywords(query),
                category=category,
                brand=brand,
                min_price=min_price,
                max_price=max_price,
                in_stock=in_stock,
                limit=limit,
            )
        )
        return {
            "products": [p.summary() for p in products],
            "count": len(products),
        }

    def get_store_availability(
        self,
        product_id: str,
        store_id: Optional[int] = None,
    ) -> dict[str, Any]:
        """Stock for one product, at one store or across all of them."""
        product = self._store.get_product(product_id)
        if product is None:
            return {"found": False, "message": "Product not found"}

        summary = {"id": product.id, "title": product.title, "price": product.price}

        if store_id is not None:
            store = self._store.get_store(store_id)
            if store is None:
                return {"found": False, "message": "Store not found"}
            return {
                "found": True,
                "product": summary,
                "store": store.store_name,
                "stock": product.stock_at(store.id),
            }

        return {
            "found": True,
            "product": summary,
            "online": product.stock_online,
            "stores": [
                {
                    "store_id": s.id,
                    "store_name": s.store_name,
                    "city": s.city,
                    "stock": product.stock_at(s.id),
                }
                for s in self._store.list_stores()
            ],
        }

    def find_products_at_store(
        self,
        store_id: int,
        query: str = "",
        limit: int = 10,
    ) -> dict[str, Any]:
        store = self._store.get_store(store_id)
        if store is None:
            return {"found": False, "message": "Store not found"}

        products = self._store.find_products(
            ProductCriteria(keywords=extract_keywords(query), store_id=store.id, limit=limit)
        )
        return {
            "found": True,
            "store": store.store_name,
            "products": [
                {
                    "id": p.id,
                    "title": p.title,
                    "price": p.price,
                    "image": p.images[0] if p.images else None,
                    "rating": p.rating,
                    "store_stock": p.stock_at(store.id),
                }
                for p in products
            ],
        }

    def check_price(self, product_id: str) -> dict[str, Any]:
        product = self._store.get_product(product_id)
        if product is None:
            return {"found": False, "message": "Product not found"}

        return {
            "found": True,
            "product": product.title,
            "current_price": product.price,
            "original_price": product.original_price,
            "discount": product.discount_percentage,
            "savings": (product.original_price - product.price) if product.original_price else 0,
        }

    def process(self, query: str, context: QueryContext) -> AgentResponse:
        lowered = query.lower()
        is_location_question = any(w in lowered for w in _LOCATION_WORDS) or (
            "store" in lowered and "stock" not in lowered and "available" not in lowered
        )

        if is_location_question:
            result = self._retrieval.answer_store_question(query)
        else:
            result = self._retrieval.query(query)

        return result.model_copy(update={"agent_used": self.name})
