"""
Retrieval Service

Retrieval-augmented answering over the product catalog:

1. **Retrieve** - detect a store mention, then keyword-search products
   (restricted to that store's stock when one is named).
2. **Augment** - render the matches into a compact text context.
3. **Generate** - ask the LLM to answer using only that context.

When the LLM is unavailable the service answers with a deterministic
product list built from the same context, so shoppers still get results.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from backend.app.engine.catalog_store import CatalogStore
from backend.app.llm.llm_client import ChatClient
from backend.app.llm.prompts import (
    COMPARE_PRODUCTS_QUERY,
    PRODUCT_QUERY_TEMPLATE,
    RECOMMENDATION_BUNDLE_QUERY,
    SHOPPING_ASSISTANT_SYSTEM,
)
from backend.app.schema.agent_schema import AgentResponse
from backend.app.schema.catalog_schema import Product, ProductCriteria, Store

logger = logging.getLogger(__name__)

MAX_CONTEXT_PRODUCTS = 5
_WORD_RE = re.compile(r"[a-z0-9]+")

# Words that describe the request rather than the product.
STOPWORDS = frozenset({
    "the", "and", "for", "are", "any", "you", "your", "have", "has", "with",
    "show", "find", "search", "looking", "want", "need", "what", "which",
    "store", "stores", "vikas", "available", "availability", "near",
    "please", "can", "get", "some", "there", "this", "that", "tell", "about",
})


def extract_keywords(query: str) -> list[str]:
    """Lower-cased search terms of three or more letters, minus stopwords.

    A trailing plural "s" is dropped so "tshirts" still matches "Tshirt".
    """
    keywords = []
    for word in _WORD_RE.findall(query.lower()):
        if len(word) <= 2 or word in STOPWORDS:
            continue
        if len(word) > 3 and word.endswith("s") and not word.endswith("ss"):
            word = word[:-1]
        keywords.append(word)
    return keywords


class RetrievalService:
    """Catalog retrieval plus LLM answer generation.

    Usage::

        rag = RetrievalService(store, client)
        result = rag.query("Find tshirts available at Mumbai store")
        result.response   # natural-language answer
        result.products   # the products used as context
    """

    name = "rag"

    def __init__(
        self,
        store: CatalogStore,
        client: Optional[ChatClient] = None,
        max_context_products: int = MAX_CONTEXT_PRODUCTS,
    ) -> None:
        self._store = store
        self._client = client
        self.max_context_products = max_context_products

    # Retrieval

    def detect_store(self, query: str) -> Optional[Store]:
        """Return the first store whose name or city appears in *query*."""
        lowered = query.lower()
        for store in self._store.list_stores():
            if store.store_name.lower() in lowered or store.city.lower() in lowered:
                return store
        return None

    def search_products(self, query: str, limit: int = MAX_CONTEXT_PRODUCTS) -> list[Product]:
        return self._store.find_products(
            ProductCriteria(keywords=extract_keywords(query), limit=limit)
        )

    def search_products_at_store(
        self,
        query: str,
        store: Store,
        limit: int = MAX_CONTEXT_PRODUCTS,
    ) -> list[Product]:
        """Products with stock at *store*, best stocked first."""
        keywords = [
            k for k in extract_keywords(query)
            if k not in (store.city.lower(), *store.store_name.lower().split())
        ]
        return self._store.find_products(
            ProductCriteria(keywords=keywords, store_id=store.id, limit=limit)
        )

    # Augmentation

    @staticmethod
    def build_product_context(
        products: list[Product],
        store: Optional[Store] = None,
    ) -> str:
        if not products:
            return "No products found matching your query."

        header = f"Store: {store.store_name} ({store.city})\n" if store else ""
        blocks: list[str] = []
        for i, p in enumerate(products, start=1):
            if store is not None:
                stock = f"At {store.store_name}: {p.stock_at(store.id)} units available"
            elif p.stock_online > 0:
                stock = f"Online: {p.stock_online} available"
            else:
                stock = "Online: Out of stock"

            was = f" (Was ₹{p.original_price:g})" if p.original_price else ""
            blocks.append(
                f"Product {i}:\n"
                f"- Name: {p.title}\n"
                f"- Price: ₹{p.price:g}{was}\n"
                f"- Category: {p.category}\n"
                f"- Brand: {p.brand or 'N/A'}\n"
                f"- Rating: {p.rating}/5 ({p.rating_count} reviews)\n"
                f"- Stock: {stock}\n"
                f"- Description: {p.description[:150]}"
            )
        return header + "\n---\n".join(blocks)

    # Generation

    def query(self, user_query: str) -> AgentResponse:
        """Answer a general product question from catalog context."""
        try:
            store = self.detect_store(user_query)
            if store is not None:
                products = self.search_products_at_store(
                    user_query, store, self.max_context_products
                )
            else:
                products = self.search_products(user_query, self.max_context_products)

            context = self.build_product_context(products, store)
            answer = self._generate(user_query, context)
            if answer is None:
                answer = self._list_products(products, store)

            return AgentResponse(
                success=True,
                response=answer,
                agent_used=self.name,
                products=[self._product_entry(p, store) for p in products],
                payload={"store": store.store_name if store else None},
            )
        except Exception as exc:
            logger.exception("Retrieval query failed: %s", exc)
            return AgentResponse(
                success=False,
                response="Sorry, I encountered an error processing your request.",
                agent_used=self.name,
                products=[],
            )

    def answer_store_question(self, query: str) -> AgentResponse:
        """Answer questions about store locations, addresses and phones."""
        try:
            stores = self._store.list_stores()
            store_lines = "\n".join(
                f"- {s.store_name}: {s.store_address}, {s.city} {s.pincode} "
                f"(Phone: {s.phone})"
                for s in stores
            )
            context = f"We have the following physical stores:\n{store_lines}"

            answer = self._generate(query, context)
            if answer is None:
                answer = (
                    f"Here are our stores:\n{store_lines}"
                    if stores
                    else "We don't have any physical stores open right now."
                )
            return AgentResponse(
                success=True,
                response=answer,
                agent_used=self.name,
                payload={"stores": [s.model_dump() for s in stores]},
            )
        except Exception as exc:
            logger.exception("Store question failed: %s", exc)
            return AgentResponse(
                success=False,
                response="I am unable to access store information at the moment.",
                agent_used=self.name,
            )

    def compare_products(self, product_ids: list[str]) -> AgentResponse:
        try:
            products = self._store.find_products(
                ProductCriteria(ids=list(product_ids), limit=max(1, len(product_ids)))
            )
            if len(products) < 2:
                return AgentResponse(
                    success=True,
                    response="Please provide at least 2 products to compare.",
                    agent_used=self.name,
                    products=[p.summary() for p in products],
                )

            context = self.build_product_context(products)
            answer = self._generate(COMPARE_PRODUCTS_QUERY, context)
            if answer is None:
                answer = self._compare_table(products)

            return AgentResponse(
                success=True,
                response=answer,
                agent_used=self.name,
                products=[p.summary() for p in products],
            )
        except Exception as exc:
            logger.exception("Product comparison failed: %s", exc)
            return AgentResponse(
                success=False,
                response="Unable to compare products right now.",
                agent_used=self.name,
                products=[],
            )

    def get_recommendations(self, product_id: str, limit: int = 6) -> AgentResponse:
        """Similar products: same category, price within 0.5x-1.5x."""
        try:
            product = self._store.get_product(product_id)
            if product is None:
                return AgentResponse(
                    success=True,
                    response="I couldn't find that product.",
                    agent_used=self.name,
                    products=[],
                )

            similar = self._store.find_products(
                ProductCriteria(
                    category=product.category,
                    min_price=product.price * 0.5,
                    max_price=product.price * 1.5,
                    exclude_ids=[product.id],
                    limit=limit,
                )
            )

            explanation = None
            if similar:
                context = (
                    f"Main Product: {product.title} - ₹{product.price:g}\n"
                    f"Category: {product.category}\n"
                    f"Rating: {product.rating}/5 ({product.rating_count} reviews)\n\n"
                    "Similar Products:\n"
                    + "\n".join(
                        f"{i}. {p.title} - ₹{p.price:g} ({p.rating}/5)"
                        for i, p in enumerate(similar[:3], start=1)
                    )
                )
                explanation = self._generate(
                    RECOMMENDATION_BUNDLE_QUERY, context, temperature=0.8, max_tokens=150
                )

            return AgentResponse(
                success=True,
                response=explanation or f"Products similar to {product.title}.",
                agent_used=self.name,
                products=[p.summary() for p in similar],
                payload={"explanation": explanation},
            )
        except Exception as exc:
            logger.exception("Recommendations failed: %s", exc)
            return AgentResponse(
                success=False, response="", agent_used=self.name, products=[]
            )

    def answer_product_question(self, product_id: str, question: str) -> AgentResponse:
        try:
            product = self._store.get_product(product_id)
            if product is None:
                return AgentResponse(
                    success=True,
                    response="Product not found.",
                    agent_used=self.name,
                )

            context = (
                "Product Details:\n"
                f"- Name: {product.title}\n"
                f"- Price: ₹{product.price:g}\n"
                f"- Category: {product.category}\n"
                f"- Brand: {product.brand or 'N/A'}\n"
                f"- Rating: {product.rating}/5 ({product.rating_count} reviews)\n"
                f"- Stock: {'In Stock' if product.stock_online > 0 else 'Out of Stock'}\n"
                f"- Description: {product.description or 'No description available.'}\n"
                f"- Features: {', '.join(product.features) or 'N/A'}\n"
                f"- Specifications: {product.specifications or {}}"
            )
            answer = self._generate(question, context)
            if answer is None:
                answer = (
                    f"{product.title} costs ₹{product.price:g} and is "
                    f"{'in stock' if product.stock_online > 0 else 'currently out of stock'}. "
                    f"{product.description}".strip()
                )
            return AgentResponse(
                success=True,
                response=answer,
                agent_used=self.name,
                products=[product.summary()],
            )
        except Exception as exc:
            logger.exception("Product question failed: %s", exc)
            return AgentResponse(
                success=False,
                response="Unable to answer your question right now.",
                agent_used=self.name,
            )

    # Internal helpers

    def _generate(
        self,
        query: str,
        context: str,
        temperature: float = 0.7,
        max_tokens: int = 512,
    ) -> Optional[str]:
        """Ask the LLM to answer from *context*; ``None`` if unavailable."""
        if self._client is None or not self._client.is_available():
            return None
        try:
            answer = self._client.chat(
                PRODUCT_QUERY_TEMPLATE.format(context=context, query=query),
                system=SHOPPING_ASSISTANT_SYSTEM,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except Exception as exc:
            logger.warning("LLM generation failed, using catalog listing: %s", exc)
            return None
        return answer or None

    @staticmethod
    def _product_entry(product: Product, store: Optional[Store]) -> dict:
        entry = product.summary()
        entry["store_stock"] = product.stock_at(store.id) if store else None
        return entry

    @staticmethod
    def _list_products(products: list[Product], store: Optional[Store]) -> str:
        if not products:
            return (
                "I couldn't find any products matching that. "
                "Try a different search or browse our categories."
            )
        where = f" at {store.store_name}, {store.city}" if store else ""
        lines = []
        for p in products:
            stock = (
                f"{p.stock_at(store.id)} units in store"
                if store
                else ("in stock" if p.stock_online > 0 else "out of stock")
            )
            lines.append(f"- {p.title} - ₹{p.price:g} ({stock})")
        return f"Here's what I found{where}:\n" + "\n".join(lines)

    @staticmethod
    def _compare_table(products: list[Product]) -> str:
        lines = [
            f"- {p.title}: ₹{p.price:g}, rated {p.rating}/5 "
            f"({p.rating_count} reviews), brand {p.brand or 'N/A'}"
            for p in products
        ]
        cheapest = min(products, key=lambda p: p.price)
        best_rated = max(products, key=lambda p: p.rating)
        return (
            "Here's how they compare:\n"
            + "\n".join(lines)
            + f"\nBest price: {cheapest.title}. Highest rated: {best_rated.title}."
        )
