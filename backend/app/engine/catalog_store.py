"""
Catalog Store

Read interface over the storefront's products, stores, orders and
carts, plus a thread-safe in-memory implementation.

The agents only ever talk to :class:`CatalogStore`; the production
deployment backs it with the storefront database, while tests and the
demo server use :class:`InMemoryCatalogStore` loaded from
``data/catalog``.
"""

from __future__ import annotations

import json
import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Iterable, Optional

import pandas as pd

from backend.app.schema.catalog_schema import (
    CartItem,
    Order,
    Product,
    ProductCriteria,
    Store,
)

logger = logging.getLogger(__name__)

# Products CSV carries one quantity column per store: store_1_qty ...
_STORE_QTY_PREFIX = "store_"
_STORE_QTY_SUFFIX = "_qty"


class CatalogStore(ABC):
    """Common contract for the external storefront data source."""

    @abstractmethod
    def get_product(self, product_id: str) -> Optional[Product]:
        """Return the product, or ``None`` if unknown or inactive."""

    @abstractmethod
    def find_products(self, criteria: ProductCriteria) -> list[Product]:
        """Return active products matching *criteria*."""

    @abstractmethod
    def list_stores(self) -> list[Store]:
        """Return all active physical stores."""

    @abstractmethod
    def get_store(self, store_id: int) -> Optional[Store]:
        """Return a store by ID."""

    @abstractmethod
    def get_order(self, order_id: str, user_id: str) -> Optional[Order]:
        """Return an order only if it belongs to *user_id*."""

    @abstractmethod
    def find_orders(
        self,
        user_id: str,
        status: Optional[str] = None,
        limit: int = 10,
        offset: int = 0,
    ) -> list[Order]:
        """Return a user's orders, newest first."""

    @abstractmethod
    def get_cart(self, user_id: str) -> list[CartItem]:
        """Return the user's cart lines."""


class InMemoryCatalogStore(CatalogStore):
    """Dict-backed :class:`CatalogStore`.

    Usage::

        store = InMemoryCatalogStore.from_directory(Path("data/catalog"))
        products = store.find_products(ProductCriteria(keywords=["tshirt"]))
    """

    def __init__(
        self,
        products: Iterable[Product] = (),
        stores: Iterable[Store] = (),
        orders: Iterable[Order] = (),
        cart_items: Iterable[CartItem] = (),
    ) -> None:
        self._lock = threading.RLock()
        self._products: dict[str, Product] = {p.id: p for p in products}
        self._stores: dict[int, Store] = {s.id: s for s in stores}
        self._orders: dict[str, Order] = {o.id: o for o in orders}
        self._carts: dict[str, list[CartItem]] = {}
        for item in cart_items:
            self._carts.setdefault(item.user_id, []).append(item)

    # Loading

    @classmethod
    def from_directory(cls, data_dir: Path) -> "InMemoryCatalogStore":
        """Load ``products.csv`` and ``stores.csv`` (required) and
        ``orders.json`` / ``carts.json`` (optional) from *data_dir*."""
        logger.info("Loading catalog data from %s", data_dir)

        products = [
            _product_from_row(row)
            for row in _read_records(data_dir / "products.csv")
        ]
        stores = [
            Store(**_clean_store_row(row))
            for row in _read_records(data_dir / "stores.csv")
        ]

        orders: list[Order] = []
        orders_path = data_dir / "orders.json"
        if orders_path.is_file():
            orders = [Order(**o) for o in json.loads(orders_path.read_text("utf-8"))]

        cart_items: list[CartItem] = []
        carts_path = data_dir / "carts.json"
        if carts_path.is_file():
            cart_items = [
                CartItem(**c) for c in json.loads(carts_path.read_text("utf-8"))
            ]

        logger.info(
            "Catalog loaded: %d products, %d stores, %d orders, %d cart lines.",
            len(products),
            len(stores),
            len(orders),
            len(cart_items),
        )
        return cls(products, stores, orders, cart_items)

    # Writes (seeding / tests)

    def add_product(self, product: Product) -> Product:
        with self._lock:
            self._products[product.id] = product
        return product

    def add_store(self, store: Store) -> Store:
        with self._lock:
            self._stores[store.id] = store
        return store

    def add_order(self, order: Order) -> Order:
        with self._lock:
            self._orders[order.id] = order
        return order

    def add_cart_item(self, item: CartItem) -> CartItem:
        with self._lock:
            self._carts.setdefault(item.user_id, []).append(item)
        return item

    # CatalogStore interface

    def get_product(self, product_id: str) -> Optional[Product]:
        with self._lock:
            product = self._products.get(str(product_id))
        if product is None or not product.is_active:
            return None
        return product

    def find_products(self, criteria: ProductCriteria) -> list[Product]:
        keywords = [k.lower() for k in criteria.keywords if k]
        ids = set(criteria.ids) if criteria.ids is not None else None
        excluded = set(criteria.exclude_ids)

        with self._lock:
            candidates = list(self._products.values())

        matches = [
            p for p in candidates
            if p.is_active
            and (ids is None or p.id in ids)
            and p.id not in excluded
            and (criteria.category is None or p.category == criteria.category)
            and (criteria.brand is None or p.brand == criteria.brand)
            and (criteria.min_price is None or p.price >= criteria.min_price)
            and (criteria.max_price is None or p.price <= criteria.max_price)
            and (not criteria.in_stock or p.stock_online > 0)
            and (criteria.store_id is None or p.stock_at(criteria.store_id) > 0)
            and (not keywords or _matches_any_keyword(p, keywords))
        ]

        if criteria.store_id is not None:
            store_id = criteria.store_id
            matches.sort(key=lambda p: (p.stock_at(store_id), p.rating), reverse=True)
        else:
            matches.sort(key=lambda p: p.rating, reverse=True)

        return matches[: criteria.limit]

    def list_stores(self) -> list[Store]:
        with self._lock:
            return [s for s in self._stores.values() if s.is_active]

    def get_store(self, store_id: int) -> Optional[Store]:
        with self._lock:
            return self._stores.get(store_id)

    def get_order(self, order_id: str, user_id: str) -> Optional[Order]:
        with self._lock:
            order = self._orders.get(str(order_id))
        if order is None or order.user_id != str(user_id):
            return None
        return order

    def find_orders(
        self,
        user_id: str,
        status: Optional[str] = None,
        limit: int = 10,
        offset: int = 0,
    ) -> list[Order]:
        with self._lock:
            orders = [
                o for o in self._orders.values()
                if o.user_id == str(user_id) and (status is None or o.status == status)
            ]
        orders.sort(key=lambda o: o.created_at, reverse=True)
        return orders[offset : offset + limit]

    def get_cart(self, user_id: str) -> list[CartItem]:
        with self._lock:
            return list(self._carts.get(str(user_id), []))


# Internal helpers

def _matches_any_keyword(product: Product, keywords: list[str]) -> bool:
    haystack = " ".join(
        [product.title, product.description, product.category, product.brand or ""]
    ).lower()
    return any(k in haystack for k in keywords)


def _read_records(path: Path) -> list[dict[str, Any]]:
    """Read a CSV into a list of dicts with NaN replaced by ``None``."""
    df = pd.read_csv(path, dtype={"id": str, "phone": str, "pincode": str})
    df = df.astype(object).where(df.notna(), None)
    return df.to_dict(orient="records")


def _product_from_row(row: dict[str, Any]) -> Product:
    store_stock: dict[int, int] = {}
    fields: dict[str, Any] = {}

    for key, value in row.items():
        if key.startswith(_STORE_QTY_PREFIX) and key.endswith(_STORE_QTY_SUFFIX):
            store_id = int(key[len(_STORE_QTY_PREFIX) : -len(_STORE_QTY_SUFFIX)])
            store_stock[store_id] = int(value or 0)
        elif value is not None:
            fields[key] = value

    images = fields.pop("images", None)
    fields["images"] = [i for i in str(images).split("|") if i] if images else []

    return Product(**fields, store_stock=store_stock)


def _clean_store_row(row: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in row.items() if v is not None}
