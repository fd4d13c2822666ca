"""
Catalog Schema

Pydantic records for the external storefront data the agents read:
products with per-store stock, physical stores, orders and cart items.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field


class Product(BaseModel):
    id: str
    title: str
    description: str = ""
    category: str = "General"
    brand: Optional[str] = None
    price: float = 0.0
    original_price: Optional[float] = None
    discount_percentage: int = 0
    images: list[str] = Field(default_factory=list)
    rating: float = 0.0
    rating_count: int = 0
    stock_online: int = 0
    # store id -> units on hand
    store_stock: dict[int, int] = Field(default_factory=dict)
    features: list[str] = Field(default_factory=list)
    specifications: dict[str, Any] = Field(default_factory=dict)
    is_active: bool = True

    def stock_at(self, store_id: int) -> int:
        return self.store_stock.get(store_id, 0)

    def summary(self) -> dict[str, Any]:
        """Compact dict used in agent responses."""
        return {
            "id": self.id,
            "title": self.title,
            "price": self.price,
            "category": self.category,
            "brand": self.brand,
            "images": list(self.images),
            "rating": self.rating,
        }


class Store(BaseModel):
    id: int
    store_name: str
    city: str
    store_address: str = ""
    phone: str = ""
    pincode: str = ""
    is_active: bool = True


class OrderItem(BaseModel):
    product_id: str
    product_title: Optional[str] = None
    quantity: int = 1
    price: float = 0.0
    category: Optional[str] = None
    brand: Optional[str] = None


class Order(BaseModel):
    id: str
    user_id: str
    status: str = "pending"
    total_amount: float = 0.0
    shipping_address: Optional[str] = None
    items: list[OrderItem] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class CartItem(BaseModel):
    user_id: str
    product_id: str
    quantity: int = 1


class ProductCriteria(BaseModel):
    """Filter predicate for :meth:`CatalogStore.find_products`.

    Keywords are OR-ed across title, description, category and brand.
    All other fields are AND-ed.  Results are ordered by store stock
    (when ``store_id`` is set) and then by rating, both descending.
    """

    keywords: list[str] = Field(default_factory=list)
    ids: Optional[list[str]] = None
    exclude_ids: list[str] = Field(default_factory=list)
    category: Optional[str] = None
    brand: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    in_stock: bool = False
    store_id: Optional[int] = None
    limit: int = Field(default=10, ge=1)
