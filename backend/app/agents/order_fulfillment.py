"""
Order & Fulfillment Agent

Order tracking, return eligibility and checkout readiness for a
signed-in shopper.

Handles queries such as:
    - "track my order" / "where is order #1001"  : order status and ETA
    - "I want to return my jeans"                : return guidance
    - "ready to checkout"                        : cart total and stock check
"""

from __future__ import annotations

import logging
import re
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from backend.app.agents.base_agent import BaseAgent
from backend.app.engine.catalog_store import CatalogStore
from backend.app.schema.agent_schema import AgentResponse, QueryContext
from backend.app.schema.catalog_schema import Order

logger = logging.getLogger(__name__)

RETURN_WINDOW_DAYS = 15

STATUS_MESSAGES: dict[str, str] = {
    "pending": "Your order is being verified",
    "confirmed": "Order confirmed! Preparing for shipment",
    "processing": "Your order is being packed",
    "shipped": "Your order is on the way!",
    "out_for_delivery": "Out for delivery today",
    "delivered": "Order delivered successfully",
    "cancelled": "Order has been cancelled",
    "returned": "Return processed",
}

# An order reference must contain at least one digit ("order #1001",
# "order A12-3"), so "order details" or "order status" never match.
_ORDER_REF_RE = re.compile(r"order\s*#?\s*([a-z0-9-]*\d[a-z0-9-]*)", re.IGNORECASE)


class OrderFulfillmentAgent(BaseAgent):
    """Order lifecycle assistant backed by the catalog store."""

    name = "orderFulfillment"

    def __init__(self, store: CatalogStore) -> None:
        self._store = store

    # Order lookups

    @staticmethod
    def get_estimated_delivery(order: Order) -> str:
        if order.status == "delivered":
            return "Delivered"
        if order.status == "out_for_delivery":
            return "Today"
        days = 2 if order.status == "shipped" else 5
        return (order.created_at + timedelta(days=days)).date().isoformat()

    def _order_summary(self, order: Order) -> dict[str, Any]:
        return {
            "id": order.id,
            "status": order.status,
            "status_message": STATUS_MESSAGES.get(order.status, order.status),
            "total": order.total_amount,
            "item_count": len(order.items),
            "created_at": order.created_at.isoformat(),
        }

    def get_order_status(self, order_id: str, user_id: str) -> AgentResponse:
        order = self._store.get_order(order_id, user_id)
        if order is None:
            return self.respond(
                f"I couldn't find order {order_id} on your account. "
                "Please check the order number on your Orders page.",
                payload={"order": None},
            )

        status_message = STATUS_MESSAGES.get(order.status, order.status)
        details = {
            **self._order_summary(order),
            "items": [
                {
                    "product_id": item.product_id,
                    "title": item.product_title,
                    "quantity": item.quantity,
                    "price": item.price,
                }
                for item in order.items
            ],
            "shipping": {
                "address": order.shipping_address,
                "estimated_delivery": self.get_estimated_delivery(order),
            },
        }
        return self.respond(
            f"Order {order.id}: {status_message}. "
            f"Estimated delivery: {details['shipping']['estimated_delivery']}.",
            payload={"order": details},
        )

    def get_user_orders(
        self,
        user_id: str,
        status: Optional[str] = None,
        limit: int = 10,
        page: int = 1,
    ) -> list[dict[str, Any]]:
        orders = self._store.find_orders(
            user_id, status=status, limit=limit, offset=(page - 1) * limit
        )
        return [self._order_summary(o) for o in orders]

    def track_order(self, query: str, user_id: str) -> AgentResponse:
        match = _ORDER_REF_RE.search(query)
        if match:
            return self.get_order_status(match.group(1), user_id)

        orders = self.get_user_orders(user_id, limit=3)
        if not orders:
            return self.respond(
                "You don't have any orders yet. Start shopping to place your first order!",
                payload={"orders": []},
            )

        lines = [f"- #{o['id']}: {o['status_message']}" for o in orders]
        return self.respond(
            "Here are your recent orders:\n" + "\n".join(lines),
            payload={"orders": orders},
        )

    # Returns and checkout

    def initiate_return(
        self,
        order_id: str,
        user_id: str,
        reason: str = "",
        now: Optional[datetime] = None,
    ) -> dict[str, Any]:
        """Open a return if the order was delivered within the window."""
        now = _as_utc(now or datetime.now(timezone.utc))
        order = self._store.get_order(order_id, user_id)
        if order is None or order.status != "delivered":
            return {
                "eligible": False,
                "message": "Order not found or not eligible for return",
            }

        days_since_delivery = (now - _as_utc(order.updated_at)).days
        if days_since_delivery > RETURN_WINDOW_DAYS:
            return {
                "eligible": False,
                "message": f"Return window has expired ({RETURN_WINDOW_DAYS} days from delivery)",
            }

        return_id = f"RET-{uuid.uuid4().hex[:10].upper()}"
        logger.info("Return %s opened for order %s (%s)", return_id, order_id, reason or "no reason")
        return {
            "eligible": True,
            "return_id": return_id,
            "message": "Return request initiated. Our team will contact you within 24 hours.",
            "pickup_date": (now + timedelta(days=2)).date().isoformat(),
        }

    def assist_checkout(self, user_id: str) -> AgentResponse:
        cart = self._store.get_cart(user_id)
        if not cart:
            return self.respond(
                "Your cart is empty. Add some products to proceed with checkout.",
                payload={"can_checkout": False},
            )

        lines = [(item, self._store.get_product(item.product_id)) for item in cart]

        issues = [
            product.title if product else "Unknown product"
            for item, product in lines
            if product is None or product.stock_online < item.quantity
        ]
        if issues:
            return self.respond(
                "Some items in your cart are out of stock. Please update quantities.",
                payload={"can_checkout": False, "issues": issues},
            )

        total = sum(product.price * item.quantity for item, product in lines)
        return self.respond(
            f"Ready to checkout! Your total is ₹{total:,.2f}",
            payload={
                "can_checkout": True,
                "summary": {
                    "item_count": len(cart),
                    "total": total,
                    "items": [
                        {"title": p.title, "quantity": i.quantity, "price": p.price}
                        for i, p in lines
                    ],
                },
            },
        )

    # BaseAgent interface

    def process(self, query: str, context: QueryContext) -> AgentResponse:
        if not context.user_id:
            return self.respond("Please log in to access your orders.")

        lowered = query.lower()

        if "track" in lowered or "where" in lowered or "status" in lowered:
            return self.track_order(query, context.user_id)

        if "return" in lowered or "refund" in lowered or "exchange" in lowered:
            return self.respond(
                "To initiate a return, please go to your Orders page and select the "
                f"order you want to return. Our returns are free within "
                f"{RETURN_WINDOW_DAYS} days of delivery."
            )

        if "checkout" in lowered or "buy" in lowered or "place order" in lowered:
            return self.assist_checkout(context.user_id)

        return self.track_order(query, context.user_id)


def _as_utc(value: datetime) -> datetime:
    """Naive timestamps from the catalog are stored in UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
