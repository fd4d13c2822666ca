"""
Immersive Experience Agent

AR virtual try-on and 3D viewing eligibility.  Eligibility is a pure
function of a product's category against two static allowlists; the
only I/O is resolving ``context.product_id`` to a product.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Optional

from backend.app.agents.base_agent import BaseAgent
from backend.app.engine.catalog_store import CatalogStore
from backend.app.schema.agent_schema import AgentResponse, QueryContext
from backend.app.schema.catalog_schema import Product

logger = logging.getLogger(__name__)

AR_ELIGIBLE_CATEGORIES: tuple[str, ...] = (
    "Clothing and Accessories",
    "Footwear",
    "Watches",
    "Eyewear",
    "Jewelry",
    "Bags",
)

THREE_D_CATEGORIES: tuple[str, ...] = (
    "Furniture",
    "Electronics",
    "Home Decor",
    "Appliances",
)

_MOBILE_RE = re.compile(r"mobile|android|iphone|ipad", re.IGNORECASE)
_IOS_RE = re.compile(r"iphone|ipad", re.IGNORECASE)
_ANDROID_RE = re.compile(r"android", re.IGNORECASE)
_AR_WORD_RE = re.compile(r"\bar\b")


def _in_categories(product: Optional[Product], categories: tuple[str, ...]) -> bool:
    if product is None or not product.category:
        return False
    category = product.category.lower()
    return any(c.lower() in category for c in categories)


class ImmersiveExperienceAgent(BaseAgent):
    """AR try-on and 3D viewer routing."""

    name = "immersiveExperience"

    def __init__(self, store: CatalogStore) -> None:
        self._store = store

    # Eligibility

    @staticmethod
    def is_ar_eligible(product: Optional[Product]) -> bool:
        return _in_categories(product, AR_ELIGIBLE_CATEGORIES)

    @staticmethod
    def is_3d_eligible(product: Optional[Product]) -> bool:
        return _in_categories(product, THREE_D_CATEGORIES)

    def get_experience_options(self, product: Optional[Product]) -> dict[str, Any]:
        options: dict[str, Any] = {
            "ar_try_on": False,
            "three_d": False,
            "virtual_room": False,
            "features": [],
        }
        if product is None:
            return options

        if self.is_ar_eligible(product):
            options["ar_try_on"] = True
            options["features"].append({
                "type": "ar_try_on",
                "name": "Virtual Try-On",
                "description": "See how this looks on you using AR",
                "action": "launch_ar",
            })

        if self.is_3d_eligible(product):
            options["three_d"] = True
            options["virtual_room"] = True
            options["features"].extend([
                {
                    "type": "3d_view",
                    "name": "3D View",
                    "description": "Explore this product in 3D",
                    "action": "launch_3d",
                },
                {
                    "type": "virtual_room",
                    "name": "View in Your Room",
                    "description": "See how it looks in your space",
                    "action": "launch_room",
                },
            ])

        return options

    # Asset descriptors

    def get_ar_asset(self, product: Optional[Product]) -> Optional[dict[str, Any]]:
        if product is None or not self.is_ar_eligible(product):
            return None
        return {
            "model_url": f"/ar/models/{product.id}.usdz",
            "android_url": f"/ar/models/{product.id}.glb",
            "fallback_image": product.images[0] if product.images else None,
            "metadata": {"scale": 1.0, "placement": "floor", "animation": False},
        }

    def get_3d_viewer_config(self, product: Optional[Product]) -> Optional[dict[str, Any]]:
        if product is None or not self.is_3d_eligible(product):
            return None
        return {
            "model_url": f"/3d/models/{product.id}.glb",
            "thumbnail_url": product.images[0] if product.images else None,
            "viewer_options": {
                "auto_rotate": True,
                "camera_controls": True,
                "shadow_intensity": 0.5,
                "exposure": 1.0,
                "background_color": "#f5f5f5",
            },
            "interactions": {"zoom": True, "pan": True, "rotate": True},
        }

    @staticmethod
    def detect_capabilities(
        user_agent: str = "",
        features: Optional[dict[str, Any]] = None,
    ) -> dict[str, bool]:
        """Infer AR / WebGL / WebXR support from a user agent string and
        client-reported feature flags."""
        features = features or {}
        ios = bool(_IOS_RE.search(user_agent))
        android = bool(_ANDROID_RE.search(user_agent))

        if ios:
            ar = True
        elif android:
            ar = bool(features.get("arcore", False))
        else:
            ar = False

        return {
            "ar": ar,
            "webgl": features.get("webgl") is not False,
            "webxr": bool(features.get("webxr", False)),
            "mobile": bool(_MOBILE_RE.search(user_agent)),
            "ios": ios,
            "android": android,
        }

    # BaseAgent interface

    def process(self, query: str, context: QueryContext) -> AgentResponse:
        lowered = query.lower()
        product = self._store.get_product(context.product_id) if context.product_id else None
        capabilities = self.detect_capabilities(context.user_agent, context.device_features)

        wants_ar = (
            "try on" in lowered or "virtual" in lowered or bool(_AR_WORD_RE.search(lowered))
        )
        if wants_ar:
            if product is None:
                return self.respond(
                    "To try on products virtually, please select a product from "
                    "our Fashion, Footwear, or Accessories categories.",
                    payload={"features": [], "capabilities": capabilities},
                )

            options = self.get_experience_options(product)
            if options["ar_try_on"]:
                return self.respond(
                    f'Great news! You can try on "{product.title}" virtually using AR. '
                    'Click the "Virtual Try-On" button on the product page.',
                    products=[product.summary()],
                    payload={
                        "features": options["features"],
                        "ar_asset": self.get_ar_asset(product),
                        "capabilities": capabilities,
                    },
                )
            return self.respond(
                "Virtual try-on is available for clothing, footwear, and accessories. "
                "This product doesn't support AR yet, but you can view detailed images.",
                products=[product.summary()],
                payload={"features": [], "capabilities": capabilities},
            )

        if "3d" in lowered or "view in room" in lowered:
            if product is None:
                return self.respond(
                    "3D viewing is available for Furniture, Electronics, and Home Decor "
                    "products. Select a product to explore it in 3D.",
                    payload={"features": [], "capabilities": capabilities},
                )

            options = self.get_experience_options(product)
            if options["three_d"]:
                return self.respond(
                    f'You can view "{product.title}" in 3D! Use the 3D viewer to rotate, '
                    "zoom, and even see how it looks in your room.",
                    products=[product.summary()],
                    payload={
                        "features": options["features"],
                        "viewer": self.get_3d_viewer_config(product),
                        "capabilities": capabilities,
                    },
                )

        return self.respond(
            "VIKAS offers AR try-on for fashion and 3D viewing for furniture and "
            "electronics. Browse eligible products to experience these features!",
            payload={
                "features": [
                    {"type": "ar", "name": "AR Try-On", "categories": list(AR_ELIGIBLE_CATEGORIES)},
                    {"type": "3d", "name": "3D View", "categories": list(THREE_D_CATEGORIES)},
                ],
                "capabilities": capabilities,
            },
        )
