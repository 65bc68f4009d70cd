"""
Cart gateway. Fetches the shopper's cart and hands back display-ready
snapshots. ``load_cart`` never raises: anything that goes wrong is logged and
reported as "no cart" (``None``).
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from guest_checkout.checkout.errors import CartUnavailable
from guest_checkout.checkout.events import CartReplaced, CheckoutEvents
from guest_checkout.integrations.contracts.checkout import validate_item_update
from guest_checkout.integrations.contracts.interfaces import CartSnapshot, StorefrontClient, StorefrontHTTPError
from guest_checkout.integrations.policy.response_wrappers import IntegrationResponseError, normalize_cart_response

logger = logging.getLogger(__name__)


class CartGateway:
    def __init__(self, client: StorefrontClient, events: Optional[CheckoutEvents] = None):
        self.client = client
        self.events = events or CheckoutEvents()

    async def load_cart(self, cart_id: Optional[str]) -> Optional[CartSnapshot]:
        if not cart_id:
            return None
        try:
            data = await self.client.get_cart(cart_id)
            cart = data.get("cart") if isinstance(data, dict) else None
            if not cart:
                logger.info("Cart %s not returned by storefront", cart_id)
                return None
            return normalize_cart_response(cart, fallback_cart_id=cart_id)
        except StorefrontHTTPError as e:
            logger.warning("Error fetching cart %s: %s %s", cart_id, e.status_code, e.message)
        except httpx.HTTPError as e:
            logger.warning("Network error fetching cart %s: %s", cart_id, e)
        except (IntegrationResponseError, ValueError) as e:
            logger.warning("Unreadable cart %s: %s", cart_id, e)
        return None

    async def update_item_quantity(self, cart_id: str, item_uid: str, quantity: int) -> CartSnapshot:
        errors = validate_item_update(cart_id, item_uid, quantity)
        if errors:
            raise ValueError("; ".join(errors))
        try:
            data = await self.client.update_cart_item(cart_id, item_uid, quantity)
            snapshot = normalize_cart_response((data or {}).get("cart"), fallback_cart_id=cart_id)
        except StorefrontHTTPError as e:
            raise CartUnavailable(e.message, step="update_cart_item", status_code=e.status_code) from e
        except (httpx.HTTPError, ValueError) as e:
            raise CartUnavailable(f"Failed to update cart item: {e}", step="update_cart_item") from e

        self.events.publish(CartReplaced(snapshot))
        return snapshot

    async def remove_item(self, cart_id: str, item_uid: str) -> Optional[CartSnapshot]:
        """Remove a line item; when the storefront call fails, fall back to a fresh load."""
        if not cart_id or not item_uid:
            raise ValueError("Cart ID and Item UID are required")
        try:
            data = await self.client.remove_cart_item(cart_id, item_uid)
            snapshot = normalize_cart_response((data or {}).get("cart"), fallback_cart_id=cart_id)
        except (StorefrontHTTPError, httpx.HTTPError, ValueError) as e:
            logger.error("Error removing cart item %s from %s: %s", item_uid, cart_id, e)
            snapshot = await self.load_cart(cart_id)

        self.events.publish(CartReplaced(snapshot))
        return snapshot
