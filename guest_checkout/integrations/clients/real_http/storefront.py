"""
Real Storefront HTTP Client.

Used when STOREFRONT_API_URL is configured. Every operation is a JSON POST to
``<base_url>/<api_prefix>/<endpoint>`` and returns the decoded body.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

import httpx

from guest_checkout.integrations.contracts.interfaces import StorefrontClient, StorefrontHTTPError
from guest_checkout.integrations.contracts.payments import capture_payload
from guest_checkout.integrations.policy.response_wrappers import normalize_error_message

logger = logging.getLogger(__name__)

DEFAULT_API_PREFIX = "poc-appbuilder-storefront"

DEFAULT_ENDPOINTS: Dict[str, str] = {
    "cart_get": "cart-get",
    "cart_update_item": "cart-update-item",
    "cart_remove_item": "cart-remove-item",
    "checkout_prepare": "checkout-prepare",
    "external_order_create": "paypal-order-create",
    "external_order_capture": "paypal-order-capture",
    "checkout_place_order": "checkout-place-order",
}


class RealStorefrontClient(StorefrontClient):
    def __init__(
        self,
        base_url: Optional[str] = None,
        api_prefix: Optional[str] = None,
        api_key: Optional[str] = None,
        endpoints: Optional[Dict[str, str]] = None,
        timeout_seconds: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = (base_url or os.getenv("STOREFRONT_API_URL", "")).rstrip("/")
        self.api_prefix = (api_prefix if api_prefix is not None else DEFAULT_API_PREFIX).strip("/")
        self.api_key = api_key or os.getenv("STOREFRONT_API_KEY", "")
        self.endpoints = {**DEFAULT_ENDPOINTS, **(endpoints or {})}
        self.timeout_seconds = timeout_seconds
        self._transport = transport
        if not self.base_url:
            logger.warning("Storefront API URL is not set.")

    # -- Cart --

    async def get_cart(self, cart_id: str) -> Dict[str, Any]:
        return await self._post("cart_get", {"cartId": cart_id}, action="fetch cart")

    async def update_cart_item(self, cart_id: str, item_uid: str, quantity: int) -> Dict[str, Any]:
        payload = {"cartId": cart_id, "cart_item_id": item_uid, "quantity": quantity}
        return await self._post("cart_update_item", payload, action="update cart item")

    async def remove_cart_item(self, cart_id: str, item_uid: str) -> Dict[str, Any]:
        payload = {"cartId": cart_id, "itemUid": item_uid}
        return await self._post("cart_remove_item", payload, action="remove cart item")

    # -- Checkout --

    async def prepare_checkout(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._post("checkout_prepare", payload, action="prepare checkout")

    async def create_external_order(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._post("external_order_create", payload, action="create payment order")

    async def capture_external_order(self, external_order_id: str) -> Dict[str, Any]:
        return await self._post("external_order_capture", capture_payload(external_order_id), action="capture payment")

    async def place_order(self, cart_id: str) -> Dict[str, Any]:
        return await self._post("checkout_place_order", {"cartId": cart_id}, action="place order")

    # -- Transport --

    def _url(self, operation: str) -> str:
        if not self.base_url:
            raise ValueError("STOREFRONT_API_URL is not configured.")
        path = self.endpoints[operation].lstrip("/")
        if self.api_prefix:
            return f"{self.base_url}/{self.api_prefix}/{path}"
        return f"{self.base_url}/{path}"

    async def _post(self, operation: str, payload: Dict[str, Any], *, action: str) -> Dict[str, Any]:
        url = self._url(operation)
        headers: Dict[str, str] = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        logger.info("POST %s", url)
        async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
            response = await client.post(url, json=payload, headers=headers)

        if response.is_error:
            message = normalize_error_message(response.status_code, response.reason_phrase, response.text, action=action)
            logger.error("Storefront %s failed: status=%s message=%s", operation, response.status_code, message)
            raise StorefrontHTTPError(response.status_code, message, body=response.text)

        logger.info("Storefront %s succeeded: status=%s", operation, response.status_code)
        return response.json() if response.content else {}
