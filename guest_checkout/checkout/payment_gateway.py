"""
Payment gateway adapter.

Wraps the four remote steps of a redirect-based payment:

1. prepare checkout      (server-side shippability check)
2. create external order (approval URL the shopper is redirected to)
3. capture external order (after the shopper returns)
4. place order           (turn the paid cart into an order)

Every failure leaves this module as a ``CheckoutError`` subclass. Raw
``httpx`` exceptions, ``StorefrontHTTPError`` and normalization errors are
caught here and nowhere else.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Optional, Sequence, Type

import httpx

from guest_checkout.checkout.errors import (
    CaptureCallFailed,
    CheckoutError,
    ExternalOrderFailed,
    OrderPlacementFailed,
    PrepareFailed,
)
from guest_checkout.integrations.contracts.checkout import prepare_checkout_payload
from guest_checkout.integrations.contracts.interfaces import (
    CaptureResult,
    CartLineItem,
    CartSnapshot,
    CheckoutRequest,
    ExternalPaymentOrder,
    Money,
    PlacedOrder,
    StorefrontClient,
    StorefrontHTTPError,
)
from guest_checkout.integrations.contracts.payments import (
    external_order_payload,
    validate_external_order_request,
)
from guest_checkout.integrations.policy.response_wrappers import (
    normalize_capture_response,
    normalize_cart_response,
    normalize_external_order_response,
    normalize_place_order_response,
)

logger = logging.getLogger(__name__)


class PaymentGatewayAdapter:
    def __init__(self, client: StorefrontClient):
        self.client = client

    async def prepare_checkout(self, request: CheckoutRequest) -> CartSnapshot:
        data = await self._call(
            PrepareFailed,
            "",
            lambda: self.client.prepare_checkout(prepare_checkout_payload(request)),
        )
        cart = data.get("cart") if isinstance(data, dict) else None
        if not cart:
            raise PrepareFailed("Failed to prepare checkout")
        return _normalize(
            PrepareFailed,
            "Failed to prepare checkout: ",
            lambda: normalize_cart_response(cart, fallback_cart_id=request.cart_id),
        )

    async def create_external_order(
        self,
        cart_id: str,
        amount: Money,
        return_url: str,
        items: Optional[Sequence[CartLineItem]] = None,
    ) -> ExternalPaymentOrder:
        errors = validate_external_order_request(cart_id, amount, return_url)
        if errors:
            raise ExternalOrderFailed(f"Failed to create payment order: {'; '.join(errors)}")

        data = await self._call(
            ExternalOrderFailed,
            "",
            lambda: self.client.create_external_order(external_order_payload(cart_id, amount, return_url, items)),
        )
        return _normalize(
            ExternalOrderFailed,
            "Failed to create payment order: ",
            lambda: normalize_external_order_response(data, fallback_amount=amount),
        )

    async def capture_external_order(self, resume_token: str) -> CaptureResult:
        if not resume_token:
            raise CaptureCallFailed("Failed to capture payment: missing payment token")
        data = await self._call(
            CaptureCallFailed,
            "Failed to capture payment: ",
            lambda: self.client.capture_external_order(resume_token),
        )
        result = _normalize(CaptureCallFailed, "Failed to capture payment: ", lambda: normalize_capture_response(data))
        logger.info("Capture for token %s returned status %s", resume_token, result.status.value)
        return result

    async def place_order(self, cart_id: str) -> PlacedOrder:
        data = await self._call(
            OrderPlacementFailed,
            "Failed to place order: ",
            lambda: self.client.place_order(cart_id),
        )
        return _normalize(OrderPlacementFailed, "", lambda: normalize_place_order_response(data))

    async def _call(
        self,
        error_type: Type[CheckoutError],
        prefix: str,
        call: Callable[[], Awaitable[Any]],
    ) -> Any:
        """Await one remote call and convert any failure into ``error_type``."""
        try:
            return await call()
        except StorefrontHTTPError as e:
            logger.error("%s: storefront answered %s", error_type.__name__, e.status_code)
            raise error_type(f"{prefix}{e.message}", status_code=e.status_code, detail={"body": e.body}) from e
        except httpx.TimeoutException as e:
            logger.error("%s: request timed out", error_type.__name__)
            raise error_type(f"{prefix}request timed out") from e
        except httpx.HTTPError as e:
            logger.error("%s: network error %s", error_type.__name__, e)
            raise error_type(f"{prefix}{e}") from e
        except ValueError as e:
            logger.error("%s: undecodable response %s", error_type.__name__, e)
            raise error_type(f"{prefix}{e}") from e


def _normalize(error_type: Type[CheckoutError], prefix: str, build: Callable[[], Any]) -> Any:
    try:
        return build()
    except ValueError as e:
        logger.error("%s: unusable response %s", error_type.__name__, e)
        raise error_type(f"{prefix}{e}") from e
