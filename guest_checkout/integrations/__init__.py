"""
Integrations layer.
This package contains all code used to communicate with the storefront backend:
- Cart service (fetch, update item, remove item)
- Checkout service (prepare checkout, place order)
- External payment provider bridge (create order, capture order)

Key rule:
- The checkout orchestrator MUST NOT call the backend directly.
- It goes through the cart gateway and payment gateway adapter, which call
  the integration clients (under guest_checkout/integrations/clients).
- We use the MOCK client during development and the REAL_HTTP client when
  STOREFRONT_API_URL is configured.

Switching implementations:
- The selection of mock vs real clients happens in ONE place (guest_checkout/api/dependencies.py).
"""

from .contracts.interfaces import (
    GUEST_ADDRESS_FIELDS,
    CaptureResult,
    CaptureStatus,
    CartLineItem,
    CartSnapshot,
    CheckoutRequest,
    CompletedCheckout,
    ExternalPaymentOrder,
    GuestAddress,
    Money,
    PaymentMethod,
    PlacedOrder,
    ShippingMethod,
    StorefrontClient,
    StorefrontHTTPError,
)
from .contracts.checkout import prepare_checkout_payload, validate_item_update
from .contracts.payments import (
    capture_payload,
    external_order_payload,
    is_terminal_status,
    validate_external_order_request,
)

__all__ = [
    # interfaces
    "GUEST_ADDRESS_FIELDS", "CaptureResult", "CaptureStatus", "CartLineItem",
    "CartSnapshot", "CheckoutRequest", "CompletedCheckout", "ExternalPaymentOrder",
    "GuestAddress", "Money", "PaymentMethod", "PlacedOrder", "ShippingMethod",
    "StorefrontClient", "StorefrontHTTPError",
    # checkout
    "prepare_checkout_payload", "validate_item_update",
    # payments
    "capture_payload", "external_order_payload", "is_terminal_status",
    "validate_external_order_request",
]
