
from typing import Any, Dict, List, Optional, Sequence

from .interfaces import CaptureStatus, CartLineItem, Money, line_items_payload

"""
External payment contracts.

Defines the request bodies for the redirect-based payment provider:
- creating the external order the shopper approves on the provider's site
- capturing it once the shopper returns

These contracts must be used by both:
- clients/mocks/storefront.py (fake responses for development/testing)
- clients/real_http/storefront.py (real API calls)
"""

# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------


def external_order_payload(
    cart_id: str,
    amount: Money,
    return_url: str,
    items: Optional[Sequence[CartLineItem]] = None,
) -> Dict[str, Any]:
    return {
        "cartId": cart_id,
        "amount": amount.to_payload(),
        "items": line_items_payload(list(items or [])),
        "returnUrl": return_url,
    }


def capture_payload(external_order_id: str) -> Dict[str, Any]:
    return {"paypalOrderId": external_order_id}


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------

def validate_external_order_request(cart_id: str, amount: Money, return_url: str) -> List[str]:
    """
    Return a list of validation errors.
    Empty list means the request is valid.
    """
    errors: List[str] = []

    if not cart_id:
        errors.append("cart id is required")
    if amount.value <= 0:
        errors.append("amount must be greater than zero")
    if not amount.currency:
        errors.append("currency is required")
    if not return_url:
        errors.append("return url is required")

    return errors


def is_terminal_status(status: CaptureStatus) -> bool:
    """Return True if the capture has reached a final, non-changeable state."""
    return status in {CaptureStatus.SUCCESS, CaptureStatus.FAILED, CaptureStatus.DECLINED, CaptureStatus.CANCELLED}
