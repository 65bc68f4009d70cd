from __future__ import annotations

from typing import Any, Dict, List

from .interfaces import CheckoutRequest

"""
Checkout contract: request bodies for the storefront cart/checkout endpoints.

Both the mock and the real storefront clients receive these payloads, so the
wire shape is defined once here instead of being assembled in the gateway
and again in the mocks.
"""


def prepare_checkout_payload(request: CheckoutRequest) -> Dict[str, Any]:
    address = request.address
    return {
        "cartId": request.cart_id,
        "guestEmail": address.guest_email,
        "shippingAddress": {
            "vat_id": "",
            "custom_attributes": [],
            "firstname": address.firstname,
            "lastname": address.lastname,
            "company": address.company or "",
            "street": [address.street, ""],
            "city": address.city,
            "region": address.region,
            "postcode": address.postcode,
            "country_code": address.country_code,
            "telephone": address.telephone,
        },
        "shippingMethod": {
            "carrier_code": request.shipping_method.carrier_code,
            "method_code": request.shipping_method.method_code,
        },
        "paymentMethod": {"code": request.payment_method.code},
    }


def validate_item_update(cart_id: str, item_uid: str, quantity: int) -> List[str]:
    """
    Return a list of validation errors.
    Empty list means the update can be sent.
    """
    errors: List[str] = []

    if not cart_id or not item_uid:
        errors.append("Cart ID and Cart Item ID are required")
    if quantity < 1:
        errors.append("Quantity must be at least 1")

    return errors
