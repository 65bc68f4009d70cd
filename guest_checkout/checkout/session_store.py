"""
Per-profile checkout session: the state that must survive the redirect to the
payment provider and back.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from guest_checkout.checkout.events import CheckoutEvents, SessionChanged
from guest_checkout.integrations.contracts.interfaces import CapturedPayment, CompletedCheckout, GuestAddress

logger = logging.getLogger(__name__)

CART_ID_KEY = "cartId"
GUEST_ADDRESS_KEY = "guestAddress"
COMPLETED_CHECKOUT_KEY = "completedCheckout"
CAPTURED_PAYMENT_KEY = "capturedPayment"


class CheckoutSessionStore:
    def __init__(
        self,
        backend,
        profile_id: str,
        events: Optional[CheckoutEvents] = None,
        key_prefix: str = "checkout",
        ttl_seconds: Optional[int] = None,
    ):
        self.backend = backend
        self.profile_id = profile_id
        self.events = events or CheckoutEvents()
        self._key_prefix = key_prefix
        self._ttl = ttl_seconds

    def _key(self, name: str) -> str:
        return f"{self._key_prefix}:{self.profile_id}:{name}"

    def _write(self, name: str, value: Any) -> None:
        self.backend.set_value(self._key(name), value, ttl=self._ttl)
        self.events.publish(SessionChanged(key=name, value=value))

    def _remove(self, name: str) -> None:
        self.backend.delete_value(self._key(name))
        self.events.publish(SessionChanged(key=name, value=None))

    # --- Cart identifier -----------------------------------------------------

    def get_cart_id(self) -> Optional[str]:
        value = self.backend.get_value(self._key(CART_ID_KEY))
        if value is None or value == "":
            return None
        return str(value)

    def set_cart_id(self, cart_id: str) -> None:
        if not cart_id:
            raise ValueError("cart id must not be empty")
        self._write(CART_ID_KEY, cart_id)

    def clear_cart_id(self) -> None:
        """Drop the cart id once the cart has been turned into an order."""
        self._remove(CART_ID_KEY)

    # --- Guest address -------------------------------------------------------

    def get_guest_address(self) -> Optional[GuestAddress]:
        data = self.backend.get_value(self._key(GUEST_ADDRESS_KEY))
        if not isinstance(data, dict):
            return None
        return GuestAddress.from_dict(data)

    def save_guest_address(self, address: GuestAddress) -> None:
        self._write(GUEST_ADDRESS_KEY, address.to_dict())

    # --- Completed checkout --------------------------------------------------

    def get_completed_checkout(self) -> Optional[CompletedCheckout]:
        data = self.backend.get_value(self._key(COMPLETED_CHECKOUT_KEY))
        if not isinstance(data, dict) or not data.get("resume_token"):
            return None
        return CompletedCheckout.from_dict(data)

    def record_completed_checkout(self, completed: CompletedCheckout) -> None:
        self._write(COMPLETED_CHECKOUT_KEY, completed.to_dict())

    # --- Captured payment ----------------------------------------------------

    def get_captured_payment(self) -> Optional[CapturedPayment]:
        data = self.backend.get_value(self._key(CAPTURED_PAYMENT_KEY))
        if not isinstance(data, dict) or not data.get("resume_token"):
            return None
        return CapturedPayment.from_dict(data)

    def record_captured_payment(self, captured: CapturedPayment) -> None:
        """Written as soon as the provider settles, before the order is placed."""
        self._write(CAPTURED_PAYMENT_KEY, captured.to_dict())

    def clear_captured_payment(self) -> None:
        self._remove(CAPTURED_PAYMENT_KEY)
