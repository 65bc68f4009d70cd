"""
Notification / recovery sink.

Observes orchestrator state changes and keeps the three things the page shows
besides the cart: the current notification banner, the main view and the
recovery action offered to the shopper. It never calls back into the
orchestrator.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from guest_checkout.checkout.errors import (
    CaptureCallFailed,
    CaptureNotSettled,
    CartUnavailable,
    CheckoutError,
    OrderPlacementFailed,
)
from guest_checkout.checkout.events import CheckoutEvents, StateChanged
from guest_checkout.checkout.states import RESUME_BRANCH, CheckoutState

logger = logging.getLogger(__name__)

ORDER_NOT_RECORDED_HEADING = "Payment captured but order not recorded"
PAYMENT_ERROR_HEADING = "Payment Processing Error"


class Severity(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class ViewKind(str, Enum):
    CHECKOUT_FORM = "checkout_form"
    PROCESSING = "processing"
    EMPTY_CART = "empty_cart"
    SUCCESS = "success"
    ERROR = "error"


class RecoveryAction(str, Enum):
    NONE = "none"
    RESUBMIT = "resubmit"
    RELOAD_CART = "reload_cart"
    BACK_TO_CART = "back_to_cart"
    CONTACT_SUPPORT = "contact_support"


@dataclass(frozen=True)
class Notification:
    heading: str
    severity: Severity = Severity.INFO
    dismissible: bool = True
    auto_dismiss_seconds: Optional[float] = 5.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "heading": self.heading,
            "severity": self.severity.value,
            "dismissible": self.dismissible,
            "auto_dismiss_seconds": self.auto_dismiss_seconds,
        }


@dataclass(frozen=True)
class CheckoutView:
    kind: ViewKind
    title: str = ""
    message: str = ""
    order_number: Optional[str] = None
    back_to_cart_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "title": self.title,
            "message": self.message,
            "order_number": self.order_number,
            "back_to_cart_url": self.back_to_cart_url,
        }


class NotificationSink:
    def __init__(
        self,
        events: Optional[CheckoutEvents] = None,
        cart_url: str = "/cart",
        auto_dismiss_seconds: Optional[float] = 5.0,
    ):
        self.cart_url = cart_url
        self.auto_dismiss_seconds = auto_dismiss_seconds
        self.notification: Optional[Notification] = None
        self.view = CheckoutView(ViewKind.CHECKOUT_FORM)
        self.recovery = RecoveryAction.NONE
        if events is not None:
            events.subscribe(self.on_state_changed, StateChanged)

    # --- Direct notifications --------------------------------------------------

    def notify(self, heading: str, severity: Severity = Severity.INFO, *, dismissible: bool = True) -> Notification:
        """Replace the current banner."""
        self.notification = Notification(heading, severity, dismissible, self.auto_dismiss_seconds)
        return self.notification

    def dismiss(self) -> None:
        self.notification = None

    # --- State observer ------------------------------------------------------------

    def on_state_changed(self, event: StateChanged) -> None:
        state = event.current
        previous = event.previous

        if state == CheckoutState.CART_READY:
            self.view = CheckoutView(ViewKind.CHECKOUT_FORM)
            self.recovery = RecoveryAction.NONE
        elif state == CheckoutState.AWAITING_RETURN:
            self.notify("Redirecting to payment provider...", Severity.INFO)
        elif state in (CheckoutState.RESUMED, CheckoutState.CAPTURING):
            self.view = CheckoutView(
                ViewKind.PROCESSING, "Processing Payment...", "Please wait while we process your payment."
            )
        elif state == CheckoutState.PLACING_ORDER:
            self.view = CheckoutView(
                ViewKind.PROCESSING, "Placing Your Order...", "Please wait while we process your order."
            )
        elif state == CheckoutState.COMPLETED:
            self._show_success(event.order_number)
        elif state == CheckoutState.ABANDONED:
            self._show_abandoned(event.error)
        elif state == CheckoutState.ERRORED:
            self._show_error(event.error, resumed=previous in RESUME_BRANCH)
        logger.debug("Checkout view %s, recovery %s", self.view.kind.value, self.recovery.value)

    def _show_success(self, order_number: Optional[str]) -> None:
        self.view = CheckoutView(
            ViewKind.SUCCESS,
            "Order Placed Successfully!",
            "Thank you for your order. You will receive a confirmation email shortly.",
            order_number=order_number or "",
        )
        self.recovery = RecoveryAction.NONE
        self.notification = None

    def _show_abandoned(self, error: Any) -> None:
        if isinstance(error, CheckoutError) and error.step == "resume":
            self.view = CheckoutView(
                ViewKind.ERROR, PAYMENT_ERROR_HEADING, error.message, back_to_cart_url=self.cart_url
            )
            self.recovery = RecoveryAction.BACK_TO_CART
            self.notify(error.message, Severity.ERROR)
            return

        self.view = CheckoutView(
            ViewKind.EMPTY_CART,
            "Your cart is empty",
            "Add some items to your cart to get started.",
            back_to_cart_url=self.cart_url,
        )
        if isinstance(error, CartUnavailable):
            self.recovery = RecoveryAction.RELOAD_CART
            self.notify(error.message, Severity.ERROR)
        else:
            self.recovery = RecoveryAction.NONE

    def _show_error(self, error: Any, *, resumed: bool) -> None:
        message = error.message if isinstance(error, CheckoutError) else str(error or "Failed to place order")

        if isinstance(error, OrderPlacementFailed):
            self.view = CheckoutView(
                ViewKind.ERROR, ORDER_NOT_RECORDED_HEADING, message, back_to_cart_url=self.cart_url
            )
            self.recovery = RecoveryAction.CONTACT_SUPPORT
            self.notification = Notification(
                ORDER_NOT_RECORDED_HEADING, Severity.ERROR, dismissible=True, auto_dismiss_seconds=None
            )
            return

        if resumed or isinstance(error, (CaptureNotSettled, CaptureCallFailed)):
            self.view = CheckoutView(ViewKind.ERROR, PAYMENT_ERROR_HEADING, message, back_to_cart_url=self.cart_url)
            self.recovery = RecoveryAction.BACK_TO_CART
            self.notify(message, Severity.ERROR)
            return

        if isinstance(error, CartUnavailable):
            self.recovery = RecoveryAction.RELOAD_CART
        else:
            # PrepareFailed, ExternalOrderFailed and anything unexpected before the redirect.
            self.recovery = RecoveryAction.RESUBMIT
        # The form stays on screen so the shopper can submit again.
        self.view = CheckoutView(ViewKind.CHECKOUT_FORM)
        self.notify(message or "Failed to place order", Severity.ERROR)
