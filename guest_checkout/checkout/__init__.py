"""
Guest checkout flow.

This package wires together:
- checkout.session_store   (state that survives the payment redirect)
- checkout.cart_gateway    (cart snapshots)
- checkout.payment_gateway (prepare / external order / capture / place order)
- checkout.orchestrator    (the two-branch state machine)
- checkout.notifications   (banner, view and recovery action shown to the shopper)
"""

from .cart_gateway import CartGateway
from .errors import (
    CaptureCallFailed,
    CaptureNotSettled,
    CartUnavailable,
    CheckoutError,
    ExternalOrderFailed,
    FormValidationError,
    OrderPlacementFailed,
    PrepareFailed,
)
from .events import CartReplaced, CheckoutEvents, SessionChanged, StateChanged
from .notifications import CheckoutView, Notification, NotificationSink, RecoveryAction, Severity, ViewKind
from .orchestrator import CheckoutOrchestrator, Redirect
from .payment_gateway import PaymentGatewayAdapter
from .session_store import CheckoutSessionStore
from .states import CheckoutState, InvalidTransition
from .validation import ValidationResult, validate_guest_checkout

__all__ = [
    "CartGateway",
    "CheckoutError",
    "FormValidationError",
    "CartUnavailable",
    "PrepareFailed",
    "ExternalOrderFailed",
    "CaptureNotSettled",
    "CaptureCallFailed",
    "OrderPlacementFailed",
    "CheckoutEvents",
    "SessionChanged",
    "CartReplaced",
    "StateChanged",
    "NotificationSink",
    "Notification",
    "CheckoutView",
    "ViewKind",
    "RecoveryAction",
    "Severity",
    "CheckoutOrchestrator",
    "Redirect",
    "PaymentGatewayAdapter",
    "CheckoutSessionStore",
    "CheckoutState",
    "InvalidTransition",
    "ValidationResult",
    "validate_guest_checkout",
]
