"""
Checkout orchestrator.

Drives one checkout attempt through two process lifetimes:

    submit branch:  IDLE -> CART_READY -> FORM_VALID -> PREPARING
                    -> EXTERNAL_ORDER_CREATED -> AWAITING_RETURN (redirect issued)
    resume branch:  IDLE -> RESUMED -> CAPTURING -> CAPTURED
                    -> PLACING_ORDER -> COMPLETED

Nothing in memory survives the redirect. Everything the resume branch needs
(cart id, guest address) is written to the session store before ``submit``
returns the redirect, and ``resume`` starts from a fresh instance that re-reads
it. A capture record is written as soon as the provider settles, and a
completion record once the order is placed. Both are keyed by the resume token
so a reload of the return page never captures the payment a second time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

from guest_checkout.checkout.cart_gateway import CartGateway
from guest_checkout.checkout.errors import (
    CaptureNotSettled,
    CartUnavailable,
    CheckoutError,
    FormValidationError,
    OrderPlacementFailed,
)
from guest_checkout.checkout.events import CartReplaced, CheckoutEvents, StateChanged
from guest_checkout.checkout.notifications import (
    CheckoutView,
    Notification,
    NotificationSink,
    RecoveryAction,
    Severity,
)
from guest_checkout.checkout.payment_gateway import PaymentGatewayAdapter
from guest_checkout.checkout.session_store import CheckoutSessionStore
from guest_checkout.checkout.states import (
    SUBMIT_BRANCH,
    CheckoutState,
    InvalidTransition,
    can_transition,
)
from guest_checkout.checkout.validation import raise_if_errors, validate_guest_checkout
from guest_checkout.integrations.contracts.interfaces import (
    CapturedPayment,
    CartSnapshot,
    CheckoutRequest,
    CompletedCheckout,
    GuestAddress,
    PaymentMethod,
    ShippingMethod,
)
from guest_checkout.integrations.contracts.payments import is_terminal_status

logger = logging.getLogger(__name__)

RESUME_TOKEN_PARAM = "token"
PAYER_ID_PARAM = "PayerID"

ALREADY_CAPTURED_MESSAGE = (
    "Failed to place order: the payment was already captured but the order was not confirmed"
)


@dataclass(frozen=True)
class Redirect:
    """Where to send the browser to approve the payment."""

    url: str
    external_order_id: str = ""


def _first(value: Any) -> Optional[str]:
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    if value is None:
        return None
    value = str(value).strip()
    return value or None


class CheckoutOrchestrator:
    """One instance per page load.

    The sink is a pure observer: it is fed through ``StateChanged`` events and
    never calls back in here.
    """

    def __init__(
        self,
        cart_gateway: CartGateway,
        payment_gateway: PaymentGatewayAdapter,
        session_store: CheckoutSessionStore,
        events: Optional[CheckoutEvents] = None,
        sink: Optional[NotificationSink] = None,
        *,
        return_url: str = "",
        shipping_method: Optional[ShippingMethod] = None,
        payment_method: Optional[PaymentMethod] = None,
    ):
        self.cart_gateway = cart_gateway
        self.payments = payment_gateway
        self.session = session_store
        self.events = events or session_store.events
        self.sink = sink or NotificationSink(self.events)
        self.return_url = return_url
        self.shipping_method = shipping_method
        self.payment_method = payment_method

        self._state = CheckoutState.IDLE
        self._cart: Optional[CartSnapshot] = None
        self._error: Optional[CheckoutError] = None
        self._field_errors: Dict[str, str] = {}
        self._saved_address: Optional[GuestAddress] = None
        self._redirect: Optional[Redirect] = None
        self._order_number: Optional[str] = None
        self._errored_from: Optional[CheckoutState] = None
        self._busy = False

        self.events.subscribe(self._on_cart_replaced, CartReplaced)

    # ------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------

    @property
    def state(self) -> CheckoutState:
        return self._state

    @property
    def cart(self) -> Optional[CartSnapshot]:
        return self._cart

    @property
    def error(self) -> Optional[CheckoutError]:
        return self._error

    @property
    def field_errors(self) -> Dict[str, str]:
        return dict(self._field_errors)

    @property
    def saved_address(self) -> Optional[GuestAddress]:
        return self._saved_address

    @property
    def submit_enabled(self) -> bool:
        return not self._busy and (self._state == CheckoutState.CART_READY or self._recoverable)

    @property
    def notification(self) -> Optional[Notification]:
        return self.sink.notification

    @property
    def view(self) -> CheckoutView:
        return self.sink.view

    @property
    def recovery(self) -> RecoveryAction:
        return self.sink.recovery

    @property
    def redirect(self) -> Optional[Redirect]:
        return self._redirect

    @property
    def order_number(self) -> Optional[str]:
        return self._order_number

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def start(self, query_params: Optional[Mapping[str, Any]] = None) -> CheckoutState:
        """Page load: resume when the provider sent the shopper back, else load the cart."""
        params = query_params or {}
        token = _first(params.get(RESUME_TOKEN_PARAM))
        if token:
            return await self.resume(token, _first(params.get(PAYER_ID_PARAM)))
        return await self.load()

    async def load(self) -> CheckoutState:
        if self._state != CheckoutState.IDLE and not self._recoverable:
            raise InvalidTransition(self._state, CheckoutState.CART_READY)

        self._saved_address = self.session.get_guest_address()
        self._field_errors = {}
        self._error = None

        cart_id = self.session.get_cart_id()
        if not cart_id:
            self._cart = None
            self._transition(CheckoutState.ABANDONED)
            return self._state

        cart = await self.cart_gateway.load_cart(cart_id)
        self._cart = cart
        if cart is None:
            self._error = CartUnavailable("Failed to load cart")
            self._transition(CheckoutState.ABANDONED, error=self._error)
            return self._state
        if cart.is_empty:
            logger.info("Cart %s has no line items", cart_id)
            self._transition(CheckoutState.ABANDONED)
            return self._state

        self._transition(CheckoutState.CART_READY)
        return self._state

    async def submit(self, fields: Optional[Mapping[str, Any]]) -> Optional[Redirect]:
        """Validate the form and run the pre-redirect steps.

        Returns the redirect on success and ``None`` when a remote step failed
        (the failure is available from ``error``). Raises
        ``FormValidationError`` with the state left unchanged when the form is
        incomplete. Submitting again after a pre-redirect failure reloads the
        cart first.
        """
        if self._state != CheckoutState.CART_READY and not self._recoverable:
            raise InvalidTransition(self._state, CheckoutState.FORM_VALID)
        if self._busy:
            logger.warning("Submit ignored while a previous submit is in flight")
            return None

        result = validate_guest_checkout(fields)
        self._field_errors = dict(result.field_errors)
        try:
            address = raise_if_errors(result)
        except FormValidationError as e:
            logger.info("Checkout form rejected: %s", ", ".join(sorted(e.field_errors)))
            self.sink.notify(e.message, Severity.ERROR)
            raise

        self._busy = True
        try:
            if self._recoverable:
                await self.retry()
                if self._state != CheckoutState.CART_READY:
                    return None
            self._transition(CheckoutState.FORM_VALID)
            return await self._run_submit(address)
        except CheckoutError as e:
            self._fail(e)
            return None
        finally:
            self._busy = False

    async def _run_submit(self, address: GuestAddress) -> Redirect:
        cart_id = self.session.get_cart_id()
        if not cart_id or self._cart is None:
            raise CartUnavailable("Cart not found")

        self.session.save_guest_address(address)
        self._saved_address = address

        request = CheckoutRequest.build(self._cart, address, self.shipping_method, self.payment_method)
        self._transition(CheckoutState.PREPARING)
        prepared = await self.payments.prepare_checkout(request)
        self.events.publish(CartReplaced(prepared))

        external_order = await self.payments.create_external_order(
            cart_id, prepared.grand_total, self.return_url, prepared.items
        )
        self._transition(CheckoutState.EXTERNAL_ORDER_CREATED)

        # Both the cart id and the address are already in the session store.
        self._redirect = Redirect(url=external_order.approval_url, external_order_id=external_order.id)
        self._transition(CheckoutState.AWAITING_RETURN)
        logger.info("Redirecting cart %s to payment approval", cart_id)
        return self._redirect

    async def resume(self, token: str, payer_id: Optional[str] = None) -> CheckoutState:
        """Return leg after the payment provider redirected back with ``token``.

        A reload of the return page never captures twice: a completion record
        for the token re-shows the success view, and a capture record without
        one re-shows the order-not-recorded error.
        """
        if self._state != CheckoutState.IDLE:
            raise InvalidTransition(self._state, CheckoutState.RESUMED)
        logger.info("Resuming checkout for payment token %s (payer %s)", token, payer_id or "n/a")
        self._transition(CheckoutState.RESUMED)

        completed = self.session.get_completed_checkout()
        if completed is not None and completed.resume_token == token:
            logger.info("Payment token %s already completed as order %s", token, completed.order_number)
            self._order_number = completed.order_number
            self._transition(CheckoutState.COMPLETED, order_number=completed.order_number)
            return self._state

        captured = self.session.get_captured_payment()
        if captured is not None and captured.resume_token == token:
            logger.error("Payment token %s was captured for cart %s but no order was confirmed", token, captured.cart_id)
            self._fail(OrderPlacementFailed(ALREADY_CAPTURED_MESSAGE, detail=captured.to_dict()))
            return self._state

        cart_id = self.session.get_cart_id()
        if not cart_id:
            self._error = CartUnavailable("Cart not found", step="resume")
            self._transition(CheckoutState.ABANDONED, error=self._error)
            return self._state

        try:
            self._transition(CheckoutState.CAPTURING)
            capture = await self.payments.capture_external_order(token)
            if not capture.settled:
                if not is_terminal_status(capture.status):
                    logger.warning("Capture for token %s is still %s", token, capture.status.value)
                raise CaptureNotSettled(capture.status.value)
            self._persist(
                "record captured payment",
                lambda: self.session.record_captured_payment(
                    CapturedPayment(resume_token=token, cart_id=cart_id, status=capture.status.value)
                ),
            )
            self._transition(CheckoutState.CAPTURED)

            self._transition(CheckoutState.PLACING_ORDER)
            placed = await self.payments.place_order(cart_id)
        except CheckoutError as e:
            self._fail(e)
            return self._state

        # The cart id and capture record are only dropped once the completion
        # record is stored; a reload needs one of them to avoid a second capture.
        recorded = self._persist(
            "record completed checkout",
            lambda: self.session.record_completed_checkout(
                CompletedCheckout(resume_token=token, order_number=placed.order_number)
            ),
        )
        if recorded:
            self._persist("clear captured payment", self.session.clear_captured_payment)
            self._persist("clear cart id", self.session.clear_cart_id)
        self.events.publish(CartReplaced(None))
        self._order_number = placed.order_number
        self._transition(CheckoutState.COMPLETED, order_number=placed.order_number)
        return self._state

    async def retry(self) -> CheckoutState:
        """Recover from a pre-redirect failure by loading the cart again."""
        if not self._recoverable:
            raise InvalidTransition(self._state, CheckoutState.CART_READY)
        return await self.load()

    @property
    def _recoverable(self) -> bool:
        return self._state == CheckoutState.ERRORED and self._errored_from in SUBMIT_BRANCH

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _transition(
        self,
        target: CheckoutState,
        *,
        error: Optional[CheckoutError] = None,
        order_number: Optional[str] = None,
    ) -> None:
        if not can_transition(self._state, target):
            raise InvalidTransition(self._state, target)
        previous = self._state
        self._state = target
        if target == CheckoutState.ERRORED:
            self._errored_from = previous
        logger.info(
            "Checkout %s: %s -> %s", self.session.profile_id, previous.value, target.value
        )
        self.events.publish(StateChanged(previous, target, error=error, order_number=order_number))

    def _persist(self, action: str, write: Callable[[], None]) -> bool:
        """Run a session write after the payment was captured; failures are logged, not raised."""
        try:
            write()
        except Exception:
            logger.exception("Could not %s for checkout %s", action, self.session.profile_id)
            return False
        return True

    def _fail(self, error: CheckoutError) -> None:
        self._error = error
        logger.error("Checkout step %s failed: %s", error.step, error.message)
        self._transition(CheckoutState.ERRORED, error=error)

    def _on_cart_replaced(self, event: CartReplaced) -> None:
        self._cart = event.cart

    def to_dict(self) -> Dict[str, Any]:
        """State payload for the HTTP layer."""
        return {
            "state": self._state.value,
            "cart": cart_to_dict(self._cart),
            "saved_address": self._saved_address.to_dict() if self._saved_address else None,
            "field_errors": self.field_errors,
            "error": self._error.to_dict() if self._error else None,
            "submit_enabled": self.submit_enabled,
            "notification": self.notification.to_dict() if self.notification else None,
            "view": self.view.to_dict(),
            "recovery": self.recovery.value,
            "redirect_url": self._redirect.url if self._redirect else None,
            "order_number": self._order_number,
        }


def cart_to_dict(cart: Optional[CartSnapshot]) -> Optional[Dict[str, Any]]:
    if cart is None:
        return None
    return {
        "id": cart.id,
        "total_quantity": cart.total_quantity,
        "subtotal": cart.subtotal.to_payload(),
        "grand_total": cart.grand_total.to_payload(),
        "items": [
            {
                "uid": item.uid,
                "sku": item.sku,
                "name": item.name,
                "quantity": item.quantity,
                "price": item.price.to_payload(),
                "row_total": item.row_total.to_payload(),
                "is_available": item.is_available,
                "not_available_message": item.not_available_message,
                "image": item.image,
                "image_label": item.image_label,
                "url_key": item.url_key,
            }
            for item in cart.items
        ],
    }
