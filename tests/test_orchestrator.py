import pytest

from guest_checkout.checkout.cart_gateway import CartGateway
from guest_checkout.checkout.errors import (
    CaptureNotSettled,
    CartUnavailable,
    FormValidationError,
    OrderPlacementFailed,
    PrepareFailed,
)
from guest_checkout.checkout.events import CheckoutEvents, StateChanged
from guest_checkout.checkout.notifications import RecoveryAction, ViewKind
from guest_checkout.checkout.orchestrator import CheckoutOrchestrator
from guest_checkout.checkout.payment_gateway import PaymentGatewayAdapter
from guest_checkout.checkout.session_store import CheckoutSessionStore
from guest_checkout.checkout.states import CheckoutState, InvalidTransition
from guest_checkout.database.memory_store import InMemoryStore
from guest_checkout.integrations.clients.mocks.storefront import MockStorefrontClient, make_cart_document
from guest_checkout.integrations.contracts.interfaces import GuestAddress

PAYMENT_OPERATIONS = (
    "checkout_prepare",
    "external_order_create",
    "external_order_capture",
    "checkout_place_order",
)


class FixedOrderNumberStorefront(MockStorefrontClient):
    async def place_order(self, cart_id):
        await super().place_order(cart_id)
        return {"order": {"number": "000000123"}}


class CompletionWriteFailsStore(InMemoryStore):
    """Backend that is down by the time the completed order is recorded."""

    def set_value(self, key, value, ttl=None):
        if key.endswith(":completedCheckout"):
            raise ConnectionError("session backend unavailable")
        super().set_value(key, value, ttl)


def _orchestrator_over(backend, client):
    events = CheckoutEvents()
    return CheckoutOrchestrator(
        CartGateway(client, events),
        PaymentGatewayAdapter(client),
        CheckoutSessionStore(backend, "profile-1", events),
        events,
        return_url="https://shop.example/checkout",
    )


async def _redirect_for(orchestrator, fields):
    orchestrator.session.set_cart_id("cart-123")
    assert await orchestrator.load() == CheckoutState.CART_READY
    return await orchestrator.submit(fields)


@pytest.mark.asyncio
async def test_submit_issues_redirect_and_keeps_cart_id(make_orchestrator, storefront, valid_fields):
    orchestrator = make_orchestrator()

    redirect = await _redirect_for(orchestrator, valid_fields)

    assert redirect is not None
    assert redirect.url.startswith("https://pay.example/approve?")
    assert orchestrator.state == CheckoutState.AWAITING_RETURN
    assert orchestrator.redirect == redirect
    assert orchestrator.session.get_cart_id() == "cart-123"
    assert orchestrator.notification.heading == "Redirecting to payment provider..."

    requests = dict(storefront.requests)
    assert requests["external_order_create"]["amount"] == {"value": 50.0, "currency_code": "USD"}
    assert requests["external_order_create"]["returnUrl"] == "https://shop.example/checkout"
    assert requests["checkout_prepare"]["guestEmail"] == "jane@example.com"
    assert storefront.calls["external_order_capture"] == 0


@pytest.mark.asyncio
async def test_guest_address_is_stored_before_redirect_and_rehydrates_form(make_orchestrator, valid_fields):
    first = make_orchestrator()
    await _redirect_for(first, valid_fields)

    # The shopper abandons the provider page and comes back to checkout later.
    second = make_orchestrator()
    second.session.set_cart_id("cart-123")
    await second.load()

    assert second.saved_address == GuestAddress.from_dict(valid_fields)
    assert second.saved_address.to_dict() == valid_fields


@pytest.mark.asyncio
async def test_successful_return_captures_places_order_and_clears_cart(make_orchestrator, cart_document, valid_fields):
    storefront = FixedOrderNumberStorefront(carts={"cart-123": cart_document})
    redirect = await _redirect_for(make_orchestrator(storefront), valid_fields)

    returned = make_orchestrator(storefront)
    state = await returned.start({"token": redirect.external_order_id, "PayerID": "PAYER1"})

    assert state == CheckoutState.COMPLETED
    assert returned.view.kind == ViewKind.SUCCESS
    assert returned.view.title == "Order Placed Successfully!"
    assert returned.view.order_number == "000000123"
    assert returned.order_number == "000000123"
    assert returned.session.get_cart_id() is None
    assert returned.cart is None
    assert storefront.calls["external_order_capture"] == 1
    assert storefront.calls["checkout_place_order"] == 1


@pytest.mark.asyncio
async def test_reloading_return_page_does_not_capture_twice(make_orchestrator, cart_document, valid_fields):
    storefront = FixedOrderNumberStorefront(carts={"cart-123": cart_document})
    redirect = await _redirect_for(make_orchestrator(storefront), valid_fields)
    query = {"token": redirect.external_order_id}

    await make_orchestrator(storefront).start(query)
    reloaded = make_orchestrator(storefront)
    state = await reloaded.start(query)

    assert state == CheckoutState.COMPLETED
    assert reloaded.view.kind == ViewKind.SUCCESS
    assert reloaded.view.order_number == "000000123"
    assert storefront.calls["external_order_capture"] == 1
    assert storefront.calls["checkout_place_order"] == 1


@pytest.mark.asyncio
async def test_failed_capture_routes_back_to_cart_without_placing_order(make_orchestrator, cart_document, valid_fields):
    storefront = MockStorefrontClient(carts={"cart-123": cart_document}, capture_status="FAILED")
    redirect = await _redirect_for(make_orchestrator(storefront), valid_fields)

    returned = make_orchestrator(storefront)
    state = await returned.start({"token": redirect.external_order_id})

    assert state == CheckoutState.ERRORED
    assert isinstance(returned.error, CaptureNotSettled)
    assert returned.error.message == "Payment capture was not completed successfully. Status: FAILED"
    assert returned.view.kind == ViewKind.ERROR
    assert returned.view.back_to_cart_url == "/cart"
    assert returned.recovery == RecoveryAction.BACK_TO_CART
    assert storefront.calls["checkout_place_order"] == 0
    assert returned.session.get_cart_id() == "cart-123"


@pytest.mark.parametrize("status", ["PENDING", "DECLINED", "CANCELLED", "VOIDED", "SOMETHING_NEW", ""])
@pytest.mark.asyncio
async def test_non_settled_capture_never_places_order(make_orchestrator, cart_document, status):
    storefront = MockStorefrontClient(carts={"cart-123": cart_document}, capture_status=status)
    orchestrator = make_orchestrator(storefront)
    orchestrator.session.set_cart_id("cart-123")

    await orchestrator.resume("TOKEN-1")

    assert orchestrator.state == CheckoutState.ERRORED
    assert isinstance(orchestrator.error, CaptureNotSettled)
    assert storefront.calls["external_order_capture"] == 1
    assert storefront.calls["checkout_place_order"] == 0


@pytest.mark.asyncio
async def test_place_order_failure_after_capture_is_reported_verbatim(make_orchestrator, cart_document, valid_fields):
    storefront = MockStorefrontClient(
        carts={"cart-123": cart_document},
        failures={"checkout_place_order": (500, "Unable to place order: stock changed")},
    )
    redirect = await _redirect_for(make_orchestrator(storefront), valid_fields)

    returned = make_orchestrator(storefront)
    await returned.start({"token": redirect.external_order_id})

    assert returned.state == CheckoutState.ERRORED
    assert isinstance(returned.error, OrderPlacementFailed)
    assert returned.error.message == "Failed to place order: Unable to place order: stock changed"
    assert returned.view.kind == ViewKind.ERROR
    assert returned.view.title == "Payment captured but order not recorded"
    assert returned.view.message == returned.error.message
    assert returned.recovery == RecoveryAction.CONTACT_SUPPORT
    assert storefront.calls["external_order_capture"] == 1
    assert storefront.calls["checkout_place_order"] == 1
    # No automatic retry from the resume branch.
    with pytest.raises(InvalidTransition):
        await returned.retry()


@pytest.mark.asyncio
async def test_empty_cart_is_abandoned_without_payment_calls(make_orchestrator):
    storefront = MockStorefrontClient(carts={"cart-123": make_cart_document("cart-123", [])})
    orchestrator = make_orchestrator(storefront)
    orchestrator.session.set_cart_id("cart-123")

    state = await orchestrator.load()

    assert state == CheckoutState.ABANDONED
    assert orchestrator.error is None
    assert orchestrator.view.kind == ViewKind.EMPTY_CART
    assert orchestrator.submit_enabled is False
    assert all(storefront.calls[op] == 0 for op in PAYMENT_OPERATIONS)


@pytest.mark.asyncio
async def test_missing_cart_id_shows_empty_cart(make_orchestrator, storefront):
    orchestrator = make_orchestrator()

    assert await orchestrator.start({}) == CheckoutState.ABANDONED
    assert orchestrator.view.kind == ViewKind.EMPTY_CART
    assert storefront.calls["cart_get"] == 0


@pytest.mark.asyncio
async def test_unreadable_cart_reports_failed_load(make_orchestrator, storefront):
    orchestrator = make_orchestrator()
    orchestrator.session.set_cart_id("does-not-exist")

    assert await orchestrator.load() == CheckoutState.ABANDONED
    assert isinstance(orchestrator.error, CartUnavailable)
    assert orchestrator.notification.heading == "Failed to load cart"
    assert orchestrator.view.kind == ViewKind.EMPTY_CART
    assert orchestrator.recovery == RecoveryAction.RELOAD_CART


@pytest.mark.asyncio
async def test_return_without_cart_id_is_fatal_and_makes_no_calls(make_orchestrator, storefront):
    orchestrator = make_orchestrator()

    state = await orchestrator.start({"token": "ORPHAN-TOKEN"})

    assert state == CheckoutState.ABANDONED
    assert isinstance(orchestrator.error, CartUnavailable)
    assert orchestrator.error.step == "resume"
    assert orchestrator.view.kind == ViewKind.ERROR
    assert orchestrator.view.back_to_cart_url == "/cart"
    assert orchestrator.recovery == RecoveryAction.BACK_TO_CART
    assert sum(storefront.calls.values()) == 0


@pytest.mark.asyncio
async def test_invalid_form_keeps_state_and_exposes_field_errors(make_orchestrator, storefront, valid_fields):
    orchestrator = make_orchestrator()
    orchestrator.session.set_cart_id("cart-123")
    await orchestrator.load()

    fields = dict(valid_fields, guestEmail="not-an-email", city="  ")
    with pytest.raises(FormValidationError):
        await orchestrator.submit(fields)

    assert orchestrator.state == CheckoutState.CART_READY
    assert orchestrator.field_errors == {
        "guestEmail": "Please enter a valid email address",
        "city": "City is required",
    }
    assert orchestrator.notification.heading == "Please fill in all required fields"
    assert orchestrator.submit_enabled is True
    assert storefront.calls["checkout_prepare"] == 0


@pytest.mark.asyncio
async def test_prepare_failure_is_recoverable_by_submitting_again(make_orchestrator, storefront, valid_fields):
    storefront.failures["checkout_prepare"] = (400, "The shipping address is missing.")
    orchestrator = make_orchestrator()

    assert await _redirect_for(orchestrator, valid_fields) is None
    assert orchestrator.state == CheckoutState.ERRORED
    assert isinstance(orchestrator.error, PrepareFailed)
    assert orchestrator.error.message == "The shipping address is missing."
    assert orchestrator.recovery == RecoveryAction.RESUBMIT
    assert orchestrator.submit_enabled is True
    assert storefront.calls["external_order_create"] == 0

    del storefront.failures["checkout_prepare"]
    redirect = await orchestrator.submit(valid_fields)

    assert redirect is not None
    assert orchestrator.state == CheckoutState.AWAITING_RETURN


@pytest.mark.asyncio
async def test_external_order_failure_then_retry_reloads_cart(make_orchestrator, storefront, valid_fields):
    storefront.failures["external_order_create"] = (502, "Payment provider unavailable")
    orchestrator = make_orchestrator()

    assert await _redirect_for(orchestrator, valid_fields) is None
    assert orchestrator.error.step == "create_external_order"

    assert await orchestrator.retry() == CheckoutState.CART_READY
    assert orchestrator.error is None
    assert storefront.calls["cart_get"] == 2


@pytest.mark.asyncio
async def test_retry_is_only_allowed_after_an_error(make_orchestrator):
    orchestrator = make_orchestrator()
    orchestrator.session.set_cart_id("cart-123")
    await orchestrator.load()

    with pytest.raises(InvalidTransition):
        await orchestrator.retry()


@pytest.mark.asyncio
async def test_state_changes_are_published_in_order(make_orchestrator, cart_document, valid_fields):
    storefront = FixedOrderNumberStorefront(carts={"cart-123": cart_document})
    redirect = await _redirect_for(make_orchestrator(storefront), valid_fields)

    returned = make_orchestrator(storefront)
    seen = []
    returned.events.subscribe(lambda event: seen.append(event.current), StateChanged)
    await returned.resume(redirect.external_order_id)

    assert seen == [
        CheckoutState.RESUMED,
        CheckoutState.CAPTURING,
        CheckoutState.CAPTURED,
        CheckoutState.PLACING_ORDER,
        CheckoutState.COMPLETED,
    ]


@pytest.mark.asyncio
async def test_resume_with_another_token_after_completion_still_needs_a_cart(make_orchestrator, cart_document, valid_fields):
    storefront = FixedOrderNumberStorefront(carts={"cart-123": cart_document})
    redirect = await _redirect_for(make_orchestrator(storefront), valid_fields)
    await make_orchestrator(storefront).start({"token": redirect.external_order_id})

    other = make_orchestrator(storefront)
    state = await other.start({"token": "SOME-OTHER-TOKEN"})

    assert state == CheckoutState.ABANDONED
    assert storefront.calls["external_order_capture"] == 1


@pytest.mark.asyncio
async def test_submit_sends_line_items_with_the_external_order(make_orchestrator, storefront, valid_fields):
    await _redirect_for(make_orchestrator(), valid_fields)

    assert dict(storefront.requests)["external_order_create"]["items"] == [
        {
            "name": "Chaz Kangeroo Hoodie",
            "sku": "MH01-XS-Black",
            "quantity": 1,
            "unit_amount": {"value": 50.0, "currency_code": "USD"},
        }
    ]


@pytest.mark.asyncio
async def test_reload_after_order_failure_does_not_capture_again(make_orchestrator, cart_document, valid_fields):
    storefront = MockStorefrontClient(
        carts={"cart-123": cart_document},
        failures={"checkout_place_order": (500, "Internal error")},
    )
    redirect = await _redirect_for(make_orchestrator(storefront), valid_fields)
    query = {"token": redirect.external_order_id}

    first = make_orchestrator(storefront)
    await first.start(query)
    assert isinstance(first.error, OrderPlacementFailed)
    assert first.session.get_captured_payment().resume_token == redirect.external_order_id

    reloaded = make_orchestrator(storefront)
    state = await reloaded.start(query)

    assert state == CheckoutState.ERRORED
    assert isinstance(reloaded.error, OrderPlacementFailed)
    assert reloaded.view.title == "Payment captured but order not recorded"
    assert reloaded.recovery == RecoveryAction.CONTACT_SUPPORT
    assert storefront.calls["external_order_capture"] == 1
    assert storefront.calls["checkout_place_order"] == 1


@pytest.mark.asyncio
async def test_capture_record_is_cleared_once_the_order_is_recorded(make_orchestrator, cart_document, valid_fields):
    storefront = FixedOrderNumberStorefront(carts={"cart-123": cart_document})
    redirect = await _redirect_for(make_orchestrator(storefront), valid_fields)

    returned = make_orchestrator(storefront)
    await returned.start({"token": redirect.external_order_id})

    assert returned.state == CheckoutState.COMPLETED
    assert returned.session.get_captured_payment() is None
    assert returned.session.get_completed_checkout().order_number == "000000123"


@pytest.mark.asyncio
async def test_session_outage_after_order_still_shows_success(cart_document, valid_fields):
    backend = CompletionWriteFailsStore()
    storefront = FixedOrderNumberStorefront(carts={"cart-123": cart_document})
    redirect = await _redirect_for(_orchestrator_over(backend, storefront), valid_fields)
    query = {"token": redirect.external_order_id}

    returned = _orchestrator_over(backend, storefront)
    state = await returned.start(query)

    assert state == CheckoutState.COMPLETED
    assert returned.view.kind == ViewKind.SUCCESS
    assert returned.order_number == "000000123"
    assert returned.session.get_cart_id() == "cart-123"

    reloaded = _orchestrator_over(backend, storefront)
    await reloaded.start(query)

    assert reloaded.state == CheckoutState.ERRORED
    assert reloaded.recovery == RecoveryAction.CONTACT_SUPPORT
    assert storefront.calls["external_order_capture"] == 1
    assert storefront.calls["checkout_place_order"] == 1


@pytest.mark.asyncio
async def test_load_is_refused_after_a_resume_failure(make_orchestrator, cart_document):
    storefront = MockStorefrontClient(carts={"cart-123": cart_document}, capture_status="FAILED")
    orchestrator = make_orchestrator(storefront)
    orchestrator.session.set_cart_id("cart-123")
    await orchestrator.resume("TOKEN-1")

    with pytest.raises(InvalidTransition):
        await orchestrator.load()
    assert storefront.calls["cart_get"] == 0
