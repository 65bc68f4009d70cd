"""Pytest fixtures for the checkout flow tests."""

import pytest

from guest_checkout.checkout.cart_gateway import CartGateway
from guest_checkout.checkout.events import CheckoutEvents
from guest_checkout.checkout.orchestrator import CheckoutOrchestrator
from guest_checkout.checkout.payment_gateway import PaymentGatewayAdapter
from guest_checkout.checkout.session_store import CheckoutSessionStore
from guest_checkout.database.memory_store import InMemoryStore
from guest_checkout.integrations.clients.mocks.storefront import MockStorefrontClient, make_cart_document


@pytest.fixture
def store():
    """In-memory stand-in for the browser profile storage."""
    return InMemoryStore()


@pytest.fixture
def events():
    return CheckoutEvents()


@pytest.fixture
def session(store, events):
    return CheckoutSessionStore(store, "profile-1", events)


@pytest.fixture
def cart_document():
    """One hoodie, 50.00 USD."""
    return make_cart_document("cart-123", [("MH01-XS-Black", "Chaz Kangeroo Hoodie", 1, 50.00)])


@pytest.fixture
def storefront(cart_document):
    return MockStorefrontClient(carts={"cart-123": cart_document})


@pytest.fixture
def valid_fields():
    return {
        "guestEmail": "jane@example.com",
        "firstname": "Jane",
        "lastname": "Doe",
        "company": "Acme",
        "street": "1 Main St",
        "city": "Austin",
        "region": "TX",
        "postcode": "78701",
        "country_code": "US",
        "telephone": "5125550100",
    }


@pytest.fixture
def make_orchestrator(store, storefront):
    """Build a fresh orchestrator over the shared store, as each page load does."""

    def _make(client=None, profile_id="profile-1"):
        client = client or storefront
        events = CheckoutEvents()
        session = CheckoutSessionStore(store, profile_id, events)
        return CheckoutOrchestrator(
            CartGateway(client, events),
            PaymentGatewayAdapter(client),
            session,
            events,
            return_url="https://shop.example/checkout",
        )

    return _make
