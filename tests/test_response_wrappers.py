import pytest

from guest_checkout.integrations.clients.mocks.storefront import make_cart_document
from guest_checkout.integrations.contracts.interfaces import CaptureStatus, Money
from guest_checkout.integrations.policy.response_wrappers import (
    IntegrationResponseError,
    normalize_capture_response,
    normalize_cart_response,
    normalize_error_message,
    normalize_external_order_response,
    normalize_place_order_response,
)


def test_cart_document_is_normalized_into_snapshot():
    doc = make_cart_document("cart-9", [("24-MB01", "Joust Duffle Bag", 2, 34.0)], currency="EUR")

    cart = normalize_cart_response(doc)

    assert cart.id == "cart-9"
    assert cart.total_quantity == 2
    assert cart.grand_total == Money(68.0, "EUR")
    assert cart.currency == "EUR"
    item = cart.items[0]
    assert item.uid == "item-1"
    assert item.sku == "24-MB01"
    assert item.price == Money(34.0, "EUR")
    assert item.row_total == Money(68.0, "EUR")
    assert item.image == "https://media.example/24-MB01.jpg"


def test_missing_and_null_cart_fields_fall_back_to_defaults():
    raw = {
        "total_quantity": None,
        "itemsV2": {"items": [{"uid": 7, "quantity": "3", "product": None, "prices": {"price": {"value": None}}}]},
        "prices": None,
    }

    cart = normalize_cart_response(raw, fallback_cart_id="fallback")

    assert cart.id == "fallback"
    assert cart.total_quantity == 0
    assert cart.grand_total == Money(0.0, "USD")
    assert cart.items[0].uid == "7"
    assert cart.items[0].quantity == 3
    assert cart.items[0].name == ""
    assert cart.items[0].price == Money(0.0, "USD")


@pytest.mark.parametrize("raw", [None, {}, [], "cart"])
def test_empty_cart_response_raises(raw):
    with pytest.raises(IntegrationResponseError):
        normalize_cart_response(raw)


def test_external_order_reads_approval_url_and_amount():
    raw = {"id": "5O190127TN364715T", "approvalUrl": "https://pay.example/approve?X", "amount": {"value": 50, "currency_code": "usd"}}

    order = normalize_external_order_response(raw, fallback_amount=Money(1.0, "EUR"))

    assert order.id == "5O190127TN364715T"
    assert order.approval_url == "https://pay.example/approve?X"
    assert order.amount == Money(50.0, "USD")


def test_external_order_falls_back_to_approve_link_and_requested_amount():
    raw = {
        "id": "ORDER-1",
        "links": [
            {"rel": "self", "href": "https://api.example/orders/ORDER-1"},
            {"rel": "payer-action", "href": "https://pay.example/checkoutnow?token=ORDER-1"},
        ],
    }

    order = normalize_external_order_response(raw, fallback_amount=Money(12.5, "USD"))

    assert order.approval_url == "https://pay.example/checkoutnow?token=ORDER-1"
    assert order.amount == Money(12.5, "USD")


def test_external_order_without_approval_url_raises():
    with pytest.raises(IntegrationResponseError, match="approval URL"):
        normalize_external_order_response({"id": "ORDER-1"}, fallback_amount=Money(1.0))


@pytest.mark.parametrize(
    "status, expected",
    [
        ("SUCCESS", CaptureStatus.SUCCESS),
        ("completed", CaptureStatus.SUCCESS),
        ("PENDING", CaptureStatus.PENDING),
        ("DENIED", CaptureStatus.DECLINED),
        ("VOIDED", CaptureStatus.CANCELLED),
        ("FAILED", CaptureStatus.FAILED),
        (None, CaptureStatus.UNKNOWN),
    ],
)
def test_capture_status_mapping(status, expected):
    result = normalize_capture_response({"id": "ORDER-1", "status": status})

    assert result.status == expected
    assert result.settled is (expected == CaptureStatus.SUCCESS)
    assert result.provider_reference == "ORDER-1"


def test_empty_capture_response_raises():
    with pytest.raises(IntegrationResponseError, match="Payment capture returned no result"):
        normalize_capture_response({})


@pytest.mark.parametrize(
    "raw",
    [
        {"order": {"number": "000000123"}},
        {"order": {"order_number": "000000123"}},
        {"order": {"order": {"number": "000000123"}}},
        {"orderNumber": "000000123", "order": {"number": "ignored"}},
    ],
)
def test_place_order_number_locations(raw):
    assert normalize_place_order_response(raw).order_number == "000000123"


@pytest.mark.parametrize("raw", [None, {}, {"order": None}, {"success": False}])
def test_place_order_without_order_raises(raw):
    with pytest.raises(IntegrationResponseError, match="Failed to place order"):
        normalize_place_order_response(raw)


@pytest.mark.parametrize(
    "body, expected",
    [
        ('{"message": "Cart is not active"}', "Cart is not active"),
        ('{"error": "Invalid token"}', "Invalid token"),
        ('{"error": {"message": "Nested failure"}}', "Nested failure"),
        ("Gateway exploded", "Gateway exploded"),
        ("", "Failed to capture payment: 502 Bad Gateway"),
        ('{"detail": "x"}', "Failed to capture payment: 502 Bad Gateway"),
        ("[1, 2]", "Failed to capture payment: 502 Bad Gateway"),
    ],
)
def test_error_message_extraction(body, expected):
    assert normalize_error_message(502, "Bad Gateway", body, action="capture payment") == expected
