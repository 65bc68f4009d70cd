"""
Storefront MOCK client.

This is a mock implementation for development and testing only. Request history
and external orders are bounded by ``history_limit``.
It makes no network calls: carts live in memory, external payment orders are
approved instantly and every outcome can be scripted through the constructor:

- ``capture_status`` decides what the capture call reports
- ``failures`` maps an operation name to ``(status_code, message)`` and makes
  that operation raise ``StorefrontHTTPError``
- ``calls`` counts how often each operation was invoked
"""

import logging
import uuid
from collections import Counter, deque
from typing import Any, Deque, Dict, List, Optional, Sequence, Tuple

from guest_checkout.integrations.contracts.interfaces import StorefrontClient, StorefrontHTTPError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Seed data
# ---------------------------------------------------------------------------

_DEMO_ITEMS: List[Tuple[str, str, int, float]] = [
    ("MH01-XS-Black", "Chaz Kangeroo Hoodie", 1, 52.00),
    ("24-MB01", "Joust Duffle Bag", 2, 34.00),
]


def _row(uid: str, sku: str, name: str, quantity: int, unit_price: float, currency: str) -> Dict[str, Any]:
    return {
        "uid": uid,
        "quantity": quantity,
        "is_available": True,
        "product": {
            "sku": sku,
            "name": name,
            "url_key": sku.lower(),
            "thumbnail": {"url": f"https://media.example/{sku}.jpg", "label": name},
        },
        "prices": {
            "price": {"value": unit_price, "currency": currency},
            "row_total": {"value": round(quantity * unit_price, 2), "currency": currency},
        },
    }


def _cart_document(cart_id: str, rows: List[Dict[str, Any]], currency: str) -> Dict[str, Any]:
    subtotal = round(sum(row["prices"]["row_total"]["value"] for row in rows), 2)
    return {
        "id": cart_id,
        "total_quantity": sum(row["quantity"] for row in rows),
        "itemsV2": {"items": rows},
        "prices": {
            "grand_total": {"value": subtotal, "currency": currency},
            "subtotal_excluding_tax": {"value": subtotal, "currency": currency},
        },
    }


def make_cart_document(
    cart_id: str,
    items: Sequence[Tuple[str, str, int, float]] = (),
    currency: str = "USD",
) -> Dict[str, Any]:
    """Build a cart document in the storefront's wire shape from ``(sku, name, qty, unit_price)`` rows."""
    rows = [
        _row(f"item-{index}", sku, name, quantity, unit_price, currency)
        for index, (sku, name, quantity, unit_price) in enumerate(items, start=1)
    ]
    return _cart_document(cart_id, rows, currency)


# ---------------------------------------------------------------------------
# Mock client
# ---------------------------------------------------------------------------

class MockStorefrontClient(StorefrontClient):
    """
    Mock storefront backend.

    Parameters
    ----------
    carts : dict
        Initial cart documents keyed by cart id.
    capture_status : str
        Status reported by ``capture_external_order``. Default ``SUCCESS``.
    failures : dict
        Operation name -> ``(status_code, message)`` to fail with.
    auto_create_carts : bool
        If True, unknown cart ids get a demo cart instead of a 404. Default False.
    approval_base_url : str
        Base of the approval URL handed back for the redirect.
    currency : str
        Currency of auto-created demo carts.
    history_limit : int
        Most recent requests and external orders kept in memory. Default 500.
    """

    def __init__(
        self,
        carts: Optional[Dict[str, Dict[str, Any]]] = None,
        capture_status: str = "SUCCESS",
        failures: Optional[Dict[str, Tuple[int, str]]] = None,
        auto_create_carts: bool = False,
        approval_base_url: str = "https://pay.example/approve",
        currency: str = "USD",
        history_limit: int = 500,
    ):
        self._carts: Dict[str, Dict[str, Any]] = dict(carts or {})
        self.capture_status = capture_status
        self.failures: Dict[str, Tuple[int, str]] = dict(failures or {})
        self._auto_create_carts = auto_create_carts
        self._approval_base_url = approval_base_url
        self._currency_code = currency

        self.calls: Counter = Counter()
        self.requests: Deque[Tuple[str, Dict[str, Any]]] = deque(maxlen=history_limit)
        self._history_limit = history_limit
        self._external_orders: Dict[str, Dict[str, Any]] = {}
        self._order_sequence = 0

        logger.info("[STOREFRONT MOCK] Client initialised (carts=%d, capture_status=%s)", len(self._carts), capture_status)

    # ------------------------------------------------------------------
    # Cart
    # ------------------------------------------------------------------

    async def get_cart(self, cart_id: str) -> Dict[str, Any]:
        self._record("cart_get", {"cartId": cart_id})
        return {"cart": self._cart(cart_id)}

    async def update_cart_item(self, cart_id: str, item_uid: str, quantity: int) -> Dict[str, Any]:
        self._record("cart_update_item", {"cartId": cart_id, "cart_item_id": item_uid, "quantity": quantity})
        cart = self._cart(cart_id)
        currency = self._currency(cart)
        rows = [
            _row(row["uid"], row["product"]["sku"], row["product"]["name"], quantity, row["prices"]["price"]["value"], currency)
            if row["uid"] == item_uid
            else row
            for row in cart["itemsV2"]["items"]
        ]
        self._carts[cart_id] = _cart_document(cart_id, rows, currency)
        return {"cart": self._carts[cart_id]}

    async def remove_cart_item(self, cart_id: str, item_uid: str) -> Dict[str, Any]:
        self._record("cart_remove_item", {"cartId": cart_id, "itemUid": item_uid})
        cart = self._cart(cart_id)
        rows = [row for row in cart["itemsV2"]["items"] if row["uid"] != item_uid]
        self._carts[cart_id] = _cart_document(cart_id, rows, self._currency(cart))
        return {"cart": self._carts[cart_id]}

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    async def prepare_checkout(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        self._record("checkout_prepare", payload)
        cart = dict(self._cart(payload.get("cartId", "")))
        cart["email"] = payload.get("guestEmail")
        cart["shipping_addresses"] = [payload.get("shippingAddress", {})]
        self._carts[cart["id"]] = cart
        return {"cart": cart}

    async def create_external_order(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        self._record("external_order_create", payload)
        order_id = uuid.uuid4().hex[:17].upper()
        order = {
            "id": order_id,
            "status": "CREATED",
            "cartId": payload.get("cartId"),
            "amount": payload.get("amount", {}),
            "approvalUrl": f"{self._approval_base_url}?token={order_id}",
        }
        self._external_orders[order_id] = order
        while len(self._external_orders) > self._history_limit:
            self._external_orders.pop(next(iter(self._external_orders)))
        logger.info("[STOREFRONT MOCK] External order %s created for cart %s", order_id, payload.get("cartId"))
        return order

    async def capture_external_order(self, external_order_id: str) -> Dict[str, Any]:
        self._record("external_order_capture", {"paypalOrderId": external_order_id})
        # Tokens minted outside this mock (e.g. a hand-typed return URL) are captured as-is.
        if external_order_id in self._external_orders:
            self._external_orders[external_order_id]["status"] = self.capture_status
        return {"id": external_order_id, "status": self.capture_status}

    async def place_order(self, cart_id: str) -> Dict[str, Any]:
        self._record("checkout_place_order", {"cartId": cart_id})
        self._cart(cart_id)
        self._order_sequence += 1
        number = f"{self._order_sequence:09d}"
        self._carts.pop(cart_id, None)
        return {"order": {"number": number}, "orderNumber": number}

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _record(self, operation: str, payload: Dict[str, Any]) -> None:
        self.calls[operation] += 1
        self.requests.append((operation, payload))
        if operation in self.failures:
            status_code, message = self.failures[operation]
            logger.info("[STOREFRONT MOCK] Scripted failure for %s: %s", operation, status_code)
            raise StorefrontHTTPError(status_code, message)

    def _cart(self, cart_id: str) -> Dict[str, Any]:
        if cart_id not in self._carts:
            if not self._auto_create_carts or not cart_id:
                raise StorefrontHTTPError(404, f"Could not find a cart with ID \"{cart_id}\"")
            self._carts[cart_id] = make_cart_document(cart_id, _DEMO_ITEMS, self._currency_code)
        return self._carts[cart_id]

    @staticmethod
    def _currency(cart: Dict[str, Any]) -> str:
        return cart.get("prices", {}).get("grand_total", {}).get("currency", "USD")

