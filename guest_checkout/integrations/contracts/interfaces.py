from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class CaptureStatus(str, Enum):
    SUCCESS = "SUCCESS"
    PENDING = "PENDING"
    FAILED = "FAILED"
    DECLINED = "DECLINED"
    CANCELLED = "CANCELLED"
    UNKNOWN = "UNKNOWN"


# ---------------------------------------------------------------------------
# Shared data models
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Money:
    value: float = 0.0
    currency: str = "USD"

    def to_payload(self) -> Dict[str, Any]:
        return {"value": self.value, "currency_code": self.currency}


@dataclass(frozen=True)
class CartLineItem:
    uid: str
    sku: str
    name: str
    quantity: int
    price: Money                         # unit price
    row_total: Money
    is_available: bool = True
    not_available_message: str = ""
    image: str = ""
    image_label: str = ""
    url_key: str = ""


@dataclass(frozen=True)
class CartSnapshot:
    id: str
    items: Tuple[CartLineItem, ...] = ()
    total_quantity: int = 0
    subtotal: Money = field(default_factory=Money)     # excluding tax
    grand_total: Money = field(default_factory=Money)

    @property
    def currency(self) -> str:
        return self.grand_total.currency

    @property
    def is_empty(self) -> bool:
        return len(self.items) == 0


GUEST_ADDRESS_FIELDS: Tuple[str, ...] = (
    "guestEmail",
    "firstname",
    "lastname",
    "company",
    "street",
    "city",
    "region",
    "postcode",
    "country_code",
    "telephone",
)


@dataclass(frozen=True)
class GuestAddress:
    guest_email: str
    firstname: str
    lastname: str
    company: str
    street: str
    city: str
    region: str
    postcode: str
    country_code: str
    telephone: str

    def to_dict(self) -> Dict[str, str]:
        """Form-field keyed mapping, the shape stored in the session and used to refill the form."""
        data = asdict(self)
        data["guestEmail"] = data.pop("guest_email")
        return {key: data[key] for key in GUEST_ADDRESS_FIELDS}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GuestAddress":
        values = {key: "" if data.get(key) is None else str(data.get(key)) for key in GUEST_ADDRESS_FIELDS}
        values["guest_email"] = values.pop("guestEmail")
        return cls(**values)


@dataclass(frozen=True)
class ShippingMethod:
    carrier_code: str = "flatrate"
    method_code: str = "flatrate"


@dataclass(frozen=True)
class PaymentMethod:
    code: str = "checkmo"


@dataclass(frozen=True)
class CheckoutRequest:
    cart_id: str
    address: GuestAddress
    shipping_method: ShippingMethod = field(default_factory=ShippingMethod)
    payment_method: PaymentMethod = field(default_factory=PaymentMethod)

    @classmethod
    def build(
        cls,
        cart: CartSnapshot,
        address: GuestAddress,
        shipping_method: Optional[ShippingMethod] = None,
        payment_method: Optional[PaymentMethod] = None,
    ) -> "CheckoutRequest":
        return cls(
            cart_id=cart.id,
            address=address,
            shipping_method=shipping_method or ShippingMethod(),
            payment_method=payment_method or PaymentMethod(),
        )


@dataclass(frozen=True)
class ExternalPaymentOrder:
    id: str
    approval_url: str
    amount: Money
    raw: Dict[str, Any] = field(default_factory=dict, compare=False)


@dataclass(frozen=True)
class CaptureResult:
    status: CaptureStatus
    provider_reference: str = ""
    raw: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def settled(self) -> bool:
        return self.status == CaptureStatus.SUCCESS


@dataclass(frozen=True)
class PlacedOrder:
    order_number: str
    provider_order_reference: str = ""
    raw: Dict[str, Any] = field(default_factory=dict, compare=False)


@dataclass(frozen=True)
class CompletedCheckout:
    resume_token: str
    order_number: str
    completed_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CompletedCheckout":
        return cls(
            resume_token=str(data["resume_token"]),
            order_number=str(data.get("order_number") or ""),
            completed_at=str(data.get("completed_at") or ""),
        )


@dataclass(frozen=True)
class CapturedPayment:
    """A settled capture whose order has not been confirmed yet."""

    resume_token: str
    cart_id: str
    status: str = CaptureStatus.SUCCESS.value
    captured_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CapturedPayment":
        return cls(
            resume_token=str(data["resume_token"]),
            cart_id=str(data.get("cart_id") or ""),
            status=str(data.get("status") or ""),
            captured_at=str(data.get("captured_at") or ""),
        )


# ---------------------------------------------------------------------------
# Abstract storefront interface
# ---------------------------------------------------------------------------

class StorefrontClient(ABC):
    """Every storefront backend client must implement this interface.

    Methods return the decoded JSON body. Non-2xx responses raise
    ``StorefrontHTTPError``; transport problems surface as ``httpx`` errors.
    """

    # -- Cart --

    @abstractmethod
    async def get_cart(self, cart_id: str) -> Dict[str, Any]:
        """Fetch the raw cart document."""

    @abstractmethod
    async def update_cart_item(self, cart_id: str, item_uid: str, quantity: int) -> Dict[str, Any]:
        """Change the quantity of one line item."""

    @abstractmethod
    async def remove_cart_item(self, cart_id: str, item_uid: str) -> Dict[str, Any]:
        """Remove one line item."""

    # -- Checkout --

    @abstractmethod
    async def prepare_checkout(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Set guest email, shipping address and methods on the cart."""

    @abstractmethod
    async def create_external_order(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Create the provider-side payment order."""

    @abstractmethod
    async def capture_external_order(self, external_order_id: str) -> Dict[str, Any]:
        """Capture an approved provider-side payment order."""

    @abstractmethod
    async def place_order(self, cart_id: str) -> Dict[str, Any]:
        """Convert the cart into an order."""


class StorefrontHTTPError(Exception):
    """Non-2xx response from the storefront backend, message already extracted from the body."""

    def __init__(self, status_code: int, message: str, *, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.body = body


def line_items_payload(items: List[CartLineItem]) -> List[Dict[str, Any]]:
    return [
        {
            "name": item.name,
            "sku": item.sku,
            "quantity": item.quantity,
            "unit_amount": item.price.to_payload(),
        }
        for item in items
    ]
