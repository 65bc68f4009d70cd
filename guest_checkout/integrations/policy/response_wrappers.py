from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from guest_checkout.integrations.contracts.interfaces import (
    CaptureResult,
    CaptureStatus,
    CartLineItem,
    CartSnapshot,
    ExternalPaymentOrder,
    Money,
    PlacedOrder,
)


class IntegrationResponseError(ValueError):
    def __init__(self, message: str, *, payload: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.payload = payload or {}


# ---------------------------------------------------------------------------
# Remote cart document (missing or null fields fall back to zero/empty)
# ---------------------------------------------------------------------------


class _LenientModel(BaseModel):
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


class RemoteMoney(_LenientModel):
    value: float = 0.0
    currency: str = "USD"


class RemoteThumbnail(_LenientModel):
    url: str = ""
    label: str = ""


class RemoteProduct(_LenientModel):
    sku: str = ""
    name: str = ""
    url_key: str = ""
    thumbnail: RemoteThumbnail = Field(default_factory=RemoteThumbnail)


class RemoteItemPrices(_LenientModel):
    price: RemoteMoney = Field(default_factory=RemoteMoney)
    row_total: RemoteMoney = Field(default_factory=RemoteMoney)


class RemoteCartItem(_LenientModel):
    uid: str = ""
    quantity: int = 0
    is_available: bool = True
    not_available_message: str = ""
    product: RemoteProduct = Field(default_factory=RemoteProduct)
    prices: RemoteItemPrices = Field(default_factory=RemoteItemPrices)


class RemoteItems(_LenientModel):
    items: List[RemoteCartItem] = Field(default_factory=list)


class RemoteCartPrices(_LenientModel):
    grand_total: RemoteMoney = Field(default_factory=RemoteMoney)
    subtotal_excluding_tax: RemoteMoney = Field(default_factory=RemoteMoney)


class RemoteCart(_LenientModel):
    id: str = ""
    total_quantity: int = 0
    itemsV2: RemoteItems = Field(default_factory=RemoteItems)
    prices: RemoteCartPrices = Field(default_factory=RemoteCartPrices)


# ---------------------------------------------------------------------------
# Normalized payment responses
# ---------------------------------------------------------------------------


class ExternalOrderResponseModel(BaseModel):
    id: str
    approval_url: str
    amount: float
    currency: str
    raw: Dict[str, Any] = Field(default_factory=dict)


class CaptureResponseModel(BaseModel):
    status: CaptureStatus
    provider_reference: str = ""
    raw: Dict[str, Any] = Field(default_factory=dict)


class PlaceOrderResponseModel(BaseModel):
    order_number: str
    provider_order_reference: str = ""
    raw: Dict[str, Any] = Field(default_factory=dict)


def normalize_cart_response(raw: Any, *, fallback_cart_id: str = "") -> CartSnapshot:
    if not isinstance(raw, dict) or not raw:
        raise IntegrationResponseError("Cart response is empty.")

    cart: RemoteCart = _build_model(RemoteCart, raw, raw)
    items = tuple(
        CartLineItem(
            uid=item.uid,
            sku=item.product.sku,
            name=item.product.name,
            quantity=item.quantity,
            price=Money(item.prices.price.value, item.prices.price.currency),
            row_total=Money(item.prices.row_total.value, item.prices.row_total.currency),
            is_available=item.is_available,
            not_available_message=item.not_available_message,
            image=item.product.thumbnail.url,
            image_label=item.product.thumbnail.label,
            url_key=item.product.url_key,
        )
        for item in cart.itemsV2.items
    )
    return CartSnapshot(
        id=cart.id or fallback_cart_id,
        items=items,
        total_quantity=cart.total_quantity,
        subtotal=Money(cart.prices.subtotal_excluding_tax.value, cart.prices.subtotal_excluding_tax.currency),
        grand_total=Money(cart.prices.grand_total.value, cart.prices.grand_total.currency),
    )


def normalize_external_order_response(raw: Any, *, fallback_amount: Money) -> ExternalPaymentOrder:
    if not isinstance(raw, dict) or not raw:
        raise IntegrationResponseError("External order response is empty.")

    approval_url = _first_non_empty(raw, "approvalUrl", "approval_url", default="") or _approval_link(raw)
    if not approval_url:
        raise IntegrationResponseError("External order response has no approval URL.", payload=raw)

    amount = raw.get("amount") if isinstance(raw.get("amount"), dict) else {}
    model: ExternalOrderResponseModel = _build_model(
        ExternalOrderResponseModel,
        {
            "id": str(_first_non_empty(raw, "id", "orderId", "paypalOrderId", default="")),
            "approval_url": str(approval_url),
            "amount": _first_non_empty(amount, "value", default=fallback_amount.value),
            "currency": str(_first_non_empty(amount, "currency_code", "currency", default=fallback_amount.currency)).upper(),
            "raw": raw,
        },
        raw,
    )
    return ExternalPaymentOrder(
        id=model.id,
        approval_url=model.approval_url,
        amount=Money(model.amount, model.currency),
        raw=model.raw,
    )


def normalize_capture_response(raw: Any) -> CaptureResult:
    if not isinstance(raw, dict) or not raw:
        raise IntegrationResponseError("Payment capture returned no result")

    model: CaptureResponseModel = _build_model(
        CaptureResponseModel,
        {
            "status": _map_capture_status(raw.get("status")),
            "provider_reference": str(_first_non_empty(raw, "id", "captureId", "paypalOrderId", default="")),
            "raw": raw,
        },
        raw,
    )
    return CaptureResult(status=model.status, provider_reference=model.provider_reference, raw=model.raw)


def normalize_place_order_response(raw: Any) -> PlacedOrder:
    if not isinstance(raw, dict) or not raw.get("order"):
        raise IntegrationResponseError("Failed to place order", payload=raw if isinstance(raw, dict) else None)

    order = raw["order"] if isinstance(raw["order"], dict) else {}
    nested = order.get("order") if isinstance(order.get("order"), dict) else {}
    order_number = _first_non_empty(raw, "orderNumber", default="") or _first_non_empty(
        order, "number", "order_number", default=""
    ) or _first_non_empty(nested, "number", default="")

    model: PlaceOrderResponseModel = _build_model(
        PlaceOrderResponseModel,
        {
            "order_number": str(order_number),
            "provider_order_reference": str(
                _first_non_empty(raw, "paypalOrderId", "providerOrderId", default="")
                or _first_non_empty(order, "paypal_order_id", default="")
            ),
            "raw": raw,
        },
        raw,
    )
    return PlacedOrder(
        order_number=model.order_number,
        provider_order_reference=model.provider_order_reference,
        raw=model.raw,
    )


def normalize_error_message(status_code: int, reason_phrase: str, body: str, *, action: str) -> str:
    """Pull a human-readable message out of an error body.

    Structured bodies contribute their ``message`` or ``error`` field; an
    unstructured body is used as-is; an empty body falls back to the generic
    ``Failed to <action>: <status> <reason>`` message.
    """
    fallback = f"Failed to {action}: {status_code} {reason_phrase}".rstrip()
    text = (body or "").strip()
    if not text:
        return fallback
    try:
        data = json.loads(text)
    except ValueError:
        return text
    if not isinstance(data, dict):
        return fallback
    for key in ("message", "error"):
        value = data.get(key)
        if isinstance(value, dict):
            value = value.get("message")
        if isinstance(value, str) and value.strip():
            return value.strip()
    return fallback


def _approval_link(raw: Dict[str, Any]) -> str:
    links = raw.get("links")
    if not isinstance(links, list):
        return ""
    for link in links:
        if isinstance(link, dict) and link.get("rel") in ("approve", "payer-action") and link.get("href"):
            return str(link["href"])
    return ""


def _first_non_empty(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        value = data.get(key)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    if default is not None:
        return default
    raise IntegrationResponseError(f"Missing required field. Checked keys: {', '.join(keys)}", payload=data)


def _map_capture_status(raw_status: Any) -> CaptureStatus:
    value = str(raw_status or "").strip().upper()
    mapping = {
        "SUCCESS": CaptureStatus.SUCCESS,
        "COMPLETED": CaptureStatus.SUCCESS,
        "PENDING": CaptureStatus.PENDING,
        "PROCESSING": CaptureStatus.PENDING,
        "FAILED": CaptureStatus.FAILED,
        "ERROR": CaptureStatus.FAILED,
        "DECLINED": CaptureStatus.DECLINED,
        "DENIED": CaptureStatus.DECLINED,
        "CANCELLED": CaptureStatus.CANCELLED,
        "VOIDED": CaptureStatus.CANCELLED,
    }
    return mapping.get(value, CaptureStatus.UNKNOWN)


def _build_model(model_type, payload: Dict[str, Any], raw: Dict[str, Any]):
    try:
        return model_type(**payload)
    except ValidationError as exc:
        raise IntegrationResponseError(f"Response validation failed: {exc}", payload=raw) from exc
