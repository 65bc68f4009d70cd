"""Checkout error taxonomy.

Every remote failure is converted into one of these at the gateway boundary;
the orchestrator only ever sees ``CheckoutError`` subclasses.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class CheckoutError(Exception):
    """Base class. ``step`` names the checkout step that failed."""

    default_step = "checkout"

    def __init__(
        self,
        message: str,
        *,
        step: Optional[str] = None,
        status_code: Optional[int] = None,
        detail: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.step = step or self.default_step
        self.status_code = status_code
        self.detail = detail or {}

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": type(self).__name__,
            "step": self.step,
            "message": self.message,
            "status_code": self.status_code,
        }


class FormValidationError(CheckoutError):
    """Field-scoped validation failure; recoverable by re-submitting the form.

    Attributes:
        field_errors: mapping of field name -> human-readable error message.
    """

    default_step = "validate"

    def __init__(self, field_errors: Dict[str, str], message: str = "Please fill in all required fields") -> None:
        super().__init__(message, detail={"field_errors": field_errors})
        self.field_errors = field_errors


class CartUnavailable(CheckoutError):
    """No cart id, or the cart could not be fetched."""

    default_step = "load_cart"


class PrepareFailed(CheckoutError):
    default_step = "prepare_checkout"


class ExternalOrderFailed(CheckoutError):
    default_step = "create_external_order"


class CaptureNotSettled(CheckoutError):
    """The provider answered, but the payment was not completed."""

    default_step = "capture"

    def __init__(self, status: str, message: Optional[str] = None) -> None:
        super().__init__(
            message or f"Payment capture was not completed successfully. Status: {status}",
            detail={"status": status},
        )
        self.status = status


class CaptureCallFailed(CheckoutError):
    """Transport or decoding failure while capturing."""

    default_step = "capture"


class OrderPlacementFailed(CheckoutError):
    """Money was captured but the order was not recorded."""

    default_step = "place_order"
