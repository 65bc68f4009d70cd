"""Guest contact/address validation for the checkout form.

The front-end submits the form as a flat dictionary keyed by input name
(``guestEmail``, ``firstname``, ...). ``validate_guest_checkout`` checks every
field independently so all problems surface together, and never raises.

The HTTP layer uses ``raise_if_errors`` to turn a failed result into
``FormValidationError`` and answer HTTP 422 with structured ``field_errors``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from guest_checkout.checkout.errors import FormValidationError
from guest_checkout.integrations.contracts.interfaces import GuestAddress


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    field_errors: Dict[str, str] = field(default_factory=dict)
    address: Optional[GuestAddress] = None


def _as_str(v: Any) -> str:
    return "" if v is None else str(v)


def _strip(v: Any) -> str:
    return _as_str(v).strip()


def add_error(errors: Dict[str, str], field: str, message: str) -> None:
    if field not in errors:
        errors[field] = message


def require_str(payload: Mapping[str, Any], field: str, errors: Dict[str, str], *, label: Optional[str] = None) -> str:
    value = _strip(payload.get(field))
    if not value:
        add_error(errors, field, f"{label or field} is required")
    return value


_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def validate_email(value: Any, errors: Dict[str, str], field: str = "guestEmail") -> str:
    value = _strip(value)
    if not value:
        add_error(errors, field, "Email is required")
        return value
    if not _EMAIL_RE.match(value):
        add_error(errors, field, "Please enter a valid email address")
    return value


# field -> label used in the "<label> is required" message
_REQUIRED_ADDRESS_FIELDS = (
    ("firstname", "First name"),
    ("lastname", "Last name"),
    ("company", "Company name"),
    ("street", "Street address"),
    ("city", "City"),
    ("region", "State/Region"),
    ("postcode", "Postal code"),
    ("country_code", "Country"),
    ("telephone", "Phone number"),
)


def validate_guest_checkout(fields: Optional[Mapping[str, Any]]) -> ValidationResult:
    payload: Mapping[str, Any] = fields if isinstance(fields, Mapping) else {}
    errors: Dict[str, str] = {}

    cleaned = {"guestEmail": validate_email(payload.get("guestEmail"), errors)}
    for name, label in _REQUIRED_ADDRESS_FIELDS:
        cleaned[name] = require_str(payload, name, errors, label=label)

    if errors:
        return ValidationResult(valid=False, field_errors=errors)
    return ValidationResult(valid=True, address=GuestAddress.from_dict(cleaned))


def raise_if_errors(result: ValidationResult, message: str = "Please fill in all required fields") -> GuestAddress:
    if not result.valid:
        raise FormValidationError(field_errors=dict(result.field_errors), message=message)
    return result.address
