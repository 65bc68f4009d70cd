"""
Real HTTP integration clients.

These clients communicate with the storefront backend over HTTP:
- cart endpoints (cart-get, cart-update-item, cart-remove-item)
- checkout endpoints (checkout-prepare, checkout-place-order)
- external payment endpoints (order create, order capture)

Important:
- Must implement the same interface as the mock clients
- Must return the decoded JSON body; normalization happens in
  guest_checkout/integrations/policy/response_wrappers.py

Switching:
The selection of mock vs real clients happens in guest_checkout/api/main.py only.
"""

from .storefront import RealStorefrontClient

__all__ = ["RealStorefrontClient"]
