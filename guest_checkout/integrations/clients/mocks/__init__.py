"""
Mock integration clients.

These clients return fake (but realistic) responses without calling any external API.
They are used when:
- STOREFRONT_API_URL is not configured
- We want to exercise the checkout flow end-to-end without the storefront backend

Important:
- Mock clients must follow the SAME interface as real HTTP clients.
- Mock clients return data shaped like the storefront's JSON documents.

Switching to real:
Set INTEGRATIONS_MODE=real (or STOREFRONT_API_URL) and guest_checkout/api/main.py
wires clients/real_http/* instead.
"""

from .storefront import MockStorefrontClient, make_cart_document

__all__ = ["MockStorefrontClient", "make_cart_document"]
