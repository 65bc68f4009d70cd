"""
Storefront clients.

- mocks/      in-memory storefront used in development and tests
- real_http/  httpx client for the deployed storefront backend

Both implement ``StorefrontClient`` from ``integrations.contracts.interfaces``.
"""
