"""
Contracts (data models).

This folder defines the request/response shapes for the storefront backend:
- Cart documents and line items
- Checkout preparation and order placement bodies
- External payment order creation and capture bodies

Why this exists:
- Ensures consistent data structures across mock and real clients
- Keeps the orchestrator working with typed snapshots instead of ad-hoc dicts

Both mock and real HTTP clients should use these contracts.
"""
