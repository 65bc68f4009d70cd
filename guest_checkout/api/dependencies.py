"""
Shared wiring for the checkout API: configuration, the storefront client, the
session backend and the per-request orchestrator.

The selection of mock vs real storefront client happens here and nowhere else.
"""

import hmac
import logging
import os
import uuid
from typing import Optional

from dotenv import load_dotenv
from fastapi import Cookie, Depends, Header, HTTPException, Request, Response, status

from guest_checkout.checkout.cart_gateway import CartGateway
from guest_checkout.checkout.events import CheckoutEvents
from guest_checkout.checkout.notifications import NotificationSink
from guest_checkout.checkout.orchestrator import CheckoutOrchestrator
from guest_checkout.checkout.payment_gateway import PaymentGatewayAdapter
from guest_checkout.checkout.session_store import CheckoutSessionStore
from guest_checkout.integrations.clients.mocks.storefront import MockStorefrontClient
from guest_checkout.integrations.clients.real_http.storefront import RealStorefrontClient
from guest_checkout.integrations.contracts.interfaces import PaymentMethod, ShippingMethod, StorefrontClient
from guest_checkout.utils.config_loader import AppConfig, load_checkout_config

load_dotenv()

logger = logging.getLogger(__name__)

PROFILE_COOKIE = "checkout_profile"
PROFILE_HEADER = "X-Profile-Id"

_ALLOWLIST_PATHS = {
    "/health",
    "/docs",
    "/docs/oauth2-redirect",
    "/openapi.json",
    "/redoc",
}

config: AppConfig = load_checkout_config()


# ============================================================================
# INTEGRATIONS
# ============================================================================

def _should_use_real_integrations() -> bool:
    mode = os.getenv("INTEGRATIONS_MODE", "").strip().lower()
    if mode in {"real", "live"}:
        return True
    if mode in {"mock", "test"}:
        return False
    return bool(config.storefront.base_url)


def build_storefront_client(cfg: AppConfig) -> StorefrontClient:
    if _should_use_real_integrations() and cfg.storefront.base_url:
        logger.info("Using real storefront client at %s", cfg.storefront.base_url)
        return RealStorefrontClient(
            base_url=cfg.storefront.base_url,
            api_prefix=cfg.storefront.api_prefix,
            api_key=cfg.storefront.api_key,
            endpoints=cfg.storefront.endpoints,
            timeout_seconds=cfg.storefront.timeout_seconds,
        )
    logger.info("Using mock storefront client")
    return MockStorefrontClient(auto_create_carts=True, currency=cfg.checkout.default_currency)


def build_session_backend(cfg: AppConfig):
    """Real Redis when REDIS_URL is set, else an in-process store."""
    if cfg.session.redis_url:
        from guest_checkout.database.redis_store import RedisStore

        return RedisStore(url=cfg.session.redis_url, default_ttl=cfg.session.ttl_seconds)

    from guest_checkout.database.memory_store import InMemoryStore

    return InMemoryStore()


storefront_client: StorefrontClient = build_storefront_client(config)
session_backend = build_session_backend(config)


def build_orchestrator(
    profile_id: str,
    client: Optional[StorefrontClient] = None,
    backend=None,
    cfg: Optional[AppConfig] = None,
) -> CheckoutOrchestrator:
    """Assemble one orchestrator with its own event bus for ``profile_id``."""
    cfg = cfg or config
    client = client or storefront_client
    events = CheckoutEvents()
    session = CheckoutSessionStore(
        backend if backend is not None else session_backend,
        profile_id,
        events,
        key_prefix=cfg.session.key_prefix,
        ttl_seconds=cfg.session.ttl_seconds,
    )
    sink = NotificationSink(
        events,
        cart_url=cfg.checkout.cart_url,
        auto_dismiss_seconds=cfg.checkout.notification_auto_dismiss_seconds,
    )
    return CheckoutOrchestrator(
        CartGateway(client, events),
        PaymentGatewayAdapter(client),
        session,
        events,
        sink,
        return_url=cfg.checkout.return_url,
        shipping_method=ShippingMethod(**cfg.checkout.shipping_method.model_dump()),
        payment_method=PaymentMethod(code=cfg.checkout.payment_method),
    )


# ============================================================================
# REQUEST DEPENDENCIES
# ============================================================================

def get_api_keys():
    keys = os.getenv("API_KEYS", "")
    return [k.strip() for k in keys.split(",") if k.strip()]


async def api_key_protection(
    request: Request = None,
    x_api_key: str = Header(default=None, alias="X-API-KEY"),
):
    """Require a valid X-API-KEY when API_KEYS is configured."""
    valid_keys = get_api_keys()
    if not valid_keys:
        return
    if request is not None and request.url.path in _ALLOWLIST_PATHS:
        return

    candidate = (x_api_key or "").strip()
    ok = bool(candidate) and any(hmac.compare_digest(candidate, k) for k in valid_keys)
    if not ok:
        path = request.url.path if request is not None else "<no-request>"
        logger.warning("API key check failed: path=%s header_present=%s", path, bool(x_api_key))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API Key",
        )


async def get_profile_id(
    response: Response,
    x_profile_id: Optional[str] = Header(default=None, alias=PROFILE_HEADER),
    checkout_profile: Optional[str] = Cookie(default=None),
) -> str:
    """Browser profile owning the session; a new one is minted (and set as cookie) when absent."""
    profile_id = (x_profile_id or checkout_profile or "").strip()
    if not profile_id:
        profile_id = uuid.uuid4().hex
        logger.info("Issued new checkout profile %s", profile_id)
    if profile_id != checkout_profile:
        response.set_cookie(PROFILE_COOKIE, profile_id, httponly=True, samesite="lax")
    return profile_id


async def get_orchestrator(profile_id: str = Depends(get_profile_id)) -> CheckoutOrchestrator:
    return build_orchestrator(profile_id)
