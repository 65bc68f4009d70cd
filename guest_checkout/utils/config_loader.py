"""
Configuration loader for the checkout service
"""

import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
from pydantic import BaseModel, Field, ValidationError
import logging

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent / "config" / "checkout_config.yml"


class StorefrontConfig(BaseModel):
    """Storefront backend connection"""

    base_url: Optional[str] = None
    api_prefix: str = "poc-appbuilder-storefront"
    api_key: Optional[str] = None
    timeout_seconds: float = Field(default=20.0, ge=1.0, le=120.0)
    endpoints: Dict[str, str] = Field(default_factory=dict)


class ShippingMethodConfig(BaseModel):
    carrier_code: str = "flatrate"
    method_code: str = "flatrate"


class CheckoutConfig(BaseModel):
    """Checkout page behaviour"""

    return_url: str = "http://localhost:3000/checkout"
    cart_url: str = "/cart"
    shipping_method: ShippingMethodConfig = Field(default_factory=lambda: ShippingMethodConfig())
    payment_method: str = "checkmo"
    default_currency: str = Field(default="USD", min_length=3, max_length=3)
    notification_auto_dismiss_seconds: float = Field(default=5.0, ge=0.0)


class SessionConfig(BaseModel):
    """Session store settings"""

    key_prefix: str = "checkout"
    ttl_seconds: int = Field(default=2592000, ge=60)
    redis_url: Optional[str] = None


class AppConfig(BaseModel):
    """Complete checkout configuration"""

    storefront: StorefrontConfig = Field(default_factory=lambda: StorefrontConfig())
    checkout: CheckoutConfig = Field(default_factory=lambda: CheckoutConfig())
    session: SessionConfig = Field(default_factory=lambda: SessionConfig())


# env var -> (section, key)
_ENV_OVERRIDES = {
    "STOREFRONT_API_URL": ("storefront", "base_url"),
    "STOREFRONT_API_PREFIX": ("storefront", "api_prefix"),
    "STOREFRONT_API_KEY": ("storefront", "api_key"),
    "STOREFRONT_TIMEOUT_SECONDS": ("storefront", "timeout_seconds"),
    "CHECKOUT_RETURN_URL": ("checkout", "return_url"),
    "CHECKOUT_CART_URL": ("checkout", "cart_url"),
    "REDIS_URL": ("session", "redis_url"),
}


def _apply_env_overrides(config_data: Dict[str, Any], environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    env = os.environ if environ is None else environ
    for var, (section, key) in _ENV_OVERRIDES.items():
        value = env.get(var)
        if value:
            config_data.setdefault(section, {})[key] = value
    return config_data


def load_checkout_config(
    config_path: Optional[Path] = None,
    environ: Optional[Dict[str, str]] = None,
) -> AppConfig:
    """
    Load and validate checkout configuration from YAML file

    Args:
        config_path: Path to config file. Defaults to config/checkout_config.yml;
            when the default file is absent the built-in defaults are used.
        environ: Environment used for overrides. Defaults to os.environ

    Returns:
        Validated AppConfig object

    Raises:
        FileNotFoundError: If an explicitly given config file doesn't exist
        ValidationError: If config doesn't match schema
    """
    config_data: Dict[str, Any] = {}
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH
        if not config_path.exists():
            logger.info("No config file at %s, using defaults", config_path)
            config_path = None
    elif not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    if config_path is not None:
        with open(config_path, "r", encoding="utf-8") as f:
            config_data = yaml.safe_load(f) or {}

    config_data = _apply_env_overrides(config_data, environ)

    try:
        config = AppConfig(**config_data)
        logger.info("Loaded checkout config (storefront=%s)", config.storefront.base_url or "mock")
        return config
    except ValidationError as e:
        logger.error("Config validation failed: %s", e)
        raise
