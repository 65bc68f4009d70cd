"""
Utility modules for the checkout service
"""
from .config_loader import AppConfig, CheckoutConfig, SessionConfig, StorefrontConfig, load_checkout_config

__all__ = [
    'AppConfig',
    'CheckoutConfig',
    'SessionConfig',
    'StorefrontConfig',
    'load_checkout_config',
]
