"""Error handling helpers for the checkout HTTP layer."""
from typing import Any, Dict
import logging

from guest_checkout.checkout.errors import CheckoutError

logger = logging.getLogger(__name__)


class ErrorHandler:
    def handle_exception(self, exc: Exception, context: Dict[str, Any] = None) -> Dict[str, Any]:
        if isinstance(exc, CheckoutError):
            logger.warning("Checkout error at step %s: %s", exc.step, exc.message)
            return {
                "message": exc.message,
                "recoverable": not exc.step.startswith(("capture", "place_order", "resume")),
                "fallback": False,
                "metadata": {"error": exc.to_dict(), "context": context or {}},
            }

        logger.error("Unhandled exception in checkout: %s", exc, exc_info=True)
        return {
            "message": "An internal error occurred while processing your checkout. Please try again later.",
            "recoverable": False,
            "fallback": True,
            "metadata": {"error": str(exc), "context": context or {}},
        }
