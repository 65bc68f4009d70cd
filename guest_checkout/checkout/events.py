"""Events published to checkout collaborators.

Cart views, mini-carts and the notification sink subscribe here instead of
reloading whenever browser storage changes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Type

from guest_checkout.integrations.contracts.interfaces import CartSnapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionChanged:
    """A session key was written (``value`` set) or removed (``value`` is None)."""

    key: str
    value: Any = None


@dataclass(frozen=True)
class CartReplaced:
    cart: Optional[CartSnapshot]


@dataclass(frozen=True)
class StateChanged:
    previous: Any
    current: Any
    error: Any = None
    order_number: Optional[str] = None


Listener = Callable[[Any], None]


class CheckoutEvents:
    def __init__(self) -> None:
        self._listeners: List[tuple] = []

    def subscribe(self, listener: Listener, event_type: Optional[Type] = None) -> Callable[[], None]:
        """Register ``listener`` for ``event_type`` (all events when None); returns an unsubscribe callable."""
        entry = (event_type, listener)
        self._listeners.append(entry)

        def unsubscribe() -> None:
            if entry in self._listeners:
                self._listeners.remove(entry)

        return unsubscribe

    def publish(self, event: Any) -> None:
        for event_type, listener in list(self._listeners):
            if event_type is not None and not isinstance(event, event_type):
                continue
            try:
                listener(event)
            except Exception:
                # Listener failures never interrupt a checkout step.
                logger.exception("Checkout event listener failed for %s", type(event).__name__)
