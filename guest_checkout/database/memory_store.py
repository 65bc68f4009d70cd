"""
Lightweight in-memory replacement for the Redis profile store.

This implements just enough of the key-value interface used by
``CheckoutSessionStore`` so that the checkout can run without a real Redis
instance. Values are kept JSON-encoded, like the browser storage they stand
in for.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class InMemoryStore:
    def __init__(self) -> None:
        # key -> JSON text
        self._values: Dict[str, str] = {}

    def set_value(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        # TTL is ignored in this in-memory implementation.
        self._values[key] = json.dumps(value, default=str)

    def get_value(self, key: str) -> Optional[Any]:
        raw = self._values.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.error("Discarding unreadable value stored under %s", key)
            return None

    def delete_value(self, key: str) -> None:
        self._values.pop(key, None)

    def ping(self) -> bool:
        """Health check; always True in local/dev mode."""
        return True
