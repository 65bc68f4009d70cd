"""
Real Redis-backed profile store for production when REDIS_URL is set.
Implements the same interface as guest_checkout.database.memory_store.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

import redis

logger = logging.getLogger(__name__)


class RedisStore:
    """
    Redis-backed key-value store. Use when REDIS_URL is set in production.
    """

    def __init__(self, url: str, default_ttl: int = 2592000) -> None:
        self._client = redis.from_url(url, decode_responses=True)
        self._default_ttl = default_ttl

    def set_value(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        payload = json.dumps(value, default=str)
        self._client.setex(key, ttl or self._default_ttl, payload)

    def get_value(self, key: str) -> Optional[Any]:
        raw = self._client.get(key)
        if not raw:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.error("Discarding unreadable value stored under %s", key)
            return None

    def delete_value(self, key: str) -> None:
        self._client.delete(key)

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except redis.RedisError:
            return False
