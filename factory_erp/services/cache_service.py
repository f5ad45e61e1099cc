"""Redis cache service with an in-process fallback.

Caching is best effort: every failure is logged and treated as a miss, and
invalidation is advisory (it is not part of the database transaction).
"""

import fnmatch
import json
import logging
import threading
from typing import Optional, Any

import redis
from cachetools import TTLCache

from factory_erp.core.config import Settings

logger = logging.getLogger("factory_erp")


class CacheService:
    """Redis-backed cache; falls back to a local TTL cache when Redis is absent or failing."""

    def __init__(
        self,
        redis_url: Optional[str] = None,
        default_ttl: int = 300,
        timeout_seconds: float = 2.0,
        local_max_items: int = 1024,
    ):
        self.redis_url = redis_url or None
        self.default_ttl = default_ttl
        self.timeout_seconds = timeout_seconds
        self._client: Optional[redis.Redis] = None
        self._local: TTLCache = TTLCache(maxsize=local_max_items, ttl=default_ttl)
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "CacheService":
        return cls(
            redis_url=settings.REDIS_URL,
            default_ttl=settings.CACHE_TTL_SECONDS,
            timeout_seconds=settings.CACHE_TIMEOUT_SECONDS,
            local_max_items=settings.LOCAL_CACHE_MAX_ITEMS,
        )

    @property
    def client(self) -> Optional[redis.Redis]:
        if self.redis_url is None:
            return None
        if self._client is None:
            self._client = redis.from_url(
                self.redis_url,
                decode_responses=True,
                socket_connect_timeout=self.timeout_seconds,
                socket_timeout=self.timeout_seconds,
                max_connections=100,
            )
        return self._client

    def get(self, key: str) -> Optional[str]:
        """Get a cached value by key."""
        if self.client is not None:
            try:
                return self.client.get(key)
            except redis.RedisError as exc:
                logger.warning("Redis get failed for %s: %s", key, exc)
        with self._lock:
            return self._local.get(key)

    def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        """Set a cached value with TTL."""
        ttl = ttl_seconds or self.default_ttl
        if self.client is not None:
            try:
                self.client.setex(key, ttl, value)
                return
            except redis.RedisError as exc:
                logger.warning("Redis set failed for %s: %s", key, exc)
        # Local entries expire after the cache-wide default TTL
        with self._lock:
            self._local[key] = value

    def get_json(self, key: str) -> Optional[Any]:
        """Get and parse a JSON cached value."""
        raw = self.get(key)
        if raw:
            return json.loads(raw)
        return None

    def set_json(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        """Serialize and cache a JSON value."""
        self.set(key, json.dumps(value, default=str), ttl_seconds)

    def delete(self, key: str) -> None:
        """Delete a cached key."""
        if self.client is not None:
            try:
                self.client.delete(key)
            except redis.RedisError as exc:
                logger.warning("Redis delete failed for %s: %s", key, exc)
        with self._lock:
            self._local.pop(key, None)

    def invalidate_pattern(self, pattern: str) -> None:
        """Delete all keys matching a glob pattern."""
        if self.client is not None:
            try:
                keys = list(self.client.scan_iter(match=pattern))
                if keys:
                    self.client.delete(*keys)
            except redis.RedisError as exc:
                logger.warning("Redis invalidation failed for %s: %s", pattern, exc)
        with self._lock:
            for key in [k for k in list(self._local.keys()) if fnmatch.fnmatch(k, pattern)]:
                self._local.pop(key, None)

    def health_check(self) -> bool:
        """Check if Redis is reachable. Local-only mode reports healthy."""
        if self.client is None:
            return True
        try:
            return bool(self.client.ping())
        except redis.RedisError:
            return False

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
        with self._lock:
            self._local.clear()
