"""Short-lived response cache for health reports.

Caching is best-effort: a backend that cannot be reached behaves like a miss
on read and a no-op on write.
"""

import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Optional, Tuple

import redis.asyncio as aioredis
import redis.exceptions
import structlog

from token_health_api.utils.metrics import metrics

logger = structlog.get_logger(__name__)

CACHE_KEY_PREFIX = "health:"


def health_cache_key(token_address: str) -> str:
    return f"{CACHE_KEY_PREFIX}{token_address}"


class ResponseCache(ABC):
    """Key/value store with per-entry expiry."""

    cache_type = "base"

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Cached value, or None on miss."""

    @abstractmethod
    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store ``value`` for ``ttl_seconds``."""

    async def close(self) -> None:
        return None


class InMemoryResponseCache(ResponseCache):
    """Process-local cache bounded to ``max_size`` entries."""

    cache_type = "memory"

    def __init__(self, max_size: int = 1000, clock=time.monotonic):
        self.max_size = max_size
        self.clock = clock
        self._entries: "OrderedDict[str, Tuple[str, float]]" = OrderedDict()

    async def get(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is None:
            metrics.cache_misses.labels(cache_type=self.cache_type).inc()
            return None

        value, expires_at = entry
        if self.clock() >= expires_at:
            del self._entries[key]
            metrics.cache_misses.labels(cache_type=self.cache_type).inc()
            return None

        metrics.cache_hits.labels(cache_type=self.cache_type).inc()
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._entries.pop(key, None)
        self._entries[key] = (value, self.clock() + ttl_seconds)

        # Oldest insertion goes first
        while len(self._entries) > self.max_size:
            self._entries.popitem(last=False)

    def __len__(self) -> int:
        return len(self._entries)


class RedisResponseCache(ResponseCache):
    """Cache shared between workers through Redis."""

    cache_type = "redis"

    def __init__(self, client: aioredis.Redis):
        self.client = client
        self.logger = logger.bind(component="redis_cache")

    @classmethod
    def from_url(cls, url: str, socket_timeout: float = 2.0) -> "RedisResponseCache":
        client = aioredis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=socket_timeout,
            socket_timeout=socket_timeout,
        )
        return cls(client)

    async def get(self, key: str) -> Optional[str]:
        try:
            value = await self.client.get(key)
        except redis.exceptions.RedisError as e:
            self.logger.warning("Cache read failed, treating as miss", key=key, error=str(e))
            metrics.cache_misses.labels(cache_type=self.cache_type).inc()
            return None

        if value is None:
            metrics.cache_misses.labels(cache_type=self.cache_type).inc()
            return None

        metrics.cache_hits.labels(cache_type=self.cache_type).inc()
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            await self.client.set(key, value, ex=ttl_seconds)
        except redis.exceptions.RedisError as e:
            self.logger.warning("Cache write failed, skipping", key=key, error=str(e))

    async def close(self) -> None:
        await self.client.aclose()


def create_cache(settings) -> Optional[ResponseCache]:
    """Cache backend selected by settings, or None when caching is off."""
    if not settings.enable_response_caching:
        return None
    if settings.cache_backend == "redis":
        return RedisResponseCache.from_url(settings.redis_url)
    return InMemoryResponseCache(max_size=settings.cache_max_size)
