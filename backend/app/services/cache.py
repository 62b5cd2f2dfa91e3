"""Key/value cache used for room directory lookups."""

from __future__ import annotations

import logging
from typing import Protocol

import redis.asyncio as redis_asyncio
from redis.exceptions import RedisError

from app.config import Settings

logger = logging.getLogger(__name__)


class CacheBackend(Protocol):
    """Protocol describing cache operations we rely on.

    Entries never expire; room ownership does not change.
    """

    async def set(self, key: str, value: str) -> None:
        """Store a key/value pair."""

    async def get(self, key: str) -> str | None:
        """Retrieve a cached value if present."""

    async def aclose(self) -> None:
        """Release connections held by the backend."""


class InMemoryCache:
    """Process-local cache used when no Redis URL is configured."""

    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    async def set(self, key: str, value: str) -> None:
        self._store[key] = value

    async def get(self, key: str) -> str | None:
        return self._store.get(key)

    async def aclose(self) -> None:
        self._store.clear()


class RedisCache:
    """Thin asyncio Redis wrapper adhering to :class:`CacheBackend`.

    Every command is bounded by ``timeout``; a stalled server surfaces as a
    :class:`~redis.exceptions.TimeoutError` rather than a hung request.
    """

    def __init__(self, url: str, *, timeout: float = 1.0) -> None:
        self._client = redis_asyncio.from_url(
            url,
            encoding="utf-8",
            decode_responses=True,
            socket_timeout=timeout,
            socket_connect_timeout=timeout,
        )

    async def set(self, key: str, value: str) -> None:
        await self._client.set(key, value)

    async def get(self, key: str) -> str | None:
        return await self._client.get(key)

    async def ping(self) -> None:
        await self._client.ping()

    async def aclose(self) -> None:
        await self._client.aclose()


async def connect_cache(settings: Settings) -> CacheBackend:
    """Return the configured cache backend, Redis when ``CACHE_URL`` is set and reachable."""

    if settings.cache_url:
        cache = RedisCache(settings.cache_url, timeout=settings.cache_timeout_seconds)
        try:
            await cache.ping()
            return cache
        except (RedisError, OSError):
            logger.warning(
                "Redis cache unavailable; falling back to in-process cache",
                exc_info=logger.isEnabledFor(logging.DEBUG),
            )
            await cache.aclose()
    return InMemoryCache()
