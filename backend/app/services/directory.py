"""Room → owning organization resolution."""

from __future__ import annotations

import logging

from redis.exceptions import RedisError

from app.core.errors import DirectoryError
from app.monitoring.metrics import directory_cache_total

from .cache import CacheBackend
from .platform import PlatformClient, PlatformError, PlatformNotFoundError

logger = logging.getLogger(__name__)


class DirectoryResolver:
    """Resolves the organization owning a room.

    Ownership never changes for a room, so resolved values are cached
    without expiry.
    """

    def __init__(self, platform: PlatformClient, cache: CacheBackend | None = None) -> None:
        self._platform = platform
        self._cache = cache

    @staticmethod
    def _cache_key(room_id: str) -> str:
        return f"directory:room:{room_id}"

    async def _cached(self, room_id: str) -> str | None:
        if self._cache is None:
            return None
        try:
            return await self._cache.get(self._cache_key(room_id))
        except RedisError:
            logger.warning("Directory cache read failed", extra={"room_id": room_id})
            return None

    async def _remember(self, room_id: str, organization_id: str) -> None:
        if self._cache is None:
            return
        try:
            await self._cache.set(self._cache_key(room_id), organization_id)
        except RedisError:
            logger.warning("Directory cache write failed", extra={"room_id": room_id})

    async def resolve(self, room_id: str) -> str:
        cached = await self._cached(room_id)
        if cached:
            directory_cache_total.labels("hit").inc()
            return cached
        directory_cache_total.labels("miss").inc()

        try:
            organization_id = await self._platform.get_organization_for_room(room_id)
        except PlatformNotFoundError as exc:
            raise DirectoryError(f"no owning organization for room {room_id}") from exc
        except PlatformError as exc:
            raise DirectoryError(f"organization lookup failed for room {room_id}: {exc}") from exc
        if not organization_id:
            raise DirectoryError(f"no owning organization for room {room_id}")

        await self._remember(room_id, organization_id)
        return organization_id
