"""Locate or create the discussion thread bound to a room."""

from __future__ import annotations

import asyncio
import logging
from functools import partial
from typing import Dict, Optional, Tuple

from app.core.errors import AuthError, PermissionDegraded, ThreadError
from app.models import ActorIdentity, NoIdentity, RequiredLevel

from .platform import PlatformAuthError, PlatformClient, PlatformError, PlatformPermissionError

logger = logging.getLogger(__name__)

NO_THREAD_PERMISSION = "no thread permission"

_LookupKey = Tuple[str, str, str, Optional[str]]


class ThreadLocator:
    """Idempotent find-or-create of a room's thread.

    The platform dedupes creation by room binding. Within this process,
    concurrent requests for the same room made under the same acting
    identity additionally share one in-flight platform call so they always
    observe the same thread id. Requests under different identities never
    share a call, since permissions differ per identity.
    """

    def __init__(self, platform: PlatformClient) -> None:
        self._platform = platform
        self._inflight: Dict[_LookupKey, asyncio.Task[str]] = {}
        self._lock = asyncio.Lock()

    async def locate_or_create(
        self,
        organization_id: str,
        room_id: str,
        name: str,
        who_can_post: str,
        actor: ActorIdentity,
    ) -> str:
        if isinstance(actor, NoIdentity):
            raise AuthError(RequiredLevel.AUTHENTICATED.label, "thread lookup needs an acting identity")

        key = (organization_id, room_id, actor.kind, actor.acting_id)
        async with self._lock:
            task = self._inflight.get(key)
            if task is None:
                task = asyncio.create_task(
                    self._locate(organization_id, room_id, name, who_can_post, actor),
                    name=f"thread-locate-{room_id}",
                )
                self._inflight[key] = task
                task.add_done_callback(partial(self._release, key))
        return await asyncio.shield(task)

    def _release(self, key: _LookupKey, task: asyncio.Task[str]) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        # every waiter may have been cancelled; the outcome is still consumed here
        if not task.cancelled():
            task.exception()

    async def _locate(
        self,
        organization_id: str,
        room_id: str,
        name: str,
        who_can_post: str,
        actor: ActorIdentity,
    ) -> str:
        try:
            thread_id = await self._platform.locate_or_create_thread(
                organization_id, room_id, name, who_can_post, actor
            )
        except (PlatformPermissionError, PlatformAuthError) as exc:
            logger.info(
                "Acting identity cannot create threads",
                extra={"organization_id": organization_id, "actor_kind": actor.kind},
            )
            raise PermissionDegraded(NO_THREAD_PERMISSION) from exc
        except PlatformError as exc:
            raise ThreadError(f"thread lookup failed for room {room_id}: {exc}") from exc
        if not thread_id:
            raise ThreadError(f"thread lookup returned no id for room {room_id}")
        logger.debug("Thread ready", extra={"room_id": room_id, "thread_id": thread_id})
        return thread_id
