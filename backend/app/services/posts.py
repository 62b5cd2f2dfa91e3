"""Publish announcement posts into a thread."""

from __future__ import annotations

import logging

from app.core.errors import PublishError
from app.models import ActorIdentity

from .platform import PlatformClient, PlatformError

logger = logging.getLogger(__name__)


class PostPublisher:
    # A publish is never retried: after an ambiguous failure the post may
    # already exist.

    def __init__(self, platform: PlatformClient) -> None:
        self._platform = platform

    async def publish(self, thread_id: str, title: str, body: str, actor: ActorIdentity) -> str:
        try:
            post_id = await self._platform.publish_post(thread_id, title, body, actor)
        except PlatformError as exc:
            raise PublishError(f"post creation failed in thread {thread_id}: {exc}") from exc
        if not post_id:
            raise PublishError(f"post creation in thread {thread_id} returned no id")
        logger.info("Join post published", extra={"thread_id": thread_id, "post_id": post_id})
        return post_id
