"""Join notification gateway.

Turns "someone started listening in room R" into a discussion post and a
:data:`~app.models.NotificationOutcome`. Every failure mode is converted
into an outcome; nothing raises past :meth:`NotificationGateway.notify_join`.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from app.config import Settings
from app.core.errors import (
    AuthError,
    ConfigurationError,
    DirectoryError,
    InputError,
    NotificationError,
    PermissionDegraded,
    PublishError,
    ThreadError,
)
from app.models import (
    AccessLevel,
    ActingIdentityStrategy,
    ActorIdentity,
    Degraded,
    Failure,
    NotificationOutcome,
    RequiredLevel,
    ServiceIdentity,
    Success,
    Unauthorized,
    UserIdentity,
)
from app.monitoring.metrics import notify_outcomes_total

from .directory import DirectoryResolver
from .identity import Credentials, IdentityResolver
from .platform import PlatformClient, PlatformError
from .posts import PostPublisher
from .threads import ThreadLocator

logger = logging.getLogger(__name__)

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b-\x1f\x7f]")


@dataclass(frozen=True, slots=True)
class JoinRequest:
    room_id: str | None
    title_override: str | None = None
    content_override: str | None = None


@dataclass(frozen=True, slots=True)
class GatewayPolicy:
    """Deployment policy of the gateway."""

    required_level: RequiredLevel = RequiredLevel.NONE
    acting_identity: ActingIdentityStrategy = ActingIdentityStrategy.SERVICE
    service_identity_id: str | None = None
    thread_name: str = "Radio Discussions"
    thread_who_can_post: str = "everyone"
    default_title: str = "New Listener Joined"
    default_body: str = "Someone just joined the radio station!"
    title_template: str = "🎵 {title}"
    body_template: str = "{content}\n\n*radio announcement*"
    override_max_length: int = 500

    @classmethod
    def from_settings(cls, settings: Settings) -> "GatewayPolicy":
        return cls(
            required_level=RequiredLevel(settings.notify_required_level),
            acting_identity=ActingIdentityStrategy(settings.notify_acting_identity),
            service_identity_id=settings.service_identity_id,
            thread_name=settings.thread_name,
            thread_who_can_post=settings.thread_who_can_post,
            default_title=settings.announcement_title,
            default_body=settings.announcement_body,
            title_template=settings.announcement_title_template,
            body_template=settings.announcement_body_template,
            override_max_length=settings.override_max_length,
        )


def clean_display_text(value: str | None, max_length: int) -> str | None:
    """Reduce untrusted client text to a bounded, printable string."""

    if value is None:
        return None
    text = _CONTROL_CHARS.sub("", value).strip()
    if not text:
        return None
    return text[:max_length].rstrip()


class NotificationGateway:
    def __init__(
        self,
        platform: PlatformClient,
        identities: IdentityResolver,
        directory: DirectoryResolver,
        threads: ThreadLocator,
        publisher: PostPublisher,
        policy: GatewayPolicy | None = None,
    ) -> None:
        self._platform = platform
        self._identities = identities
        self._directory = directory
        self._threads = threads
        self._publisher = publisher
        self.policy = policy or GatewayPolicy()

    async def notify_join(self, request: JoinRequest, credentials: Credentials) -> NotificationOutcome:
        try:
            outcome = await self._notify(request, credentials)
        except Exception:
            logger.exception("Join notification crashed", extra={"room_id": request.room_id})
            outcome = Failure("internal error")
        notify_outcomes_total.labels(outcome.kind.value).inc()
        return outcome

    async def _notify(self, request: JoinRequest, credentials: Credentials) -> NotificationOutcome:
        room_id = (request.room_id or "").strip()
        try:
            if not room_id:
                raise InputError("missing room id")

            identity = await self._identities.resolve(credentials)
            await self._authorize(room_id, identity)

            actor = self._acting_identity(identity)
            organization_id = await self._directory.resolve(room_id)
            thread_id = await self._threads.locate_or_create(
                organization_id,
                room_id,
                self.policy.thread_name,
                self.policy.thread_who_can_post,
                actor,
            )
            title, body = self._render(request)
            post_id = await self._publisher.publish(thread_id, title, body, actor)
        except AuthError as exc:
            logger.info("Join notification unauthorized", extra={"room_id": room_id})
            return Unauthorized(exc.required_level)
        except PermissionDegraded as exc:
            logger.info("Join notification degraded", extra={"room_id": room_id, "reason": exc.reason})
            return Degraded(exc.reason)
        except InputError as exc:
            return Failure(exc.reason, exc.kind, exc.status_code)
        except (ConfigurationError, DirectoryError, ThreadError, PublishError) as exc:
            logger.warning(
                "Join notification failed",
                extra={"room_id": room_id, "kind": exc.kind, "reason": exc.reason},
            )
            return Failure(exc.reason, exc.kind, exc.status_code)
        except NotificationError as exc:
            return Failure(exc.reason, exc.kind, exc.status_code)

        logger.info(
            "Join notification posted",
            extra={"room_id": room_id, "thread_id": thread_id, "post_id": post_id},
        )
        return Success(thread_id=thread_id, post_id=post_id)

    async def _authorize(self, room_id: str, identity: ActorIdentity) -> None:
        required = self.policy.required_level
        if required is RequiredLevel.NONE:
            return
        if not isinstance(identity, UserIdentity):
            raise AuthError(RequiredLevel.AUTHENTICATED.label)
        if required is not RequiredLevel.ADMIN:
            return
        try:
            level = await self._platform.check_access(room_id, identity.user_id)
        except PlatformError as exc:
            raise AuthError(required.label, f"access check failed: {exc}") from exc
        if level != AccessLevel.ADMIN.value:
            raise AuthError(required.label)

    def _acting_identity(self, identity: ActorIdentity) -> ActorIdentity:
        if self.policy.acting_identity is ActingIdentityStrategy.USER:
            return identity
        if not self.policy.service_identity_id:
            raise ConfigurationError("no service identity configured for posting")
        return ServiceIdentity(self.policy.service_identity_id)

    def _render(self, request: JoinRequest) -> tuple[str, str]:
        limit = self.policy.override_max_length
        title = clean_display_text(request.title_override, limit) or self.policy.default_title
        content = clean_display_text(request.content_override, limit) or self.policy.default_body
        return (
            self.policy.title_template.format(title=title),
            self.policy.body_template.format(content=content),
        )


def build_gateway(
    platform: PlatformClient,
    settings: Settings,
    *,
    directory_cache=None,
) -> NotificationGateway:
    """Assemble a gateway from settings around a shared platform handle."""

    identities = IdentityResolver(
        platform,
        dev_fallback_enabled=settings.dev_token_fallback_enabled and not settings.is_production,
        dev_query_param=settings.dev_token_query_param,
        dev_referrer_hosts=settings.dev_referrer_hosts,
    )
    return NotificationGateway(
        platform,
        identities,
        DirectoryResolver(platform, directory_cache),
        ThreadLocator(platform),
        PostPublisher(platform),
        GatewayPolicy.from_settings(settings),
    )
