"""Tiered resolution of the caller's identity."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Mapping
from urllib.parse import parse_qs, urlparse

from app.core.security import decode_unverified_subject
from app.models import NO_IDENTITY, ActorIdentity, UserIdentity

from .platform import PlatformClient, PlatformError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Credentials:
    """Credential material extracted from an inbound request."""

    token: str | None = None
    referrer: str | None = None

    @classmethod
    def from_request_parts(
        cls,
        headers: Mapping[str, str],
        cookies: Mapping[str, str],
        *,
        token_header: str,
        token_cookie: str,
    ) -> "Credentials":
        token = headers.get(token_header)
        if not token:
            authorization = headers.get("authorization", "")
            scheme, _, value = authorization.partition(" ")
            if scheme.lower() == "bearer" and value.strip():
                token = value.strip()
        if not token:
            token = cookies.get(token_cookie)
        return cls(token=token.strip() if token else None, referrer=headers.get("referer"))


class IdentityResolver:
    """Turns request credentials into an :data:`ActorIdentity`.

    Tiers, in order:

    1. the primary token, validated by the platform;
    2. when the development fallback is enabled and the request comes from
       a local origin, a token carried in the referrer's query string,
       validated by the platform or, failing that, read from its unverified
       JWT payload.

    Resolution never raises; an unknown caller is :data:`NO_IDENTITY`.
    """

    def __init__(
        self,
        platform: PlatformClient,
        *,
        dev_fallback_enabled: bool = False,
        dev_query_param: str = "whop-dev-user-token",
        dev_referrer_hosts: Iterable[str] = ("localhost", "127.0.0.1"),
    ) -> None:
        self._platform = platform
        self._dev_fallback_enabled = dev_fallback_enabled
        self._dev_query_param = dev_query_param
        self._dev_hosts = {host.lower() for host in dev_referrer_hosts}

    async def resolve(self, credentials: Credentials) -> ActorIdentity:
        if credentials.token:
            user_id = await self._validate(credentials.token)
            if user_id is None:
                logger.info("Primary user token rejected")
                return NO_IDENTITY
            return UserIdentity(user_id)

        dev_token = self._dev_token(credentials.referrer)
        if dev_token is None:
            return NO_IDENTITY

        user_id = await self._validate(dev_token)
        if user_id is None:
            user_id = decode_unverified_subject(dev_token)
            if user_id is not None:
                logger.warning(
                    "Using unverified development token subject", extra={"user_id": user_id}
                )
        return UserIdentity(user_id) if user_id else NO_IDENTITY

    async def _validate(self, token: str) -> str | None:
        try:
            user_id = await self._platform.validate_token(token)
        except PlatformError as exc:
            logger.debug("Token validation failed: %s", exc)
            return None
        return user_id or None

    def _dev_token(self, referrer: str | None) -> str | None:
        if not self._dev_fallback_enabled or not referrer:
            return None
        parsed = urlparse(referrer)
        if (parsed.hostname or "").lower() not in self._dev_hosts:
            return None
        values = parse_qs(parsed.query).get(self._dev_query_param)
        if not values or not values[0].strip():
            return None
        return values[0].strip()
