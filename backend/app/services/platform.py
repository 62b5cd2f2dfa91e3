"""Capability handle for the hosting platform's identity, forum and broadcast APIs."""

from __future__ import annotations

import json
import logging
from typing import Any, Mapping, Protocol

import httpx

from app.config import Settings
from app.models import ActorIdentity
from app.monitoring.metrics import platform_requests_total

logger = logging.getLogger(__name__)


class PlatformError(Exception):
    """Raised when a platform call fails."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PlatformAuthError(PlatformError):
    """The credential was rejected by the platform."""


class PlatformPermissionError(PlatformError):
    """The acting identity is not allowed to perform the operation."""


class PlatformNotFoundError(PlatformError):
    """The referenced resource does not exist on the platform."""


class PlatformClient(Protocol):
    """Operations the notification pipeline consumes from the platform."""

    async def validate_token(self, token: str) -> str:
        """Return the user id encoded in a valid user token."""

    async def get_organization_for_room(self, room_id: str) -> str:
        """Return the organization owning the room."""

    async def check_access(self, room_id: str, user_id: str) -> str:
        """Return the user's access level for the room."""

    async def locate_or_create_thread(
        self,
        organization_id: str,
        room_id: str,
        name: str,
        who_can_post: str,
        actor: ActorIdentity,
    ) -> str:
        """Return the id of the thread bound to the room, creating it if needed."""

    async def publish_post(self, thread_id: str, title: str, body: str, actor: ActorIdentity) -> str:
        """Create a post and return its id."""

    async def broadcast(self, room_id: str, payload: Mapping[str, Any]) -> None:
        """Send a real-time message to every peer attached to the room."""

    async def aclose(self) -> None:
        """Release network resources."""


class HttpPlatformClient:
    """:class:`PlatformClient` speaking the platform's JSON HTTP API."""

    def __init__(
        self,
        base_url: str,
        api_key: str | None,
        *,
        app_id: str | None = None,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        if app_id:
            headers["x-app-id"] = app_id
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "HttpPlatformClient":
        return cls(
            settings.platform_api_url,
            settings.platform_api_key,
            app_id=settings.platform_app_id,
            timeout=settings.platform_timeout_seconds,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _acting_headers(actor: ActorIdentity, organization_id: str | None = None) -> dict[str, str]:
        headers: dict[str, str] = {}
        if actor.acting_id:
            headers["x-on-behalf-of"] = actor.acting_id
        if organization_id:
            headers["x-company-id"] = organization_id
        return headers

    async def _request(
        self,
        operation: str,
        method: str,
        url: str,
        *,
        json_body: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> dict[str, Any]:
        try:
            response = await self._client.request(method, url, json=json_body, headers=headers)
        except httpx.TimeoutException as exc:
            platform_requests_total.labels(operation, "timeout").inc()
            raise PlatformError(f"{operation} timed out") from exc
        except httpx.HTTPError as exc:
            platform_requests_total.labels(operation, "transport_error").inc()
            raise PlatformError(f"{operation} failed: {exc}") from exc

        code = response.status_code
        if code >= 400:
            platform_requests_total.labels(operation, str(code)).inc()
            detail = _error_detail(response)
            logger.info(
                "Platform call rejected",
                extra={"operation": operation, "status": code, "detail": detail},
            )
            if code == 401:
                raise PlatformAuthError(detail, status_code=code)
            if code == 403:
                raise PlatformPermissionError(detail, status_code=code)
            if code == 404:
                raise PlatformNotFoundError(detail, status_code=code)
            raise PlatformError(detail, status_code=code)

        platform_requests_total.labels(operation, "ok").inc()
        if not response.content:
            return {}
        try:
            payload = response.json()
        except ValueError as exc:
            raise PlatformError(f"{operation} returned malformed JSON", status_code=code) from exc
        return payload if isinstance(payload, dict) else {}

    # ------------------------------------------------------------------
    # Capability set
    # ------------------------------------------------------------------
    async def validate_token(self, token: str) -> str:
        payload = await self._request(
            "validate_token", "POST", "/auth/validate-token", json_body={"token": token}
        )
        user_id = payload.get("user_id") or payload.get("userId")
        if not user_id:
            raise PlatformAuthError("token validation returned no user id")
        return str(user_id)

    async def get_organization_for_room(self, room_id: str) -> str:
        payload = await self._request("get_experience", "GET", f"/experiences/{room_id}")
        company = payload.get("company") or {}
        organization_id = company.get("id") if isinstance(company, dict) else None
        if not organization_id:
            raise PlatformNotFoundError(f"experience {room_id} has no owning company")
        return str(organization_id)

    async def check_access(self, room_id: str, user_id: str) -> str:
        payload = await self._request(
            "check_access", "GET", f"/experiences/{room_id}/access/{user_id}"
        )
        return str(payload.get("access_level") or payload.get("accessLevel") or "no_access")

    async def locate_or_create_thread(
        self,
        organization_id: str,
        room_id: str,
        name: str,
        who_can_post: str,
        actor: ActorIdentity,
    ) -> str:
        payload = await self._request(
            "find_or_create_forum",
            "POST",
            "/forums/find-or-create",
            json_body={"experience_id": room_id, "name": name, "who_can_post": who_can_post},
            headers=self._acting_headers(actor, organization_id),
        )
        thread_id = payload.get("id")
        if not thread_id:
            raise PlatformError("forum lookup returned no id")
        return str(thread_id)

    async def publish_post(self, thread_id: str, title: str, body: str, actor: ActorIdentity) -> str:
        payload = await self._request(
            "create_forum_post",
            "POST",
            f"/forums/{thread_id}/posts",
            json_body={"title": title, "content": body, "is_mention": True},
            headers=self._acting_headers(actor),
        )
        return str(payload.get("id") or "")

    async def broadcast(self, room_id: str, payload: Mapping[str, Any]) -> None:
        await self._request(
            "send_websocket_message",
            "POST",
            "/websockets/messages",
            json_body={"target": {"experience": room_id}, "message": json.dumps(dict(payload))},
        )


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase
    if isinstance(body, dict):
        for key in ("message", "error", "detail"):
            if body.get(key):
                return str(body[key])
    return response.reason_phrase
