"""HTTP client for the server-side join notification gateway."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Protocol

import httpx

logger = logging.getLogger(__name__)


class NotificationState(str, Enum):
    """Diagnostic state of a session's join notification."""

    IDLE = "idle"
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    DEGRADED = "degraded"
    UNAUTHORIZED = "unauthorized"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class NotifyResult:
    """Client view of a gateway response."""

    state: NotificationState
    detail: str | None = None
    thread_id: str | None = None
    post_id: str | None = None

    @classmethod
    def from_response(cls, status_code: int, body: Mapping[str, Any]) -> "NotifyResult":
        if status_code == 200 and body.get("success"):
            if body.get("degraded"):
                return cls(NotificationState.DEGRADED, detail=body.get("reason"))
            return cls(
                NotificationState.SUCCEEDED,
                thread_id=body.get("threadId"),
                post_id=body.get("postId"),
            )
        if status_code == 401:
            return cls(NotificationState.UNAUTHORIZED, detail=body.get("requiredLevel"))
        detail = body.get("details") or body.get("error") or f"HTTP {status_code}"
        return cls(NotificationState.FAILED, detail=str(detail))


class JoinNotifier(Protocol):
    async def notify_join(self, room_id: str) -> NotifyResult:
        """Ask the gateway to announce that this client joined ``room_id``."""


class HttpJoinNotifier:
    """Posts to ``/api/notify-join`` with the user's platform token."""

    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        token_header: str = "x-whop-user-token",
        title: str | None = None,
        content: str | None = None,
        timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._token = token
        self._token_header = token_header
        self._title = title
        self._content = content
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def notify_join(self, room_id: str) -> NotifyResult:
        body: dict[str, Any] = {"roomId": room_id}
        if self._title:
            body["titleOverride"] = self._title
        if self._content:
            body["contentOverride"] = self._content
        headers = {self._token_header: self._token} if self._token else None

        response = await self._client.post("/api/notify-join", json=body, headers=headers)
        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}
        result = NotifyResult.from_response(response.status_code, payload)
        logger.debug(
            "Gateway responded",
            extra={"room_id": room_id, "status": response.status_code, "state": result.state.value},
        )
        return result

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
