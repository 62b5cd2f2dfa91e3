"""Result variants returned by the notification gateway."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Union

from fastapi import status

from .enums import OutcomeKind


@dataclass(frozen=True, slots=True)
class Success:
    thread_id: str
    post_id: str

    kind: ClassVar[OutcomeKind] = OutcomeKind.SUCCESS
    status_code: ClassVar[int] = status.HTTP_200_OK

    def to_payload(self) -> dict[str, Any]:
        return {"success": True, "threadId": self.thread_id, "postId": self.post_id}


@dataclass(frozen=True, slots=True)
class Degraded:
    """The listener is playing; the discussion post could not be made."""

    reason: str

    kind: ClassVar[OutcomeKind] = OutcomeKind.DEGRADED
    status_code: ClassVar[int] = status.HTTP_200_OK

    def to_payload(self) -> dict[str, Any]:
        return {"success": True, "degraded": True, "reason": self.reason}


@dataclass(frozen=True, slots=True)
class Unauthorized:
    required_level: str

    kind: ClassVar[OutcomeKind] = OutcomeKind.UNAUTHORIZED
    status_code: ClassVar[int] = status.HTTP_401_UNAUTHORIZED

    def to_payload(self) -> dict[str, Any]:
        return {"success": False, "error": "Unauthorized", "requiredLevel": self.required_level}


@dataclass(frozen=True, slots=True)
class Failure:
    reason: str
    error_kind: str = "internal"
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    kind: ClassVar[OutcomeKind] = OutcomeKind.FAILURE

    _ERRORS: ClassVar[dict[str, str]] = {
        "input": "Invalid request",
        "directory": "Room directory lookup failed",
        "thread": "Discussion thread unavailable",
        "publish": "Failed to publish join post",
        "configuration": "Join notifications are not configured",
    }

    @property
    def error(self) -> str:
        return self._ERRORS.get(self.error_kind, "Join notification failed")

    def to_payload(self) -> dict[str, Any]:
        return {"success": False, "error": self.error, "details": self.reason}


NotificationOutcome = Union[Success, Degraded, Unauthorized, Failure]
