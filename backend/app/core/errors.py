"""Error taxonomy shared by the join notification pipeline."""

from __future__ import annotations

from fastapi import status


class NotificationError(Exception):
    """Base class for failures raised inside the notification components."""

    kind = "internal"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class InputError(NotificationError):
    """Malformed or missing request input; correctable by the caller."""

    kind = "input"
    status_code = status.HTTP_400_BAD_REQUEST


class AuthError(NotificationError):
    """No identity, or an identity below the required authorization level."""

    kind = "auth"
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, required_level: str, reason: str | None = None) -> None:
        super().__init__(reason or f"requires {required_level}")
        self.required_level = required_level


class DirectoryError(NotificationError):
    """The room has no resolvable owning organization."""

    kind = "directory"


class PermissionDegraded(NotificationError):
    """The acting identity is valid but may not create threads."""

    kind = "degraded"
    status_code = status.HTTP_200_OK


class ThreadError(NotificationError):
    """Thread lookup or creation failed for a reason other than permissions."""

    kind = "thread"


class PublishError(NotificationError):
    """The post could not be created in an already located thread."""

    kind = "publish"


class ConfigurationError(NotificationError):
    """The deployment lacks settings the pipeline needs; not the caller's fault."""

    kind = "configuration"


__all__ = [
    "NotificationError",
    "InputError",
    "AuthError",
    "DirectoryError",
    "PermissionDegraded",
    "ThreadError",
    "PublishError",
    "ConfigurationError",
]
