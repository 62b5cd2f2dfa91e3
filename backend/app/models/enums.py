from __future__ import annotations

from enum import Enum


class RequiredLevel(str, Enum):
    """Minimum caller authorization enforced by the notification gateway."""

    NONE = "none"
    AUTHENTICATED = "authenticated"
    ADMIN = "admin"

    @property
    def label(self) -> str:
        """Human readable level reported in ``Unauthorized`` outcomes."""

        if self is RequiredLevel.AUTHENTICATED:
            return "authenticated user"
        return self.value


class ActingIdentityStrategy(str, Enum):
    """Whose authority platform writes are performed under."""

    SERVICE = "service"
    USER = "user"


class AccessLevel(str, Enum):
    """Access levels reported by the platform for a user in a room."""

    ADMIN = "admin"
    CUSTOMER = "customer"
    NO_ACCESS = "no_access"


class OutcomeKind(str, Enum):
    """Discriminator of :class:`~app.models.outcomes.NotificationOutcome`."""

    SUCCESS = "success"
    DEGRADED = "degraded"
    UNAUTHORIZED = "unauthorized"
    FAILURE = "failure"
