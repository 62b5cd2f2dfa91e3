"""Domain value types for the notification pipeline."""

from .enums import AccessLevel, ActingIdentityStrategy, OutcomeKind, RequiredLevel
from .identity import (
    NO_IDENTITY,
    ActorIdentity,
    NoIdentity,
    ServiceIdentity,
    UserIdentity,
)
from .outcomes import Degraded, Failure, NotificationOutcome, Success, Unauthorized

__all__ = [
    "AccessLevel",
    "ActingIdentityStrategy",
    "OutcomeKind",
    "RequiredLevel",
    "ActorIdentity",
    "UserIdentity",
    "ServiceIdentity",
    "NoIdentity",
    "NO_IDENTITY",
    "NotificationOutcome",
    "Success",
    "Degraded",
    "Unauthorized",
    "Failure",
]
