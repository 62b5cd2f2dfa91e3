"""Actor identities resolved per request."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Union


@dataclass(frozen=True, slots=True)
class UserIdentity:
    """A human platform user."""

    user_id: str
    kind: ClassVar[str] = "user"

    @property
    def acting_id(self) -> str:
        return self.user_id


@dataclass(frozen=True, slots=True)
class ServiceIdentity:
    """The application's own agent/service account."""

    service_id: str
    kind: ClassVar[str] = "service"

    @property
    def acting_id(self) -> str:
        return self.service_id


@dataclass(frozen=True, slots=True)
class NoIdentity:
    """No identity could be resolved."""

    kind: ClassVar[str] = "none"

    @property
    def acting_id(self) -> None:
        return None


ActorIdentity = Union[UserIdentity, ServiceIdentity, NoIdentity]

NO_IDENTITY = NoIdentity()
