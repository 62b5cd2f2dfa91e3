"""Shared pytest fixtures for backend tests."""

from __future__ import annotations

import asyncio
from typing import Any, Iterator, Mapping

import pytest
from fastapi.testclient import TestClient

from app.api.deps import get_gateway, get_platform
from app.main import app
from app.models import ActingIdentityStrategy, ActorIdentity, RequiredLevel
from app.monitoring.registry import registry
from app.services import (
    DirectoryResolver,
    GatewayPolicy,
    IdentityResolver,
    NotificationGateway,
    PlatformAuthError,
    PlatformError,
    PlatformNotFoundError,
    PlatformPermissionError,
    PostPublisher,
    ThreadLocator,
)
from app.services.cache import InMemoryCache


class FakePlatform:
    """In-memory stand-in for the hosting platform.

    Thread creation checks for an existing thread *before* yielding to the
    event loop, so two racing callers would each create one unless the
    caller coalesces them.
    """

    def __init__(self) -> None:
        self.tokens: dict[str, str] = {}
        self.organizations: dict[str, str] = {}
        self.access: dict[tuple[str, str], str] = {}
        self.denied_organizations: set[str] = set()
        self.denied_actors: set[str] = set()
        self.threads: dict[tuple[str, str], str] = {}
        self.posts: list[dict[str, Any]] = []
        self.broadcasts: list[tuple[str, dict[str, Any]]] = []
        self.calls: list[str] = []
        self.thread_delay = 0.0
        self.fail_publish = False
        self.fail_threads = False
        self.fail_broadcast = False

    async def validate_token(self, token: str) -> str:
        self.calls.append("validate_token")
        try:
            return self.tokens[token]
        except KeyError:
            raise PlatformAuthError("invalid token", status_code=401) from None

    async def get_organization_for_room(self, room_id: str) -> str:
        self.calls.append("get_organization_for_room")
        try:
            return self.organizations[room_id]
        except KeyError:
            raise PlatformNotFoundError(f"experience {room_id} has no owning company") from None

    async def check_access(self, room_id: str, user_id: str) -> str:
        self.calls.append("check_access")
        return self.access.get((room_id, user_id), "no_access")

    async def locate_or_create_thread(
        self,
        organization_id: str,
        room_id: str,
        name: str,
        who_can_post: str,
        actor: ActorIdentity,
    ) -> str:
        self.calls.append("locate_or_create_thread")
        await asyncio.sleep(self.thread_delay)
        if organization_id in self.denied_organizations or actor.acting_id in self.denied_actors:
            raise PlatformPermissionError("forbidden", status_code=403)
        if self.fail_threads:
            raise PlatformError("upstream unavailable", status_code=502)
        key = (organization_id, room_id)
        existing = self.threads.get(key)
        if existing is None:
            existing = f"t{len(self.threads) + 1}"
            self.threads[key] = existing
        return existing

    async def publish_post(self, thread_id: str, title: str, body: str, actor: ActorIdentity) -> str:
        self.calls.append("publish_post")
        if self.fail_publish:
            raise PlatformError("connection reset")
        post_id = f"post-{len(self.posts) + 1}"
        self.posts.append(
            {"id": post_id, "thread_id": thread_id, "title": title, "body": body, "actor": actor}
        )
        return post_id

    async def broadcast(self, room_id: str, payload: Mapping[str, Any]) -> None:
        self.calls.append("broadcast")
        if self.fail_broadcast:
            raise PlatformError("websocket relay down")
        self.broadcasts.append((room_id, dict(payload)))

    async def aclose(self) -> None:
        return None


def make_gateway(
    platform: FakePlatform,
    policy: GatewayPolicy | None = None,
    *,
    dev_fallback_enabled: bool = False,
) -> NotificationGateway:
    return NotificationGateway(
        platform,
        IdentityResolver(platform, dev_fallback_enabled=dev_fallback_enabled),
        DirectoryResolver(platform, InMemoryCache()),
        ThreadLocator(platform),
        PostPublisher(platform),
        policy,
    )


@pytest.fixture(autouse=True)
def reset_metrics() -> Iterator[None]:
    for metric in registry._metrics.values():
        metric.reset()
    yield
    for metric in registry._metrics.values():
        metric.reset()


@pytest.fixture()
def platform() -> FakePlatform:
    """Platform with one room, one valid user and one admin."""

    fake = FakePlatform()
    fake.organizations["r1"] = "org1"
    fake.organizations["r3"] = "org3"
    fake.denied_organizations.add("org3")
    fake.tokens["token-u1"] = "u1"
    fake.tokens["token-admin"] = "admin-1"
    fake.access[("r1", "admin-1")] = "admin"
    fake.access[("r1", "u1")] = "customer"
    return fake


@pytest.fixture()
def policy() -> GatewayPolicy:
    return GatewayPolicy(
        required_level=RequiredLevel.NONE,
        acting_identity=ActingIdentityStrategy.SERVICE,
        service_identity_id="agent-1",
    )


@pytest.fixture()
def gateway(platform, policy) -> NotificationGateway:
    return make_gateway(platform, policy)


@pytest.fixture()
def client(platform, gateway) -> Iterator[TestClient]:
    """Yield a FastAPI TestClient wired to the fake platform."""

    app.dependency_overrides[get_platform] = lambda: platform
    app.dependency_overrides[get_gateway] = lambda: gateway
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def gateway_with(platform):
    """Build a gateway over the fake platform with a custom policy."""

    def build(policy: GatewayPolicy, **options: Any) -> NotificationGateway:
        return make_gateway(platform, policy, **options)

    return build
