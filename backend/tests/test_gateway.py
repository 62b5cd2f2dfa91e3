from __future__ import annotations

import pytest

from app.models import (
    ActingIdentityStrategy,
    Degraded,
    Failure,
    RequiredLevel,
    ServiceIdentity,
    Success,
    Unauthorized,
    UserIdentity,
)
from app.monitoring.metrics import notify_outcomes_total
from app.services import Credentials, GatewayPolicy, JoinRequest
from app.services.gateway import clean_display_text


@pytest.fixture()
def anyio_backend() -> str:
    return "asyncio"


@pytest.mark.anyio("asyncio")
async def test_join_posts_announcement_as_service_identity(gateway, platform):
    outcome = await gateway.notify_join(JoinRequest("r1"), Credentials(token="token-u1"))

    assert outcome == Success(thread_id="t1", post_id="post-1")
    post = platform.posts[0]
    assert post["thread_id"] == "t1"
    assert post["title"] == "🎵 New Listener Joined"
    assert post["body"].endswith("\n\n*radio announcement*")
    assert post["actor"] == ServiceIdentity("agent-1")
    assert notify_outcomes_total.value("success") == 1


@pytest.mark.anyio("asyncio")
async def test_repeated_joins_reuse_the_room_thread(gateway, platform):
    first = await gateway.notify_join(JoinRequest("r1"), Credentials())
    second = await gateway.notify_join(JoinRequest("r1"), Credentials())

    assert first.thread_id == second.thread_id == "t1"
    assert [post["id"] for post in platform.posts] == ["post-1", "post-2"]


@pytest.mark.anyio("asyncio")
async def test_unknown_room_fails_before_thread_lookup(gateway, platform):
    outcome = await gateway.notify_join(JoinRequest("r2"), Credentials(token="token-u1"))

    assert isinstance(outcome, Failure)
    assert outcome.error_kind == "directory"
    assert outcome.status_code == 500
    assert "locate_or_create_thread" not in platform.calls


@pytest.mark.anyio("asyncio")
async def test_thread_permission_denied_is_degraded(gateway, platform):
    outcome = await gateway.notify_join(JoinRequest("r3"), Credentials(token="token-u1"))

    assert outcome == Degraded("no thread permission")
    assert outcome.status_code == 200
    assert platform.posts == []


@pytest.mark.anyio("asyncio")
async def test_missing_room_id_is_an_input_failure(gateway, platform):
    outcome = await gateway.notify_join(JoinRequest("  "), Credentials(token="token-u1"))

    assert isinstance(outcome, Failure)
    assert outcome.error_kind == "input"
    assert outcome.status_code == 400
    assert platform.calls == []


@pytest.mark.anyio("asyncio")
async def test_authentication_required_without_credentials(platform, gateway_with):
    gateway = gateway_with(
        GatewayPolicy(required_level=RequiredLevel.AUTHENTICATED, service_identity_id="agent-1"),
    )

    outcome = await gateway.notify_join(JoinRequest("r1"), Credentials())

    assert outcome == Unauthorized("authenticated user")
    assert outcome.status_code == 401
    assert "get_organization_for_room" not in platform.calls
    assert "locate_or_create_thread" not in platform.calls


@pytest.mark.anyio("asyncio")
async def test_authentication_required_with_valid_token(platform, gateway_with):
    gateway = gateway_with(
        GatewayPolicy(required_level=RequiredLevel.AUTHENTICATED, service_identity_id="agent-1"),
    )

    outcome = await gateway.notify_join(JoinRequest("r1"), Credentials(token="token-u1"))

    assert isinstance(outcome, Success)


@pytest.mark.anyio("asyncio")
async def test_admin_level_checks_room_access(platform, gateway_with):
    gateway = gateway_with(
        GatewayPolicy(required_level=RequiredLevel.ADMIN, service_identity_id="agent-1"),
    )

    admin = await gateway.notify_join(JoinRequest("r1"), Credentials(token="token-admin"))
    customer = await gateway.notify_join(JoinRequest("r1"), Credentials(token="token-u1"))

    assert isinstance(admin, Success)
    assert customer == Unauthorized("admin")
    assert platform.calls.count("check_access") == 2


@pytest.mark.anyio("asyncio")
async def test_user_acting_identity_posts_as_caller(platform, gateway_with):
    gateway = gateway_with(
        GatewayPolicy(acting_identity=ActingIdentityStrategy.USER),
    )

    outcome = await gateway.notify_join(JoinRequest("r1"), Credentials(token="token-u1"))

    assert isinstance(outcome, Success)
    assert platform.posts[0]["actor"] == UserIdentity("u1")


@pytest.mark.anyio("asyncio")
async def test_user_acting_identity_without_caller_is_unauthorized(platform, gateway_with):
    gateway = gateway_with(
        GatewayPolicy(acting_identity=ActingIdentityStrategy.USER),
    )

    outcome = await gateway.notify_join(JoinRequest("r1"), Credentials())

    assert outcome == Unauthorized("authenticated user")
    assert "locate_or_create_thread" not in platform.calls


@pytest.mark.anyio("asyncio")
async def test_service_strategy_without_service_identity_is_a_configuration_failure(platform, gateway_with):
    gateway = gateway_with(GatewayPolicy())

    outcome = await gateway.notify_join(JoinRequest("r1"), Credentials(token="token-u1"))

    assert isinstance(outcome, Failure)
    assert outcome.error_kind == "configuration"
    assert outcome.status_code == 500
    assert outcome.to_payload()["error"] == "Join notifications are not configured"
    assert "get_organization_for_room" not in platform.calls
    assert platform.posts == []


@pytest.mark.anyio("asyncio")
async def test_overrides_are_sanitized(gateway, platform):
    request = JoinRequest(
        "r1",
        title_override="  DJ\x00 Night\x07  ",
        content_override="x" * 600,
    )

    outcome = await gateway.notify_join(request, Credentials())

    assert isinstance(outcome, Success)
    post = platform.posts[0]
    assert post["title"] == "🎵 DJ Night"
    assert post["body"] == "x" * 500 + "\n\n*radio announcement*"


@pytest.mark.anyio("asyncio")
async def test_blank_overrides_use_defaults(gateway, platform):
    await gateway.notify_join(JoinRequest("r1", title_override="\n\t", content_override=""), Credentials())

    assert platform.posts[0]["title"] == "🎵 New Listener Joined"


@pytest.mark.anyio("asyncio")
async def test_publish_failure_is_reported_once(gateway, platform):
    platform.fail_publish = True

    outcome = await gateway.notify_join(JoinRequest("r1"), Credentials())

    assert isinstance(outcome, Failure)
    assert outcome.error_kind == "publish"
    assert outcome.to_payload()["error"] == "Failed to publish join post"
    assert platform.calls.count("publish_post") == 1
    assert notify_outcomes_total.value("failure") == 1


@pytest.mark.anyio("asyncio")
async def test_thread_failure_is_reported(gateway, platform):
    platform.fail_threads = True

    outcome = await gateway.notify_join(JoinRequest("r1"), Credentials())

    assert isinstance(outcome, Failure)
    assert outcome.error_kind == "thread"
    assert outcome.status_code == 500


@pytest.mark.anyio("asyncio")
async def test_unexpected_errors_become_internal_failures(gateway, platform):
    async def explode(room_id: str) -> str:
        raise RuntimeError("boom")

    platform.get_organization_for_room = explode

    outcome = await gateway.notify_join(JoinRequest("r1"), Credentials())

    assert outcome == Failure("internal error")
    assert outcome.to_payload() == {
        "success": False,
        "error": "Join notification failed",
        "details": "internal error",
    }


def test_clean_display_text_bounds_length():
    assert clean_display_text(None, 10) is None
    assert clean_display_text("   ", 10) is None
    assert clean_display_text("abcdefghijkl", 5) == "abcde"
    assert clean_display_text("line one\nline two", 50) == "line one\nline two"
