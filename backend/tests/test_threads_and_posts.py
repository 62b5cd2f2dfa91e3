from __future__ import annotations

import asyncio
import gc

import pytest

from app.core.errors import AuthError, PermissionDegraded, PublishError, ThreadError
from app.models import NO_IDENTITY, ServiceIdentity, UserIdentity
from app.services import PostPublisher, ThreadLocator

AGENT = ServiceIdentity("agent-1")


@pytest.fixture()
def anyio_backend() -> str:
    return "asyncio"


@pytest.mark.anyio("asyncio")
async def test_locate_is_idempotent_per_room(platform):
    locator = ThreadLocator(platform)

    first = await locator.locate_or_create("org1", "r1", "Radio Discussions", "everyone", AGENT)
    second = await locator.locate_or_create("org1", "r1", "Radio Discussions", "everyone", AGENT)

    assert first == second == "t1"


@pytest.mark.anyio("asyncio")
async def test_concurrent_locates_share_one_platform_call(platform):
    platform.thread_delay = 0.01
    locator = ThreadLocator(platform)

    results = await asyncio.gather(
        *(
            locator.locate_or_create("org1", "r1", "Radio Discussions", "everyone", AGENT)
            for _ in range(5)
        )
    )

    assert set(results) == {"t1"}
    assert platform.calls.count("locate_or_create_thread") == 1
    assert platform.threads == {("org1", "r1"): "t1"}


@pytest.mark.anyio("asyncio")
async def test_concurrent_locates_for_different_rooms_are_independent(platform):
    platform.thread_delay = 0.01
    platform.organizations["r4"] = "org1"
    locator = ThreadLocator(platform)

    first, second = await asyncio.gather(
        locator.locate_or_create("org1", "r1", "Radio Discussions", "everyone", AGENT),
        locator.locate_or_create("org1", "r4", "Radio Discussions", "everyone", AGENT),
    )

    assert first != second
    assert platform.calls.count("locate_or_create_thread") == 2


@pytest.mark.anyio("asyncio")
async def test_concurrent_locates_under_different_actors_are_not_shared(platform):
    platform.thread_delay = 0.01
    platform.denied_actors.add("no-rights")
    locator = ThreadLocator(platform)

    denied, allowed = await asyncio.gather(
        locator.locate_or_create("org1", "r1", "Radio Discussions", "everyone", UserIdentity("no-rights")),
        locator.locate_or_create("org1", "r1", "Radio Discussions", "everyone", UserIdentity("has-rights")),
        return_exceptions=True,
    )

    assert isinstance(denied, PermissionDegraded)
    assert allowed == "t1"
    assert platform.calls.count("locate_or_create_thread") == 2


@pytest.mark.anyio("asyncio")
async def test_different_actors_still_land_in_the_room_thread(platform):
    platform.thread_delay = 0.01
    locator = ThreadLocator(platform)

    results = await asyncio.gather(
        locator.locate_or_create("org1", "r1", "Radio Discussions", "everyone", AGENT),
        locator.locate_or_create("org1", "r1", "Radio Discussions", "everyone", UserIdentity("u1")),
    )

    assert results == ["t1", "t1"]
    assert platform.threads == {("org1", "r1"): "t1"}


@pytest.mark.anyio("asyncio")
async def test_abandoned_lookup_failure_is_consumed(platform, caplog):
    platform.thread_delay = 0.02
    platform.fail_threads = True
    locator = ThreadLocator(platform)

    caller = asyncio.create_task(
        locator.locate_or_create("org1", "r1", "Radio Discussions", "everyone", AGENT)
    )
    await asyncio.sleep(0.005)
    caller.cancel()
    with pytest.raises(asyncio.CancelledError):
        await caller
    await asyncio.sleep(0.05)
    gc.collect()

    assert locator._inflight == {}
    assert "never retrieved" not in caplog.text

    platform.fail_threads = False
    thread_id = await locator.locate_or_create("org1", "r1", "Radio Discussions", "everyone", AGENT)
    assert thread_id == "t1"


@pytest.mark.anyio("asyncio")
async def test_missing_acting_identity_fails_before_platform_call(platform):
    locator = ThreadLocator(platform)

    with pytest.raises(AuthError):
        await locator.locate_or_create("org1", "r1", "Radio Discussions", "everyone", NO_IDENTITY)

    assert platform.calls == []


@pytest.mark.anyio("asyncio")
async def test_permission_denied_is_degraded(platform):
    locator = ThreadLocator(platform)

    with pytest.raises(PermissionDegraded) as excinfo:
        await locator.locate_or_create("org3", "r3", "Radio Discussions", "everyone", AGENT)

    assert excinfo.value.reason == "no thread permission"


@pytest.mark.anyio("asyncio")
async def test_other_platform_failures_are_thread_errors(platform):
    platform.fail_threads = True
    locator = ThreadLocator(platform)

    with pytest.raises(ThreadError):
        await locator.locate_or_create("org1", "r1", "Radio Discussions", "everyone", AGENT)


@pytest.mark.anyio("asyncio")
async def test_failed_locate_does_not_poison_later_calls(platform):
    platform.fail_threads = True
    locator = ThreadLocator(platform)
    with pytest.raises(ThreadError):
        await locator.locate_or_create("org1", "r1", "Radio Discussions", "everyone", AGENT)

    platform.fail_threads = False
    thread_id = await locator.locate_or_create("org1", "r1", "Radio Discussions", "everyone", AGENT)

    assert thread_id == "t1"


@pytest.mark.anyio("asyncio")
async def test_publish_returns_post_id(platform):
    publisher = PostPublisher(platform)

    post_id = await publisher.publish("t1", "🎵 hello", "body", UserIdentity("u1"))

    assert post_id == "post-1"
    assert platform.posts[0]["actor"] == UserIdentity("u1")


@pytest.mark.anyio("asyncio")
async def test_publish_failure_is_not_retried(platform):
    platform.fail_publish = True
    publisher = PostPublisher(platform)

    with pytest.raises(PublishError):
        await publisher.publish("t1", "title", "body", AGENT)

    assert platform.calls.count("publish_post") == 1


@pytest.mark.anyio("asyncio")
async def test_publish_without_post_id_is_an_error(platform):
    async def anonymous_post(*args, **kwargs) -> str:
        return ""

    platform.publish_post = anonymous_post
    publisher = PostPublisher(platform)

    with pytest.raises(PublishError):
        await publisher.publish("t1", "title", "body", AGENT)
