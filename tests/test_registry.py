import pytest

from campusmart.websockets.registry import ConnectionRegistry
from tests.helpers import FakeLiveSession


@pytest.mark.asyncio
async def test_last_connect_wins():
    registry = ConnectionRegistry()
    first, second = FakeLiveSession(), FakeLiveSession()

    await registry.register("u1", first)
    await registry.register("u1", second)

    assert registry.resolve("u1") is second
    assert registry.online_users() == ["u1"]


@pytest.mark.asyncio
async def test_resolve_unknown_user_is_none():
    assert ConnectionRegistry().resolve("nobody") is None


@pytest.mark.asyncio
async def test_unregister_is_idempotent():
    registry = ConnectionRegistry()
    session = FakeLiveSession()
    await registry.register("u1", session)

    await registry.unregister("u1")
    await registry.unregister("u1")

    assert registry.resolve("u1") is None
    assert registry.online_users() == []


@pytest.mark.asyncio
async def test_stale_session_teardown_keeps_newer_session():
    registry = ConnectionRegistry()
    old, new = FakeLiveSession(), FakeLiveSession()
    await registry.register("u1", old)
    await registry.register("u1", new)

    await registry.unregister("u1", old)

    assert registry.resolve("u1") is new


@pytest.mark.asyncio
async def test_presence_is_broadcast_on_register_and_unregister():
    registry = ConnectionRegistry()
    alice, bob = FakeLiveSession(), FakeLiveSession()

    await registry.register("u1", alice)
    await registry.register("u2", bob)
    await registry.unregister("u2", bob)

    assert alice.events("getOnlineUsers") == [["u1"], ["u1", "u2"], ["u1"]]
    assert bob.events("getOnlineUsers") == [["u1", "u2"]]


@pytest.mark.asyncio
async def test_send_to_user():
    registry = ConnectionRegistry()
    session = FakeLiveSession()
    await registry.register("u1", session)

    assert await registry.send_to_user("u1", {"type": "message", "data": {"id": "m1"}})
    assert not await registry.send_to_user("u2", {"type": "message", "data": {"id": "m2"}})
    assert session.events("message") == [{"id": "m1"}]


@pytest.mark.asyncio
async def test_dead_session_is_dropped():
    registry = ConnectionRegistry()
    healthy = FakeLiveSession()
    await registry.register("u1", healthy)
    await registry.register("u2", FakeLiveSession(fail=True))

    assert registry.online_users() == ["u1"]
    assert healthy.events("getOnlineUsers")[-1] == ["u1"]
