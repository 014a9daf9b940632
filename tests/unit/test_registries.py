from __future__ import annotations

from datetime import timedelta

import pytest

from agency_chat.infrastructure.ws.manager import ConnectionManager, client_group, user_group
from agency_chat.infrastructure.ws.presence import PresenceTracker
from agency_chat.infrastructure.ws.typing_tracker import TypingTracker
from tests.conftest import FakeWebSocket


# -- presence ---------------------------------------------------------------


def test_presence_register_and_snapshot(client_principal, agency_principal, clock):
    presence = PresenceTracker(clock)

    assert presence.register(client_principal, FakeWebSocket()) is True
    assert presence.register(agency_principal, FakeWebSocket()) is True

    assert presence.is_online(client_principal.subject_id)
    assert presence.is_email_online("C@X.COM")
    assert len(presence) == 2
    users = {u["userId"]: u for u in presence.snapshot()}
    assert users[client_principal.subject_id]["role"] == "user"
    assert users[agency_principal.subject_id]["role"] == "admin"
    assert users[client_principal.subject_id]["lastSeen"] == clock.now().isoformat()


def test_presence_reconnect_keeps_newer_connection(client_principal, clock):
    presence = PresenceTracker(clock)
    old, new = FakeWebSocket(), FakeWebSocket()

    presence.register(client_principal, old)
    assert presence.register(client_principal, new) is False

    assert presence.unregister(client_principal.subject_id, old) is False
    assert presence.is_online(client_principal.subject_id)
    assert presence.unregister(client_principal.subject_id, new) is True
    assert not presence.is_online(client_principal.subject_id)


def test_presence_stays_online_until_last_connection_closes(client_principal, clock):
    presence = PresenceTracker(clock)
    tab1, tab2 = FakeWebSocket(), FakeWebSocket()
    presence.register(client_principal, tab1)
    presence.register(client_principal, tab2)
    assert presence.connection_count(client_principal.subject_id) == 2

    assert presence.unregister(client_principal.subject_id, tab2) is False
    assert presence.is_online(client_principal.subject_id)
    assert presence.unregister(client_principal.subject_id, tab2) is False

    assert presence.unregister(client_principal.subject_id, tab1) is True
    assert presence.connection_count(client_principal.subject_id) == 0


def test_presence_touch_updates_last_seen(client_principal, clock):
    presence = PresenceTracker(clock)
    presence.register(client_principal, FakeWebSocket())

    clock.advance(42)
    presence.touch(client_principal.subject_id)

    (user,) = presence.snapshot()
    assert user["lastSeen"] == clock.now().isoformat()


# -- typing -----------------------------------------------------------------


def test_typing_start_and_stop(clock):
    typing = TypingTracker(clock)

    typing.start(100, 42, ("user:1",))
    assert typing.is_typing(100, 42)

    stopped = typing.stop(100, 42)
    assert stopped is not None
    assert stopped.notify_groups == ("user:1",)
    assert typing.stop(100, 42) is None
    assert len(typing) == 0


def test_typing_expires_after_timeout(clock):
    typing = TypingTracker(clock)
    typing.start(100, 42, ("user:1",))

    clock.advance(5)
    typing.start(101, 1, ("client:10",))
    clock.advance(6)

    expired = typing.expire(timedelta(seconds=10))

    assert [(s.conversation_id, s.principal_id) for s in expired] == [(100, 42)]
    assert not typing.is_typing(100, 42)
    assert typing.is_typing(101, 1)


def test_typing_refresh_postpones_expiry(clock):
    typing = TypingTracker(clock)
    typing.start(100, 42, ("user:1",))
    clock.advance(8)
    typing.start(100, 42, ("user:1",))
    clock.advance(8)

    assert typing.expire(timedelta(seconds=10)) == []


def test_typing_drop_principal(clock):
    typing = TypingTracker(clock)
    typing.start(100, 42, ("user:1",))
    typing.start(101, 42, ("user:1",))
    typing.start(101, 1, ("client:10",))

    dropped = typing.drop_principal(42)

    assert {s.conversation_id for s in dropped} == {100, 101}
    assert not typing.is_typing(101, 42)
    assert typing.is_typing(101, 1)


# -- connection manager -------------------------------------------------------


@pytest.mark.asyncio
async def test_emit_reaches_each_connection_once():
    manager = ConnectionManager()
    a, b = FakeWebSocket(), FakeWebSocket()
    await manager.accept(a)
    await manager.accept(b)
    manager.join(a, user_group(1))
    manager.join(a, client_group(10))
    manager.join(b, client_group(10))

    delivered = await manager.emit([user_group(1), client_group(10)], "chatMessage", {"x": 1})

    assert delivered == 2
    assert len(a.sent) == 1
    assert a.events[0] == {"type": "chatMessage", "data": {"x": 1}}


@pytest.mark.asyncio
async def test_emit_excludes_origin_and_drops_dead_connections():
    manager = ConnectionManager()
    origin, dead, live = FakeWebSocket(), FakeWebSocket(broken=True), FakeWebSocket()
    for ws in (origin, dead, live):
        manager.join(ws, client_group(10))

    delivered = await manager.emit([client_group(10)], "chatMessage", {}, exclude=origin)

    assert delivered == 1
    assert origin.sent == []
    assert manager.members(client_group(10)) == {origin, live}
    assert manager.groups_of(dead) == set()


@pytest.mark.asyncio
async def test_leave_and_disconnect():
    manager = ConnectionManager()
    ws = FakeWebSocket()
    manager.join(ws, "conversation:100")
    manager.join(ws, user_group(1))

    manager.leave(ws, "conversation:100")
    assert manager.groups_of(ws) == {user_group(1)}

    manager.disconnect(ws)
    assert manager.members(user_group(1)) == set()
