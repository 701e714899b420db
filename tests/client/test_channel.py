"""Tests for the real-time channel client"""

import asyncio
import json

import pytest

from shopfloor.client.channel import AckError, ChannelDisconnectedError, RealtimeChannel
from shopfloor.client.preferences import Preferences


class FakeSocket:
    """In-memory socket; push() feeds frames to the channel, drop() ends the stream"""

    def __init__(self) -> None:
        self.sent: list[dict] = []
        self.inbox: asyncio.Queue = asyncio.Queue()
        self.closed = False

    async def send(self, message: str) -> None:
        self.sent.append(json.loads(message))

    async def close(self) -> None:
        self.closed = True
        self.inbox.put_nowait(None)

    def __aiter__(self):
        return self

    async def __anext__(self) -> str:
        item = await self.inbox.get()
        if item is None:
            raise StopAsyncIteration
        return item

    def push(self, event, data=None, **extra) -> None:
        self.inbox.put_nowait(json.dumps({"event": event, "data": data, **extra}))

    def drop(self) -> None:
        self.inbox.put_nowait(None)

    def events(self) -> list[str]:
        return [frame["event"] for frame in self.sent]


class Connector:
    """Hands out sockets in order; a None entry makes that attempt fail"""

    def __init__(self, *sockets) -> None:
        self.sockets = list(sockets)
        self.urls: list[str] = []

    async def __call__(self, url: str) -> FakeSocket:
        self.urls.append(url)
        socket = self.sockets.pop(0) if self.sockets else None
        if socket is None:
            raise OSError("connection refused")
        return socket


async def settle(times: int = 5) -> None:
    for _ in range(times):
        await asyncio.sleep(0)


def make_channel(connector, **kwargs) -> RealtimeChannel:
    kwargs.setdefault("reconnect_delay", 0)
    kwargs.setdefault("ack_timeout", 1)
    return RealtimeChannel(
        "ws://shopfloor.test/ws", "tok", "u1", connector=connector, **kwargs
    )


@pytest.mark.asyncio
async def test_connect_announces_user():
    socket = FakeSocket()
    connector = Connector(socket)
    channel = make_channel(connector)

    await channel.connect()

    assert connector.urls == ["ws://shopfloor.test/ws?token=tok"]
    assert socket.sent[:2] == [
        {"event": "identify", "data": {"user_id": "u1"}, "ack": None},
        {"event": "register", "data": {"user_id": "u1"}, "ack": None},
    ]
    assert channel.is_connected
    await channel.disconnect()


@pytest.mark.asyncio
async def test_hidden_preference_is_restored_on_connect(tmp_path):
    preferences = Preferences(tmp_path / "prefs.json")
    preferences.hide_online_status = True
    socket = FakeSocket()
    channel = make_channel(Connector(socket), preferences=preferences)

    await channel.connect()

    assert socket.sent[2] == {
        "event": "chat:toggleVisibility",
        "data": {"is_hidden": True},
        "ack": None,
    }
    await channel.disconnect()


@pytest.mark.asyncio
async def test_connect_failure_raises():
    channel = make_channel(Connector(None))

    with pytest.raises(ChannelDisconnectedError):
        await channel.connect()
    assert not channel.is_connected


class RejectingSocket(FakeSocket):
    """Accepts the connection but fails on the second frame"""

    async def send(self, message: str) -> None:
        if self.sent:
            raise OSError("broken pipe")
        await super().send(message)


@pytest.mark.asyncio
async def test_failed_announce_leaves_nothing_running():
    socket = RejectingSocket()
    connector = Connector(socket, FakeSocket())
    channel = make_channel(connector)

    with pytest.raises(ChannelDisconnectedError):
        await channel.connect()
    await settle(10)

    assert socket.closed
    assert not channel.is_connected
    assert len(connector.urls) == 1


@pytest.mark.asyncio
async def test_emit_with_ack_returns_server_data():
    socket = FakeSocket()
    channel = make_channel(Connector(socket))
    await channel.connect()

    sending = asyncio.create_task(
        channel.emit("message:send", {"receiver_id": "u2", "content": "hi"}, ack=True)
    )
    await settle()
    ack_id = socket.sent[-1]["ack"]
    assert ack_id
    socket.push("ack", {"id": "m1"}, ack=ack_id)

    assert await sending == {"id": "m1"}
    await channel.disconnect()


@pytest.mark.asyncio
async def test_ack_error_raises():
    socket = FakeSocket()
    channel = make_channel(Connector(socket))
    await channel.connect()

    sending = asyncio.create_task(channel.emit("message:send", {}, ack=True))
    await settle()
    socket.push("ack", ack=socket.sent[-1]["ack"], error="'receiver_id' is required")

    with pytest.raises(AckError, match="receiver_id"):
        await sending
    await channel.disconnect()


@pytest.mark.asyncio
async def test_listeners_and_presence_state():
    socket = FakeSocket()
    channel = make_channel(Connector(socket))
    received = []
    unsubscribe = channel.on("message:receive", received.append)
    await channel.connect()

    socket.push("chat:onlineUsers", ["u1", "u2", 7])
    socket.push("chat:visibilityState", {"is_hidden": True})
    socket.push("message:receive", {"id": "m1"})
    socket.inbox.put_nowait("{not json")
    await settle()
    unsubscribe()
    socket.push("message:receive", {"id": "m2"})
    await settle()

    assert channel.online_users == ["u1", "u2"]
    assert channel.is_hidden is True
    assert received == [{"id": "m1"}]
    await channel.disconnect()


@pytest.mark.asyncio
async def test_failing_listener_does_not_stop_others():
    socket = FakeSocket()
    channel = make_channel(Connector(socket))
    received = []

    def broken(data):
        raise RuntimeError("boom")

    channel.on("message:receive", broken)
    channel.on("message:receive", received.append)
    await channel.connect()

    socket.push("message:receive", {"id": "m1"})
    await settle()

    assert received == [{"id": "m1"}]
    await channel.disconnect()


@pytest.mark.asyncio
async def test_disconnect_removes_listeners_and_blocks_emit():
    socket = FakeSocket()
    channel = make_channel(Connector(socket))
    received = []
    channel.on("message:receive", received.append)
    await channel.connect()

    await channel.disconnect()

    assert socket.closed
    assert not channel.is_connected
    assert channel.online_users == []
    with pytest.raises(ChannelDisconnectedError):
        await channel.emit("message:send", {"receiver_id": "u2", "content": "offline"})
    await channel._dispatch(json.dumps({"event": "message:receive", "data": {"id": "late"}}))
    assert received == []


@pytest.mark.asyncio
async def test_drop_fails_pending_ack_and_reconnects():
    first, second = FakeSocket(), FakeSocket()
    connector = Connector(first, second)
    channel = make_channel(connector)
    await channel.connect()

    sending = asyncio.create_task(channel.emit("message:send", {}, ack=True))
    await settle()
    first.drop()

    with pytest.raises(ChannelDisconnectedError):
        await sending
    await settle()
    assert len(connector.urls) == 2
    assert second.events()[:2] == ["identify", "register"]
    assert channel.is_connected
    await channel.disconnect()


@pytest.mark.asyncio
async def test_reconnect_gives_up_after_attempts():
    first = FakeSocket()
    connector = Connector(first, None, None, None)
    channel = make_channel(connector, reconnect_attempts=3)
    await channel.connect()
    reader = channel._reader

    first.drop()
    await reader

    assert len(connector.urls) == 4
    assert not channel.is_connected


@pytest.mark.asyncio
async def test_set_hidden_persists_preference(tmp_path):
    preferences = Preferences(tmp_path / "prefs.json")
    socket = FakeSocket()
    channel = make_channel(Connector(socket), preferences=preferences)
    await channel.connect()

    toggling = asyncio.create_task(channel.set_hidden(True))
    await settle()
    socket.push("ack", {"is_hidden": True}, ack=socket.sent[-1]["ack"])

    assert await toggling == {"is_hidden": True}
    assert preferences.hide_online_status is True
    assert Preferences(tmp_path / "prefs.json").get("chat_hide_online_status") == "true"
    await channel.disconnect()
