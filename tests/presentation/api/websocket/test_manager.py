"""Tests for the WebSocket connection manager"""

import pytest

from shopfloor.presentation.api.websocket.manager import ConnectionManager


class RecordingSocket:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.received: list[str] = []
        self.closed = False

    async def accept(self) -> None:
        pass

    async def send_text(self, text: str) -> None:
        if self.fail:
            raise RuntimeError("socket closed")
        self.received.append(text)

    async def close(self, code: int = 1000) -> None:
        self.closed = True


@pytest.mark.asyncio
async def test_user_online_until_last_socket_closes():
    manager = ConnectionManager()
    tab, phone = RecordingSocket(), RecordingSocket()
    await manager.connect(tab, "u1")
    await manager.connect(phone, "u1")

    assert manager.get_connection_count("u1") == 2
    assert await manager.disconnect(tab, "u1") is False
    assert manager.is_online("u1")
    assert await manager.disconnect(phone, "u1") is True
    assert manager.online_user_ids() == []


@pytest.mark.asyncio
async def test_send_to_user_reaches_every_socket():
    manager = ConnectionManager()
    tab, phone = RecordingSocket(), RecordingSocket()
    await manager.connect(tab, "u1")
    await manager.connect(phone, "u1")

    assert await manager.send_to_user("u1", {"event": "ping"}) == 2
    assert await manager.send_to_user("nobody", {"event": "ping"}) == 0
    assert tab.received == phone.received == ['{"event": "ping"}']


@pytest.mark.asyncio
async def test_failed_sockets_are_pruned():
    manager = ConnectionManager()
    await manager.connect(RecordingSocket(fail=True), "u1")
    healthy = RecordingSocket()
    await manager.connect(healthy, "u2")

    assert await manager.broadcast({"event": "chat:onlineUsers"}) == 1
    assert manager.online_user_ids() == ["u2"]


@pytest.mark.asyncio
async def test_close_all():
    manager = ConnectionManager()
    socket = RecordingSocket()
    await manager.connect(socket, "u1")

    await manager.close_all()

    assert socket.closed
    assert manager.get_total_connections() == 0
