"""Tests for inbound real-time event handling"""

import json

import pytest

from shopfloor.presentation.api.websocket.hub import RealtimeHub
from shopfloor.presentation.api.websocket.manager import ConnectionManager
from shopfloor.presentation.api.websocket.presence import PresenceRegistry


class FakeWebSocket:
    def __init__(self) -> None:
        self.sent: list[dict] = []
        self.accepted = False

    async def accept(self) -> None:
        self.accepted = True

    async def send_text(self, text: str) -> None:
        self.sent.append(json.loads(text))

    async def close(self, code: int = 1000) -> None:
        pass

    def events(self) -> list[str]:
        return [message["event"] for message in self.sent]

    def acks(self) -> list[dict]:
        return [message for message in self.sent if message["event"] == "ack"]


@pytest.fixture
def manager():
    return ConnectionManager()


@pytest.fixture
def presence(manager):
    return PresenceRegistry(manager)


@pytest.fixture
def hub(manager, presence, notifier, session_factory):
    return RealtimeHub(
        manager=manager, presence=presence, notifier=notifier, session_factory=session_factory
    )


async def connect(manager, user_id):
    websocket = FakeWebSocket()
    await manager.connect(websocket, user_id)
    return websocket


def send(event, data=None, ack=None) -> str:
    return json.dumps({"event": event, "data": data, "ack": ack})


@pytest.mark.asyncio
async def test_register_broadcasts_roster(hub, manager):
    first = await connect(manager, "u1")
    second = await connect(manager, "u2")

    await hub.handle(second, "u2", send("register", "u2"))

    roster = {"event": "chat:onlineUsers", "data": ["u1", "u2"], "ack": None}
    assert roster in first.sent
    assert roster in second.sent
    assert second.sent[0] == {
        "event": "chat:visibilityState",
        "data": {"is_hidden": False},
        "ack": None,
    }


@pytest.mark.asyncio
async def test_hidden_user_leaves_roster_but_stays_hidden(hub, manager, presence):
    watcher = await connect(manager, "u1")
    hider = await connect(manager, "u2")

    await hub.handle(hider, "u2", send("chat:toggleVisibility", {"is_hidden": True}))

    assert watcher.sent[-1]["data"] == ["u1"]
    await manager.disconnect(hider, "u2")
    hider = await connect(manager, "u2")
    await hub.handle(hider, "u2", send("chat:checkVisibility"))
    assert hider.sent[-1]["data"] == {"is_hidden": True}
    assert presence.visible_online_users() == ["u1"]


@pytest.mark.asyncio
async def test_toggle_visibility_requires_boolean(hub, manager):
    websocket = await connect(manager, "u1")

    await hub.handle(websocket, "u1", send("chat:toggleVisibility", {"is_hidden": "yes"}, "a1"))

    assert websocket.acks() == [
        {"event": "ack", "ack": "a1", "error": "'is_hidden' must be a boolean"}
    ]


@pytest.mark.asyncio
async def test_malformed_frames_are_dropped(hub, manager):
    websocket = await connect(manager, "u1")

    await hub.handle(websocket, "u1", "not json")
    await hub.handle(websocket, "u1", json.dumps(["event"]))
    await hub.handle(websocket, "u1", json.dumps({"data": 1}))

    assert websocket.sent == []


@pytest.mark.asyncio
async def test_message_send_acks_and_pushes(
    hub, manager, notifier, employee_user, other_employee
):
    websocket = await connect(manager, employee_user.id)

    await hub.handle(
        websocket,
        employee_user.id,
        send("message:send", {"receiver_id": other_employee.id, "content": "Forklift free?"}, "m1"),
    )

    [ack] = websocket.acks()
    assert ack["ack"] == "m1"
    assert ack["data"]["sender_id"] == employee_user.id
    assert ack["data"]["content"] == "Forklift free?"
    assert [event for event, _ in notifier.for_user(other_employee.id)] == [
        f"notification:{other_employee.id}",
        "message:receive",
    ]


@pytest.mark.asyncio
async def test_sender_id_in_payload_is_ignored(hub, manager, employee_user, other_employee):
    websocket = await connect(manager, employee_user.id)

    await hub.handle(
        websocket,
        employee_user.id,
        send(
            "message:send",
            {"receiver_id": other_employee.id, "sender_id": other_employee.id, "content": "hi"},
            "m1",
        ),
    )

    assert websocket.acks()[0]["data"]["sender_id"] == employee_user.id


@pytest.mark.asyncio
async def test_message_send_validation_error(hub, manager, notifier, employee_user):
    websocket = await connect(manager, employee_user.id)

    await hub.handle(websocket, employee_user.id, send("message:send", {"content": "hi"}))
    await hub.handle(
        websocket,
        employee_user.id,
        send("message:send", {"receiver_id": employee_user.id, "content": "me"}, "m2"),
    )

    assert websocket.sent[0] == {
        "event": "error",
        "data": {"event": "message:send", "message": "'receiver_id' is required"},
        "ack": None,
    }
    assert websocket.acks() == [
        {"event": "ack", "ack": "m2", "error": "Cannot send a message to yourself"}
    ]
    assert notifier.events == []


@pytest.mark.asyncio
async def test_wrong_typed_fields_are_rejected(
    hub, manager, notifier, employee_user, other_employee
):
    websocket = await connect(manager, employee_user.id)

    frames = [
        send("message:send", {"receiver_id": other_employee.id, "content": 123}, "a1"),
        send("message:send", {"receiver_id": 42, "content": "hi"}, "a2"),
        send("message:read", {"sender_id": ["x"]}, "a3"),
        send("message:delete", {"message_id": {"id": "x"}}, "a4"),
    ]
    for text in frames:
        await hub.handle(websocket, employee_user.id, text)

    assert [ack["error"] for ack in websocket.acks()] == [
        "'content' must be a string",
        "'receiver_id' must be a string",
        "'sender_id' must be a string",
        "'message_id' must be a string",
    ]
    assert notifier.events == []


@pytest.mark.asyncio
async def test_unexpected_failure_answers_and_keeps_socket(
    manager, presence, notifier, session_factory
):
    def broken_chat(session, buffered):
        raise RuntimeError("database went away")

    hub = RealtimeHub(
        manager=manager,
        presence=presence,
        notifier=notifier,
        session_factory=session_factory,
        chat_service_factory=broken_chat,
    )
    websocket = await connect(manager, "user-1")

    await hub.handle(websocket, "user-1", send("message:send", {"receiver_id": "user-2"}, "a1"))
    await hub.handle(websocket, "user-1", send("message:read", {"sender_id": "user-2"}))
    await hub.handle(websocket, "user-1", send("ping", "still here"))

    assert websocket.acks() == [{"event": "ack", "ack": "a1", "error": "Internal error"}]
    assert websocket.sent[-2]["data"] == {"event": "message:read", "message": "Internal error"}
    assert websocket.sent[-1]["event"] == "pong"
    assert manager.is_online("user-1")


@pytest.mark.asyncio
async def test_read_and_delete_over_socket(
    hub, manager, notifier, employee_user, other_employee
):
    sender = await connect(manager, employee_user.id)
    reader = await connect(manager, other_employee.id)
    await hub.handle(
        sender,
        employee_user.id,
        send("message:send", {"receiver_id": other_employee.id, "content": "hi"}, "s1"),
    )
    message_id = sender.acks()[0]["data"]["id"]

    read = send("message:read", {"sender_id": employee_user.id}, "r1")
    await hub.handle(reader, other_employee.id, read)
    assert reader.acks()[0]["data"] == {"count": 1}
    assert notifier.for_user(employee_user.id)[-1][0] == "message:read"

    delete = {"message_id": message_id}
    await hub.handle(reader, other_employee.id, send("message:delete", delete, "d1"))
    assert reader.acks()[1]["error"] == "Only the sender can delete a message"

    await hub.handle(sender, employee_user.id, send("message:delete", delete, "d2"))
    assert sender.acks()[1]["data"]["is_deleted"] is True
    assert notifier.for_user(other_employee.id)[-1] == (
        "message:deleted",
        {"message_id": message_id, "deleted_content": "Message deleted"},
    )
