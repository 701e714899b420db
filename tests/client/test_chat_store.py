"""Tests for client-side chat state"""

import asyncio
import json

import httpx
import pytest

from shopfloor.client.api import ApiClient
from shopfloor.client.chat import ChatStore
from shopfloor.client.dedup import ProcessedIds
from shopfloor.client.scope import ViewScope

ME = "u-me"


def msg(id, sender=ME, receiver="u-anna", at="2026-03-02T09:00:00+00:00", **extra):
    return {
        "id": id,
        "sender_id": sender,
        "receiver_id": receiver,
        "content": f"message {id}",
        "is_read": False,
        "created_at": at,
        **extra,
    }


@pytest.fixture
def store():
    return ChatStore(ME, ProcessedIds())


def test_messages_sorted_oldest_first(store):
    store.ingest(msg("t3", at="2026-03-02T09:03:00+00:00"))
    store.ingest(msg("t1", at="2026-03-02T09:01:00+00:00"))
    store.ingest(msg("t2", at="2026-03-02T09:02:00Z"))

    assert [m["id"] for m in store.messages("u-anna")] == ["t1", "t2", "t3"]


def test_same_message_from_rest_and_push_kept_once(store):
    fetched = msg("m1", sender="u-anna", receiver=ME)
    pushed = dict(fetched)

    assert store.ingest_many([fetched]) == 1
    assert store.ingest(pushed) is False
    assert len(store.messages("u-anna")) == 1


def test_refetched_history_longer_than_capacity_kept_once():
    store = ChatStore(ME, ProcessedIds(capacity=2))
    history = [
        msg(f"m{i}", sender="u-anna", receiver=ME, at=f"2026-03-02T09:0{i}:00+00:00")
        for i in range(1, 4)
    ]

    assert store.ingest_many(history) == 3
    assert store.ingest_many([dict(m) for m in history]) == 0
    assert [m["id"] for m in store.messages("u-anna")] == ["m1", "m2", "m3"]


def test_message_without_id_is_dropped(store):
    assert store.ingest({"sender_id": "u-anna", "receiver_id": ME, "content": "?"}) is False
    assert store.ingest("garbage") is False
    assert store.ingest(msg("m1", at="yesterday")) is False
    assert store.conversations == {}


def test_conversation_list_and_unread(store):
    at = "2026-03-02T10:00:00+00:00"
    store.ingest(msg("a1", receiver="u-anna", at=at))
    store.ingest(msg("b1", sender="u-bert", receiver=ME, at=at))
    store.ingest(msg("c1", sender="u-carl", receiver=ME, at="2026-03-02T08:00:00+00:00"))

    views = store.conversation_list()

    assert [v.partner_id for v in views] == ["u-bert", "u-anna", "u-carl"]
    assert [v.unread_count for v in views] == [1, 0, 1]


def test_delete_and_read_events(store):
    store.ingest(msg("m1"))
    store.ingest(msg("m2", sender="u-anna", receiver=ME, attachment_url="https://x/y.png"))

    store.apply_read({"reader_id": "u-anna", "sender_id": ME, "count": 1})
    store.apply_deleted({"message_id": "m2", "deleted_content": "Message deleted"})
    store.apply_deleted({"nothing": True})

    first, second = store.messages("u-anna")
    assert first["is_read"] is True
    assert second["content"] == "Message deleted"
    assert second["attachment_url"] is None
    assert second["is_deleted"] is True


class FakeChannel:
    def __init__(self) -> None:
        self.listeners: dict[str, list] = {}
        self.emitted: list[tuple[str, dict]] = []

    def on(self, event, listener):
        self.listeners.setdefault(event, []).append(listener)
        return lambda: self.listeners[event].remove(listener)

    def fire(self, event, data):
        for listener in list(self.listeners.get(event, [])):
            listener(data)

    async def emit(self, event, data=None, *, ack=False):
        self.emitted.append((event, data))
        return msg("sent-1", receiver=data["receiver_id"], content=data["content"])


def test_attach_and_detach(store):
    channel = FakeChannel()
    store.attach(channel)

    channel.fire("message:receive", msg("m1", sender="u-anna", receiver=ME))
    store.detach()
    channel.fire("message:receive", msg("m2", sender="u-anna", receiver=ME))

    assert [m["id"] for m in store.messages("u-anna")] == ["m1"]
    assert all(not listeners for listeners in channel.listeners.values())


@pytest.mark.asyncio
async def test_send_appends_acknowledged_message(store):
    channel = FakeChannel()

    sent = await store.send(channel, "u-anna", "Shift swap?")

    assert channel.emitted == [
        ("message:send", {"receiver_id": "u-anna", "content": "Shift swap?", "attachment_url": None})
    ]
    assert store.messages("u-anna") == [sent]
    # The echo over the socket is ignored
    assert store.ingest(dict(sent)) is False


def history_api(release: asyncio.Event | None = None) -> ApiClient:
    async def handler(request: httpx.Request) -> httpx.Response:
        if release is not None:
            await release.wait()
        if request.method == "PATCH":
            return httpx.Response(200, json={"reader_id": ME, "sender_id": "u-anna", "count": 1})
        body = [msg("h1", sender="u-anna", receiver=ME)]
        return httpx.Response(200, content=json.dumps(body))

    return ApiClient("http://test", transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_load_conversation_and_mark_read():
    store = ChatStore(ME, ProcessedIds(), history_api())

    assert await store.load_conversation("u-anna") == 1
    assert store.unread_count("u-anna") == 1
    assert await store.mark_read("u-anna") == 1
    assert store.unread_count("u-anna") == 0


@pytest.mark.asyncio
async def test_history_arriving_after_view_closed_is_dropped():
    release = asyncio.Event()
    store = ChatStore(ME, ProcessedIds(), history_api(release))
    scope = ViewScope()

    loading = asyncio.create_task(store.load_conversation("u-anna", scope))
    await asyncio.sleep(0)
    await scope.close()
    release.set()

    assert await loading == 0
    assert store.conversations == {}


@pytest.mark.asyncio
async def test_history_loaded_inside_open_view():
    store = ChatStore(ME, ProcessedIds(), history_api())

    async with ViewScope() as scope:
        assert await store.load_conversation("u-anna", scope) == 1

    assert [m["id"] for m in store.messages("u-anna")] == ["h1"]
