"""Tests for the notification feed, view scopes and preferences"""

import asyncio

import httpx
import pytest

from shopfloor.client.api import ApiClient
from shopfloor.client.notifications import NotificationFeed
from shopfloor.client.preferences import Preferences
from shopfloor.client.scope import ViewScope


def page(*items):
    return {"data": list(items), "pagination": {"total": len(items), "page": 1, "limit": 20}}


class FeedBackend:
    def __init__(self) -> None:
        self.items = [
            {"id": "n1", "content": "Shift starts", "is_read": False},
            {"id": "n2", "content": "New message", "is_read": True},
        ]
        self.fetches = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/notifications":
            self.fetches += 1
            return httpx.Response(200, json=page(*self.items))
        if path == "/notifications/read-all":
            return httpx.Response(200, json={"updated": 1})
        if path.endswith("/read"):
            return httpx.Response(200, json={"id": "n1", "content": "Shift starts", "is_read": True})
        if path.endswith("/archive"):
            return httpx.Response(200, json={"id": "n2", "archived": True})
        return httpx.Response(404, json={"detail": "Not Found"})


class FakeChannel:
    def __init__(self) -> None:
        self.listeners: dict[str, list] = {}

    def on(self, event, listener):
        self.listeners.setdefault(event, []).append(listener)
        return lambda: self.listeners[event].remove(listener)

    def fire(self, event, data=None):
        for listener in list(self.listeners.get(event, [])):
            listener(data)


@pytest.fixture
def backend():
    return FeedBackend()


@pytest.fixture
def feed(backend):
    api = ApiClient("http://test", transport=httpx.MockTransport(backend))
    return NotificationFeed(api, "u1")


@pytest.mark.asyncio
async def test_push_only_invalidates(feed, backend):
    channel = FakeChannel()
    feed.attach(channel)
    await feed.ensure_fresh()
    await feed.ensure_fresh()
    assert backend.fetches == 1
    assert feed.unread_count == 1

    channel.fire("notification:u1", {"id": "n3"})
    assert feed.stale
    backend.items.insert(0, {"id": "n3", "content": "Scheduled", "is_read": False})
    await feed.ensure_fresh()

    assert backend.fetches == 2
    assert [item["id"] for item in feed.items] == ["n3", "n1", "n2"]
    assert feed.total == 3

    feed.detach()
    channel.fire("notification:u1")
    assert not feed.stale


@pytest.mark.asyncio
async def test_mark_read_archive_read_all(feed):
    await feed.refresh()

    await feed.mark_read("n1")
    assert feed.unread_count == 0

    await feed.archive("n2")
    assert [item["id"] for item in feed.items] == ["n1"]

    feed.items[0]["is_read"] = False
    assert await feed.read_all() == 1
    assert feed.unread_count == 0


@pytest.mark.asyncio
async def test_scope_applies_result_while_open():
    applied = []

    async def fetch():
        return ["m1"]

    async with ViewScope() as scope:
        assert await scope.run(fetch(), applied.extend) == ["m1"]

    assert applied == ["m1"]
    assert not scope.is_active


@pytest.mark.asyncio
async def test_scope_close_cancels_in_flight_work():
    started = asyncio.Event()
    cancelled = asyncio.Event()
    applied = []

    async def slow_fetch():
        started.set()
        try:
            await asyncio.sleep(60)
        except asyncio.CancelledError:
            cancelled.set()
            raise
        return ["late"]

    scope = ViewScope()
    running = asyncio.create_task(scope.run(slow_fetch(), applied.extend))
    await started.wait()
    await scope.close()

    assert await running is None
    assert cancelled.is_set()
    assert applied == []


@pytest.mark.asyncio
async def test_closed_scope_refuses_new_work():
    scope = ViewScope()
    await scope.close()

    async def fetch():
        return 1

    with pytest.raises(RuntimeError):
        scope.spawn(fetch())


def test_preferences_round_trip(tmp_path):
    path = tmp_path / "nested" / "prefs.json"
    preferences = Preferences(path)

    assert preferences.hide_online_status is False
    preferences.hide_online_status = True
    preferences.set("theme", "dark")

    reloaded = Preferences(path)
    assert reloaded.hide_online_status is True
    assert reloaded.get("theme") == "dark"


def test_corrupt_preferences_read_as_empty(tmp_path):
    path = tmp_path / "prefs.json"
    path.write_text("{broken", encoding="utf-8")

    assert Preferences(path).get("chat_hide_online_status") is None
