"""Tests for Redis pub/sub delivery of real-time events"""

import json
from unittest.mock import AsyncMock

import pytest

from shopfloor.infrastructure.messaging.redis_pubsub import (RealtimeEvent, RealtimePublisher,
                                                             RealtimeSubscriber)
from shopfloor.presentation.api.websocket.dispatcher import RealtimeDispatcher


@pytest.fixture
def publisher():
    publisher = RealtimePublisher(redis_client=AsyncMock())
    publisher._connected = True
    return publisher


@pytest.mark.asyncio
async def test_publish_to_user_channel(publisher):
    event = RealtimeEvent(user_id="u1", event="message:receive", data={"id": "m1"})

    assert await publisher.publish(event) is True

    channel, body = publisher.redis.publish.call_args[0]
    assert channel == "realtime:u1"
    decoded = json.loads(body)
    assert decoded["event"] == "message:receive"
    assert decoded["data"] == {"id": "m1"}
    assert RealtimeEvent.from_dict(decoded) == event


@pytest.mark.asyncio
async def test_publish_failure_reported(publisher):
    publisher.redis.publish = AsyncMock(side_effect=ConnectionError("down"))

    assert await publisher.publish(RealtimeEvent(user_id="u1", event="x")) is False


@pytest.mark.asyncio
async def test_publish_without_connection():
    assert await RealtimePublisher().publish(RealtimeEvent(user_id="u1", event="x")) is False


@pytest.mark.asyncio
async def test_subscriber_without_connection_yields_nothing():
    events = [event async for event in RealtimeSubscriber().subscribe("u1")]

    assert events == []


@pytest.mark.asyncio
async def test_dispatcher_prefers_publisher(publisher):
    manager = AsyncMock()
    dispatcher = RealtimeDispatcher(manager=manager, publisher=publisher)

    await dispatcher.emit("u1", "notification:u1", {"id": "n1"})

    publisher.redis.publish.assert_awaited_once()
    manager.send_to_user.assert_not_awaited()


@pytest.mark.asyncio
async def test_dispatcher_falls_back_to_local_sockets(publisher):
    publisher.redis.publish = AsyncMock(side_effect=ConnectionError("down"))
    manager = AsyncMock()
    dispatcher = RealtimeDispatcher(manager=manager, publisher=publisher)

    await dispatcher.emit("u1", "notification:u1", {"id": "n1"})

    manager.send_to_user.assert_awaited_once_with(
        "u1", {"event": "notification:u1", "data": {"id": "n1"}, "ack": None}
    )
