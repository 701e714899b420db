"""Redis Pub/Sub bridge for real-time events addressed to a user"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from dataclasses import asdict, dataclass, field
from typing import Any

import redis.asyncio as redis

from shopfloor.infrastructure.config.settings import get_settings
from shopfloor.shared.utils import utc_now

logger = logging.getLogger(__name__)

CHANNEL_PREFIX = "realtime"


def _get_channel(user_id: str) -> str:
    """Get channel name for a user"""
    return f"{CHANNEL_PREFIX}:{user_id}"


def _create_client() -> redis.Redis:
    settings = get_settings()
    return redis.Redis(
        host=settings.redis_host,
        port=settings.redis_port,
        db=settings.redis_db,
        password=settings.redis_password or None,
        decode_responses=True,
        socket_connect_timeout=5,
    )


@dataclass
class RealtimeEvent:
    """Event addressed to every socket of one user"""

    user_id: str
    event: str
    data: Any = None
    timestamp: str = field(default_factory=lambda: utc_now().isoformat())

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization"""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RealtimeEvent":
        """Create from dictionary"""
        return cls(**data)


class RealtimePublisher:
    """Publishes real-time events to Redis so every worker can deliver them"""

    def __init__(self, redis_client: redis.Redis | None = None) -> None:
        self.redis = redis_client
        self._connected = False

    async def connect(self) -> None:
        """Establish Redis connection"""
        if self.redis is None:
            try:
                self.redis = _create_client()
                await self.redis.ping()
                self._connected = True
                logger.info("Redis pub/sub publisher connected")
            except (redis.ConnectionError, redis.TimeoutError) as e:
                logger.warning(f"Redis pub/sub connection failed: {e}")
                self._connected = False
                self.redis = None

    async def disconnect(self) -> None:
        """Close Redis connection"""
        if self.redis:
            await self.redis.close()
            self._connected = False
            logger.info("Redis pub/sub publisher disconnected")

    def is_available(self) -> bool:
        """Check if Redis is connected"""
        return self._connected and self.redis is not None

    async def publish(self, event: RealtimeEvent) -> bool:
        """
        Publish an event to the user's channel

        Returns:
            True if published successfully
        """
        if not self.is_available() or self.redis is None:
            logger.debug("Redis not available, skipping publish")
            return False

        try:
            channel = _get_channel(event.user_id)
            await self.redis.publish(channel, json.dumps(event.to_dict()))
            logger.debug(f"Published {event.event} to {channel}")
            return True
        except Exception as e:
            logger.error(f"Failed to publish real-time event: {e}")
            return False


class RealtimeSubscriber:
    """Subscribes one websocket connection to its user's channel"""

    def __init__(self, redis_client: redis.Redis | None = None) -> None:
        self.redis = redis_client
        self._connected = False
        self._pubsub: redis.client.PubSub | None = None

    async def connect(self) -> None:
        """Establish Redis connection"""
        if self.redis is None:
            try:
                self.redis = _create_client()
                await self.redis.ping()
                self._connected = True
                logger.info("Redis pub/sub subscriber connected")
            except (redis.ConnectionError, redis.TimeoutError) as e:
                logger.warning(f"Redis pub/sub connection failed: {e}")
                self._connected = False
                self.redis = None

    async def disconnect(self) -> None:
        """Close Redis connection and pubsub"""
        if self._pubsub:
            await self._pubsub.close()
            self._pubsub = None
        if self.redis:
            await self.redis.close()
            self._connected = False
            logger.info("Redis pub/sub subscriber disconnected")

    def is_available(self) -> bool:
        """Check if Redis is connected"""
        return self._connected and self.redis is not None

    async def subscribe(self, user_id: str) -> AsyncIterator[RealtimeEvent]:
        """
        Subscribe to real-time events for a user

        Yields:
            RealtimeEvent objects as they arrive; malformed messages are logged and skipped
        """
        if not self.is_available() or self.redis is None:
            logger.warning("Redis not available for subscription")
            return

        channel = _get_channel(user_id)
        self._pubsub = self.redis.pubsub()

        try:
            await self._pubsub.subscribe(channel)
            logger.info(f"Subscribed to {channel}")

            async for message in self._pubsub.listen():
                if message["type"] == "message":
                    try:
                        yield RealtimeEvent.from_dict(json.loads(message["data"]))
                    except (json.JSONDecodeError, KeyError, TypeError) as e:
                        logger.error(f"Failed to parse real-time message: {e}")
                        continue

        except Exception as e:
            logger.error(f"Subscription error: {e}")
        finally:
            if self._pubsub:
                await self._pubsub.unsubscribe(channel)
                logger.info(f"Unsubscribed from {channel}")


# Global publisher instance (initialized on app startup)
_publisher: RealtimePublisher | None = None


def get_realtime_publisher() -> RealtimePublisher | None:
    """Get the global real-time publisher"""
    return _publisher


def set_realtime_publisher(publisher: RealtimePublisher | None) -> None:
    """Set the global real-time publisher"""
    global _publisher
    _publisher = publisher
