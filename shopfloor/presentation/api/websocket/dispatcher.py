"""Delivery of real-time events to a user's sockets"""

from __future__ import annotations

import logging
from typing import Any

from shopfloor.infrastructure.messaging.redis_pubsub import (RealtimeEvent, RealtimePublisher,
                                                             get_realtime_publisher)
from shopfloor.presentation.api.websocket.manager import (ConnectionManager, frame,
                                                          get_connection_manager)

logger = logging.getLogger(__name__)


class RealtimeDispatcher:
    """
    IRealtimeNotifier backed by the WebSocket layer.

    With Redis available the event is published on the user's channel and
    every worker forwards it to the sockets it holds. Without Redis, or if
    publishing fails, it goes straight to this process's sockets.
    """

    def __init__(
        self,
        manager: ConnectionManager | None = None,
        publisher: RealtimePublisher | None = None,
    ) -> None:
        self.manager = manager or get_connection_manager()
        self.publisher = publisher

    async def emit(self, user_id: str, event: str, data: Any = None) -> None:
        publisher = self.publisher or get_realtime_publisher()
        if publisher and publisher.is_available():
            if await publisher.publish(RealtimeEvent(user_id=user_id, event=event, data=data)):
                return
            logger.warning(f"Publishing {event} failed, delivering locally")
        await self.manager.send_to_user(user_id, frame(event, data))


def get_realtime_dispatcher() -> RealtimeDispatcher:
    return RealtimeDispatcher()
