"""Client-side notification list"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from shopfloor.client.api import ApiClient
from shopfloor.client.channel import RealtimeChannel
from shopfloor.client.scope import ViewScope
from shopfloor.shared.enums import notification_event

logger = logging.getLogger(__name__)


class NotificationFeed:
    """
    Cached first page of the user's notifications.

    The REST API is the source of truth: a ``notification:<userId>`` push only
    marks the cache stale, and the next ``ensure_fresh()`` refetches it.
    """

    def __init__(self, api: ApiClient, user_id: str, limit: int = 20) -> None:
        self.api = api
        self.user_id = user_id
        self.limit = limit
        self.items: list[dict[str, Any]] = []
        self.total = 0
        self.stale = True
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def unread_count(self) -> int:
        return sum(1 for item in self.items if not item.get("is_read"))

    def invalidate(self, data: Any = None) -> None:
        self.stale = True

    def attach(self, channel: RealtimeChannel) -> None:
        self.detach()
        self._unsubscribe = channel.on(notification_event(self.user_id), self.invalidate)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _apply(self, page: dict[str, Any]) -> None:
        self.items = list(page.get("data", []))
        self.total = page.get("pagination", {}).get("total", len(self.items))
        self.stale = False

    async def refresh(self, scope: ViewScope | None = None) -> None:
        if scope is None:
            self._apply(await self.api.notifications(limit=self.limit))
        else:
            await scope.run(self.api.notifications(limit=self.limit), self._apply)

    async def ensure_fresh(self, scope: ViewScope | None = None) -> None:
        if self.stale:
            await self.refresh(scope)

    async def mark_read(self, notification_id: str) -> None:
        updated = await self.api.mark_notification_read(notification_id)
        self._replace(updated)

    async def archive(self, notification_id: str) -> None:
        await self.api.archive_notification(notification_id)
        self.items = [item for item in self.items if item.get("id") != notification_id]

    async def read_all(self) -> int:
        result = await self.api.read_all_notifications()
        for item in self.items:
            item["is_read"] = True
        return result["updated"]

    def _replace(self, updated: dict[str, Any]) -> None:
        for index, item in enumerate(self.items):
            if item.get("id") == updated.get("id"):
                self.items[index] = updated
                return
