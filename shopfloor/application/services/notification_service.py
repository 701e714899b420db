"""
Notification service.

The REST layer is the source of truth for notifications; every delivered
notification is also pushed on the owner's `notification:<userId>` event so
that open clients refresh their list.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from shopfloor.application.interfaces import IRealtimeNotifier, NullNotifier
from shopfloor.domain.exceptions import (BusinessRuleException, ResourceNotFoundException,
                                         ValidationException)
from shopfloor.infrastructure.persistence.models.notification import Notification
from shopfloor.infrastructure.persistence.repositories.notification_repo import \
    NotificationRepository
from shopfloor.infrastructure.persistence.repositories.user_repo import UserRepository
from shopfloor.shared.enums import NotificationType, notification_event
from shopfloor.shared.telemetry.logging import get_logger
from shopfloor.shared.utils import ensure_utc, utc_now

logger = get_logger(__name__)


def notification_payload(notification: Notification) -> dict[str, Any]:
    """JSON-safe representation pushed over the real-time channel"""

    def _iso(value: datetime | None) -> str | None:
        return ensure_utc(value).isoformat() if value else None

    return {
        "id": notification.id,
        "user_id": notification.user_id,
        "created_by_id": notification.created_by_id,
        "content": notification.content,
        "link": notification.link,
        "type": notification.type,
        "metadata": notification.meta,
        "is_read": notification.is_read,
        "archived": notification.archived,
        "created_at": _iso(notification.created_at),
        "scheduled_at": _iso(notification.scheduled_at),
        "sent_at": _iso(notification.sent_at),
    }


class NotificationService:
    def __init__(self, db: AsyncSession, notifier: IRealtimeNotifier | None = None) -> None:
        self.db = db
        self.repo = NotificationRepository(db)
        self.users = UserRepository(db, enable_audit=False)
        self.notifier = notifier or NullNotifier()

    async def push(self, notification: Notification) -> None:
        await self.notifier.emit(
            notification.user_id,
            notification_event(notification.user_id),
            notification_payload(notification),
        )

    async def _get_owned(self, notification_id: str, user_id: str) -> Notification:
        # Someone else's notification is reported as missing
        notification = await self.repo.get_for_user(notification_id, user_id)
        if not notification:
            raise ResourceNotFoundException("Notification", notification_id)
        return notification

    async def _require_recipient(self, user_id: str) -> None:
        user = await self.users.get_by_id(user_id)
        if not user or not user.is_active:
            raise ValidationException(f"Unknown or inactive user: {user_id}", field="user_id")

    async def create(
        self,
        user_id: str,
        content: str,
        link: str | None = None,
        type: NotificationType = NotificationType.SYSTEM,
        created_by_id: str | None = None,
        metadata: dict[str, Any] | None = None,
        *,
        push: bool = True,
    ) -> Notification:
        """Persist an immediate notification and push it to the owner"""
        notification = await self.repo.create(
            Notification(
                user_id=user_id,
                content=content,
                link=link,
                type=NotificationType(type).value,
                created_by_id=created_by_id,
                meta=metadata,
                created_at=utc_now(),
            )
        )
        if push:
            await self.push(notification)
        return notification

    async def send(
        self,
        user_id: str,
        content: str,
        link: str | None = "/dashboard",
        type: NotificationType = NotificationType.SYSTEM,
        created_by_id: str | None = None,
    ) -> Notification:
        """Manual send by an administrator"""
        await self._require_recipient(user_id)
        notification = await self.create(
            user_id, content, link=link, type=type, created_by_id=created_by_id
        )
        logger.info("Notification %s sent to user %s", notification.id, user_id)
        return notification

    async def list_active(
        self, user_id: str, skip: int = 0, limit: int = 50
    ) -> tuple[list[Notification], int]:
        return await self.repo.list_active(user_id, skip, limit)

    async def history(
        self, user_id: str, skip: int = 0, limit: int = 50
    ) -> tuple[list[Notification], int]:
        return await self.repo.list_history(user_id, skip, limit)

    async def mark_read(self, notification_id: str, user_id: str) -> Notification:
        notification = await self._get_owned(notification_id, user_id)
        notification.is_read = True
        return await self.repo.update(notification)

    async def archive(self, notification_id: str, user_id: str) -> Notification:
        notification = await self._get_owned(notification_id, user_id)
        notification.archived = True
        return await self.repo.update(notification)

    async def read_all(self, user_id: str) -> int:
        return await self.repo.mark_all_read(user_id)

    async def archive_all(self, user_id: str) -> int:
        return await self.repo.archive_all(user_id)

    async def schedule(
        self,
        user_id: str,
        content: str,
        scheduled_at: datetime,
        link: str | None = None,
        type: NotificationType = NotificationType.SYSTEM,
        created_by_id: str | None = None,
    ) -> Notification:
        """
        Store a notification for later delivery.

        Raises:
            ValidationException: scheduled_at is not in the future or the user is unknown
        """
        scheduled_at = ensure_utc(scheduled_at)
        if scheduled_at <= utc_now():
            raise ValidationException("scheduled_at must be in the future", field="scheduled_at")
        await self._require_recipient(user_id)

        notification = await self.repo.create(
            Notification(
                user_id=user_id,
                content=content,
                link=link,
                type=NotificationType(type).value,
                created_by_id=created_by_id,
                scheduled_at=scheduled_at,
                created_at=utc_now(),
            )
        )
        logger.info(
            "Notification %s scheduled for user %s at %s",
            notification.id,
            user_id,
            scheduled_at.isoformat(),
        )
        return notification

    async def list_scheduled(
        self, skip: int = 0, limit: int = 50
    ) -> tuple[list[Notification], int]:
        return await self.repo.list_scheduled(skip, limit)

    async def delete_scheduled(self, notification_id: str) -> None:
        notification = await self.repo.get_by_id(notification_id)
        if not notification or notification.scheduled_at is None:
            raise ResourceNotFoundException("Scheduled notification", notification_id)
        if notification.sent_at is not None:
            raise BusinessRuleException(
                "Notification has already been sent", {"notification_id": notification_id}
            )
        await self.repo.delete(notification)

    async def dispatch_due(self, now: datetime | None = None) -> list[Notification]:
        """Stamp sent_at on due scheduled notifications and push them"""
        now = now or utc_now()
        due = await self.repo.list_due(now)
        for notification in due:
            notification.sent_at = now
            # Delivered notifications sort by delivery time in the owner's list
            notification.created_at = now
        if due:
            await self.db.flush()
            for notification in due:
                await self.push(notification)
            logger.info("Dispatched %d scheduled notifications", len(due))
        return due
