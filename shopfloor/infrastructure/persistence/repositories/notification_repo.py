from datetime import datetime

from sqlalchemy import and_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from shopfloor.infrastructure.persistence.models.notification import Notification
from shopfloor.infrastructure.persistence.repositories.base import BaseRepository


class NotificationRepository(BaseRepository[Notification]):
    """
    Notifications visible to their owner are the ones already sent: either
    never scheduled or with sent_at stamped by the dispatcher.
    """

    def __init__(self, db: AsyncSession):
        super().__init__(db, Notification)

    @staticmethod
    def _delivered():
        return or_(Notification.scheduled_at.is_(None), Notification.sent_at.is_not(None))

    async def list_active(
        self, user_id: str, skip: int = 0, limit: int = 50
    ) -> tuple[list[Notification], int]:
        """Non-archived notifications, newest first"""
        query = (
            select(Notification)
            .where(
                Notification.user_id == user_id,
                Notification.archived.is_(False),
                self._delivered(),
            )
            .order_by(Notification.created_at.desc())
        )
        return await self.paginate(query, skip, limit)

    async def list_history(
        self, user_id: str, skip: int = 0, limit: int = 50
    ) -> tuple[list[Notification], int]:
        """Every delivered notification including archived ones, newest first"""
        query = (
            select(Notification)
            .where(Notification.user_id == user_id, self._delivered())
            .order_by(Notification.created_at.desc())
        )
        return await self.paginate(query, skip, limit)

    async def get_for_user(self, notification_id: str, user_id: str) -> Notification | None:
        result = await self.db.execute(
            select(Notification).where(
                Notification.id == notification_id, Notification.user_id == user_id
            )
        )
        return result.scalar_one_or_none()

    async def mark_all_read(self, user_id: str) -> int:
        result = await self.db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False), self._delivered())
            .values(is_read=True)
        )
        return result.rowcount or 0

    async def archive_all(self, user_id: str) -> int:
        result = await self.db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.archived.is_(False), self._delivered())
            .values(archived=True)
        )
        return result.rowcount or 0

    async def list_scheduled(self, skip: int = 0, limit: int = 50) -> tuple[list[Notification], int]:
        """Scheduled notifications that have not been sent yet, soonest first"""
        query = (
            select(Notification)
            .where(Notification.scheduled_at.is_not(None), Notification.sent_at.is_(None))
            .order_by(Notification.scheduled_at.asc())
        )
        return await self.paginate(query, skip, limit)

    async def list_due(self, now: datetime) -> list[Notification]:
        result = await self.db.execute(
            select(Notification)
            .where(
                and_(
                    Notification.scheduled_at.is_not(None),
                    Notification.scheduled_at <= now,
                    Notification.sent_at.is_(None),
                )
            )
            .order_by(Notification.scheduled_at.asc())
        )
        return list(result.scalars().all())
