from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from shopfloor.infrastructure.persistence.models.time_tracking import (Break,
                                                                       TimeTrackingSettings,
                                                                       WorkSession)
from shopfloor.infrastructure.persistence.repositories.base import BaseRepository


class WorkSessionRepository(BaseRepository[WorkSession]):
    def __init__(self, db: AsyncSession):
        super().__init__(db, WorkSession)

    async def get_active(self, user_id: str) -> WorkSession | None:
        result = await self.db.execute(
            select(WorkSession).where(
                WorkSession.user_id == user_id, WorkSession.end_time.is_(None)
            )
        )
        return result.scalar_one_or_none()

    async def list_active(self) -> list[WorkSession]:
        result = await self.db.execute(
            select(WorkSession)
            .where(WorkSession.end_time.is_(None))
            .order_by(WorkSession.start_time.asc())
        )
        return list(result.scalars().all())

    def _user_query(
        self, user_id: str, start: datetime | None = None, end: datetime | None = None
    ):
        query = select(WorkSession).where(WorkSession.user_id == user_id)
        if start:
            query = query.where(WorkSession.start_time >= start)
        if end:
            query = query.where(WorkSession.start_time <= end)
        return query

    async def list_for_user(
        self,
        user_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
        skip: int = 0,
        limit: int = 20,
    ) -> tuple[list[WorkSession], int]:
        query = self._user_query(user_id, start, end).order_by(WorkSession.start_time.desc())
        return await self.paginate(query, skip, limit)

    async def totals_for_user(
        self, user_id: str, start: datetime | None = None, end: datetime | None = None
    ) -> tuple[int, int, int]:
        """(total_work_seconds, total_break_seconds, session_count) over the filter"""
        sessions = self._user_query(user_id, start, end).subquery()
        work, count = (
            await self.db.execute(
                select(func.coalesce(func.sum(sessions.c.total_duration), 0), func.count())
            )
        ).one()
        breaks = await self.db.scalar(
            select(func.coalesce(func.sum(Break.duration), 0)).where(
                Break.session_id.in_(select(sessions.c.id))
            )
        )
        return int(work), int(breaks or 0), int(count)


class BreakRepository(BaseRepository[Break]):
    def __init__(self, db: AsyncSession):
        super().__init__(db, Break)

    async def get_active(self, session_id: str) -> Break | None:
        result = await self.db.execute(
            select(Break).where(Break.session_id == session_id, Break.end_time.is_(None))
        )
        return result.scalar_one_or_none()

    async def list_for_sessions(self, session_ids: list[str]) -> dict[str, list[Break]]:
        breaks: dict[str, list[Break]] = {session_id: [] for session_id in session_ids}
        if not session_ids:
            return breaks
        result = await self.db.execute(
            select(Break).where(Break.session_id.in_(session_ids)).order_by(Break.start_time)
        )
        for item in result.scalars().all():
            breaks[item.session_id].append(item)
        return breaks

    async def completed_seconds(self, session_id: str) -> int:
        total = await self.db.scalar(
            select(func.coalesce(func.sum(Break.duration), 0)).where(
                Break.session_id == session_id, Break.end_time.is_not(None)
            )
        )
        return int(total or 0)


class TimeTrackingSettingsRepository(BaseRepository[TimeTrackingSettings]):
    def __init__(self, db: AsyncSession):
        super().__init__(db, TimeTrackingSettings)

    async def get_or_create(self) -> TimeTrackingSettings:
        result = await self.db.execute(select(TimeTrackingSettings).limit(1))
        settings = result.scalar_one_or_none()
        if settings is None:
            settings = await self.create(TimeTrackingSettings())
        return settings
