"""
Time tracking: work sessions, breaks and the shared settings row.

Durations are whole seconds. A session's total_duration is its wall time
minus the completed breaks; ending a session closes its active break first.
Every mutation is written to the audit log under the timeTracking module.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from shopfloor.application.interfaces import IRealtimeNotifier, NullNotifier
from shopfloor.application.services.audit_service import AuditService
from shopfloor.application.services.authorization_service import AuthorizationService
from shopfloor.application.services.notification_service import NotificationService
from shopfloor.domain.authorization import PermissionLevel
from shopfloor.domain.exceptions import (BusinessRuleException, PermissionDeniedError,
                                         ResourceNotFoundException, ValidationException)
from shopfloor.domain.time_tracking import elapsed_seconds, exceeds, session_work_seconds
from shopfloor.infrastructure.cache.redis_cache import CacheService
from shopfloor.infrastructure.config.settings import get_settings
from shopfloor.infrastructure.persistence.models.time_tracking import (Break,
                                                                       TimeTrackingSettings,
                                                                       WorkSession)
from shopfloor.infrastructure.persistence.repositories.time_tracking_repo import (
    BreakRepository, TimeTrackingSettingsRepository, WorkSessionRepository)
from shopfloor.infrastructure.persistence.repositories.user_repo import UserRepository
from shopfloor.shared.enums import AuditAction, NotificationType
from shopfloor.shared.telemetry.logging import get_logger
from shopfloor.shared.utils import utc_now

logger = get_logger(__name__)

MODULE = "timeTracking"


@dataclass
class SessionStats:
    total_work_duration: int
    total_break_duration: int
    total_sessions: int


@dataclass
class SessionView:
    session: WorkSession
    breaks: list[Break]


class TimeTrackingService:
    def __init__(
        self,
        db: AsyncSession,
        notifier: IRealtimeNotifier | None = None,
        cache_service: CacheService | None = None,
    ) -> None:
        self.db = db
        self.sessions = WorkSessionRepository(db)
        self.breaks = BreakRepository(db)
        self.settings_repo = TimeTrackingSettingsRepository(db)
        self.users = UserRepository(db, enable_audit=False)
        self.audit = AuditService(db)
        self.authz = AuthorizationService(db, cache_service)
        self.notifications = NotificationService(db, notifier or NullNotifier())

    async def _audit(
        self, action: AuditAction, target_id: str, user_id: str, meta: dict[str, Any]
    ) -> None:
        await self.audit.emit(
            module=MODULE, action=action, target_id=target_id, user_id=user_id, meta=meta
        )

    async def _require_active(self, user_id: str) -> WorkSession:
        session = await self.sessions.get_active(user_id)
        if not session:
            raise BusinessRuleException("No active work session found")
        return session

    async def _close_break(self, item: Break, now: datetime) -> Break:
        item.end_time = now
        item.duration = elapsed_seconds(item.start_time, now)
        return await self.breaks.update(item)

    async def start_session(self, user_id: str) -> WorkSession:
        if await self.sessions.get_active(user_id):
            raise BusinessRuleException("You already have an active work session")

        now = utc_now()
        session = await self.sessions.create(WorkSession(user_id=user_id, start_time=now))
        await self._audit(
            AuditAction.SESSION_STARTED, session.id, user_id, {"start_time": now.isoformat()}
        )
        logger.info("User %s started work session %s", user_id, session.id)
        return session

    async def end_session(self, user_id: str, notes: str | None = None) -> SessionView:
        session = await self._require_active(user_id)
        now = utc_now()

        active_break = await self.breaks.get_active(session.id)
        if active_break:
            await self._close_break(active_break, now)

        break_seconds = await self.breaks.completed_seconds(session.id)
        session.end_time = now
        session.total_duration = session_work_seconds(session.start_time, now, break_seconds)
        if notes:
            session.notes = notes
        session = await self.sessions.update(session)

        await self._audit(
            AuditAction.SESSION_ENDED,
            session.id,
            user_id,
            {
                "duration": session.total_duration,
                "total_break_duration": break_seconds,
                "break_auto_closed": active_break is not None,
                "notes_updated": bool(notes),
            },
        )
        logger.info(
            "User %s ended work session %s after %ss", user_id, session.id, session.total_duration
        )

        threshold = timedelta(hours=get_settings().long_session_threshold_hours)
        if exceeds(session.start_time, now, threshold):
            await self._notify_long_session(session)

        breaks = await self.breaks.list_for_sessions([session.id])
        return SessionView(session=session, breaks=breaks[session.id])

    async def _notify_long_session(self, session: WorkSession) -> None:
        """Tell everyone who can view all sessions that a session ran past the threshold"""
        user = await self.users.get_by_id(session.user_id)
        name = user.full_name if user else session.user_id
        hours = elapsed_seconds(session.start_time, session.end_time) / 3600
        recipients = await self.authz.users_with_permission(MODULE, "viewAll")
        for recipient_id in recipients:
            await self.notifications.create(
                recipient_id,
                f"Work session of {name} lasted {hours:.1f} hours",
                link="/time-tracking",
                type=NotificationType.SYSTEM,
                metadata={"session_id": session.id, "user_id": session.user_id},
            )
        logger.warning(
            "Work session %s exceeded %sh, notified %d users",
            session.id,
            get_settings().long_session_threshold_hours,
            len(recipients),
        )

    async def start_break(self, user_id: str) -> Break:
        settings = await self.settings_repo.get_or_create()
        if not settings.enable_break_button:
            raise BusinessRuleException("Breaks are disabled")

        session = await self._require_active(user_id)
        if await self.breaks.get_active(session.id):
            raise BusinessRuleException("You already have an active break")

        now = utc_now()
        item = await self.breaks.create(Break(session_id=session.id, start_time=now))
        await self._audit(
            AuditAction.BREAK_STARTED, session.id, user_id, {"break_id": item.id}
        )
        return item

    async def end_break(self, user_id: str) -> Break:
        session = await self._require_active(user_id)
        item = await self.breaks.get_active(session.id)
        if not item:
            raise BusinessRuleException("No active break found")

        item = await self._close_break(item, utc_now())
        await self._audit(
            AuditAction.BREAK_ENDED,
            session.id,
            user_id,
            {"break_id": item.id, "duration": item.duration},
        )
        return item

    async def current_session(self, user_id: str) -> SessionView | None:
        session = await self.sessions.get_active(user_id)
        if not session:
            return None
        breaks = await self.breaks.list_for_sessions([session.id])
        return SessionView(session=session, breaks=breaks[session.id])

    async def list_sessions(
        self,
        actor_id: str,
        user_id: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        skip: int = 0,
        limit: int = 20,
    ) -> tuple[list[SessionView], SessionStats, int]:
        """
        Sessions of a user, newest first, with totals over the whole filter.

        Raises:
            PermissionDeniedError: listing another user's sessions without timeTracking.viewAll
        """
        target_id = user_id or actor_id
        if target_id != actor_id:
            await self._require(actor_id, "viewAll")
        if start and end and start > end:
            raise ValidationException("'from' must not be after 'to'", field="from")

        sessions, total = await self.sessions.list_for_user(target_id, start, end, skip, limit)
        breaks = await self.breaks.list_for_sessions([s.id for s in sessions])
        work, break_total, count = await self.sessions.totals_for_user(target_id, start, end)
        views = [SessionView(session=s, breaks=breaks[s.id]) for s in sessions]
        return views, SessionStats(work, break_total, count), total

    async def active_sessions(self) -> list[WorkSession]:
        return await self.sessions.list_active()

    async def update_notes(self, actor_id: str, session_id: str, notes: str | None) -> WorkSession:
        session = await self.sessions.get_by_id(session_id)
        if not session:
            raise ResourceNotFoundException("Work session", session_id)
        if session.user_id != actor_id:
            await self._require(actor_id, "update", PermissionLevel.MANAGE)

        session.notes = notes
        session = await self.sessions.update(session)
        await self._audit(AuditAction.NOTES_UPDATED, session.id, actor_id, {"notes": notes})
        return session

    async def get_settings(self) -> TimeTrackingSettings:
        return await self.settings_repo.get_or_create()

    async def update_settings(self, actor_id: str, **fields) -> TimeTrackingSettings:
        settings = await self.settings_repo.get_or_create()
        changes: dict[str, Any] = {}
        for name in (
            "enable_break_button",
            "min_session_duration",
            "max_session_duration",
            "max_break_duration",
        ):
            value = fields.get(name)
            if value is not None:
                setattr(settings, name, value)
                changes[name] = value

        if settings.min_session_duration > settings.max_session_duration:
            raise ValidationException(
                "min_session_duration cannot exceed max_session_duration",
                field="min_session_duration",
            )

        settings = await self.settings_repo.update(settings)
        await self._audit(AuditAction.SETTINGS_UPDATED, settings.id, actor_id, changes)
        return settings

    async def _require(
        self, actor_id: str, action: str, min_level: int = PermissionLevel.BASIC
    ) -> None:
        decision = await self.authz.check(actor_id, MODULE, action, min_level)
        if not decision:
            raise PermissionDeniedError(
                "Access forbidden - insufficient permissions",
                module=MODULE,
                action=action,
                required_level=min_level,
                actual_level=getattr(decision, "actual_level", 0),
            )
