"""
Periodic dispatch of scheduled notifications.

An APScheduler AsyncIOScheduler runs on the application's event loop and,
once per interval, stamps due notifications as sent and pushes them to their
owners.
"""

from __future__ import annotations

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shopfloor.application.interfaces import BufferedNotifier, IRealtimeNotifier
from shopfloor.application.services.notification_service import NotificationService
from shopfloor.shared.telemetry.logging import get_logger

logger = get_logger(__name__)

DISPATCH_JOB_ID = "dispatch_scheduled_notifications"


class NotificationScheduler:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        notifier: IRealtimeNotifier,
        interval_seconds: int = 60,
    ) -> None:
        self.session_factory = session_factory
        self.notifier = notifier
        self.interval_seconds = interval_seconds
        self.scheduler = AsyncIOScheduler(timezone="UTC")

    def start(self) -> None:
        self.scheduler.add_job(
            func=self.dispatch_due,
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            id=DISPATCH_JOB_ID,
            name="Dispatch due scheduled notifications",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        logger.info(
            "Scheduler started - scheduled notifications checked every %ss",
            self.interval_seconds,
        )

    async def dispatch_due(self) -> int:
        """Run one dispatch pass; returns the number of notifications sent"""
        try:
            buffered = BufferedNotifier(self.notifier)
            async with self.session_factory() as session:
                async with session.begin():
                    sent = await NotificationService(session, buffered).dispatch_due()
            await buffered.flush()
            return len(sent)
        except Exception as e:
            logger.error("Scheduled notification dispatch failed: %s", str(e))
            return 0

    def shutdown(self) -> None:
        """Shutdown the scheduler gracefully"""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler shut down")


_scheduler: NotificationScheduler | None = None


def get_scheduler() -> NotificationScheduler | None:
    return _scheduler


def set_scheduler(scheduler: NotificationScheduler | None) -> None:
    global _scheduler
    _scheduler = scheduler
