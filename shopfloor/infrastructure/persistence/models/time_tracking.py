from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from shopfloor.infrastructure.persistence.database import Base
from shopfloor.infrastructure.persistence.models.mixins import CuidMixin, TimestampMixin


class WorkSession(CuidMixin, TimestampMixin, Base):
    """
    A user's work session. end_time is null while the session is active.

    At most one active session per user, backed by a partial unique index.
    total_duration is in seconds: wall time minus completed breaks.
    """

    __tablename__ = "work_session"

    user_id: Mapped[str] = mapped_column(
        String, ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True
    )
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    total_duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index(
            "uq_work_session_active_user",
            "user_id",
            unique=True,
            postgresql_where=text("end_time IS NULL"),
            sqlite_where=text("end_time IS NULL"),
        ),
    )

    @property
    def is_active(self) -> bool:
        return self.end_time is None


class Break(CuidMixin, TimestampMixin, Base):
    """A break inside a work session; duration is in seconds once ended"""

    __tablename__ = "work_break"

    session_id: Mapped[str] = mapped_column(
        String, ForeignKey("work_session.id", ondelete="CASCADE"), nullable=False, index=True
    )
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)

    __table_args__ = (
        Index(
            "uq_work_break_active_session",
            "session_id",
            unique=True,
            postgresql_where=text("end_time IS NULL"),
            sqlite_where=text("end_time IS NULL"),
        ),
    )


class TimeTrackingSettings(CuidMixin, TimestampMixin, Base):
    """Single-row settings table; durations are in minutes"""

    __tablename__ = "time_tracking_settings"

    enable_break_button: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    min_session_duration: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_session_duration: Mapped[int] = mapped_column(Integer, nullable=False, default=720)
    max_break_duration: Mapped[int] = mapped_column(Integer, nullable=False, default=60)
