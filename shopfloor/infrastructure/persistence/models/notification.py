from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from shopfloor.infrastructure.persistence.database import Base
from shopfloor.infrastructure.persistence.models.mixins import CreatedAtMixin, CuidMixin
from shopfloor.shared.enums import NotificationType


class Notification(CuidMixin, CreatedAtMixin, Base):
    """
    Notification owned by a single user.

    Lifecycle:
        - created by an action elsewhere (chat message, long work session) or by an admin
        - optionally scheduled: scheduled_at in the future and sent_at unset
        - marked read / archived by the owner
        - physically deleted only while still scheduled and unsent
    """

    __tablename__ = "notification"

    user_id: Mapped[str] = mapped_column(
        String, ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_by_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("user.id", ondelete="SET NULL"), nullable=True
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    link: Mapped[str | None] = mapped_column(String, nullable=True)
    type: Mapped[str] = mapped_column(
        String, nullable=False, default=NotificationType.SYSTEM.value
    )
    # "metadata" is reserved on declarative classes
    meta: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSON, nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    scheduled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
