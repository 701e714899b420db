from typing import Any

from sqlalchemy import JSON, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from shopfloor.infrastructure.persistence.database import Base
from shopfloor.infrastructure.persistence.models.mixins import CreatedAtMixin, CuidMixin


class AuditLog(CuidMixin, CreatedAtMixin, Base):
    """Append-only record of a tracked mutation"""

    __tablename__ = "audit_log"

    user_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("user.id", ondelete="SET NULL"), nullable=True, index=True
    )
    action: Mapped[str] = mapped_column(String, nullable=False)
    module: Mapped[str] = mapped_column(String, nullable=False, index=True)
    target_id: Mapped[str | None] = mapped_column(String, nullable=True)
    meta: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSON, nullable=True)
