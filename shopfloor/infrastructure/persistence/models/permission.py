from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from shopfloor.infrastructure.persistence.database import Base
from shopfloor.infrastructure.persistence.models.mixins import CuidMixin, TimestampMixin
from shopfloor.shared.utils import utc_now


class Permission(CuidMixin, TimestampMixin, Base):
    """
    Global permission catalog entry.

    A permission is a (module, action) pair such as ('production', 'read').
    The ('*', '*') entry is the wildcard grant.
    """

    __tablename__ = "permission"

    module: Mapped[str] = mapped_column(String, nullable=False, index=True)
    action: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (UniqueConstraint("module", "action", name="uq_permission_module_action"),)

    @property
    def key(self) -> str:
        return f"{self.module}.{self.action}"


class RolePermission(CuidMixin, Base):
    """Grant of a permission to a role at a level (1 = basic, 2 = manage, 3 = full)"""

    __tablename__ = "role_permission"

    role_id: Mapped[str] = mapped_column(
        String, ForeignKey("role.id", ondelete="CASCADE"), nullable=False, index=True
    )
    permission_id: Mapped[str] = mapped_column(
        String, ForeignKey("permission.id", ondelete="CASCADE"), nullable=False
    )
    value: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __table_args__ = (
        UniqueConstraint("role_id", "permission_id", name="uq_role_permission"),
        CheckConstraint("value BETWEEN 1 AND 3", name="ck_role_permission_value"),
    )


class UserRole(CuidMixin, Base):
    """Assignment of a role to a user"""

    __tablename__ = "user_role"

    user_id: Mapped[str] = mapped_column(
        String, ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role_id: Mapped[str] = mapped_column(
        String, ForeignKey("role.id", ondelete="CASCADE"), nullable=False, index=True
    )
    assigned_by: Mapped[str | None] = mapped_column(
        String, ForeignKey("user.id", ondelete="SET NULL"), nullable=True
    )
    assigned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    __table_args__ = (UniqueConstraint("user_id", "role_id", name="uq_user_role"),)
