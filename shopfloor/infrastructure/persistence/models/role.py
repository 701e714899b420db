from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from shopfloor.infrastructure.persistence.database import Base
from shopfloor.infrastructure.persistence.models.mixins import CuidMixin, TimestampMixin


class Role(CuidMixin, TimestampMixin, Base):
    """
    Named bundle of permission grants (e.g., 'Admin', 'Manager', 'Warehouseman').

    A role that is assigned to any user cannot be deleted.
    """

    __tablename__ = "role"

    name: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
