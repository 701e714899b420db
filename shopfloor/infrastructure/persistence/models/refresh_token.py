from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from shopfloor.infrastructure.persistence.database import Base
from shopfloor.infrastructure.persistence.models.mixins import CreatedAtMixin, CuidMixin


class RefreshToken(CuidMixin, CreatedAtMixin, Base):
    """
    Issued refresh token. One-time use: refreshing revokes the presented
    token and issues a new pair, logout revokes it.
    """

    __tablename__ = "refresh_token"

    token: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    user_id: Mapped[str] = mapped_column(
        String, ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_revoked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
