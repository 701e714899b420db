from sqlalchemy import Boolean, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from shopfloor.infrastructure.persistence.database import Base
from shopfloor.infrastructure.persistence.models.mixins import CreatedAtMixin, CuidMixin


class ChatMessage(CuidMixin, CreatedAtMixin, Base):
    """
    Direct message between two users.

    Never hard-removed: deleting replaces the content with
    "Message deleted" and sets is_deleted.
    """

    __tablename__ = "chat_message"

    sender_id: Mapped[str] = mapped_column(
        String, ForeignKey("user.id", ondelete="CASCADE"), nullable=False
    )
    receiver_id: Mapped[str] = mapped_column(
        String, ForeignKey("user.id", ondelete="CASCADE"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    attachment_url: Mapped[str | None] = mapped_column(String, nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("ix_chat_message_pair", "sender_id", "receiver_id", "created_at"),
        Index("ix_chat_message_receiver_read", "receiver_id", "is_read"),
    )
