from sqlalchemy import and_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from shopfloor.infrastructure.persistence.models.chat_message import ChatMessage
from shopfloor.infrastructure.persistence.repositories.base import BaseRepository


class ChatMessageRepository(BaseRepository[ChatMessage]):
    def __init__(self, db: AsyncSession):
        super().__init__(db, ChatMessage)

    @staticmethod
    def _involving(user_id: str):
        return or_(ChatMessage.sender_id == user_id, ChatMessage.receiver_id == user_id)

    @staticmethod
    def _between(user_id: str, other_id: str):
        return or_(
            and_(ChatMessage.sender_id == user_id, ChatMessage.receiver_id == other_id),
            and_(ChatMessage.sender_id == other_id, ChatMessage.receiver_id == user_id),
        )

    async def list_for_user(self, user_id: str, limit: int = 1000) -> list[ChatMessage]:
        """Every message the user sent or received, newest first"""
        result = await self.db.execute(
            select(ChatMessage)
            .where(self._involving(user_id))
            .order_by(ChatMessage.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def conversation(self, user_id: str, other_id: str) -> list[ChatMessage]:
        """Messages between two users, oldest first"""
        result = await self.db.execute(
            select(ChatMessage)
            .where(self._between(user_id, other_id))
            .order_by(ChatMessage.created_at.asc())
        )
        return list(result.scalars().all())

    async def mark_read(self, sender_id: str, receiver_id: str) -> int:
        """Mark unread messages from sender to receiver as read"""
        result = await self.db.execute(
            update(ChatMessage)
            .where(
                ChatMessage.sender_id == sender_id,
                ChatMessage.receiver_id == receiver_id,
                ChatMessage.is_read.is_(False),
            )
            .values(is_read=True)
        )
        return result.rowcount or 0
