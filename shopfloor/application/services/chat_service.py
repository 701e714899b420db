"""
Person-to-person chat.

Messages are persisted first and then pushed: `message:receive` to the
receiver, `message:read` to the sender of messages that were just read and
`message:deleted` to the receiver of a soft-deleted message. Each new message
also creates a CHAT notification for the receiver.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from shopfloor.application.interfaces import IRealtimeNotifier, NullNotifier
from shopfloor.application.services.notification_service import NotificationService
from shopfloor.domain.exceptions import (PermissionDeniedError, ResourceNotFoundException,
                                         ValidationException)
from shopfloor.infrastructure.persistence.models.chat_message import ChatMessage
from shopfloor.infrastructure.persistence.models.user import User
from shopfloor.infrastructure.persistence.repositories.chat_repo import ChatMessageRepository
from shopfloor.infrastructure.persistence.repositories.user_repo import UserRepository
from shopfloor.shared.enums import DELETED_MESSAGE_CONTENT, NotificationType, RealtimeEventName
from shopfloor.shared.telemetry.logging import get_logger
from shopfloor.shared.utils import ensure_utc, utc_now

logger = get_logger(__name__)


def message_payload(message: ChatMessage) -> dict[str, Any]:
    return {
        "id": message.id,
        "sender_id": message.sender_id,
        "receiver_id": message.receiver_id,
        "content": message.content,
        "attachment_url": message.attachment_url,
        "is_read": message.is_read,
        "is_deleted": message.is_deleted,
        "created_at": ensure_utc(message.created_at).isoformat(),
    }


@dataclass
class ConversationSummary:
    partner_id: str
    last_message: ChatMessage
    unread_count: int


def summarize_conversations(user_id: str, messages: list[ChatMessage]) -> list[ConversationSummary]:
    """
    One summary per partner, most recent first.

    Conversations whose last message arrived at the same instant list the
    ones with unread messages first.
    """
    summaries: dict[str, ConversationSummary] = {}
    for message in messages:
        partner_id = message.receiver_id if message.sender_id == user_id else message.sender_id
        summary = summaries.get(partner_id)
        if summary is None:
            summary = ConversationSummary(partner_id, message, 0)
            summaries[partner_id] = summary
        elif ensure_utc(message.created_at) > ensure_utc(summary.last_message.created_at):
            summary.last_message = message
        if message.receiver_id == user_id and not message.is_read and not message.is_deleted:
            summary.unread_count += 1

    return sorted(
        summaries.values(),
        key=lambda s: (-ensure_utc(s.last_message.created_at).timestamp(), s.unread_count == 0),
    )


class ChatService:
    def __init__(self, db: AsyncSession, notifier: IRealtimeNotifier | None = None) -> None:
        self.db = db
        self.messages = ChatMessageRepository(db)
        self.users = UserRepository(db, enable_audit=False)
        self.notifier = notifier or NullNotifier()
        self.notifications = NotificationService(db, self.notifier)

    async def contacts(self, user_id: str) -> list[User]:
        return await self.users.list_active_except(user_id)

    async def all_messages(self, user_id: str) -> list[ChatMessage]:
        return await self.messages.list_for_user(user_id)

    async def conversations(self, user_id: str) -> list[ConversationSummary]:
        return summarize_conversations(user_id, await self.messages.list_for_user(user_id))

    async def history(self, user_id: str, other_id: str) -> list[ChatMessage]:
        return await self.messages.conversation(user_id, other_id)

    async def send(
        self,
        sender_id: str,
        receiver_id: str,
        content: str,
        attachment_url: str | None = None,
    ) -> ChatMessage:
        """
        Persist a message, notify the receiver and push it to their sockets.

        Raises:
            ValidationException: empty content, self-addressed message or unknown receiver
        """
        content = (content or "").strip()
        if not content and not attachment_url:
            raise ValidationException("Message content cannot be empty", field="content")
        if sender_id == receiver_id:
            raise ValidationException("Cannot send a message to yourself", field="receiver_id")

        found = await self.users.get_by_ids([sender_id, receiver_id])
        sender, receiver = found.get(sender_id), found.get(receiver_id)
        if not receiver or not receiver.is_active:
            raise ValidationException(
                f"Unknown or inactive receiver: {receiver_id}", field="receiver_id"
            )

        message = await self.messages.create(
            ChatMessage(
                sender_id=sender_id,
                receiver_id=receiver_id,
                content=content,
                attachment_url=attachment_url,
                created_at=utc_now(),
            )
        )

        sender_name = sender.full_name if sender else "Unknown user"
        await self.notifications.create(
            receiver_id,
            f"New message from {sender_name}",
            link=f"/chat/{sender_id}",
            type=NotificationType.CHAT,
            created_by_id=sender_id,
            metadata={"message_id": message.id, "sender_id": sender_id},
        )
        await self.notifier.emit(
            receiver_id, RealtimeEventName.MESSAGE_RECEIVE.value, message_payload(message)
        )
        logger.debug("Message %s delivered from %s to %s", message.id, sender_id, receiver_id)
        return message

    async def mark_read(self, user_id: str, sender_id: str) -> int:
        """Mark every unread message from sender_id to user_id as read"""
        count = await self.messages.mark_read(sender_id=sender_id, receiver_id=user_id)
        if count:
            await self.notifier.emit(
                sender_id,
                RealtimeEventName.MESSAGE_READ.value,
                {"reader_id": user_id, "sender_id": sender_id, "count": count},
            )
        return count

    async def delete(self, user_id: str, message_id: str) -> ChatMessage:
        """
        Soft delete; only the sender may delete a message.

        Raises:
            ResourceNotFoundException: unknown message id
            PermissionDeniedError: caller is not the sender
        """
        message = await self.messages.get_by_id(message_id)
        if not message:
            raise ResourceNotFoundException("Message", message_id)
        if message.sender_id != user_id:
            raise PermissionDeniedError("Only the sender can delete a message")

        if not message.is_deleted:
            message.is_deleted = True
            message.content = DELETED_MESSAGE_CONTENT
            message.attachment_url = None
            message = await self.messages.update(message)

        await self.notifier.emit(
            message.receiver_id,
            RealtimeEventName.MESSAGE_DELETED.value,
            {"message_id": message.id, "deleted_content": DELETED_MESSAGE_CONTENT},
        )
        return message
