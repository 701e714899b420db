"""Client-side chat state: conversations keyed by partner"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from shopfloor.client.api import ApiClient
from shopfloor.client.channel import RealtimeChannel
from shopfloor.client.dedup import ProcessedIds
from shopfloor.client.scope import ViewScope
from shopfloor.shared.enums import DELETED_MESSAGE_CONTENT
from shopfloor.shared.enums import RealtimeEventName as Ev

logger = logging.getLogger(__name__)

Message = dict[str, Any]


def created_at(message: Message) -> datetime:
    value = datetime.fromisoformat(message["created_at"])
    return value if value.tzinfo else value.replace(tzinfo=UTC)


@dataclass
class ConversationView:
    partner_id: str
    last_message: Message
    unread_count: int


class ChatStore:
    """
    Messages of the signed-in user, one list per conversation partner.

    A message already held in a conversation is never appended again, and
    ids this store no longer holds are checked against the session's
    ProcessedIds, so a message fetched over REST and pushed over the socket
    is kept once. Lists are re-sorted by created_at (oldest first) after
    each insertion.
    """

    def __init__(
        self,
        user_id: str,
        dedup: ProcessedIds,
        api: ApiClient | None = None,
    ) -> None:
        self.user_id = user_id
        self.dedup = dedup
        self.api = api
        self.conversations: dict[str, list[Message]] = {}
        self._by_id: dict[str, Message] = {}
        self._unsubscribers: list[Callable[[], None]] = []

    def partner_of(self, message: Message) -> str:
        if message.get("sender_id") == self.user_id:
            return message["receiver_id"]
        return message["sender_id"]

    def ingest(self, message: Any) -> bool:
        """Apply one inbound message; returns False when it was dropped"""
        if not isinstance(message, dict) or not message.get("id"):
            logger.warning(f"Dropping chat message without id: {message!r}")
            return False
        try:
            partner_id = self.partner_of(message)
            created_at(message)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Dropping malformed chat message {message.get('id')}: {e}")
            return False

        message_id = message["id"]
        if message_id in self._by_id:
            self.dedup.mark_processed(message_id)
            return False
        if not self.dedup.accept(message_id):
            return False

        conversation = self.conversations.setdefault(partner_id, [])
        conversation.append(message)
        self._by_id[message_id] = message
        conversation.sort(key=created_at)
        return True

    def ingest_many(self, messages: list[Any]) -> int:
        return sum(1 for message in messages if self.ingest(message))

    def messages(self, partner_id: str) -> list[Message]:
        return list(self.conversations.get(partner_id, []))

    def unread_count(self, partner_id: str) -> int:
        return sum(
            1
            for message in self.conversations.get(partner_id, [])
            if message.get("receiver_id") == self.user_id and not message.get("is_read")
        )

    def conversation_list(self) -> list[ConversationView]:
        """Most recent conversation first; on equal timestamps unread ones first"""
        views = [
            ConversationView(partner_id, messages[-1], self.unread_count(partner_id))
            for partner_id, messages in self.conversations.items()
            if messages
        ]
        views.sort(
            key=lambda view: (created_at(view.last_message), view.unread_count > 0), reverse=True
        )
        return views

    def apply_deleted(self, data: Any) -> None:
        if not isinstance(data, dict) or not data.get("message_id"):
            logger.warning(f"Dropping malformed delete event: {data!r}")
            return
        message = self._by_id.get(data["message_id"])
        if message is not None:
            message["content"] = data.get("deleted_content") or DELETED_MESSAGE_CONTENT
            message["attachment_url"] = None
            message["is_deleted"] = True

    def apply_read(self, data: Any) -> None:
        """The partner read what the signed-in user sent them"""
        if not isinstance(data, dict) or not data.get("reader_id"):
            logger.warning(f"Dropping malformed read receipt: {data!r}")
            return
        for message in self.conversations.get(data["reader_id"], []):
            if message.get("sender_id") == self.user_id:
                message["is_read"] = True

    def attach(self, channel: RealtimeChannel) -> None:
        self.detach()
        self._unsubscribers = [
            channel.on(Ev.MESSAGE_RECEIVE.value, self.ingest),
            channel.on(Ev.MESSAGE_DELETED.value, self.apply_deleted),
            channel.on(Ev.MESSAGE_READ.value, self.apply_read),
        ]

    def detach(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    def clear(self) -> None:
        self.conversations.clear()
        self._by_id.clear()

    async def load_conversation(self, partner_id: str, scope: ViewScope | None = None) -> int:
        """Fetch the history with partner_id; results after the scope closed are dropped"""
        if self.api is None:
            raise RuntimeError("ChatStore has no API client")
        if scope is None:
            return self.ingest_many(await self.api.chat_history(partner_id))
        applied: list[int] = []
        await scope.run(
            self.api.chat_history(partner_id),
            lambda messages: applied.append(self.ingest_many(messages)),
        )
        return sum(applied)

    async def mark_read(self, partner_id: str) -> int:
        if self.api is None:
            raise RuntimeError("ChatStore has no API client")
        receipt = await self.api.mark_chat_read(partner_id)
        for message in self.conversations.get(partner_id, []):
            if message.get("receiver_id") == self.user_id:
                message["is_read"] = True
        return receipt["count"]

    async def send(
        self,
        channel: RealtimeChannel,
        receiver_id: str,
        content: str,
        attachment_url: str | None = None,
    ) -> Message:
        """
        Send over the channel and append the message once the server acks it.

        Raises:
            ChannelDisconnectedError: the channel is down; the message is not queued
            AckError: the server rejected the message
        """
        message = await channel.emit(
            Ev.MESSAGE_SEND.value,
            {"receiver_id": receiver_id, "content": content, "attachment_url": attachment_url},
            ack=True,
        )
        self.ingest(message)
        return message
