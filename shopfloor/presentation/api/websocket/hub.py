"""
Inbound event handling for the real-time channel.

Frames are JSON text: {"event": str, "data": any, "ack": str | null}. An
event carrying an ack id is answered with {"event": "ack", "ack": id,
"data": ...} on success or {"event": "ack", "ack": id, "error": "..."} on
failure. The socket's identity always comes from its token; ids sent in
payloads are never trusted.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import WebSocket
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shopfloor.application.interfaces import BufferedNotifier, IRealtimeNotifier
from shopfloor.application.services.chat_service import ChatService, message_payload
from shopfloor.domain.exceptions import ShopfloorException
from shopfloor.infrastructure.persistence.database import get_session_factory
from shopfloor.presentation.api.websocket.dispatcher import RealtimeDispatcher
from shopfloor.presentation.api.websocket.manager import (ConnectionManager, frame,
                                                          get_connection_manager)
from shopfloor.presentation.api.websocket.presence import (PresenceRegistry,
                                                           get_presence_registry)
from shopfloor.shared.enums import RealtimeEventName as Ev

logger = logging.getLogger(__name__)

ChatServiceFactory = Callable[[AsyncSession, IRealtimeNotifier], ChatService]
Handler = Callable[[WebSocket, str, Any], Awaitable[Any]]


class InvalidPayload(ValueError):
    """Event data does not have the expected shape"""


def _field(data: Any, name: str) -> str:
    if not isinstance(data, dict) or not data.get(name):
        raise InvalidPayload(f"'{name}' is required")
    if not isinstance(data[name], str):
        raise InvalidPayload(f"'{name}' must be a string")
    return data[name]


def _optional_text(data: dict, name: str) -> str | None:
    value = data.get(name)
    if value is not None and not isinstance(value, str):
        raise InvalidPayload(f"'{name}' must be a string")
    return value


class RealtimeHub:
    def __init__(
        self,
        manager: ConnectionManager | None = None,
        presence: PresenceRegistry | None = None,
        notifier: IRealtimeNotifier | None = None,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        chat_service_factory: ChatServiceFactory = ChatService,
    ) -> None:
        self.manager = manager or get_connection_manager()
        self.presence = presence or get_presence_registry()
        self.notifier = notifier or RealtimeDispatcher(self.manager)
        self.session_factory = session_factory or get_session_factory()
        self.chat_service_factory = chat_service_factory
        self.handlers: dict[str, Handler] = {
            Ev.IDENTIFY.value: self.on_register,
            Ev.REGISTER.value: self.on_register,
            Ev.GET_ONLINE_USERS.value: self.on_get_online_users,
            Ev.TOGGLE_VISIBILITY.value: self.on_toggle_visibility,
            Ev.CHECK_VISIBILITY.value: self.on_check_visibility,
            Ev.MESSAGE_SEND.value: self.on_message_send,
            Ev.MESSAGE_READ.value: self.on_message_read,
            Ev.MESSAGE_DELETE.value: self.on_message_delete,
            Ev.PING.value: self.on_ping,
        }

    async def broadcast_roster(self) -> int:
        return await self.manager.broadcast(
            frame(Ev.ONLINE_USERS.value, self.presence.visible_online_users())
        )

    async def handle(self, websocket: WebSocket, user_id: str, text: str) -> None:
        """Dispatch one inbound frame; malformed frames are logged and dropped"""
        try:
            message = json.loads(text)
        except json.JSONDecodeError:
            logger.warning(f"Dropping non-JSON frame from user {user_id}")
            return
        if not isinstance(message, dict) or not isinstance(message.get("event"), str):
            logger.warning(f"Dropping frame without event name from user {user_id}")
            return

        event = message["event"]
        ack = message.get("ack")
        handler = self.handlers.get(event)
        if handler is None:
            logger.debug(f"Ignoring unknown event {event} from user {user_id}")
            if ack:
                await self._reply_error(websocket, ack, f"Unknown event: {event}")
            return

        try:
            result = await handler(websocket, user_id, message.get("data"))
        except (InvalidPayload, ShopfloorException) as e:
            error = e.message if isinstance(e, ShopfloorException) else str(e)
            logger.info(f"{event} from user {user_id} rejected: {error}")
            await self._report(websocket, event, ack, error)
            return
        except Exception:
            logger.exception(f"{event} from user {user_id} failed")
            await self._report(websocket, event, ack, "Internal error")
            return

        if ack:
            await self.manager.send_personal(websocket, frame(Ev.ACK.value, result, ack))

    async def _reply_error(self, websocket: WebSocket, ack: str, error: str) -> None:
        await self.manager.send_personal(
            websocket, {"event": Ev.ACK.value, "ack": ack, "error": error}
        )

    async def _report(self, websocket: WebSocket, event: str, ack: Any, error: str) -> None:
        if ack:
            await self._reply_error(websocket, ack, error)
        else:
            await self.manager.send_personal(
                websocket, frame(Ev.ERROR.value, {"event": event, "message": error})
            )

    async def _send_visibility(self, websocket: WebSocket, user_id: str) -> dict[str, bool]:
        state = {"is_hidden": self.presence.is_hidden(user_id)}
        await self.manager.send_personal(websocket, frame(Ev.VISIBILITY_STATE.value, state))
        return state

    async def on_register(self, websocket: WebSocket, user_id: str, data: Any) -> dict[str, bool]:
        claimed = data.get("user_id") if isinstance(data, dict) else data
        if claimed and claimed != user_id:
            logger.warning(f"Socket of user {user_id} tried to register as {claimed}")
        state = await self._send_visibility(websocket, user_id)
        await self.broadcast_roster()
        return state

    async def on_get_online_users(self, websocket: WebSocket, user_id: str, data: Any) -> list[str]:
        roster = self.presence.visible_online_users()
        await self.manager.send_personal(websocket, frame(Ev.ONLINE_USERS.value, roster))
        return roster

    async def on_toggle_visibility(
        self, websocket: WebSocket, user_id: str, data: Any
    ) -> dict[str, bool]:
        if not isinstance(data, dict) or not isinstance(data.get("is_hidden"), bool):
            raise InvalidPayload("'is_hidden' must be a boolean")
        self.presence.set_hidden(user_id, data["is_hidden"])
        state = await self._send_visibility(websocket, user_id)
        await self.broadcast_roster()
        return state

    async def on_check_visibility(
        self, websocket: WebSocket, user_id: str, data: Any
    ) -> dict[str, bool]:
        return await self._send_visibility(websocket, user_id)

    async def on_ping(self, websocket: WebSocket, user_id: str, data: Any) -> None:
        await self.manager.send_personal(websocket, frame(Ev.PONG.value, data))

    async def _with_chat(self, operation: Callable[[ChatService], Awaitable[Any]]) -> Any:
        """Run a chat operation in its own transaction, pushing events after commit"""
        buffered = BufferedNotifier(self.notifier)
        async with self.session_factory() as session:
            async with session.begin():
                result = await operation(self.chat_service_factory(session, buffered))
        await buffered.flush()
        return result

    async def on_message_send(self, websocket: WebSocket, user_id: str, data: Any) -> dict[str, Any]:
        receiver_id = _field(data, "receiver_id")
        content = _optional_text(data, "content") or ""
        attachment_url = _optional_text(data, "attachment_url")
        message = await self._with_chat(
            lambda chat: chat.send(user_id, receiver_id, content, attachment_url)
        )
        return message_payload(message)

    async def on_message_read(self, websocket: WebSocket, user_id: str, data: Any) -> dict[str, int]:
        sender_id = _field(data, "sender_id")
        count = await self._with_chat(lambda chat: chat.mark_read(user_id, sender_id))
        return {"count": count}

    async def on_message_delete(self, websocket: WebSocket, user_id: str, data: Any) -> dict[str, Any]:
        message_id = _field(data, "message_id")
        message = await self._with_chat(lambda chat: chat.delete(user_id, message_id))
        return message_payload(message)


_hub: RealtimeHub | None = None


def get_realtime_hub() -> RealtimeHub:
    global _hub
    if _hub is None:
        _hub = RealtimeHub()
    return _hub


def set_realtime_hub(hub: RealtimeHub | None) -> None:
    """Set the global hub (for testing)"""
    global _hub
    _hub = hub
