"""
Real-time channel of an authenticated session.

One WebSocket per session carries presence, chat delivery and notification
push. Frames are JSON text ``{"event": str, "data": any, "ack": str | null}``;
an emit that expects an acknowledgement waits for the server's ``ack`` frame
with the same id.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

import httpx
import websockets
from websockets.exceptions import ConnectionClosed

from shopfloor.client.preferences import Preferences
from shopfloor.shared.enums import RealtimeEventName as Ev
from shopfloor.shared.utils import generate_cuid

logger = logging.getLogger(__name__)

Listener = Callable[[Any], Awaitable[Any] | Any]


class ChannelDisconnectedError(ConnectionError):
    """The channel is not connected; nothing is queued for later"""


class AckError(RuntimeError):
    """The server rejected an acknowledged event"""


class SocketConnection(Protocol):
    async def send(self, message: str) -> None: ...

    async def close(self) -> None: ...

    def __aiter__(self): ...


Connector = Callable[[str], Awaitable[SocketConnection]]


async def default_connector(url: str) -> SocketConnection:
    return await websockets.connect(url)


class RealtimeChannel:
    """
    WebSocket client with listeners, acknowledgements and bounded reconnection.

    After an unexpected drop the channel retries ``reconnect_attempts`` times
    with a fixed ``reconnect_delay`` between attempts, then gives up and stays
    disconnected. ``disconnect()`` removes every listener and stops the reader.
    """

    def __init__(
        self,
        url: str,
        token: str,
        user_id: str,
        *,
        connector: Connector = default_connector,
        preferences: Preferences | None = None,
        reconnect_attempts: int = 5,
        reconnect_delay: float = 1.0,
        ack_timeout: float = 10.0,
    ) -> None:
        self.url = str(httpx.URL(url, params={"token": token}))
        self.user_id = user_id
        self.connector = connector
        self.preferences = preferences
        self.reconnect_attempts = reconnect_attempts
        self.reconnect_delay = reconnect_delay
        self.ack_timeout = ack_timeout

        self.online_users: list[str] = []
        self.is_hidden = False

        self._listeners: dict[str, list[Listener]] = defaultdict(list)
        self._pending: dict[str, asyncio.Future] = {}
        self._socket: SocketConnection | None = None
        self._reader: asyncio.Task | None = None
        self._closing = False

    @property
    def is_connected(self) -> bool:
        return self._socket is not None

    def on(self, event: str, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that removes it"""
        self._listeners[event].append(listener)
        return lambda: self.off(event, listener)

    def off(self, event: str, listener: Listener | None = None) -> None:
        if listener is None:
            self._listeners.pop(event, None)
            return
        listeners = self._listeners.get(event, [])
        if listener in listeners:
            listeners.remove(listener)

    async def connect(self) -> None:
        """
        Open the socket and announce the user.

        Raises:
            ChannelDisconnectedError: the socket could not be opened
        """
        self._closing = False
        await self._open()

    async def _open(self) -> None:
        try:
            socket = await self.connector(self.url)
        except Exception as e:
            raise ChannelDisconnectedError(f"Could not connect to {self.url}: {e}") from e

        self._socket = socket
        reader = self._reader = asyncio.create_task(self._read(socket))

        try:
            await self._send(Ev.IDENTIFY.value, {"user_id": self.user_id})
            await self._send(Ev.REGISTER.value, {"user_id": self.user_id})
            if self.preferences is not None and self.preferences.hide_online_status:
                await self._send(Ev.TOGGLE_VISIBILITY.value, {"is_hidden": True})
        except ChannelDisconnectedError:
            await self._discard(socket, reader)
            raise
        except Exception as e:
            await self._discard(socket, reader)
            raise ChannelDisconnectedError(f"Could not announce user {self.user_id}: {e}") from e
        logger.info(f"Real-time channel connected for user {self.user_id}")

    async def _discard(self, socket: SocketConnection, reader: asyncio.Task) -> None:
        """Stop the reader of a socket that failed to announce and close it"""
        if self._socket is socket:
            self._socket = None
        if self._reader is reader:
            self._reader = None
        reader.cancel()
        try:
            await reader
        except asyncio.CancelledError:
            pass
        try:
            await socket.close()
        except Exception as e:
            logger.debug(f"Error closing socket: {e}")

    async def _send(self, event: str, data: Any = None, ack: str | None = None) -> None:
        if self._socket is None:
            raise ChannelDisconnectedError(f"Cannot emit {event}: channel is disconnected")
        try:
            await self._socket.send(json.dumps({"event": event, "data": data, "ack": ack}))
        except ConnectionClosed as e:
            raise ChannelDisconnectedError(f"Cannot emit {event}: {e}") from e

    async def emit(self, event: str, data: Any = None, *, ack: bool = False) -> Any:
        """
        Send an event.

        With ``ack=True`` waits for the server's acknowledgement and returns
        its data.

        Raises:
            ChannelDisconnectedError: not connected, or the socket dropped before the ack
            AckError: the server answered with an error
            TimeoutError: no ack within ack_timeout
        """
        if not ack:
            await self._send(event, data)
            return None

        ack_id = generate_cuid()
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[ack_id] = future
        try:
            await self._send(event, data, ack_id)
            return await asyncio.wait_for(future, self.ack_timeout)
        finally:
            self._pending.pop(ack_id, None)

    async def set_hidden(self, hidden: bool) -> dict[str, Any]:
        """Persist the "hide my online status" choice and push it to the server"""
        if self.preferences is not None:
            self.preferences.hide_online_status = hidden
        self.is_hidden = hidden
        return await self.emit(Ev.TOGGLE_VISIBILITY.value, {"is_hidden": hidden}, ack=True)

    async def _read(self, socket: SocketConnection) -> None:
        try:
            async for raw in socket:
                await self._dispatch(raw)
        except ConnectionClosed as e:
            logger.warning(f"Real-time channel closed: {e}")
        except Exception as e:
            logger.error(f"Real-time channel error: {e}")

        if self._socket is socket:
            self._socket = None
        self._fail_pending()
        if not self._closing:
            await self._reconnect()

    async def _reconnect(self) -> None:
        for attempt in range(1, self.reconnect_attempts + 1):
            await asyncio.sleep(self.reconnect_delay)
            if self._closing:
                return
            try:
                await self._open()
                logger.info(f"Real-time channel reconnected after {attempt} attempt(s)")
                return
            except ChannelDisconnectedError as e:
                logger.warning(
                    f"Reconnect attempt {attempt}/{self.reconnect_attempts} failed: {e}"
                )
        logger.error("Real-time channel gave up reconnecting")

    def _fail_pending(self) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_exception(ChannelDisconnectedError("Channel disconnected before ack"))
        self._pending.clear()

    async def _dispatch(self, raw: str | bytes) -> None:
        try:
            message = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Dropping malformed real-time frame")
            return
        if not isinstance(message, dict) or not isinstance(message.get("event"), str):
            logger.warning("Dropping real-time frame without an event name")
            return

        event = message["event"]
        data = message.get("data")

        if event == Ev.ACK.value:
            future = self._pending.get(message.get("ack"))
            if future is None or future.done():
                return
            if message.get("error"):
                future.set_exception(AckError(message["error"]))
            else:
                future.set_result(data)
            return

        if event == Ev.ONLINE_USERS.value and isinstance(data, list):
            self.online_users = [user_id for user_id in data if isinstance(user_id, str)]
        elif event == Ev.VISIBILITY_STATE.value and isinstance(data, dict):
            self.is_hidden = bool(data.get("is_hidden"))

        for listener in list(self._listeners.get(event, [])):
            try:
                result = listener(data)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error(f"Listener for {event} failed: {e}")

    async def disconnect(self) -> None:
        """Close the socket, stop reconnecting and drop every listener"""
        self._closing = True
        self._listeners.clear()

        reader, self._reader = self._reader, None
        socket, self._socket = self._socket, None
        if reader is not None and reader is not asyncio.current_task():
            reader.cancel()
            try:
                await reader
            except asyncio.CancelledError:
                pass
        if socket is not None:
            try:
                await socket.close()
            except Exception as e:
                logger.debug(f"Error closing socket: {e}")
        self._fail_pending()
        self.online_users = []
        logger.info(f"Real-time channel disconnected for user {self.user_id}")
