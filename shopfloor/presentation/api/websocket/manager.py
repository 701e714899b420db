"""WebSocket connection manager for the real-time channel"""

from __future__ import annotations

import asyncio
import json
import logging
from collections import defaultdict
from typing import Any

from fastapi import WebSocket

logger = logging.getLogger(__name__)


def frame(event: str, data: Any = None, ack: str | None = None) -> dict[str, Any]:
    """Wire envelope shared by both directions"""
    return {"event": event, "data": data, "ack": ack}


class ConnectionManager:
    """
    Manages WebSocket connections per user.

    A user may hold several sockets (tabs, devices); a user counts as online
    while at least one of them is open.
    """

    def __init__(self) -> None:
        self.active_connections: dict[str, list[WebSocket]] = defaultdict(list)
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, user_id: str) -> None:
        """Accept and register a WebSocket connection"""
        await websocket.accept()

        async with self._lock:
            self.active_connections[user_id].append(websocket)

        logger.info(
            f"WebSocket connected for user {user_id}. "
            f"Open sockets for user: {len(self.active_connections[user_id])}"
        )

    async def disconnect(self, websocket: WebSocket, user_id: str) -> bool:
        """
        Remove a WebSocket connection.

        Returns:
            True if this was the user's last open socket
        """
        async with self._lock:
            connections = self.active_connections.get(user_id)
            if connections is None:
                return False
            try:
                connections.remove(websocket)
            except ValueError:
                pass  # Connection already removed
            last = not connections
            if last:
                del self.active_connections[user_id]

        logger.info(f"WebSocket disconnected for user {user_id}")
        return last

    async def send_to_user(self, user_id: str, message: dict[str, Any]) -> int:
        """
        Send message to every socket of a user.

        Returns:
            Number of sockets that received the message
        """
        connections = list(self.active_connections.get(user_id, []))
        if not connections:
            return 0

        sent = await self._send_all(connections, json.dumps(message))
        logger.debug(f"Sent {message.get('event')} to user {user_id}: {sent}/{len(connections)}")
        return sent

    async def broadcast(self, message: dict[str, Any]) -> int:
        """Send message to every open socket"""
        connections = [
            connection
            for sockets in list(self.active_connections.values())
            for connection in sockets
        ]
        return await self._send_all(connections, json.dumps(message))

    async def _send_all(self, connections: list[WebSocket], message_text: str) -> int:
        sent_count = 0
        failed: list[WebSocket] = []
        for connection in connections:
            try:
                await connection.send_text(message_text)
                sent_count += 1
            except Exception as e:
                logger.warning(f"Failed to send to WebSocket: {e}")
                failed.append(connection)

        if failed:
            async with self._lock:
                for user_id in list(self.active_connections):
                    remaining = [c for c in self.active_connections[user_id] if c not in failed]
                    if remaining:
                        self.active_connections[user_id] = remaining
                    else:
                        del self.active_connections[user_id]
        return sent_count

    async def send_personal(self, websocket: WebSocket, message: dict[str, Any]) -> bool:
        """Send message to a specific connection"""
        try:
            await websocket.send_text(json.dumps(message))
            return True
        except Exception as e:
            logger.warning(f"Failed to send personal message: {e}")
            return False

    def online_user_ids(self) -> list[str]:
        return list(self.active_connections.keys())

    def is_online(self, user_id: str) -> bool:
        return bool(self.active_connections.get(user_id))

    def get_connection_count(self, user_id: str) -> int:
        return len(self.active_connections.get(user_id, []))

    def get_total_connections(self) -> int:
        return sum(len(conns) for conns in self.active_connections.values())

    async def close_all(self) -> None:
        """Close all WebSocket connections (for shutdown)"""
        async with self._lock:
            for connections in self.active_connections.values():
                for conn in connections:
                    try:
                        await conn.close()
                    except Exception as e:
                        logger.debug(f"Error closing WebSocket: {e}")
            self.active_connections.clear()
        logger.info("All WebSocket connections closed")


_manager: ConnectionManager | None = None


def get_connection_manager() -> ConnectionManager:
    """Get the global connection manager, creating if needed"""
    global _manager
    if _manager is None:
        _manager = ConnectionManager()
    return _manager


def set_connection_manager(manager: ConnectionManager) -> None:
    """Set the global connection manager (for testing)"""
    global _manager
    _manager = manager
