"""WebSocket endpoint for presence, chat and notification push"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from shopfloor.infrastructure.messaging.redis_pubsub import (RealtimeSubscriber,
                                                             get_realtime_publisher)
from shopfloor.infrastructure.security.jwt import verify_token
from shopfloor.presentation.api.websocket.hub import get_realtime_hub
from shopfloor.presentation.api.websocket.manager import frame, get_connection_manager
from shopfloor.shared.enums import RealtimeEventName

logger = logging.getLogger(__name__)

router = APIRouter()


async def validate_websocket_token(token: str) -> dict[str, Any] | None:
    """
    Validate JWT token for WebSocket authentication.

    Args:
        token: JWT token from query parameter

    Returns:
        Token payload if valid, None otherwise
    """
    try:
        return verify_token(token)
    except ValueError as e:
        logger.warning(f"WebSocket auth failed: {e}")
        return None
    except Exception as e:
        logger.error(f"WebSocket auth error: {e}")
        return None


@router.websocket("/ws")
async def realtime_websocket(
    websocket: WebSocket,
    token: str = Query(..., description="JWT access token"),
):
    """
    Real-time channel of one authenticated user.

    Frames are JSON text in both directions:
        {"event": "message:send", "data": {...}, "ack": "optional-id"}

    The server greets with a "connected" frame carrying the user id. Events
    for the user published by any worker arrive through Redis when it is
    available; otherwise they are delivered by this process directly.
    """
    payload = await validate_websocket_token(token)
    if not payload or not payload.get("sub"):
        await websocket.close(code=4001, reason="Invalid authentication token")
        return

    user_id: str = payload["sub"]
    manager = get_connection_manager()
    hub = get_realtime_hub()
    publisher = get_realtime_publisher()
    subscriber = (
        RealtimeSubscriber() if publisher is not None and publisher.is_available() else None
    )

    async def read_client():
        """Dispatch incoming frames until the client goes away"""
        try:
            while True:
                text = await websocket.receive_text()
                await hub.handle(websocket, user_id, text)
        except WebSocketDisconnect:
            pass

    async def read_redis():
        """Forward this user's published events to the socket"""
        try:
            async for event in subscriber.subscribe(user_id):
                await manager.send_personal(websocket, frame(event.event, event.data))
        except asyncio.CancelledError:
            pass

    try:
        await manager.connect(websocket, user_id)
        await manager.send_personal(
            websocket, frame(RealtimeEventName.CONNECTED.value, {"user_id": user_id})
        )

        if subscriber is not None:
            await subscriber.connect()

        if subscriber is None or not subscriber.is_available():
            await read_client()
        else:
            client_task = asyncio.create_task(read_client())
            redis_task = asyncio.create_task(read_redis())
            try:
                done, pending = await asyncio.wait(
                    [client_task, redis_task],
                    return_when=asyncio.FIRST_COMPLETED,
                )
                for task in pending:
                    task.cancel()
                    try:
                        await task
                    except asyncio.CancelledError:
                        pass
            except Exception as e:
                logger.error(f"WebSocket task error: {e}")
                client_task.cancel()
                redis_task.cancel()

    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected for user {user_id}")
    except Exception as e:
        logger.error(f"WebSocket error for user {user_id}: {e}")
        try:
            await websocket.close(code=1011, reason="Internal server error")
        except Exception:
            pass
    finally:
        if await manager.disconnect(websocket, user_id):
            await hub.broadcast_roster()
        if subscriber is not None:
            await subscriber.disconnect()


@router.get("/ws/status")
async def websocket_status():
    """
    Get WebSocket connection status.

    Returns connection counts for monitoring.
    """
    manager = get_connection_manager()
    publisher = get_realtime_publisher()

    return {
        "total_connections": manager.get_total_connections(),
        "online_users": len(manager.online_user_ids()),
        "publisher_available": publisher.is_available() if publisher else False,
    }
