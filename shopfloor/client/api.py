"""HTTP access to the Shopfloor REST API"""

from __future__ import annotations

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

FALLBACK_ERROR_MESSAGE = "Something went wrong"


class ApiError(Exception):
    """
    A failed API call.

    status_code is 0 for transport errors (no response at all). message is the
    server's ``detail``/``message`` when it sent one.
    """

    def __init__(self, status_code: int, message: str = FALLBACK_ERROR_MESSAGE, payload: Any = None):
        self.status_code = status_code
        self.message = message
        self.payload = payload
        super().__init__(message)


class AuthorizationError(ApiError):
    """401 or 403; handled by redirecting rather than showing an error"""


def error_message(payload: Any) -> str:
    """Best-effort human message from an error body"""
    if isinstance(payload, dict):
        for field in ("detail", "message"):
            value = payload.get(field)
            if isinstance(value, str) and value:
                return value
            # FastAPI request validation: [{"loc": [...], "msg": "..."}]
            if isinstance(value, list) and value and isinstance(value[0], dict):
                msg = value[0].get("msg")
                if isinstance(msg, str) and msg:
                    return msg
    return FALLBACK_ERROR_MESSAGE


class ApiClient:
    """
    Thin async wrapper over httpx holding the session's tokens.

    Pass ``transport`` (for example ``httpx.MockTransport`` or
    ``httpx.ASGITransport``) to talk to something other than the network.
    """

    def __init__(self, base_url: str, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._client = httpx.AsyncClient(base_url=base_url, transport=transport)
        self.access_token: str | None = None
        self.refresh_token: str | None = None

    def set_tokens(self, access_token: str, refresh_token: str | None = None) -> None:
        self.access_token = access_token
        self.refresh_token = refresh_token

    def clear_tokens(self) -> None:
        self.access_token = None
        self.refresh_token = None

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request(self, method: str, path: str, **kwargs: Any) -> Any:
        headers = dict(kwargs.pop("headers", None) or {})
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"

        try:
            response = await self._client.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"{method} {path} failed: {e}")
            raise ApiError(0, FALLBACK_ERROR_MESSAGE) from e

        if response.is_error:
            try:
                payload = response.json()
            except ValueError:
                payload = None
            message = error_message(payload)
            logger.warning(f"{method} {path} returned {response.status_code}: {message}")
            error_class = AuthorizationError if response.status_code in (401, 403) else ApiError
            raise error_class(response.status_code, message, payload)

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # Auth

    async def login(self, login: str, password: str) -> dict[str, Any]:
        data = await self.request("POST", "/auth/login", json={"login": login, "password": password})
        self.set_tokens(data["access_token"], data.get("refresh_token"))
        return data

    async def logout(self) -> None:
        await self.request("POST", "/auth/logout", json={"refresh_token": self.refresh_token})

    async def me(self) -> dict[str, Any]:
        return await self.request("GET", "/auth/me")

    # Notifications

    async def notifications(self, page: int = 1, limit: int = 20) -> dict[str, Any]:
        return await self.request("GET", "/notifications", params={"page": page, "limit": limit})

    async def mark_notification_read(self, notification_id: str) -> dict[str, Any]:
        return await self.request("PATCH", f"/notifications/{notification_id}/read")

    async def archive_notification(self, notification_id: str) -> dict[str, Any]:
        return await self.request("PATCH", f"/notifications/{notification_id}/archive")

    async def read_all_notifications(self) -> dict[str, Any]:
        return await self.request("PATCH", "/notifications/read-all")

    # Chat

    async def chat_history(self, user_id: str) -> list[dict[str, Any]]:
        return await self.request("GET", f"/chat/{user_id}")

    async def chat_messages(self) -> list[dict[str, Any]]:
        return await self.request("GET", "/chat")

    async def mark_chat_read(self, user_id: str) -> dict[str, Any]:
        return await self.request("PATCH", f"/chat/{user_id}/read")
