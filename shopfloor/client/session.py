"""
Authenticated session of the client.

The session owns the API tokens, the signed-in user with their aggregated
permission map, the real-time channel and the de-duplication set. login,
logout and refresh_me are the only places that change ``user``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from shopfloor.client.api import ApiClient, ApiError
from shopfloor.client.channel import ChannelDisconnectedError, RealtimeChannel
from shopfloor.client.dedup import ProcessedIds
from shopfloor.client.preferences import Preferences
from shopfloor.client.settings import ClientSettings, get_client_settings
from shopfloor.domain.authorization import PermissionEvaluator, PermissionLevel

logger = logging.getLogger(__name__)

ChannelFactory = Callable[[str, str], RealtimeChannel]


class AuthSession:
    def __init__(
        self,
        api: ApiClient,
        *,
        channel_factory: ChannelFactory | None = None,
        dedup: ProcessedIds | None = None,
        evaluator: PermissionEvaluator | None = None,
        settings: ClientSettings | None = None,
    ) -> None:
        self.settings = settings or get_client_settings()
        self.api = api
        self.channel_factory = channel_factory or self._default_channel
        self.dedup = dedup or ProcessedIds(self.settings.dedup_capacity)
        self.evaluator = evaluator or PermissionEvaluator()

        self.user: dict[str, Any] | None = None
        self.roles: list[dict[str, Any]] = []
        self.permissions: dict[str, int] = {}
        self.channel: RealtimeChannel | None = None
        self.is_ready = False
        self.loading = False
        self.error: str | None = None

    def _default_channel(self, user_id: str, token: str) -> RealtimeChannel:
        return RealtimeChannel(
            self.settings.socket_url,
            token,
            user_id,
            preferences=Preferences(self.settings.preferences_path),
            reconnect_attempts=self.settings.reconnect_attempts,
            reconnect_delay=self.settings.reconnect_delay,
            ack_timeout=self.settings.ack_timeout,
        )

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    def has_permission(
        self, module: str, action: str, min_level: int = PermissionLevel.BASIC
    ) -> bool:
        if not self.is_authenticated:
            return False
        return self.evaluator.has_permission(self.permissions, module, action, min_level)

    async def initialize(self) -> None:
        """Initial auth check: validate a stored token, if any"""
        self.loading = True
        try:
            if self.api.access_token:
                try:
                    await self.refresh_me()
                    await self._open_channel()
                except ApiError as e:
                    logger.info(f"Stored session is no longer valid: {e.message}")
                    self.api.clear_tokens()
                    self._clear_user()
        finally:
            self.loading = False
            self.is_ready = True

    async def login(self, login: str, password: str) -> dict[str, Any]:
        """
        Sign in and load the profile.

        Raises:
            ApiError: the server rejected the credentials or is unreachable;
                ``error`` holds its message
        """
        self.loading = True
        self.error = None
        try:
            await self.api.login(login, password)
            await self.refresh_me()
        except ApiError as e:
            self.error = e.message
            self.api.clear_tokens()
            self._clear_user()
            raise
        finally:
            self.loading = False
            self.is_ready = True

        await self._open_channel()
        return self.user

    async def refresh_me(self) -> dict[str, Any]:
        profile = await self.api.me()
        self.user = profile["user"]
        self.roles = profile.get("roles", [])
        self.permissions = dict(profile.get("permissions", {}))
        return self.user

    async def _open_channel(self) -> None:
        if self.channel is not None or self.user is None or not self.api.access_token:
            return
        channel = self.channel_factory(self.user["id"], self.api.access_token)
        try:
            await channel.connect()
        except ChannelDisconnectedError as e:
            # Real-time features degrade; REST keeps working
            logger.warning(f"Real-time channel unavailable: {e}")
            return
        self.channel = channel

    async def logout(self) -> None:
        """Best-effort server logout; local state is always cleared"""
        try:
            if self.api.access_token:
                await self.api.logout()
        except ApiError as e:
            logger.warning(f"Server logout failed: {e.message}")
        finally:
            channel, self.channel = self.channel, None
            if channel is not None:
                await channel.disconnect()
            self.dedup.clear()
            self.api.clear_tokens()
            self._clear_user()
            self.error = None

    def _clear_user(self) -> None:
        self.user = None
        self.roles = []
        self.permissions = {}
