"""
Login, token refresh and logout.

Access tokens carry only the user id. Refresh tokens are stored and are
one-time use: a refresh revokes the presented token and issues a new pair.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from shopfloor.domain.exceptions import AuthenticationException
from shopfloor.infrastructure.persistence.models.role import Role
from shopfloor.infrastructure.persistence.models.user import User
from shopfloor.infrastructure.persistence.repositories.refresh_token_repo import \
    RefreshTokenRepository
from shopfloor.infrastructure.persistence.repositories.user_repo import UserRepository
from shopfloor.infrastructure.security.jwt import (create_access_token, create_refresh_token,
                                                   verify_refresh_token)
from shopfloor.shared.telemetry.logging import get_logger
from shopfloor.shared.utils import ensure_utc, utc_now

logger = get_logger(__name__)


@dataclass
class TokenPair:
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


@dataclass
class SessionProfile:
    """What /auth/me returns: the user, their roles and the aggregated permission map"""

    user: User
    roles: list[Role]
    permissions: dict[str, int]


class AuthService:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.users = UserRepository(db, enable_audit=False)
        self.tokens = RefreshTokenRepository(db)

    async def _issue(self, user: User) -> TokenPair:
        access_token = create_access_token(data={"sub": user.id})
        refresh_token, expires_at = create_refresh_token(user.id)
        await self.tokens.store(user.id, refresh_token, expires_at)
        return TokenPair(access_token=access_token, refresh_token=refresh_token)

    async def login(self, login: str, password: str) -> tuple[User, TokenPair]:
        """
        Raises:
            AuthenticationException: unknown login, wrong password or inactive account
        """
        user = await self.users.authenticate(login, password)
        if not user:
            logger.warning("Failed login attempt for user: %s", login)
            raise AuthenticationException("Invalid credentials")

        await self.users.record_login(user)
        pair = await self._issue(user)
        logger.info("Successful login for user: %s", user.login)
        return user, pair

    async def refresh(self, refresh_token: str) -> TokenPair:
        try:
            payload = verify_refresh_token(refresh_token)
        except (ValueError, TypeError) as e:
            raise AuthenticationException("Invalid refresh token") from e

        stored = await self.tokens.get_by_token(refresh_token)
        if (
            stored is None
            or stored.is_revoked
            or stored.user_id != payload.get("sub")
            or ensure_utc(stored.expires_at) <= utc_now()
        ):
            raise AuthenticationException("Invalid refresh token")

        user = await self.users.get_by_id(stored.user_id)
        if not user or not user.is_active:
            raise AuthenticationException("Invalid refresh token")

        await self.tokens.revoke(stored)
        return await self._issue(user)

    async def logout(self, refresh_token: str | None, user_id: str) -> None:
        """Revoke the given refresh token, or every token of the user when none is given"""
        if refresh_token:
            stored = await self.tokens.get_by_token(refresh_token)
            if stored and stored.user_id == user_id:
                await self.tokens.revoke(stored)
                return
        await self.tokens.revoke_all_for_user(user_id)

    async def profile(self, user_id: str, permissions: dict[str, int]) -> SessionProfile:
        user = await self.users.get_by_id(user_id)
        if not user or not user.is_active:
            raise AuthenticationException("User not found or inactive")
        roles = await self.users.get_roles(user_id)
        return SessionProfile(user=user, roles=roles, permissions=permissions)
