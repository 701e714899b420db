"""User administration: accounts, role assignment and password changes."""

from __future__ import annotations

import asyncio

from sqlalchemy.ext.asyncio import AsyncSession

from shopfloor.application.services.authorization_service import AuthorizationService
from shopfloor.domain.exceptions import (BusinessRuleException, ResourceNotFoundException,
                                         ValidationException)
from shopfloor.infrastructure.cache.redis_cache import CacheService
from shopfloor.infrastructure.persistence.models.role import Role
from shopfloor.infrastructure.persistence.models.user import User
from shopfloor.infrastructure.persistence.repositories.refresh_token_repo import \
    RefreshTokenRepository
from shopfloor.infrastructure.persistence.repositories.role_repo import RoleRepository
from shopfloor.infrastructure.persistence.repositories.user_repo import UserRepository
from shopfloor.infrastructure.security.password import verify_password


class UserService:
    def __init__(
        self,
        db: AsyncSession,
        cache_service: CacheService | None = None,
        actor_id: str | None = None,
    ) -> None:
        self.users = UserRepository(db, actor_id=actor_id)
        self.roles = RoleRepository(db, enable_audit=False)
        self.tokens = RefreshTokenRepository(db)
        self.authz = AuthorizationService(db, cache_service)
        self.actor_id = actor_id

    async def get_user(self, user_id: str) -> User:
        user = await self.users.get_by_id(user_id)
        if not user:
            raise ResourceNotFoundException("User", user_id)
        return user

    async def get_with_roles(self, user_id: str) -> tuple[User, list[Role]]:
        user = await self.get_user(user_id)
        return user, await self.users.get_roles(user_id)

    async def create_user(
        self,
        login: str,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        phone_number: str | None = None,
        role_ids: list[str] | None = None,
    ) -> User:
        if await self.users.get_by_login(login):
            raise BusinessRuleException(f"Login '{login}' is already taken", {"login": login})
        if await self.users.get_by_email(email):
            raise BusinessRuleException(f"Email '{email}' is already registered", {"email": email})

        user = await self.users.create_user(
            login=login,
            email=email,
            password=password,
            first_name=first_name,
            last_name=last_name,
            phone_number=phone_number,
        )
        if role_ids:
            await self.assign_roles(user.id, role_ids)
        return user

    async def update_user(self, user_id: str, **fields) -> User:
        user = await self.get_user(user_id)

        email = fields.get("email")
        if email and email != user.email and await self.users.get_by_email(email):
            raise BusinessRuleException(f"Email '{email}' is already registered", {"email": email})

        for name in ("email", "first_name", "last_name", "phone_number", "is_active"):
            value = fields.get(name)
            if value is not None:
                setattr(user, name, value)
        user = await self.users.update(user)
        if fields.get("is_active") is False:
            await self.tokens.revoke_all_for_user(user.id)
        return user

    async def deactivate(self, user_id: str) -> User:
        if user_id == self.actor_id:
            raise BusinessRuleException("You cannot deactivate your own account")
        user = await self.users.deactivate(user_id)
        if not user:
            raise ResourceNotFoundException("User", user_id)
        await self.tokens.revoke_all_for_user(user_id)
        return user

    async def assign_roles(self, user_id: str, role_ids: list[str]) -> list[Role]:
        """Replace the user's roles; unknown role ids are a validation error"""
        user = await self.get_user(user_id)
        roles = await self.roles.get_by_ids(role_ids)
        missing = sorted(set(role_ids) - {role.id for role in roles})
        if missing:
            raise ValidationException(f"Unknown roles: {', '.join(missing)}", field="role_ids")

        await self.users.set_roles(user, role_ids, assigned_by=self.actor_id)
        await self.authz.invalidate(user_id)
        return await self.users.get_roles(user_id)

    async def change_password(
        self, user_id: str, current_password: str, new_password: str
    ) -> None:
        user = await self.get_user(user_id)
        if not await asyncio.to_thread(verify_password, current_password, user.hashed_password):
            raise ValidationException("Current password is incorrect", field="current_password")
        await self.users.update_password(user_id, new_password)
        await self.tokens.revoke_all_for_user(user_id)
