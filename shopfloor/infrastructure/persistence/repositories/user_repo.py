from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from shopfloor.infrastructure.persistence.models.permission import (Permission,
                                                                    RolePermission,
                                                                    UserRole)
from shopfloor.infrastructure.persistence.models.role import Role
from shopfloor.infrastructure.persistence.models.user import User
from shopfloor.infrastructure.persistence.repositories.auditable_repo import AuditableRepository
from shopfloor.infrastructure.security.password import (DUMMY_PASSWORD_HASH,
                                                        get_password_hash,
                                                        verify_password)
from shopfloor.shared.enums import AuditAction
from shopfloor.shared.utils import utc_now

if TYPE_CHECKING:
    from shopfloor.application.services.audit_service import AuditService


class UserRepository(AuditableRepository[User]):
    """Repository for User operations with automatic audit tracking."""

    def __init__(
        self,
        db: AsyncSession,
        audit_service: "AuditService | None" = None,
        *,
        actor_id: str | None = None,
        enable_audit: bool = True,
    ):
        super().__init__(db, User, audit_service, actor_id=actor_id, enable_audit=enable_audit)

    def _get_module(self) -> str:
        return "users"

    def _serialize_for_audit(self, obj: User) -> dict[str, Any]:
        return {
            "id": obj.id,
            "login": obj.login,
            "email": obj.email,
            "is_active": obj.is_active,
        }

    async def get_by_login(self, login: str) -> User | None:
        result = await self.db.execute(select(User).where(User.login == login))
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> User | None:
        result = await self.db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def authenticate(self, login: str, password: str) -> User | None:
        """
        Authenticate user by login and password.

        Returns User if credentials are valid and the account is active, None otherwise.
        """
        user = await self.get_by_login(login)

        if not user:
            # Perform dummy hash check to prevent timing attacks
            await asyncio.to_thread(verify_password, password, DUMMY_PASSWORD_HASH)
            return None

        if not user.is_active:
            return None

        if not await asyncio.to_thread(verify_password, password, user.hashed_password):
            return None

        return user

    async def record_login(self, user: User) -> User:
        """Stamp last_login without writing an audit entry"""
        user.last_login = utc_now()
        user.last_activity = user.last_login
        await self.db.flush()
        return user

    async def create_user(
        self,
        login: str,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        phone_number: str | None = None,
    ) -> User:
        """Create a new user with hashed password"""
        hashed = await asyncio.to_thread(get_password_hash, password)
        user = User(
            login=login,
            email=email,
            first_name=first_name,
            last_name=last_name,
            phone_number=phone_number,
            hashed_password=hashed,
            is_active=True,
        )
        return await self.create(user)

    async def update_password(self, user_id: str, new_password: str) -> User | None:
        user = await self.get_by_id(user_id)
        if not user:
            return None

        user.hashed_password = await asyncio.to_thread(get_password_hash, new_password)
        return await self.update(user)

    async def deactivate(self, user_id: str) -> User | None:
        """Deactivate user account with audit entry."""
        user = await self.get_by_id(user_id)
        if not user:
            return None

        user.is_active = False
        updated = await self.update(user)
        await self.emit_custom_audit(updated, AuditAction.DEACTIVATED)
        return updated

    async def list_users(
        self,
        search: str | None = None,
        skip: int = 0,
        limit: int = 50,
        include_inactive: bool = True,
    ) -> tuple[list[User], int]:
        query = select(User)
        if search:
            pattern = f"%{search}%"
            query = query.where(
                or_(
                    User.login.ilike(pattern),
                    User.email.ilike(pattern),
                    User.first_name.ilike(pattern),
                    User.last_name.ilike(pattern),
                )
            )
        if not include_inactive:
            query = query.where(User.is_active.is_(True))
        query = query.order_by(User.last_name, User.first_name)
        return await self.paginate(query, skip, limit)

    async def list_active_except(self, user_id: str) -> list[User]:
        """Active users other than the given one (chat contact list)"""
        result = await self.db.execute(
            select(User)
            .where(User.is_active.is_(True), User.id != user_id)
            .order_by(User.first_name, User.last_name)
        )
        return list(result.scalars().all())

    async def get_by_ids(self, user_ids: list[str]) -> dict[str, User]:
        if not user_ids:
            return {}
        result = await self.db.execute(select(User).where(User.id.in_(user_ids)))
        return {user.id: user for user in result.scalars().all()}

    async def get_roles(self, user_id: str) -> list[Role]:
        """Roles assigned to a user, in assignment order"""
        result = await self.db.execute(
            select(Role)
            .join(UserRole, UserRole.role_id == Role.id)
            .where(UserRole.user_id == user_id)
            .order_by(UserRole.assigned_at, Role.name)
        )
        return list(result.scalars().all())

    async def set_roles(
        self, user: User, role_ids: list[str], assigned_by: str | None = None
    ) -> None:
        """Replace the user's role assignments"""
        await self.db.execute(delete(UserRole).where(UserRole.user_id == user.id))
        for role_id in dict.fromkeys(role_ids):
            self.db.add(UserRole(user_id=user.id, role_id=role_id, assigned_by=assigned_by))
        await self.db.flush()
        await self.emit_custom_audit(user, AuditAction.ROLES_ASSIGNED, {"role_ids": role_ids})

    async def get_permission_grants(self, user_id: str) -> list[tuple[str, str, int]]:
        """(module, action, value) rows across every role of the user"""
        result = await self.db.execute(
            select(Permission.module, Permission.action, RolePermission.value)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .join(UserRole, UserRole.role_id == RolePermission.role_id)
            .where(UserRole.user_id == user_id)
        )
        return [(module, action, value) for module, action, value in result.all()]

    async def get_all_active_grants(self) -> dict[str, list[tuple[str, str, int]]]:
        """Grant rows for every active user, keyed by user id"""
        result = await self.db.execute(
            select(UserRole.user_id, Permission.module, Permission.action, RolePermission.value)
            .join(RolePermission, RolePermission.role_id == UserRole.role_id)
            .join(Permission, Permission.id == RolePermission.permission_id)
            .join(User, User.id == UserRole.user_id)
            .where(User.is_active.is_(True))
        )
        grants: dict[str, list[tuple[str, str, int]]] = {}
        for user_id, module, action, value in result.all():
            grants.setdefault(user_id, []).append((module, action, value))
        return grants
