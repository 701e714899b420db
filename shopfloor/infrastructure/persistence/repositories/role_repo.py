from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from shopfloor.infrastructure.persistence.models.permission import (Permission,
                                                                    RolePermission,
                                                                    UserRole)
from shopfloor.infrastructure.persistence.models.role import Role
from shopfloor.infrastructure.persistence.repositories.auditable_repo import AuditableRepository

if TYPE_CHECKING:
    from shopfloor.application.services.audit_service import AuditService


class RoleRepository(AuditableRepository[Role]):
    """Repository for Role operations with automatic audit tracking."""

    def __init__(
        self,
        db: AsyncSession,
        audit_service: "AuditService | None" = None,
        *,
        actor_id: str | None = None,
        enable_audit: bool = True,
    ):
        super().__init__(db, Role, audit_service, actor_id=actor_id, enable_audit=enable_audit)

    def _get_module(self) -> str:
        return "roles"

    def _serialize_for_audit(self, obj: Role) -> dict[str, Any]:
        return {
            "id": obj.id,
            "name": obj.name,
            "description": obj.description,
        }

    async def get_by_name(self, name: str) -> Role | None:
        result = await self.db.execute(select(Role).where(Role.name == name))
        return result.scalar_one_or_none()

    async def get_by_ids(self, role_ids: list[str]) -> list[Role]:
        if not role_ids:
            return []
        result = await self.db.execute(select(Role).where(Role.id.in_(role_ids)))
        return list(result.scalars().all())

    async def list_roles(self, skip: int = 0, limit: int = 50) -> tuple[list[Role], int]:
        return await self.paginate(select(Role).order_by(Role.name), skip, limit)

    async def user_counts(self, role_ids: list[str]) -> dict[str, int]:
        """Number of users holding each role"""
        if not role_ids:
            return {}
        result = await self.db.execute(
            select(UserRole.role_id, func.count(UserRole.id))
            .where(UserRole.role_id.in_(role_ids))
            .group_by(UserRole.role_id)
        )
        counts = {role_id: 0 for role_id in role_ids}
        counts.update({role_id: count for role_id, count in result.all()})
        return counts

    async def get_grants(self, role_ids: list[str]) -> dict[str, dict[str, int]]:
        """{role_id: {"module.action": value}} for the given roles"""
        grants: dict[str, dict[str, int]] = {role_id: {} for role_id in role_ids}
        if not role_ids:
            return grants
        result = await self.db.execute(
            select(RolePermission.role_id, Permission.module, Permission.action, RolePermission.value)
            .join(Permission, Permission.id == RolePermission.permission_id)
            .where(RolePermission.role_id.in_(role_ids))
        )
        for role_id, module, action, value in result.all():
            grants[role_id][f"{module}.{action}"] = value
        return grants

    async def replace_grants(self, role: Role, grants: dict[str, tuple[Permission, int]]) -> None:
        """
        Replace every grant of the role.

        Args:
            grants: {"module.action": (permission, value)}; values <= 0 are skipped
        """
        await self.db.execute(delete(RolePermission).where(RolePermission.role_id == role.id))
        for permission, value in grants.values():
            if value > 0:
                self.db.add(
                    RolePermission(role_id=role.id, permission_id=permission.id, value=value)
                )
        await self.db.flush()

    async def delete(self, obj: Role) -> None:
        await self.db.execute(delete(RolePermission).where(RolePermission.role_id == obj.id))
        await super().delete(obj)
