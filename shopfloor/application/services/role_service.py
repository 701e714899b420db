"""Role management: grants as {"module.action": level} maps, usage counts and catalog grouping."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from shopfloor.application.services.authorization_service import AuthorizationService
from shopfloor.domain.authorization import PermissionKey, PermissionLevel
from shopfloor.domain.exceptions import (BusinessRuleException, ResourceNotFoundException,
                                         ValidationException)
from shopfloor.infrastructure.cache.redis_cache import CacheService
from shopfloor.infrastructure.persistence.models.permission import Permission
from shopfloor.infrastructure.persistence.models.role import Role
from shopfloor.infrastructure.persistence.repositories.permission_repo import PermissionRepository
from shopfloor.infrastructure.persistence.repositories.role_repo import RoleRepository
from shopfloor.shared.telemetry.logging import get_logger

logger = get_logger(__name__)


@dataclass
class RoleDetails:
    role: Role
    permissions: dict[str, int]
    user_count: int


class RoleService:
    def __init__(
        self,
        db: AsyncSession,
        cache_service: CacheService | None = None,
        actor_id: str | None = None,
    ) -> None:
        self.db = db
        self.roles = RoleRepository(db, actor_id=actor_id)
        self.permissions = PermissionRepository(db)
        self.authz = AuthorizationService(db, cache_service)

    async def _resolve_grants(
        self, grants: dict[str, int]
    ) -> dict[str, tuple[Permission, int]]:
        """Validate keys and levels, drop levels <= 0, and look up catalog rows"""
        wanted: dict[str, int] = {}
        for raw_key, value in grants.items():
            key = PermissionKey.parse(raw_key)
            if value > PermissionLevel.FULL:
                raise ValidationException(
                    f"Permission level for {key} must be between 0 and 3", field="permissions"
                )
            if value > 0:
                wanted[str(key)] = value

        pairs = [(key.split(".", 1)[0], key.split(".", 1)[1]) for key in wanted]
        catalog = await self.permissions.get_by_pairs(pairs)
        missing = sorted(set(wanted) - set(catalog))
        if missing:
            raise ValidationException(
                f"Unknown permissions: {', '.join(missing)}", field="permissions"
            )
        return {key: (catalog[key], value) for key, value in wanted.items()}

    async def _details(self, roles: list[Role]) -> list[RoleDetails]:
        role_ids = [role.id for role in roles]
        grants = await self.roles.get_grants(role_ids)
        counts = await self.roles.user_counts(role_ids)
        return [
            RoleDetails(role=role, permissions=grants[role.id], user_count=counts[role.id])
            for role in roles
        ]

    async def list_roles(self, skip: int = 0, limit: int = 50) -> tuple[list[RoleDetails], int]:
        roles, total = await self.roles.list_roles(skip, limit)
        return await self._details(roles), total

    async def get_role(self, role_id: str) -> RoleDetails:
        role = await self.roles.get_by_id(role_id)
        if not role:
            raise ResourceNotFoundException("Role", role_id)
        return (await self._details([role]))[0]

    async def create_role(
        self, name: str, description: str | None, permissions: dict[str, int]
    ) -> RoleDetails:
        if await self.roles.get_by_name(name):
            raise BusinessRuleException(f"Role '{name}' already exists", {"name": name})

        resolved = await self._resolve_grants(permissions)
        role = await self.roles.create(Role(name=name, description=description))
        await self.roles.replace_grants(role, resolved)
        logger.info("Created role %s with %d grants", name, len(resolved))
        return await self.get_role(role.id)

    async def update_role(
        self,
        role_id: str,
        name: str | None = None,
        description: str | None = None,
        permissions: dict[str, int] | None = None,
    ) -> RoleDetails:
        """Update fields; a permissions map replaces every existing grant"""
        role = await self.roles.get_by_id(role_id)
        if not role:
            raise ResourceNotFoundException("Role", role_id)

        if name and name != role.name:
            if await self.roles.get_by_name(name):
                raise BusinessRuleException(f"Role '{name}' already exists", {"name": name})
            role.name = name
        if description is not None:
            role.description = description
        role = await self.roles.update(role)

        if permissions is not None:
            resolved = await self._resolve_grants(permissions)
            await self.roles.replace_grants(role, resolved)
            await self.authz.invalidate()

        return await self.get_role(role.id)

    async def delete_role(self, role_id: str) -> None:
        role = await self.roles.get_by_id(role_id)
        if not role:
            raise ResourceNotFoundException("Role", role_id)

        counts = await self.roles.user_counts([role.id])
        if counts[role.id] > 0:
            raise BusinessRuleException(
                "Cannot delete a role that is assigned to users",
                {"role_id": role.id, "user_count": counts[role.id]},
            )
        await self.roles.delete(role)
        await self.authz.invalidate()

    async def grouped_permissions(self) -> dict[str, list[Permission]]:
        """Catalog grouped by module, modules and actions sorted"""
        grouped: dict[str, list[Permission]] = {}
        for permission in await self.permissions.list_all():
            grouped.setdefault(permission.module, []).append(permission)
        return grouped
