from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shopfloor.infrastructure.persistence.models.permission import Permission
from shopfloor.infrastructure.persistence.repositories.base import BaseRepository


class PermissionRepository(BaseRepository[Permission]):
    """Global permission catalog"""

    def __init__(self, db: AsyncSession):
        super().__init__(db, Permission)

    async def list_all(self) -> list[Permission]:
        result = await self.db.execute(
            select(Permission).order_by(Permission.module, Permission.action)
        )
        return list(result.scalars().all())

    async def get_by_module_action(self, module: str, action: str) -> Permission | None:
        result = await self.db.execute(
            select(Permission).where(Permission.module == module, Permission.action == action)
        )
        return result.scalar_one_or_none()

    async def get_by_pairs(self, pairs: list[tuple[str, str]]) -> dict[str, Permission]:
        """Look up several (module, action) pairs, keyed by 'module.action'"""
        if not pairs:
            return {}
        wanted = {f"{module}.{action}" for module, action in pairs}
        result = await self.db.execute(
            select(Permission).where(Permission.module.in_(sorted({module for module, _ in pairs})))
        )
        return {
            permission.key: permission
            for permission in result.scalars().all()
            if permission.key in wanted
        }

    async def get_or_create(
        self, module: str, action: str, description: str | None = None
    ) -> tuple[Permission, bool]:
        """Returns (permission, created)"""
        existing = await self.get_by_module_action(module, action)
        if existing:
            if description and existing.description != description:
                existing.description = description
                await self.db.flush()
            return existing, False
        permission = await self.create(
            Permission(module=module, action=action, description=description)
        )
        return permission, True
