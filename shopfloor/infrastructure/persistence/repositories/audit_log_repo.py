from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shopfloor.infrastructure.persistence.models.audit_log import AuditLog
from shopfloor.infrastructure.persistence.repositories.base import BaseRepository


class AuditLogRepository(BaseRepository[AuditLog]):
    def __init__(self, db: AsyncSession):
        super().__init__(db, AuditLog)

    async def list_logs(
        self,
        module: str | None = None,
        user_id: str | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[list[AuditLog], int]:
        """Newest first, optionally filtered by module and acting user"""
        query = select(AuditLog)
        if module:
            query = query.where(AuditLog.module == module)
        if user_id:
            query = query.where(AuditLog.user_id == user_id)
        query = query.order_by(AuditLog.created_at.desc())
        return await self.paginate(query, skip, limit)
