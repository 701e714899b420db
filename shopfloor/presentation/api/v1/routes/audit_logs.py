from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from shopfloor.infrastructure.persistence.database import get_db
from shopfloor.infrastructure.persistence.repositories.audit_log_repo import AuditLogRepository
from shopfloor.presentation.api.dependencies import require_permission
from shopfloor.presentation.api.v1.schemas.audit_log import AuditLogResponse
from shopfloor.presentation.api.v1.schemas.common import (Page, PageParams, PaginationMeta,
                                                           page_params)
from shopfloor.presentation.api.v1.schemas.token import TokenPayload

router = APIRouter()


@router.get("", response_model=Page[AuditLogResponse])
async def list_audit_logs(
    current_user: Annotated[TokenPayload, Depends(require_permission("auditLogs", "read"))],
    db: Annotated[AsyncSession, Depends(get_db)],
    paging: Annotated[PageParams, Depends(page_params)],
    module: Annotated[str | None, Query()] = None,
    user_id: Annotated[str | None, Query(description="Acting user")] = None,
):
    logs, total = await AuditLogRepository(db).list_logs(module, user_id, paging.skip, paging.limit)
    return Page[AuditLogResponse](
        data=[AuditLogResponse.model_validate(log) for log in logs],
        pagination=PaginationMeta.build(total, paging.page, paging.limit),
    )
