from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from shopfloor.application.services.role_service import RoleService
from shopfloor.infrastructure.persistence.database import get_db
from shopfloor.presentation.api.dependencies import require_permission
from shopfloor.presentation.api.v1.schemas.role import PermissionResponse
from shopfloor.presentation.api.v1.schemas.token import TokenPayload

router = APIRouter()


@router.get("", response_model=dict[str, list[PermissionResponse]])
async def list_permissions(
    current_user: Annotated[TokenPayload, Depends(require_permission("permissions", "read"))],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Permission catalog grouped by module"""
    grouped = await RoleService(db).grouped_permissions()
    return {
        module: [PermissionResponse.model_validate(item) for item in items]
        for module, items in grouped.items()
    }
