from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from shopfloor.application.services.role_service import RoleService
from shopfloor.infrastructure.cache.redis_cache import CacheService
from shopfloor.infrastructure.persistence.database import get_db, get_db_transactional
from shopfloor.presentation.api.dependencies import get_cache_service, require_permission
from shopfloor.presentation.api.v1.schemas.common import (Page, PageParams, PaginationMeta,
                                                           page_params)
from shopfloor.presentation.api.v1.schemas.role import RoleCreate, RoleResponse, RoleUpdate
from shopfloor.presentation.api.v1.schemas.token import TokenPayload

router = APIRouter()


@router.get("", response_model=Page[RoleResponse])
async def list_roles(
    current_user: Annotated[TokenPayload, Depends(require_permission("roles", "read"))],
    db: Annotated[AsyncSession, Depends(get_db)],
    paging: Annotated[PageParams, Depends(page_params)],
):
    """Roles with their permission map and the number of users holding them"""
    details, total = await RoleService(db).list_roles(paging.skip, paging.limit)
    return Page[RoleResponse](
        data=[RoleResponse.from_details(item) for item in details],
        pagination=PaginationMeta.build(total, paging.page, paging.limit),
    )


@router.get("/{role_id}", response_model=RoleResponse)
async def get_role(
    role_id: str,
    current_user: Annotated[TokenPayload, Depends(require_permission("roles", "read"))],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    return RoleResponse.from_details(await RoleService(db).get_role(role_id))


@router.post("", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
async def create_role(
    data: RoleCreate,
    current_user: Annotated[TokenPayload, Depends(require_permission("roles", "create"))],
    db: Annotated[AsyncSession, Depends(get_db_transactional)],
    cache: Annotated[CacheService, Depends(get_cache_service)],
):
    details = await RoleService(db, cache, actor_id=current_user.sub).create_role(
        data.name, data.description, data.permissions
    )
    return RoleResponse.from_details(details)


@router.put("/{role_id}", response_model=RoleResponse)
async def update_role(
    role_id: str,
    data: RoleUpdate,
    current_user: Annotated[TokenPayload, Depends(require_permission("roles", "update"))],
    db: Annotated[AsyncSession, Depends(get_db_transactional)],
    cache: Annotated[CacheService, Depends(get_cache_service)],
):
    """Update a role; a permissions map replaces all of its grants"""
    details = await RoleService(db, cache, actor_id=current_user.sub).update_role(
        role_id, data.name, data.description, data.permissions
    )
    return RoleResponse.from_details(details)


@router.delete("/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_role(
    role_id: str,
    current_user: Annotated[TokenPayload, Depends(require_permission("roles", "delete"))],
    db: Annotated[AsyncSession, Depends(get_db_transactional)],
    cache: Annotated[CacheService, Depends(get_cache_service)],
):
    await RoleService(db, cache, actor_id=current_user.sub).delete_role(role_id)
