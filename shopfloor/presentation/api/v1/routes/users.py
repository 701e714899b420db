from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from shopfloor.application.services.user_service import UserService
from shopfloor.infrastructure.cache.redis_cache import CacheService
from shopfloor.infrastructure.persistence.database import get_db, get_db_transactional
from shopfloor.presentation.api.dependencies import (get_cache_service, get_current_user,
                                                      require_permission)
from shopfloor.presentation.api.v1.schemas.common import (MessageResponse, Page,
                                                           PageParams, PaginationMeta,
                                                           page_params)
from shopfloor.presentation.api.v1.schemas.role import RoleSummary
from shopfloor.presentation.api.v1.schemas.token import TokenPayload
from shopfloor.presentation.api.v1.schemas.user import (PasswordChange, UserCreate,
                                                         UserResponse, UserRolesUpdate,
                                                         UserUpdate, UserWithRoles)

router = APIRouter()


def _with_roles(user, roles) -> UserWithRoles:
    response = UserWithRoles.model_validate(user)
    response.roles = [RoleSummary.model_validate(role) for role in roles]
    return response


@router.get("", response_model=Page[UserResponse])
async def list_users(
    current_user: Annotated[TokenPayload, Depends(require_permission("users", "read"))],
    db: Annotated[AsyncSession, Depends(get_db)],
    paging: Annotated[PageParams, Depends(page_params)],
    search: Annotated[str | None, Query(description="Matches login, email or name")] = None,
):
    users, total = await UserService(db).users.list_users(search, paging.skip, paging.limit)
    return Page[UserResponse](
        data=[UserResponse.model_validate(user) for user in users],
        pagination=PaginationMeta.build(total, paging.page, paging.limit),
    )


@router.put("/me/password", response_model=MessageResponse)
async def change_my_password(
    data: PasswordChange,
    current_user: Annotated[TokenPayload, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_transactional)],
):
    """Change the caller's password; every refresh token of the caller is revoked"""
    await UserService(db, actor_id=current_user.sub).change_password(
        current_user.sub, data.current_password, data.new_password
    )
    return MessageResponse(message="Password changed")


@router.get("/{user_id}", response_model=UserWithRoles)
async def get_user(
    user_id: str,
    current_user: Annotated[TokenPayload, Depends(require_permission("users", "read"))],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    user, roles = await UserService(db).get_with_roles(user_id)
    return _with_roles(user, roles)


@router.post("", response_model=UserWithRoles, status_code=status.HTTP_201_CREATED)
async def create_user(
    data: UserCreate,
    current_user: Annotated[TokenPayload, Depends(require_permission("users", "create"))],
    db: Annotated[AsyncSession, Depends(get_db_transactional)],
    cache: Annotated[CacheService, Depends(get_cache_service)],
):
    service = UserService(db, cache, actor_id=current_user.sub)
    user = await service.create_user(**data.model_dump())
    user, roles = await service.get_with_roles(user.id)
    return _with_roles(user, roles)


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str,
    data: UserUpdate,
    current_user: Annotated[TokenPayload, Depends(require_permission("users", "update"))],
    db: Annotated[AsyncSession, Depends(get_db_transactional)],
):
    user = await UserService(db, actor_id=current_user.sub).update_user(
        user_id, **data.model_dump(exclude_unset=True)
    )
    return UserResponse.model_validate(user)


@router.delete("/{user_id}", response_model=UserResponse)
async def deactivate_user(
    user_id: str,
    current_user: Annotated[TokenPayload, Depends(require_permission("users", "delete"))],
    db: Annotated[AsyncSession, Depends(get_db_transactional)],
):
    """Deactivate (soft delete) a user and revoke their refresh tokens"""
    user = await UserService(db, actor_id=current_user.sub).deactivate(user_id)
    return UserResponse.model_validate(user)


@router.put("/{user_id}/roles", response_model=list[RoleSummary])
async def replace_user_roles(
    user_id: str,
    data: UserRolesUpdate,
    current_user: Annotated[TokenPayload, Depends(require_permission("users", "update"))],
    db: Annotated[AsyncSession, Depends(get_db_transactional)],
    cache: Annotated[CacheService, Depends(get_cache_service)],
):
    roles = await UserService(db, cache, actor_id=current_user.sub).assign_roles(
        user_id, data.role_ids
    )
    return [RoleSummary.model_validate(role) for role in roles]
