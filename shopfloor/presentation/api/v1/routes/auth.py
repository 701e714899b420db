import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from shopfloor.application.services.auth_service import AuthService
from shopfloor.application.services.authorization_service import AuthorizationService
from shopfloor.infrastructure.config.settings import get_settings
from shopfloor.infrastructure.persistence.database import get_db, get_db_transactional
from shopfloor.presentation.api.dependencies import get_authz_service, get_current_user
from shopfloor.presentation.api.v1.schemas.role import RoleSummary
from shopfloor.presentation.api.v1.schemas.token import (LoginRequest, LogoutRequest,
                                                          RefreshRequest, TokenPayload,
                                                          TokenResponse)
from shopfloor.presentation.api.v1.schemas.user import (LoginResponse, MeResponse,
                                                         UserResponse)
from shopfloor.presentation.middleware.rate_limit import limiter

router = APIRouter()
settings = get_settings()
logger = logging.getLogger(__name__)


@router.post("/login", response_model=LoginResponse)
@limiter.limit(settings.login_rate_limit)
async def login(
    request: Request,  # Required by slowapi (extracts remote address)
    credentials: LoginRequest,
    db: Annotated[AsyncSession, Depends(get_db_transactional)],
):
    """
    Exchange login and password for an access/refresh token pair.

    Unknown logins, wrong passwords and inactive accounts all answer 401
    "Invalid credentials".
    """
    user, tokens = await AuthService(db).login(credentials.login, credentials.password)
    return LoginResponse(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        token_type=tokens.token_type,
        user=UserResponse.model_validate(user),
    )


@router.post("/refresh", response_model=TokenResponse)
async def refresh(
    data: RefreshRequest,
    db: Annotated[AsyncSession, Depends(get_db_transactional)],
):
    """Rotate a refresh token: the presented token is revoked and a new pair issued"""
    tokens = await AuthService(db).refresh(data.refresh_token)
    return TokenResponse(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        token_type=tokens.token_type,
    )


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    current_user: Annotated[TokenPayload, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_transactional)],
    data: LogoutRequest | None = None,
):
    await AuthService(db).logout(data.refresh_token if data else None, current_user.sub)
    logger.info("User %s logged out", current_user.sub)


@router.get("/me", response_model=MeResponse)
async def me(
    current_user: Annotated[TokenPayload, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    authz: Annotated[AuthorizationService, Depends(get_authz_service)],
):
    """Current user with roles and the aggregated {"module.action": level} map"""
    permissions = await authz.get_permissions(current_user.sub)
    profile = await AuthService(db).profile(current_user.sub, permissions)
    return MeResponse(
        user=UserResponse.model_validate(profile.user),
        roles=[RoleSummary.model_validate(role) for role in profile.roles],
        permissions=profile.permissions,
    )
