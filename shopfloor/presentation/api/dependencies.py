from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from shopfloor.application.interfaces import BufferedNotifier, IRealtimeNotifier
from shopfloor.application.services.authorization_service import AuthorizationService
from shopfloor.domain.authorization import PermissionLevel
from shopfloor.domain.exceptions import PermissionDeniedError
from shopfloor.infrastructure.cache.redis_cache import CacheService
from shopfloor.infrastructure.persistence.database import get_db
from shopfloor.infrastructure.persistence.repositories.user_repo import UserRepository
from shopfloor.infrastructure.security.jwt import verify_token
from shopfloor.presentation.api.v1.schemas.token import TokenPayload
from shopfloor.presentation.api.websocket.dispatcher import get_realtime_dispatcher

security = HTTPBearer()

_cache_service: CacheService | None = None


async def get_cache_service() -> CacheService:
    """
    Cache service dependency (singleton)

    Returns global cache service instance.
    Initialized on app startup in main.py
    """
    global _cache_service
    if _cache_service is None:
        # Not connected until main.py calls connect(); every call then degrades to a miss
        _cache_service = CacheService()
    return _cache_service


def set_cache_service(cache_service: CacheService | None):
    """Set global cache service (called on app startup)"""
    global _cache_service
    _cache_service = cache_service


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> TokenPayload:
    """
    Validate the bearer access token and return its claims.

    Tokens of deactivated or deleted users are rejected even before they expire.
    """
    try:
        payload = verify_token(credentials.credentials)
        token_data = TokenPayload(**payload)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid authentication credentials: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    user = await UserRepository(db, enable_audit=False).get_by_id(token_data.sub)
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return token_data


async def get_authz_service(
    db: AsyncSession = Depends(get_db), cache: CacheService = Depends(get_cache_service)
) -> AuthorizationService:
    """Authorization service for manual permission checks, with caching"""
    return AuthorizationService(db, cache_service=cache)


def require_permission(module: str, action: str, min_level: int = PermissionLevel.BASIC):
    """
    Dependency factory for route-level permission checking.

    Usage:
        @router.post("/", dependencies=[Depends(require_permission("roles", "create"))])
        async def create_role(...):
            ...
    """

    async def permission_checker(
        user: TokenPayload = Depends(get_current_user),
        authz_service: AuthorizationService = Depends(get_authz_service),
    ) -> TokenPayload:
        decision = await authz_service.check(user.sub, module, action, min_level)
        if not decision:
            raise PermissionDeniedError(
                f"Permission denied: {module}.{action} level {int(min_level)} required",
                module=module,
                action=action,
                required_level=int(min_level),
                actual_level=decision.actual_level,
            )
        return user

    return permission_checker


async def get_realtime_notifier() -> IRealtimeNotifier:
    """Real-time delivery used by REST handlers (overridden in tests)"""
    return get_realtime_dispatcher()


async def commit_then_push(db: AsyncSession, buffered: BufferedNotifier) -> None:
    """Commit the request's work, then deliver the events it produced"""
    await db.commit()
    await buffered.flush()
