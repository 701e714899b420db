"""
Authorization service.

Loads a user's aggregated permission map (cached in Redis) and evaluates
checks with the ordered rule chain from shopfloor.domain.authorization.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from shopfloor.domain.authorization import (Decision, Granted, PermissionEvaluator,
                                            PermissionKey, PermissionLevel,
                                            aggregate_permissions)
from shopfloor.infrastructure.cache.redis_cache import CacheService
from shopfloor.infrastructure.config.settings import get_settings
from shopfloor.infrastructure.persistence.repositories.user_repo import UserRepository
from shopfloor.shared.telemetry.logging import get_logger

logger = get_logger(__name__)

PERMISSIONS_CACHE_PREFIX = "permissions"


def build_evaluator() -> PermissionEvaluator:
    return PermissionEvaluator(admin_bypass=get_settings().authz_admin_bypass)


class AuthorizationService:
    def __init__(
        self,
        db: AsyncSession,
        cache_service: CacheService | None = None,
        evaluator: PermissionEvaluator | None = None,
    ) -> None:
        self.db = db
        self.cache = cache_service
        self.evaluator = evaluator or build_evaluator()
        self.user_repo = UserRepository(db, enable_audit=False)
        self.settings = get_settings()

    @staticmethod
    def _cache_key(user_id: str) -> str:
        return f"{PERMISSIONS_CACHE_PREFIX}:{user_id}"

    async def get_permissions(self, user_id: str) -> dict[str, int]:
        """Aggregated {"module.action": level} map for the user"""
        if self.cache:
            cached = await self.cache.get(self._cache_key(user_id))
            if cached is not None:
                return {key: int(value) for key, value in cached.items()}

        grants = await self.user_repo.get_permission_grants(user_id)
        permissions = aggregate_permissions(grants)

        if self.cache:
            await self.cache.set(
                self._cache_key(user_id), permissions, ttl=self.settings.cache_ttl_permissions
            )
        return permissions

    async def check(
        self,
        user_id: str,
        module: str,
        action: str,
        min_level: int = PermissionLevel.BASIC,
    ) -> Decision:
        permissions = await self.get_permissions(user_id)
        decision = self.evaluator.decide(permissions, PermissionKey(module, action), min_level)
        if isinstance(decision, Granted) and decision.rule == "admin_access":
            logger.info(
                "admin.access bypass granted %s.%s (level %s) to user %s",
                module,
                action,
                min_level,
                user_id,
            )
        return decision

    async def has_permission(
        self,
        user_id: str,
        module: str,
        action: str,
        min_level: int = PermissionLevel.BASIC,
    ) -> bool:
        return bool(await self.check(user_id, module, action, min_level))

    async def users_with_permission(
        self, module: str, action: str, min_level: int = PermissionLevel.BASIC
    ) -> list[str]:
        """Ids of active users whose permission map passes the check"""
        grants_by_user = await self.user_repo.get_all_active_grants()
        key = PermissionKey(module, action)
        return [
            user_id
            for user_id, grants in grants_by_user.items()
            if self.evaluator.decide(aggregate_permissions(grants), key, min_level)
        ]

    async def invalidate(self, user_id: str | None = None) -> None:
        """Drop cached maps for one user, or for everyone after a role change"""
        if not self.cache:
            return
        if user_id:
            await self.cache.delete(self._cache_key(user_id))
        else:
            await self.cache.delete_pattern(f"{PERMISSIONS_CACHE_PREFIX}:*")
