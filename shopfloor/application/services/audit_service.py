"""
Audit trail for tracked mutations (roles, users, time tracking).

Entries are append-only rows in the audit_log table, written in the same
transaction as the change they describe.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from shopfloor.infrastructure.persistence.models.audit_log import AuditLog
from shopfloor.infrastructure.persistence.repositories.audit_log_repo import AuditLogRepository
from shopfloor.shared.enums import AuditAction
from shopfloor.shared.telemetry.logging import get_logger

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

REDACTED_FIELDS = frozenset({"hashed_password", "password", "token"})


class AuditService:
    def __init__(self, db: "AsyncSession") -> None:
        self.repo = AuditLogRepository(db)

    async def emit(
        self,
        module: str,
        action: AuditAction | str,
        target_id: str | None = None,
        user_id: str | None = None,
        meta: dict[str, Any] | None = None,
    ) -> AuditLog:
        """Record one audit entry; sensitive fields in meta are redacted"""
        action_value = action.value if isinstance(action, AuditAction) else action
        entry = AuditLog(
            module=module,
            action=action_value,
            target_id=target_id,
            user_id=user_id,
            meta=self._redact(meta or {}),
        )
        entry = await self.repo.create(entry)
        logger.debug("Audit %s.%s target=%s actor=%s", module, action_value, target_id, user_id)
        return entry

    @staticmethod
    def _redact(meta: dict[str, Any]) -> dict[str, Any]:
        return {
            key: "[REDACTED]" if key in REDACTED_FIELDS else value
            for key, value in meta.items()
        }
