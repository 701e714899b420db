"""
Auditable Repository base class.

Extends BaseRepository with hooks that write an audit_log entry for every
create, update and delete of the entity.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, TypeVar

from shopfloor.infrastructure.persistence.database import Base
from shopfloor.infrastructure.persistence.repositories.base import BaseRepository
from shopfloor.shared.enums import AuditAction
from shopfloor.shared.telemetry.logging import get_logger

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from shopfloor.application.services.audit_service import AuditService

ModelType = TypeVar("ModelType", bound=Base)

logger = get_logger(__name__)


class AuditableRepository(BaseRepository[ModelType]):
    """
    Repository base class with automatic audit entries.

    Auditing is ENABLED BY DEFAULT.

    Subclasses must implement:
    - _get_module(): permission module the entity belongs to (e.g., "roles")
    - _serialize_for_audit(obj): Convert entity to dict for the audit entry
    """

    def __init__(
        self,
        db: "AsyncSession",
        model: type[ModelType],
        audit_service: "AuditService | None" = None,
        *,
        actor_id: str | None = None,
        enable_audit: bool = True,
    ):
        super().__init__(db, model)
        self._audit_service = audit_service
        self._audit_enabled = enable_audit
        self.actor_id = actor_id

    @property
    def audit_service(self) -> "AuditService | None":
        """Get the audit service, lazily initializing if needed."""
        if self._audit_service is None and self._audit_enabled:
            from shopfloor.application.services.audit_service import AuditService
            self._audit_service = AuditService(self.db)
        return self._audit_service

    def disable_auditing(self) -> None:
        self._audit_enabled = False

    @abstractmethod
    def _get_module(self) -> str:
        ...

    @abstractmethod
    def _serialize_for_audit(self, obj: ModelType) -> dict[str, Any]:
        ...

    async def _emit_audit_event(
        self,
        action: AuditAction,
        obj: ModelType,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        if not self._audit_enabled:
            return

        service = self.audit_service
        if service is None:
            return

        meta = self._serialize_for_audit(obj)
        if metadata:
            meta.update(metadata)
        try:
            await service.emit(
                module=self._get_module(),
                action=action,
                target_id=getattr(obj, "id", None),
                user_id=self.actor_id,
                meta=meta,
            )
        except Exception as e:
            # Log but don't fail the operation if auditing fails
            logger.warning(
                "Failed to write audit entry for %s.%s: %s",
                self._get_module(),
                action.value,
                str(e),
            )

    async def _on_after_create(self, obj: ModelType) -> None:
        await super()._on_after_create(obj)
        await self._emit_audit_event(AuditAction.CREATED, obj)

    async def _on_after_update(self, obj: ModelType) -> None:
        await super()._on_after_update(obj)
        await self._emit_audit_event(AuditAction.UPDATED, obj)

    async def _on_before_delete(self, obj: ModelType) -> None:
        await super()._on_before_delete(obj)
        await self._emit_audit_event(AuditAction.DELETED, obj)

    async def emit_custom_audit(
        self,
        obj: ModelType,
        action: AuditAction,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Emit a custom audit entry (e.g., deactivated, roles_assigned)."""
        await self._emit_audit_event(action, obj, metadata)
