""" Repository module for the persistence layer. """

from shopfloor.infrastructure.persistence.repositories.audit_log_repo import AuditLogRepository
from shopfloor.infrastructure.persistence.repositories.base import BaseRepository
from shopfloor.infrastructure.persistence.repositories.chat_repo import ChatMessageRepository
from shopfloor.infrastructure.persistence.repositories.notification_repo import \
    NotificationRepository
from shopfloor.infrastructure.persistence.repositories.permission_repo import PermissionRepository
from shopfloor.infrastructure.persistence.repositories.refresh_token_repo import \
    RefreshTokenRepository
from shopfloor.infrastructure.persistence.repositories.role_repo import RoleRepository
from shopfloor.infrastructure.persistence.repositories.time_tracking_repo import (
    BreakRepository, TimeTrackingSettingsRepository, WorkSessionRepository)
from shopfloor.infrastructure.persistence.repositories.user_repo import UserRepository

__all__ = [
    "BaseRepository",
    "AuditLogRepository",
    "BreakRepository",
    "ChatMessageRepository",
    "NotificationRepository",
    "PermissionRepository",
    "RefreshTokenRepository",
    "RoleRepository",
    "TimeTrackingSettingsRepository",
    "UserRepository",
    "WorkSessionRepository",
]
