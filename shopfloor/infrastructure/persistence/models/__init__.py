from shopfloor.infrastructure.persistence.models.audit_log import AuditLog
from shopfloor.infrastructure.persistence.models.chat_message import ChatMessage
# Mixins for model composition
from shopfloor.infrastructure.persistence.models.mixins import (CreatedAtMixin, CuidMixin,
                                                                TimestampMixin)
from shopfloor.infrastructure.persistence.models.notification import Notification
from shopfloor.infrastructure.persistence.models.permission import (Permission,
                                                                    RolePermission,
                                                                    UserRole)
from shopfloor.infrastructure.persistence.models.refresh_token import RefreshToken
from shopfloor.infrastructure.persistence.models.role import Role
from shopfloor.infrastructure.persistence.models.time_tracking import (
    Break, TimeTrackingSettings, WorkSession)
from shopfloor.infrastructure.persistence.models.user import User

__all__ = [
    # Models
    "User",
    "Role",
    "Permission",
    "RolePermission",
    "UserRole",
    "RefreshToken",
    "Notification",
    "ChatMessage",
    "WorkSession",
    "Break",
    "TimeTrackingSettings",
    "AuditLog",
    # Mixins
    "CuidMixin",
    "CreatedAtMixin",
    "TimestampMixin",
]
