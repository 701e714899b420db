"""
Shared enumerations for the Shopfloor application.

Permission levels live in shopfloor.domain.authorization as they are a domain concept.
"""

from enum import Enum


class NotificationType(str, Enum):
    """Notification category"""

    SYSTEM = "SYSTEM"
    PRODUCTION = "PRODUCTION"
    CHAT = "CHAT"

    @classmethod
    def values(cls) -> list[str]:
        """Get all valid values"""
        return [kind.value for kind in cls]


class AuditAction(str, Enum):
    """Audit action types for tracked entities"""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    ACTIVATED = "activated"
    DEACTIVATED = "deactivated"
    ROLES_ASSIGNED = "roles_assigned"
    SESSION_STARTED = "session_started"
    SESSION_ENDED = "session_ended"
    BREAK_STARTED = "break_started"
    BREAK_ENDED = "break_ended"
    NOTES_UPDATED = "notes_updated"
    SETTINGS_UPDATED = "settings_updated"

    @classmethod
    def values(cls) -> list[str]:
        """Get all valid values"""
        return [action.value for action in cls]


class RealtimeEventName(str, Enum):
    """Event names carried over the real-time channel"""

    CONNECTED = "connected"
    ACK = "ack"
    IDENTIFY = "identify"
    REGISTER = "register"
    PING = "ping"
    PONG = "pong"
    GET_ONLINE_USERS = "chat:getOnlineUsers"
    ONLINE_USERS = "chat:onlineUsers"
    TOGGLE_VISIBILITY = "chat:toggleVisibility"
    CHECK_VISIBILITY = "chat:checkVisibility"
    VISIBILITY_STATE = "chat:visibilityState"
    MESSAGE_SEND = "message:send"
    MESSAGE_RECEIVE = "message:receive"
    MESSAGE_READ = "message:read"
    MESSAGE_DELETE = "message:delete"
    MESSAGE_DELETED = "message:deleted"
    ERROR = "error"

    @classmethod
    def values(cls) -> list[str]:
        """Get all valid values"""
        return [name.value for name in cls]


NOTIFICATION_EVENT_PREFIX = "notification:"


def notification_event(user_id: str) -> str:
    """Per-user notification push event name"""
    return f"{NOTIFICATION_EVENT_PREFIX}{user_id}"


# Content a soft-deleted chat message is left with
DELETED_MESSAGE_CONTENT = "Message deleted"
