"""Online roster and "hide my online status" state"""

from __future__ import annotations

import logging

from shopfloor.presentation.api.websocket.manager import ConnectionManager, get_connection_manager

logger = logging.getLogger(__name__)


class PresenceRegistry:
    """
    Who is online and who asked to be hidden.

    Online means at least one open socket in this process. The hidden set
    outlives the user's sockets, so a user who reconnects stays hidden until
    they toggle visibility back or the server restarts.
    """

    def __init__(self, manager: ConnectionManager | None = None) -> None:
        self.manager = manager or get_connection_manager()
        self.hidden_users: set[str] = set()

    def is_hidden(self, user_id: str) -> bool:
        return user_id in self.hidden_users

    def set_hidden(self, user_id: str, hidden: bool) -> None:
        if hidden:
            self.hidden_users.add(user_id)
        else:
            self.hidden_users.discard(user_id)
        logger.info(f"User {user_id} {'hid' if hidden else 'showed'} their online status")

    def visible_online_users(self) -> list[str]:
        return sorted(
            user_id
            for user_id in self.manager.online_user_ids()
            if user_id not in self.hidden_users
        )


_presence: PresenceRegistry | None = None


def get_presence_registry() -> PresenceRegistry:
    global _presence
    if _presence is None:
        _presence = PresenceRegistry()
    return _presence


def set_presence_registry(presence: PresenceRegistry | None) -> None:
    """Set the global presence registry (for testing)"""
    global _presence
    _presence = presence
