"""Route guard: decides whether a view may render for the current session"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from shopfloor.client.session import AuthSession
from shopfloor.domain.authorization import PermissionKey, PermissionLevel, PermissionSpec

LOGIN_PATH = "/login"
UNAUTHORIZED_PATH = "/unauthorized"


class GuardState(str, Enum):
    CHECKING = "checking"
    UNAUTHENTICATED = "unauthenticated"
    UNAUTHORIZED = "unauthorized"
    AUTHORIZED = "authorized"


@dataclass(frozen=True)
class GuardResult:
    state: GuardState
    redirect: str | None = None

    @property
    def allowed(self) -> bool:
        return self.state is GuardState.AUTHORIZED


class RouteGuard:
    """
    Usage:
        guard = RouteGuard(session)
        result = guard.check("timeTracking.viewAll")
        result = guard.check(("timeTracking", "viewAll"), min_level=2)
    """

    def __init__(self, session: AuthSession) -> None:
        self.session = session

    def check(
        self, required: PermissionSpec | None = None, min_level: int = PermissionLevel.BASIC
    ) -> GuardResult:
        # Nothing renders and nothing redirects until the initial auth check is done
        if not self.session.is_ready or self.session.loading:
            return GuardResult(GuardState.CHECKING)
        if not self.session.is_authenticated:
            return GuardResult(GuardState.UNAUTHENTICATED, LOGIN_PATH)
        if required is None:
            return GuardResult(GuardState.AUTHORIZED)

        key = PermissionKey.parse(required)
        if self.session.has_permission(key.module, key.action, min_level):
            return GuardResult(GuardState.AUTHORIZED)
        return GuardResult(GuardState.UNAUTHORIZED, UNAUTHORIZED_PATH)
