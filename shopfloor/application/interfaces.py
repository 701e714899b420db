"""
Application layer interfaces (ports).

These protocols define the contracts between the application layer and the
delivery mechanisms it pushes through.
"""

from typing import Any, Protocol


class IRealtimeNotifier(Protocol):
    """Pushes an event to every open socket of a user"""

    async def emit(self, user_id: str, event: str, data: Any = None) -> None:
        ...


class NullNotifier:
    """Notifier used where no real-time delivery is wired (scripts, some tests)"""

    async def emit(self, user_id: str, event: str, data: Any = None) -> None:
        return None


class BufferedNotifier:
    """
    Collects events and delivers them through another notifier on flush().

    Used when the events describe rows that are not committed yet: flush after
    the commit so that receivers never read ahead of the database.
    """

    def __init__(self, target: IRealtimeNotifier) -> None:
        self.target = target
        self.pending: list[tuple[str, str, Any]] = []

    async def emit(self, user_id: str, event: str, data: Any = None) -> None:
        self.pending.append((user_id, event, data))

    async def flush(self) -> int:
        pending, self.pending = self.pending, []
        for user_id, event, data in pending:
            await self.target.emit(user_id, event, data)
        return len(pending)

    def discard(self) -> None:
        self.pending.clear()
