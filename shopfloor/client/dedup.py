"""Session-scoped record of already applied message ids"""

from __future__ import annotations

from collections import OrderedDict


class ProcessedIds:
    """
    Bounded LRU set of server-provided ids.

    Every inbound chat message, from a REST fetch or a socket push, is checked
    here before it is applied, so a message that arrives both ways is shown
    once. The oldest ids are forgotten once ``capacity`` is exceeded.
    """

    def __init__(self, capacity: int = 5000) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._ids: OrderedDict[str, None] = OrderedDict()

    def is_processed(self, message_id: str) -> bool:
        if message_id in self._ids:
            self._ids.move_to_end(message_id)
            return True
        return False

    def mark_processed(self, message_id: str) -> None:
        self._ids[message_id] = None
        self._ids.move_to_end(message_id)
        while len(self._ids) > self.capacity:
            self._ids.popitem(last=False)

    def accept(self, message_id: str) -> bool:
        """Mark the id and return True if it had not been seen yet"""
        if self.is_processed(message_id):
            return False
        self.mark_processed(message_id)
        return True

    def clear(self) -> None:
        self._ids.clear()

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)
