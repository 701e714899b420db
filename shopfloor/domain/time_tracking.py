"""Duration arithmetic for work sessions and breaks. All durations are whole seconds."""

from datetime import datetime, timedelta

from shopfloor.shared.utils import ensure_utc


def elapsed_seconds(start: datetime, end: datetime) -> int:
    """Whole seconds between two instants, never negative"""
    return max(0, int((ensure_utc(end) - ensure_utc(start)).total_seconds()))


def session_work_seconds(start: datetime, end: datetime, break_seconds: int) -> int:
    """Wall time of a session minus its completed breaks"""
    return max(0, elapsed_seconds(start, end) - break_seconds)


def exceeds(start: datetime, end: datetime, limit: timedelta) -> bool:
    return ensure_utc(end) - ensure_utc(start) > limit
