"""UTC datetime utilities."""

from collections.abc import Callable
from datetime import datetime, timezone

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def seconds_between(start: datetime, end: datetime) -> int:
    """Whole seconds from start to end, floored, never negative."""
    return max(0, int((end - start).total_seconds()))
