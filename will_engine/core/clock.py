"""
Clock sources.

Everything that needs "now" takes a ClockSource so tests can pin time.
Instants are always timezone-aware UTC.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes (as returned by SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SystemClock:
    """Wall clock."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, at: Optional[datetime] = None) -> None:
        self._now = ensure_utc(at) if at else datetime.now(timezone.utc)

    def now(self) -> datetime:
        return self._now

    def set(self, at: datetime) -> None:
        self._now = ensure_utc(at)

    def advance(self, **kwargs: float) -> datetime:
        """Move forward by timedelta keywords, e.g. advance(minutes=5)."""
        self._now = self._now + timedelta(**kwargs)
        return self._now
