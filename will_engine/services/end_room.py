"""
End Room window.

The room is open iff ``scheduled_at <= now < scheduled_at + duration``.
The stored ``end_room_status`` column is only a cache of this function,
refreshed by the scheduler.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from ..core.clock import ensure_utc
from ..models.value_objects import EndRoomStatus

DEFAULT_DURATION = timedelta(minutes=30)


def end_room_status(
    scheduled_at: Optional[datetime],
    now: datetime,
    duration: timedelta = DEFAULT_DURATION,
) -> Optional[str]:
    """pending before the window, open during it, completed after; None if unscheduled."""
    if scheduled_at is None:
        return None
    return EndRoomWindow(ensure_utc(scheduled_at), duration).status_at(now)


@dataclass(frozen=True)
class EndRoomWindow:
    scheduled_at: datetime
    duration: timedelta = DEFAULT_DURATION

    @property
    def opens_at(self) -> datetime:
        return self.scheduled_at

    @property
    def closes_at(self) -> datetime:
        return self.scheduled_at + self.duration

    def status_at(self, now: datetime) -> str:
        now = ensure_utc(now)
        if now < self.opens_at:
            return EndRoomStatus.PENDING.value
        if now < self.closes_at:
            return EndRoomStatus.OPEN.value
        return EndRoomStatus.COMPLETED.value

    def is_open(self, now: datetime) -> bool:
        return self.status_at(now) == EndRoomStatus.OPEN.value

    def to_dict(self, now: datetime) -> Dict[str, Any]:
        status = self.status_at(now)
        return {
            "endRoomScheduledAt": self.scheduled_at.isoformat(),
            "endRoomStatus": status,
            "isOpen": status == EndRoomStatus.OPEN.value,
            "opensAt": self.opens_at.isoformat(),
            "closesAt": self.closes_at.isoformat(),
        }


def default_end_room_time(
    will_end: Optional[datetime], now: datetime, delay: timedelta
) -> datetime:
    """Auto-scheduled rooms open ``delay`` after the Will ends (or after now, if later)."""
    now = ensure_utc(now)
    base = max(ensure_utc(will_end), now) if will_end else now
    return base + delay


def is_valid_end_room_time(
    will_end: datetime, proposed: datetime, max_delay: timedelta
) -> bool:
    """A room must open after the Will ends and within ``max_delay`` of it."""
    will_end = ensure_utc(will_end)
    proposed = ensure_utc(proposed)
    return will_end < proposed <= will_end + max_delay
