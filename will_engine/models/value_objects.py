"""Domain value objects and enumerations."""

from __future__ import annotations

import enum
import re
from datetime import date
from typing import FrozenSet, Iterable, Optional, Tuple


class WillStatus(str, enum.Enum):
    PENDING = "pending"
    SCHEDULED = "scheduled"
    ACTIVE = "active"
    WILL_REVIEW = "will_review"
    COMPLETED = "completed"
    PAUSED = "paused"
    TERMINATED = "terminated"
    ARCHIVED = "archived"


class WillMode(str, enum.Enum):
    SOLO = "solo"
    CIRCLE = "circle"


class Visibility(str, enum.Enum):
    PRIVATE = "private"
    PUBLIC = "public"


class CheckInType(str, enum.Enum):
    DAILY = "daily"
    ONE_TIME = "one-time"


class CheckInStatus(str, enum.Enum):
    YES = "yes"
    NO = "no"
    PARTIAL = "partial"


class FollowThrough(str, enum.Enum):
    YES = "yes"
    MOSTLY = "mostly"
    NO = "no"


class EndRoomStatus(str, enum.Enum):
    PENDING = "pending"
    OPEN = "open"
    COMPLETED = "completed"


class DateKey:
    """Local calendar date in the zero-padded ``YYYY-MM-DD`` form.

    This is the join key between check-in rows and the active-day
    schedule, so anything else (times, unpadded parts) is rejected.
    """

    _RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

    __slots__ = ("_date",)

    def __init__(self, value: date) -> None:
        object.__setattr__(self, "_date", value)

    @classmethod
    def parse(cls, value: str) -> DateKey:
        if not isinstance(value, str) or not cls._RE.match(value):
            raise ValueError(f"Invalid date {value!r}; expected YYYY-MM-DD")
        try:
            return cls(date.fromisoformat(value))
        except ValueError as e:
            raise ValueError(f"Invalid date {value!r}: {e}") from e

    @property
    def date(self) -> date:
        return self._date

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError(f"{type(self).__name__} is immutable; cannot set {name!r}")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DateKey):
            return NotImplemented
        return self._date == other._date

    def __hash__(self) -> int:
        return hash(self._date)

    def __str__(self) -> str:
        return self._date.isoformat()

    def __repr__(self) -> str:
        return f"DateKey({str(self)!r})"


class ActiveDays:
    """Which weekdays a Will expects a check-in on.

    Stored as two columns: the kind (every_day, weekdays, custom) and, for
    custom, a comma-separated list of ISO weekday numbers (Monday=0).
    """

    EVERY_DAY = "every_day"
    WEEKDAYS = "weekdays"
    CUSTOM = "custom"
    VALID_KINDS = frozenset({EVERY_DAY, WEEKDAYS, CUSTOM})

    __slots__ = ("_kind", "_days")

    def __init__(self, kind: str = EVERY_DAY, days: Iterable[int] = ()) -> None:
        if kind not in self.VALID_KINDS:
            raise ValueError(
                f"Invalid active days {kind!r}; must be one of {sorted(self.VALID_KINDS)}"
            )
        if kind == self.EVERY_DAY:
            resolved: FrozenSet[int] = frozenset(range(7))
        elif kind == self.WEEKDAYS:
            resolved = frozenset(range(5))
        else:
            resolved = frozenset(days)
            if not resolved:
                raise ValueError("custom active days need at least one weekday")
            if any(d not in range(7) for d in resolved):
                raise ValueError(f"weekdays must be 0-6, got {sorted(resolved)}")
        object.__setattr__(self, "_kind", kind)
        object.__setattr__(self, "_days", resolved)

    @classmethod
    def from_columns(cls, kind: Optional[str], custom: Optional[str]) -> ActiveDays:
        kind = kind or cls.EVERY_DAY
        days = [int(d) for d in custom.split(",") if d.strip()] if custom else []
        return cls(kind, days)

    def to_columns(self) -> Tuple[str, Optional[str]]:
        if self._kind != self.CUSTOM:
            return self._kind, None
        return self._kind, ",".join(str(d) for d in sorted(self._days))

    @property
    def kind(self) -> str:
        return self._kind

    @property
    def weekdays(self) -> FrozenSet[int]:
        return self._days

    def includes(self, day: date) -> bool:
        return day.weekday() in self._days

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError(f"{type(self).__name__} is immutable; cannot set {name!r}")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ActiveDays):
            return NotImplemented
        return self._kind == other._kind and self._days == other._days

    def __hash__(self) -> int:
        return hash((self._kind, self._days))

    def __repr__(self) -> str:
        return f"ActiveDays({self._kind!r}, {sorted(self._days)})"
