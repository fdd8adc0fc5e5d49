"""
Check-in aggregation.

Turns a Will's check-in rows into the progress statistics shown to members
and used as the default follow-through rating on review.

Streak rule: check-ins are scanned in ascending date order; ``yes`` and
``partial`` extend the run, ``no`` resets it. A day without any check-in
does not reset the run. This matches what members have always been shown
and is pinned by tests; change it only with a product decision.
"""

from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Iterable, Optional, Tuple, Union

from ..models.value_objects import CheckInStatus, FollowThrough

FOLLOW_THROUGH_YES_THRESHOLD = 80
FOLLOW_THROUGH_MOSTLY_THRESHOLD = 50

CheckInRow = Tuple[Union[str, date], str]


@dataclass(frozen=True)
class ProgressStats:
    total_days: int
    checked_in_days: int
    yes_count: int
    partial_count: int
    no_count: int
    success_rate: int
    best_streak: int
    current_streak: int

    @property
    def follow_through(self) -> FollowThrough:
        return derive_follow_through(self.success_rate)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalDays": self.total_days,
            "checkedInDays": self.checked_in_days,
            "successRate": self.success_rate,
            "yesCount": self.yes_count,
            "partialCount": self.partial_count,
            "noCount": self.no_count,
            "streak": self.current_streak,
            "bestStreak": self.best_streak,
            "currentStreak": self.current_streak,
        }


def count_total_days(start_day: date, end_day: Optional[date], today: date) -> int:
    """Inclusive day span from start to min(end, today); never below 1."""
    last = min(end_day, today) if end_day else today
    return max(1, (last - start_day).days + 1)


def success_rate(yes_count: int, partial_count: int, checked_in_days: int) -> int:
    """round(100 * (yes + 0.5 * partial) / checked), halves rounded up."""
    if checked_in_days <= 0:
        return 0
    doubled_score = 2 * yes_count + partial_count
    # Integer form of floor(x + 0.5) with x = 100 * doubled / (2 * checked)
    return (100 * doubled_score + checked_in_days) // (2 * checked_in_days)


def derive_follow_through(rate: int) -> FollowThrough:
    if rate >= FOLLOW_THROUGH_YES_THRESHOLD:
        return FollowThrough.YES
    if rate >= FOLLOW_THROUGH_MOSTLY_THRESHOLD:
        return FollowThrough.MOSTLY
    return FollowThrough.NO


def compute_progress(
    check_ins: Iterable[CheckInRow],
    start_day: date,
    end_day: Optional[date],
    today: date,
) -> ProgressStats:
    """Aggregate (date, status) rows; dates may be date objects or YYYY-MM-DD keys."""
    rows = sorted(
        ((d if isinstance(d, date) else date.fromisoformat(d), status) for d, status in check_ins),
        key=lambda row: row[0],
    )

    yes_count = partial_count = no_count = 0
    best = current = 0
    for _, status in rows:
        if status == CheckInStatus.YES.value:
            yes_count += 1
        elif status == CheckInStatus.PARTIAL.value:
            partial_count += 1
        elif status == CheckInStatus.NO.value:
            no_count += 1
        else:
            continue

        if status == CheckInStatus.NO.value:
            current = 0
        else:
            current += 1
            best = max(best, current)

    checked = yes_count + partial_count + no_count
    return ProgressStats(
        total_days=count_total_days(start_day, end_day, today),
        checked_in_days=checked,
        yes_count=yes_count,
        partial_count=partial_count,
        no_count=no_count,
        success_rate=success_rate(yes_count, partial_count, checked),
        best_streak=best,
        current_streak=current,
    )
