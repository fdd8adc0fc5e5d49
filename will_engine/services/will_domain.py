"""
Pure lifecycle rules for Wills.

No database, no clock, no I/O: the scheduler hands in a WillSnapshot and
the current instant and gets back at most one Transition.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Dict, FrozenSet, Optional

from ..core.clock import ensure_utc
from ..domain.errors import DomainValidationError
from ..models.value_objects import ActiveDays, WillMode, WillStatus

S = WillStatus

# Statuses with a forward transition the scheduler may apply
ADVANCING_STATUSES: FrozenSet[str] = frozenset(
    s.value for s in (S.PENDING, S.SCHEDULED, S.ACTIVE, S.WILL_REVIEW)
)

# Completed Wills never move again; the scheduler only keeps their cached
# End Room status in step with the window until the room is over.
ROOM_ONLY_STATUSES: FrozenSet[str] = frozenset({S.COMPLETED.value})

SCHEDULER_STATUSES: FrozenSet[str] = ADVANCING_STATUSES | ROOM_ONLY_STATUSES

# Statuses that block creating another Will in the same circle / solo slot
OPEN_STATUSES: FrozenSet[str] = frozenset(
    s.value for s in (S.PENDING, S.SCHEDULED, S.ACTIVE, S.WILL_REVIEW, S.PAUSED)
)

TERMINAL_STATUSES: FrozenSet[str] = frozenset({S.ARCHIVED.value, S.TERMINATED.value})

# Commitments can be created or edited only before the Will starts
EDITABLE_STATUSES: FrozenSet[str] = frozenset({S.PENDING.value, S.SCHEDULED.value})

PAUSABLE_STATUSES: FrozenSet[str] = frozenset(
    s.value for s in (S.PENDING, S.SCHEDULED, S.ACTIVE, S.WILL_REVIEW)
)

ALLOWED_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    S.PENDING.value: frozenset({S.SCHEDULED.value, S.PAUSED.value, S.TERMINATED.value}),
    S.SCHEDULED.value: frozenset({S.ACTIVE.value, S.PAUSED.value, S.TERMINATED.value}),
    S.ACTIVE.value: frozenset({S.WILL_REVIEW.value, S.PAUSED.value, S.TERMINATED.value}),
    S.WILL_REVIEW.value: frozenset({S.COMPLETED.value, S.PAUSED.value, S.TERMINATED.value}),
    S.COMPLETED.value: frozenset({S.ARCHIVED.value}),
    S.PAUSED.value: PAUSABLE_STATUSES | {S.TERMINATED.value},
    S.TERMINATED.value: frozenset({S.ARCHIVED.value}),
    S.ARCHIVED.value: frozenset(),
}


def is_transition_allowed(old_status: str, new_status: str) -> bool:
    return new_status in ALLOWED_TRANSITIONS.get(old_status, frozenset())


def assert_transition_allowed(old_status: str, new_status: str) -> None:
    if not is_transition_allowed(old_status, new_status):
        raise DomainValidationError(
            f"Cannot move a Will from {old_status} to {new_status}"
        )


@dataclass(frozen=True)
class Transition:
    old_status: str
    new_status: str
    reason: str


@dataclass(frozen=True)
class WillSnapshot:
    """Everything the lifecycle rules read about one Will at one instant."""

    will_id: int
    status: str
    mode: str
    start_date: datetime
    end_date: Optional[datetime]
    is_indefinite: bool
    schedule: ActiveDays
    today: date
    end_day: Optional[date]
    end_requested: bool
    member_count: int
    commitment_count: int
    review_count: int

    @classmethod
    def from_will(
        cls,
        will,
        now: datetime,
        member_count: int,
        commitment_count: int,
        review_count: int,
    ) -> "WillSnapshot":
        return cls(
            will_id=will.id,
            status=will.status,
            mode=will.mode,
            start_date=ensure_utc(will.start_date),
            end_date=ensure_utc(will.end_date) if will.end_date else None,
            is_indefinite=bool(will.is_indefinite),
            schedule=will.schedule,
            today=will.local_date(now),
            end_day=will.end_day,
            end_requested=will.end_requested_at is not None,
            member_count=member_count,
            commitment_count=commitment_count,
            review_count=review_count,
        )


def schedule_exhausted(schedule: ActiveDays, today: date, end_day: date) -> bool:
    """True when no active day is left in [today, end_day]."""
    day = today
    # A week covers every weekday, so there is no need to scan further
    for _ in range(7):
        if day > end_day:
            return True
        if schedule.includes(day):
            return False
        day += timedelta(days=1)
    return False


def decide_transition(snapshot: WillSnapshot, now: datetime) -> Optional[Transition]:
    """Return the single forward transition due for this Will, if any.

    Only the next step along pending -> scheduled -> active -> will_review
    -> completed is ever proposed, even when later conditions already hold.
    """
    s = snapshot
    now = ensure_utc(now)

    if s.status == S.PENDING.value:
        required = s.member_count if s.mode == WillMode.CIRCLE.value else 1
        if s.commitment_count >= max(required, 1):
            return Transition(s.status, S.SCHEDULED.value, "all members committed")
        return None

    if s.status == S.SCHEDULED.value:
        if now >= s.start_date:
            return Transition(s.status, S.ACTIVE.value, "start date reached")
        return None

    if s.status == S.ACTIVE.value:
        if s.end_requested:
            return Transition(s.status, S.WILL_REVIEW.value, "end requested")
        if s.is_indefinite or s.end_date is None:
            return None
        if now >= s.end_date:
            return Transition(s.status, S.WILL_REVIEW.value, "end date reached")
        if s.end_day is not None and schedule_exhausted(s.schedule, s.today, s.end_day):
            return Transition(s.status, S.WILL_REVIEW.value, "no active days remain")
        return None

    if s.status == S.WILL_REVIEW.value:
        if s.review_count >= s.commitment_count:
            return Transition(s.status, S.COMPLETED.value, "all reviews submitted")
        return None

    return None
