"""
Lifecycle scheduler.

A single periodic task shared by all Wills. Each tick reads one instant
from the clock, loads every Will that can still move (and completed Wills
whose End Room is not over yet), and for each one:

1. refreshes the cached End Room status from the window function;
2. applies at most one forward status transition as a conditional write;
3. commits, then dispatches one notification per applied change.

Each Will is handled in its own session so a failure on one never blocks
the others; the failed Will is simply picked up again next tick.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from ..core.config import get_config_value
from ..core.database import SessionFactory
from ..domain.events import EndRoomStatusChanged, WillStatusChanged
from ..domain.interfaces import ClockSource, NotificationDispatcher
from ..infrastructure.repositories import (
    SqlAlchemyCircleRepository,
    SqlAlchemyCommitmentRepository,
    SqlAlchemyReviewRepository,
    SqlAlchemyWillRepository,
)
from ..models.value_objects import WillMode, WillStatus
from ..utils.logging import get_lifecycle_logger, log_tick_summary, log_transition
from .base import StoreBackedService
from .end_room import default_end_room_time, end_room_status
from .will_domain import (
    ADVANCING_STATUSES,
    ROOM_ONLY_STATUSES,
    SCHEDULER_STATUSES,
    WillSnapshot,
    assert_transition_allowed,
    decide_transition,
)

logger = logging.getLogger(__name__)


@dataclass
class TickReport:
    started_at: datetime
    evaluated: int = 0
    transitions: List[WillStatusChanged] = field(default_factory=list)
    end_room_updates: List[EndRoomStatusChanged] = field(default_factory=list)
    failed: List[int] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "evaluated": self.evaluated,
            "transitions": len(self.transitions),
            "end_room_updates": len(self.end_room_updates),
            "failed": list(self.failed),
        }


class LifecycleScheduler(StoreBackedService):
    """Advances Will statuses; the only writer of status and End Room cache."""

    def __init__(
        self,
        session_factory: Optional[SessionFactory] = None,
        clock: Optional[ClockSource] = None,
        notifier: Optional[NotificationDispatcher] = None,
        interval_seconds: int = 60,
        end_room_duration: Optional[timedelta] = None,
        end_room_delay: Optional[timedelta] = None,
        auto_schedule_end_room: Optional[bool] = None,
    ) -> None:
        super().__init__(session_factory, clock)
        self._notifier = notifier
        self._interval = interval_seconds
        self._end_room_duration = end_room_duration or timedelta(
            minutes=get_config_value("end_room.duration_minutes", 30)
        )
        self._end_room_delay = end_room_delay or timedelta(
            minutes=get_config_value("end_room.delay_minutes", 60)
        )
        self._auto_schedule_end_room = (
            auto_schedule_end_room
            if auto_schedule_end_room is not None
            else bool(get_config_value("end_room.auto_schedule", True))
        )
        self._lifecycle_log = get_lifecycle_logger()
        self._running = False
        self.last_tick: Optional[TickReport] = None

    @property
    def is_running(self) -> bool:
        return self._running

    async def tick(self) -> TickReport:
        """Evaluate every schedulable Will once against a single ``now``."""
        now = self._clock.now()
        report = TickReport(started_at=now)

        async with self._session() as session:
            will_ids = await SqlAlchemyWillRepository(session).list_ids_for_tick(
                ADVANCING_STATUSES, ROOM_ONLY_STATUSES
            )

        for will_id in will_ids:
            report.evaluated += 1
            try:
                events = await self._evaluate_will(will_id, now)
            except Exception as e:
                logger.error(
                    f"Lifecycle evaluation failed for will {will_id}: {type(e).__name__}: {e}",
                    exc_info=True,
                )
                report.failed.append(will_id)
                continue

            for event in events:
                if isinstance(event, WillStatusChanged):
                    report.transitions.append(event)
                else:
                    report.end_room_updates.append(event)
                await self._notify(event)

        self.last_tick = report
        if report.transitions or report.end_room_updates or report.failed:
            log_tick_summary(report.to_dict(), self._lifecycle_log)
        return report

    async def _evaluate_will(self, will_id: int, now: datetime) -> List[Any]:
        events: List[Any] = []

        async with self._session() as session:
            wills = SqlAlchemyWillRepository(session)
            will = await wills.get(will_id)
            if will is None or will.status not in SCHEDULER_STATUSES:
                return events

            cached = will.end_room_status
            current = end_room_status(
                will.end_room_scheduled_at, now, self._end_room_duration
            )
            if current is not None and current != cached:
                if await wills.refresh_end_room_status(will.id, cached, current):
                    events.append(
                        EndRoomStatusChanged(will.id, cached, current, occurred_at=now)
                    )

            if will.status not in ADVANCING_STATUSES:
                await session.commit()
                return events

            if will.mode == WillMode.CIRCLE.value and will.circle_id is not None:
                member_count = await SqlAlchemyCircleRepository(session).member_count(
                    will.circle_id
                )
            else:
                member_count = 1

            snapshot = WillSnapshot.from_will(
                will,
                now,
                member_count=member_count,
                commitment_count=await SqlAlchemyCommitmentRepository(session).count_for_will(will.id),
                review_count=await SqlAlchemyReviewRepository(session).count_for_will(will.id),
            )
            transition = decide_transition(snapshot, now)

            if transition is not None:
                assert_transition_allowed(transition.old_status, transition.new_status)
                values: Dict[str, Any] = {}
                if self._should_schedule_end_room(will, transition.new_status):
                    scheduled_at = default_end_room_time(
                        will.end_date, now, self._end_room_delay
                    )
                    values["end_room_scheduled_at"] = scheduled_at
                    values["end_room_status"] = end_room_status(
                        scheduled_at, now, self._end_room_duration
                    )

                applied = await wills.transition_status(
                    will.id,
                    transition.old_status,
                    transition.new_status,
                    require_all_reviewed=transition.new_status == WillStatus.COMPLETED.value,
                    **values,
                )
                if applied:
                    events.append(
                        WillStatusChanged(
                            will.id,
                            transition.old_status,
                            transition.new_status,
                            occurred_at=now,
                        )
                    )
                    log_transition(
                        will.id,
                        transition.old_status,
                        transition.new_status,
                        transition.reason,
                        self._lifecycle_log,
                        end_room_scheduled_at=(
                            values["end_room_scheduled_at"].isoformat() if values else None
                        ),
                    )

            await session.commit()

        return events

    def _should_schedule_end_room(self, will, new_status: str) -> bool:
        return (
            self._auto_schedule_end_room
            and new_status == WillStatus.WILL_REVIEW.value
            and will.mode == WillMode.CIRCLE.value
            and will.end_room_scheduled_at is None
        )

    async def _notify(self, event: Any) -> None:
        """Fire-and-forget: delivery problems never undo a committed transition."""
        if self._notifier is None:
            return
        try:
            await self._notifier.dispatch(event)
        except Exception as e:
            logger.error(
                f"Notification dispatch failed for will {event.will_id}: {e}",
                exc_info=True,
            )

    async def run_forever(self) -> None:
        """Tick every ``interval_seconds`` until cancelled."""
        logger.info(f"Lifecycle scheduler started (interval {self._interval}s)")
        self._running = True
        try:
            while True:
                try:
                    await self.tick()
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    # Store unreachable for the whole tick; try again next interval
                    logger.error(f"Lifecycle tick failed: {e}", exc_info=True)
                await asyncio.sleep(self._interval)
        except asyncio.CancelledError:
            logger.info("Lifecycle scheduler cancelled")
            raise
        finally:
            self._running = False
