"""
Check-in store and progress reads.

Member-initiated writes of CheckIn rows, plus the aggregated progress that
read endpoints return. Nothing here touches Will.status.
"""

import logging
from typing import List

from ..domain.errors import DomainValidationError
from ..infrastructure.repositories import (
    SqlAlchemyCheckInRepository,
    SqlAlchemyCommitmentRepository,
    SqlAlchemyWillRepository,
)
from ..models.check_in import CheckIn
from ..models.value_objects import CheckInStatus, CheckInType, DateKey, WillStatus
from .base import StoreBackedService, require_commitment, require_will
from .progress import ProgressStats, compute_progress

logger = logging.getLogger(__name__)

# Check-ins are frozen once the Will has been closed out
_CLOSED_STATUSES = frozenset(
    {WillStatus.COMPLETED.value, WillStatus.ARCHIVED.value, WillStatus.TERMINATED.value}
)
CHECK_IN_STATUSES = frozenset(s.value for s in WillStatus) - _CLOSED_STATUSES

VALID_STATUSES = frozenset(s.value for s in CheckInStatus)


class CheckInService(StoreBackedService):
    """Records daily adherence and computes progress for a Will."""

    async def record_check_in(
        self, will_id: int, user_id: str, date_key: str, status: str
    ) -> CheckIn:
        """Upsert the check-in for (will_id, date_key).

        Raises:
            DomainValidationError: bad status or date, date outside
                [start, min(end, today)], or the Will is closed.
            AuthorizationError: caller has no commitment on the Will.
            WillNotFound: unknown Will.
        """
        if status not in VALID_STATUSES:
            raise DomainValidationError(
                f"Invalid check-in status {status!r}; must be one of {sorted(VALID_STATUSES)}"
            )
        try:
            day = DateKey.parse(date_key)
        except ValueError as e:
            raise DomainValidationError(str(e)) from e

        async with self._session() as session:
            wills = SqlAlchemyWillRepository(session)
            check_ins = SqlAlchemyCheckInRepository(session)

            will = await require_will(wills, will_id)
            await require_commitment(
                SqlAlchemyCommitmentRepository(session), will_id, user_id, "check in"
            )

            if will.status in _CLOSED_STATUSES:
                raise DomainValidationError(
                    f"Cannot check in on a Will that is {will.status}"
                )

            today = will.local_date(self._clock.now())
            last_day = min(will.end_day, today) if will.end_day else today
            if day.date < will.start_day:
                raise DomainValidationError(
                    f"Cannot check in for {day} before the Will started ({will.start_day})"
                )
            if day.date > today:
                raise DomainValidationError(f"Cannot check in for a future date ({day})")
            if day.date > last_day:
                raise DomainValidationError(
                    f"Cannot check in for {day} after the Will ended ({will.end_day})"
                )

            one_time = will.check_in_type == CheckInType.ONE_TIME.value
            check_in = await check_ins.upsert(
                will_id,
                str(day),
                status,
                user_id,
                will_statuses=CHECK_IN_STATUSES,
                single_date=one_time,
            )
            if check_in is None:
                await self._explain_refusal(wills, check_ins, will_id)
            await session.commit()

        logger.info(f"Check-in recorded: will {will_id} {day} = {status} by {user_id}")
        return check_in

    @staticmethod
    async def _explain_refusal(
        wills: SqlAlchemyWillRepository,
        check_ins: SqlAlchemyCheckInRepository,
        will_id: int,
    ) -> None:
        """Raise the reason a guarded upsert wrote nothing."""
        will = await require_will(wills, will_id)
        if will.status in _CLOSED_STATUSES:
            raise DomainValidationError(f"Cannot check in on a Will that is {will.status}")
        existing = await check_ins.list_for_will(will_id)
        raise DomainValidationError(
            "One-time Wills take a single check-in; "
            f"already recorded for {existing[0].date if existing else 'another day'}"
        )

    async def list_check_ins(self, will_id: int) -> List[CheckIn]:
        async with self._session() as session:
            await require_will(SqlAlchemyWillRepository(session), will_id)
            return await SqlAlchemyCheckInRepository(session).list_for_will(will_id)

    async def compute_progress(self, will_id: int) -> ProgressStats:
        async with self._session() as session:
            will = await require_will(SqlAlchemyWillRepository(session), will_id)
            rows = await SqlAlchemyCheckInRepository(session).list_for_will(will_id)

        return compute_progress(
            ((ci.date, ci.status) for ci in rows),
            start_day=will.start_day,
            end_day=will.end_day,
            today=will.local_date(self._clock.now()),
        )
