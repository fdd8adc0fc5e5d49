"""
Will creation, commitments and administrative actions.

Member-facing writes that are not check-ins or reviews. Status changes
made here (pause, resume, archive, terminate) are compare-and-swap writes
through the repository, same as the scheduler's.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy.exc import IntegrityError

from ..core.clock import ensure_utc
from ..core.config import get_config_value, get_settings
from ..core.database import SessionFactory
from ..domain.errors import (
    AuthorizationError,
    CommitmentNotFound,
    DomainValidationError,
)
from ..domain.interfaces import ClockSource
from ..infrastructure.repositories import (
    SqlAlchemyAcknowledgmentRepository,
    SqlAlchemyCircleRepository,
    SqlAlchemyCommitmentRepository,
    SqlAlchemyReviewRepository,
    SqlAlchemyWillRepository,
)
from ..models.value_objects import (
    ActiveDays,
    CheckInType,
    Visibility,
    WillMode,
    WillStatus,
)
from ..models.will import Commitment, Will, WillScope
from .base import StoreBackedService, require_creator, require_will
from .end_room import EndRoomWindow, is_valid_end_room_time
from .will_domain import (
    EDITABLE_STATUSES,
    OPEN_STATUSES,
    PAUSABLE_STATUSES,
    TERMINAL_STATUSES,
    is_transition_allowed,
)
from .will_status import display_status

logger = logging.getLogger(__name__)


def end_room_duration() -> timedelta:
    return timedelta(minutes=get_config_value("end_room.duration_minutes", 30))


def clean_commitment_text(value: Optional[str], field: str) -> str:
    """Trim and bound a what/why field."""
    max_len = get_config_value("limits.commitment_text_max", 75)
    text = (value or "").strip()
    if not text:
        raise DomainValidationError(f"'{field}' is required")
    if len(text) > max_len:
        raise DomainValidationError(f"'{field}' must be {max_len} characters or fewer")
    return text


@dataclass
class WillDetails:
    """A Will as seen by one viewer."""

    will: Will
    commitments: List[Commitment]
    review_count: int
    acknowledged_count: int
    viewer_acknowledged: bool
    viewer_reviewed: bool
    end_room: Optional[EndRoomWindow]

    @property
    def commitment_count(self) -> int:
        return len(self.commitments)

    @property
    def display_status(self) -> str:
        return display_status(
            self.will.status,
            self.viewer_acknowledged,
            self.acknowledged_count,
            self.commitment_count,
        )

    @property
    def ready_for_new_will(self) -> bool:
        return self.acknowledged_count >= self.commitment_count

    def to_dict(self, now: datetime) -> Dict[str, Any]:
        will = self.will
        schedule = will.schedule
        return {
            "id": will.id,
            "mode": will.mode,
            "visibility": will.visibility,
            "circleId": will.circle_id,
            "createdBy": will.created_by,
            "status": will.status,
            "displayStatus": self.display_status,
            "startDate": ensure_utc(will.start_date).isoformat(),
            "endDate": ensure_utc(will.end_date).isoformat() if will.end_date else None,
            "isIndefinite": will.is_indefinite,
            "activeDays": schedule.kind,
            "customDays": sorted(schedule.weekdays) if schedule.kind == ActiveDays.CUSTOM else None,
            "checkInType": will.check_in_type,
            "timezone": will.timezone,
            "endRequestedAt": (
                ensure_utc(will.end_requested_at).isoformat() if will.end_requested_at else None
            ),
            "commitments": [
                {"id": c.id, "userId": c.user_id, "what": c.what, "why": c.why}
                for c in self.commitments
            ],
            "commitmentCount": self.commitment_count,
            "reviewCount": self.review_count,
            "acknowledgedCount": self.acknowledged_count,
            "hasAcknowledged": self.viewer_acknowledged,
            "hasReviewed": self.viewer_reviewed,
            "readyForNewWill": self.ready_for_new_will,
            "endRoom": self.end_room.to_dict(now) if self.end_room else None,
        }


class WillService(StoreBackedService):
    def __init__(
        self,
        session_factory: Optional[SessionFactory] = None,
        clock: Optional[ClockSource] = None,
        default_timezone: Optional[str] = None,
    ) -> None:
        super().__init__(session_factory, clock)
        self._default_timezone = default_timezone

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_will(
        self,
        user_id: str,
        mode: str,
        start_date: datetime,
        end_date: Optional[datetime] = None,
        is_indefinite: bool = False,
        visibility: str = Visibility.PRIVATE.value,
        active_days: str = ActiveDays.EVERY_DAY,
        custom_days: Iterable[int] = (),
        check_in_type: str = CheckInType.DAILY.value,
        timezone: Optional[str] = None,
        what: Optional[str] = None,
        why: Optional[str] = None,
    ) -> Will:
        """Create a Will after checking the new-Will gate for the creator's scope.

        Circle Wills start ``pending`` until every member has committed.
        Solo Wills carry the creator's commitment and start ``scheduled``,
        or ``active`` when the start has already passed.
        """
        if mode not in {m.value for m in WillMode}:
            raise DomainValidationError(f"Invalid mode {mode!r}")
        if visibility not in {v.value for v in Visibility}:
            raise DomainValidationError(f"Invalid visibility {visibility!r}")
        if check_in_type not in {t.value for t in CheckInType}:
            raise DomainValidationError(f"Invalid checkInType {check_in_type!r}")
        try:
            schedule = ActiveDays(active_days, custom_days)
        except ValueError as e:
            raise DomainValidationError(str(e)) from e

        zone_name = timezone or self._default_timezone or get_settings().default_timezone
        try:
            ZoneInfo(zone_name)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise DomainValidationError(f"Unknown timezone {zone_name!r}") from e

        start_date = ensure_utc(start_date)
        if is_indefinite:
            if end_date is not None:
                raise DomainValidationError("Indefinite Wills cannot have an end date")
        else:
            if end_date is None:
                raise DomainValidationError("End date is required unless the Will is indefinite")
            end_date = ensure_utc(end_date)
            if end_date <= start_date:
                raise DomainValidationError("End date must be after start date")

        commitment_text = None
        if mode == WillMode.SOLO.value or what is not None or why is not None:
            commitment_text = (
                clean_commitment_text(what, "what"),
                clean_commitment_text(why, "why"),
            )

        now = self._clock.now()
        async with self._session() as session:
            wills = SqlAlchemyWillRepository(session)
            circle_id = None
            if mode == WillMode.CIRCLE.value:
                circle = await SqlAlchemyCircleRepository(session).get_for_user(user_id)
                if circle is None:
                    raise DomainValidationError("You must be in a circle to create a circle Will")
                circle_id = circle.id
                initial_status = WillStatus.PENDING.value
            else:
                initial_status = (
                    WillStatus.ACTIVE.value if start_date <= now else WillStatus.SCHEDULED.value
                )

            scope = WillScope.key_for(circle_id, user_id)
            seen = await wills.current_for_scope(scope)
            await self._check_new_will_gate(session, wills, circle_id, user_id)

            kind, custom = schedule.to_columns()
            will = await wills.add(
                Will(
                    circle_id=circle_id,
                    created_by=user_id,
                    mode=mode,
                    visibility=visibility,
                    status=initial_status,
                    start_date=start_date,
                    end_date=end_date,
                    is_indefinite=is_indefinite,
                    active_days=kind,
                    custom_days=custom,
                    check_in_type=check_in_type,
                    timezone=zone_name,
                )
            )
            # The gate above read a snapshot; only one creator per snapshot wins
            if not await wills.claim_scope(scope, seen, will.id):
                raise DomainValidationError(
                    "Another Will was created here at the same time; reload and retry",
                    details={"scope": scope},
                )
            if commitment_text:
                await SqlAlchemyCommitmentRepository(session).add(
                    Commitment(
                        will_id=will.id,
                        user_id=user_id,
                        what=commitment_text[0],
                        why=commitment_text[1],
                    )
                )
            await session.commit()

        logger.info(f"Will {will.id} created by {user_id} ({mode}, {initial_status})")
        return will

    async def _check_new_will_gate(
        self, session, wills: SqlAlchemyWillRepository, circle_id: Optional[int], user_id: str
    ) -> None:
        scope = await wills.list_for_scope(circle_id=circle_id, created_by=user_id)
        commitments = SqlAlchemyCommitmentRepository(session)
        acks = SqlAlchemyAcknowledgmentRepository(session)
        for existing in scope:
            if existing.status in OPEN_STATUSES:
                raise DomainValidationError(
                    "There is already an open Will",
                    details={"will_id": existing.id, "status": existing.status},
                )
            if existing.status == WillStatus.COMPLETED.value:
                commitment_count = await commitments.count_for_will(existing.id)
                acknowledged_count = await acks.count_for_will(existing.id)
                if acknowledged_count < commitment_count:
                    raise DomainValidationError(
                        "Cannot create a new Will until every committed member "
                        "acknowledges the current one",
                        details={
                            "will_id": existing.id,
                            "requires_acknowledgment": True,
                            "acknowledged_count": acknowledged_count,
                            "commitment_count": commitment_count,
                        },
                    )

    # ------------------------------------------------------------------
    # Commitments
    # ------------------------------------------------------------------

    async def submit_commitment(
        self, will_id: int, user_id: str, what: str, why: str
    ) -> Commitment:
        what = clean_commitment_text(what, "what")
        why = clean_commitment_text(why, "why")

        async with self._session() as session:
            will = await require_will(SqlAlchemyWillRepository(session), will_id)
            commitments = SqlAlchemyCommitmentRepository(session)

            if will.status not in EDITABLE_STATUSES:
                raise DomainValidationError(
                    f"Commitments are closed once the Will is {will.status}"
                )
            if will.mode == WillMode.CIRCLE.value:
                circle = await SqlAlchemyCircleRepository(session).get_for_user(user_id)
                if circle is None or circle.id != will.circle_id:
                    raise AuthorizationError("Only circle members can commit to this Will")
            elif will.created_by != user_id:
                raise AuthorizationError("Only the creator can commit to a solo Will")

            if await commitments.get_for_member(will_id, user_id) is not None:
                raise DomainValidationError("You have already committed to this Will")

            try:
                commitment = await commitments.add_if_will_in(
                    will_id, user_id, what, why, EDITABLE_STATUSES
                )
            except IntegrityError as e:
                await session.rollback()
                raise DomainValidationError("You have already committed to this Will") from e
            if commitment is None:
                current = await require_will(SqlAlchemyWillRepository(session), will_id)
                raise DomainValidationError(
                    f"Commitments are closed once the Will is {current.status}"
                )
            await session.commit()

        logger.info(f"Commitment {commitment.id} submitted to will {will_id} by {user_id}")
        return commitment

    async def update_commitment(
        self, commitment_id: int, user_id: str, what: str, why: str
    ) -> Commitment:
        what = clean_commitment_text(what, "what")
        why = clean_commitment_text(why, "why")

        async with self._session() as session:
            commitments = SqlAlchemyCommitmentRepository(session)
            commitment = await commitments.get(commitment_id)
            if commitment is None:
                raise CommitmentNotFound(commitment_id)
            if commitment.user_id != user_id:
                raise AuthorizationError("You can only edit your own commitment")

            wills = SqlAlchemyWillRepository(session)
            will = await require_will(wills, commitment.will_id)
            if will.status in EDITABLE_STATUSES:
                if await commitments.update_text_if_will_in(
                    commitment, what, why, EDITABLE_STATUSES
                ):
                    await session.commit()
                    return commitment
                # Started between the read above and the write
                will = await require_will(wills, commitment.will_id)

            raise DomainValidationError(
                f"Commitments cannot be edited once the Will is {will.status}"
            )

    # ------------------------------------------------------------------
    # Editing and administrative status changes
    # ------------------------------------------------------------------

    async def update_will_dates(
        self,
        will_id: int,
        user_id: str,
        start_date: datetime,
        end_date: Optional[datetime] = None,
    ) -> Will:
        start_date = ensure_utc(start_date)
        if start_date <= self._clock.now():
            raise DomainValidationError("Start date must be in the future")

        async with self._session() as session:
            wills = SqlAlchemyWillRepository(session)
            will = await require_will(wills, will_id)
            require_creator(will, user_id, "update this Will")
            if will.status not in EDITABLE_STATUSES:
                raise DomainValidationError(f"Cannot modify a Will that is {will.status}")

            if will.is_indefinite:
                if end_date is not None:
                    raise DomainValidationError("Indefinite Wills cannot have an end date")
            else:
                if end_date is None:
                    raise DomainValidationError("End date is required")
                end_date = ensure_utc(end_date)
                if end_date <= start_date:
                    raise DomainValidationError("End date must be after start date")

            await wills.update_fields(will_id, start_date=start_date, end_date=end_date)
            await session.commit()
            will = await wills.get(will_id)

        logger.info(f"Will {will_id} dates updated by {user_id}")
        return will

    async def _cas_status(
        self,
        wills: SqlAlchemyWillRepository,
        will: Will,
        new_status: str,
        **values: Any,
    ) -> None:
        if not is_transition_allowed(will.status, new_status):
            raise DomainValidationError(
                f"Cannot move a Will from {will.status} to {new_status}"
            )
        applied = await wills.transition_status(will.id, will.status, new_status, **values)
        if not applied:
            raise DomainValidationError(
                "The Will changed while this request was processed; reload and retry"
            )

    async def delete_will(self, will_id: int, user_id: str) -> None:
        """Soft delete: the Will becomes ``terminated``; its rows are kept."""
        async with self._session() as session:
            wills = SqlAlchemyWillRepository(session)
            will = await require_will(wills, will_id)
            require_creator(will, user_id, "delete this Will")
            if will.status in TERMINAL_STATUSES or will.status == WillStatus.COMPLETED.value:
                raise DomainValidationError(f"Cannot delete a Will that is {will.status}")
            old_status = will.status
            await self._cas_status(wills, will, WillStatus.TERMINATED.value)
            await session.commit()

        logger.info(f"Will {will_id} terminated by {user_id} (was {old_status})")

    async def pause(self, will_id: int, user_id: str) -> None:
        async with self._session() as session:
            wills = SqlAlchemyWillRepository(session)
            will = await require_will(wills, will_id)
            require_creator(will, user_id, "pause this Will")
            if will.status not in PAUSABLE_STATUSES:
                raise DomainValidationError(f"Cannot pause a Will that is {will.status}")
            await self._cas_status(
                wills, will, WillStatus.PAUSED.value, paused_from=will.status
            )
            await session.commit()

        logger.info(f"Will {will_id} paused by {user_id}")

    async def resume(self, will_id: int, user_id: str) -> str:
        """Return the Will to the status it was paused from."""
        async with self._session() as session:
            wills = SqlAlchemyWillRepository(session)
            will = await require_will(wills, will_id)
            require_creator(will, user_id, "resume this Will")
            if will.status != WillStatus.PAUSED.value:
                raise DomainValidationError("Only paused Wills can be resumed")
            target = will.paused_from or WillStatus.PENDING.value
            await self._cas_status(wills, will, target, paused_from=None)
            await session.commit()

        logger.info(f"Will {will_id} resumed by {user_id} into {target}")
        return target

    async def archive(self, will_id: int, user_id: str) -> None:
        async with self._session() as session:
            wills = SqlAlchemyWillRepository(session)
            will = await require_will(wills, will_id)
            require_creator(will, user_id, "archive this Will")
            await self._cas_status(wills, will, WillStatus.ARCHIVED.value)
            await session.commit()

        logger.info(f"Will {will_id} archived by {user_id}")

    async def request_end(self, will_id: int, user_id: str) -> Will:
        """Ask the scheduler to end an indefinite Will on its next tick."""
        async with self._session() as session:
            wills = SqlAlchemyWillRepository(session)
            will = await require_will(wills, will_id)
            if await SqlAlchemyCommitmentRepository(session).get_for_member(will_id, user_id) is None:
                raise AuthorizationError("Only members with a commitment can end this Will")
            if not will.is_indefinite:
                raise DomainValidationError("Only indefinite Wills can be ended early")
            if will.status != WillStatus.ACTIVE.value:
                raise DomainValidationError(f"Cannot end a Will that is {will.status}")

            if will.end_requested_at is None:
                await wills.update_fields(will_id, end_requested_at=self._clock.now())
                await session.commit()
                will = await wills.get(will_id)
                logger.info(f"End requested for will {will_id} by {user_id}")

        return will

    # ------------------------------------------------------------------
    # End Room
    # ------------------------------------------------------------------

    async def schedule_end_room(
        self, will_id: int, user_id: str, scheduled_at: datetime
    ) -> EndRoomWindow:
        """Set the End Room instant; it must fall after the Will ends and within the allowed delay."""
        scheduled_at = ensure_utc(scheduled_at)
        max_delay = timedelta(hours=get_config_value("end_room.max_delay_hours", 48))

        async with self._session() as session:
            wills = SqlAlchemyWillRepository(session)
            will = await require_will(wills, will_id)
            require_creator(will, user_id, "schedule the End Room")
            if will.mode != WillMode.CIRCLE.value:
                raise DomainValidationError("End Rooms are only held for circle Wills")
            if will.status in TERMINAL_STATUSES or will.status == WillStatus.COMPLETED.value:
                raise DomainValidationError(f"Cannot schedule an End Room for a {will.status} Will")

            will_end = will.end_date or will.end_requested_at
            if will_end is None:
                raise DomainValidationError("The Will has no end yet")
            if not is_valid_end_room_time(will_end, scheduled_at, max_delay):
                raise DomainValidationError(
                    "End Room must start after the Will ends and within "
                    f"{int(max_delay.total_seconds() // 3600)} hours of it"
                )

            # The cached status is cleared; the scheduler recomputes it
            await wills.update_fields(
                will_id, end_room_scheduled_at=scheduled_at, end_room_status=None
            )
            await session.commit()

        logger.info(f"End Room for will {will_id} set to {scheduled_at.isoformat()}")
        return EndRoomWindow(scheduled_at, end_room_duration())

    async def get_end_room(self, will_id: int, user_id: str) -> Optional[EndRoomWindow]:
        async with self._session() as session:
            will = await require_will(SqlAlchemyWillRepository(session), will_id)
            await self._require_viewer(session, will, user_id)
        if will.end_room_scheduled_at is None:
            return None
        return EndRoomWindow(ensure_utc(will.end_room_scheduled_at), end_room_duration())

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def ensure_viewer(self, will_id: int, user_id: str) -> None:
        """Raise unless the caller may read this Will."""
        async with self._session() as session:
            will = await require_will(SqlAlchemyWillRepository(session), will_id)
            await self._require_viewer(session, will, user_id)

    async def _require_viewer(self, session, will: Will, user_id: str) -> None:
        if will.created_by == user_id or will.visibility == Visibility.PUBLIC.value:
            return
        if await SqlAlchemyCommitmentRepository(session).get_for_member(will.id, user_id):
            return
        if will.circle_id is not None:
            circle = await SqlAlchemyCircleRepository(session).get_for_user(user_id)
            if circle is not None and circle.id == will.circle_id:
                return
        raise AuthorizationError("You do not have access to this Will")

    async def get_will_details(self, will_id: int, user_id: str) -> WillDetails:
        async with self._session() as session:
            will = await require_will(SqlAlchemyWillRepository(session), will_id)
            await self._require_viewer(session, will, user_id)

            acks = SqlAlchemyAcknowledgmentRepository(session)
            reviews = SqlAlchemyReviewRepository(session)
            details = WillDetails(
                will=will,
                commitments=await SqlAlchemyCommitmentRepository(session).list_for_will(will_id),
                review_count=await reviews.count_for_will(will_id),
                acknowledged_count=await acks.count_for_will(will_id),
                viewer_acknowledged=await acks.get(will_id, user_id) is not None,
                viewer_reviewed=await reviews.get(will_id, user_id) is not None,
                end_room=(
                    EndRoomWindow(ensure_utc(will.end_room_scheduled_at), end_room_duration())
                    if will.end_room_scheduled_at
                    else None
                ),
            )
        return details
