"""
Review gate.

Tracks per-member reviews and acknowledgments. It decides whether a Will
may close (every committed member reviewed) and whether the circle may
start a new Will (every committed member acknowledged the summary).
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import IntegrityError

from ..core.config import get_config_value
from ..domain.errors import DomainValidationError
from ..infrastructure.repositories import (
    SqlAlchemyAcknowledgmentRepository,
    SqlAlchemyCheckInRepository,
    SqlAlchemyCommitmentRepository,
    SqlAlchemyReviewRepository,
    SqlAlchemyWillRepository,
)
from ..models.review import Acknowledgment, Review
from ..models.value_objects import FollowThrough, WillStatus
from .base import StoreBackedService, require_commitment, require_will
from .progress import compute_progress

logger = logging.getLogger(__name__)

VALID_FOLLOW_THROUGH = frozenset(f.value for f in FollowThrough)


@dataclass(frozen=True)
class GateCounts:
    commitment_count: int
    review_count: int
    acknowledged_count: int

    @property
    def all_reviewed(self) -> bool:
        return self.review_count >= self.commitment_count

    @property
    def ready_for_new_will(self) -> bool:
        return self.acknowledged_count >= self.commitment_count


@dataclass(frozen=True)
class AcknowledgeResult:
    acknowledgment: Acknowledgment
    created: bool
    counts: GateCounts


class ReviewGate(StoreBackedService):
    """Review and acknowledgment bookkeeping for the close-out of a Will."""

    async def submit_review(
        self,
        will_id: int,
        user_id: str,
        follow_through: Optional[str] = None,
        reflection_text: Optional[str] = None,
    ) -> Review:
        """Create this member's review.

        ``follow_through`` defaults to the rating derived from the Will's
        check-in success rate when omitted.
        """
        if follow_through is not None and follow_through not in VALID_FOLLOW_THROUGH:
            raise DomainValidationError(
                f"Invalid followThrough {follow_through!r}; "
                f"must be one of {sorted(VALID_FOLLOW_THROUGH)}"
            )

        max_len = get_config_value("limits.reflection_text_max", 300)
        if reflection_text is not None:
            reflection_text = reflection_text.strip() or None
        if reflection_text and len(reflection_text) > max_len:
            raise DomainValidationError(
                f"Reflection must be {max_len} characters or fewer"
            )

        async with self._session() as session:
            wills = SqlAlchemyWillRepository(session)
            reviews = SqlAlchemyReviewRepository(session)

            will = await require_will(wills, will_id)
            if will.status != WillStatus.WILL_REVIEW.value:
                raise DomainValidationError(
                    f"Reviews can only be submitted while the Will is in review "
                    f"(current status: {will.status})"
                )
            await require_commitment(
                SqlAlchemyCommitmentRepository(session), will_id, user_id, "review this Will"
            )
            if await reviews.get(will_id, user_id) is not None:
                raise DomainValidationError("Review already submitted")

            if follow_through is None:
                rows = await SqlAlchemyCheckInRepository(session).list_for_will(will_id)
                stats = compute_progress(
                    ((ci.date, ci.status) for ci in rows),
                    start_day=will.start_day,
                    end_day=will.end_day,
                    today=will.local_date(self._clock.now()),
                )
                follow_through = stats.follow_through.value

            review = Review(
                will_id=will_id,
                user_id=user_id,
                follow_through=follow_through,
                reflection_text=reflection_text,
            )
            try:
                await reviews.add(review)
                await session.commit()
            except IntegrityError as e:
                # Lost a race with a concurrent submission from the same member
                await session.rollback()
                raise DomainValidationError("Review already submitted") from e

        logger.info(f"Review submitted: will {will_id} by {user_id} ({follow_through})")
        return review

    async def counts(self, will_id: int) -> GateCounts:
        async with self._session() as session:
            await require_will(SqlAlchemyWillRepository(session), will_id)
            return GateCounts(
                commitment_count=await SqlAlchemyCommitmentRepository(session).count_for_will(will_id),
                review_count=await SqlAlchemyReviewRepository(session).count_for_will(will_id),
                acknowledged_count=await SqlAlchemyAcknowledgmentRepository(session).count_for_will(will_id),
            )

    async def all_reviews_submitted(self, will_id: int) -> bool:
        """True iff every member with a commitment has a review."""
        return (await self.counts(will_id)).all_reviewed

    async def ready_for_new_will(self, will_id: int) -> bool:
        """True iff acknowledgments have caught up with commitments."""
        return (await self.counts(will_id)).ready_for_new_will

    async def acknowledge(self, will_id: int, user_id: str) -> AcknowledgeResult:
        """Record that this member has seen the final summary.

        Acknowledging twice returns the existing row.
        """
        async with self._session() as session:
            wills = SqlAlchemyWillRepository(session)
            acks = SqlAlchemyAcknowledgmentRepository(session)

            will = await require_will(wills, will_id)
            if will.status != WillStatus.COMPLETED.value:
                raise DomainValidationError(
                    f"Only completed Wills can be acknowledged (current status: {will.status})"
                )
            await require_commitment(
                SqlAlchemyCommitmentRepository(session), will_id, user_id, "acknowledge this Will"
            )

            created = False
            acknowledgment = await acks.get(will_id, user_id)
            if acknowledgment is None:
                try:
                    acknowledgment = await acks.add(
                        Acknowledgment(will_id=will_id, user_id=user_id)
                    )
                    await session.commit()
                    created = True
                except IntegrityError:
                    await session.rollback()
                    acknowledgment = await acks.get(will_id, user_id)

            counts = GateCounts(
                commitment_count=await SqlAlchemyCommitmentRepository(session).count_for_will(will_id),
                review_count=await SqlAlchemyReviewRepository(session).count_for_will(will_id),
                acknowledged_count=await acks.count_for_will(will_id),
            )

        if created:
            logger.info(
                f"Will {will_id} acknowledged by {user_id} "
                f"({counts.acknowledged_count}/{counts.commitment_count})"
            )
        return AcknowledgeResult(acknowledgment=acknowledgment, created=created, counts=counts)
