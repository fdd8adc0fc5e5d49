"""SQLAlchemy implementations of ReviewRepository and AcknowledgmentRepository."""

from typing import List, Optional

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ...models.review import Acknowledgment, Review
from ...models.will import Commitment


class SqlAlchemyReviewRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, will_id: int, user_id: str) -> Optional[Review]:
        result = await self._session.execute(
            select(Review).where(Review.will_id == will_id, Review.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def add(self, review: Review) -> Review:
        self._session.add(review)
        await self._session.flush()
        return review

    async def list_for_will(self, will_id: int) -> List[Review]:
        result = await self._session.execute(
            select(Review).where(Review.will_id == will_id).order_by(Review.id)
        )
        return list(result.scalars().all())

    async def count_for_will(self, will_id: int) -> int:
        result = await self._session.execute(
            select(func.count(Review.id))
            .join(
                Commitment,
                and_(
                    Commitment.will_id == Review.will_id,
                    Commitment.user_id == Review.user_id,
                ),
            )
            .where(Review.will_id == will_id)
        )
        return result.scalar() or 0


class SqlAlchemyAcknowledgmentRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, will_id: int, user_id: str) -> Optional[Acknowledgment]:
        result = await self._session.execute(
            select(Acknowledgment).where(
                Acknowledgment.will_id == will_id, Acknowledgment.user_id == user_id
            )
        )
        return result.scalar_one_or_none()

    async def add(self, acknowledgment: Acknowledgment) -> Acknowledgment:
        self._session.add(acknowledgment)
        await self._session.flush()
        return acknowledgment

    async def count_for_will(self, will_id: int) -> int:
        result = await self._session.execute(
            select(func.count(Acknowledgment.id)).where(Acknowledgment.will_id == will_id)
        )
        return result.scalar() or 0
