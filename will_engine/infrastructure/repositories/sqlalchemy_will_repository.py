"""SQLAlchemy implementation of WillRepository."""

import logging
from typing import Any, Iterable, List, Optional

from sqlalchemy import and_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ...models.base import utcnow
from ...models.review import Review
from ...models.value_objects import EndRoomStatus, WillMode
from ...models.will import Commitment, Will, WillScope
from .dialect import conflict_insert

logger = logging.getLogger(__name__)


class SqlAlchemyWillRepository:
    """Concrete WillRepository backed by SQLAlchemy async sessions."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, will_id: int) -> Optional[Will]:
        result = await self._session.execute(
            select(Will)
            .where(Will.id == will_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def add(self, will: Will) -> Will:
        self._session.add(will)
        await self._session.flush()
        return will

    async def list_ids_for_tick(
        self, advancing: Iterable[str], room_only: Iterable[str]
    ) -> List[int]:
        """Ids the scheduler should look at this tick.

        ``advancing`` statuses are always included. Wills in a ``room_only``
        status are included only while they have an End Room whose cached
        status is not yet completed.
        """
        unfinished_room = and_(
            Will.status.in_(list(room_only)),
            Will.end_room_scheduled_at.is_not(None),
            or_(
                Will.end_room_status.is_(None),
                Will.end_room_status != EndRoomStatus.COMPLETED.value,
            ),
        )
        result = await self._session.execute(
            select(Will.id)
            .where(or_(Will.status.in_(list(advancing)), unfinished_room))
            .order_by(Will.id)
        )
        return [row[0] for row in result.all()]

    async def current_for_scope(self, scope: str) -> Optional[int]:
        result = await self._session.execute(
            select(WillScope.current_will_id).where(WillScope.scope == scope)
        )
        return result.scalar_one_or_none()

    async def claim_scope(self, scope: str, seen: Optional[int], will_id: int) -> bool:
        """Point ``scope`` at ``will_id`` if it still holds ``seen``.

        ``seen=None`` means no Will had claimed the scope yet. Returns False
        when another Will got there first.
        """
        now = utcnow()
        if seen is None:
            stmt = (
                conflict_insert(self._session, WillScope)
                .values(scope=scope, current_will_id=will_id, created_at=now, updated_at=now)
                .on_conflict_do_nothing(index_elements=[WillScope.scope])
            )
        else:
            stmt = (
                update(WillScope)
                .where(WillScope.scope == scope, WillScope.current_will_id == seen)
                .values(current_will_id=will_id, updated_at=now)
                .execution_options(synchronize_session=False)
            )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    async def list_for_scope(
        self, circle_id: Optional[int] = None, created_by: Optional[str] = None
    ) -> List[Will]:
        query = select(Will)
        if circle_id is not None:
            query = query.where(Will.circle_id == circle_id)
        else:
            query = query.where(
                Will.created_by == created_by, Will.mode == WillMode.SOLO.value
            )
        result = await self._session.execute(query.order_by(Will.id.desc()))
        return list(result.scalars().all())

    async def transition_status(
        self,
        will_id: int,
        expected: str,
        new: str,
        require_all_reviewed: bool = False,
        **values: Any,
    ) -> bool:
        conditions = [Will.id == will_id, Will.status == expected]
        if require_all_reviewed:
            unreviewed = (
                select(Commitment.id)
                .where(
                    Commitment.will_id == will_id,
                    ~select(Review.id)
                    .where(
                        and_(
                            Review.will_id == Commitment.will_id,
                            Review.user_id == Commitment.user_id,
                        )
                    )
                    .exists(),
                )
            )
            conditions.append(~unreviewed.exists())

        stmt = (
            update(Will)
            .where(*conditions)
            .values(status=new, updated_at=utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        applied = result.rowcount == 1
        if not applied:
            logger.debug(
                f"Will {will_id}: status write {expected} -> {new} skipped (row moved on)"
            )
        return applied

    async def refresh_end_room_status(
        self, will_id: int, expected: Optional[str], new: str
    ) -> bool:
        current = (
            Will.end_room_status.is_(None)
            if expected is None
            else Will.end_room_status == expected
        )
        result = await self._session.execute(
            update(Will)
            .where(Will.id == will_id, current)
            .values(end_room_status=new, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def update_fields(self, will_id: int, **values: Any) -> None:
        if "status" in values:
            raise ValueError("status is only written through transition_status")
        await self._session.execute(
            update(Will)
            .where(Will.id == will_id)
            .values(updated_at=utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
