"""SQLAlchemy implementation of CommitmentRepository."""

from typing import Iterable, List, Optional

from sqlalchemy import exists, func, insert, literal, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from ...models.base import utcnow
from ...models.will import Commitment, Will


def _will_in(will_id, statuses: Iterable[str]):
    return exists().where(Will.id == will_id, Will.status.in_(list(statuses)))


class SqlAlchemyCommitmentRepository:
    """Commitment rows.

    Writes that depend on the Will's status carry that status in the same
    statement, so a Will the scheduler has just moved on is never written to.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, commitment_id: int) -> Optional[Commitment]:
        return await self._session.get(Commitment, commitment_id)

    async def get_for_member(self, will_id: int, user_id: str) -> Optional[Commitment]:
        result = await self._session.execute(
            select(Commitment)
            .where(Commitment.will_id == will_id, Commitment.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_for_will(self, will_id: int) -> List[Commitment]:
        result = await self._session.execute(
            select(Commitment)
            .where(Commitment.will_id == will_id)
            .order_by(Commitment.id)
        )
        return list(result.scalars().all())

    async def count_for_will(self, will_id: int) -> int:
        result = await self._session.execute(
            select(func.count(Commitment.id)).where(Commitment.will_id == will_id)
        )
        return result.scalar() or 0

    async def add(self, commitment: Commitment) -> Commitment:
        self._session.add(commitment)
        await self._session.flush()
        return commitment

    async def add_if_will_in(
        self, will_id: int, user_id: str, what: str, why: str, statuses: Iterable[str]
    ) -> Optional[Commitment]:
        """Insert a commitment only while the Will holds one of *statuses*.

        Returns the new row, or None if the Will had left those statuses.
        Raises IntegrityError if the member already committed.
        """
        columns = Commitment.__table__.c
        now = utcnow()
        row = select(
            literal(will_id, columns.will_id.type),
            literal(user_id, columns.user_id.type),
            literal(what, columns.what.type),
            literal(why, columns.why.type),
            literal(now, columns.created_at.type),
            literal(now, columns.updated_at.type),
        ).where(_will_in(will_id, statuses))
        result = await self._session.execute(
            insert(Commitment).from_select(
                ["will_id", "user_id", "what", "why", "created_at", "updated_at"], row
            )
        )
        if result.rowcount != 1:
            return None
        return await self.get_for_member(will_id, user_id)

    async def update_text_if_will_in(
        self, commitment: Commitment, what: str, why: str, statuses: Iterable[str]
    ) -> bool:
        """Rewrite what/why only while the Will holds one of *statuses*."""
        result = await self._session.execute(
            update(Commitment)
            .where(Commitment.id == commitment.id, _will_in(commitment.will_id, statuses))
            .values(what=what, why=why, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False
        set_committed_value(commitment, "what", what)
        set_committed_value(commitment, "why", why)
        return True
