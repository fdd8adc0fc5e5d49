"""SQLAlchemy implementation of CheckInRepository."""

from typing import Iterable, List, Optional

from sqlalchemy import exists, literal, select
from sqlalchemy.ext.asyncio import AsyncSession

from ...models.base import utcnow
from ...models.check_in import CheckIn
from ...models.will import Will
from .dialect import conflict_insert


class SqlAlchemyCheckInRepository:
    """Check-in rows keyed by (will_id, date).

    Upserts are a single INSERT ... SELECT ... ON CONFLICT DO UPDATE: the
    SELECT yields a row only while the Will is in an allowed status, and
    concurrent submissions for the same day overwrite rather than duplicate.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, will_id: int, date_key: str) -> Optional[CheckIn]:
        result = await self._session.execute(
            select(CheckIn)
            .where(CheckIn.will_id == will_id, CheckIn.date == date_key)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def upsert(
        self,
        will_id: int,
        date_key: str,
        status: str,
        user_id: Optional[str],
        will_statuses: Optional[Iterable[str]] = None,
        single_date: bool = False,
    ) -> Optional[CheckIn]:
        """Write the day's check-in; returns None if a guard refused it.

        Args:
            will_statuses: Only write while the Will holds one of these.
            single_date: Refuse if the Will already has a check-in on
                another date (one-time Wills).
        """
        will_ok = [Will.id == will_id]
        if will_statuses is not None:
            will_ok.append(Will.status.in_(list(will_statuses)))
        guards = [exists().where(*will_ok)]
        if single_date:
            guards.append(
                ~exists().where(CheckIn.will_id == will_id, CheckIn.date != date_key)
            )

        columns = CheckIn.__table__.c
        now = utcnow()
        row = select(
            literal(will_id, columns.will_id.type),
            literal(date_key, columns.date.type),
            literal(status, columns.status.type),
            literal(user_id, columns.user_id.type),
            literal(now, columns.created_at.type),
            literal(now, columns.updated_at.type),
        ).where(*guards)

        stmt = conflict_insert(self._session, CheckIn).from_select(
            ["will_id", "date", "status", "user_id", "created_at", "updated_at"], row
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[CheckIn.will_id, CheckIn.date],
            set_={
                "status": stmt.excluded.status,
                "user_id": stmt.excluded.user_id,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        result = await self._session.execute(stmt)
        if result.rowcount != 1:
            return None
        return await self.get(will_id, date_key)

    async def list_for_will(self, will_id: int) -> List[CheckIn]:
        result = await self._session.execute(
            select(CheckIn).where(CheckIn.will_id == will_id).order_by(CheckIn.date)
        )
        return list(result.scalars().all())
