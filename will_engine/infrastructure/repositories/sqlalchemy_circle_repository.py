"""SQLAlchemy implementation of CircleRepository."""

from typing import List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ...models.circle import Circle, CircleMember


class SqlAlchemyCircleRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, circle_id: int) -> Optional[Circle]:
        return await self._session.get(Circle, circle_id)

    async def get_by_invite_code(self, invite_code: str) -> Optional[Circle]:
        result = await self._session.execute(
            select(Circle).where(Circle.invite_code == invite_code)
        )
        return result.scalar_one_or_none()

    async def get_for_user(self, user_id: str) -> Optional[Circle]:
        result = await self._session.execute(
            select(Circle)
            .join(CircleMember, CircleMember.circle_id == Circle.id)
            .where(CircleMember.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def add(self, circle: Circle) -> Circle:
        self._session.add(circle)
        await self._session.flush()
        return circle

    async def add_member(self, circle_id: int, user_id: str) -> CircleMember:
        member = CircleMember(circle_id=circle_id, user_id=user_id)
        self._session.add(member)
        await self._session.flush()
        return member

    async def remove_member(self, circle_id: int, user_id: str) -> bool:
        result = await self._session.execute(
            delete(CircleMember).where(
                CircleMember.circle_id == circle_id, CircleMember.user_id == user_id
            )
        )
        return result.rowcount > 0

    async def list_member_ids(self, circle_id: int) -> List[str]:
        result = await self._session.execute(
            select(CircleMember.user_id)
            .where(CircleMember.circle_id == circle_id)
            .order_by(CircleMember.id)
        )
        return [row[0] for row in result.all()]

    async def member_count(self, circle_id: int) -> int:
        result = await self._session.execute(
            select(func.count(CircleMember.id)).where(CircleMember.circle_id == circle_id)
        )
        return result.scalar() or 0
