"""Circle membership: create, join by invite code, leave."""

import logging
import secrets
import string
from dataclasses import dataclass
from typing import List, Optional

from ..core.config import get_config_value
from ..domain.errors import CircleNotFound, DomainValidationError
from ..infrastructure.repositories import SqlAlchemyCircleRepository
from ..models.circle import Circle
from .base import StoreBackedService

logger = logging.getLogger(__name__)

INVITE_CODE_ALPHABET = string.ascii_uppercase + string.digits
MAX_CODE_ATTEMPTS = 5


def generate_invite_code(length: Optional[int] = None) -> str:
    length = length or get_config_value("circles.invite_code_length", 6)
    return "".join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(length))


@dataclass(frozen=True)
class CircleView:
    circle: Circle
    member_ids: List[str]


class CircleService(StoreBackedService):
    async def create_circle(self, user_id: str) -> CircleView:
        async with self._session() as session:
            circles = SqlAlchemyCircleRepository(session)
            if await circles.get_for_user(user_id) is not None:
                raise DomainValidationError("You are already in a circle")

            for _ in range(MAX_CODE_ATTEMPTS):
                code = generate_invite_code()
                if await circles.get_by_invite_code(code) is None:
                    break
            else:
                raise DomainValidationError("Could not allocate an invite code, try again")

            circle = await circles.add(Circle(invite_code=code, created_by=user_id))
            await circles.add_member(circle.id, user_id)
            await session.commit()

        logger.info(f"Circle {circle.id} created by {user_id}")
        return CircleView(circle=circle, member_ids=[user_id])

    async def join_circle(self, user_id: str, invite_code: str) -> CircleView:
        code = (invite_code or "").strip().upper()
        max_members = get_config_value("circles.max_members", 4)

        async with self._session() as session:
            circles = SqlAlchemyCircleRepository(session)
            circle = await circles.get_by_invite_code(code)
            if circle is None:
                raise CircleNotFound(code)
            if await circles.get_for_user(user_id) is not None:
                raise DomainValidationError("You are already in a circle")
            if await circles.member_count(circle.id) >= max_members:
                raise DomainValidationError(
                    f"Circle is full ({max_members} members maximum)"
                )

            await circles.add_member(circle.id, user_id)
            await session.commit()
            member_ids = await circles.list_member_ids(circle.id)

        logger.info(f"User {user_id} joined circle {circle.id}")
        return CircleView(circle=circle, member_ids=member_ids)

    async def leave_circle(self, user_id: str) -> None:
        async with self._session() as session:
            circles = SqlAlchemyCircleRepository(session)
            circle = await circles.get_for_user(user_id)
            if circle is None:
                raise DomainValidationError("You are not in a circle")
            await circles.remove_member(circle.id, user_id)
            await session.commit()

        logger.info(f"User {user_id} left circle {circle.id}")

    async def get_user_circle(self, user_id: str) -> Optional[CircleView]:
        async with self._session() as session:
            circles = SqlAlchemyCircleRepository(session)
            circle = await circles.get_for_user(user_id)
            if circle is None:
                return None
            return CircleView(circle=circle, member_ids=await circles.list_member_ids(circle.id))
