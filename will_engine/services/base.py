"""Shared plumbing for services that talk to the store."""

from typing import Optional

from ..core.clock import SystemClock
from ..core.database import SessionFactory, session_scope
from ..domain.errors import AuthorizationError, WillNotFound
from ..domain.interfaces import ClockSource
from ..infrastructure.repositories import (
    SqlAlchemyCommitmentRepository,
    SqlAlchemyWillRepository,
)
from ..models.will import Will


class StoreBackedService:
    """Holds the injected session factory and clock.

    Passing ``session_factory=None`` uses the process-wide engine from
    ``core.database``; tests hand in their own factory and a FrozenClock.
    """

    def __init__(
        self,
        session_factory: Optional[SessionFactory] = None,
        clock: Optional[ClockSource] = None,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock or SystemClock()

    def _session(self):
        return session_scope(self._session_factory)


async def require_will(wills: SqlAlchemyWillRepository, will_id: int) -> Will:
    will = await wills.get(will_id)
    if will is None:
        raise WillNotFound(will_id)
    return will


async def require_commitment(
    commitments: SqlAlchemyCommitmentRepository, will_id: int, user_id: str, action: str
):
    commitment = await commitments.get_for_member(will_id, user_id)
    if commitment is None:
        raise AuthorizationError(f"Only members with a commitment can {action}")
    return commitment


def require_creator(will: Will, user_id: str, action: str) -> None:
    if will.created_by != user_id:
        raise AuthorizationError(f"Only the creator can {action}")
