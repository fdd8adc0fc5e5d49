"""WillRepository protocol: Will rows and their conditional status writes."""

from typing import Any, Iterable, List, Optional, Protocol, runtime_checkable


@runtime_checkable
class WillRepository(Protocol):
    """Repository interface for Will entity access."""

    async def get(self, will_id: int) -> Optional[object]:
        """Look up a Will by primary key, bypassing any stale session copy."""
        ...

    async def add(self, will: object) -> object:
        """Persist a new Will and return it with its id assigned."""
        ...

    async def list_ids_for_tick(
        self, advancing: Iterable[str], room_only: Iterable[str]
    ) -> List[int]:
        """Ids in an ``advancing`` status, plus ``room_only`` ones whose End Room is unfinished."""
        ...

    async def current_for_scope(self, scope: str) -> Optional[int]:
        """Id of the newest Will that claimed *scope*, or None if none has."""
        ...

    async def claim_scope(self, scope: str, seen: Optional[int], will_id: int) -> bool:
        """Compare-and-swap the scope's current Will from *seen* to *will_id*."""
        ...

    async def list_for_scope(
        self, circle_id: Optional[int] = None, created_by: Optional[str] = None
    ) -> List[object]:
        """Wills of a circle, or solo Wills of a creator, newest first."""
        ...

    async def transition_status(
        self,
        will_id: int,
        expected: str,
        new: str,
        require_all_reviewed: bool = False,
        **values: Any,
    ) -> bool:
        """Compare-and-swap the status column.

        Args:
            will_id: Will to update.
            expected: Status the row must currently hold.
            new: Status to write.
            require_all_reviewed: Also require, in the same statement, that
                every committed member has a Review.
            **values: Extra columns written with the status.

        Returns:
            True if exactly this write happened, False if the row had moved on.
        """
        ...

    async def refresh_end_room_status(
        self, will_id: int, expected: Optional[str], new: str
    ) -> bool:
        """Compare-and-swap the cached End Room status."""
        ...

    async def update_fields(self, will_id: int, **values: Any) -> None:
        """Write non-status columns (dates, end request, End Room instant)."""
        ...
