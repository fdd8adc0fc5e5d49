"""CheckInRepository protocol."""

from typing import Iterable, List, Optional, Protocol, runtime_checkable


@runtime_checkable
class CheckInRepository(Protocol):
    """Per-Will, per-day adherence records."""

    async def get(self, will_id: int, date_key: str) -> Optional[object]:
        """Return the check-in for (will_id, date_key), if any."""
        ...

    async def upsert(
        self,
        will_id: int,
        date_key: str,
        status: str,
        user_id: Optional[str],
        will_statuses: Optional[Iterable[str]] = None,
        single_date: bool = False,
    ) -> Optional[object]:
        """Insert or overwrite the single row for (will_id, date_key).

        Returns:
            The stored CheckIn, or None when the Will is missing, outside
            *will_statuses*, or (with *single_date*) already checked in
            on another day.
        """
        ...

    async def list_for_will(self, will_id: int) -> List[object]:
        """All check-ins of a Will in ascending date order."""
        ...
