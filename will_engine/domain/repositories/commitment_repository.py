"""CommitmentRepository protocol."""

from typing import Iterable, List, Optional, Protocol, runtime_checkable


@runtime_checkable
class CommitmentRepository(Protocol):
    async def get(self, commitment_id: int) -> Optional[object]: ...

    async def get_for_member(self, will_id: int, user_id: str) -> Optional[object]: ...

    async def list_for_will(self, will_id: int) -> List[object]: ...

    async def count_for_will(self, will_id: int) -> int: ...

    async def add(self, commitment: object) -> object: ...

    async def add_if_will_in(
        self, will_id: int, user_id: str, what: str, why: str, statuses: Iterable[str]
    ) -> Optional[object]: ...

    async def update_text_if_will_in(
        self, commitment: object, what: str, why: str, statuses: Iterable[str]
    ) -> bool: ...
