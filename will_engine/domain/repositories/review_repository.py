"""Review and Acknowledgment repository protocols."""

from typing import List, Optional, Protocol, runtime_checkable


@runtime_checkable
class ReviewRepository(Protocol):
    async def get(self, will_id: int, user_id: str) -> Optional[object]: ...

    async def add(self, review: object) -> object: ...

    async def list_for_will(self, will_id: int) -> List[object]: ...

    async def count_for_will(self, will_id: int) -> int:
        """Count reviews written by members who hold a Commitment."""
        ...


@runtime_checkable
class AcknowledgmentRepository(Protocol):
    async def get(self, will_id: int, user_id: str) -> Optional[object]: ...

    async def add(self, acknowledgment: object) -> object: ...

    async def count_for_will(self, will_id: int) -> int: ...
