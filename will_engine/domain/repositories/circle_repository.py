"""CircleRepository protocol."""

from typing import List, Optional, Protocol, runtime_checkable


@runtime_checkable
class CircleRepository(Protocol):
    async def get(self, circle_id: int) -> Optional[object]: ...

    async def get_by_invite_code(self, invite_code: str) -> Optional[object]: ...

    async def get_for_user(self, user_id: str) -> Optional[object]: ...

    async def add(self, circle: object) -> object: ...

    async def add_member(self, circle_id: int, user_id: str) -> object: ...

    async def remove_member(self, circle_id: int, user_id: str) -> bool: ...

    async def list_member_ids(self, circle_id: int) -> List[str]: ...

    async def member_count(self, circle_id: int) -> int: ...
