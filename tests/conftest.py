import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional

import pytest
from sqlalchemy import select

# Set test environment variables before any settings are read
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["SCHEDULER_ENABLED"] = "false"

from will_engine.core.clock import FrozenClock
from will_engine.core.config import Settings
from will_engine.core.database import (
    create_engine_for,
    create_session_factory,
    create_tables,
)
from will_engine.core.services import build_container
from will_engine.domain.events import EndRoomStatusChanged, EventBus, WillStatusChanged
from will_engine.models import (
    Acknowledgment,
    CheckIn,
    Circle,
    CircleMember,
    Commitment,
    Review,
    Will,
)

# Sunday, midday UTC
T0 = datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _strip_file_handlers():
    """Remove file handlers from root logger so tests never write to logs/app.log."""
    root = logging.getLogger()
    saved = [h for h in root.handlers if isinstance(h, logging.FileHandler)]
    for h in saved:
        root.removeHandler(h)
    yield
    for h in list(root.handlers):
        if isinstance(h, logging.FileHandler):
            root.removeHandler(h)
    for h in saved:
        root.addHandler(h)


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'will_engine_test.db'}"


@pytest.fixture
async def engine(db_url):
    """Async engine over a temporary SQLite file with all tables created."""
    engine = create_engine_for(db_url)
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def clock():
    return FrozenClock(T0)


class RecordingBus(EventBus):
    """EventBus that also remembers everything published."""

    def __init__(self) -> None:
        super().__init__()
        self.events: List[Any] = []

    async def publish(self, event: Any) -> None:
        self.events.append(event)
        await super().publish(event)

    @property
    def status_changes(self) -> List[WillStatusChanged]:
        return [e for e in self.events if isinstance(e, WillStatusChanged)]

    @property
    def end_room_changes(self) -> List[EndRoomStatusChanged]:
        return [e for e in self.events if isinstance(e, EndRoomStatusChanged)]


@pytest.fixture
def bus():
    return RecordingBus()


@pytest.fixture
def settings(db_url):
    return Settings(database_url=db_url, scheduler_enabled=False, environment="test")


@pytest.fixture
def container(settings, session_factory, clock, bus):
    return build_container(settings, session_factory=session_factory, clock=clock, event_bus=bus)


class Store:
    """Seeds rows directly, bypassing service validation, and reads them back."""

    def __init__(self, factory) -> None:
        self._factory = factory

    async def _add(self, *objects):
        async with self._factory() as session:
            session.add_all(objects)
            await session.commit()
        return objects[0] if len(objects) == 1 else objects

    async def circle(self, *member_ids: str, invite_code: str = "ABC123") -> Circle:
        circle = await self._add(Circle(invite_code=invite_code, created_by=member_ids[0]))
        for user_id in member_ids:
            await self._add(CircleMember(circle_id=circle.id, user_id=user_id))
        return circle

    async def will(
        self,
        status: str = "active",
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        mode: str = "solo",
        circle_id: Optional[int] = None,
        created_by: str = "alice",
        **overrides: Any,
    ) -> Will:
        start = start or T0 - timedelta(days=1)
        is_indefinite = overrides.pop("is_indefinite", False)
        if end is None and not is_indefinite:
            end = T0 + timedelta(days=1)
        return await self._add(
            Will(
                circle_id=circle_id,
                created_by=created_by,
                mode=mode,
                visibility=overrides.pop("visibility", "private"),
                status=status,
                start_date=start,
                end_date=end,
                is_indefinite=is_indefinite,
                active_days=overrides.pop("active_days", "every_day"),
                custom_days=overrides.pop("custom_days", None),
                check_in_type=overrides.pop("check_in_type", "daily"),
                timezone=overrides.pop("timezone", "UTC"),
                **overrides,
            )
        )

    async def commit(self, will_id: int, *user_ids: str) -> List[Commitment]:
        rows = []
        for user_id in user_ids:
            rows.append(
                await self._add(
                    Commitment(will_id=will_id, user_id=user_id, what="Run", why="Health")
                )
            )
        return rows

    async def review(self, will_id: int, user_id: str, follow_through: str = "yes") -> Review:
        return await self._add(
            Review(will_id=will_id, user_id=user_id, follow_through=follow_through)
        )

    async def ack(self, will_id: int, user_id: str) -> Acknowledgment:
        return await self._add(Acknowledgment(will_id=will_id, user_id=user_id))

    async def check_in(
        self, will_id: int, date_key: str, status: str, user_id: str = "alice"
    ) -> CheckIn:
        return await self._add(
            CheckIn(will_id=will_id, date=date_key, status=status, user_id=user_id)
        )

    async def set_status(self, will_id: int, status: str) -> None:
        """Move a Will directly, as another writer would."""
        async with self._factory() as session:
            will = await session.get(Will, will_id)
            will.status = status
            await session.commit()

    async def will_ids(self, **filters: Any) -> List[int]:
        async with self._factory() as session:
            result = await session.execute(
                select(Will.id).filter_by(**filters).order_by(Will.id)
            )
            return list(result.scalars())

    async def get_will(self, will_id: int) -> Will:
        async with self._factory() as session:
            return await session.get(Will, will_id)


@pytest.fixture
def store(session_factory):
    return Store(session_factory)
