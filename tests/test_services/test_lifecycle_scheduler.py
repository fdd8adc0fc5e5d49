"""Tests for the lifecycle scheduler tick."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from will_engine.domain.events import WillStatusChanged
from will_engine.models import Will
from will_engine.services.lifecycle_scheduler import LifecycleScheduler

T0 = datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def scheduler(session_factory, clock, bus):
    return LifecycleScheduler(
        session_factory,
        clock,
        notifier=bus,
        end_room_duration=timedelta(minutes=30),
        end_room_delay=timedelta(minutes=60),
        auto_schedule_end_room=True,
    )


async def snapshot_rows(session_factory):
    async with session_factory() as session:
        result = await session.execute(select(Will).order_by(Will.id))
        return [
            (w.id, w.status, w.end_room_status, w.end_room_scheduled_at)
            for w in result.scalars().all()
        ]


class TestForwardTransitions:
    async def test_scheduled_will_activates_once_started(self, scheduler, store):
        will = await store.will(status="scheduled")

        report = await scheduler.tick()

        assert (await store.get_will(will.id)).status == "active"
        assert [(e.old_status, e.new_status) for e in report.transitions] == [
            ("scheduled", "active")
        ]

    async def test_one_step_per_tick(self, scheduler, store, clock):
        # Started and already ended: needs two ticks to reach review
        will = await store.will(
            status="scheduled", start=T0 - timedelta(days=5), end=T0 - timedelta(days=1)
        )
        await store.commit(will.id, "alice")

        await scheduler.tick()
        assert (await store.get_will(will.id)).status == "active"

        await scheduler.tick()
        assert (await store.get_will(will.id)).status == "will_review"

    async def test_pending_circle_will_schedules_when_all_committed(self, scheduler, store):
        circle = await store.circle("alice", "bob")
        will = await store.will(
            status="pending", mode="circle", circle_id=circle.id, start=T0 + timedelta(days=1),
            end=T0 + timedelta(days=8),
        )
        await store.commit(will.id, "alice")

        await scheduler.tick()
        assert (await store.get_will(will.id)).status == "pending"

        await store.commit(will.id, "bob")
        await scheduler.tick()
        assert (await store.get_will(will.id)).status == "scheduled"

    async def test_indefinite_will_stays_active(self, scheduler, store, clock):
        will = await store.will(status="active", is_indefinite=True)
        clock.advance(days=400)

        await scheduler.tick()

        assert (await store.get_will(will.id)).status == "active"

    async def test_indefinite_will_ends_on_request(self, scheduler, store):
        will = await store.will(status="active", is_indefinite=True, end_requested_at=T0)

        await scheduler.tick()

        assert (await store.get_will(will.id)).status == "will_review"


class TestReviewGate:
    async def test_completes_only_after_every_review(self, scheduler, store):
        circle = await store.circle("alice", "bob", "carol")
        will = await store.will(status="will_review", mode="circle", circle_id=circle.id)
        await store.commit(will.id, "alice", "bob", "carol")
        await store.review(will.id, "alice")
        await store.review(will.id, "bob")

        await scheduler.tick()
        assert (await store.get_will(will.id)).status == "will_review"

        await store.review(will.id, "carol")
        await scheduler.tick()
        assert (await store.get_will(will.id)).status == "completed"

    async def test_review_from_non_member_does_not_count(self, scheduler, store):
        will = await store.will(status="will_review")
        await store.commit(will.id, "alice", "bob")
        await store.review(will.id, "alice")
        await store.review(will.id, "mallory")

        await scheduler.tick()

        assert (await store.get_will(will.id)).status == "will_review"


class TestIdempotence:
    async def test_second_tick_on_unchanged_state_is_noop(self, scheduler, store, session_factory, bus):
        await store.will(status="active")
        will = await store.will(status="will_review", created_by="bob")
        await store.commit(will.id, "bob", "dave")
        await store.review(will.id, "bob")

        await scheduler.tick()
        before = await snapshot_rows(session_factory)
        events_before = len(bus.events)

        report = await scheduler.tick()

        assert await snapshot_rows(session_factory) == before
        assert report.transitions == []
        assert len(bus.events) == events_before

    async def test_stale_status_write_is_skipped(self, session_factory, store):
        from will_engine.infrastructure.repositories import SqlAlchemyWillRepository

        will = await store.will(status="scheduled")

        async with session_factory() as session:
            repo = SqlAlchemyWillRepository(session)
            assert await repo.transition_status(will.id, "scheduled", "active") is True
            # A second writer holding the old snapshot
            assert await repo.transition_status(will.id, "scheduled", "active") is False
            await session.commit()

        assert (await store.get_will(will.id)).status == "active"

    async def test_notifies_once_per_transition(self, scheduler, store, bus):
        will = await store.will(status="scheduled")

        await scheduler.tick()
        await scheduler.tick()

        assert bus.status_changes == [
            WillStatusChanged(will.id, "scheduled", "active", occurred_at=T0)
        ]


class TestFailureIsolation:
    async def test_one_broken_will_does_not_block_others(self, scheduler, store):
        broken = await store.will(status="active", timezone="Not/AZone")
        healthy = await store.will(status="scheduled", created_by="bob")

        report = await scheduler.tick()

        assert report.failed == [broken.id]
        assert (await store.get_will(healthy.id)).status == "active"

    async def test_notifier_failure_does_not_roll_back(self, session_factory, clock, store):
        class ExplodingNotifier:
            async def dispatch(self, event):
                raise RuntimeError("push provider down")

        scheduler = LifecycleScheduler(session_factory, clock, notifier=ExplodingNotifier())
        will = await store.will(status="scheduled")

        report = await scheduler.tick()

        assert (await store.get_will(will.id)).status == "active"
        assert len(report.transitions) == 1

    async def test_statuses_outside_the_chain_are_ignored(self, scheduler, store, clock):
        paused = await store.will(status="paused", end=T0 - timedelta(days=1))
        archived = await store.will(status="archived", created_by="bob")

        report = await scheduler.tick()

        assert report.evaluated == 0
        assert (await store.get_will(paused.id)).status == "paused"
        assert (await store.get_will(archived.id)).status == "archived"

    async def test_settled_completed_wills_are_not_reloaded(self, scheduler, store):
        for user_id in ("alice", "bob", "carol", "dave", "erin"):
            await store.will(status="completed", created_by=user_id)
        await store.will(
            status="completed",
            created_by="frank",
            end_room_scheduled_at=T0 - timedelta(hours=2),
            end_room_status="completed",
        )

        report = await scheduler.tick()

        assert report.evaluated == 0
        assert report.transitions == []


class TestEndRoom:
    async def test_auto_scheduled_for_circle_will_entering_review(self, scheduler, store):
        circle = await store.circle("alice", "bob")
        end = T0 - timedelta(minutes=10)
        will = await store.will(status="active", mode="circle", circle_id=circle.id, end=end)
        await store.commit(will.id, "alice", "bob")

        await scheduler.tick()

        row = await store.get_will(will.id)
        assert row.status == "will_review"
        # max(end, now) + 60 minutes
        assert row.end_room_scheduled_at.replace(tzinfo=timezone.utc) == T0 + timedelta(hours=1)
        assert row.end_room_status == "pending"

    async def test_solo_will_gets_no_end_room(self, scheduler, store):
        will = await store.will(status="active", end=T0 - timedelta(minutes=1))

        await scheduler.tick()

        row = await store.get_will(will.id)
        assert row.status == "will_review"
        assert row.end_room_scheduled_at is None

    async def test_cached_status_follows_the_window(self, scheduler, store, clock, bus):
        opens = T0 + timedelta(minutes=5)
        will = await store.will(
            status="will_review",
            end_room_scheduled_at=opens,
            end_room_status="pending",
        )
        await store.commit(will.id, "alice")

        await scheduler.tick()
        assert (await store.get_will(will.id)).end_room_status == "pending"

        clock.set(opens)
        await scheduler.tick()
        assert (await store.get_will(will.id)).end_room_status == "open"

        clock.set(opens + timedelta(minutes=30))
        await scheduler.tick()
        assert (await store.get_will(will.id)).end_room_status == "completed"

        assert [(e.old_status, e.new_status) for e in bus.end_room_changes] == [
            ("pending", "open"),
            ("open", "completed"),
        ]

    async def test_cleared_cache_is_recomputed(self, scheduler, store):
        will = await store.will(
            status="will_review",
            end_room_scheduled_at=T0 - timedelta(minutes=1),
            end_room_status=None,
        )
        await store.commit(will.id, "alice")

        await scheduler.tick()

        assert (await store.get_will(will.id)).end_room_status == "open"


    async def test_completed_will_keeps_refreshing_an_unfinished_room(
        self, scheduler, store, clock, bus
    ):
        opened = T0 - timedelta(minutes=10)
        will = await store.will(
            status="completed",
            end=T0 - timedelta(hours=1),
            end_room_scheduled_at=opened,
            end_room_status="open",
        )

        report = await scheduler.tick()
        assert report.evaluated == 1
        assert (await store.get_will(will.id)).end_room_status == "open"

        clock.set(opened + timedelta(minutes=30))
        await scheduler.tick()
        row = await store.get_will(will.id)
        assert (row.status, row.end_room_status) == ("completed", "completed")
        assert [(e.old_status, e.new_status) for e in bus.end_room_changes] == [
            ("open", "completed")
        ]

        report = await scheduler.tick()
        assert report.evaluated == 0


class TestRunForever:
    async def test_ticks_until_cancelled(self, session_factory, clock, store):
        import asyncio

        scheduler = LifecycleScheduler(session_factory, clock, interval_seconds=0)
        will = await store.will(status="scheduled")

        task = asyncio.create_task(scheduler.run_forever())
        for _ in range(50):
            await asyncio.sleep(0.01)
            if scheduler.last_tick is not None:
                break
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert scheduler.is_running is False
        assert (await store.get_will(will.id)).status == "active"
