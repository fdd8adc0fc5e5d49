"""Tests for reviews, acknowledgments and the new-Will gate."""

import pytest

from will_engine.domain.errors import AuthorizationError, DomainValidationError
from will_engine.services.review_gate import ReviewGate


@pytest.fixture
def gate(session_factory, clock):
    return ReviewGate(session_factory, clock)


@pytest.fixture
async def circle_will(store):
    circle = await store.circle("alice", "bob", "carol")
    will = await store.will(status="will_review", mode="circle", circle_id=circle.id)
    await store.commit(will.id, "alice", "bob", "carol")
    return will


class TestSubmitReview:
    async def test_submit(self, gate, circle_will):
        review = await gate.submit_review(circle_will.id, "alice", "mostly", "  Good run  ")

        assert review.follow_through == "mostly"
        assert review.reflection_text == "Good run"

    async def test_duplicate_rejected(self, gate, circle_will):
        await gate.submit_review(circle_will.id, "alice", "yes")

        with pytest.raises(DomainValidationError, match="already submitted"):
            await gate.submit_review(circle_will.id, "alice", "no")

    @pytest.mark.parametrize("status", ["active", "completed", "scheduled"])
    async def test_only_during_review(self, gate, store, status):
        will = await store.will(status=status)
        await store.commit(will.id, "alice")

        with pytest.raises(DomainValidationError, match="in review"):
            await gate.submit_review(will.id, "alice", "yes")

    async def test_requires_commitment(self, gate, circle_will):
        with pytest.raises(AuthorizationError):
            await gate.submit_review(circle_will.id, "mallory", "yes")

    async def test_reflection_length_limit(self, gate, circle_will):
        with pytest.raises(DomainValidationError, match="300"):
            await gate.submit_review(circle_will.id, "alice", "yes", "x" * 301)

    async def test_invalid_follow_through(self, gate, circle_will):
        with pytest.raises(DomainValidationError, match="followThrough"):
            await gate.submit_review(circle_will.id, "alice", "sort of")

    async def test_follow_through_defaults_from_progress(self, gate, store, circle_will):
        # Will started yesterday; one yes and one no -> 50% -> mostly
        await store.check_in(circle_will.id, "2024-03-09", "yes")
        await store.check_in(circle_will.id, "2024-03-10", "no")

        review = await gate.submit_review(circle_will.id, "bob")

        assert review.follow_through == "mostly"


class TestAllReviewsSubmitted:
    async def test_partial_then_complete(self, gate, circle_will):
        await gate.submit_review(circle_will.id, "alice", "yes")
        await gate.submit_review(circle_will.id, "bob", "yes")
        assert await gate.all_reviews_submitted(circle_will.id) is False

        await gate.submit_review(circle_will.id, "carol", "no")
        assert await gate.all_reviews_submitted(circle_will.id) is True


class TestAcknowledge:
    @pytest.fixture
    async def completed(self, store):
        will = await store.will(status="completed")
        await store.commit(will.id, "alice", "bob", "carol")
        return will

    async def test_ready_after_everyone(self, gate, completed):
        await gate.acknowledge(completed.id, "alice")
        result = await gate.acknowledge(completed.id, "bob")

        assert result.counts.acknowledged_count == 2
        assert await gate.ready_for_new_will(completed.id) is False

        result = await gate.acknowledge(completed.id, "carol")

        assert result.counts.ready_for_new_will is True
        assert await gate.ready_for_new_will(completed.id) is True

    async def test_idempotent(self, gate, completed):
        first = await gate.acknowledge(completed.id, "alice")
        second = await gate.acknowledge(completed.id, "alice")

        assert first.created is True
        assert second.created is False
        assert second.acknowledgment.id == first.acknowledgment.id
        assert second.counts.acknowledged_count == 1

    async def test_only_completed(self, gate, circle_will):
        with pytest.raises(DomainValidationError, match="completed"):
            await gate.acknowledge(circle_will.id, "alice")

    async def test_requires_commitment(self, gate, completed):
        with pytest.raises(AuthorizationError):
            await gate.acknowledge(completed.id, "mallory")
