"""Tests for check-in aggregation."""

from datetime import date

import pytest

from will_engine.models.value_objects import FollowThrough
from will_engine.services.progress import (
    compute_progress,
    count_total_days,
    derive_follow_through,
    success_rate,
)

START = date(2024, 3, 1)


def rows(*statuses, start=START):
    return [(date(start.year, start.month, start.day + i), s) for i, s in enumerate(statuses)]


class TestSuccessRate:
    def test_zero_when_nothing_checked_in(self):
        assert success_rate(0, 0, 0) == 0

    def test_mixed_statuses(self):
        # round(100 * (3 + 0.5) / 5) = 70
        assert success_rate(3, 1, 5) == 70

    def test_half_rounds_up(self):
        # 100 * 0.5 / 8 = 6.25 -> 6 ; 100 * 1.5 / 4 = 37.5 -> 38
        assert success_rate(0, 1, 8) == 6
        assert success_rate(1, 1, 4) == 38

    @pytest.mark.parametrize(
        "yes,partial,no",
        [(0, 0, 1), (1, 0, 0), (0, 1, 0), (5, 5, 5), (0, 0, 30), (30, 0, 0)],
    )
    def test_always_within_bounds(self, yes, partial, no):
        rate = success_rate(yes, partial, yes + partial + no)
        assert 0 <= rate <= 100


class TestTotalDays:
    def test_inclusive_span_to_end(self):
        assert count_total_days(START, date(2024, 3, 5), today=date(2024, 3, 20)) == 5

    def test_capped_at_today(self):
        assert count_total_days(START, date(2024, 3, 31), today=date(2024, 3, 3)) == 3

    def test_indefinite_uses_today(self):
        assert count_total_days(START, None, today=date(2024, 3, 10)) == 10

    def test_minimum_one_before_start(self):
        assert count_total_days(START, date(2024, 3, 5), today=date(2024, 2, 20)) == 1


class TestComputeProgress:
    def test_mixed_week(self):
        stats = compute_progress(
            rows("yes", "yes", "no", "partial", "yes"),
            start_day=START,
            end_day=date(2024, 3, 5),
            today=date(2024, 3, 10),
        )

        assert stats.total_days == 5
        assert stats.checked_in_days == 5
        assert (stats.yes_count, stats.partial_count, stats.no_count) == (3, 1, 1)
        assert stats.success_rate == 70
        assert stats.best_streak == 2
        assert stats.current_streak == 2

    def test_missing_day_does_not_reset_streak(self):
        check_ins = [
            (date(2024, 3, 1), "yes"),
            (date(2024, 3, 2), "yes"),
            # nothing on the 3rd
            (date(2024, 3, 4), "yes"),
        ]

        stats = compute_progress(check_ins, START, date(2024, 3, 4), today=date(2024, 3, 4))

        assert stats.best_streak == 3
        assert stats.current_streak == 3

    def test_explicit_no_resets_streak(self):
        stats = compute_progress(
            rows("yes", "yes", "yes", "no"), START, date(2024, 3, 4), today=date(2024, 3, 4)
        )

        assert stats.best_streak == 3
        assert stats.current_streak == 0

    def test_unsorted_input_and_string_keys(self):
        check_ins = [("2024-03-03", "yes"), ("2024-03-01", "no"), ("2024-03-02", "partial")]

        stats = compute_progress(check_ins, START, date(2024, 3, 3), today=date(2024, 3, 3))

        assert stats.best_streak == 2
        assert stats.current_streak == 2

    def test_empty(self):
        stats = compute_progress([], START, date(2024, 3, 5), today=date(2024, 3, 2))

        assert stats.checked_in_days == 0
        assert stats.success_rate == 0
        assert stats.best_streak == 0
        assert stats.total_days == 2

    def test_to_dict_uses_api_keys(self):
        stats = compute_progress(rows("yes"), START, START, today=START)

        payload = stats.to_dict()

        assert payload == {
            "totalDays": 1,
            "checkedInDays": 1,
            "successRate": 100,
            "yesCount": 1,
            "partialCount": 0,
            "noCount": 0,
            "streak": 1,
            "bestStreak": 1,
            "currentStreak": 1,
        }


class TestFollowThrough:
    @pytest.mark.parametrize(
        "rate,expected",
        [
            (100, FollowThrough.YES),
            (80, FollowThrough.YES),
            (79, FollowThrough.MOSTLY),
            (50, FollowThrough.MOSTLY),
            (49, FollowThrough.NO),
            (0, FollowThrough.NO),
        ],
    )
    def test_thresholds(self, rate, expected):
        assert derive_follow_through(rate) == expected
