"""
Unit tests for the SM-2 review algorithm.

Stateless: no database involved.
"""
import pytest
from datetime import datetime, timedelta

from review_engine.config import settings
from review_engine.errors import InvalidQuality
from review_engine.sm2 import MasteryLevel, ReviewResult, SM2Algorithm

NOW = datetime(2026, 3, 10, 12, 0, 0)


def review(state, quality):
    return SM2Algorithm.calculate_next_review(
        state.ease_factor,
        state.interval,
        state.review_count,
        quality,
        mastery_level=state.mastery_level,
        reference_time=NOW,
    )


def fresh():
    return ReviewResult(2.5, 1, 0, NOW, MasteryLevel.NEW.value)


class TestIntervals:
    def test_first_success_is_one_day(self):
        result = review(fresh(), 5)
        assert result.interval == 1
        assert result.next_review_date == NOW + timedelta(days=1)

    def test_second_success_is_six_days(self):
        result = review(review(fresh(), 5), 5)
        assert result.interval == 6
        assert result.next_review_date == NOW + timedelta(days=6)

    def test_later_success_multiplies_by_previous_ease_factor(self):
        state = fresh()._replace(review_count=2, interval=6, ease_factor=2.6)
        assert review(state, 3).interval == 16  # round(6 * 2.6)

    def test_interval_rounds_half_up(self):
        state = fresh()._replace(review_count=4, interval=5, ease_factor=2.5)
        assert review(state, 5).interval == 13  # 12.5

    def test_interval_capped(self):
        state = fresh()._replace(review_count=20, interval=30000, ease_factor=4.5)
        result = review(state, 5)
        assert result.interval == settings.max_interval_days
        assert result.next_review_date == NOW + timedelta(days=settings.max_interval_days)

    def test_long_success_streak_stays_representable(self):
        state = fresh()
        for _ in range(60):
            state = review(state, 5)
        assert state.interval == settings.max_interval_days
        assert state.review_count == 60

    def test_failure_resets_interval_regardless_of_history(self):
        state = fresh()._replace(review_count=7, interval=40, ease_factor=2.8)
        result = review(state, 2)
        assert result.interval == 1
        assert result.review_count == 8


class TestEaseFactor:
    @pytest.mark.parametrize("quality,expected", [(5, 2.6), (4, 2.5), (3, 2.36)])
    def test_adjustment_on_success(self, quality, expected):
        assert SM2Algorithm.adjust_ease_factor(2.5, quality) == pytest.approx(expected)

    @pytest.mark.parametrize("quality", [0, 1, 2])
    def test_failure_leaves_ease_factor_alone(self, quality):
        state = fresh()._replace(review_count=3, interval=10, ease_factor=2.2)
        assert review(state, quality).ease_factor == pytest.approx(2.2)

    def test_failure_still_clamps_to_floor(self):
        state = fresh()._replace(review_count=3, interval=10, ease_factor=1.1)
        assert review(state, 1).ease_factor == pytest.approx(1.3)

    def test_never_below_floor(self):
        state = fresh()
        for quality in [3, 3, 3, 3, 3, 3, 3, 3, 0, 3, 3, 3]:
            state = review(state, quality)
            assert state.ease_factor >= 1.3
        assert state.ease_factor == pytest.approx(1.3)

    def test_no_ceiling(self):
        state = fresh()
        for _ in range(10):
            state = review(state, 5)
        assert state.ease_factor == pytest.approx(3.5)


class TestWorkedExample:
    def test_three_reviews(self):
        first = review(fresh(), 4)
        assert first.review_count == 1
        assert first.interval == 1
        assert first.ease_factor == pytest.approx(2.5)
        assert first.mastery_level == MasteryLevel.NEW.value

        second = review(first, 5)
        assert second.review_count == 2
        assert second.interval == 6
        assert second.ease_factor == pytest.approx(2.6)
        assert second.mastery_level == MasteryLevel.DEVELOPING.value

        third = review(second, 3)
        assert third.review_count == 3
        assert third.interval == 16
        assert third.ease_factor == pytest.approx(2.46)
        assert third.mastery_level == MasteryLevel.DEVELOPING.value


class TestMastery:
    def test_uses_count_before_this_review(self):
        # count 2 -> 3 with quality 3 is still DEVELOPING; FAMILIAR needs 3 prior reviews
        assert SM2Algorithm.classify_mastery(2, 5, "DEVELOPING") == "DEVELOPING"
        assert SM2Algorithm.classify_mastery(3, 3, "DEVELOPING") == "FAMILIAR"

    def test_mastered_needs_five_prior_reviews_and_quality_four(self):
        assert SM2Algorithm.classify_mastery(5, 4, "FAMILIAR") == "MASTERED"
        assert SM2Algorithm.classify_mastery(4, 5, "FAMILIAR") == "FAMILIAR"
        assert SM2Algorithm.classify_mastery(5, 3, "FAMILIAR") == "FAMILIAR"

    def test_new_topic_keeps_level(self):
        assert SM2Algorithm.classify_mastery(0, 5, "NEW") == "NEW"

    def test_can_fall(self):
        state = fresh()._replace(review_count=5, interval=30, ease_factor=2.5, mastery_level="FAMILIAR")
        mastered = review(state, 4)
        assert mastered.mastery_level == "MASTERED"
        dropped = review(mastered, 2)
        assert dropped.mastery_level == "DEVELOPING"


class TestValidation:
    @pytest.mark.parametrize("quality", [-1, 6, 2.5, "4", None, True])
    def test_rejects_bad_quality(self, quality):
        with pytest.raises(InvalidQuality):
            SM2Algorithm.calculate_next_review(2.5, 1, 0, quality)

    def test_error_code(self):
        with pytest.raises(InvalidQuality) as exc_info:
            SM2Algorithm.validate_quality(9)
        assert exc_info.value.code == "INVALID_QUALITY"


class TestHelpers:
    def test_initialize_topic(self):
        ef, interval, count, next_review = SM2Algorithm.initialize_topic(NOW)
        assert (ef, interval, count) == (2.5, 1, 0)
        assert next_review == NOW + timedelta(days=1)

    def test_due_and_overdue(self):
        due = NOW - timedelta(days=3, hours=2)
        assert SM2Algorithm.is_due_for_review(due, NOW)
        assert SM2Algorithm.get_days_overdue(due, NOW) == 3
        assert not SM2Algorithm.is_due_for_review(NOW + timedelta(hours=1), NOW)
        assert SM2Algorithm.get_days_overdue(NOW + timedelta(hours=1), NOW) == 0
