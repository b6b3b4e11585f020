"""
Unit tests for the SM-2 scheduler.

Pure computation; every test passes an explicit ``now``.
"""

from datetime import timedelta

import pytest

from neet_recall.exceptions import ReviewValidationError
from neet_recall.models import ReviewStatus
from neet_recall.scheduling.sm2 import SM2Config, SM2Scheduler, round_half_up, validate_quality


@pytest.fixture
def scheduler(clock):
    return SM2Scheduler(clock=clock)


class TestEaseFactor:
    @pytest.mark.parametrize(
        "quality,expected",
        [(5, 2.6), (4, 2.5), (3, 2.36), (2, 2.18), (1, 1.96), (0, 1.7)],
    )
    def test_ease_update_per_grade(self, scheduler, make_review, now, quality, expected):
        result = scheduler.compute_next_review(make_review(ease_factor=2.5), quality, now=now)
        assert result.ease_factor == pytest.approx(expected)

    def test_ease_is_floored(self, scheduler, make_review, now):
        result = scheduler.compute_next_review(make_review(ease_factor=1.4), 0, now=now)
        assert result.ease_factor == pytest.approx(1.3)

    def test_ease_updates_even_on_failure(self, scheduler, make_review, now):
        result = scheduler.compute_next_review(
            make_review(ease_factor=2.5, interval=30, repetitions=5), 2, now=now
        )
        assert result.ease_factor < 2.5


class TestIntervalProgression:
    def test_first_pass_is_one_day(self, scheduler, make_review, now):
        result = scheduler.compute_next_review(make_review(), 4, now=now)
        assert result.interval == 1
        assert result.repetitions == 1
        assert result.review_status is ReviewStatus.LEARNING

    def test_second_pass_is_six_days(self, scheduler, make_review, now):
        prior = make_review(ease_factor=2.5, interval=1, repetitions=1)
        result = scheduler.compute_next_review(prior, 4, now=now)
        assert result.interval == 6
        assert result.repetitions == 2

    def test_second_pass_ignores_prior_interval(self, scheduler, make_review, now):
        # repetitions == 1 always gives the fixed second interval, not interval * ease
        prior = make_review(ease_factor=2.5, interval=6, repetitions=1)
        result = scheduler.compute_next_review(prior, 4, now=now)
        assert result.interval == 6
        assert result.repetitions == 2
        assert result.ease_factor == pytest.approx(2.5)

    def test_later_passes_multiply_by_new_ease(self, scheduler, make_review, now):
        prior = make_review(ease_factor=2.5, interval=6, repetitions=2)
        result = scheduler.compute_next_review(prior, 4, now=now)
        # ease stays 2.5 for grade 4, so round(6 * 2.5)
        assert result.interval == 15
        assert result.repetitions == 3

    def test_multiplier_uses_updated_ease(self, scheduler, make_review, now):
        prior = make_review(ease_factor=2.5, interval=10, repetitions=3)
        result = scheduler.compute_next_review(prior, 3, now=now)
        # 10 * 2.36 = 23.6
        assert result.interval == 24

    def test_failure_resets(self, scheduler, make_review, now):
        prior = make_review(ease_factor=2.5, interval=30, repetitions=5)
        result = scheduler.compute_next_review(prior, 1, now=now)
        assert result.repetitions == 0
        assert result.interval == 1
        assert 1.3 <= result.ease_factor < 2.5
        assert result.review_status is ReviewStatus.NEW

    def test_interval_capped_at_one_year(self, scheduler, make_review, now):
        prior = make_review(ease_factor=2.8, interval=300, repetitions=8)
        result = scheduler.compute_next_review(prior, 5, now=now)
        assert result.interval == 365

    def test_next_review_date_is_now_plus_interval(self, scheduler, make_review, now):
        prior = make_review(ease_factor=2.5, interval=1, repetitions=1)
        result = scheduler.compute_next_review(prior, 5, now=now)
        assert result.next_review_date == now + timedelta(days=6)

    def test_uses_clock_when_now_omitted(self, scheduler, make_review, clock):
        clock.advance(days=3)
        result = scheduler.compute_next_review(make_review(), 4)
        assert result.next_review_date == clock.now + timedelta(days=1)


class TestReviewStatus:
    def test_mastered_needs_ease_and_interval(self, scheduler, make_review, now):
        prior = make_review(ease_factor=2.5, interval=10, repetitions=3)
        result = scheduler.compute_next_review(prior, 5, now=now)
        # ease 2.6, interval round(10 * 2.6) = 26
        assert result.interval == 26
        assert result.review_status is ReviewStatus.MASTERED

    def test_low_ease_is_review(self, scheduler):
        assert scheduler.review_status(4, 2.0, 60) is ReviewStatus.REVIEW

    def test_short_interval_is_review(self, scheduler):
        assert scheduler.review_status(4, 2.7, 20) is ReviewStatus.REVIEW

    def test_learning_below_three_repetitions(self, scheduler):
        assert scheduler.review_status(2, 3.0, 100) is ReviewStatus.LEARNING


class TestValidation:
    @pytest.mark.parametrize("quality", [-1, 6, 3.0, "4", True, None])
    def test_invalid_quality_rejected(self, quality):
        with pytest.raises(ReviewValidationError):
            validate_quality(quality)

    def test_invalid_quality_is_value_error(self, scheduler, make_review, now):
        with pytest.raises(ValueError):
            scheduler.compute_next_review(make_review(), 7, now=now)

    @pytest.mark.parametrize(
        "fields",
        [
            {"ease_factor": 1.2},
            {"ease_factor": float("nan")},
            {"ease_factor": float("inf")},
            {"interval": -1},
            {"interval": 400},
            {"repetitions": -2},
        ],
    )
    def test_invalid_prior_state_rejected(self, scheduler, make_review, now, fields):
        with pytest.raises(ReviewValidationError):
            scheduler.compute_next_review(make_review(**fields), 4, now=now)

    def test_round_half_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(14.5) == 15
        assert round_half_up(14.49) == 14


class TestApply:
    def test_apply_stamps_review_time_and_keeps_identity(self, scheduler, make_review, now):
        prior = make_review(review_id="r-1", interval=1, repetitions=1)
        updated = scheduler.apply(prior, 4, now=now)

        assert updated.review_id == "r-1"
        assert updated.created_at == prior.created_at
        assert updated.last_review_date == now
        assert updated.updated_at == now
        assert updated.interval == 6

    def test_apply_does_not_mutate_prior(self, scheduler, make_review, now):
        prior = make_review(interval=6, repetitions=2)
        scheduler.apply(prior, 5, now=now)
        assert prior.interval == 6
        assert prior.repetitions == 2

    def test_custom_config(self, make_review, now):
        scheduler = SM2Scheduler(SM2Config(first_interval=2, max_interval=30))
        assert scheduler.compute_next_review(make_review(), 4, now=now).interval == 2
