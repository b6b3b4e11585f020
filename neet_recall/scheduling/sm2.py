"""
SM-2 Spaced Repetition Scheduler.

Implements the review-state update used after every flashcard review:
- Ease factor adjustment (always applied, floored at 1.3)
- Hard reset on failed recall
- 1 / 6 / interval * ease progression on successful recall
- Interval cap of one year
- Read-time review status derivation

SM-2 Grade Scale:
0 - Complete blackout, wrong response
1 - Incorrect, but upon seeing answer remembered
2 - Incorrect, but answer seemed easy to recall
3 - Correct, but with significant difficulty
4 - Correct, with some hesitation
5 - Correct, with perfect recall
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta

from neet_recall.clock import Clock, local_now
from neet_recall.config import Settings
from neet_recall.exceptions import ReviewValidationError
from neet_recall.models import CardReview, NextReview, ReviewStatus

MIN_QUALITY = 0
MAX_QUALITY = 5
PASSING_QUALITY = 3


@dataclass(frozen=True)
class SM2Config:
    """Configuration for SM-2 algorithm."""

    initial_ease: float = 2.5
    minimum_ease: float = 1.3
    first_interval: int = 1  # Days for first review
    second_interval: int = 6  # Days for second review
    max_interval: int = 365
    learning_repetitions: int = 3
    mastered_min_ease: float = 2.5
    mastered_min_interval: int = 21

    @classmethod
    def from_settings(cls, settings: Settings) -> SM2Config:
        return cls(**settings.get_scheduler_config())


def validate_quality(quality: object) -> int:
    """Reject anything that is not an integer rating in [0, 5]."""
    if isinstance(quality, bool) or not isinstance(quality, int):
        raise ReviewValidationError(f"Quality rating must be an integer, got {quality!r}")
    if not MIN_QUALITY <= quality <= MAX_QUALITY:
        raise ReviewValidationError(
            f"Quality rating must be between {MIN_QUALITY} and {MAX_QUALITY}, got {quality}"
        )
    return quality


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class SM2Scheduler:
    """
    Implements the SM-2 spaced repetition algorithm.

    The SuperMemo 2 algorithm calculates review intervals based on
    performance history. Each card review has:
    - Ease Factor (EF): How quickly intervals grow (2.5 default, min 1.3)
    - Interval: Days until next review
    - Repetitions: Consecutive passing reviews since the last reset
    """

    def __init__(self, config: SM2Config | None = None, clock: Clock | None = None):
        """
        Initialize SM-2 scheduler.

        Args:
            config: Custom configuration (uses defaults if None)
            clock: Source of "now" when compute_next_review is not given one
        """
        self.config = config or SM2Config()
        self._clock = clock or local_now

    def validate_state(self, state: CardReview) -> None:
        """Check a stored review record before using it as scheduler input."""
        if not math.isfinite(state.ease_factor):
            raise ReviewValidationError(f"ease_factor {state.ease_factor} is not a finite number")
        if state.ease_factor < self.config.minimum_ease:
            raise ReviewValidationError(
                f"ease_factor {state.ease_factor} is below the minimum {self.config.minimum_ease}"
            )
        if not 0 <= state.interval <= self.config.max_interval:
            raise ReviewValidationError(
                f"interval {state.interval} is outside [0, {self.config.max_interval}]"
            )
        if state.repetitions < 0:
            raise ReviewValidationError(f"repetitions {state.repetitions} is negative")

    def compute_next_review(
        self,
        prior: CardReview,
        quality: int,
        now: datetime | None = None,
    ) -> NextReview:
        """
        Calculate the next review state from a quality rating.

        Args:
            prior: Current review record for the card
            quality: Recall quality (0-5)
            now: Reference time for the next review date

        Returns:
            NextReview with updated ease, interval, repetitions, date and status
        """
        quality = validate_quality(quality)
        self.validate_state(prior)
        now = now or self._clock()

        # EF' = EF + (0.1 - (5 - q) * (0.08 + (5 - q) * 0.02))
        ef_delta = 0.1 - (5 - quality) * (0.08 + (5 - quality) * 0.02)
        new_ef = max(self.config.minimum_ease, prior.ease_factor + ef_delta)

        if quality < PASSING_QUALITY:
            # Failed - reset to beginning
            new_repetitions = 0
            new_interval = self.config.first_interval
        else:
            if prior.repetitions == 0:
                new_interval = self.config.first_interval
            elif prior.repetitions == 1:
                new_interval = self.config.second_interval
            else:
                new_interval = round_half_up(prior.interval * new_ef)
            new_repetitions = prior.repetitions + 1

        new_interval = min(new_interval, self.config.max_interval)

        return NextReview(
            ease_factor=new_ef,
            interval=new_interval,
            repetitions=new_repetitions,
            next_review_date=now + timedelta(days=new_interval),
            review_status=self.review_status(new_repetitions, new_ef, new_interval),
        )

    def review_status(self, repetitions: int, ease_factor: float, interval: int) -> ReviewStatus:
        """Derive the display status of a review state."""
        if repetitions == 0:
            return ReviewStatus.NEW
        if repetitions < self.config.learning_repetitions:
            return ReviewStatus.LEARNING
        if (
            ease_factor >= self.config.mastered_min_ease
            and interval >= self.config.mastered_min_interval
        ):
            return ReviewStatus.MASTERED
        return ReviewStatus.REVIEW

    def apply(self, prior: CardReview, quality: int, now: datetime | None = None) -> CardReview:
        """Return a copy of ``prior`` advanced by one review at ``now``."""
        now = now or self._clock()
        result = self.compute_next_review(prior, quality, now=now)
        return CardReview(
            review_id=prior.review_id,
            card_id=prior.card_id,
            user_id=prior.user_id,
            ease_factor=result.ease_factor,
            interval=result.interval,
            repetitions=result.repetitions,
            next_review_date=result.next_review_date,
            last_review_date=now,
            created_at=prior.created_at,
            updated_at=now,
        )
