"""
Stats Engine: Dashboard summaries over a user's review records.

This is a pure computation module with no I/O. Callers fetch every review
record of the user once and hand the snapshot in.
"""

from __future__ import annotations

from collections.abc import Collection, Iterable
from datetime import datetime, timedelta

from neet_recall.clock import Clock, end_of_day, local_now, start_of_day
from neet_recall.models import CardReview, ReviewForecast, ReviewSessionStats
from neet_recall.scheduling.sm2 import SM2Config


class StatsEngine:
    """
    Computes due counts, status buckets, forecast and the reviewed-today flag.

    Stateless and side-effect free.
    """

    def __init__(self, config: SM2Config | None = None, clock: Clock | None = None):
        self.config = config or SM2Config()
        self._clock = clock or local_now

    def compute_stats(
        self,
        user_id: str,
        reviews: Iterable[CardReview],
        now: datetime | None = None,
    ) -> ReviewSessionStats:
        """
        Summarize a user's review records.

        Args:
            user_id: Learner identifier; records of other users are ignored
            reviews: Snapshot of the user's CardReview records
            now: Reference time (defaults to the engine clock)

        Returns:
            ReviewSessionStats for the dashboard
        """
        now = now or self._clock()
        today_start = start_of_day(now)
        today_end = end_of_day(now)
        tomorrow = now + timedelta(days=1)
        day_after = tomorrow + timedelta(days=1)
        next_week = now + timedelta(days=7)
        learning = self.config.learning_repetitions

        total_due = reviewed_today = 0
        new_cards = learning_cards = review_cards = mastered_cards = 0
        due_tomorrow = due_next_week = 0

        for review in reviews:
            if review.user_id != user_id:
                continue
            due_at = review.next_review_date

            if due_at <= today_end:
                total_due += 1
            if (
                review.last_review_date is not None
                and today_start <= review.last_review_date <= today_end
            ):
                reviewed_today += 1

            if review.repetitions == 0:
                new_cards += 1
            elif review.repetitions < learning:
                learning_cards += 1

            # A card with ease >= 2.5 but interval < 21 lands in neither bucket.
            if review.repetitions >= learning:
                if review.ease_factor < self.config.mastered_min_ease:
                    review_cards += 1
                elif review.interval >= self.config.mastered_min_interval:
                    mastered_cards += 1

            if tomorrow <= due_at < day_after:
                due_tomorrow += 1
            if tomorrow < due_at <= next_week:
                due_next_week += 1

        return ReviewSessionStats(
            total_due=total_due,
            reviewed_today=reviewed_today,
            new_cards=new_cards,
            learning_cards=learning_cards,
            review_cards=review_cards,
            mastered_cards=mastered_cards,
            # TODO: consecutive-day streak needs a per-day review log; binary until then
            streak_days=1 if reviewed_today > 0 else 0,
            forecast=ReviewForecast(tomorrow=due_tomorrow, next_week=due_next_week),
        )

    def due_card_ids(
        self,
        user_id: str,
        reviews: Iterable[CardReview],
        deck_card_ids: Collection[str] | None = None,
        now: datetime | None = None,
    ) -> list[str]:
        """
        Card ids whose next review date has passed, earliest first.

        Args:
            user_id: Learner identifier
            reviews: Snapshot of the user's CardReview records
            deck_card_ids: Optional card ids of one deck to intersect with
            now: Reference time (defaults to the engine clock)
        """
        now = now or self._clock()
        allowed = set(deck_card_ids) if deck_card_ids is not None else None
        due = [
            review
            for review in reviews
            if review.user_id == user_id
            and review.next_review_date <= now
            and (allowed is None or review.card_id in allowed)
        ]
        due.sort(key=lambda review: review.next_review_date)
        return [review.card_id for review in due]
