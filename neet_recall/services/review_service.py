"""
Review Service: Records flashcard reviews and answers due/stats queries.

Wires the SM-2 scheduler and stats engine to a ReviewStore. A review
submission is one atomic get-or-create-and-update at the store boundary.
"""

from __future__ import annotations

from collections.abc import Collection
from datetime import datetime

from loguru import logger

from neet_recall.clock import Clock, local_now
from neet_recall.models import CardReview, ReviewSessionStats, ReviewStatus
from neet_recall.scheduling.sm2 import SM2Scheduler, validate_quality
from neet_recall.stats.engine import StatsEngine
from neet_recall.store.ports import ReviewStore


class ReviewService:
    """Workflow around the scheduler: validate, schedule, persist."""

    def __init__(
        self,
        store: ReviewStore,
        scheduler: SM2Scheduler | None = None,
        stats: StatsEngine | None = None,
        clock: Clock | None = None,
    ):
        """
        Args:
            store: ReviewStore collaborator
            scheduler: SM2Scheduler (creates default if None)
            stats: StatsEngine sharing the scheduler's config (created if None)
            clock: Source of "now" for submissions and queries
        """
        self.store = store
        self._clock = clock or local_now
        self.scheduler = scheduler or SM2Scheduler(clock=self._clock)
        self.stats = stats or StatsEngine(config=self.scheduler.config, clock=self._clock)

    def _new_review(self, card_id: str, user_id: str, now: datetime) -> CardReview:
        return CardReview.new(card_id, user_id, now, ease_factor=self.scheduler.config.initial_ease)

    def get_or_create(self, card_id: str, user_id: str) -> CardReview:
        """Fetch the review record for a card, creating a fresh one if absent."""
        now = self._clock()
        return self.store.upsert(
            card_id,
            user_id,
            lambda existing: existing if existing is not None else self._new_review(card_id, user_id, now),
        )

    def submit_review(self, card_id: str, user_id: str, quality: int) -> CardReview:
        """
        Record a review and update scheduling state.

        Args:
            card_id: The reviewed card
            user_id: The learner
            quality: SM-2 grade (0-5)

        Returns:
            Updated CardReview
        """
        quality = validate_quality(quality)
        now = self._clock()

        def merge(existing: CardReview | None) -> CardReview:
            current = existing if existing is not None else self._new_review(card_id, user_id, now)
            return self.scheduler.apply(current, quality, now=now)

        review = self.store.upsert(card_id, user_id, merge)

        logger.debug(
            f"Recorded review for {card_id}: grade={quality}, "
            f"next_review={review.next_review_date:%Y-%m-%d}, interval={review.interval}d"
        )
        return review

    def status_of(self, review: CardReview) -> ReviewStatus:
        return self.scheduler.review_status(review.repetitions, review.ease_factor, review.interval)

    def due_card_ids(self, user_id: str, deck_card_ids: Collection[str] | None = None) -> list[str]:
        """Due cards of a user, optionally restricted to one deck's card ids."""
        reviews = self.store.list_by_user(user_id)
        return self.stats.due_card_ids(user_id, reviews, deck_card_ids=deck_card_ids, now=self._clock())

    def get_stats(self, user_id: str) -> ReviewSessionStats:
        """Dashboard stats from a single batch fetch of the user's reviews."""
        reviews = self.store.list_by_user(user_id)
        stats = self.stats.compute_stats(user_id, reviews, now=self._clock())
        logger.info(
            f"Stats for {user_id}: {stats.total_due} due, {stats.reviewed_today} reviewed today"
        )
        return stats
