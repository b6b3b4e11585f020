"""
Mistake Tracking Service: Quiz attempt logging and weak-concept queries.

Handles:
- Logging a finished quiz and feeding its wrong answers to the aggregator
- Listing attempts and mistake patterns
- Weak concepts for the insights view, degrading to an empty list when
  mistake tracking is not provisioned
"""

from __future__ import annotations

from loguru import logger

from neet_recall.clock import Clock, local_now
from neet_recall.exceptions import StoreNotConfiguredError
from neet_recall.mistakes.aggregator import BatchResult, MistakeAggregator
from neet_recall.models import MistakePattern, QuizAttempt, QuizAttemptCreate
from neet_recall.store.ports import MistakeStore


class MistakeTrackingService:
    """
    Orchestrates mistake tracking over an optional MistakeStore.

    ``store`` may be None when the host has not provisioned mistake
    tracking; read paths then return empty results and write paths raise
    StoreNotConfiguredError.
    """

    def __init__(
        self,
        store: MistakeStore | None,
        aggregator: MistakeAggregator | None = None,
        clock: Clock | None = None,
        weak_concepts_limit: int = 5,
        attempts_limit: int = 20,
    ):
        self.store = store
        self._clock = clock or local_now
        self.aggregator = aggregator
        if self.aggregator is None and store is not None:
            self.aggregator = MistakeAggregator(store, clock=self._clock)
        self.weak_concepts_limit = weak_concepts_limit
        self.attempts_limit = attempts_limit

    def _require_store(self) -> MistakeStore:
        if self.store is None:
            raise StoreNotConfiguredError("Mistake tracking store is not configured")
        return self.store

    def _require_aggregator(self) -> MistakeAggregator:
        self._require_store()
        return self.aggregator

    def log_quiz_attempt(
        self,
        user_id: str,
        attempt: QuizAttemptCreate,
    ) -> tuple[QuizAttempt, BatchResult]:
        """
        Log a quiz attempt and update mistake patterns for its wrong answers.

        Returns:
            The stored attempt and the per-item outcome of the aggregation
        """
        store = self._require_store()
        stored = store.add_attempt(
            QuizAttempt(
                user_id=user_id,
                card_id=attempt.card_id,
                deck_id=attempt.deck_id,
                quiz_mode=attempt.quiz_mode,
                score=attempt.score,
                total_questions=attempt.total_questions,
                wrong_answers=list(attempt.wrong_answers),
                completed_at=self._clock(),
            )
        )
        logger.info(
            f"Quiz attempt {stored.attempt_id} logged: deck={attempt.deck_id} "
            f"mode={attempt.quiz_mode} score={attempt.score} "
            f"wrong={len(attempt.wrong_answers)}/{attempt.total_questions}"
        )

        result = BatchResult()
        if attempt.wrong_answers:
            result = self._require_aggregator().record_mistakes(user_id, attempt.wrong_answers)
        return stored, result

    def list_attempts(self, user_id: str, limit: int | None = None) -> list[QuizAttempt]:
        return self._require_store().list_attempts(
            user_id, self.attempts_limit if limit is None else limit
        )

    def get_mistake_patterns(self, user_id: str, subject: str | None = None) -> list[MistakePattern]:
        """All patterns of a user, most mistakes first."""
        return self._require_store().list_by_user(user_id, subject=subject)

    def weak_concepts(
        self,
        user_id: str,
        subject: str | None = None,
        limit: int | None = None,
    ) -> list[MistakePattern]:
        """
        Top weak concepts for the insights view.

        Returns an empty list when mistake tracking is not configured;
        storage failures still propagate as StoreError.
        """
        try:
            patterns = self.get_mistake_patterns(user_id, subject=subject)
        except StoreNotConfiguredError as exc:
            logger.warning(f"Mistake tracking unavailable, showing no weak concepts: {exc}")
            return []
        return patterns[: self.weak_concepts_limit if limit is None else limit]

    def mark_reviewed(self, pattern_id: str) -> MistakePattern:
        return self._require_aggregator().mark_reviewed(pattern_id)
