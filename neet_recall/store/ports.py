"""
Ports (interfaces) for review and mistake persistence.

These define the contract storage adapters must implement. Services depend
on these abstractions, not on concrete adapters.

Every read-modify-write goes through ``upsert`` / ``update_with`` so that
adapters can make it atomic; callers never do get-then-update themselves.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from typing import Any

from neet_recall.models import CardReview, MistakePattern, QuizAttempt

ReviewMerge = Callable[[CardReview | None], CardReview]
PatternMerge = Callable[[MistakePattern | None], MistakePattern]

REVIEW_UPDATABLE_FIELDS = frozenset(
    {
        "ease_factor",
        "interval",
        "repetitions",
        "next_review_date",
        "last_review_date",
        "updated_at",
    }
)
PATTERN_UPDATABLE_FIELDS = frozenset(
    {
        "subject",
        "topic",
        "mistake_count",
        "last_occurrence",
        "related_questions",
    }
)


class ReviewStore(ABC):
    """
    Port for CardReview records, keyed by (card_id, user_id).

    Implementations:
        - InMemoryReviewStore: process-local, lock-serialised.
        - SqlReviewStore: SQLAlchemy with optimistic concurrency.
    """

    @abstractmethod
    def get(self, card_id: str, user_id: str) -> CardReview | None:
        pass

    @abstractmethod
    def get_by_id(self, review_id: str) -> CardReview:
        """Raises RecordNotFoundError for an unknown id."""
        pass

    @abstractmethod
    def create(self, review: CardReview) -> CardReview:
        """Insert a new record and return it with ``review_id`` assigned."""
        pass

    @abstractmethod
    def update(self, review_id: str, partial: Mapping[str, Any]) -> CardReview:
        """Overwrite the given fields of an existing record."""
        pass

    @abstractmethod
    def list_by_user(self, user_id: str) -> list[CardReview]:
        """All records of a user in one fetch."""
        pass

    @abstractmethod
    def upsert(self, card_id: str, user_id: str, merge: ReviewMerge) -> CardReview:
        """
        Atomically get-or-create and update the record for (card_id, user_id).

        Args:
            card_id: Card identifier
            user_id: User identifier
            merge: Receives the current record (None if absent) and returns
                the record to persist

        Returns:
            The persisted record
        """
        pass


class MistakeStore(ABC):
    """
    Port for MistakePattern records, keyed by (user_id, concept_id), and
    the quiz attempts that feed them.
    """

    @abstractmethod
    def get(self, user_id: str, concept_id: str) -> MistakePattern | None:
        pass

    @abstractmethod
    def get_by_id(self, pattern_id: str) -> MistakePattern:
        """Raises RecordNotFoundError for an unknown id."""
        pass

    @abstractmethod
    def create(self, pattern: MistakePattern) -> MistakePattern:
        pass

    @abstractmethod
    def update(self, pattern_id: str, partial: Mapping[str, Any]) -> MistakePattern:
        pass

    @abstractmethod
    def list_by_user(self, user_id: str, subject: str | None = None) -> list[MistakePattern]:
        """Patterns of a user ordered by mistake_count descending."""
        pass

    @abstractmethod
    def upsert(self, user_id: str, concept_id: str, merge: PatternMerge) -> MistakePattern:
        """Atomically get-or-create and update the pattern for (user_id, concept_id)."""
        pass

    @abstractmethod
    def update_with(
        self,
        pattern_id: str,
        fn: Callable[[MistakePattern], MistakePattern],
    ) -> MistakePattern:
        """Atomically apply ``fn`` to an existing pattern."""
        pass

    @abstractmethod
    def add_attempt(self, attempt: QuizAttempt) -> QuizAttempt:
        pass

    @abstractmethod
    def list_attempts(self, user_id: str, limit: int = 20) -> list[QuizAttempt]:
        """Most recent attempts first."""
        pass
