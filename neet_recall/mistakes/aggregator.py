"""
Mistake Aggregator: Folds quiz wrong answers into weak-concept patterns.

Each wrong answer is clustered by concept id and upserted into the user's
MistakePattern for that concept:
- mistake_count grows by one per wrong-answer item
- related_questions is a set, so repeating a question id does not grow it
- last_occurrence moves to the time of the most recent mistake

Counting per item rather than per distinct question means
``mistake_count >= len(related_questions)`` for any pattern built only by
aggregation, but the two can diverge once ``mark_reviewed`` decrements.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field, replace

from loguru import logger

from neet_recall.clock import Clock, local_now
from neet_recall.concepts.classifier import (
    ConceptClassifier,
    subject_from_concept_id,
    topic_from_concept_id,
)
from neet_recall.exceptions import PartialBatchError
from neet_recall.models import MistakePattern, WrongAnswer
from neet_recall.store.ports import MistakeStore

SEVERITY_HIGH = "high"
SEVERITY_MEDIUM = "medium"
SEVERITY_LOW = "low"


@dataclass
class FailedItem:
    """A wrong answer that could not be recorded, with the reason."""

    answer: WrongAnswer
    error: Exception


@dataclass
class BatchResult:
    """Outcome of one record_mistakes call."""

    succeeded: list[MistakePattern] = field(default_factory=list)
    failed: list[FailedItem] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)

    @property
    def ok(self) -> bool:
        return not self.failed

    def failed_answers(self) -> list[WrongAnswer]:
        """The subset a caller would retry."""
        return [item.answer for item in self.failed]

    def raise_for_failures(self) -> None:
        if self.failed:
            raise PartialBatchError(self)


class MistakeAggregator:
    """
    Accumulates mistake counts and related questions per (user, concept).

    All writes go through MistakeStore.upsert / update_with so the store can
    apply them atomically.
    """

    def __init__(
        self,
        store: MistakeStore,
        classifier: ConceptClassifier | None = None,
        clock: Clock | None = None,
        high_threshold: int = 5,
        medium_threshold: int = 3,
    ):
        self.store = store
        self.classifier = classifier or ConceptClassifier()
        self._clock = clock or local_now
        self.high_threshold = high_threshold
        self.medium_threshold = medium_threshold

    def resolve_concept_id(self, answer: WrongAnswer) -> str:
        """Use the supplied concept id, or classify the correct answer text."""
        if answer.concept_id and answer.concept_id.strip():
            return answer.concept_id
        return self.classifier.classify(answer.correct_answer)

    def record_mistakes(self, user_id: str, wrong_answers: Iterable[WrongAnswer]) -> BatchResult:
        """
        Record a batch of wrong answers for a user.

        Items are processed in order and independently. A failing item is
        reported in ``BatchResult.failed`` and the remaining items are still
        recorded.

        Args:
            user_id: Learner identifier
            wrong_answers: Wrong answers from one completed quiz

        Returns:
            BatchResult listing updated patterns and failed items
        """
        result = BatchResult()
        for answer in wrong_answers:
            try:
                pattern = self._record_one(user_id, answer)
            except Exception as exc:  # Reported per item; see BatchResult.failed
                logger.exception(
                    f"Failed to record mistake for question {answer.question_id} (user {user_id})"
                )
                result.failed.append(FailedItem(answer=answer, error=exc))
            else:
                result.succeeded.append(pattern)

        if result.failed:
            logger.warning(
                f"Recorded {len(result.succeeded)}/{result.total} mistakes for {user_id}; "
                f"{len(result.failed)} failed"
            )
        else:
            logger.info(f"Recorded {result.total} mistakes for {user_id}")
        return result

    def _record_one(self, user_id: str, answer: WrongAnswer) -> MistakePattern:
        concept_id = self.resolve_concept_id(answer)
        subject = subject_from_concept_id(concept_id)
        topic = topic_from_concept_id(concept_id)
        now = self._clock()

        def merge(existing: MistakePattern | None) -> MistakePattern:
            if existing is None:
                return MistakePattern(
                    user_id=user_id,
                    subject=subject,
                    topic=topic,
                    concept_id=concept_id,
                    mistake_count=1,
                    last_occurrence=now,
                    related_questions={answer.question_id},
                )
            return replace(
                existing,
                mistake_count=existing.mistake_count + 1,
                last_occurrence=now,
                related_questions=existing.related_questions | {answer.question_id},
            )

        pattern = self.store.upsert(user_id, concept_id, merge)
        logger.debug(f"{concept_id}: {pattern.mistake_count} mistakes for {user_id}")
        return pattern

    def mark_reviewed(self, pattern_id: str) -> MistakePattern:
        """
        Record that the learner reviewed a weak concept.

        Decrements mistake_count by one, never below zero. Related questions
        and last_occurrence are left untouched.
        """

        def decrement(pattern: MistakePattern) -> MistakePattern:
            return replace(pattern, mistake_count=max(0, pattern.mistake_count - 1))

        pattern = self.store.update_with(pattern_id, decrement)
        logger.info(f"Pattern {pattern_id} marked reviewed ({pattern.mistake_count} remaining)")
        return pattern

    def severity(self, mistake_count: int) -> str:
        """Severity label shown next to a weak concept."""
        if mistake_count >= self.high_threshold:
            return SEVERITY_HIGH
        if mistake_count >= self.medium_threshold:
            return SEVERITY_MEDIUM
        return SEVERITY_LOW
