"""
In-memory storage adapters.

Used by tests and by hosts that keep state elsewhere and hydrate per request.
A single lock per store serialises every mutation, which makes ``upsert`` and
``update_with`` atomic within one process. Records are copied on the way in
and out so callers never hold references into the store.
"""

from __future__ import annotations

import threading
import uuid
from collections.abc import Callable, Mapping
from dataclasses import replace
from typing import Any

from loguru import logger

from neet_recall.exceptions import RecordNotFoundError, ReviewValidationError, StoreError
from neet_recall.models import CardReview, MistakePattern, QuizAttempt
from neet_recall.store.ports import (
    PATTERN_UPDATABLE_FIELDS,
    REVIEW_UPDATABLE_FIELDS,
    MistakeStore,
    PatternMerge,
    ReviewMerge,
    ReviewStore,
)


def _new_id() -> str:
    return uuid.uuid4().hex


def _check_fields(partial: Mapping[str, Any], allowed: frozenset[str]) -> None:
    unknown = set(partial) - allowed
    if unknown:
        raise ReviewValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")


def _copy_pattern(pattern: MistakePattern) -> MistakePattern:
    return replace(pattern, related_questions=set(pattern.related_questions))


class InMemoryReviewStore(ReviewStore):
    """Dict-backed ReviewStore."""

    def __init__(self, reviews: list[CardReview] | None = None):
        self._lock = threading.Lock()
        self._by_id: dict[str, CardReview] = {}
        self._by_key: dict[tuple[str, str], str] = {}
        for review in reviews or []:
            self.create(review)

    def get(self, card_id: str, user_id: str) -> CardReview | None:
        with self._lock:
            review_id = self._by_key.get((card_id, user_id))
            return replace(self._by_id[review_id]) if review_id else None

    def get_by_id(self, review_id: str) -> CardReview:
        with self._lock:
            return replace(self._require(review_id))

    def create(self, review: CardReview) -> CardReview:
        with self._lock:
            return replace(self._insert(review))

    def update(self, review_id: str, partial: Mapping[str, Any]) -> CardReview:
        _check_fields(partial, REVIEW_UPDATABLE_FIELDS)
        with self._lock:
            updated = replace(self._require(review_id), **partial)
            self._by_id[review_id] = updated
            return replace(updated)

    def list_by_user(self, user_id: str) -> list[CardReview]:
        with self._lock:
            return [replace(r) for r in self._by_id.values() if r.user_id == user_id]

    def upsert(self, card_id: str, user_id: str, merge: ReviewMerge) -> CardReview:
        with self._lock:
            review_id = self._by_key.get((card_id, user_id))
            current = replace(self._by_id[review_id]) if review_id else None
            merged = merge(current)
            if review_id is None:
                stored = self._insert(merged)
            else:
                stored = replace(merged, review_id=review_id, card_id=card_id, user_id=user_id)
                self._by_id[review_id] = stored
            return replace(stored)

    def _insert(self, review: CardReview) -> CardReview:
        key = (review.card_id, review.user_id)
        if key in self._by_key:
            raise StoreError(
                f"Review for card {review.card_id} and user {review.user_id} already exists"
            )
        stored = replace(review, review_id=review.review_id or _new_id())
        self._by_id[stored.review_id] = stored
        self._by_key[key] = stored.review_id
        logger.debug(f"Created review {stored.review_id} for card {review.card_id}")
        return stored

    def _require(self, review_id: str) -> CardReview:
        try:
            return self._by_id[review_id]
        except KeyError:
            raise RecordNotFoundError(f"Card review not found: {review_id}") from None


class InMemoryMistakeStore(MistakeStore):
    """Dict-backed MistakeStore, including quiz attempts."""

    def __init__(self):
        self._lock = threading.Lock()
        self._by_id: dict[str, MistakePattern] = {}
        self._by_key: dict[tuple[str, str], str] = {}
        self._attempts: list[QuizAttempt] = []

    def get(self, user_id: str, concept_id: str) -> MistakePattern | None:
        with self._lock:
            pattern_id = self._by_key.get((user_id, concept_id))
            return _copy_pattern(self._by_id[pattern_id]) if pattern_id else None

    def get_by_id(self, pattern_id: str) -> MistakePattern:
        with self._lock:
            return _copy_pattern(self._require(pattern_id))

    def create(self, pattern: MistakePattern) -> MistakePattern:
        with self._lock:
            return _copy_pattern(self._insert(pattern))

    def update(self, pattern_id: str, partial: Mapping[str, Any]) -> MistakePattern:
        _check_fields(partial, PATTERN_UPDATABLE_FIELDS)
        with self._lock:
            updated = _copy_pattern(replace(self._require(pattern_id), **partial))
            self._by_id[pattern_id] = updated
            return _copy_pattern(updated)

    def list_by_user(self, user_id: str, subject: str | None = None) -> list[MistakePattern]:
        with self._lock:
            patterns = [
                _copy_pattern(p)
                for p in self._by_id.values()
                if p.user_id == user_id and (subject is None or p.subject == subject)
            ]
        return sorted(patterns, key=lambda p: p.mistake_count, reverse=True)

    def upsert(self, user_id: str, concept_id: str, merge: PatternMerge) -> MistakePattern:
        with self._lock:
            pattern_id = self._by_key.get((user_id, concept_id))
            current = _copy_pattern(self._by_id[pattern_id]) if pattern_id else None
            merged = merge(current)
            if pattern_id is None:
                stored = self._insert(merged)
            else:
                stored = _copy_pattern(
                    replace(merged, pattern_id=pattern_id, user_id=user_id, concept_id=concept_id)
                )
                self._by_id[pattern_id] = stored
            return _copy_pattern(stored)

    def update_with(
        self,
        pattern_id: str,
        fn: Callable[[MistakePattern], MistakePattern],
    ) -> MistakePattern:
        with self._lock:
            current = _copy_pattern(self._require(pattern_id))
            stored = _copy_pattern(replace(fn(current), pattern_id=pattern_id))
            self._by_id[pattern_id] = stored
            return _copy_pattern(stored)

    def add_attempt(self, attempt: QuizAttempt) -> QuizAttempt:
        with self._lock:
            stored = replace(
                attempt,
                attempt_id=attempt.attempt_id or _new_id(),
                wrong_answers=list(attempt.wrong_answers),
            )
            self._attempts.append(stored)
            return replace(stored)

    def list_attempts(self, user_id: str, limit: int = 20) -> list[QuizAttempt]:
        with self._lock:
            attempts = [replace(a) for a in self._attempts if a.user_id == user_id]
        attempts.sort(key=lambda a: a.completed_at, reverse=True)
        return attempts[:limit]

    def _insert(self, pattern: MistakePattern) -> MistakePattern:
        key = (pattern.user_id, pattern.concept_id)
        if key in self._by_key:
            raise StoreError(
                f"Pattern for user {pattern.user_id} and concept {pattern.concept_id} already exists"
            )
        stored = _copy_pattern(replace(pattern, pattern_id=pattern.pattern_id or _new_id()))
        self._by_id[stored.pattern_id] = stored
        self._by_key[key] = stored.pattern_id
        logger.debug(f"Created mistake pattern {stored.pattern_id} for {pattern.concept_id}")
        return stored

    def _require(self, pattern_id: str) -> MistakePattern:
        try:
            return self._by_id[pattern_id]
        except KeyError:
            raise RecordNotFoundError(f"Mistake pattern not found: {pattern_id}") from None
