"""
Integration tests for the SQLAlchemy stores.

Each test gets its own SQLite file under tmp_path.
"""

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from neet_recall.exceptions import (
    ConcurrencyConflictError,
    RecordNotFoundError,
    ReviewValidationError,
    StoreError,
    StoreNotConfiguredError,
)
from neet_recall.mistakes import MistakeAggregator
from neet_recall.models import CardReview, QuizAttempt, WrongAnswer
from neet_recall.services import MistakeTrackingService, ReviewService
from neet_recall.store.sql import SqlMistakeStore, SqlReviewStore, build_engine, init_schema


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'nested' / 'state.db'}")
    init_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def reviews(engine):
    return SqlReviewStore(engine)


@pytest.fixture
def mistakes(engine):
    return SqlMistakeStore(engine)


class TestSchema:
    def test_unprovisioned_database(self, tmp_path):
        engine = build_engine(f"sqlite:///{tmp_path / 'empty.db'}")
        with pytest.raises(StoreNotConfiguredError):
            SqlReviewStore(engine).list_by_user("user-1")
        with pytest.raises(StoreNotConfiguredError):
            SqlMistakeStore(engine).list_by_user("user-1")
        engine.dispose()

    def test_unprovisioned_is_not_a_store_error(self, tmp_path):
        engine = build_engine(f"sqlite:///{tmp_path / 'empty.db'}")
        try:
            SqlMistakeStore(engine).get("user-1", "x.y.z")
        except StoreError:
            pytest.fail("unprovisioned schema must not look like a transient store error")
        except StoreNotConfiguredError:
            pass
        finally:
            engine.dispose()

    def test_init_schema_idempotent(self, engine):
        init_schema(engine)


class TestSqlReviewStore:
    def test_review_workflow_round_trip(self, reviews, clock):
        service = ReviewService(reviews, clock=clock)

        service.submit_review("card-1", "user-1", 4)
        clock.advance(days=1)
        review = service.submit_review("card-1", "user-1", 4)

        stored = reviews.get("card-1", "user-1")
        assert stored == review
        assert stored.interval == 6
        assert stored.repetitions == 2
        assert stored.last_review_date == clock.now
        assert stored.next_review_date.tzinfo is not None

    def test_local_times_come_back_as_utc(self, reviews, make_review):
        ist = timezone(timedelta(hours=5, minutes=30))
        review = make_review()
        local = review.next_review_date.astimezone(ist)
        created = reviews.create(
            CardReview(
                card_id="card-9",
                user_id="user-1",
                next_review_date=local,
                created_at=local,
                updated_at=local,
            )
        )
        assert created.next_review_date == local
        assert created.next_review_date.utcoffset() == timedelta(0)

    def test_naive_clock_rejected(self, reviews):
        service = ReviewService(reviews, clock=lambda: datetime(2026, 3, 10, 9, 30))

        with pytest.raises(ReviewValidationError, match="no timezone"):
            service.submit_review("card-1", "user-1", 4)
        assert reviews.list_by_user("user-1") == []

    def test_duplicate_create_rejected(self, reviews, make_review):
        reviews.create(make_review())
        with pytest.raises(StoreError):
            reviews.create(make_review())

    def test_partial_update(self, reviews, make_review):
        created = reviews.create(make_review())
        updated = reviews.update(created.review_id, {"interval": 3, "repetitions": 1})
        assert (updated.interval, updated.repetitions) == (3, 1)

    def test_partial_update_rejects_identity_fields(self, reviews, make_review):
        created = reviews.create(make_review())
        with pytest.raises(ReviewValidationError):
            reviews.update(created.review_id, {"user_id": "someone-else"})

    def test_missing_review(self, reviews):
        with pytest.raises(RecordNotFoundError):
            reviews.get_by_id("nope")

    def test_upsert_retries_after_concurrent_update(self, reviews, make_review):
        created = reviews.create(make_review(interval=1, repetitions=1))
        calls = []

        def merge(existing):
            calls.append(existing.interval)
            if len(calls) == 1:
                # Another writer commits between our read and our write
                reviews.update(created.review_id, {"interval": 3})
            return replace(existing, repetitions=existing.repetitions + 1)

        result = reviews.upsert("card-1", "user-1", merge)

        assert calls == [1, 3]
        assert result.interval == 3
        assert result.repetitions == 2

    def test_upsert_gives_up_after_max_retries(self, engine, make_review):
        store = SqlReviewStore(engine, max_retries=2)
        created = store.create(make_review())
        attempts = []

        def merge(existing):
            attempts.append(1)
            store.update(created.review_id, {"interval": len(attempts)})
            return replace(existing, repetitions=existing.repetitions + 1)

        with pytest.raises(ConcurrencyConflictError):
            store.upsert("card-1", "user-1", merge)
        assert len(attempts) == 2


class TestSqlMistakeStore:
    def test_aggregation_round_trip(self, mistakes, clock):
        aggregator = MistakeAggregator(mistakes, clock=clock)
        answers = [
            WrongAnswer(question_id="q-1", correct_answer="Mitochondria"),
            WrongAnswer(question_id="q-2", correct_answer="Mitochondria"),
            WrongAnswer(question_id="q-1", correct_answer="Mitochondria"),
        ]

        result = aggregator.record_mistakes("user-1", answers)

        assert result.ok
        pattern = mistakes.get("user-1", "biology.cell_biology.mitochondria")
        assert pattern.mistake_count == 3
        assert pattern.related_questions == {"q-1", "q-2"}

        assert aggregator.mark_reviewed(pattern.pattern_id).mistake_count == 2

    def test_list_by_subject_ordered(self, mistakes, clock):
        aggregator = MistakeAggregator(mistakes, clock=clock)
        aggregator.record_mistakes(
            "user-1",
            [
                WrongAnswer(question_id="q-1", concept_id="physics.optics.prism"),
                WrongAnswer(question_id="q-2", concept_id="biology.genetics.allele"),
                WrongAnswer(question_id="q-3", concept_id="biology.genetics.allele"),
            ],
        )

        assert [p.concept_id for p in mistakes.list_by_user("user-1")] == [
            "biology.genetics.allele",
            "physics.optics.prism",
        ]
        assert [p.subject for p in mistakes.list_by_user("user-1", subject="physics")] == ["physics"]

    def test_attempts_persist_wrong_answers(self, mistakes, now):
        answer = WrongAnswer(question_id="q-1", user_answer="Aorta", correct_answer="Vena cava")
        mistakes.add_attempt(
            QuizAttempt(
                user_id="user-1",
                card_id="card-1",
                deck_id="deck-1",
                quiz_mode="flashcard_labels",
                score=80,
                total_questions=5,
                completed_at=now,
                wrong_answers=[answer],
            )
        )

        [stored] = mistakes.list_attempts("user-1")
        assert stored.wrong_answers == [answer]
        assert stored.completed_at == now

    def test_weak_concepts_through_service(self, mistakes, clock):
        service = MistakeTrackingService(mistakes, clock=clock)
        MistakeAggregator(mistakes, clock=clock).record_mistakes(
            "user-1", [WrongAnswer(question_id="q-1", correct_answer="Convex lens")]
        )

        [weak] = service.weak_concepts("user-1", subject="physics")
        assert weak.concept_id == "physics.optics.convex_lens"

    def test_mark_reviewed_unknown(self, mistakes):
        with pytest.raises(RecordNotFoundError):
            MistakeAggregator(mistakes).mark_reviewed("missing")
