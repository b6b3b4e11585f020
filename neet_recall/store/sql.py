"""
SQLAlchemy storage adapters.

Implements ReviewStore and MistakeStore on any SQLAlchemy-supported database
(SQLite by default). Lost updates are prevented by:
- a unique constraint on each natural key, so two racing creates cannot both win
- ``version_id_col`` optimistic concurrency, so a stale update raises
  StaleDataError instead of overwriting

Both are retried inside ``upsert`` / ``update_with`` up to ``max_retries``.
Datetimes are stored as naive UTC and returned timezone-aware.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Generator, Mapping
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from loguru import logger
from sqlalchemy import (
    JSON,
    DateTime,
    Engine,
    Float,
    Index,
    Integer,
    String,
    UniqueConstraint,
    create_engine,
    inspect,
    select,
)
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from neet_recall.exceptions import (
    ConcurrencyConflictError,
    NeetRecallError,
    RecordNotFoundError,
    ReviewValidationError,
    StoreError,
    StoreNotConfiguredError,
)
from neet_recall.models import CardReview, MistakePattern, QuizAttempt, WrongAnswer
from neet_recall.store.ports import (
    PATTERN_UPDATABLE_FIELDS,
    REVIEW_UPDATABLE_FIELDS,
    MistakeStore,
    PatternMerge,
    ReviewMerge,
    ReviewStore,
)

# =============================================================================
# Schema
# =============================================================================


class Base(DeclarativeBase):
    pass


class CardReviewRow(Base):
    __tablename__ = "card_reviews"
    __table_args__ = (
        UniqueConstraint("card_id", "user_id", name="uq_card_reviews_card_user"),
        Index("ix_card_reviews_user_next_review", "user_id", "next_review_date"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    card_id: Mapped[str] = mapped_column(String(64), nullable=False)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    ease_factor: Mapped[float] = mapped_column(Float, nullable=False, default=2.5)
    interval: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    repetitions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    next_review_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    last_review_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class MistakePatternRow(Base):
    __tablename__ = "mistake_patterns"
    __table_args__ = (
        UniqueConstraint("user_id", "concept_id", name="uq_mistake_patterns_user_concept"),
        Index("ix_mistake_patterns_user_subject", "user_id", "subject"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    subject: Mapped[str] = mapped_column(String(50), nullable=False)
    topic: Mapped[str] = mapped_column(String(100), nullable=False)
    concept_id: Mapped[str] = mapped_column(String(200), nullable=False)
    mistake_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_occurrence: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    related_questions: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class QuizAttemptRow(Base):
    __tablename__ = "quiz_attempts"
    __table_args__ = (Index("ix_quiz_attempts_user_completed", "user_id", "completed_at"),)

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    card_id: Mapped[str] = mapped_column(String(64), nullable=False)
    deck_id: Mapped[str] = mapped_column(String(64), nullable=False)
    quiz_mode: Mapped[str] = mapped_column(String(50), nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    total_questions: Mapped[int] = mapped_column(Integer, nullable=False)
    wrong_answers: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    completed_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine, making the parent directory of a SQLite file if needed."""
    if database_url.startswith("sqlite:///"):
        db_path = database_url.removeprefix("sqlite:///")
        if db_path and db_path != ":memory:":
            Path(db_path).expanduser().parent.mkdir(parents=True, exist_ok=True)
    return create_engine(database_url, echo=echo, pool_pre_ping=True)


def init_schema(engine: Engine) -> None:
    """Create all tables (idempotent)."""
    Base.metadata.create_all(bind=engine)
    logger.info("Review and mistake tables initialized")


# =============================================================================
# Conversions
# =============================================================================


def _to_db(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None or value.utcoffset() is None:
        raise ReviewValidationError(f"Timestamp {value.isoformat()} has no timezone")
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _from_db(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


def _review_from_row(row: CardReviewRow) -> CardReview:
    return CardReview(
        review_id=row.id,
        card_id=row.card_id,
        user_id=row.user_id,
        ease_factor=row.ease_factor,
        interval=row.interval,
        repetitions=row.repetitions,
        next_review_date=_from_db(row.next_review_date),
        last_review_date=_from_db(row.last_review_date),
        created_at=_from_db(row.created_at),
        updated_at=_from_db(row.updated_at),
    )


def _fill_review_row(row: CardReviewRow, review: CardReview) -> None:
    row.ease_factor = review.ease_factor
    row.interval = review.interval
    row.repetitions = review.repetitions
    row.next_review_date = _to_db(review.next_review_date)
    row.last_review_date = _to_db(review.last_review_date)
    row.updated_at = _to_db(review.updated_at)
    if row.created_at is None:
        row.created_at = _to_db(review.created_at)


def _pattern_from_row(row: MistakePatternRow) -> MistakePattern:
    return MistakePattern(
        pattern_id=row.id,
        user_id=row.user_id,
        subject=row.subject,
        topic=row.topic,
        concept_id=row.concept_id,
        mistake_count=row.mistake_count,
        last_occurrence=_from_db(row.last_occurrence),
        related_questions=set(row.related_questions or []),
    )


def _fill_pattern_row(row: MistakePatternRow, pattern: MistakePattern) -> None:
    row.subject = pattern.subject
    row.topic = pattern.topic
    row.mistake_count = pattern.mistake_count
    row.last_occurrence = _to_db(pattern.last_occurrence)
    row.related_questions = sorted(pattern.related_questions)


def _attempt_from_row(row: QuizAttemptRow) -> QuizAttempt:
    return QuizAttempt(
        attempt_id=row.id,
        user_id=row.user_id,
        card_id=row.card_id,
        deck_id=row.deck_id,
        quiz_mode=row.quiz_mode,
        score=row.score,
        total_questions=row.total_questions,
        wrong_answers=[WrongAnswer.model_validate(item) for item in row.wrong_answers or []],
        completed_at=_from_db(row.completed_at),
    )


def _normalize_partial(partial: Mapping[str, Any], allowed: frozenset[str]) -> dict[str, Any]:
    unknown = set(partial) - allowed
    if unknown:
        raise ReviewValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")
    values: dict[str, Any] = {}
    for key, value in partial.items():
        if isinstance(value, datetime):
            value = _to_db(value)
        elif isinstance(value, (set, frozenset)):
            value = sorted(value)
        values[key] = value
    return values


# =============================================================================
# Stores
# =============================================================================


class _SqlStore:
    tables: tuple[str, ...] = ()

    def __init__(self, engine: Engine, max_retries: int = 3):
        self._engine = engine
        self._sessions = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
        self._max_retries = max_retries
        self._schema_ready = False

    @contextmanager
    def _session_scope(self) -> Generator[Session, None, None]:
        """Provide a transactional scope around a series of operations."""
        session = self._sessions()
        try:
            yield session
            session.commit()
        except Exception:  # Intentionally broad - rollback on any error before re-raising
            session.rollback()
            raise
        finally:
            session.close()

    @contextmanager
    def _operation(self, action: str) -> Generator[Session, None, None]:
        """Session scope that reports driver failures as StoreError."""
        self._ensure_schema()
        try:
            with self._session_scope() as session:
                yield session
        except NeetRecallError:
            raise
        except SQLAlchemyError as exc:
            raise StoreError(f"{action} failed: {exc}") from exc

    def _ensure_schema(self) -> None:
        if self._schema_ready:
            return
        try:
            inspector = inspect(self._engine)
            missing = [name for name in self.tables if not inspector.has_table(name)]
        except SQLAlchemyError as exc:
            raise StoreError(f"Could not inspect database schema: {exc}") from exc
        if missing:
            raise StoreNotConfiguredError(
                f"Tables not provisioned: {', '.join(missing)} (run `neet-recall init-db`)"
            )
        self._schema_ready = True

    def _retrying(self, action: str, work: Callable[[Session], Any]) -> Any:
        """Run ``work`` in its own transaction, retrying lost concurrency races."""
        self._ensure_schema()
        for attempt in range(1, self._max_retries + 1):
            try:
                with self._session_scope() as session:
                    return work(session)
            except (StaleDataError, IntegrityError) as exc:
                logger.debug(f"{action}: concurrent write detected (attempt {attempt}): {exc}")
            except NeetRecallError:
                raise
            except SQLAlchemyError as exc:
                raise StoreError(f"{action} failed: {exc}") from exc
        raise ConcurrencyConflictError(
            f"{action} lost {self._max_retries} consecutive concurrency races"
        )


class SqlReviewStore(_SqlStore, ReviewStore):
    """ReviewStore backed by the ``card_reviews`` table."""

    tables = ("card_reviews",)

    def get(self, card_id: str, user_id: str) -> CardReview | None:
        with self._operation("get card review") as session:
            row = session.scalars(self._by_key(card_id, user_id)).one_or_none()
            return _review_from_row(row) if row else None

    def get_by_id(self, review_id: str) -> CardReview:
        with self._operation("get card review") as session:
            return _review_from_row(self._require(session, review_id))

    def create(self, review: CardReview) -> CardReview:
        with self._operation("create card review") as session:
            row = CardReviewRow(
                id=review.review_id or _new_id(),
                card_id=review.card_id,
                user_id=review.user_id,
            )
            _fill_review_row(row, review)
            session.add(row)
            session.flush()
            return _review_from_row(row)

    def update(self, review_id: str, partial: Mapping[str, Any]) -> CardReview:
        values = _normalize_partial(partial, REVIEW_UPDATABLE_FIELDS)
        with self._operation("update card review") as session:
            row = self._require(session, review_id)
            for key, value in values.items():
                setattr(row, key, value)
            session.flush()
            return _review_from_row(row)

    def list_by_user(self, user_id: str) -> list[CardReview]:
        with self._operation("list card reviews") as session:
            rows = session.scalars(
                select(CardReviewRow)
                .where(CardReviewRow.user_id == user_id)
                .order_by(CardReviewRow.next_review_date)
            ).all()
            return [_review_from_row(row) for row in rows]

    def upsert(self, card_id: str, user_id: str, merge: ReviewMerge) -> CardReview:
        def work(session: Session) -> CardReview:
            row = session.scalars(self._by_key(card_id, user_id)).one_or_none()
            merged = merge(_review_from_row(row) if row else None)
            if row is None:
                row = CardReviewRow(id=_new_id(), card_id=card_id, user_id=user_id)
                session.add(row)
            _fill_review_row(row, merged)
            session.flush()
            return _review_from_row(row)

        return self._retrying("upsert card review", work)

    @staticmethod
    def _by_key(card_id: str, user_id: str):
        return select(CardReviewRow).where(
            CardReviewRow.card_id == card_id,
            CardReviewRow.user_id == user_id,
        )

    @staticmethod
    def _require(session: Session, review_id: str) -> CardReviewRow:
        row = session.get(CardReviewRow, review_id)
        if row is None:
            raise RecordNotFoundError(f"Card review not found: {review_id}")
        return row


class SqlMistakeStore(_SqlStore, MistakeStore):
    """MistakeStore backed by the ``mistake_patterns`` and ``quiz_attempts`` tables."""

    tables = ("mistake_patterns", "quiz_attempts")

    def get(self, user_id: str, concept_id: str) -> MistakePattern | None:
        with self._operation("get mistake pattern") as session:
            row = session.scalars(self._by_key(user_id, concept_id)).one_or_none()
            return _pattern_from_row(row) if row else None

    def get_by_id(self, pattern_id: str) -> MistakePattern:
        with self._operation("get mistake pattern") as session:
            return _pattern_from_row(self._require(session, pattern_id))

    def create(self, pattern: MistakePattern) -> MistakePattern:
        with self._operation("create mistake pattern") as session:
            row = MistakePatternRow(
                id=pattern.pattern_id or _new_id(),
                user_id=pattern.user_id,
                concept_id=pattern.concept_id,
            )
            _fill_pattern_row(row, pattern)
            session.add(row)
            session.flush()
            return _pattern_from_row(row)

    def update(self, pattern_id: str, partial: Mapping[str, Any]) -> MistakePattern:
        values = _normalize_partial(partial, PATTERN_UPDATABLE_FIELDS)
        with self._operation("update mistake pattern") as session:
            row = self._require(session, pattern_id)
            for key, value in values.items():
                setattr(row, key, value)
            session.flush()
            return _pattern_from_row(row)

    def list_by_user(self, user_id: str, subject: str | None = None) -> list[MistakePattern]:
        query = select(MistakePatternRow).where(MistakePatternRow.user_id == user_id)
        if subject is not None:
            query = query.where(MistakePatternRow.subject == subject)
        query = query.order_by(MistakePatternRow.mistake_count.desc())
        with self._operation("list mistake patterns") as session:
            return [_pattern_from_row(row) for row in session.scalars(query).all()]

    def upsert(self, user_id: str, concept_id: str, merge: PatternMerge) -> MistakePattern:
        def work(session: Session) -> MistakePattern:
            row = session.scalars(self._by_key(user_id, concept_id)).one_or_none()
            merged = merge(_pattern_from_row(row) if row else None)
            if row is None:
                row = MistakePatternRow(id=_new_id(), user_id=user_id, concept_id=concept_id)
                session.add(row)
            _fill_pattern_row(row, merged)
            session.flush()
            return _pattern_from_row(row)

        return self._retrying("upsert mistake pattern", work)

    def update_with(
        self,
        pattern_id: str,
        fn: Callable[[MistakePattern], MistakePattern],
    ) -> MistakePattern:
        def work(session: Session) -> MistakePattern:
            row = self._require(session, pattern_id)
            _fill_pattern_row(row, fn(_pattern_from_row(row)))
            session.flush()
            return _pattern_from_row(row)

        return self._retrying("update mistake pattern", work)

    def add_attempt(self, attempt: QuizAttempt) -> QuizAttempt:
        with self._operation("log quiz attempt") as session:
            row = QuizAttemptRow(
                id=attempt.attempt_id or _new_id(),
                user_id=attempt.user_id,
                card_id=attempt.card_id,
                deck_id=attempt.deck_id,
                quiz_mode=attempt.quiz_mode,
                score=attempt.score,
                total_questions=attempt.total_questions,
                wrong_answers=[answer.model_dump() for answer in attempt.wrong_answers],
                completed_at=_to_db(attempt.completed_at),
            )
            session.add(row)
            session.flush()
            return _attempt_from_row(row)

    def list_attempts(self, user_id: str, limit: int = 20) -> list[QuizAttempt]:
        with self._operation("list quiz attempts") as session:
            rows = session.scalars(
                select(QuizAttemptRow)
                .where(QuizAttemptRow.user_id == user_id)
                .order_by(QuizAttemptRow.completed_at.desc())
                .limit(limit)
            ).all()
            return [_attempt_from_row(row) for row in rows]

    @staticmethod
    def _by_key(user_id: str, concept_id: str):
        return select(MistakePatternRow).where(
            MistakePatternRow.user_id == user_id,
            MistakePatternRow.concept_id == concept_id,
        )

    @staticmethod
    def _require(session: Session, pattern_id: str) -> MistakePatternRow:
        row = session.get(MistakePatternRow, pattern_id)
        if row is None:
            raise RecordNotFoundError(f"Mistake pattern not found: {pattern_id}")
        return row
