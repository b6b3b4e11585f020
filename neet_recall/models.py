"""
Domain records for review scheduling and mistake tracking.

Stored state (CardReview, MistakePattern, QuizAttempt) is plain dataclasses
updated through ``dataclasses.replace``. Payloads that arrive from a quiz
client (WrongAnswer, QuizAttemptCreate) are pydantic models so malformed
input is rejected at the boundary.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class ReviewStatus(str, Enum):
    """Read-time classification of a card's scheduling state."""

    NEW = "new"
    LEARNING = "learning"
    REVIEW = "review"
    MASTERED = "mastered"


@dataclass
class CardReview:
    """SM-2 state for one (card, user) pair."""

    card_id: str
    user_id: str
    next_review_date: datetime
    created_at: datetime
    updated_at: datetime
    ease_factor: float = 2.5
    interval: int = 0  # days
    repetitions: int = 0  # consecutive passing reviews
    last_review_date: datetime | None = None
    review_id: str | None = None

    @classmethod
    def new(cls, card_id: str, user_id: str, now: datetime, ease_factor: float = 2.5) -> CardReview:
        """A never-reviewed record, due immediately."""
        return cls(
            card_id=card_id,
            user_id=user_id,
            ease_factor=ease_factor,
            interval=0,
            repetitions=0,
            next_review_date=now,
            created_at=now,
            updated_at=now,
        )


@dataclass(frozen=True)
class NextReview:
    """Output of one SM-2 step."""

    ease_factor: float
    interval: int
    repetitions: int
    next_review_date: datetime
    review_status: ReviewStatus


@dataclass
class MistakePattern:
    """Aggregated mistakes of one user on one concept."""

    user_id: str
    subject: str
    topic: str
    concept_id: str
    last_occurrence: datetime
    mistake_count: int = 0
    related_questions: set[str] = field(default_factory=set)
    pattern_id: str | None = None


class WrongAnswer(BaseModel):
    """One incorrectly answered question from a completed quiz."""

    question_id: str
    label_id: str = ""
    user_answer: str = ""
    correct_answer: str = ""
    concept_id: str | None = None


class QuizAttemptCreate(BaseModel):
    """Payload describing a finished quiz."""

    card_id: str = "unknown"
    deck_id: str
    quiz_mode: str
    score: int = Field(ge=0, le=100)
    total_questions: int = Field(ge=0)
    wrong_answers: list[WrongAnswer] = Field(default_factory=list)


@dataclass
class QuizAttempt:
    """A logged quiz attempt."""

    user_id: str
    card_id: str
    deck_id: str
    quiz_mode: str
    score: int
    total_questions: int
    completed_at: datetime
    wrong_answers: list[WrongAnswer] = field(default_factory=list)
    attempt_id: str | None = None


@dataclass(frozen=True)
class ReviewForecast:
    tomorrow: int = 0
    next_week: int = 0


@dataclass(frozen=True)
class ReviewSessionStats:
    """Dashboard summary of a user's review records."""

    total_due: int = 0
    reviewed_today: int = 0
    new_cards: int = 0
    learning_cards: int = 0
    review_cards: int = 0
    mastered_cards: int = 0
    # 1 if anything was reviewed today, else 0. Not a multi-day streak.
    streak_days: int = 0
    forecast: ReviewForecast = field(default_factory=ReviewForecast)
