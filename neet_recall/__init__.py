"""
neet-recall: adaptive review and weakness tracking for NEET flashcards.

Components:
- SM2Scheduler: per-card review scheduling
- ConceptClassifier: answer labels to concept ids
- MistakeAggregator: per-concept mistake patterns
- StatsEngine: due counts, forecast and reviewed-today flag
- ReviewService / MistakeTrackingService: workflows over the stores
- RemediationService: study material with caching and template fallback
"""

from .concepts import ConceptClassifier, classify
from .exceptions import (
    ConcurrencyConflictError,
    NeetRecallError,
    PartialBatchError,
    RecordNotFoundError,
    RemediationUnavailableError,
    ReviewValidationError,
    StoreError,
    StoreNotConfiguredError,
)
from .mistakes import BatchResult, MistakeAggregator
from .models import (
    CardReview,
    MistakePattern,
    NextReview,
    QuizAttempt,
    QuizAttemptCreate,
    ReviewForecast,
    ReviewSessionStats,
    ReviewStatus,
    WrongAnswer,
)
from .remediation import RemediationCache, RemediationService
from .scheduling import SM2Config, SM2Scheduler
from .services import MistakeTrackingService, ReviewService
from .stats import StatsEngine

__version__ = "0.1.0"

__all__ = [
    # Core
    "SM2Config",
    "SM2Scheduler",
    "ConceptClassifier",
    "classify",
    "MistakeAggregator",
    "BatchResult",
    "StatsEngine",
    # Workflows
    "ReviewService",
    "MistakeTrackingService",
    "RemediationCache",
    "RemediationService",
    # Records
    "CardReview",
    "MistakePattern",
    "NextReview",
    "QuizAttempt",
    "QuizAttemptCreate",
    "ReviewForecast",
    "ReviewSessionStats",
    "ReviewStatus",
    "WrongAnswer",
    # Errors
    "NeetRecallError",
    "ReviewValidationError",
    "StoreError",
    "RecordNotFoundError",
    "ConcurrencyConflictError",
    "StoreNotConfiguredError",
    "PartialBatchError",
    "RemediationUnavailableError",
]
