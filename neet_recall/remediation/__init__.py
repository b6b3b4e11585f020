from .cache import DEFAULT_TTL, RemediationCache
from .service import (
    PracticeQuestion,
    RemediationContent,
    RemediationGenerator,
    RemediationRequest,
    RemediationService,
)

__all__ = [
    "DEFAULT_TTL",
    "PracticeQuestion",
    "RemediationCache",
    "RemediationContent",
    "RemediationGenerator",
    "RemediationRequest",
    "RemediationService",
]
