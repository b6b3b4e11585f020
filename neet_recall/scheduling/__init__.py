"""
Review scheduling.

Components:
- SM2Scheduler: SM-2 review-state update and status derivation
- SM2Config: Tunable constants for the algorithm
"""

from .sm2 import SM2Config, SM2Scheduler, validate_quality

__all__ = [
    "SM2Config",
    "SM2Scheduler",
    "validate_quality",
]
