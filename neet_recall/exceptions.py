"""
Exception hierarchy for neet-recall.

Validation problems, storage failures and an unprovisioned storage
collaborator are separate kinds so callers can decide between rejecting,
alerting and degrading.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from neet_recall.mistakes.aggregator import BatchResult


class NeetRecallError(Exception):
    """Base class for all neet-recall errors."""


class ReviewValidationError(NeetRecallError, ValueError):
    """Caller-supplied input or stored state violates an invariant."""


class StoreError(NeetRecallError):
    """A storage collaborator failed (I/O, permissions, driver errors)."""


class RecordNotFoundError(StoreError):
    """The requested record does not exist."""


class ConcurrencyConflictError(StoreError):
    """An upsert kept losing optimistic-concurrency races."""


class StoreNotConfiguredError(NeetRecallError):
    """The storage collaborator is missing or its schema is not provisioned."""


class PartialBatchError(NeetRecallError):
    """Some items of a mistake batch could not be recorded."""

    def __init__(self, result: BatchResult):
        self.result = result
        failed_ids = ", ".join(item.answer.question_id for item in result.failed)
        super().__init__(
            f"{len(result.failed)} of {result.total} wrong answers failed to record: {failed_ids}"
        )


class RemediationUnavailableError(NeetRecallError):
    """Remediation content could not be generated and fallback was disabled."""
