"""Time-bounded cache for remediation content, keyed by concept id."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from loguru import logger

from neet_recall.clock import Clock, utc_now

if TYPE_CHECKING:
    from neet_recall.remediation.service import RemediationContent

DEFAULT_TTL = timedelta(days=7)


@dataclass(frozen=True)
class _CacheEntry:
    content: RemediationContent
    expires_at: datetime


class RemediationCache:
    """
    In-process remediation cache with an injected clock.

    An entry stored at ``t`` is served while ``now < t + ttl``.
    """

    def __init__(self, ttl: timedelta = DEFAULT_TTL, clock: Clock | None = None):
        if ttl <= timedelta(0):
            raise ValueError("Cache TTL must be positive")
        self.ttl = ttl
        self._clock = clock or utc_now
        self._entries: dict[str, _CacheEntry] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, concept_id: str) -> RemediationContent | None:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(concept_id)
            if entry is None:
                return None
            if entry.expires_at <= now:
                del self._entries[concept_id]
                logger.debug(f"Remediation cache entry expired: {concept_id}")
                return None
            return entry.content

    def set(self, concept_id: str, content: RemediationContent) -> None:
        expires_at = self._clock() + self.ttl
        with self._lock:
            self._entries[concept_id] = _CacheEntry(content=content, expires_at=expires_at)

    def invalidate(self, concept_id: str) -> bool:
        """Drop one entry. Returns True if it was present."""
        with self._lock:
            return self._entries.pop(concept_id, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
