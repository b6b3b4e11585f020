"""
Storage collaborators for review and mistake records.

Components:
- ReviewStore / MistakeStore: Ports the services depend on
- InMemoryReviewStore / InMemoryMistakeStore: Lock-serialised dict adapters
- SqlReviewStore / SqlMistakeStore: SQLAlchemy adapters with optimistic concurrency
"""

from .memory import InMemoryMistakeStore, InMemoryReviewStore
from .ports import MistakeStore, ReviewStore
from .sql import SqlMistakeStore, SqlReviewStore, build_engine, init_schema

__all__ = [
    # Ports
    "ReviewStore",
    "MistakeStore",
    # Adapters
    "InMemoryReviewStore",
    "InMemoryMistakeStore",
    "SqlReviewStore",
    "SqlMistakeStore",
    # Schema
    "build_engine",
    "init_schema",
]
