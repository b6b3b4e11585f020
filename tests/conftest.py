"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from neet_recall.models import CardReview, WrongAnswer  # noqa: E402
from neet_recall.store.memory import InMemoryMistakeStore, InMemoryReviewStore  # noqa: E402

# Mid-morning so that "now + 1 day" and "end of today" are clearly apart
FIXED_NOW = datetime(2026, 3, 10, 9, 30, tzinfo=timezone.utc)


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (SQLite database)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


class FakeClock:
    """Callable clock that tests can move forward."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def now():
    return FIXED_NOW


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def review_store():
    return InMemoryReviewStore()


@pytest.fixture
def mistake_store():
    return InMemoryMistakeStore()


@pytest.fixture
def make_review():
    """Factory for CardReview records relative to FIXED_NOW."""

    def _make(card_id="card-1", user_id="user-1", due_in=timedelta(0), **fields):
        values = dict(
            card_id=card_id,
            user_id=user_id,
            next_review_date=FIXED_NOW + due_in,
            created_at=FIXED_NOW - timedelta(days=30),
            updated_at=FIXED_NOW - timedelta(days=30),
        )
        values.update(fields)
        return CardReview(**values)

    return _make


@pytest.fixture
def sample_wrong_answers():
    """Wrong answers from one diagram quiz."""
    return [
        WrongAnswer(
            question_id="q-1",
            label_id="label-7",
            user_answer="Golgi body",
            correct_answer="Mitochondria",
            concept_id="biology.cell_biology.mitochondria",
        ),
        WrongAnswer(
            question_id="q-2",
            label_id="label-3",
            user_answer="Aorta",
            correct_answer="Pulmonary vein",
        ),
        WrongAnswer(
            question_id="q-3",
            user_answer="Convex",
            correct_answer="Concave lens",
        ),
    ]
