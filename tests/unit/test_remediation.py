"""Unit tests for remediation caching and fallback."""

from datetime import timedelta

import pytest

from neet_recall.exceptions import RemediationUnavailableError
from neet_recall.models import MistakePattern
from neet_recall.remediation import (
    PracticeQuestion,
    RemediationCache,
    RemediationContent,
    RemediationService,
)


class StubGenerator:
    def __init__(self, clock, fail=False):
        self.clock = clock
        self.fail = fail
        self.requests = []

    def generate(self, request):
        self.requests.append(request)
        if self.fail:
            raise TimeoutError("generator timed out")
        return RemediationContent(
            concept_id=request.concept_id,
            explanation=f"All about {request.concept_name}",
            practice_questions=[
                PracticeQuestion(
                    question="Where is ATP made?",
                    options=["Mitochondria", "Ribosome"],
                    correct_answer="Mitochondria",
                )
            ],
            misconception="Confusing with chloroplasts",
            generated_at=self.clock(),
        )


@pytest.fixture
def pattern(now):
    return MistakePattern(
        pattern_id="p-1",
        user_id="user-1",
        subject="biology",
        topic="cell_biology",
        concept_id="biology.cell_biology.mitochondria",
        mistake_count=6,
        last_occurrence=now,
        related_questions={"q-1"},
    )


@pytest.fixture
def cache(clock):
    return RemediationCache(ttl=timedelta(days=7), clock=clock)


class TestRemediationCache:
    def test_entry_served_within_ttl(self, cache, clock, pattern):
        content = RemediationService(clock=clock).fallback_content(pattern)
        cache.set("c", content)
        clock.advance(days=6, hours=23)
        assert cache.get("c") is content

    def test_entry_expires_at_ttl(self, cache, clock, pattern):
        cache.set("c", RemediationService(clock=clock).fallback_content(pattern))
        clock.advance(days=7)
        assert cache.get("c") is None
        assert len(cache) == 0

    def test_invalidate_and_clear(self, cache, clock, pattern):
        content = RemediationService(clock=clock).fallback_content(pattern)
        cache.set("a", content)
        cache.set("b", content)

        assert cache.invalidate("a") is True
        assert cache.invalidate("a") is False
        cache.clear()
        assert cache.get("b") is None

    def test_ttl_must_be_positive(self):
        with pytest.raises(ValueError):
            RemediationCache(ttl=timedelta(0))


class TestRemediationService:
    def test_generated_content_cached(self, cache, clock, pattern):
        generator = StubGenerator(clock)
        service = RemediationService(generator, cache=cache, clock=clock)

        first = service.get_remediation(pattern)
        second = service.get_remediation(pattern)

        assert first is second
        assert not first.is_fallback
        assert len(generator.requests) == 1
        request = generator.requests[0]
        assert request.concept_name == "Mitochondria"
        assert request.mistake_count == 6

    def test_regenerates_after_expiry(self, cache, clock, pattern):
        generator = StubGenerator(clock)
        service = RemediationService(generator, cache=cache, clock=clock)

        service.get_remediation(pattern)
        clock.advance(days=8)
        service.get_remediation(pattern)

        assert len(generator.requests) == 2

    def test_generator_failure_falls_back(self, cache, clock, pattern):
        service = RemediationService(StubGenerator(clock, fail=True), cache=cache, clock=clock)

        content = service.get_remediation(pattern)

        assert content.is_fallback
        assert len(content.practice_questions) == 3
        assert "Mitochondria" in content.explanation
        assert cache.get(pattern.concept_id) is None

    def test_no_generator_falls_back(self, clock, pattern):
        content = RemediationService(clock=clock).get_remediation(pattern)
        assert content.is_fallback
        assert content.generated_at == clock.now

    def test_fallback_disabled_raises(self, cache, clock, pattern):
        service = RemediationService(StubGenerator(clock, fail=True), cache=cache, clock=clock)

        with pytest.raises(RemediationUnavailableError) as excinfo:
            service.get_remediation(pattern, allow_fallback=False)
        assert isinstance(excinfo.value.__cause__, TimeoutError)

    def test_fallback_questions_have_answer_among_options(self, clock, pattern):
        content = RemediationService(clock=clock).fallback_content(pattern)
        for question in content.practice_questions:
            assert question.correct_answer in question.options
