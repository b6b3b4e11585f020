"""
Remediation Service: Study material for a weak concept.

Content comes from an injected RemediationGenerator (for example a client
for a content-generation backend). Successful results are cached per
concept. When no generator is configured, or it fails, a deterministic
template is returned instead and is never cached.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from loguru import logger
from pydantic import BaseModel, Field

from neet_recall.clock import Clock, utc_now
from neet_recall.concepts.classifier import concept_display_name
from neet_recall.exceptions import RemediationUnavailableError
from neet_recall.models import MistakePattern
from neet_recall.remediation.cache import RemediationCache


class PracticeQuestion(BaseModel):
    question: str
    options: list[str] = Field(min_length=2)
    correct_answer: str
    explanation: str = ""


class RemediationContent(BaseModel):
    """Explanation, practice questions and common misconception for a concept."""

    concept_id: str
    explanation: str
    practice_questions: list[PracticeQuestion] = Field(default_factory=list)
    misconception: str = ""
    generated_at: datetime
    is_fallback: bool = False


@dataclass(frozen=True)
class RemediationRequest:
    """What a generator is told about the weak concept."""

    concept_id: str
    concept_name: str
    subject: str
    topic: str
    mistake_count: int

    @classmethod
    def from_pattern(cls, pattern: MistakePattern) -> RemediationRequest:
        return cls(
            concept_id=pattern.concept_id,
            concept_name=concept_display_name(pattern.concept_id),
            subject=pattern.subject,
            topic=pattern.topic,
            mistake_count=pattern.mistake_count,
        )


class RemediationGenerator(Protocol):
    def generate(self, request: RemediationRequest) -> RemediationContent: ...


class RemediationService:
    """Cache-first remediation lookup with template fallback."""

    def __init__(
        self,
        generator: RemediationGenerator | None = None,
        cache: RemediationCache | None = None,
        clock: Clock | None = None,
    ):
        self.generator = generator
        self._clock = clock or utc_now
        self.cache = cache if cache is not None else RemediationCache(clock=self._clock)

    def get_remediation(
        self,
        pattern: MistakePattern,
        allow_fallback: bool = True,
    ) -> RemediationContent:
        """
        Remediation content for the concept behind a mistake pattern.

        Args:
            pattern: The weak concept
            allow_fallback: Return template content when generation is
                unavailable instead of raising

        Raises:
            RemediationUnavailableError: generation unavailable and
                allow_fallback is False
        """
        cached = self.cache.get(pattern.concept_id)
        if cached is not None:
            logger.debug(f"Using cached remediation for {pattern.concept_id}")
            return cached

        cause: Exception | None = None
        if self.generator is None:
            reason = "no remediation generator configured"
        else:
            try:
                content = self.generator.generate(RemediationRequest.from_pattern(pattern))
            except Exception as exc:
                logger.warning(f"Remediation generation failed for {pattern.concept_id}: {exc}")
                reason = str(exc) or type(exc).__name__
                cause = exc
            else:
                self.cache.set(pattern.concept_id, content)
                logger.info(f"Generated remediation for {pattern.concept_id}")
                return content

        if not allow_fallback:
            raise RemediationUnavailableError(
                f"Remediation unavailable for {pattern.concept_id}: {reason}"
            ) from cause
        return self.fallback_content(pattern)

    def fallback_content(self, pattern: MistakePattern) -> RemediationContent:
        """Template remediation built from the concept name alone."""
        name = concept_display_name(pattern.concept_id)
        return RemediationContent(
            concept_id=pattern.concept_id,
            explanation=(
                f"{name} is an important concept in {pattern.subject}. Understanding this "
                "topic requires careful attention to the fundamental principles and their "
                "applications in NEET exam contexts."
            ),
            practice_questions=[
                PracticeQuestion(
                    question=f"Which of the following best describes {name}?",
                    options=[
                        "Option A - Review your notes",
                        "Option B - Study the diagram",
                        "Option C - Practice more questions",
                        "Option D - Consult your textbook",
                    ],
                    correct_answer="Option C - Practice more questions",
                    explanation="Regular practice helps reinforce understanding of this concept.",
                ),
                PracticeQuestion(
                    question=f"What is the primary function of {name}?",
                    options=["Function A", "Function B", "Function C", "Function D"],
                    correct_answer="Function B",
                    explanation="This is a key aspect you should focus on during revision.",
                ),
                PracticeQuestion(
                    question=f"In NEET exams, {name} is most commonly tested through:",
                    options=[
                        "Diagram-based questions",
                        "Numerical problems",
                        "Conceptual questions",
                        "All of the above",
                    ],
                    correct_answer="All of the above",
                    explanation=(
                        "NEET tests this concept in multiple formats, so comprehensive "
                        "preparation is essential."
                    ),
                ),
            ],
            misconception=(
                f"A common mistake is confusing {name} with related concepts. Make sure to "
                "understand the distinct characteristics and applications."
            ),
            generated_at=self._clock(),
            is_fallback=True,
        )
