from .classifier import (
    DEFAULT_RULES,
    ConceptClassifier,
    ConceptMatch,
    ConceptRule,
    classify,
    concept_display_name,
    subject_from_concept_id,
    topic_from_concept_id,
)

__all__ = [
    "DEFAULT_RULES",
    "ConceptClassifier",
    "ConceptMatch",
    "ConceptRule",
    "classify",
    "concept_display_name",
    "subject_from_concept_id",
    "topic_from_concept_id",
]
