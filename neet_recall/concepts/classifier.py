"""
Concept Classifier: Label text to NEET concept ids.

Diagram labels and flashcard fronts are clustered into concepts of the form
``subject.topic.slug`` so that mistakes on different questions about the
same idea aggregate together.

Matching is a keyword-substring scan over an ordered rule list. Rules are
tried in order and, within a rule, keywords are tried in order; the first
hit wins. Reordering DEFAULT_RULES changes classification.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

FALLBACK_SUBJECT = "general"
FALLBACK_TOPIC = "anatomy"
DEFAULT_SEGMENT = "general"

_WHITESPACE_RE = re.compile(r"\s+")
_SLUG_STRIP_RE = re.compile(r"[^a-z0-9_]")


@dataclass(frozen=True)
class ConceptRule:
    """One (subject, topic, keywords) entry of the classification table."""

    subject: str
    topic: str
    keywords: tuple[str, ...]


@dataclass(frozen=True)
class ConceptMatch:
    rule: ConceptRule
    keyword: str


# Order is part of the contract: "acid" appears under both organic and
# inorganic chemistry and resolves to organic.
DEFAULT_RULES: tuple[ConceptRule, ...] = (
    # Biology
    ConceptRule(
        "biology",
        "cell_biology",
        ("cell", "nucleus", "mitochondria", "ribosome", "membrane", "cytoplasm", "organelle"),
    ),
    ConceptRule(
        "biology",
        "human_physiology",
        ("heart", "lung", "kidney", "liver", "brain", "blood", "artery", "vein"),
    ),
    ConceptRule(
        "biology",
        "plant_physiology",
        ("leaf", "root", "stem", "flower", "chloroplast", "stomata", "xylem", "phloem"),
    ),
    ConceptRule(
        "biology",
        "genetics",
        ("dna", "rna", "gene", "chromosome", "allele", "mutation"),
    ),
    ConceptRule(
        "biology",
        "ecology",
        ("ecosystem", "food chain", "population", "community", "biome"),
    ),
    # Physics
    ConceptRule(
        "physics",
        "mechanics",
        ("force", "motion", "velocity", "acceleration", "friction", "momentum"),
    ),
    ConceptRule(
        "physics",
        "optics",
        ("lens", "mirror", "light", "reflection", "refraction", "prism"),
    ),
    ConceptRule(
        "physics",
        "electricity",
        ("circuit", "current", "voltage", "resistance", "capacitor", "battery"),
    ),
    ConceptRule(
        "physics",
        "magnetism",
        ("magnet", "magnetic field", "electromagnet", "flux"),
    ),
    # Chemistry
    ConceptRule(
        "chemistry",
        "organic",
        ("benzene", "alkane", "alkene", "alcohol", "acid", "ester", "functional group"),
    ),
    ConceptRule(
        "chemistry",
        "inorganic",
        ("metal", "ion", "salt", "acid", "base", "compound", "element"),
    ),
    ConceptRule(
        "chemistry",
        "physical",
        ("reaction", "equilibrium", "thermodynamics", "kinetics", "solution"),
    ),
)


def normalize_label(label_text: str) -> str:
    return label_text.lower().strip()


def slugify_label(normalized: str) -> str:
    """Whitespace runs become underscores; anything outside [a-z0-9_] is dropped."""
    return _SLUG_STRIP_RE.sub("", _WHITESPACE_RE.sub("_", normalized))


class ConceptClassifier:
    """
    Maps free-text labels to stable concept ids.

    Deterministic: no randomness, no I/O, identical input and rules always
    give identical output.
    """

    def __init__(self, rules: Sequence[ConceptRule] = DEFAULT_RULES):
        self.rules: tuple[ConceptRule, ...] = tuple(rules)

    def match(self, label_text: str) -> ConceptMatch | None:
        """Return the winning rule and keyword, or None when nothing matches."""
        normalized = normalize_label(label_text)
        for rule in self.rules:
            for keyword in rule.keywords:
                if keyword in normalized:
                    return ConceptMatch(rule=rule, keyword=keyword)
        return None

    def classify(self, label_text: str) -> str:
        """
        Generate a concept id from label text.

        Args:
            label_text: Diagram label or flashcard front text

        Returns:
            ``subject.topic.slug``; ``general.anatomy.slug`` when no keyword matches
        """
        slug = slugify_label(normalize_label(label_text))
        found = self.match(label_text)
        if found is None:
            return f"{FALLBACK_SUBJECT}.{FALLBACK_TOPIC}.{slug}"
        return f"{found.rule.subject}.{found.rule.topic}.{slug}"


_default_classifier = ConceptClassifier()


def classify(label_text: str) -> str:
    """Classify with the default rule table."""
    return _default_classifier.classify(label_text)


def subject_from_concept_id(concept_id: str) -> str:
    parts = concept_id.split(".")
    return parts[0] or DEFAULT_SEGMENT


def topic_from_concept_id(concept_id: str) -> str:
    parts = concept_id.split(".")
    if len(parts) < 2 or not parts[1]:
        return DEFAULT_SEGMENT
    return parts[1]


def concept_display_name(concept_id: str) -> str:
    """Human-readable name of a concept: ``biology.cell_biology.cell_wall`` -> ``Cell wall``."""
    parts = concept_id.split(".")
    if len(parts) < 3:
        return concept_id
    label = parts[2].replace("_", " ")
    return label[:1].upper() + label[1:]
