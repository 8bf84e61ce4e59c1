"""
Confidence scoring for the medical record digitizer.

Provides:
- Domain vocabulary hit counting
- Bounded, monotonic confidence score with a per-component breakdown
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Any

from .entities import MedicalEntities
from .lexicon import MEDICAL_VOCABULARY

logger = logging.getLogger(__name__)

MAX_SCORE = 98
LENGTH_THRESHOLDS = (100, 300)
LENGTH_BONUS = 5
ENTITY_BONUS_PER_CATEGORY = 5
ENTITY_BONUS_CAP = 20
VOCABULARY_BONUS_PER_TERM = 2
VOCABULARY_BONUS_CAP = 20

_TERM_PATTERNS = [
    (term, re.compile(r"(?<![a-z])" + re.escape(term).replace(r"\ ", r"\s+") + r"(?![a-z])"))
    for term in MEDICAL_VOCABULARY
]


@dataclass
class ScoreBreakdown:
    """How a confidence score was assembled."""
    base: int
    length_bonus: int
    entity_bonus: int
    vocabulary_bonus: int
    categories_found: int
    vocabulary_hits: int
    total: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "base": self.base,
            "length_bonus": self.length_bonus,
            "entity_bonus": self.entity_bonus,
            "vocabulary_bonus": self.vocabulary_bonus,
            "categories_found": self.categories_found,
            "vocabulary_hits": self.vocabulary_hits,
            "total": self.total,
        }

    def describe(self) -> str:
        return (
            f"base {self.base} + length {self.length_bonus} + "
            f"entities {self.entity_bonus} ({self.categories_found} categories) + "
            f"vocabulary {self.vocabulary_bonus} ({self.vocabulary_hits} terms) = {self.total}"
        )


def find_medical_terms(text: str) -> List[str]:
    """Distinct vocabulary terms present in the text, in vocabulary order."""
    if not text:
        return []
    lowered = text.lower()
    return [term for term, pattern in _TERM_PATTERNS if pattern.search(lowered)]


class ConfidenceScorer:
    """Scores how much a transcript looks like a readable medical record."""

    def __init__(self, base_score: int = 60, max_score: int = MAX_SCORE):
        self.base_score = base_score
        self.max_score = min(max_score, MAX_SCORE)

    def breakdown(
        self,
        text: str,
        entities: Optional[MedicalEntities] = None
    ) -> ScoreBreakdown:
        text = text or ""
        length = len(text)
        length_bonus = sum(LENGTH_BONUS for t in LENGTH_THRESHOLDS if length >= t)

        categories = 0
        if entities is not None and text.strip():
            categories = len(entities.found_categories())
        entity_bonus = min(categories * ENTITY_BONUS_PER_CATEGORY, ENTITY_BONUS_CAP)

        hits = len(find_medical_terms(text))
        vocabulary_bonus = min(hits * VOCABULARY_BONUS_PER_TERM, VOCABULARY_BONUS_CAP)

        total = self.base_score + length_bonus + entity_bonus + vocabulary_bonus
        total = max(0, min(self.max_score, total))

        return ScoreBreakdown(
            base=self.base_score,
            length_bonus=length_bonus,
            entity_bonus=entity_bonus,
            vocabulary_bonus=vocabulary_bonus,
            categories_found=categories,
            vocabulary_hits=hits,
            total=total,
        )

    def score(self, text: str, entities: Optional[MedicalEntities] = None) -> int:
        """
        Confidence score in [0, 98].

        Empty text earns the base score only.
        """
        result = self.breakdown(text, entities)
        logger.debug(f"Confidence: {result.describe()}")
        return result.total
