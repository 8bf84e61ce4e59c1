"""
Medical vocabulary correction for the medical record digitizer.

Provides:
- Ordered table of whole-word medical corrections
- Case-preserving substitution
- Integration of enhancement-service names and medications
"""

import logging
import re
from typing import Dict, List, Optional, Sequence, Tuple, Pattern

from .consensus import similarity

logger = logging.getLogger(__name__)


# ============================================================================
# Correction Table
# ============================================================================

# (pattern, replacement), applied in order. Patterns are regex fragments
# matched as whole words, case-insensitively. No replacement may match a
# later pattern.
MEDICAL_CORRECTIONS: List[Tuple[str, str]] = [
    # Words split by the recognizer
    (r"para\s+cetamol", "paracetamol"),
    (r"ibu\s+profen", "ibuprofen"),
    (r"blood\s{2,}pressure", "blood pressure"),
    (r"heart\s{2,}rate", "heart rate"),
    # Glyph confusions
    (r"paracetmol", "paracetamol"),
    (r"paracetamo1", "paracetamol"),
    (r"ibuprofin", "ibuprofen"),
    (r"amoxicilin", "amoxicillin"),
    (r"metfornin", "metformin"),
    (r"rnedication", "medication"),
    (r"rnedicine", "medicine"),
    (r"presciption", "prescription"),
    (r"prescriptlon", "prescription"),
    (r"diagnosls", "diagnosis"),
    (r"ternperature", "temperature"),
    # Units may follow a number directly, as in "500rng"
    (r"(?<![A-Za-z_.])rng", "mg"),
    # Truncations
    (r"medicin", "medicine"),
    (r"diagnos", "diagnosis"),
    (r"treatmen", "treatment"),
    (r"patien", "patient"),
    (r"hospita", "hospital"),
    (r"clini", "clinic"),
    (r"docto", "doctor"),
    (r"nurs", "nurse"),
    # Clinical shorthand
    (r"pts", "patient"),
    (r"pt\.?", "patient"),
    (r"dx", "diagnosis"),
    (r"rx", "prescription"),
    (r"hx", "history"),
    (r"sx", "symptoms"),
    (r"tx", "treatment"),
    (r"b\.?p\.?", "blood pressure"),
    (r"h\.?r\.?", "heart rate"),
    (r"temp\.?", "temperature"),
    (r"wt\.?", "weight"),
    (r"ht\.?", "height"),
]


def _match_case(original: str, replacement: str) -> str:
    if len(original) > 3 and original.isupper():
        return replacement.upper()
    if original[:1].isupper():
        return replacement[:1].upper() + replacement[1:]
    return replacement


def compile_corrections(
    corrections: Sequence[Tuple[str, str]]
) -> List[Tuple[Pattern, str]]:
    """
    Compile (pattern, replacement) pairs into whole-word regexes.

    Patterns that start with their own lookbehind keep it in place of the
    default word boundary.
    """
    compiled = []
    for pattern, replacement in corrections:
        prefix = "" if pattern.startswith("(?<") else r"(?<![\w.])"
        regex = re.compile(prefix + pattern + r"(?!\w)", re.IGNORECASE)
        compiled.append((regex, replacement))
    return compiled


# ============================================================================
# Vocabulary Corrector
# ============================================================================

class VocabularyCorrector:
    """Applies the medical correction table to a transcript."""

    def __init__(self, corrections: Optional[Sequence[Tuple[str, str]]] = None):
        self.corrections = list(corrections) if corrections is not None else MEDICAL_CORRECTIONS
        self._compiled = compile_corrections(self.corrections)

    def correct(self, text: str) -> str:
        """
        Apply every correction in table order.

        Args:
            text: Consensus transcript

        Returns:
            Corrected transcript
        """
        if not text:
            return text

        corrected = text
        applied = 0
        for regex, replacement in self._compiled:
            corrected, count = regex.subn(
                lambda m, r=replacement: _match_case(m.group(0), r),
                corrected
            )
            applied += count

        if applied:
            logger.debug(f"Applied {applied} vocabulary corrections")
        return corrected


# ============================================================================
# Enhancement Integration
# ============================================================================

def _usable(values: Optional[List[str]]) -> List[str]:
    if not values:
        return []
    return [v for v in values if v and v != "None"]


def apply_enhancement(
    text: str,
    enhancement: Optional[Dict[str, List[str]]],
    name_threshold: float = 0.6,
    medication_threshold: float = 0.7
) -> str:
    """
    Write enhancement-service names and medications back into the text.

    Capitalized words similar to a part of a returned name take that part's
    spelling; words similar to a returned medication name take the
    medication's spelling. Never raises; returns ``text`` unchanged when
    there is nothing to apply.
    """
    if not text or not enhancement:
        return text

    try:
        name_parts = []
        for name in _usable(enhancement.get("names")):
            name_parts.extend(p for p in name.split() if len(p) >= 3)

        drug_names = []
        for medication in _usable(enhancement.get("medications")):
            first = medication.split()[0] if medication.split() else ""
            if len(first) >= 4 and first.isalpha():
                drug_names.append(first)

        if not name_parts and not drug_names:
            return text

        pieces = re.split(r'(\s+)', text)
        for i, token in enumerate(pieces):
            word = token.strip(".,;:()[]")
            if len(word) < 3 or not word.isalpha():
                continue
            replacement = None
            if word[0].isupper():
                replacement = _closest(word, name_parts, name_threshold)
            if replacement is None and len(word) >= 4:
                drug = _closest(word, drug_names, medication_threshold)
                if drug is not None:
                    replacement = _match_case(word, drug.lower())
            if replacement is not None and replacement != word:
                pieces[i] = token.replace(word, replacement, 1)
        return "".join(pieces)

    except (AttributeError, TypeError) as e:
        logger.warning(f"Could not apply enhancement to transcript: {e}")
        return text


def _closest(word: str, candidates: List[str], threshold: float) -> Optional[str]:
    best = None
    best_score = threshold
    for candidate in candidates:
        score = similarity(word.lower(), candidate.lower())
        if score > best_score:
            best, best_score = candidate, score
    return best
