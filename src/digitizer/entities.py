"""
Medical entity extraction for the medical record digitizer.

Provides:
- MedicalEntities data model with the "None" sentinel at its boundary
- Data-driven regex rules per entity category
- Dictionary matching for personal names and symptoms
- Merging of local and enhancement-service results
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Union, Iterable, Any

from .consensus import similarity
from .lexicon import (
    ALL_NAMES,
    DOSAGE_UNITS,
    KNOWN_MEDICATIONS,
    LABEL_WORDS,
    SYMPTOM_KEYWORDS,
)

logger = logging.getLogger(__name__)

CATEGORIES = (
    "names", "ages", "medications", "symptoms",
    "vitals", "dates", "addresses", "phoneNumbers",
)
NONE_SENTINEL = "None"

_ATTRIBUTES = {
    "names": "names",
    "ages": "ages",
    "medications": "medications",
    "symptoms": "symptoms",
    "vitals": "vitals",
    "dates": "dates",
    "addresses": "addresses",
    "phoneNumbers": "phone_numbers",
}


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class MedicalEntities:
    """
    Entities found in a transcript, one ordered list per category.

    Lists are empty when nothing was found. Mapping access and ``to_dict``
    render an empty category as ``["None"]`` for callers that expect it.
    """
    names: List[str] = field(default_factory=list)
    ages: List[str] = field(default_factory=list)
    medications: List[str] = field(default_factory=list)
    symptoms: List[str] = field(default_factory=list)
    vitals: List[str] = field(default_factory=list)
    dates: List[str] = field(default_factory=list)
    addresses: List[str] = field(default_factory=list)
    phone_numbers: List[str] = field(default_factory=list)

    def get(self, category: str) -> List[str]:
        """Found values for a category, without the sentinel."""
        return getattr(self, _attribute(category))

    def __getitem__(self, category: str) -> List[str]:
        values = self.get(category)
        return list(values) if values else [NONE_SENTINEL]

    def __iter__(self):
        return iter(CATEGORIES)

    def found_categories(self) -> List[str]:
        return [c for c in CATEGORIES if self.get(c)]

    def is_empty(self) -> bool:
        return not self.found_categories()

    def to_dict(self) -> Dict[str, List[str]]:
        return {category: self[category] for category in CATEGORIES}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MedicalEntities":
        """Build from a category mapping; sentinel-only lists become empty."""
        values = {}
        for category in CATEGORIES:
            raw = data.get(category)
            if raw is None and category == "phoneNumbers":
                raw = data.get("phone_numbers")
            values[_ATTRIBUTES[category]] = strip_sentinel(raw)
        return cls(**values)


def _attribute(category: str) -> str:
    try:
        return _ATTRIBUTES[category]
    except KeyError:
        if category in _ATTRIBUTES.values():
            return category
        raise KeyError(f"Unknown entity category: {category}")


def strip_sentinel(values: Optional[Iterable[Any]]) -> List[str]:
    """Clean a list of values, dropping blanks, the sentinel and duplicates."""
    if values is None:
        return []
    if isinstance(values, str):
        values = [values]
    cleaned = []
    for value in values:
        if value is None:
            continue
        text = str(value).strip()
        if text and text != NONE_SENTINEL and text not in cleaned:
            cleaned.append(text)
    return cleaned


# ============================================================================
# Rule Tables
# ============================================================================

@dataclass(frozen=True)
class RegexRule:
    """One regex strategy for one category."""
    category: str
    pattern: str
    group: int = 0
    flags: int = re.IGNORECASE
    # Returns the value to keep, or None to reject the match
    formatter: Optional[Callable[[re.Match], Optional[str]]] = None

    def compile(self) -> re.Pattern:
        return re.compile(self.pattern, self.flags)


def _format_age(match: re.Match) -> Optional[str]:
    age = int(match.group(1))
    if 1 <= age <= 120:
        return f"{age} years"
    return None


def _format_medication(match: re.Match) -> Optional[str]:
    name = match.group(1)
    dose = match.group(2)
    if name.lower() in LABEL_WORDS and name.lower() not in KNOWN_MEDICATIONS:
        return None
    name = name[:1].upper() + name[1:].lower()
    if dose:
        dose = re.sub(r"\s+", "", dose)
        return f"{name} {dose}"
    return name


def _format_suffix_medication(match: re.Match) -> Optional[str]:
    if match.group(1).lower() in KNOWN_MEDICATIONS:
        return None  # handled by the known-drug rule
    return _format_medication(match)


def _format_name(match: re.Match) -> Optional[str]:
    words = []
    for word in match.group(1).split():
        if word.lower() in LABEL_WORDS:
            break
        words.append(word)
    return " ".join(words) if words else None


def _format_phone(match: re.Match) -> Optional[str]:
    phone = match.group(match.lastindex or 0).strip(" -")
    if len(re.sub(r"\D", "", phone)) < 10:
        return None
    return phone


def _format_address(match: re.Match) -> Optional[str]:
    address = match.group(match.lastindex or 0).strip(" ,.;")
    return address if len(address) > 5 else None


_DOSE = rf"(\d+(?:\.\d+)?\s*{DOSAGE_UNITS})(?![a-z])"
_KNOWN_DRUGS = "|".join(KNOWN_MEDICATIONS)
_NAME_WORDS = r"([A-Z][a-z]+(?:[ \t]+[A-Z][a-z]+){0,3})"
_MONTHS = r"(?:jan|feb|mar|apr|may|jun|jul|aug|sep|sept|oct|nov|dec)[a-z]*\.?"
_STREET_SUFFIX = r"(?i:street|st|road|rd|avenue|ave|lane|ln|close|crescent|way|drive|estate)"
_NIGERIAN_PLACES = r"(?i:state|lagos|abuja|kano|ibadan|benin|port harcourt|enugu|kaduna|jos)"
_ADDRESS_STOP = (
    r"(?=\s+(?i:phone|tel|mobile|contact|age|sex|gender|date|dob|blood\s+pressure|bp)\b"
    r"|[\n;]|$)"
)

ENTITY_RULES = (
    # Names after role markers; the marker is case-insensitive, the name is not
    RegexRule("names", r"\b(?i:patient(?:'s)?\s+name|patient|name)\s*[:\-]\s*" + _NAME_WORDS,
              group=1, flags=0, formatter=_format_name),
    RegexRule("names", r"\b(?i:patient)\s+" + _NAME_WORDS,
              group=1, flags=0, formatter=_format_name),
    RegexRule("names", r"\b(?i:dr|mr|mrs|ms|miss)\.?\s+" + _NAME_WORDS,
              group=1, flags=0, formatter=_format_name),

    # Ages
    RegexRule("ages", r"\bage[d]?\s*[:\-]?\s*(\d{1,3})(?!\d)", formatter=_format_age),
    RegexRule("ages",
              r"\b(\d{1,3})[ \t\-]*(?:years?[ \t\-]*old|years?|yrs?|y\.\s?o\.?|y/o|yo)(?!\w)",
              formatter=_format_age),

    # Medications
    RegexRule("medications", rf"\b({_KNOWN_DRUGS})\b(?:\s*{_DOSE})?",
              formatter=_format_medication),
    RegexRule("medications",
              r"\b([a-z]{3,}(?:cillin|mycin|pril|sartan|statin|olol|azole|idine"
              r"|ine|ol|ide|ate|ium|in))\s*" + _DOSE,
              formatter=_format_suffix_medication),

    # Vital signs, returned verbatim
    RegexRule("vitals",
              r"\b(?:b\.?p\.?|blood\s+pressure)\s*[:=\-]?\s*\d{2,3}\s*/\s*\d{2,3}(?:\s*mm\s*hg)?"),
    RegexRule("vitals",
              r"\b(?:pulse(?:\s+rate)?|heart\s+rate|h\.?r\.?)\s*[:=\-]?\s*\d{2,3}"
              r"(?:\s*(?:bpm|b/min|beats/min|/min))?"),
    RegexRule("vitals",
              r"\b(?:temperature|temp\.?)\s*[:=\-]?\s*\d{2,3}(?:\.\d+)?"
              r"(?:\s*(?:°\s*[cf]|deg(?:rees)?\s*[cf]?|[cf])(?![a-z]))?"),
    RegexRule("vitals",
              r"\b(?:weight|wt\.?)\s*[:=\-]?\s*\d{1,3}(?:\.\d+)?(?:\s*(?:kgs?|lbs?)(?![a-z]))?"),
    RegexRule("vitals",
              r"\b(?:height|ht\.?)\s*[:=\-]?\s*\d{1,3}(?:\.\d+)?(?:\s*(?:cm|m|ft|in)(?![a-z]))?"),
    RegexRule("vitals",
              r"\b(?:respiratory\s+rate|resp\.?\s+rate|rr)\s*[:=\-]?\s*\d{1,2}"
              r"(?:\s*(?:breaths/min|/min|cpm))?"),
    RegexRule("vitals",
              r"\b(?:spo2|sp02|o2\s*sat(?:uration)?|oxygen\s+saturation)\s*[:=\-]?\s*\d{2,3}\s*%?"),

    # Dates
    RegexRule("dates", r"\b\d{1,2}[/.\-]\d{1,2}[/.\-](?:\d{4}|\d{2})\b"),
    RegexRule("dates", r"\b\d{4}-\d{2}-\d{2}\b"),
    RegexRule("dates", rf"\b\d{{1,2}}(?:st|nd|rd|th)?\s+{_MONTHS},?\s+\d{{2,4}}\b"),
    RegexRule("dates", rf"\b{_MONTHS}\s+\d{{1,2}}(?:st|nd|rd|th)?,?\s+\d{{4}}\b"),

    # Addresses
    RegexRule("addresses", r"\b(?i:address|addr)\.?\s*[:\-]\s*([^\n;]+?)" + _ADDRESS_STOP,
              group=1, flags=0, formatter=_format_address),
    RegexRule("addresses",
              r"\b(\d{1,5},?\s+[A-Z][a-z]+(?:\s+[A-Z][a-z]+)*\s+" + _STREET_SUFFIX + r")\b\.?",
              group=1, flags=0, formatter=_format_address),
    RegexRule("addresses",
              r"\b([A-Z][a-z]+(?:\s+[A-Z][a-z]+)*,?\s+" + _NIGERIAN_PLACES + r")\b",
              group=1, flags=0, formatter=_format_address),

    # Phone numbers
    RegexRule("phoneNumbers",
              r"\b(?:phone|tel|mobile|contact)(?:\s*(?:no\.?|number))?\s*[:\-]?\s*(\+?\d(?:[ \-]?\d){9,13})(?!\d)",
              group=1, formatter=_format_phone),
    RegexRule("phoneNumbers", r"(\+?234[\s\-]?\d{3}[\s\-]?\d{3}[\s\-]?\d{4})",
              group=1, formatter=_format_phone),
    RegexRule("phoneNumbers", r"(\b0[789]\d{9}\b)", group=1, formatter=_format_phone),
    RegexRule("phoneNumbers",
              r"(\+?\d{1,4}[\s\-]?\(?\d{3}\)?[\s\-]?\d{3}[\s\-]?\d{4})(?!\d)",
              group=1, formatter=_format_phone),
)


# ============================================================================
# Dictionary Strategies
# ============================================================================

def match_name_dictionary(text: str, threshold: float = 0.7) -> List[str]:
    """
    Capitalized words that are, or closely resemble, dictionary names.

    Exact matches return the dictionary spelling; fuzzy matches need more
    than ``threshold`` similarity and at least four letters.
    """
    lookup = {name.lower(): name for name in ALL_NAMES}
    found = []
    for token in text.split():
        word = re.sub(r"[^\w]", "", token)
        if len(word) < 3 or not word[0].isupper() or not word.isalpha():
            continue
        lowered = word.lower()
        if lowered in LABEL_WORDS:
            continue
        if lowered in lookup:
            found.append(lookup[lowered])
            continue
        if len(word) < 4:
            continue
        best, best_score = None, threshold
        for name in ALL_NAMES:
            score = similarity(lowered, name.lower())
            if score > best_score:
                best, best_score = name, score
        if best is not None:
            found.append(best)
    return found


def match_symptom_keywords(text: str) -> List[str]:
    """Symptom keywords contained anywhere in the text (case-insensitive)."""
    lowered = text.lower()
    return [keyword for keyword in SYMPTOM_KEYWORDS if keyword in lowered]


DICTIONARY_STRATEGIES: Dict[str, List[Callable[[str], List[str]]]] = {
    "names": [match_name_dictionary],
    "symptoms": [match_symptom_keywords],
}


# ============================================================================
# Entity Extractor
# ============================================================================

class EntityExtractor:
    """
    Extracts the eight medical entity categories from a transcript.

    Dictionary strategies run first, then regex rules in table order.
    Extraction never raises; a failing strategy is logged and skipped.
    """

    def __init__(
        self,
        rules: Iterable[RegexRule] = ENTITY_RULES,
        dictionaries: Optional[Dict[str, List[Callable[[str], List[str]]]]] = None
    ):
        self.dictionaries = DICTIONARY_STRATEGIES if dictionaries is None else dictionaries
        self._rules: Dict[str, List[tuple]] = {c: [] for c in CATEGORIES}
        for rule in rules:
            self._rules[rule.category].append((rule, rule.compile()))

    def extract(self, text: str) -> MedicalEntities:
        """
        Extract entities from text.

        Args:
            text: Corrected transcript

        Returns:
            MedicalEntities (all categories empty for blank text)
        """
        entities = MedicalEntities()
        if not text or not text.strip():
            return entities

        for category in CATEGORIES:
            values = []
            for strategy in self.dictionaries.get(category, []):
                try:
                    values.extend(strategy(text))
                except Exception as e:
                    logger.warning(f"{category} dictionary strategy failed: {e}")
            for rule, regex in self._rules[category]:
                values.extend(self._apply_rule(rule, regex, text))

            values = _finalize(category, strip_sentinel(values))
            getattr(entities, _ATTRIBUTES[category]).extend(values)

        logger.debug(
            "Entities: " + ", ".join(f"{c}={len(entities.get(c))}" for c in CATEGORIES)
        )
        return entities

    @staticmethod
    def _apply_rule(rule: RegexRule, regex: re.Pattern, text: str) -> List[str]:
        values = []
        for match in regex.finditer(text):
            try:
                if rule.formatter is not None:
                    value = rule.formatter(match)
                else:
                    value = match.group(rule.group)
            except (IndexError, ValueError, TypeError) as e:
                logger.debug(f"Skipping {rule.category} match {match.group(0)!r}: {e}")
                continue
            if value:
                values.append(value.strip())
        return values


def _finalize(category: str, values: List[str]) -> List[str]:
    if category == "medications":
        # Drop a bare drug name when the same drug was found with a dose
        dosed = {v.split()[0] for v in values if " " in v}
        return [v for v in values if " " in v or v not in dosed]
    if category == "addresses":
        kept = []
        for value in values:
            if not any(value in other for other in kept):
                kept.append(value)
        return kept
    if category == "phoneNumbers":
        # Same subscriber number with or without the +234 / 0 prefix
        kept, seen = [], set()
        for value in values:
            digits = re.sub(r"\D", "", value)[-10:]
            if digits in seen:
                continue
            seen.add(digits)
            kept.append(value)
        return kept
    return values


def extract_entities(text: str) -> MedicalEntities:
    """Extract entities with the default rule tables."""
    return EntityExtractor().extract(text)


# ============================================================================
# Merging
# ============================================================================

def merge_entities(
    local: MedicalEntities,
    enhanced: Optional[Union[MedicalEntities, Dict[str, Any]]]
) -> MedicalEntities:
    """
    Combine local and enhancement-service entities.

    Per category the enhancement service's values win when it found any;
    otherwise the local values are kept.
    """
    if enhanced is None:
        return local
    if not isinstance(enhanced, MedicalEntities):
        enhanced = MedicalEntities.from_dict(enhanced)

    merged = MedicalEntities()
    for category in CATEGORIES:
        chosen = enhanced.get(category) or local.get(category)
        getattr(merged, _ATTRIBUTES[category]).extend(chosen)
    return merged
