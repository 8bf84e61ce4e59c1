"""
Label-driven clinical field capture.

Finds values written after form labels such as "Diagnosis:" or "C/C -"
in a transcript. A value runs until the end of the line, a semicolon, or
the next recognised label.
"""

import logging
import re
from dataclasses import dataclass, asdict
from typing import Dict, Optional, Tuple

logger = logging.getLogger(__name__)


# field -> label alternatives (regex fragments, matched case-insensitively)
FIELD_LABELS: Dict[str, Tuple[str, ...]] = {
    "chief_complaint": (r"chief\s+complaints?", r"presenting\s+complaints?", r"complaints?",
                        r"c\s*/\s*c", r"c\.c\.?"),
    "history": (r"history\s+of\s+present(?:ing)?\s+illness", r"hpi", r"present\s+illness",
                r"history"),
    "allergies": (r"known\s+allergies", r"allerg(?:y|ies)", r"allergic\s+to"),
    "general_appearance": (r"general\s+appearance", r"appearance", r"general"),
    "cardiovascular": (r"cardiovascular", r"cvs", r"heart\s+sounds"),
    "respiratory": (r"respiratory(?!\s+rate)", r"chest", r"lungs", r"resp(?!\.?\s*rate)"),
    "abdominal": (r"abdomen", r"abdominal", r"abd"),
    "neurological": (r"neurological", r"neuro", r"cns"),
    "diagnosis": (r"diagnosis", r"impression", r"assessment", r"diagnosed\s+with"),
    "plan": (r"treatment\s+plan", r"management\s+plan", r"plan", r"management"),
    "follow_up": (r"follow[\s\-]*up", r"review\s+in", r"return\s+visit", r"next\s+visit"),
    "referrals": (r"referr(?:al|ed)\s+to", r"referrals?"),
    "labs": (r"investigations?", r"lab(?:oratory)?\s*(?:tests?|results?)?", r"labs", r"imaging"),
    "physician": (r"attending\s+physician", r"attending", r"physician", r"seen\s+by",
                  r"doctor"),
    "department": (r"department", r"dept", r"ward", r"unit"),
}

# Labels that end a value even though they are not captured here
_OTHER_LABELS = (
    r"patient(?:'s)?\s+name", r"patient", r"name", r"age", r"sex", r"gender", r"dob",
    r"date(?:\s+of\s+birth)?", r"address", r"phone", r"tel", r"mobile", r"mrn",
    r"blood\s+pressure", r"bp", r"heart\s+rate", r"pulse", r"temperature", r"temp",
    r"weight", r"height", r"respiratory\s+rate", r"spo2", r"medications?", r"drugs?",
    r"prescription", r"signature",
)

_ALL_LABELS = "|".join(
    sorted({l for labels in FIELD_LABELS.values() for l in labels} | set(_OTHER_LABELS),
           key=len, reverse=True)
)
_VALUE_END = rf"(?=\s+(?:{_ALL_LABELS})\s*[:\-]|[\n;]|$)"

_FIELD_PATTERNS = {
    name: re.compile(
        rf"(?<![\w])(?:{'|'.join(labels)})\s*[:\-]\s*([^\n;]+?){_VALUE_END}",
        re.IGNORECASE
    )
    for name, labels in FIELD_LABELS.items()
}

_NO_KNOWN_ALLERGIES = (
    (re.compile(r"\bnkda\b|no\s+known\s+drug\s+allergies", re.IGNORECASE),
     "No known drug allergies"),
    (re.compile(r"\bnka\b|no\s+known\s+allergies", re.IGNORECASE), "No known allergies"),
)
_GENDER_LABELED = re.compile(r"\b(?:gender|sex)\s*[:\-]?\s*(male|female|man|woman|m|f)\b",
                             re.IGNORECASE)
_GENDER_BARE = re.compile(r"\b(male|female)\b", re.IGNORECASE)
_MRN_LABELED = re.compile(
    r"\b(?:mrn\s*[:#\-]?|(?:medical\s+record(?:\s+(?:number|no\.?))?|"
    r"hospital\s+(?:number|no\.?)|record\s+number)\s*[:#\-])\s*"
    r"(?=[A-Z0-9\-/]*\d)([A-Z0-9][A-Z0-9\-/]{2,})",
    re.IGNORECASE
)
_MRN_BARE = re.compile(r"\b([A-Z]{2,4}-\d{4,})\b")
_PHYSICIAN_TITLE = re.compile(r"\bDr\.?\s+([A-Z][a-z]+(?:[ \t]+[A-Z][a-z]+)?)")


@dataclass
class ClinicalFields:
    """Values captured from labelled regions of a transcript."""
    gender: Optional[str] = None
    mrn: Optional[str] = None
    chief_complaint: Optional[str] = None
    history: Optional[str] = None
    allergies: Optional[str] = None
    general_appearance: Optional[str] = None
    cardiovascular: Optional[str] = None
    respiratory: Optional[str] = None
    abdominal: Optional[str] = None
    neurological: Optional[str] = None
    diagnosis: Optional[str] = None
    plan: Optional[str] = None
    follow_up: Optional[str] = None
    referrals: Optional[str] = None
    labs: Optional[str] = None
    physician: Optional[str] = None
    department: Optional[str] = None

    def to_dict(self) -> Dict[str, Optional[str]]:
        return asdict(self)


def _clean(value: str) -> Optional[str]:
    value = re.sub(r"\s+", " ", value).strip(" .,:-")
    return value or None


def _normalize_gender(raw: str) -> str:
    return "Male" if raw.lower() in ("male", "man", "m") else "Female"


def extract_clinical_fields(text: str) -> ClinicalFields:
    """
    Capture labelled clinical values from a transcript.

    Fields without a label in the text stay None.
    """
    fields = ClinicalFields()
    if not text:
        return fields

    for name, pattern in _FIELD_PATTERNS.items():
        match = pattern.search(text)
        if match:
            setattr(fields, name, _clean(match.group(1)))

    if fields.allergies is None:
        for pattern, value in _NO_KNOWN_ALLERGIES:
            if pattern.search(text):
                fields.allergies = value
                break

    match = _GENDER_LABELED.search(text) or _GENDER_BARE.search(text)
    if match:
        fields.gender = _normalize_gender(match.group(1))

    match = _MRN_LABELED.search(text) or _MRN_BARE.search(text)
    if match:
        fields.mrn = match.group(1)

    if fields.physician is None:
        match = _PHYSICIAN_TITLE.search(text)
        if match:
            fields.physician = f"Dr. {match.group(1)}"

    found = [k for k, v in fields.to_dict().items() if v]
    logger.debug(f"Clinical fields found: {found}")
    return fields
