"""
Structured record assembly for the medical record digitizer.

Provides:
- StructuredRecord data model (nine fixed sections)
- Deterministic assembly from transcript, entities and caller metadata
- Plain-text rendering and JSON-ready dictionaries
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from .clinical import ClinicalFields, extract_clinical_fields
from .entities import MedicalEntities

logger = logging.getLogger(__name__)

PLACEHOLDER = "None"

SECTION_TITLES = (
    "Demographics",
    "Encounter",
    "Chief Complaint",
    "Vitals",
    "Medications/Allergies",
    "Examination",
    "Assessment/Plan",
    "Follow-up",
    "Provenance",
)


# ============================================================================
# Data Classes
# ============================================================================

@dataclass(frozen=True)
class RecordField:
    """A labelled value; a missing value renders as the placeholder."""
    label: str
    value: Optional[str] = None

    @property
    def display_value(self) -> str:
        return self.value if self.value else PLACEHOLDER

    def render(self) -> str:
        return f"{self.label}: {self.display_value}"


@dataclass(frozen=True)
class RecordSection:
    """A titled group of fields."""
    title: str
    fields: Tuple[RecordField, ...] = ()

    def get(self, label: str) -> Optional[str]:
        for f in self.fields:
            if f.label == label:
                return f.value
        return None

    def render(self) -> str:
        heading = self.title.upper()
        lines = [heading, "-" * len(heading)]
        lines.extend(f.render() for f in self.fields)
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, str]:
        return {f.label: f.display_value for f in self.fields}


@dataclass(frozen=True)
class StructuredRecord:
    """Canonical record: the nine sections, always in the same order."""
    sections: Tuple[RecordSection, ...]
    title: str = "MEDICAL RECORD"

    @property
    def section_titles(self) -> List[str]:
        return [s.title for s in self.sections]

    def section(self, title: str) -> RecordSection:
        for s in self.sections:
            if s.title == title:
                return s
        raise KeyError(f"No such section: {title}")

    def render(self) -> str:
        parts = [self.title, "=" * len(self.title)]
        for s in self.sections:
            parts.append("")
            parts.append(s.render())
        return "\n".join(parts) + "\n"

    def to_dict(self) -> Dict[str, Dict[str, str]]:
        return {s.title: s.to_dict() for s in self.sections}

    def __str__(self) -> str:
        return self.render()


# ============================================================================
# Vital Sign Classification
# ============================================================================

VITAL_FAMILIES = (
    ("Blood Pressure", re.compile(r"\bb\.?p\b|blood\s+pressure", re.IGNORECASE)),
    ("Respiratory Rate", re.compile(r"respiratory|resp\.?\s+rate|\brr\b", re.IGNORECASE)),
    ("Oxygen Saturation", re.compile(r"spo2|sp02|o2\s*sat|saturation", re.IGNORECASE)),
    ("Heart Rate", re.compile(r"pulse|heart\s+rate|\bh\.?r\.?", re.IGNORECASE)),
    ("Temperature", re.compile(r"temp", re.IGNORECASE)),
    ("Weight", re.compile(r"weight|\bwt\b", re.IGNORECASE)),
    ("Height", re.compile(r"height|\bht\b", re.IGNORECASE)),
)

# First number that starts a word, so "SpO2 97%" reads as "97%"
_READING = re.compile(r"(?:^|[\s:=\-])(\d.*)$")


def classify_vitals(vitals: List[str]) -> Dict[str, List[str]]:
    """Group vital-sign expressions by family; the label is stripped from the value."""
    grouped: Dict[str, List[str]] = {}
    for vital in vitals:
        family = "Other Readings"
        for name, pattern in VITAL_FAMILIES:
            if pattern.search(vital):
                family = name
                break
        reading = _READING.search(vital)
        value = reading.group(1).strip() if reading and family != "Other Readings" else vital
        grouped.setdefault(family, []).append(value)
    return grouped


# ============================================================================
# Record Assembler
# ============================================================================

def _join(values: Optional[List[str]]) -> Optional[str]:
    if not values:
        return None
    return ", ".join(values)


def _first(values: Optional[List[str]]) -> Optional[str]:
    return values[0] if values else None


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        return _join([str(v) for v in value]) if value else None
    value = str(value).strip()
    return value or None


class RecordAssembler:
    """
    Builds the canonical structured record.

    Caller metadata wins over extracted values. Assembly reads no clock and
    performs no I/O, so equal inputs give equal records.

    Recognised metadata keys: patient_name, age, gender, mrn, document_type,
    date_of_service, physician, department, processed_at, confidence_score,
    score_breakdown, medical_terms, passes_used, segmentation_modes, status,
    image_quality, original_transcript.
    """

    def __init__(self, excerpt_length: int = 1000):
        self.excerpt_length = excerpt_length

    def assemble(
        self,
        text: str,
        entities: MedicalEntities,
        metadata: Optional[Dict[str, Any]] = None
    ) -> StructuredRecord:
        metadata = metadata or {}
        text = text or ""
        clinical = extract_clinical_fields(text)
        vitals = classify_vitals(entities.vitals)

        sections = (
            self._demographics(entities, clinical, metadata),
            RecordSection("Encounter", (
                RecordField("Date of Service", _text(metadata.get("date_of_service")) or _first(entities.dates)),
                RecordField("Attending Physician", _text(metadata.get("physician")) or clinical.physician),
                RecordField("Department", _text(metadata.get("department")) or clinical.department),
                RecordField("Document Type", _text(metadata.get("document_type"))),
            )),
            RecordSection("Chief Complaint", (
                RecordField("Chief Complaint", clinical.chief_complaint),
                RecordField("History of Present Illness", clinical.history),
                RecordField("Symptoms", _join(entities.symptoms)),
            )),
            RecordSection("Vitals", tuple(
                RecordField(label, _join(vitals.get(label)))
                for label in ("Blood Pressure", "Heart Rate", "Temperature", "Respiratory Rate",
                              "Oxygen Saturation", "Weight", "Height", "Other Readings")
            )),
            RecordSection("Medications/Allergies", (
                RecordField("Active Medications", _join(entities.medications)),
                RecordField("Known Allergies", clinical.allergies),
            )),
            RecordSection("Examination", (
                RecordField("General Appearance", clinical.general_appearance),
                RecordField("Cardiovascular", clinical.cardiovascular),
                RecordField("Respiratory", clinical.respiratory),
                RecordField("Abdominal", clinical.abdominal),
                RecordField("Neurological", clinical.neurological),
            )),
            RecordSection("Assessment/Plan", (
                RecordField("Diagnosis", clinical.diagnosis),
                RecordField("Treatment Plan", clinical.plan),
            )),
            RecordSection("Follow-up", (
                RecordField("Follow-up Instructions", clinical.follow_up),
                RecordField("Referrals", clinical.referrals),
                RecordField("Labs/Imaging", clinical.labs),
            )),
            self._provenance(text, metadata),
        )

        logger.debug(f"Assembled record with {sum(len(s.fields) for s in sections)} fields")
        return StructuredRecord(sections=sections)

    def _demographics(
        self,
        entities: MedicalEntities,
        clinical: ClinicalFields,
        metadata: Dict[str, Any]
    ) -> RecordSection:
        name = _text(metadata.get("patient_name")) or _first(entities.names)
        age = _text(metadata.get("age")) or _first(entities.ages)
        return RecordSection("Demographics", (
            RecordField("Patient Name", name),
            RecordField("Age", age),
            RecordField("Gender", _text(metadata.get("gender")) or clinical.gender),
            RecordField("Medical Record Number", _text(metadata.get("mrn")) or clinical.mrn),
            RecordField("Phone", _first(entities.phone_numbers)),
            RecordField("Address", _first(entities.addresses)),
        ))

    def _provenance(self, text: str, metadata: Dict[str, Any]) -> RecordSection:
        breakdown = metadata.get("score_breakdown")
        if hasattr(breakdown, "describe"):
            score_inputs = breakdown.describe()
        else:
            score_inputs = _text(breakdown)

        modes = metadata.get("segmentation_modes")
        modes_text = _join([str(m) for m in modes]) if modes else None

        passes = metadata.get("passes_used")
        original = metadata.get("original_transcript")
        if original is None:
            original = text
        excerpt = original[:self.excerpt_length] if original else None

        return RecordSection("Provenance", (
            RecordField("Confidence Score", _text(metadata.get("confidence_score"))),
            RecordField("Score Inputs", score_inputs),
            RecordField("Medical Terms Found", _text(metadata.get("medical_terms"))),
            RecordField("Passes Used", None if passes is None else str(passes)),
            RecordField("Segmentation Modes", modes_text),
            RecordField("Extraction Status", _text(metadata.get("status"))),
            RecordField("Processed At", _text(metadata.get("processed_at"))),
            RecordField("Image Quality", _text(metadata.get("image_quality"))),
            RecordField("Original Transcript Excerpt", excerpt),
        ))


def assemble_record(
    text: str,
    entities: MedicalEntities,
    metadata: Optional[Dict[str, Any]] = None
) -> StructuredRecord:
    """Assemble a record with default settings."""
    return RecordAssembler().assemble(text, entities, metadata)
