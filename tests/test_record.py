"""
Tests for structured record assembly.
"""

import pytest
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


class TestRecordShape:
    """Test the fixed section layout."""

    def test_nine_sections_in_order(self):
        from digitizer.entities import MedicalEntities
        from digitizer.record import assemble_record, SECTION_TITLES

        record = assemble_record("", MedicalEntities())

        assert record.section_titles == list(SECTION_TITLES)
        assert len(record.sections) == 9

    def test_missing_values_render_placeholder(self):
        """Test that every field is present with "None" when unknown."""
        from digitizer.entities import MedicalEntities
        from digitizer.record import assemble_record

        record = assemble_record("", MedicalEntities())
        demographics = record.to_dict()["Demographics"]

        assert demographics["Patient Name"] == "None"
        assert demographics["Age"] == "None"
        assert "Patient Name: None" in record.render()

    def test_render_layout(self):
        from digitizer.entities import MedicalEntities
        from digitizer.record import assemble_record

        rendered = assemble_record("text", MedicalEntities()).render()

        assert rendered.startswith("MEDICAL RECORD\n==============")
        assert "\nDEMOGRAPHICS\n------------\n" in rendered
        assert "\nPROVENANCE\n" in rendered
        assert str(assemble_record("text", MedicalEntities())) == rendered

    def test_unknown_section(self):
        from digitizer.entities import MedicalEntities
        from digitizer.record import assemble_record

        with pytest.raises(KeyError):
            assemble_record("", MedicalEntities()).section("Billing")


class TestRecordContent:
    """Test how values flow into the record."""

    def test_entities_fill_demographics(self):
        from digitizer.entities import MedicalEntities
        from digitizer.record import assemble_record

        entities = MedicalEntities(
            names=["Emeka Obi", "Emeka"],
            ages=["40 years"],
            phone_numbers=["08031234567"],
            addresses=["12 Allen Avenue, Ikeja"],
        )
        section = assemble_record("", entities).section("Demographics")

        assert section.get("Patient Name") == "Emeka Obi"
        assert section.get("Age") == "40 years"
        assert section.get("Phone") == "08031234567"
        assert section.get("Address") == "12 Allen Avenue, Ikeja"

    def test_metadata_wins_over_extraction(self):
        """Test that caller metadata takes precedence."""
        from digitizer.entities import MedicalEntities
        from digitizer.record import assemble_record

        entities = MedicalEntities(names=["Emeka"], dates=["12/03/2024"])
        metadata = {
            "patient_name": "Chioma Obi",
            "mrn": "LUTH-000123",
            "date_of_service": "2024-03-14",
            "document_type": "Clinic note",
        }
        record = assemble_record("Dr. Bello", entities, metadata)

        assert record.section("Demographics").get("Patient Name") == "Chioma Obi"
        assert record.section("Demographics").get("Medical Record Number") == "LUTH-000123"
        assert record.section("Encounter").get("Date of Service") == "2024-03-14"
        assert record.section("Encounter").get("Document Type") == "Clinic note"
        assert record.section("Encounter").get("Attending Physician") == "Dr. Bello"

    def test_vitals_are_grouped(self):
        from digitizer.entities import MedicalEntities
        from digitizer.record import assemble_record

        entities = MedicalEntities(vitals=["BP: 120/80 mmHg", "Pulse 88 bpm"])
        vitals = assemble_record("", entities).section("Vitals")

        assert vitals.get("Blood Pressure") == "120/80 mmHg"
        assert vitals.get("Heart Rate") == "88 bpm"
        assert vitals.get("Temperature") is None

    def test_clinical_fields_fill_sections(self):
        from digitizer.entities import MedicalEntities
        from digitizer.record import assemble_record

        text = (
            "Chief Complaint: fever and cough for 3 days\n"
            "CVS: S1 S2 normal\n"
            "Diagnosis: Malaria\n"
            "Plan: Artemether 80mg bd; encourage fluids\n"
            "NKDA"
        )
        entities = MedicalEntities(medications=["Artemether 80mg"], symptoms=["fever", "cough"])
        record = assemble_record(text, entities)

        assert record.section("Chief Complaint").get("Chief Complaint") == "fever and cough for 3 days"
        assert record.section("Chief Complaint").get("Symptoms") == "fever, cough"
        assert record.section("Examination").get("Cardiovascular") == "S1 S2 normal"
        assert record.section("Assessment/Plan").get("Diagnosis") == "Malaria"
        assert record.section("Assessment/Plan").get("Treatment Plan") == "Artemether 80mg bd"
        assert record.section("Medications/Allergies").get("Active Medications") == "Artemether 80mg"
        assert record.section("Medications/Allergies").get("Known Allergies") == "No known drug allergies"

    def test_provenance(self):
        from digitizer.entities import MedicalEntities
        from digitizer.record import assemble_record
        from digitizer.scoring import ConfidenceScorer

        breakdown = ConfidenceScorer().breakdown("fever")
        metadata = {
            "confidence_score": 62,
            "score_breakdown": breakdown,
            "passes_used": 0,
            "segmentation_modes": [6, 7],
            "status": "ok",
            "processed_at": "2024-03-14T10:00:00",
        }
        section = assemble_record("fever", MedicalEntities(), metadata).section("Provenance")

        assert section.get("Confidence Score") == "62"
        assert section.get("Score Inputs") == breakdown.describe()
        assert section.get("Passes Used") == "0"
        assert section.get("Segmentation Modes") == "6, 7"
        assert section.get("Processed At") == "2024-03-14T10:00:00"
        assert section.get("Original Transcript Excerpt") == "fever"

    def test_excerpt_is_truncated(self):
        from digitizer.entities import MedicalEntities
        from digitizer.record import RecordAssembler

        record = RecordAssembler(excerpt_length=10).assemble("x" * 50, MedicalEntities())

        assert record.section("Provenance").get("Original Transcript Excerpt") == "x" * 10

    def test_assembly_is_deterministic(self):
        """Test that equal inputs give byte-identical renderings."""
        from digitizer.entities import MedicalEntities
        from digitizer.record import assemble_record

        text = "Name: Tolu Bakare\nDiagnosis: Typhoid"
        entities = MedicalEntities(names=["Tolu Bakare"], symptoms=["fever"])
        metadata = {"processed_at": "2024-03-14T10:00:00"}

        first = assemble_record(text, entities, metadata).render()
        second = assemble_record(text, entities, dict(metadata)).render()

        assert first == second


class TestClassifyVitals:
    """Test vital-sign grouping."""

    def test_families(self):
        from digitizer.record import classify_vitals

        grouped = classify_vitals([
            "Blood pressure 130/85", "SpO2 97%", "RR 18", "Temp 37.8 C", "Wt 70kg",
        ])

        assert grouped == {
            "Blood Pressure": ["130/85"],
            "Oxygen Saturation": ["97%"],
            "Respiratory Rate": ["18"],
            "Temperature": ["37.8 C"],
            "Weight": ["70kg"],
        }

    def test_unrecognised_reading_kept_verbatim(self):
        from digitizer.record import classify_vitals

        assert classify_vitals(["GCS 15/15"]) == {"Other Readings": ["GCS 15/15"]}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
