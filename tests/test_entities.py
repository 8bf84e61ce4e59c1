"""
Tests for medical entity extraction.
"""

import pytest
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


@pytest.fixture
def extract():
    from digitizer.entities import EntityExtractor
    return EntityExtractor().extract


class TestMedicalEntities:
    """Test the entity data model."""

    def test_empty_categories_render_sentinel(self):
        """Test that every category is present and empty ones are ["None"]."""
        from digitizer.entities import MedicalEntities, CATEGORIES

        entities = MedicalEntities(names=["Emeka"])
        data = entities.to_dict()

        assert list(data.keys()) == list(CATEGORIES)
        assert data["names"] == ["Emeka"]
        assert data["ages"] == ["None"]
        assert data["phoneNumbers"] == ["None"]
        assert entities["ages"] == ["None"]
        assert entities.ages == []

    def test_from_dict_strips_sentinel(self):
        from digitizer.entities import MedicalEntities

        entities = MedicalEntities.from_dict({
            "names": ["None"],
            "ages": ["34 years"],
            "phoneNumbers": ["08031234567"],
        })

        assert entities.names == []
        assert entities.ages == ["34 years"]
        assert entities.phone_numbers == ["08031234567"]
        assert entities.found_categories() == ["ages", "phoneNumbers"]

    def test_unknown_category(self):
        from digitizer.entities import MedicalEntities

        with pytest.raises(KeyError):
            MedicalEntities()["allergies"]


class TestExtractionBoundaries:
    """Test behaviour on empty or irrelevant text."""

    @pytest.mark.parametrize("text", ["", "   ", "lorem ipsum dolor sit amet"])
    def test_nothing_found_is_all_sentinel(self, extract, text):
        entities = extract(text)

        assert entities.is_empty()
        assert all(values == ["None"] for values in entities.to_dict().values())

    def test_module_level_helper(self):
        from digitizer.entities import extract_entities

        assert extract_entities("Age: 34")["ages"] == ["34 years"]


class TestNames:
    """Test personal name extraction."""

    def test_dictionary_exact_match(self, extract):
        assert "Ngozi" in extract("Seen Ngozi today").names

    def test_dictionary_fuzzy_match(self, extract):
        """Test a misread name mapped to its dictionary spelling."""
        assert "Babatunde" in extract("Babatunda came in with cough").names

    def test_label_capture(self, extract):
        names = extract("Name: Tolu Bakare\nAge: 30").names
        assert "Tolu Bakare" in names

    def test_honorific_capture(self, extract):
        assert "Okonkwo" in extract("Reviewed by Dr. Okonkwo").names

    def test_label_capture_stops_at_next_label(self, extract):
        names = extract("Patient John Okafor Age 45").names
        assert names[0] == "John"
        assert "John Okafor" in names

    def test_lowercase_common_words_are_not_names(self, extract):
        """Test that words like "hope" are not names unless capitalized."""
        assert extract("we hope the fever subsides").names == []


class TestAges:
    """Test age extraction."""

    def test_labelled_age(self, extract):
        assert extract("Age: 34 years")["ages"] == ["34 years"]

    def test_years_old(self, extract):
        assert extract("a 7 year old boy")["ages"] == ["7 years"]

    def test_yo_suffix(self, extract):
        assert extract("52 y.o. female")["ages"] == ["52 years"]

    def test_implausible_age_rejected(self, extract):
        assert extract("Age: 150")["ages"] == ["None"]

    def test_no_age(self, extract):
        assert extract("Patient reports headache")["ages"] == ["None"]


class TestMedications:
    """Test medication extraction."""

    def test_known_drug_with_dose(self, extract):
        assert extract("Paracetamol 500mg tds").medications == ["Paracetamol 500mg"]

    def test_known_drug_without_dose(self, extract):
        assert extract("started on amoxicillin").medications == ["Amoxicillin"]

    def test_suffix_rule_needs_dose(self, extract):
        """Test morphological matches only count with a dosage token."""
        entities = extract("Gentamicin 80mg daily and routine care")
        assert entities.medications == ["Gentamicin 80mg"]

    def test_dose_spacing_normalized(self, extract):
        assert extract("Metformin 500 mg bd").medications == ["Metformin 500mg"]

    def test_bare_name_dropped_when_dosed_form_present(self, extract):
        meds = extract("Ibuprofen 400mg. Continue ibuprofen").medications
        assert meds == ["Ibuprofen 400mg"]


class TestSymptomsAndVitals:
    """Test symptom and vital sign extraction."""

    def test_symptom_containment(self, extract):
        symptoms = extract("Complains of Chest Pain and Fever").symptoms
        assert symptoms == ["pain", "fever", "chest pain"]

    def test_vitals_verbatim(self, extract):
        vitals = extract("BP: 120/80 mmHg, Pulse 88 bpm, Temp 37.8 C, Wt 70kg").vitals
        assert "BP: 120/80 mmHg" in vitals
        assert "Pulse 88 bpm" in vitals
        assert "Temp 37.8 C" in vitals
        assert "Wt 70kg" in vitals

    def test_respiratory_and_saturation(self, extract):
        vitals = extract("RR 18, SpO2 97%").vitals
        assert vitals == ["RR 18", "SpO2 97%"]

    def test_expanded_blood_pressure(self, extract):
        vitals = extract("blood pressure 130/85").vitals
        assert vitals == ["blood pressure 130/85"]


class TestDatesAddressesPhones:
    """Test date, address and phone extraction."""

    def test_numeric_and_month_dates(self, extract):
        dates = extract("Seen 12/03/2024, review on 5 April 2024").dates
        assert dates == ["12/03/2024", "5 April 2024"]

    def test_blood_pressure_is_not_a_date(self, extract):
        assert extract("BP 120/80").dates == []

    def test_address_label(self, extract):
        addresses = extract("Address: 12 Allen Avenue, Ikeja Phone: 08031234567").addresses
        assert addresses == ["12 Allen Avenue, Ikeja"]

    def test_street_suffix(self, extract):
        assert extract("lives at 4 Broad Street near market").addresses == ["4 Broad Street"]

    def test_nigerian_local_number(self, extract):
        assert extract("Phone: 08031234567").phone_numbers == ["08031234567"]

    def test_country_code_number(self, extract):
        phones = extract("call +234 803 123 4567").phone_numbers
        assert phones == ["+234 803 123 4567"]

    def test_same_number_in_two_formats_kept_once(self, extract):
        phones = extract("Tel: 08031234567 or +234 803 123 4567").phone_numbers
        assert phones == ["08031234567"]

    def test_short_numbers_rejected(self, extract):
        assert extract("Phone: 12345").phone_numbers == []


class TestMergeEntities:
    """Test merging local and enhancement results."""

    def test_enhanced_values_win_when_present(self):
        from digitizer.entities import MedicalEntities, merge_entities

        local = MedicalEntities(names=["Emeka"], ages=["40 years"])
        enhanced = {"names": ["Emeka Obi"], "ages": ["None"], "symptoms": ["cough"]}

        merged = merge_entities(local, enhanced)

        assert merged.names == ["Emeka Obi"]
        assert merged.ages == ["40 years"]
        assert merged.symptoms == ["cough"]
        assert merged["dates"] == ["None"]

    def test_no_enhancement_keeps_local(self):
        from digitizer.entities import MedicalEntities, merge_entities

        local = MedicalEntities(names=["Emeka"])
        assert merge_entities(local, None) is local


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
