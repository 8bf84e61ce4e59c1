"""
Word lists shared by entity extraction and confidence scoring.
"""

from typing import Dict, List, FrozenSet

# ============================================================================
# Personal Names
# ============================================================================

NAME_DICTIONARY: Dict[str, List[str]] = {
    "yoruba": [
        "Adebayo", "Adebola", "Adejoke", "Adeola", "Adunni", "Folake", "Funmi",
        "Kemi", "Tunde", "Yemi", "Babatunde", "Olumide", "Temitope", "Adebisi",
        "Adenike", "Oluwaseun", "Taiwo", "Kehinde", "Damilola", "Ayodeji",
        "Oluwakemi", "Adeyemi", "Folashade", "Oluwafemi", "Adeyinka",
        "Oluwaseyi", "Adebukola",
    ],
    "igbo": [
        "Chidi", "Chioma", "Emeka", "Ngozi", "Obioma", "Chinedu", "Chinelo",
        "Ifeanyi", "Kelechi", "Nneka", "Chukwuemeka", "Chigozie", "Uchechi",
        "Amarachi", "Chukwudi", "Chiamaka", "Ikechukwu", "Okechukwu",
        "Chidinma", "Chinyere", "Ebere", "Ifeoma", "Chukwuma", "Nnamdi",
        "Chinwe", "Obinna", "Adaeze",
    ],
    "hausa": [
        "Abdullahi", "Aisha", "Amina", "Fatima", "Hafsat", "Ibrahim", "Khadija",
        "Muhammad", "Sani", "Zainab", "Ahmad", "Aliyu", "Hauwa", "Maryam",
        "Sadiq", "Usman", "Yakubu", "Zahra", "Bilkisu", "Halima", "Ismail",
        "Jamila", "Rashid", "Salim", "Umaru", "Yusuf", "Zaynab", "Bashir",
    ],
    "common": [
        "John", "Mary", "David", "Sarah", "Michael", "Grace", "Paul", "Ruth",
        "Peter", "Joy", "Daniel", "Faith", "Joseph", "Peace", "Samuel", "Love",
        "Emmanuel", "Hope", "James", "Mercy",
    ],
}

ALL_NAMES: List[str] = [name for group in NAME_DICTIONARY.values() for name in group]


# ============================================================================
# Medications
# ============================================================================

KNOWN_MEDICATIONS: List[str] = [
    "paracetamol", "acetaminophen", "panadol", "ibuprofen", "aspirin",
    "diclofenac", "amoxicillin", "ampicillin", "ciprofloxacin", "ceftriaxone",
    "metronidazole", "cotrimoxazole", "metformin", "lisinopril", "amlodipine",
    "simvastatin", "atorvastatin", "omeprazole", "levothyroxine", "artemether",
    "lumefantrine", "chloroquine",
]

DOSAGE_UNITS = r"(?:mg|mcg|µg|g|ml|iu|units?)"


# ============================================================================
# Symptoms
# ============================================================================

SYMPTOM_KEYWORDS: List[str] = [
    "pain", "fever", "headache", "nausea", "vomiting", "diarrhea",
    "constipation", "cough", "cold", "flu", "fatigue", "weakness", "dizziness",
    "shortness of breath", "chest pain", "abdominal pain", "back pain",
    "joint pain", "muscle pain", "sore throat", "runny nose", "sneezing",
    "itching", "rash", "swelling",
]


# ============================================================================
# Domain Vocabulary
# ============================================================================

MEDICAL_VOCABULARY: List[str] = [
    # Clinical workflow
    "patient", "diagnosis", "treatment", "medication", "prescription",
    "symptoms", "history", "examination", "allergies", "doctor", "nurse",
    "clinic", "hospital",
    # Vital signs
    "blood pressure", "temperature", "pulse", "weight", "height", "oxygen",
    "saturation", "bp", "hr", "temp", "wt", "ht", "bmi",
    # Drugs
    "paracetamol", "ibuprofen", "aspirin", "amoxicillin", "metformin",
    "lisinopril", "amlodipine", "simvastatin", "omeprazole", "atorvastatin",
    "levothyroxine",
    # Dosage and frequency
    "mg", "mcg", "ml", "tab", "tablet", "capsule", "injection", "syrup",
    "bid", "tid", "qid", "daily", "twice", "thrice", "morning", "evening",
    # Conditions
    "fever", "pain", "hypertension", "diabetes", "malaria", "typhoid",
    "pneumonia", "tuberculosis", "hiv",
]

# Capitalized words that label a field rather than name a person
LABEL_WORDS: FrozenSet[str] = frozenset(
    word for term in MEDICAL_VOCABULARY for word in term.split()
) | frozenset([
    "age", "aged", "sex", "gender", "male", "female", "date", "dob", "address",
    "phone", "tel", "mobile", "contact", "name", "complaint", "chief",
    "presenting", "plan", "follow", "review", "heart", "rate", "blood",
    "pressure", "respiratory", "spo2", "years", "old", "ward", "department",
    "hospital", "clinic", "dr", "mr", "mrs", "ms", "miss", "the", "and",
    "with", "for", "on", "of", "in", "at",
]) | frozenset(KNOWN_MEDICATIONS) | frozenset(SYMPTOM_KEYWORDS)
