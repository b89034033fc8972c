from __future__ import annotations

from medguide_core.models import Specialization, UrgencyLevel
from medguide_core.registry import SpecializationRegistry


def _spec(
    spec_id: str,
    name: str,
    tamil_name: str,
    keywords: list[str],
    tamil_keywords: list[str],
) -> Specialization:
    return Specialization(
        id=spec_id,
        canonical_name=name,
        localized_names={"en": name, "ta": tamil_name},
        keyword_sets={"en": frozenset(keywords), "ta": frozenset(tamil_keywords)},
    )


SPECIALIZATIONS = [
    _spec(
        "general_medicine",
        "General Medicine",
        "பொது மருத்துவம்",
        ["fever", "headache", "body pain", "cold", "flu", "general health", "check up", "checkup"],
        ["காய்ச்சல்", "தலைவலி", "உடல் வலி", "சளி", "பொது மருத்துவம்", "பரிசோதனை"],
    ),
    _spec(
        "cardiology",
        "Cardiology",
        "இதய மருத்துவம்",
        ["heart", "chest pain", "cardiac", "heart attack", "palpitation", "blood pressure"],
        ["இதயம்", "மார்பு வலி", "இதய நோய்", "இரத்த அழுத்தம்", "இதய துடிப்பு"],
    ),
    _spec(
        "pulmonology",
        "Pulmonology",
        "நுரையீரல் மருத்துவம்",
        ["breathe", "breathing", "breath", "asthma", "wheezing", "lung", "cough"],
        ["மூச்சு", "ஆஸ்துமா", "நுரையீரல்", "இருமல்"],
    ),
    _spec(
        "neurology",
        "Neurology",
        "நரம்பு மருத்துவம்",
        ["brain", "nerve", "headache", "migraine", "seizure", "stroke", "paralysis", "numbness"],
        ["மூளை", "நரம்பு", "தலைவலி", "வலிப்பு", "பக்கவாதம்", "தலைவலி நோய்"],
    ),
    _spec(
        "orthopedics",
        "Orthopedics",
        "எலும்பு மருத்துவம்",
        ["bone", "joint", "fracture", "arthritis", "back pain", "knee pain", "shoulder", "sprain"],
        ["எலும்பு", "மூட்டு", "எலும்பு முறிவு", "முதுகு வலி", "முழங்கால் வலி", "தோள்பட்டை"],
    ),
    _spec(
        "pediatrics",
        "Pediatrics",
        "குழந்தைகள் மருத்துவம்",
        ["child", "baby", "pediatric", "vaccination", "child fever", "growth", "infant"],
        ["குழந்தை", "சிசு", "குழந்தை மருத்துவம்", "தடுப்பூசி", "குழந்தை வளர்ச்சி"],
    ),
    _spec(
        "gynecology",
        "Gynecology",
        "பெண்கள் மருத்துவம்",
        ["women", "pregnancy", "pregnant", "gynecology", "obstetrics", "menstrual", "fertility"],
        ["பெண்கள்", "கர்ப்பம்", "மகப்பேறு", "மாதவிடாய்", "கருவுறுதல்"],
    ),
    _spec(
        "dermatology",
        "Dermatology",
        "தோல் மருத்துவம்",
        ["skin", "rash", "allergy", "dermatology", "acne", "eczema", "itching"],
        ["தோல்", "சொறி", "ஒவ்வாமை", "தோல் நோய்", "முகப்பருக்கள்"],
    ),
    _spec(
        "gastroenterology",
        "Gastroenterology",
        "இரைப்பை குடல் மருத்துவம்",
        ["stomach", "digestive", "gastro", "abdominal pain", "diarrhea", "constipation", "vomiting"],
        ["வயிறு", "செரிமானம்", "வயிற்று வலி", "வயிற்றுப்போக்கு", "மலச்சிக்கல்"],
    ),
    _spec(
        "emergency",
        "Emergency",
        "அவசர சிகிச்சை",
        ["emergency", "urgent", "accident", "trauma", "critical", "severe pain", "unconscious", "bleeding"],
        ["அவசரம்", "அவசர சிகிச்சை", "விபத்து", "கடுமையான வலி", "முக்கியமான"],
    ),
    _spec(
        "oncology",
        "Oncology",
        "புற்றுநோய் மருத்துவம்",
        ["cancer", "tumor", "tumour", "oncology", "chemotherapy", "radiation"],
        ["புற்றுநோய்", "கட்டி", "புற்றுநோய் சிகிச்சை"],
    ),
]

# Vocabulary used by the geospatial backend's ``healthcare:speciality`` tag.
SPECIALITY_TAG_ALIASES = {
    "general": "general_medicine",
    "family_medicine": "general_medicine",
    "internal_medicine": "general_medicine",
    "general_practice": "general_medicine",
    "cardiology": "cardiology",
    "cardiac_surgery": "cardiology",
    "pulmonology": "pulmonology",
    "neurology": "neurology",
    "neurosurgery": "neurology",
    "orthopaedics": "orthopedics",
    "orthopedics": "orthopedics",
    "trauma_surgery": "orthopedics",
    "paediatrics": "pediatrics",
    "pediatrics": "pediatrics",
    "gynaecology": "gynecology",
    "gynecology": "gynecology",
    "obstetrics": "gynecology",
    "dermatology": "dermatology",
    "gastroenterology": "gastroenterology",
    "oncology": "oncology",
    "cancer": "oncology",
    "emergency": "emergency",
    "trauma": "emergency",
}

URGENCY_KEYWORDS: dict[str, dict[UrgencyLevel, frozenset[str]]] = {
    "en": {
        UrgencyLevel.EMERGENCY: frozenset(
            {
                "can't breathe",
                "cant breathe",
                "cannot breathe",
                "not breathing",
                "unconscious",
                "unresponsive",
                "severe chest pain",
                "heart attack",
                "stroke",
                "severe bleeding",
                "heavy bleeding",
                "anaphylaxis",
                "overdose",
                "choking",
                "suicid",
                "self-harm",
                "self harm",
                "seizure",
                "accident",
            }
        ),
        UrgencyLevel.HIGH: frozenset(
            {
                "chest pain",
                "difficulty breathing",
                "trouble breathing",
                "shortness of breath",
                "high fever",
                "fracture",
                "broken bone",
                "vomiting blood",
                "fainted",
                "fainting",
                "severe headache",
                "severe pain",
                "palpitation",
                "numbness",
            }
        ),
        UrgencyLevel.LOW: frozenset(
            {
                "routine",
                "checkup",
                "check up",
                "check-up",
                "follow-up",
                "follow up",
                "annual physical",
                "vaccination",
                "prescription refill",
            }
        ),
    },
    "ta": {
        UrgencyLevel.EMERGENCY: frozenset(
            {
                "மூச்சு விட முடியவில்லை",
                "சுயநினைவு இல்லை",
                "கடுமையான மார்பு வலி",
                "மாரடைப்பு",
                "அதிக இரத்தப்போக்கு",
                "விபத்து",
                "அவசரம்",
            }
        ),
        UrgencyLevel.HIGH: frozenset(
            {
                "மார்பு வலி",
                "மூச்சுத் திணறல்",
                "அதிக காய்ச்சல்",
                "எலும்பு முறிவு",
                "கடுமையான வலி",
                "வலிப்பு",
            }
        ),
        UrgencyLevel.LOW: frozenset(
            {
                "வழக்கமான பரிசோதனை",
                "பரிசோதனை",
                "தடுப்பூசி",
            }
        ),
    },
}

RECOMMENDATIONS: dict[str, dict[str, str]] = {
    "en": {
        UrgencyLevel.EMERGENCY.value: (
            "This appears to be an emergency. Contact emergency services (108) "
            "or go to the nearest emergency room immediately."
        ),
        UrgencyLevel.HIGH.value: "This requires prompt medical attention. Please seek care as soon as possible.",
        UrgencyLevel.MEDIUM.value: "Call ahead to confirm availability before you visit.",
        UrgencyLevel.LOW.value: "Book a routine visit and call ahead to confirm availability.",
        "specialist": "Based on your symptoms, consider visiting a {names} specialist.",
        "generic": (
            "We could not match your symptoms to a specialty. A general physician can assess you; "
            "call ahead to confirm availability."
        ),
    },
    "ta": {
        UrgencyLevel.EMERGENCY.value: (
            "இது அவசர நிலைமை போல் தெரிகிறது! உடனடியாக 108 ஐ அழைக்கவும் "
            "அல்லது அருகிலுள்ள அவசர சிகிச்சை பிரிவுக்குச் செல்லவும்."
        ),
        UrgencyLevel.HIGH.value: "இதற்கு உடனடி மருத்துவ கவனம் தேவை. முடிந்தவரை விரைவில் சிகிச்சை பெறவும்.",
        UrgencyLevel.MEDIUM.value: "செல்லும் முன் மருத்துவர் இருப்பதை தொலைபேசியில் உறுதிப்படுத்தவும்.",
        UrgencyLevel.LOW.value: "வழக்கமான சந்திப்பை பதிவு செய்து, முன்கூட்டியே அழைத்து உறுதிப்படுத்தவும்.",
        "specialist": "உங்கள் அறிகுறிகளின் அடிப்படையில், {names} நிபுணரை சந்திக்க பரிசீலிக்கவும்.",
        "generic": (
            "உங்கள் அறிகுறிகளை ஒரு குறிப்பிட்ட பிரிவுடன் பொருத்த முடியவில்லை. "
            "பொது மருத்துவரை அணுகவும்; முன்கூட்டியே அழைத்து உறுதிப்படுத்தவும்."
        ),
    },
}


def build_default_registry() -> SpecializationRegistry:
    registry = SpecializationRegistry()
    for spec in SPECIALIZATIONS:
        registry.register(spec)
    for alias, target in SPECIALITY_TAG_ALIASES.items():
        registry.add_alias(alias, target)
    return registry
