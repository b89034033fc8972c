from .catalog import RECOMMENDATIONS, SPECIALITY_TAG_ALIASES, SPECIALIZATIONS, URGENCY_KEYWORDS, build_default_registry
from .classifier import SymptomClassifier

__all__ = [
    "RECOMMENDATIONS",
    "SPECIALITY_TAG_ALIASES",
    "SPECIALIZATIONS",
    "URGENCY_KEYWORDS",
    "SymptomClassifier",
    "build_default_registry",
]
