from __future__ import annotations

import re

from medguide_core.logging_utils import get_logger
from medguide_core.models import ClassificationResult, UrgencyLevel
from medguide_core.registry import SpecializationRegistry

from .catalog import RECOMMENDATIONS, URGENCY_KEYWORDS, build_default_registry

logger = get_logger(__name__)

_TIER_ORDER = (UrgencyLevel.EMERGENCY, UrgencyLevel.HIGH, UrgencyLevel.LOW)


def _normalize_text(text: str) -> str:
    cleaned = (text or "").replace("’", "'").replace("‘", "'").lower()
    return re.sub(r"\s+", " ", cleaned).strip()


class SymptomClassifier:
    def __init__(
        self,
        registry: SpecializationRegistry | None = None,
        *,
        urgency_keywords: dict[str, dict[UrgencyLevel, frozenset[str]]] | None = None,
        recommendations: dict[str, dict[str, str]] | None = None,
        default_locale: str = "en",
    ) -> None:
        self.registry = registry or build_default_registry()
        self.urgency_keywords = urgency_keywords or URGENCY_KEYWORDS
        self.recommendations = recommendations or RECOMMENDATIONS
        self.default_locale = default_locale

    def _resolve_locale(self, locale: str | None) -> str:
        candidate = (locale or "").strip().lower().split("-")[0]
        if candidate in self.urgency_keywords:
            return candidate
        return self.default_locale

    def urgency_for(self, text: str, locale: str | None = None) -> UrgencyLevel:
        resolved = self._resolve_locale(locale)
        cleaned = _normalize_text(text)
        tiers = self.urgency_keywords.get(resolved, {})
        for level in _TIER_ORDER:
            keywords = tiers.get(level, frozenset())
            if any(keyword.lower() in cleaned for keyword in keywords):
                return level
        return UrgencyLevel.MEDIUM

    def match_specializations(self, text: str, locale: str | None = None) -> list[str]:
        resolved = self._resolve_locale(locale)
        cleaned = _normalize_text(text)
        hits: list[tuple[int, str]] = []
        for spec in self.registry.all():
            count = sum(1 for keyword in spec.keywords_for(resolved) if keyword.lower() in cleaned)
            if count:
                hits.append((count, spec.id))
        hits.sort(key=lambda item: (-item[0], item[1]))
        ordered: list[str] = []
        for _, spec_id in hits:
            if spec_id not in ordered:
                ordered.append(spec_id)
        return ordered

    def recommend(self, urgency: UrgencyLevel, specializations: list[str], locale: str | None = None) -> list[str]:
        resolved = self._resolve_locale(locale)
        templates = self.recommendations.get(resolved) or self.recommendations["en"]
        lines = [templates[urgency.value]]
        if specializations:
            names = ", ".join(self.registry.resolve(spec_id).name_for(resolved) for spec_id in specializations)
            lines.append(templates["specialist"].format(names=names))
        elif urgency is UrgencyLevel.MEDIUM:
            lines = [templates["generic"]]
        return lines

    def classify(self, text: str, locale: str | None = None) -> ClassificationResult:
        try:
            urgency = self.urgency_for(text, locale)
            specializations = self.match_specializations(text, locale)
            recommendations = self.recommend(urgency, specializations, locale)
        except Exception:
            # Classification has no failure mode visible to callers.
            logger.exception("Symptom classification failed; returning safe default")
            fallback = self.recommendations.get("en", {}).get("generic", "")
            return ClassificationResult(
                urgency_level=UrgencyLevel.MEDIUM,
                specializations=[],
                recommendations=[fallback] if fallback else [],
            )
        logger.debug(
            "Classified symptoms: urgency=%s specializations=%s",
            urgency.value,
            ",".join(specializations) or "-",
        )
        return ClassificationResult(
            urgency_level=urgency,
            specializations=specializations,
            recommendations=recommendations,
        )
