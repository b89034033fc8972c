from __future__ import annotations

import re
from typing import Any, Iterable

from medguide_core.logging_utils import get_logger
from medguide_core.models import Facility, GeoPosition, SkippedRecord
from medguide_core.registry import SpecializationRegistry

from .geo import haversine_meters
from .opening_hours import parse_opening_hours

logger = get_logger(__name__)

DEDUP_RADIUS_METERS = 25.0

_EMERGENCY_TAG_VALUES = {"yes", "hospital"}
_ADDRESS_KEYS = (
    "addr:housenumber",
    "addr:street",
    ("addr:suburb", "addr:neighbourhood"),
    "addr:city",
    "addr:state",
    "addr:postcode",
)


def _safe_float(value: Any) -> float | None:
    try:
        if value is None:
            return None
        return float(value)
    except (TypeError, ValueError):
        return None


def _safe_int(value: Any) -> int | None:
    try:
        if value is None:
            return None
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def _normalize_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text or "").strip()


def _tag(tags: dict[str, Any], *keys: str) -> str | None:
    for key in keys:
        value = _normalize_whitespace(str(tags.get(key) or ""))
        if value:
            return value
    return None


def _record_ref(element: Any, position: int) -> str:
    if isinstance(element, dict) and element.get("id") is not None:
        return f"{element.get('type') or 'element'}/{element.get('id')}"
    return f"index/{position}"


def _coordinates(element: dict[str, Any]) -> tuple[float, float] | None:
    lat = _safe_float(element.get("lat"))
    lon = _safe_float(element.get("lon"))
    if lat is None or lon is None:
        center = element.get("center") if isinstance(element.get("center"), dict) else {}
        lat = _safe_float(center.get("lat"))
        lon = _safe_float(center.get("lon"))
    if lat is None or lon is None:
        return None
    if not -90.0 <= lat <= 90.0 or not -180.0 <= lon <= 180.0:
        return None
    return lat, lon


def _speciality_values(tags: dict[str, Any]) -> list[str]:
    raw = str(tags.get("healthcare:speciality") or "")
    return [part.strip().lower() for part in raw.split(";") if part.strip()]


def _has_emergency_tag(tags: dict[str, Any]) -> bool:
    return str(tags.get("emergency") or "").strip().lower() in _EMERGENCY_TAG_VALUES


def build_address(tags: dict[str, Any], lat: float, lon: float) -> str:
    parts: list[str] = []
    for key in _ADDRESS_KEYS:
        keys = key if isinstance(key, tuple) else (key,)
        value = _tag(tags, *keys)
        if value:
            parts.append(value)
    if parts:
        return ", ".join(parts)
    return f"{lat:.4f}, {lon:.4f}"


def determine_specializations(tags: dict[str, Any], registry: SpecializationRegistry) -> frozenset[str]:
    amenity = str(tags.get("amenity") or "").lower()
    found: set[str] = set()
    if amenity == "hospital":
        found.update({"general_medicine", "emergency"})
    if amenity in {"clinic", "doctors"}:
        found.add("general_medicine")
    for value in _speciality_values(tags):
        canonical = registry.canonical_id(value)
        if canonical:
            found.add(canonical)
    if _has_emergency_tag(tags):
        found.add("emergency")
    return frozenset(found)


def determine_services(tags: dict[str, Any]) -> list[str]:
    amenity = str(tags.get("amenity") or "").lower()
    services: list[str] = []
    if amenity == "hospital":
        services.extend(["Emergency Care", "Inpatient Care", "Surgery"])
    if amenity == "clinic":
        services.extend(["Outpatient Care", "Consultation"])
    if amenity == "pharmacy":
        services.append("Pharmacy")
    if _has_emergency_tag(tags):
        services.append("Emergency Services")
    if any("surgery" in value for value in _speciality_values(tags)) and "Surgery" not in services:
        services.append("Surgery")
    return services


_LANGUAGE_NAMES = {
    "en": "English",
    "hi": "Hindi",
    "ta": "Tamil",
    "kn": "Kannada",
    "ml": "Malayalam",
    "te": "Telugu",
    "bn": "Bengali",
    "mr": "Marathi",
    "ur": "Urdu",
    "es": "Spanish",
}
_REGIONAL_LANGUAGES = (
    ("tamil", "Tamil"),
    ("karnataka", "Kannada"),
    ("kerala", "Malayalam"),
)


def determine_languages(tags: dict[str, Any]) -> list[str]:
    """English always; explicit ``language:xx=yes`` tags; Hindi plus the state language inside India."""
    languages = ["English"]

    def _add(name: str) -> None:
        if name not in languages:
            languages.append(name)

    for key, value in tags.items():
        if key.startswith("language:") and str(value).strip().lower() == "yes":
            code = key.split(":", 1)[1].strip().lower()
            _add(_LANGUAGE_NAMES.get(code, code.title()))

    if str(tags.get("addr:country") or "").strip().upper() == "IN":
        _add("Hindi")
        state = str(tags.get("addr:state") or "").lower()
        for needle, language in _REGIONAL_LANGUAGES:
            if needle in state:
                _add(language)
    return languages


def estimate_rating(tags: dict[str, Any]) -> float:
    """OSM carries no reviews, so the rating is a completeness score on a 0-5 scale."""
    rating = 3.5
    if str(tags.get("amenity") or "").lower() == "hospital":
        rating += 0.5
    if _has_emergency_tag(tags):
        rating += 0.3
    if tags.get("website") or tags.get("contact:website"):
        rating += 0.2
    if tags.get("phone") or tags.get("contact:phone"):
        rating += 0.2
    if tags.get("healthcare:speciality"):
        rating += 0.3
    return min(5.0, round(rating, 1))


def normalize_element(
    element: Any,
    origin: GeoPosition,
    registry: SpecializationRegistry,
    *,
    position: int = 0,
) -> Facility | SkippedRecord:
    ref = _record_ref(element, position)
    if not isinstance(element, dict):
        return SkippedRecord(record_ref=ref, reason="malformed_record")

    tags = element.get("tags") if isinstance(element.get("tags"), dict) else {}
    name = _tag(tags, "name", "name:en", "brand")
    if not name:
        return SkippedRecord(record_ref=ref, reason="missing_name")

    coordinates = _coordinates(element)
    if coordinates is None:
        return SkippedRecord(record_ref=ref, reason="missing_coordinates")
    lat, lon = coordinates

    amenity = _tag(tags, "amenity")
    specializations = determine_specializations(tags, registry)
    emergency = (
        _has_emergency_tag(tags)
        or (amenity or "").lower() == "hospital"
        or any("emergency" in value for value in _speciality_values(tags))
    )
    element_id = element.get("id")
    facility_id = (
        f"osm-{element.get('type') or 'node'}-{element_id}"
        if element_id is not None
        else f"osm-{lat:.5f}-{lon:.5f}"
    )

    return Facility(
        id=facility_id,
        name=name,
        address=build_address(tags, lat, lon),
        latitude=lat,
        longitude=lon,
        specializations=specializations,
        rating=estimate_rating(tags),
        review_count=max(_safe_int(tags.get("review_count") or tags.get("reviews")) or 0, 0),
        opening_hours=parse_opening_hours(tags.get("opening_hours")),
        emergency_services=emergency,
        distance_meters=haversine_meters(origin.latitude, origin.longitude, lat, lon),
        phone=_tag(tags, "phone", "contact:phone"),
        website=_tag(tags, "website", "contact:website"),
        amenity=amenity,
        services=determine_services(tags),
        languages=determine_languages(tags),
    )


def _is_duplicate(left: Facility, right: Facility) -> bool:
    if left.id == right.id:
        return True
    if left.name.casefold() != right.name.casefold():
        return False
    distance = haversine_meters(left.latitude, left.longitude, right.latitude, right.longitude)
    return distance <= DEDUP_RADIUS_METERS


def deduplicate(facilities: Iterable[Facility]) -> list[Facility]:
    kept: list[Facility] = []
    for facility in facilities:
        for index, existing in enumerate(kept):
            if _is_duplicate(existing, facility):
                if facility.richness() > existing.richness():
                    kept[index] = facility
                break
        else:
            kept.append(facility)
    return kept


def normalize_elements(
    elements: Iterable[Any],
    origin: GeoPosition,
    registry: SpecializationRegistry,
) -> tuple[list[Facility], list[SkippedRecord]]:
    facilities: list[Facility] = []
    skipped: list[SkippedRecord] = []
    for position, element in enumerate(elements):
        normalized = normalize_element(element, origin, registry, position=position)
        if isinstance(normalized, SkippedRecord):
            skipped.append(normalized)
        else:
            facilities.append(normalized)

    merged = deduplicate(facilities)
    if skipped:
        logger.info("Skipped %d raw record(s) during normalization", len(skipped))
    if len(merged) < len(facilities):
        logger.debug("Merged %d duplicate facility record(s)", len(facilities) - len(merged))
    return merged, skipped
