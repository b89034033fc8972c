from __future__ import annotations

import hashlib
import json
import time
from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any


WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class LocationSource(str, Enum):
    GPS = "gps"
    NETWORK = "network"
    CACHED = "cached"


class UrgencyLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    EMERGENCY = "emergency"

    @property
    def rank(self) -> int:
        return _URGENCY_RANK[self]


_URGENCY_RANK = {
    UrgencyLevel.LOW: 1,
    UrgencyLevel.MEDIUM: 2,
    UrgencyLevel.HIGH: 3,
    UrgencyLevel.EMERGENCY: 4,
}


class SortBy(str, Enum):
    DISTANCE = "distance"
    RATING = "rating"
    NAME = "name"


def describe_accuracy(accuracy_meters: float) -> str:
    if accuracy_meters <= 5:
        return "GPS (High Accuracy)"
    if accuracy_meters <= 20:
        return "GPS (Good Accuracy)"
    if accuracy_meters <= 100:
        return "WiFi/Cell Tower (Medium Accuracy)"
    return "Network/IP (Low Accuracy)"


@dataclass(frozen=True)
class GeoPosition:
    latitude: float
    longitude: float
    accuracy_meters: float
    source: LocationSource = LocationSource.NETWORK
    timestamp: float = field(default_factory=time.time)
    altitude: float | None = None
    speed: float | None = None
    heading: float | None = None

    def __post_init__(self) -> None:
        if not self.accuracy_meters > 0:
            raise ValueError(f"accuracy_meters must be positive, got {self.accuracy_meters!r}")
        if not -90.0 <= self.latitude <= 90.0 or not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"Coordinates out of range: {self.latitude}, {self.longitude}")

    def as_cached(self) -> GeoPosition:
        return replace(self, source=LocationSource.CACHED)

    def describe_accuracy(self) -> str:
        return describe_accuracy(self.accuracy_meters)

    def as_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["source"] = self.source.value
        payload["accuracy_label"] = self.describe_accuracy()
        return payload


@dataclass(frozen=True)
class LocationTarget:
    accuracy_meters: float = 20.0
    max_attempts: int = 3
    max_wait_ms: int = 30_000
    force_refresh: bool = False


def _span_covers(start: str, end: str, hhmm: str) -> bool:
    if end < start:
        # Spans midnight, e.g. 20:00-02:00.
        return hhmm >= start or hhmm <= end
    return start <= hhmm <= end


@dataclass(frozen=True)
class DayHours:
    """Hours for one weekday. ``spans`` is only set when the day has more than one span."""

    open: str | None = None
    close: str | None = None
    closed: bool = False
    all_day: bool = False
    spans: tuple[tuple[str, str], ...] = ()

    def covers(self, hhmm: str) -> bool:
        if self.closed:
            return False
        if self.all_day:
            return True
        if self.spans:
            return any(_span_covers(start, end, hhmm) for start, end in self.spans)
        if self.open is None or self.close is None:
            return False
        return _span_covers(self.open, self.close, hhmm)

    def as_dict(self) -> dict[str, Any]:
        spans = self.spans
        if not spans and self.open and self.close:
            spans = ((self.open, self.close),)
        return {
            "open": self.open,
            "close": self.close,
            "closed": self.closed,
            "all_day": self.all_day,
            "spans": [list(span) for span in spans],
        }


CLOSED_DAY = DayHours(closed=True)


@dataclass
class Facility:
    id: str
    name: str
    address: str
    latitude: float
    longitude: float
    specializations: frozenset[str] = frozenset()
    rating: float = 0.0
    review_count: int = 0
    opening_hours: dict[str, DayHours] = field(default_factory=dict)
    emergency_services: bool = False
    distance_meters: float = 0.0
    phone: str | None = None
    website: str | None = None
    amenity: str | None = None
    services: list[str] = field(default_factory=list)
    languages: list[str] = field(default_factory=list)

    def richness(self) -> int:
        score = sum(
            1
            for value in (self.phone, self.website, self.amenity)
            if value
        )
        score += len(self.specializations) + len(self.services)
        score += sum(1 for hours in self.opening_hours.values() if not hours.closed)
        if self.address and not self.address[0].isdigit():
            score += 1
        return score

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "phone": self.phone,
            "website": self.website,
            "amenity": self.amenity,
            "specializations": sorted(self.specializations),
            "services": list(self.services),
            "languages": list(self.languages),
            "rating": self.rating,
            "review_count": self.review_count,
            "opening_hours": {day: hours.as_dict() for day, hours in self.opening_hours.items()},
            "emergency_services": self.emergency_services,
            "distance_meters": round(self.distance_meters, 1),
        }


@dataclass
class Specialization:
    id: str
    canonical_name: str
    localized_names: dict[str, str] = field(default_factory=dict)
    keyword_sets: dict[str, frozenset[str]] = field(default_factory=dict)

    def name_for(self, locale: str) -> str:
        return self.localized_names.get(locale) or self.canonical_name

    def keywords_for(self, locale: str) -> frozenset[str]:
        return self.keyword_sets.get(locale, frozenset())

    def as_dict(self, locale: str = "en") -> dict[str, Any]:
        return {"id": self.id, "name": self.name_for(locale), "canonical_name": self.canonical_name}


@dataclass(frozen=True)
class SearchFilters:
    max_distance_meters: float = 5000.0
    min_rating: float = 0.0
    specialization_id: str | None = None
    emergency_only: bool = False
    sort_by: SortBy = SortBy.DISTANCE
    limit: int = 20
    language: str | None = None
    open_now: bool = False

    def fingerprint(self) -> str:
        payload = asdict(self)
        payload["sort_by"] = SortBy(self.sort_by).value
        encoded = json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")
        return hashlib.sha256(encoded).hexdigest()

    def with_overrides(self, **changes: Any) -> SearchFilters:
        return replace(self, **changes)


@dataclass
class ClassificationResult:
    urgency_level: UrgencyLevel
    specializations: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {
            "urgency_level": self.urgency_level.value,
            "specializations": list(self.specializations),
            "recommendations": list(self.recommendations),
        }


@dataclass(frozen=True)
class SkippedRecord:
    record_ref: str
    reason: str


@dataclass
class QueryOutcome:
    facilities: list[Facility]
    degraded: bool = False
    endpoint: str | None = None
    fallback_reason: str | None = None
    skipped: list[SkippedRecord] = field(default_factory=list)
    attempts: int = 0


@dataclass
class SearchResult:
    facilities: list[Facility]
    urgency_level: UrgencyLevel | None = None
    specializations: list[Specialization] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    degraded: bool = False
    origin: GeoPosition | None = None
    endpoint: str | None = None
    fallback_reason: str | None = None
    skipped: list[SkippedRecord] = field(default_factory=list)

    def as_envelope(self, locale: str = "en") -> dict[str, Any]:
        return {
            "facilities": [facility.as_dict() for facility in self.facilities],
            "urgency_level": self.urgency_level.value if self.urgency_level else None,
            "specializations": [spec.as_dict(locale) for spec in self.specializations],
            "recommendations": list(self.recommendations),
            "degraded": self.degraded,
            "origin": self.origin.as_dict() if self.origin else None,
            "endpoint": self.endpoint,
            "fallback_reason": self.fallback_reason,
            "skipped_count": len(self.skipped),
        }
