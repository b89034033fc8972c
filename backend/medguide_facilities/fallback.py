from __future__ import annotations

from medguide_core.models import CLOSED_DAY, WEEKDAYS, DayHours, Facility, GeoPosition, QueryOutcome

from .geo import haversine_meters, offset_position

_ALL_DAY = DayHours(open="00:00", close="24:00", all_day=True)
_CLINIC_HOURS = DayHours(open="09:00", close="18:00")
_SATURDAY_HOURS = DayHours(open="09:00", close="13:00")


def _weekly(weekday: DayHours, saturday: DayHours, sunday: DayHours) -> dict[str, DayHours]:
    hours = {day: weekday for day in WEEKDAYS[:5]}
    hours["saturday"] = saturday
    hours["sunday"] = sunday
    return hours


_BASE_OPTIONS = [
    {
        "id": "demo-1",
        "name": "City General Hospital",
        "north": 800.0,
        "east": 400.0,
        "amenity": "hospital",
        "specializations": {"general_medicine", "emergency", "cardiology"},
        "rating": 4.2,
        "emergency": True,
        "hours": _weekly(_ALL_DAY, _ALL_DAY, _ALL_DAY),
        "phone": "108",
        "services": ["Emergency Care", "Inpatient Care", "Surgery"],
        "languages": ["English", "Hindi"],
    },
    {
        "id": "demo-2",
        "name": "Sunrise Children's Clinic",
        "north": -600.0,
        "east": 900.0,
        "amenity": "clinic",
        "specializations": {"general_medicine", "pediatrics"},
        "rating": 4.0,
        "emergency": False,
        "hours": _weekly(_CLINIC_HOURS, _SATURDAY_HOURS, CLOSED_DAY),
        "phone": None,
        "services": ["Outpatient Care", "Consultation"],
        "languages": ["English", "Hindi", "Kannada"],
    },
    {
        "id": "demo-3",
        "name": "Lakeside Family Practice",
        "north": 1500.0,
        "east": -1200.0,
        "amenity": "doctors",
        "specializations": {"general_medicine"},
        "rating": 3.8,
        "emergency": False,
        "hours": _weekly(_CLINIC_HOURS, _SATURDAY_HOURS, CLOSED_DAY),
        "phone": None,
        "services": ["Consultation"],
        "languages": ["English"],
    },
    {
        "id": "demo-4",
        "name": "Metro Heart and Lung Centre",
        "north": -2200.0,
        "east": -700.0,
        "amenity": "hospital",
        "specializations": {"cardiology", "pulmonology", "emergency"},
        "rating": 4.5,
        "emergency": True,
        "hours": _weekly(_ALL_DAY, _ALL_DAY, _ALL_DAY),
        "phone": None,
        "services": ["Emergency Care", "Inpatient Care"],
        "languages": ["English", "Tamil"],
    },
]


def fallback_facilities(origin: GeoPosition) -> list[Facility]:
    """Small built-in dataset laid out around ``origin`` for when every live backend fails."""
    facilities: list[Facility] = []
    for option in _BASE_OPTIONS:
        lat, lon = offset_position(origin.latitude, origin.longitude, option["north"], option["east"])
        facilities.append(
            Facility(
                id=option["id"],
                name=option["name"],
                address=f"{lat:.4f}, {lon:.4f}",
                latitude=lat,
                longitude=lon,
                specializations=frozenset(option["specializations"]),
                rating=option["rating"],
                review_count=0,
                opening_hours=dict(option["hours"]),
                emergency_services=option["emergency"],
                distance_meters=haversine_meters(origin.latitude, origin.longitude, lat, lon),
                phone=option["phone"],
                amenity=option["amenity"],
                services=list(option["services"]),
                languages=list(option["languages"]),
            )
        )
    return facilities


def fallback_outcome(origin: GeoPosition, *, reason: str, attempts: int = 0) -> QueryOutcome:
    return QueryOutcome(
        facilities=fallback_facilities(origin),
        degraded=True,
        endpoint=None,
        fallback_reason=reason,
        attempts=attempts,
    )
