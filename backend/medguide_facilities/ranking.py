from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Callable, Iterable

from medguide_core.models import Facility, GeoPosition, SearchFilters, SortBy

from .geo import haversine_meters
from .opening_hours import is_open_at

SortKey = Callable[[Facility], tuple]


def _tie_break(facility: Facility) -> tuple:
    return (facility.distance_meters, -facility.rating, facility.name.casefold(), facility.id)


_SORT_KEYS: dict[SortBy, SortKey] = {
    SortBy.DISTANCE: _tie_break,
    SortBy.RATING: lambda facility: (-facility.rating, *_tie_break(facility)),
    SortBy.NAME: lambda facility: (facility.name.casefold(), *_tie_break(facility)),
}


def with_distances_from(facilities: Iterable[Facility], origin: GeoPosition) -> list[Facility]:
    """Copies of ``facilities`` with distance_meters measured from ``origin``."""
    return [
        replace(
            facility,
            distance_meters=haversine_meters(
                origin.latitude, origin.longitude, facility.latitude, facility.longitude
            ),
        )
        for facility in facilities
    ]


def speaks(facility: Facility, language: str) -> bool:
    wanted = language.strip().casefold()
    return any(wanted in spoken.casefold() for spoken in facility.languages)


def apply(
    facilities: Iterable[Facility],
    filters: SearchFilters,
    *,
    when: datetime | None = None,
) -> list[Facility]:
    """Filter, order and truncate ``facilities``.

    Every narrowing filter, open-now included, runs before the limit is applied.
    """
    results = list(facilities)
    if filters.emergency_only:
        results = [facility for facility in results if facility.emergency_services]
    if filters.specialization_id:
        results = [facility for facility in results if filters.specialization_id in facility.specializations]
    if filters.language:
        results = [facility for facility in results if speaks(facility, filters.language)]
    results = [facility for facility in results if facility.rating >= filters.min_rating]
    results = [facility for facility in results if facility.distance_meters <= filters.max_distance_meters]
    if filters.open_now:
        moment = when or datetime.now()
        results = [facility for facility in results if is_open_at(facility, moment)]

    results.sort(key=_SORT_KEYS[SortBy(filters.sort_by)])
    return results[: max(filters.limit, 0)]
