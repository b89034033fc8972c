from __future__ import annotations

from datetime import datetime

import pytest

from medguide_core.models import DayHours, Facility, GeoPosition, SearchFilters, SortBy
from medguide_facilities import ranking
from medguide_facilities.geo import bounding_box, haversine_meters, offset_position
from medguide_facilities.opening_hours import is_open_at, parse_opening_hours

BANGALORE = GeoPosition(latitude=12.9716, longitude=77.5946, accuracy_meters=15.0)


def _facility(facility_id: str, *, north: float = 0.0, east: float = 0.0, **fields) -> Facility:
    lat, lon = offset_position(BANGALORE.latitude, BANGALORE.longitude, north, east)
    values = {
        "id": facility_id,
        "name": fields.pop("name", facility_id.title()),
        "address": "somewhere",
        "latitude": lat,
        "longitude": lon,
    }
    values.update(fields)
    return Facility(**values)


@pytest.mark.parametrize(
    ("a", "b"),
    [
        ((12.9716, 77.5946), (13.0827, 80.2707)),
        ((40.4406, -79.9959), (40.4420, -79.9900)),
        ((-33.8688, 151.2093), (51.5074, -0.1278)),
    ],
)
def test_distance_is_symmetric_and_zero_on_same_point(a, b):
    assert haversine_meters(*a, *a) == 0.0
    assert haversine_meters(*a, *b) == pytest.approx(haversine_meters(*b, *a))
    assert haversine_meters(*a, *b) > 0


def test_offset_position_round_trips_through_haversine():
    lat, lon = offset_position(12.9716, 77.5946, 1200.0, 0.0)
    assert haversine_meters(12.9716, 77.5946, lat, lon) == pytest.approx(1200.0, rel=1e-3)


def test_bounding_box_contains_the_radius():
    box = bounding_box(12.9716, 77.5946, 5000.0)
    assert box.south < 12.9716 < box.north
    assert box.west < 77.5946 < box.east
    assert haversine_meters(12.9716, 77.5946, box.north, 77.5946) == pytest.approx(5000.0, rel=1e-3)
    assert box.as_overpass().count(",") == 3


def test_radius_filter_keeps_near_facilities_in_distance_order():
    facilities = ranking.with_distances_from(
        [
            _facility("far", north=6000.0),
            _facility("edge", east=4800.0),
            _facility("near", north=-1200.0),
        ],
        BANGALORE,
    )

    result = ranking.apply(facilities, SearchFilters(max_distance_meters=5000.0))

    assert [facility.id for facility in result] == ["near", "edge"]
    assert result[0].distance_meters == pytest.approx(1200.0, rel=1e-3)
    assert result[1].distance_meters == pytest.approx(4800.0, rel=1e-3)


def test_min_rating_with_rating_sort_is_non_increasing():
    ratings = [3.2, 4.9, 4.0, 4.5, 3.99, 5.0, 4.0]
    facilities = ranking.with_distances_from(
        [_facility(f"f{index}", north=100.0 * index, rating=rating) for index, rating in enumerate(ratings)],
        BANGALORE,
    )

    result = ranking.apply(facilities, SearchFilters(min_rating=4.0, sort_by=SortBy.RATING))

    assert result
    assert all(facility.rating >= 4.0 for facility in result)
    assert [facility.rating for facility in result] == sorted((f.rating for f in result), reverse=True)
    # Equal ratings fall back to the nearer facility first.
    assert [facility.id for facility in result if facility.rating == 4.0] == ["f2", "f6"]


def test_emergency_and_specialization_filters_then_limit():
    facilities = ranking.with_distances_from(
        [
            _facility("er-a", north=300.0, emergency_services=True, specializations=frozenset({"emergency"})),
            _facility("er-b", north=100.0, emergency_services=True, specializations=frozenset({"cardiology"})),
            _facility("clinic", north=50.0, specializations=frozenset({"cardiology"})),
        ],
        BANGALORE,
    )

    emergency = ranking.apply(facilities, SearchFilters(emergency_only=True))
    cardiology = ranking.apply(facilities, SearchFilters(specialization_id="cardiology", limit=1))

    assert [facility.id for facility in emergency] == ["er-b", "er-a"]
    assert [facility.id for facility in cardiology] == ["clinic"]


def test_name_sort_breaks_ties_by_distance():
    facilities = ranking.with_distances_from(
        [
            _facility("b2", name="Beta", north=900.0),
            _facility("a1", name="alpha", north=500.0),
            _facility("b1", name="Beta", north=200.0),
        ],
        BANGALORE,
    )

    result = ranking.apply(facilities, SearchFilters(sort_by=SortBy.NAME))

    assert [facility.id for facility in result] == ["a1", "b1", "b2"]


def test_with_distances_from_recomputes_for_a_new_origin():
    facility = _facility("clinic", north=1000.0, distance_meters=123.0)
    moved = GeoPosition(latitude=facility.latitude, longitude=facility.longitude, accuracy_meters=5.0)

    [relocated] = ranking.with_distances_from([facility], moved)

    assert relocated.distance_meters == pytest.approx(0.0, abs=1e-6)
    assert facility.distance_meters == 123.0


def test_opening_hours_uncovered_days_default_to_closed():
    hours = parse_opening_hours("Mo-Fr 08:00-18:00; Sa 09:00-13:00")

    assert hours["monday"] == DayHours(open="08:00", close="18:00")
    assert hours["friday"] == DayHours(open="08:00", close="18:00")
    assert hours["saturday"] == DayHours(open="09:00", close="13:00")
    assert hours["sunday"].closed


def test_opening_hours_variants():
    always = parse_opening_hours("24/7")
    listed = parse_opening_hours("Sa,Su 10:00-14:00; Mo off")
    split = parse_opening_hours("Mo-Fr 08:00-12:00,14:00-18:00")
    empty = parse_opening_hours("")
    garbage = parse_opening_hours("by appointment")

    assert all(day.all_day for day in always.values())
    assert listed["saturday"].open == "10:00" and listed["sunday"].close == "14:00"
    assert listed["monday"].closed and listed["tuesday"].closed
    assert split["wednesday"].spans == (("08:00", "12:00"), ("14:00", "18:00"))
    assert all(day.closed for day in empty.values())
    assert all(day.closed for day in garbage.values())


def test_is_open_at_and_open_now_filter():
    weekday_clinic = _facility("clinic", opening_hours=parse_opening_hours("Mo-Fr 08:00-18:00"))
    night_clinic = _facility("night", opening_hours=parse_opening_hours("Mo-Su 20:00-02:00"))
    tuesday_noon = datetime(2026, 3, 3, 12, 0)
    sunday_noon = datetime(2026, 3, 8, 12, 0)
    tuesday_late = datetime(2026, 3, 3, 23, 30)

    assert is_open_at(weekday_clinic, tuesday_noon)
    assert not is_open_at(weekday_clinic, sunday_noon)
    assert is_open_at(night_clinic, tuesday_late)
    open_now = SearchFilters(open_now=True)
    assert [f.id for f in ranking.apply([weekday_clinic, night_clinic], open_now, when=tuesday_noon)] == ["clinic"]


def test_split_hours_are_closed_during_the_break():
    clinic = _facility("clinic", opening_hours=parse_opening_hours("Mo-Fr 08:00-12:00,14:00-18:00"))
    late = _facility("late", opening_hours=parse_opening_hours("Mo-Su 09:00-13:00,20:00-02:00"))
    tuesday = datetime(2026, 3, 3)

    assert is_open_at(clinic, tuesday.replace(hour=10))
    assert not is_open_at(clinic, tuesday.replace(hour=13))
    assert is_open_at(clinic, tuesday.replace(hour=15, minute=30))
    assert not is_open_at(late, tuesday.replace(hour=17))
    assert is_open_at(late, tuesday.replace(hour=23, minute=15))
    assert clinic.opening_hours["monday"].as_dict()["spans"] == [["08:00", "12:00"], ["14:00", "18:00"]]


def test_open_now_runs_before_the_limit():
    facilities = ranking.with_distances_from(
        [
            _facility("closed-near", north=200.0, opening_hours=parse_opening_hours("Mo-Fr 08:00-12:00")),
            _facility("open-far", north=2500.0, opening_hours=parse_opening_hours("24/7")),
        ],
        BANGALORE,
    )
    tuesday_evening = datetime(2026, 3, 3, 19, 0)

    result = ranking.apply(facilities, SearchFilters(open_now=True, limit=1), when=tuesday_evening)

    assert [facility.id for facility in result] == ["open-far"]


def test_language_filter_matches_case_insensitively():
    facilities = ranking.with_distances_from(
        [
            _facility("english", north=100.0, languages=["English"]),
            _facility("kannada", north=300.0, languages=["English", "Hindi", "Kannada"]),
            _facility("unknown", north=50.0),
        ],
        BANGALORE,
    )

    result = ranking.apply(facilities, SearchFilters(language="kannada"))
    english = ranking.apply(facilities, SearchFilters(language=" ENGLISH "))

    assert [facility.id for facility in result] == ["kannada"]
    assert [facility.id for facility in english] == ["english", "kannada"]
