from . import ranking
from .fallback import fallback_facilities, fallback_outcome
from .geo import bounding_box, haversine_meters, offset_position
from .normalize import normalize_elements
from .opening_hours import is_open_at, parse_opening_hours
from .overpass import FacilityQueryEngine, build_overpass_query
from .retry import EndpointCursor, RetryPolicy, RetryState

__all__ = [
    "EndpointCursor",
    "FacilityQueryEngine",
    "RetryPolicy",
    "RetryState",
    "bounding_box",
    "build_overpass_query",
    "fallback_facilities",
    "fallback_outcome",
    "haversine_meters",
    "is_open_at",
    "normalize_elements",
    "offset_position",
    "parse_opening_hours",
    "ranking",
]
