from .config import DiscoveryConfig
from .errors import (
    DiscoveryError,
    LocationError,
    LocationPermissionDeniedError,
    LocationTimeoutError,
    LocationUnavailableError,
    QueryError,
    SearchSupersededError,
    SearchTimeoutError,
)
from .models import (
    ClassificationResult,
    Facility,
    GeoPosition,
    LocationSource,
    SearchFilters,
    SearchResult,
    SortBy,
    UrgencyLevel,
)
from .registry import SpecializationRegistry

__all__ = [
    "ClassificationResult",
    "DiscoveryConfig",
    "DiscoveryError",
    "Facility",
    "GeoPosition",
    "LocationError",
    "LocationPermissionDeniedError",
    "LocationSource",
    "LocationTimeoutError",
    "LocationUnavailableError",
    "QueryError",
    "SearchFilters",
    "SearchResult",
    "SearchSupersededError",
    "SearchTimeoutError",
    "SortBy",
    "SpecializationRegistry",
    "UrgencyLevel",
]
