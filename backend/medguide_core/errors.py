"""
Exception hierarchy for the discovery engine.

Every propagated failure carries a stable ``code`` and a human-readable
message; location failures can also render themselves in the user's locale.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class LocationErrorKind(str, Enum):
    PERMISSION_DENIED = "permission_denied"
    TIMEOUT = "timeout"
    UNAVAILABLE = "unavailable"


_LOCATION_MESSAGES: Dict[str, Dict[LocationErrorKind, str]] = {
    "en": {
        LocationErrorKind.PERMISSION_DENIED: (
            "Please allow location access to find nearby clinics. "
            "Check your browser settings and grant permission."
        ),
        LocationErrorKind.UNAVAILABLE: (
            "Unable to determine your location. Please check your GPS or network settings."
        ),
        LocationErrorKind.TIMEOUT: (
            "Location request timed out. Please check your internet connection and try again."
        ),
    },
    "ta": {
        LocationErrorKind.PERMISSION_DENIED: (
            "அருகிலுள்ள கிளினிக்குகளைக் கண்டறிய இருப்பிட அணுகலை அனுமதிக்கவும். "
            "உங்கள் உலாவி அமைப்புகளைச் சரிபார்த்து அனுமதி வழங்கவும்."
        ),
        LocationErrorKind.UNAVAILABLE: (
            "உங்கள் இருப்பிடத்தை தீர்மானிக்க முடியவில்லை. "
            "உங்கள் GPS அல்லது நெட்வொர்க் அமைப்புகளைச் சரிபார்க்கவும்."
        ),
        LocationErrorKind.TIMEOUT: (
            "இருப்பிட கோரிக்கை நேரம் முடிந்தது. "
            "உங்கள் இணைய இணைப்பைச் சரிபார்த்து மீண்டும் முயற்சிக்கவும்."
        ),
    },
}

_SEARCH_TIMEOUT_MESSAGES = {
    "en": "Finding nearby facilities took too long. Please try again.",
    "ta": "அருகிலுள்ள மருத்துவமனைகளைத் தேட அதிக நேரம் ஆனது. மீண்டும் முயற்சிக்கவும்.",
}


class DiscoveryError(Exception):
    """Base exception for all discovery engine errors."""

    def __init__(
        self,
        message: str,
        code: str = "DISCOVERY_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def localized_message(self, locale: str = "en") -> str:
        return self.message

    def to_dict(self, locale: str = "en") -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.localized_message(locale),
            "details": self.details,
        }


class SensorError(DiscoveryError):
    """Raised by location providers; acquisition maps it onto LocationError."""

    def __init__(self, kind: LocationErrorKind, message: str = "", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message or f"Location sensor failure: {kind.value}",
            code="SENSOR_ERROR",
            details={"kind": kind.value, **(details or {})},
        )
        self.kind = kind


class LocationError(DiscoveryError):
    """Location could not be acquired."""

    kind = LocationErrorKind.UNAVAILABLE

    def __init__(self, message: str = "", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message or _LOCATION_MESSAGES["en"][self.kind],
            code=f"LOCATION_{self.kind.value.upper()}",
            details={"kind": self.kind.value, **(details or {})},
        )

    @property
    def fatal(self) -> bool:
        return self.kind is not LocationErrorKind.TIMEOUT

    def localized_message(self, locale: str = "en") -> str:
        messages = _LOCATION_MESSAGES.get(locale) or _LOCATION_MESSAGES["en"]
        return messages[self.kind]

    @classmethod
    def from_kind(cls, kind: LocationErrorKind, details: Optional[Dict[str, Any]] = None) -> "LocationError":
        error_cls = {
            LocationErrorKind.PERMISSION_DENIED: LocationPermissionDeniedError,
            LocationErrorKind.TIMEOUT: LocationTimeoutError,
            LocationErrorKind.UNAVAILABLE: LocationUnavailableError,
        }[kind]
        return error_cls(details=details)


class LocationPermissionDeniedError(LocationError):
    kind = LocationErrorKind.PERMISSION_DENIED


class LocationTimeoutError(LocationError):
    kind = LocationErrorKind.TIMEOUT


class LocationUnavailableError(LocationError):
    kind = LocationErrorKind.UNAVAILABLE


class QueryError(DiscoveryError):
    """A geospatial backend request failed."""

    def __init__(
        self,
        message: str,
        endpoint: str = "unknown",
        code: str = "QUERY_ERROR",
        transient: bool = True,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, code=code, details={"endpoint": endpoint, **(details or {})})
        self.endpoint = endpoint
        self.transient = transient


class EndpointUnreachableError(QueryError):
    def __init__(self, message: str, endpoint: str = "unknown", transient: bool = True, details=None):
        super().__init__(message, endpoint=endpoint, code="ENDPOINT_UNREACHABLE", transient=transient, details=details)


class RateLimitedError(QueryError):
    def __init__(self, message: str, endpoint: str = "unknown", details=None):
        super().__init__(message, endpoint=endpoint, code="RATE_LIMITED", transient=True, details=details)


class AllEndpointsFailedError(QueryError):
    def __init__(self, message: str = "All geospatial endpoints failed", details=None):
        super().__init__(message, endpoint="all", code="ALL_ENDPOINTS_FAILED", transient=False, details=details)


class SearchTimeoutError(DiscoveryError):
    def __init__(self, timeout_ms: int):
        super().__init__(
            message=_SEARCH_TIMEOUT_MESSAGES["en"],
            code="SEARCH_TIMEOUT",
            details={"timeout_ms": timeout_ms},
        )

    def localized_message(self, locale: str = "en") -> str:
        return _SEARCH_TIMEOUT_MESSAGES.get(locale, _SEARCH_TIMEOUT_MESSAGES["en"])


class SearchSupersededError(DiscoveryError):
    def __init__(self, generation: int, current: int):
        super().__init__(
            message="A newer search replaced this one.",
            code="SEARCH_SUPERSEDED",
            details={"generation": generation, "current_generation": current},
        )


class RetryStateError(DiscoveryError):
    def __init__(self, message: str):
        super().__init__(message=message, code="RETRY_STATE_ERROR")
