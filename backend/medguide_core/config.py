from __future__ import annotations

import os
from dataclasses import dataclass, field


DEFAULT_ENDPOINTS = (
    "https://overpass-api.de/api/interpreter",
    "https://overpass.kumi.systems/api/interpreter",
    "https://overpass.private.coffee/api/interpreter",
)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(float(raw))
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_endpoints(name: str) -> tuple[str, ...]:
    raw = os.getenv(name, "")
    endpoints = tuple(part.strip().rstrip("/") for part in raw.split(",") if part.strip())
    return endpoints or DEFAULT_ENDPOINTS


@dataclass(frozen=True)
class DiscoveryConfig:
    default_radius_meters: float = 5000.0
    location_ttl_ms: int = 5 * 60 * 1000
    result_cache_ttl_ms: int = 2 * 60 * 1000
    result_cache_max_entries: int = 256
    endpoint_list: tuple[str, ...] = field(default=DEFAULT_ENDPOINTS)
    per_endpoint_retry_count: int = 2
    per_attempt_timeout_ms: int = 10_000
    global_search_timeout_ms: int = 45_000
    per_endpoint_budget_ms: int = 20_000
    backoff_base_ms: int = 500
    backoff_max_ms: int = 4_000
    sensor_attempt_timeout_ms: int = 15_000
    location_accuracy_target_m: float = 20.0
    location_max_attempts: int = 3
    location_max_wait_ms: int = 30_000
    debounce_ms: int = 400
    default_locale: str = "en"
    user_agent: str = "medguide-discovery/1.0"
    disable_external: bool = False

    def __post_init__(self) -> None:
        if not self.endpoint_list:
            raise ValueError("endpoint_list must contain at least one endpoint")
        if self.per_endpoint_retry_count < 0:
            raise ValueError("per_endpoint_retry_count cannot be negative")

    @classmethod
    def from_env(cls) -> DiscoveryConfig:
        return cls(
            default_radius_meters=_env_float("MEDGUIDE_DEFAULT_RADIUS_METERS", 5000.0),
            location_ttl_ms=_env_int("MEDGUIDE_LOCATION_TTL_MS", 5 * 60 * 1000),
            result_cache_ttl_ms=_env_int("MEDGUIDE_RESULT_CACHE_TTL_MS", 2 * 60 * 1000),
            result_cache_max_entries=_env_int("MEDGUIDE_RESULT_CACHE_MAX_ENTRIES", 256),
            endpoint_list=_env_endpoints("MEDGUIDE_OVERPASS_ENDPOINTS"),
            per_endpoint_retry_count=_env_int("MEDGUIDE_PER_ENDPOINT_RETRY_COUNT", 2),
            per_attempt_timeout_ms=_env_int("MEDGUIDE_PER_ATTEMPT_TIMEOUT_MS", 10_000),
            global_search_timeout_ms=_env_int("MEDGUIDE_GLOBAL_SEARCH_TIMEOUT_MS", 45_000),
            per_endpoint_budget_ms=_env_int("MEDGUIDE_PER_ENDPOINT_BUDGET_MS", 20_000),
            backoff_base_ms=_env_int("MEDGUIDE_BACKOFF_BASE_MS", 500),
            backoff_max_ms=_env_int("MEDGUIDE_BACKOFF_MAX_MS", 4_000),
            sensor_attempt_timeout_ms=_env_int("MEDGUIDE_SENSOR_ATTEMPT_TIMEOUT_MS", 15_000),
            location_accuracy_target_m=_env_float("MEDGUIDE_LOCATION_ACCURACY_TARGET_M", 20.0),
            location_max_attempts=_env_int("MEDGUIDE_LOCATION_MAX_ATTEMPTS", 3),
            location_max_wait_ms=_env_int("MEDGUIDE_LOCATION_MAX_WAIT_MS", 30_000),
            debounce_ms=_env_int("MEDGUIDE_DEBOUNCE_MS", 400),
            default_locale=(os.getenv("MEDGUIDE_DEFAULT_LOCALE") or "en").strip().lower(),
            user_agent=(os.getenv("MEDGUIDE_USER_AGENT") or "medguide-discovery/1.0").strip(),
            disable_external=os.getenv("MEDGUIDE_DISABLE_EXTERNAL_QUERIES", "false").lower() == "true",
        )
