from __future__ import annotations

import os
import re
import time
from pathlib import Path
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator

from medguide_core.config import DiscoveryConfig
from medguide_core.errors import (
    DiscoveryError,
    LocationPermissionDeniedError,
    LocationTimeoutError,
    LocationUnavailableError,
    QueryError,
    SearchSupersededError,
    SearchTimeoutError,
)
from medguide_core.logging_utils import get_logger, setup_logging
from medguide_core.models import GeoPosition, LocationSource, LocationTarget, SearchFilters, SortBy
from medguide_core.orchestrator import DiscoveryOrchestrator
from medguide_location.providers import LocationProvider, ReportedLocationProvider, StaticLocationProvider

_ENV_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _load_local_env_file(path: Path) -> None:
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError:
        return
    for raw in lines:
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        if not _ENV_KEY_RE.fullmatch(key):
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
            value = value[1:-1]
        os.environ.setdefault(key, value)


def _bootstrap_local_env() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    candidates = [
        repo_root / ".env",
        repo_root / "backend/.env",
    ]
    for candidate in candidates:
        if candidate.exists():
            _load_local_env_file(candidate)


_bootstrap_local_env()
setup_logging(os.getenv("MEDGUIDE_LOG_LEVEL", "INFO"), os.getenv("MEDGUIDE_LOG_FILE") or None)

logger = get_logger("medguide.api")

# Epoch seconds will not reach 1e11 until the year 5138.
_EPOCH_MS_THRESHOLD = 1e11


class LocationReport(BaseModel):
    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)
    accuracy_meters: float = Field(gt=0)
    source: LocationSource = LocationSource.NETWORK
    timestamp: float | None = None
    altitude: float | None = None
    speed: float | None = None
    heading: float | None = None

    @field_validator("timestamp")
    @classmethod
    def timestamp_in_seconds(cls, value: float | None) -> float | None:
        # Browsers report epoch milliseconds; stored positions use seconds.
        if value is not None and value > _EPOCH_MS_THRESHOLD:
            return value / 1000.0
        return value


class FiltersPayload(BaseModel):
    max_distance_meters: float = Field(default=5000.0, gt=0)
    min_rating: float = Field(default=0.0, ge=0.0, le=5.0)
    specialization_id: str | None = None
    emergency_only: bool = False
    sort_by: SortBy = SortBy.DISTANCE
    limit: int = Field(default=20, ge=1, le=100)
    language: str | None = Field(default=None, max_length=40)
    open_now: bool = False


class NearbyRequest(FiltersPayload):
    radius_meters: float | None = Field(default=None, gt=0)
    force_refresh: bool = False
    locale: str | None = None


class SymptomRequest(BaseModel):
    text: str = Field(min_length=1, max_length=2000)
    locale: str | None = None


class SymptomSearchRequest(SymptomRequest):
    filters: FiltersPayload | None = None
    open_now: bool = False


def _static_provider_from_env() -> StaticLocationProvider | None:
    latitude = os.getenv("MEDGUIDE_STATIC_LATITUDE")
    longitude = os.getenv("MEDGUIDE_STATIC_LONGITUDE")
    if not latitude or not longitude:
        return None
    return StaticLocationProvider(
        latitude=float(latitude),
        longitude=float(longitude),
        accuracy_meters=float(os.getenv("MEDGUIDE_STATIC_ACCURACY_M", "50")),
    )


class MedGuideApp:
    def __init__(self) -> None:
        self.config = DiscoveryConfig.from_env()
        self.reported = ReportedLocationProvider()
        provider: LocationProvider = _static_provider_from_env() or self.reported
        self.provider = provider
        self.orchestrator = DiscoveryOrchestrator.from_config(self.config, provider)

    def resolve_filters(self, payload: FiltersPayload | None) -> SearchFilters:
        if payload is None:
            return self.orchestrator.default_filters()
        specialization_id = None
        if payload.specialization_id:
            specialization_id = self.orchestrator.registry.canonical_id(payload.specialization_id)
            if specialization_id is None:
                raise HTTPException(status_code=400, detail=f"Unknown specialization: {payload.specialization_id}")
        return SearchFilters(
            max_distance_meters=payload.max_distance_meters,
            min_rating=payload.min_rating,
            specialization_id=specialization_id,
            emergency_only=payload.emergency_only,
            sort_by=payload.sort_by,
            limit=payload.limit,
            language=payload.language or None,
            open_now=payload.open_now,
        )

    def locale(self, requested: str | None) -> str:
        return (requested or self.config.default_locale).strip().lower()


container = MedGuideApp()
app = FastAPI(title="MedGuide Discovery Backend")

allowed_origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in allowed_origins],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_STATUS_BY_ERROR: list[tuple[type[DiscoveryError], int]] = [
    (LocationPermissionDeniedError, 403),
    (LocationUnavailableError, 503),
    (LocationTimeoutError, 504),
    (SearchTimeoutError, 504),
    (SearchSupersededError, 409),
    (QueryError, 502),
]


def _status_for(exc: DiscoveryError) -> int:
    for error_cls, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_cls):
            return status_code
    return 500


@app.exception_handler(DiscoveryError)
async def discovery_error_handler(request: Request, exc: DiscoveryError) -> JSONResponse:
    locale = container.locale(request.query_params.get("locale"))
    status_code = _status_for(exc)
    logger.warning("%s %s failed with %s (%d)", request.method, request.url.path, exc.code, status_code)
    return JSONResponse(status_code=status_code, content=exc.to_dict(locale))


@app.get("/health")
def health():
    return {"status": "ok", **container.orchestrator.status()}


@app.post("/location")
async def report_location(payload: LocationReport):
    fix = GeoPosition(
        latitude=payload.latitude,
        longitude=payload.longitude,
        accuracy_meters=payload.accuracy_meters,
        source=payload.source,
        timestamp=payload.timestamp if payload.timestamp is not None else time.time(),
        altitude=payload.altitude,
        speed=payload.speed,
        heading=payload.heading,
    )
    container.reported.report(fix)
    if container.provider is not container.reported:
        return {"accepted": False, "reason": "static_provider_configured"}
    position = await container.orchestrator.acquisition.acquire(
        LocationTarget(accuracy_meters=fix.accuracy_meters, max_attempts=1, force_refresh=True)
    )
    return {"accepted": True, "position": position.as_dict()}


@app.post("/location/denied")
def report_location_denied():
    container.reported.deny()
    container.orchestrator.acquisition.cache.invalidate()
    container.orchestrator.result_cache.invalidate()
    return {"ok": True}


@app.post("/location/refresh")
async def refresh_location():
    position = await container.orchestrator.refresh_location()
    return position.as_dict()


@app.post("/facilities/nearby")
async def facilities_nearby(payload: NearbyRequest):
    filters = container.resolve_filters(payload)
    result = await container.orchestrator.find_nearby_facilities(
        filters,
        radius_meters=payload.radius_meters,
        force_refresh=payload.force_refresh,
    )
    return result.as_envelope(container.locale(payload.locale))


@app.post("/facilities/emergency")
async def facilities_emergency(locale: str | None = None):
    result = await container.orchestrator.emergency_facilities()
    return result.as_envelope(container.locale(locale))


@app.post("/symptoms/classify")
def symptoms_classify(payload: SymptomRequest):
    classification = container.orchestrator.classify_symptoms(payload.text, container.locale(payload.locale))
    return classification.as_dict()


@app.post("/symptoms/search")
async def symptoms_search(payload: SymptomSearchRequest):
    locale = container.locale(payload.locale)
    filters = container.resolve_filters(payload.filters)
    if payload.open_now:
        filters = filters.with_overrides(open_now=True)
    result = await container.orchestrator.classify_and_search(payload.text, locale, filters)
    return result.as_envelope(locale)


@app.get("/specializations")
def list_specializations(locale: str | None = None):
    resolved = container.locale(locale)
    return {"specializations": [spec.as_dict(resolved) for spec in container.orchestrator.registry.all()]}


@app.delete("/cache")
def clear_cache() -> dict[str, Any]:
    removed = container.orchestrator.result_cache.invalidate()
    return {"ok": True, "removed": removed}
