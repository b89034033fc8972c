from __future__ import annotations

import asyncio
import random
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable

import httpx

from medguide_cache.time_utils import Clock, monotonic_ms
from medguide_core.config import DiscoveryConfig
from medguide_core.errors import (
    AllEndpointsFailedError,
    EndpointUnreachableError,
    QueryError,
    RateLimitedError,
)
from medguide_core.logging_utils import get_logger
from medguide_core.models import GeoPosition, QueryOutcome, SearchFilters
from medguide_core.registry import SpecializationRegistry

from .fallback import fallback_outcome
from .geo import bounding_box
from .normalize import normalize_elements
from .retry import EndpointCursor, RetryPolicy, Sleep

logger = get_logger(__name__)

QUERY_TIMEOUT_SECONDS = 25
_FACILITY_AMENITIES = "hospital|clinic|doctors|pharmacy"
_OVERLOAD_MARKERS = ("runtime error", "too busy", "timeout", "timed out")


def _wants_emergency(filters: SearchFilters | None) -> bool:
    if filters is None:
        return False
    return filters.emergency_only or filters.specialization_id == "emergency"


def build_overpass_query(
    origin: GeoPosition,
    radius_meters: float,
    filters: SearchFilters | None = None,
    *,
    timeout_seconds: int = QUERY_TIMEOUT_SECONDS,
) -> str:
    bbox = bounding_box(origin.latitude, origin.longitude, radius_meters).as_overpass()
    if _wants_emergency(filters):
        selectors = [
            '["amenity"="hospital"]',
            '["emergency"~"^(yes|hospital)$"]',
        ]
    else:
        selectors = [f'["amenity"~"^({_FACILITY_AMENITIES})$"]']

    lines = [f"[out:json][timeout:{timeout_seconds}];", "("]
    for selector in selectors:
        for element_type in ("node", "way", "relation"):
            lines.append(f"  {element_type}{selector}({bbox});")
    lines.append(");")
    lines.append("out center meta;")
    return "\n".join(lines)


class FacilityQueryEngine:
    def __init__(
        self,
        config: DiscoveryConfig,
        registry: SpecializationRegistry,
        *,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Clock = monotonic_ms,
        sleep: Sleep = asyncio.sleep,
        rand: Callable[[], float] = random.random,
    ) -> None:
        self.config = config
        self.registry = registry
        self._client = client
        self._transport = transport
        self._clock = clock
        self._sleep = sleep
        self._rand = rand
        self.policy = RetryPolicy(
            retries_per_endpoint=config.per_endpoint_retry_count,
            backoff_base_ms=config.backoff_base_ms,
            backoff_max_ms=config.backoff_max_ms,
            endpoint_budget_ms=config.per_endpoint_budget_ms,
        )

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(
            transport=self._transport,
            headers={"User-Agent": self.config.user_agent},
        ) as client:
            yield client

    async def query(
        self,
        origin: GeoPosition,
        radius_meters: float,
        filters: SearchFilters | None = None,
    ) -> QueryOutcome:
        if self.config.disable_external:
            return fallback_outcome(origin, reason="external_queries_disabled")

        ql = build_overpass_query(origin, radius_meters, filters)
        cursor = EndpointCursor(
            self.config.endpoint_list,
            self.policy,
            clock=self._clock,
            sleep=self._sleep,
            rand=self._rand,
        )
        last_error: QueryError | None = None

        async with self._session() as client:
            while not cursor.done:
                endpoint = cursor.begin_attempt()
                timeout_ms = min(self.config.per_attempt_timeout_ms, cursor.remaining_budget_ms())
                try:
                    payload = await self._fetch(client, endpoint, ql, timeout_ms)
                except QueryError as exc:
                    last_error = exc
                    logger.warning(
                        "Overpass attempt %d failed on %s: %s (%s)",
                        cursor.total_attempts,
                        endpoint,
                        exc.code,
                        "transient" if exc.transient else "permanent",
                        extra={"endpoint": endpoint, "attempt": cursor.total_attempts, "error_code": exc.code},
                    )
                    await cursor.record_failure(transient=exc.transient)
                    continue

                cursor.record_success()
                facilities, skipped = normalize_elements(payload["elements"], origin, self.registry)
                logger.info(
                    "Overpass returned %d facilities (%d skipped) from %s after %d attempt(s)",
                    len(facilities),
                    len(skipped),
                    endpoint,
                    cursor.total_attempts,
                    extra={"endpoint": endpoint, "attempt": cursor.total_attempts},
                )
                return QueryOutcome(
                    facilities=facilities,
                    degraded=False,
                    endpoint=endpoint,
                    skipped=skipped,
                    attempts=cursor.total_attempts,
                )

        failure = AllEndpointsFailedError(
            details={
                "attempts": cursor.total_attempts,
                "last_error": last_error.code if last_error else None,
            }
        )
        logger.error("%s; serving fallback facilities (%s)", failure.message, failure.details)
        return fallback_outcome(origin, reason="all_endpoints_failed", attempts=cursor.total_attempts)

    async def _fetch(
        self,
        client: httpx.AsyncClient,
        endpoint: str,
        ql: str,
        timeout_ms: float,
    ) -> dict[str, Any]:
        timeout_s = max(timeout_ms, 1.0) / 1000.0
        try:
            response = await asyncio.wait_for(
                client.post(
                    endpoint,
                    data={"data": ql},
                    headers={"User-Agent": self.config.user_agent},
                    timeout=timeout_s,
                ),
                timeout=timeout_s,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            raise EndpointUnreachableError(
                "Request timed out", endpoint=endpoint, details={"timeout_ms": round(timeout_ms)}
            ) from exc
        except httpx.TransportError as exc:
            raise EndpointUnreachableError(f"Connection failed: {exc}", endpoint=endpoint) from exc

        status = response.status_code
        if status == 429:
            raise RateLimitedError("Rate limited", endpoint=endpoint, details={"status": status})
        if status >= 500:
            raise EndpointUnreachableError(f"HTTP {status}", endpoint=endpoint, details={"status": status})
        if status >= 400:
            raise QueryError(
                f"HTTP {status}", endpoint=endpoint, code="HTTP_ERROR", transient=False, details={"status": status}
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise QueryError(
                "Unparseable response body", endpoint=endpoint, code="INVALID_RESPONSE", transient=False
            ) from exc
        if not isinstance(payload, dict) or not isinstance(payload.get("elements", []), list):
            raise QueryError("Unexpected response shape", endpoint=endpoint, code="INVALID_RESPONSE", transient=False)

        remark = str(payload.get("remark") or "").lower()
        if any(marker in remark for marker in _OVERLOAD_MARKERS):
            raise EndpointUnreachableError(
                "Backend reported overload", endpoint=endpoint, details={"remark": payload.get("remark")}
            )

        payload.setdefault("elements", [])
        return payload
