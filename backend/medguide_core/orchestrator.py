from __future__ import annotations

import asyncio
from typing import Any

import httpx

from medguide_cache.position_cache import PositionCache
from medguide_cache.result_cache import ResultCache, make_result_key
from medguide_facilities import ranking
from medguide_facilities.fallback import fallback_outcome
from medguide_facilities.overpass import FacilityQueryEngine
from medguide_location.acquisition import LocationAcquisition
from medguide_location.providers import LocationProvider
from medguide_triage.catalog import build_default_registry
from medguide_triage.classifier import SymptomClassifier

from .config import DiscoveryConfig
from .errors import SearchSupersededError, SearchTimeoutError
from .logging_utils import get_logger
from .models import (
    ClassificationResult,
    GeoPosition,
    LocationTarget,
    QueryOutcome,
    SearchFilters,
    SearchResult,
    SortBy,
    UrgencyLevel,
)
from .registry import SpecializationRegistry

logger = get_logger(__name__)

EMERGENCY_RESULT_LIMIT = 5


def _query_scope(filters: SearchFilters) -> SearchFilters | None:
    """Filters that change the live query itself; everything else narrows after the cache."""
    if filters.emergency_only or filters.specialization_id == "emergency":
        return SearchFilters(emergency_only=True)
    return None


class DiscoveryOrchestrator:
    def __init__(
        self,
        *,
        config: DiscoveryConfig,
        acquisition: LocationAcquisition,
        query_engine: FacilityQueryEngine,
        classifier: SymptomClassifier,
        result_cache: ResultCache[QueryOutcome],
        registry: SpecializationRegistry | None = None,
    ) -> None:
        self.config = config
        self.acquisition = acquisition
        self.query_engine = query_engine
        self.classifier = classifier
        self.result_cache = result_cache
        self.registry = registry or classifier.registry
        self._generation = 0
        self._latest_task: asyncio.Task[SearchResult] | None = None
        self._debounce_handle: asyncio.TimerHandle | None = None
        self._debounce_future: asyncio.Future[SearchResult] | None = None
        self._debounce_filters: SearchFilters | None = None
        self._debounce_task: asyncio.Task[None] | None = None

    @classmethod
    def from_config(
        cls,
        config: DiscoveryConfig,
        provider: LocationProvider,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> DiscoveryOrchestrator:
        registry = build_default_registry()
        position_cache = PositionCache(ttl_ms=config.location_ttl_ms)
        return cls(
            config=config,
            acquisition=LocationAcquisition(
                provider,
                position_cache,
                sensor_attempt_timeout_ms=config.sensor_attempt_timeout_ms,
            ),
            query_engine=FacilityQueryEngine(config, registry, client=client, transport=transport),
            classifier=SymptomClassifier(registry, default_locale=config.default_locale),
            result_cache=ResultCache(
                ttl_ms=config.result_cache_ttl_ms,
                max_entries=config.result_cache_max_entries,
            ),
            registry=registry,
        )

    @property
    def generation(self) -> int:
        return self._generation

    def _location_target(self, force_refresh: bool = False) -> LocationTarget:
        return LocationTarget(
            accuracy_meters=self.config.location_accuracy_target_m,
            max_attempts=self.config.location_max_attempts,
            max_wait_ms=self.config.location_max_wait_ms,
            force_refresh=force_refresh,
        )

    def default_filters(self) -> SearchFilters:
        return SearchFilters(max_distance_meters=self.config.default_radius_meters)

    async def find_nearby_facilities(
        self,
        filters: SearchFilters | None = None,
        *,
        radius_meters: float | None = None,
        force_refresh: bool = False,
    ) -> SearchResult:
        filters = filters or self.default_filters()
        timeout_ms = self.config.global_search_timeout_ms
        try:
            return await asyncio.wait_for(
                self._search(filters, radius_meters, force_refresh),
                timeout=timeout_ms / 1000.0,
            )
        except asyncio.TimeoutError:
            origin = self.acquisition.cache.latest
            if origin is None:
                logger.error("Search exceeded %d ms with no known position", timeout_ms)
                raise SearchTimeoutError(timeout_ms) from None
            logger.warning("Search exceeded %d ms; serving fallback facilities", timeout_ms)
            outcome = fallback_outcome(origin, reason="search_timeout")
            return self._assemble(outcome, origin, filters)

    async def _search(
        self,
        filters: SearchFilters,
        radius_meters: float | None,
        force_refresh: bool,
    ) -> SearchResult:
        origin = await self.acquisition.acquire(self._location_target(force_refresh))
        radius = radius_meters or filters.max_distance_meters or self.config.default_radius_meters
        scope = _query_scope(filters)
        key = make_result_key(origin, radius, scope)
        if force_refresh:
            self.result_cache.invalidate(key)

        outcome = await self.result_cache.get_or_compute(
            key,
            lambda: self.query_engine.query(origin, radius, scope),
            should_store=lambda computed: not computed.degraded,
        )
        return self._assemble(outcome, origin, filters)

    def _assemble(self, outcome: QueryOutcome, origin: GeoPosition, filters: SearchFilters) -> SearchResult:
        located = ranking.with_distances_from(outcome.facilities, origin)
        ranked = ranking.apply(located, filters)
        logger.info(
            "Search returned %d of %d facilities%s",
            len(ranked),
            len(located),
            " (degraded)" if outcome.degraded else "",
        )
        return SearchResult(
            facilities=ranked,
            degraded=outcome.degraded,
            origin=origin,
            endpoint=outcome.endpoint,
            fallback_reason=outcome.fallback_reason,
            skipped=list(outcome.skipped),
        )

    def classify_symptoms(self, text: str, locale: str | None = None) -> ClassificationResult:
        return self.classifier.classify(text, locale or self.config.default_locale)

    async def classify_and_search(
        self,
        text: str,
        locale: str | None = None,
        filters: SearchFilters | None = None,
    ) -> SearchResult:
        classification = self.classify_symptoms(text, locale)
        base = filters or self.default_filters()
        emergency = classification.urgency_level is UrgencyLevel.EMERGENCY

        overrides: dict[str, Any] = {}
        if classification.specializations:
            overrides["specialization_id"] = classification.specializations[0]
        if emergency:
            overrides["emergency_only"] = True

        result = await self.find_nearby_facilities(base.with_overrides(**overrides))
        if not result.facilities and "specialization_id" in overrides:
            logger.info(
                "No facilities for specialization %s; widening search",
                overrides["specialization_id"],
            )
            result = await self.find_nearby_facilities(
                base.with_overrides(specialization_id=None, emergency_only=emergency or base.emergency_only)
            )

        result.urgency_level = classification.urgency_level
        result.specializations = [
            spec
            for spec in (self.registry.get(spec_id) for spec_id in classification.specializations)
            if spec is not None
        ]
        result.recommendations = list(classification.recommendations)
        return result

    async def emergency_facilities(self) -> SearchResult:
        return await self.find_nearby_facilities(
            SearchFilters(
                max_distance_meters=self.config.default_radius_meters,
                emergency_only=True,
                sort_by=SortBy.DISTANCE,
                limit=EMERGENCY_RESULT_LIMIT,
            )
        )

    async def refresh_location(self) -> GeoPosition:
        position = await self.acquisition.acquire(self._location_target(force_refresh=True))
        self.result_cache.invalidate()
        return position

    async def search_latest(self, filters: SearchFilters | None = None) -> SearchResult:
        self._generation += 1
        generation = self._generation
        previous = self._latest_task
        if previous is not None and not previous.done():
            logger.debug("Cancelling superseded search")
            previous.cancel()

        task = asyncio.ensure_future(self.find_nearby_facilities(filters))
        self._latest_task = task
        try:
            result = await task
        except asyncio.CancelledError:
            if generation != self._generation:
                raise SearchSupersededError(generation, self._generation) from None
            raise
        if generation != self._generation:
            raise SearchSupersededError(generation, self._generation)
        return result

    async def schedule_search(
        self,
        filters: SearchFilters | None = None,
        *,
        delay_ms: int | None = None,
    ) -> SearchResult:
        loop = asyncio.get_running_loop()
        delay = self.config.debounce_ms if delay_ms is None else delay_ms
        self._debounce_filters = filters
        if self._debounce_future is None or self._debounce_future.done():
            self._debounce_future = loop.create_future()
        future = self._debounce_future
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
        self._debounce_handle = loop.call_later(delay / 1000.0, self._fire_debounced)
        return await asyncio.shield(future)

    def _fire_debounced(self) -> None:
        future, self._debounce_future = self._debounce_future, None
        filters, self._debounce_filters = self._debounce_filters, None
        self._debounce_handle = None
        if future is None:
            return
        self._debounce_task = asyncio.ensure_future(self._run_debounced(future, filters))

    async def _run_debounced(self, future: asyncio.Future[SearchResult], filters: SearchFilters | None) -> None:
        try:
            result = await self.search_latest(filters)
        except asyncio.CancelledError:
            if not future.done():
                future.cancel()
            raise
        except Exception as exc:
            if not future.done():
                future.set_exception(exc)
            return
        if not future.done():
            future.set_result(result)

    def status(self) -> dict[str, Any]:
        return {
            "location": self.acquisition.status(),
            "result_cache": self.result_cache.status(),
            "generation": self._generation,
        }
