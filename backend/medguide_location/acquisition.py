from __future__ import annotations

import asyncio
from typing import Any

from medguide_cache.position_cache import PositionCache
from medguide_cache.time_utils import Clock, monotonic_ms
from medguide_core.errors import LocationError, LocationErrorKind, LocationTimeoutError, SensorError
from medguide_core.logging_utils import get_logger
from medguide_core.models import GeoPosition, LocationTarget

from .providers import LocationProvider
from .watch import LocationWatch, Subscription

logger = get_logger(__name__)

_FLIGHT_KEY = "acquire"


class LocationAcquisition:
    def __init__(
        self,
        provider: LocationProvider,
        cache: PositionCache,
        *,
        sensor_attempt_timeout_ms: int = 15_000,
        clock: Clock = monotonic_ms,
    ) -> None:
        self.provider = provider
        self.cache = cache
        self.sensor_attempt_timeout_ms = sensor_attempt_timeout_ms
        self._clock = clock
        self._watch = LocationWatch(provider, cache)

    async def acquire(self, target: LocationTarget | None = None) -> GeoPosition:
        target = target or LocationTarget()
        if not target.force_refresh:
            cached = self.cache.get_fresh()
            if cached is not None:
                logger.debug("Serving cached position (age %.0f ms)", self.cache.age_ms() or 0.0)
                return cached.as_cached()
        return await self.cache.flight.do(_FLIGHT_KEY, lambda: self._acquire_fresh(target))

    async def _acquire_fresh(self, target: LocationTarget) -> GeoPosition:
        deadline = self._clock() + target.max_wait_ms
        best: GeoPosition | None = None
        attempts = 0
        high_accuracy = False

        while attempts < max(1, target.max_attempts):
            remaining = deadline - self._clock()
            if remaining <= 0:
                logger.info("Location wait budget of %d ms exhausted", target.max_wait_ms)
                break
            attempts += 1
            timeout_ms = min(self.sensor_attempt_timeout_ms, remaining)
            try:
                fix = await asyncio.wait_for(
                    self.provider.get_fix(high_accuracy=high_accuracy, timeout_ms=int(timeout_ms)),
                    timeout=timeout_ms / 1000.0,
                )
            except SensorError as exc:
                if exc.kind is not LocationErrorKind.TIMEOUT:
                    logger.warning("Location sensor failed fatally: %s", exc.kind.value)
                    raise LocationError.from_kind(exc.kind, details=exc.details) from exc
                logger.info("Location attempt %d timed out", attempts)
                high_accuracy = True
                continue
            except asyncio.TimeoutError:
                logger.info("Location attempt %d exceeded %.0f ms", attempts, timeout_ms)
                high_accuracy = True
                continue

            if best is None or fix.accuracy_meters < best.accuracy_meters:
                best = fix
            if best.accuracy_meters <= target.accuracy_meters:
                break
            logger.debug(
                "Fix accuracy %.1f m above target %.1f m; escalating",
                fix.accuracy_meters,
                target.accuracy_meters,
            )
            high_accuracy = True

        if best is None:
            raise LocationTimeoutError(details={"attempts": attempts, "max_wait_ms": target.max_wait_ms})

        self.cache.put(best)
        logger.info(
            "Acquired position with %.1f m accuracy after %d attempt(s) (%s)",
            best.accuracy_meters,
            attempts,
            best.describe_accuracy(),
        )
        return best

    def watch(self, callback) -> Subscription:
        return self._watch.subscribe(callback)

    @property
    def watching(self) -> bool:
        return self._watch.active

    def status(self) -> dict[str, Any]:
        latest = self.cache.latest
        return {
            "has_location": latest is not None,
            "is_watching": self._watch.active,
            "watchers": self._watch.subscriber_count,
            "acquiring": self.cache.acquiring,
            "last_update": latest.timestamp if latest else None,
        }
