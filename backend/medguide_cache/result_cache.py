from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, TypeVar

from medguide_core.logging_utils import get_logger
from medguide_core.models import GeoPosition, SearchFilters

from .singleflight import SingleFlight
from .time_utils import Clock, monotonic_ms

T = TypeVar("T")

logger = get_logger(__name__)

COORDINATE_PRECISION = 4


def make_result_key(origin: GeoPosition, radius_meters: float, filters: SearchFilters | None = None) -> str:
    lat = f"{origin.latitude:.{COORDINATE_PRECISION}f}"
    lon = f"{origin.longitude:.{COORDINATE_PRECISION}f}"
    fingerprint = filters.fingerprint() if filters is not None else "all"
    return f"{lat}_{lon}_{int(round(radius_meters))}_{fingerprint}"


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    value: T
    stored_at_ms: float


class ResultCache(Generic[T]):
    """TTL cache of query outcomes.

    Expired entries are swept on every write; once ``max_entries`` is reached the
    oldest entry is dropped.
    """

    def __init__(self, *, ttl_ms: int, max_entries: int = 256, clock: Clock = monotonic_ms) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.ttl_ms = ttl_ms
        self.max_entries = max_entries
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, CacheEntry[T]] = {}
        self._flight: SingleFlight[T] = SingleFlight()

    def get(self, key: str) -> T | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.stored_at_ms > self.ttl_ms:
            with self._lock:
                if self._entries.get(key) is entry:
                    del self._entries[key]
            return None
        return entry.value

    def put(self, key: str, value: T) -> None:
        now = self._clock()
        with self._lock:
            self._evict_expired_locked(now)
            # Re-insert so dict order stays oldest-first.
            self._entries.pop(key, None)
            while len(self._entries) >= self.max_entries:
                oldest = next(iter(self._entries))
                del self._entries[oldest]
                logger.debug("Result cache full; dropped key=%s", oldest)
            self._entries[key] = CacheEntry(value=value, stored_at_ms=now)

    def _evict_expired_locked(self, now: float) -> int:
        expired = [key for key, entry in self._entries.items() if now - entry.stored_at_ms > self.ttl_ms]
        for key in expired:
            del self._entries[key]
        return len(expired)

    async def get_or_compute(
        self,
        key: str,
        compute: Callable[[], Awaitable[T]],
        *,
        should_store: Callable[[T], bool] | None = None,
    ) -> T:
        cached = self.get(key)
        if cached is not None:
            logger.debug("Result cache hit key=%s", key)
            return cached

        async def _compute_and_store() -> T:
            value = await compute()
            if should_store is None or should_store(value):
                self.put(key, value)
            return value

        return await self._flight.do(key, _compute_and_store)

    def invalidate(self, key: str | None = None) -> int:
        with self._lock:
            if key is None:
                removed = len(self._entries)
                self._entries = {}
            else:
                removed = 1 if self._entries.pop(key, None) is not None else 0
        logger.info("Invalidated %d result cache entr%s", removed, "y" if removed == 1 else "ies")
        return removed

    def status(self) -> dict[str, Any]:
        with self._lock:
            self._evict_expired_locked(self._clock())
            entries = dict(self._entries)
        return {"size": len(entries), "keys": sorted(entries.keys()), "in_flight": self._flight.pending}
