from __future__ import annotations

import threading
from dataclasses import dataclass

from medguide_core.models import GeoPosition

from .singleflight import SingleFlight
from .time_utils import Clock, monotonic_ms


@dataclass(frozen=True)
class CachedPosition:
    position: GeoPosition
    stored_at_ms: float


class PositionCache:
    def __init__(self, *, ttl_ms: int, clock: Clock = monotonic_ms) -> None:
        self.ttl_ms = ttl_ms
        self._clock = clock
        self._lock = threading.Lock()
        self._entry: CachedPosition | None = None
        self.flight: SingleFlight[GeoPosition] = SingleFlight()

    @property
    def latest(self) -> GeoPosition | None:
        entry = self._entry
        return entry.position if entry else None

    def age_ms(self) -> float | None:
        entry = self._entry
        if entry is None:
            return None
        return self._clock() - entry.stored_at_ms

    def get_fresh(self, ttl_ms: int | None = None) -> GeoPosition | None:
        entry = self._entry
        if entry is None:
            return None
        limit = self.ttl_ms if ttl_ms is None else ttl_ms
        if self._clock() - entry.stored_at_ms > limit:
            return None
        return entry.position

    def put(self, position: GeoPosition) -> bool:
        with self._lock:
            current = self._entry
            if current is not None and position.timestamp < current.position.timestamp:
                return False
            self._entry = CachedPosition(position=position, stored_at_ms=self._clock())
            return True

    def invalidate(self) -> None:
        with self._lock:
            self._entry = None

    @property
    def acquiring(self) -> bool:
        return self.flight.in_flight("acquire")
