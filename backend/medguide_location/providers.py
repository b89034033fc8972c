from __future__ import annotations

import asyncio
import time
from typing import Callable, Protocol

from medguide_core.errors import LocationErrorKind, SensorError
from medguide_core.logging_utils import get_logger
from medguide_core.models import GeoPosition, LocationSource

logger = get_logger(__name__)

FixCallback = Callable[[GeoPosition], None]
Unsubscribe = Callable[[], None]


class LocationProvider(Protocol):
    async def get_fix(self, high_accuracy: bool, timeout_ms: int) -> GeoPosition:
        ...

    def watch(self, callback: FixCallback) -> Unsubscribe:
        ...


class _WatcherSet:
    def __init__(self) -> None:
        self._callbacks: dict[int, FixCallback] = {}
        self._next_id = 0

    def add(self, callback: FixCallback) -> Unsubscribe:
        self._next_id += 1
        watcher_id = self._next_id
        self._callbacks[watcher_id] = callback

        def _remove() -> None:
            self._callbacks.pop(watcher_id, None)

        return _remove

    def __len__(self) -> int:
        return len(self._callbacks)

    def emit(self, position: GeoPosition) -> None:
        for callback in list(self._callbacks.values()):
            try:
                callback(position)
            except Exception:
                logger.exception("Location watcher callback failed")


class StaticLocationProvider:
    """Serves a fixed position; optionally fails every call with a sensor error."""

    def __init__(
        self,
        *,
        latitude: float,
        longitude: float,
        accuracy_meters: float = 50.0,
        high_accuracy_meters: float = 10.0,
        error_kind: LocationErrorKind | None = None,
    ) -> None:
        self.latitude = latitude
        self.longitude = longitude
        self.accuracy_meters = accuracy_meters
        self.high_accuracy_meters = high_accuracy_meters
        self.error_kind = error_kind
        self.calls = 0
        self._watchers = _WatcherSet()

    def _position(self, high_accuracy: bool) -> GeoPosition:
        return GeoPosition(
            latitude=self.latitude,
            longitude=self.longitude,
            accuracy_meters=self.high_accuracy_meters if high_accuracy else self.accuracy_meters,
            source=LocationSource.GPS if high_accuracy else LocationSource.NETWORK,
            timestamp=time.time(),
        )

    async def get_fix(self, high_accuracy: bool, timeout_ms: int) -> GeoPosition:
        self.calls += 1
        await asyncio.sleep(0)
        if self.error_kind is not None:
            raise SensorError(self.error_kind)
        return self._position(high_accuracy)

    def watch(self, callback: FixCallback) -> Unsubscribe:
        unsubscribe = self._watchers.add(callback)
        if self.error_kind is None:
            callback(self._position(True))
        return unsubscribe

    def move_to(self, latitude: float, longitude: float) -> None:
        self.latitude = latitude
        self.longitude = longitude
        self._watchers.emit(self._position(True))


class ReportedLocationProvider:
    """Location provider fed by fixes the client device pushes to the service.

    ``get_fix`` hands out the freshest reported fix that has not been handed
    out yet; without one it waits for the next report until the timeout.
    Low-power requests also accept an already-seen fix while it is fresh.
    """

    def __init__(self, *, freshness_ms: int = 60_000, clock: Callable[[], float] = time.time) -> None:
        self.freshness_ms = freshness_ms
        self._clock = clock
        self._latest: GeoPosition | None = None
        self._latest_seen = False
        self._denied = False
        self._unsupported = False
        self._waiters: list[asyncio.Future[GeoPosition]] = []
        self._watchers = _WatcherSet()

    @property
    def latest(self) -> GeoPosition | None:
        return self._latest

    def report(self, position: GeoPosition) -> None:
        if self._latest is not None and position.timestamp < self._latest.timestamp:
            logger.debug("Ignoring out-of-order location report")
            return
        self._latest = position
        self._latest_seen = False
        self._denied = False
        self._unsupported = False
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(position)
                self._latest_seen = True
        self._watchers.emit(position)

    def deny(self) -> None:
        self._denied = True
        self._fail_waiters(LocationErrorKind.PERMISSION_DENIED)

    def mark_unsupported(self) -> None:
        self._unsupported = True
        self._fail_waiters(LocationErrorKind.UNAVAILABLE)

    def _fail_waiters(self, kind: LocationErrorKind) -> None:
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_exception(SensorError(kind))

    def _is_fresh(self, position: GeoPosition) -> bool:
        return (self._clock() - position.timestamp) * 1000.0 <= self.freshness_ms

    async def get_fix(self, high_accuracy: bool, timeout_ms: int) -> GeoPosition:
        if self._denied:
            raise SensorError(LocationErrorKind.PERMISSION_DENIED)
        if self._unsupported:
            raise SensorError(LocationErrorKind.UNAVAILABLE)

        latest = self._latest
        if latest is not None and self._is_fresh(latest) and (not self._latest_seen or not high_accuracy):
            self._latest_seen = True
            return latest

        waiter: asyncio.Future[GeoPosition] = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            return await asyncio.wait_for(waiter, timeout=max(timeout_ms, 0) / 1000.0)
        except asyncio.TimeoutError as exc:
            raise SensorError(LocationErrorKind.TIMEOUT, details={"timeout_ms": timeout_ms}) from exc
        finally:
            if waiter in self._waiters:
                self._waiters.remove(waiter)

    def watch(self, callback: FixCallback) -> Unsubscribe:
        return self._watchers.add(callback)

    @property
    def watcher_count(self) -> int:
        return len(self._watchers)
