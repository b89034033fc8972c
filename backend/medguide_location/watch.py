from __future__ import annotations

from typing import Callable

from medguide_cache.position_cache import PositionCache
from medguide_core.errors import LocationUnavailableError
from medguide_core.logging_utils import get_logger
from medguide_core.models import GeoPosition

from .providers import LocationProvider

logger = get_logger(__name__)


class Subscription:
    def __init__(self, subscription_id: int, release: Callable[[int], None]) -> None:
        self.id = subscription_id
        self._release = release
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        self._release(self.id)

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc_info) -> None:
        self.unsubscribe()


class LocationWatch:
    """One shared provider subscription, reference counted across subscribers."""

    def __init__(self, provider: LocationProvider, cache: PositionCache) -> None:
        self.provider = provider
        self.cache = cache
        self._subscribers: dict[int, Callable[[GeoPosition], None]] = {}
        self._next_id = 0
        self._release_provider: Callable[[], None] | None = None

    @property
    def active(self) -> bool:
        return self._release_provider is not None

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, callback: Callable[[GeoPosition], None]) -> Subscription:
        start = None
        if self._release_provider is None:
            start = getattr(self.provider, "watch", None)
            if start is None:
                raise LocationUnavailableError(details={"reason": "watch_not_supported"})

        self._next_id += 1
        subscription_id = self._next_id
        # Registered before starting: providers may emit a fix from inside watch().
        self._subscribers[subscription_id] = callback

        if start is not None:
            logger.info("Starting shared location watch")
            try:
                self._release_provider = start(self._dispatch)
            except Exception:
                del self._subscribers[subscription_id]
                raise
        else:
            latest = self.cache.latest
            if latest is not None:
                self._deliver(callback, latest)

        return Subscription(subscription_id, self._unsubscribe)

    def _unsubscribe(self, subscription_id: int) -> None:
        self._subscribers.pop(subscription_id, None)
        if self._subscribers or self._release_provider is None:
            return
        release, self._release_provider = self._release_provider, None
        release()
        logger.info("Released shared location watch")

    def _dispatch(self, position: GeoPosition) -> None:
        self.cache.put(position)
        for callback in list(self._subscribers.values()):
            self._deliver(callback, position)

    @staticmethod
    def _deliver(callback: Callable[[GeoPosition], None], position: GeoPosition) -> None:
        try:
            callback(position)
        except Exception:
            logger.exception("Location subscriber callback failed")
