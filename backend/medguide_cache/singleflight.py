from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Generic, Hashable, TypeVar

from medguide_core.logging_utils import get_logger

T = TypeVar("T")

logger = get_logger(__name__)


class SingleFlight(Generic[T]):
    """Coalesces concurrent calls for the same key onto one running task.

    Waiters are shielded: cancelling one caller never cancels the shared work
    the other callers are waiting on.
    """

    def __init__(self) -> None:
        self._inflight: dict[Hashable, asyncio.Task[T]] = {}

    def in_flight(self, key: Hashable) -> bool:
        task = self._inflight.get(key)
        return task is not None and not task.done()

    @property
    def pending(self) -> int:
        return sum(1 for task in self._inflight.values() if not task.done())

    async def do(self, key: Hashable, fn: Callable[[], Awaitable[T]]) -> T:
        task = self._inflight.get(key)
        if task is None or task.done():
            task = asyncio.ensure_future(fn())
            self._inflight[key] = task
            task.add_done_callback(lambda finished, k=key: self._forget(k, finished))
        else:
            logger.debug("Joining in-flight call for key=%s", key)
        return await asyncio.shield(task)

    def _forget(self, key: Hashable, task: asyncio.Task[T]) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        if not task.cancelled():
            # Mark the exception retrieved when every waiter has gone away.
            task.exception()
