from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Sequence

from medguide_cache.time_utils import Clock, monotonic_ms
from medguide_core.errors import RetryStateError
from medguide_core.logging_utils import get_logger

logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class RetryState(str, Enum):
    READY = "ready"
    ATTEMPTING = "attempting"
    BACKING_OFF = "backing_off"
    ADVANCING = "advancing"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class RetryPolicy:
    retries_per_endpoint: int = 2
    backoff_base_ms: int = 500
    backoff_max_ms: int = 4_000
    endpoint_budget_ms: int = 20_000
    jitter_ratio: float = 0.5

    def backoff_ms(self, retry_number: int, rand: Callable[[], float] = random.random) -> float:
        """Delay before retry ``retry_number`` (1-based): capped exponential, jittered downward."""
        ceiling = min(self.backoff_max_ms, self.backoff_base_ms * (2 ** max(retry_number - 1, 0)))
        floor = ceiling * (1.0 - self.jitter_ratio)
        return floor + (ceiling - floor) * rand()


class EndpointCursor:
    """Walks an ordered endpoint list, retrying transient failures in place."""

    _TRANSITIONS = {
        RetryState.READY: {RetryState.ATTEMPTING, RetryState.EXHAUSTED},
        RetryState.ATTEMPTING: {RetryState.SUCCEEDED, RetryState.BACKING_OFF, RetryState.ADVANCING},
        RetryState.BACKING_OFF: {RetryState.ATTEMPTING, RetryState.ADVANCING},
        RetryState.ADVANCING: {RetryState.READY, RetryState.EXHAUSTED},
        RetryState.SUCCEEDED: set(),
        RetryState.EXHAUSTED: set(),
    }

    def __init__(
        self,
        endpoints: Sequence[str],
        policy: RetryPolicy | None = None,
        *,
        clock: Clock = monotonic_ms,
        sleep: Sleep = asyncio.sleep,
        rand: Callable[[], float] = random.random,
    ) -> None:
        self.endpoints = list(endpoints)
        self.policy = policy or RetryPolicy()
        self._clock = clock
        self._sleep = sleep
        self._rand = rand
        self.index = 0
        self.attempt = 0
        self.total_attempts = 0
        self._endpoint_started_ms: float | None = None
        self.state = RetryState.READY
        self.history: list[RetryState] = [RetryState.READY]
        if not self.endpoints:
            self._transition(RetryState.EXHAUSTED)

    def _transition(self, next_state: RetryState) -> None:
        allowed_next = self._TRANSITIONS.get(self.state, set())
        if next_state not in allowed_next:
            raise RetryStateError(f"Invalid transition: {self.state.value} -> {next_state.value}")
        self.state = next_state
        self.history.append(next_state)

    @property
    def endpoint(self) -> str | None:
        if self.index >= len(self.endpoints):
            return None
        return self.endpoints[self.index]

    @property
    def done(self) -> bool:
        return self.state in {RetryState.SUCCEEDED, RetryState.EXHAUSTED}

    def elapsed_on_endpoint_ms(self) -> float:
        if self._endpoint_started_ms is None:
            return 0.0
        return self._clock() - self._endpoint_started_ms

    def remaining_budget_ms(self) -> float:
        return max(self.policy.endpoint_budget_ms - self.elapsed_on_endpoint_ms(), 0.0)

    def begin_attempt(self) -> str:
        if self.state is RetryState.READY:
            self._endpoint_started_ms = self._clock()
            self.attempt = 0
        self._transition(RetryState.ATTEMPTING)
        self.attempt += 1
        self.total_attempts += 1
        return self.endpoints[self.index]

    def record_success(self) -> None:
        self._transition(RetryState.SUCCEEDED)

    async def record_failure(self, *, transient: bool) -> bool:
        """Returns True while another attempt remains, False once exhausted."""
        if self.state is not RetryState.ATTEMPTING:
            raise RetryStateError(f"No attempt in progress (state {self.state.value})")

        if transient and self.attempt <= self.policy.retries_per_endpoint:
            delay_ms = self.policy.backoff_ms(self.attempt, self._rand)
            if self.elapsed_on_endpoint_ms() + delay_ms < self.policy.endpoint_budget_ms:
                self._transition(RetryState.BACKING_OFF)
                logger.info(
                    "Retrying endpoint %d/%d in %.0f ms (attempt %d)",
                    self.index + 1,
                    len(self.endpoints),
                    delay_ms,
                    self.attempt + 1,
                )
                await self._sleep(delay_ms / 1000.0)
                if self.remaining_budget_ms() > 0:
                    return True
            else:
                logger.info("Endpoint %d budget exhausted", self.index + 1)

        self._advance()
        return self.state is not RetryState.EXHAUSTED

    def _advance(self) -> None:
        self._transition(RetryState.ADVANCING)
        self.index += 1
        self._endpoint_started_ms = None
        if self.index < len(self.endpoints):
            logger.warning("Failing over to endpoint %d/%d", self.index + 1, len(self.endpoints))
            self._transition(RetryState.READY)
        else:
            logger.warning("All %d endpoint(s) exhausted", len(self.endpoints))
            self._transition(RetryState.EXHAUSTED)
