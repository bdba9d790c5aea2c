"""GuardNomad Backend — Circuit breaker for the search provider"""

import time
import logging
from enum import Enum
from typing import Callable

from config import PROVIDER_COOLDOWN

logger = logging.getLogger("guardnomad.breaker")


class BreakerState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """Single-failure circuit breaker driven by an injectable clock.

    One failed call opens the circuit. While open, ``allow_request`` is False
    until ``cooldown`` seconds have passed; then the breaker goes half-open
    and lets a trial call through. Success closes it, failure re-opens it.
    """

    def __init__(self, name: str, cooldown: float = PROVIDER_COOLDOWN,
                 clock: Callable[[], float] = time.time):
        self.name = name
        self.cooldown = cooldown
        self._clock = clock
        self._state = BreakerState.CLOSED
        self._opened_at = 0.0

    @property
    def state(self) -> BreakerState:
        if self._state is BreakerState.OPEN and self._clock() - self._opened_at >= self.cooldown:
            self._state = BreakerState.HALF_OPEN
            logger.info(f"{self.name} re-enabled for a trial call after {self.cooldown:.0f}s cooldown")
        return self._state

    def allow_request(self) -> bool:
        return self.state is not BreakerState.OPEN

    def record_success(self):
        if self._state is not BreakerState.CLOSED:
            logger.info(f"{self.name} recovered, circuit closed")
        self._state = BreakerState.CLOSED

    def record_failure(self):
        self._state = BreakerState.OPEN
        self._opened_at = self._clock()
        logger.warning(f"{self.name} marked unavailable for {self.cooldown:.0f}s")

    def reset(self):
        self._state = BreakerState.CLOSED
        self._opened_at = 0.0
