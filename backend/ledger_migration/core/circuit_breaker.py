"""Circuit breaker for calls to the source store.

After ``failure_threshold`` consecutive failures the circuit opens and calls
fail fast. Once ``recovery_timeout`` has elapsed a single trial call is let through
(half-open); success closes the circuit, failure opens it again.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing, reject all requests
    HALF_OPEN = "half_open"  # Testing if service recovered


@dataclass
class CircuitBreakerConfig:
    """Circuit breaker configuration."""

    failure_threshold: int
    recovery_timeout: float


class CircuitBreaker:
    """Tracks consecutive failures of one external service."""

    def __init__(self, config: CircuitBreakerConfig, name: str = "default") -> None:
        self._config = config
        self._name = name
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: float | None = None
        self._lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def is_closed(self) -> bool:
        return self._state == CircuitState.CLOSED

    @property
    def is_open(self) -> bool:
        return self._state == CircuitState.OPEN

    def _recovery_due(self) -> bool:
        if self._last_failure_time is None:
            return False
        elapsed = time.monotonic() - self._last_failure_time
        return elapsed >= self._config.recovery_timeout

    def _transition(self, new_state: CircuitState) -> None:
        previous = self._state
        self._state = new_state
        level = logging.WARNING if new_state == CircuitState.OPEN else logging.INFO
        logger.log(
            level,
            f"Circuit breaker '{self._name}' {previous.value} -> {new_state.value}",
            extra={
                "circuit_name": self._name,
                "previous_state": previous.value,
                "new_state": new_state.value,
                "failure_count": self._failure_count,
                "recovery_timeout": self._config.recovery_timeout,
            },
        )

    async def can_execute(self) -> bool:
        """Check if a call may be made in the current state."""
        async with self._lock:
            if self._state == CircuitState.OPEN:
                if not self._recovery_due():
                    return False
                self._transition(CircuitState.HALF_OPEN)
            return True

    async def record_success(self) -> None:
        """Record a successful call."""
        async with self._lock:
            self._failure_count = 0
            if self._state == CircuitState.HALF_OPEN:
                self._last_failure_time = None
                self._transition(CircuitState.CLOSED)

    async def record_failure(self) -> None:
        """Record a failed call."""
        async with self._lock:
            self._failure_count += 1
            self._last_failure_time = time.monotonic()

            if self._state == CircuitState.HALF_OPEN:
                self._transition(CircuitState.OPEN)
            elif (
                self._state == CircuitState.CLOSED
                and self._failure_count >= self._config.failure_threshold
            ):
                self._transition(CircuitState.OPEN)
