"""
Circuit breaker guarding calls to public key sources.

Each key fetcher owns its own breaker, so one misbehaving key endpoint never
blocks verification against another.
"""

import time
from enum import Enum
from typing import Any, Awaitable, Callable, Dict

from shared.logging import get_logger


class CircuitBreakerState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpenException(Exception):
    """Raised instead of calling the key source while the circuit is open."""


class CircuitBreaker:
    """Counts consecutive failures and short-circuits calls once a threshold is hit.

    After ``recovery_timeout`` seconds a single probe call is let through; its
    outcome decides whether the circuit closes again or re-opens.
    """

    def __init__(self,
                 failure_threshold: int = 5,
                 recovery_timeout: float = 30.0,
                 name: str = "default",
                 clock: Callable[[], float] = time.time):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.name = name
        self.clock = clock
        self.logger = get_logger(f"keys.circuit_breaker.{name}")

        self._state = CircuitBreakerState.CLOSED
        self._consecutive_failures = 0
        self._opened_at = 0.0

    @property
    def state(self) -> CircuitBreakerState:
        return self._state

    def is_open(self) -> bool:
        return self._state is CircuitBreakerState.OPEN

    async def call(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        """Await ``func`` unless the circuit is open."""
        self._admit()
        try:
            result = await func(*args, **kwargs)
        except Exception:
            self._on_failure()
            raise
        self._on_success()
        return result

    def reset(self) -> None:
        self._state = CircuitBreakerState.CLOSED
        self._consecutive_failures = 0
        self._opened_at = 0.0

    def snapshot(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "state": self._state.value,
            "consecutive_failures": self._consecutive_failures,
            "opened_at": self._opened_at,
            "failure_threshold": self.failure_threshold,
            "recovery_timeout": self.recovery_timeout,
        }

    def _admit(self) -> None:
        if self._state is not CircuitBreakerState.OPEN:
            return
        if self.clock() - self._opened_at < self.recovery_timeout:
            raise CircuitBreakerOpenException(
                f"Circuit breaker '{self.name}' is open; key source calls are suspended"
            )
        self._state = CircuitBreakerState.HALF_OPEN
        self.logger.info("Probing key source after recovery timeout", breaker=self.name)

    def _on_success(self) -> None:
        if self._state is CircuitBreakerState.HALF_OPEN:
            self.logger.info("Key source recovered, closing circuit", breaker=self.name)
        self.reset()

    def _on_failure(self) -> None:
        self._consecutive_failures += 1
        probe_failed = self._state is CircuitBreakerState.HALF_OPEN
        if probe_failed or self._consecutive_failures >= self.failure_threshold:
            self._state = CircuitBreakerState.OPEN
            self._opened_at = self.clock()
            self.logger.warning(
                "Circuit breaker opened",
                breaker=self.name,
                consecutive_failures=self._consecutive_failures,
                threshold=self.failure_threshold,
            )
