# ops_resilience/client/circuit_breaker.py

"""Circuit breaker pattern implementation for resilience."""

from collections.abc import Callable
from enum import Enum
import logging
import time
from typing import Any

logger = logging.getLogger(__name__)

SUCCESSES_TO_CLOSE = 3


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing fast
    HALF_OPEN = "half_open"  # Testing if service is back


class CircuitBreaker:
    """Circuit breaker to prevent cascading failures.

    The caller asks ``allow_request()`` before a network attempt and
    reports the outcome with ``record_success()`` or ``record_failure()``.
    None of these await, so state transitions are atomic on the event loop.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout_ms: float = 60_000,
        name: str | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the circuit breaker.

        Args:
            failure_threshold: Consecutive failures before opening
            recovery_timeout_ms: Time before a half-open trial request is allowed
            name: Name for logging and identification
            clock: Time source in seconds
        """
        self.failure_threshold = failure_threshold
        self.recovery_timeout_ms = recovery_timeout_ms
        self.name = name or "CircuitBreaker"
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._opened_at: float | None = None

        self._total_failures = 0
        self._total_successes = 0
        self._rejected_count = 0
        self._circuit_opened_count = 0

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    def allow_request(self) -> bool:
        """Return whether a network attempt may proceed."""
        if self._state == CircuitState.OPEN:
            if self._should_attempt_reset():
                self._half_open_circuit()
            else:
                self._rejected_count += 1
                return False
        return True

    def retry_after_ms(self) -> float:
        """Time left until the breaker allows a trial request."""
        if self._state != CircuitState.OPEN or self._opened_at is None:
            return 0.0
        elapsed_ms = (self._clock() - self._opened_at) * 1000
        return max(self.recovery_timeout_ms - elapsed_ms, 0.0)

    def record_success(self) -> None:
        self._total_successes += 1

        if self._state == CircuitState.HALF_OPEN:
            self._success_count += 1
            if self._success_count >= SUCCESSES_TO_CLOSE:
                self._close_circuit()
        elif self._state == CircuitState.CLOSED:
            self._failure_count = 0

    def record_failure(self) -> None:
        self._total_failures += 1
        self._failure_count += 1

        if self._state == CircuitState.HALF_OPEN:
            self._open_circuit()
        elif (
            self._state == CircuitState.CLOSED
            and self._failure_count >= self.failure_threshold
        ):
            self._open_circuit()

        logger.debug(
            f"Circuit breaker '{self.name}' failure count: {self._failure_count}/"
            f"{self.failure_threshold}"
        )

    def _should_attempt_reset(self) -> bool:
        if self._opened_at is None:
            return True
        return (self._clock() - self._opened_at) * 1000 >= self.recovery_timeout_ms

    def _open_circuit(self) -> None:
        self._state = CircuitState.OPEN
        self._opened_at = self._clock()
        self._success_count = 0
        self._circuit_opened_count += 1

        logger.warning(
            f"Circuit breaker '{self.name}' opened after {self._failure_count} failures"
        )

    def _half_open_circuit(self) -> None:
        self._state = CircuitState.HALF_OPEN
        self._success_count = 0

        logger.info(f"Circuit breaker '{self.name}' moved to HALF_OPEN state")

    def _close_circuit(self) -> None:
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._opened_at = None

        logger.info(f"Circuit breaker '{self.name}' closed - service recovered")

    def reset(self) -> None:
        """Manually reset the circuit breaker."""
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._opened_at = None

        logger.info(f"Circuit breaker '{self.name}' manually reset")

    def get_stats(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "state": self._state.value,
            "failure_count": self._failure_count,
            "success_count": self._success_count,
            "total_failures": self._total_failures,
            "total_successes": self._total_successes,
            "rejected_count": self._rejected_count,
            "circuit_opened_count": self._circuit_opened_count,
        }


class CircuitBreakerRegistry:
    """Lazily creates one breaker per endpoint pattern."""

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout_ms: float = 60_000,
        clock: Callable[[], float] = time.time,
    ):
        self._failure_threshold = failure_threshold
        self._recovery_timeout_ms = recovery_timeout_ms
        self._clock = clock
        self._breakers: dict[str, CircuitBreaker] = {}

    def get(self, name: str) -> CircuitBreaker:
        breaker = self._breakers.get(name)
        if breaker is None:
            breaker = CircuitBreaker(
                failure_threshold=self._failure_threshold,
                recovery_timeout_ms=self._recovery_timeout_ms,
                name=name,
                clock=self._clock,
            )
            self._breakers[name] = breaker
        return breaker

    def get_all_stats(self) -> dict[str, dict[str, Any]]:
        return {name: breaker.get_stats() for name, breaker in self._breakers.items()}

    def reset_all(self) -> None:
        for breaker in self._breakers.values():
            breaker.reset()
