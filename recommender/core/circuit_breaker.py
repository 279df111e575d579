"""
Circuit breaker guarding each scoring strategy.
A strategy that keeps raising is skipped for a cool-down period instead of
being retried on every request; one trial call after the cool-down decides
whether it is healthy again.
"""
import logging
import time
from enum import Enum
from threading import Lock
from typing import Callable, Dict, Optional, TypeVar

from recommender.core.exceptions import CircuitBreakerOpenError
from recommender.core.metrics import strategy_circuit_state

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"      # Strategy runs normally
    OPEN = "open"          # Strategy skipped
    HALF_OPEN = "half_open"  # One trial run allowed


class CircuitBreaker:
    """
    Thread-safe circuit breaker.

    Strategies execute in worker threads, so state changes happen under a
    lock. Timeouts are enforced by the caller and do not count as failures.

    Usage:
        breaker = CircuitBreaker("strategy.trending", failure_threshold=5)
        results = breaker.call(lambda: strategy.recommend(context))
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout_sec: float = 30,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._name = name
        self._failure_threshold = failure_threshold
        self._recovery_timeout_sec = recovery_timeout_sec
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at: Optional[float] = None
        # Set while the one half-open trial call is running
        self._trial_in_flight = False
        self._lock = Lock()
        strategy_circuit_state.labels(breaker=name).set(0)

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def name(self) -> str:
        return self._name

    @property
    def failure_count(self) -> int:
        """Consecutive failures since the last success."""
        return self._failure_count

    def retry_in(self) -> float:
        """Seconds until an open breaker admits a trial call, 0 otherwise."""
        if self._state != CircuitState.OPEN or self._opened_at is None:
            return 0.0
        return max(0.0, self._opened_at + self._recovery_timeout_sec - self._clock())

    def call(self, func: Callable[[], T], fallback: Optional[Callable[[], T]] = None) -> T:
        """
        Execute function through circuit breaker.

        Args:
            func: The function to execute
            fallback: Optional result provider used when the circuit is open
                or func raises

        Returns:
            Result from func or fallback

        Raises:
            CircuitBreakerOpenError: If open and no fallback provided
        """
        if not self._admit():
            if fallback:
                logger.warning(f"Circuit breaker '{self._name}' OPEN, using fallback")
                return fallback()
            raise CircuitBreakerOpenError(self._name, self.retry_in())

        try:
            result = func()
        except Exception as e:
            self.record_failure()
            if fallback:
                logger.warning(f"Circuit breaker '{self._name}' caught error, using fallback: {e}")
                return fallback()
            raise
        self.record_success()
        return result

    def _admit(self) -> bool:
        with self._lock:
            if self._state == CircuitState.CLOSED:
                return True
            if self._state == CircuitState.HALF_OPEN:
                if self._trial_in_flight:
                    return False
                self._trial_in_flight = True
                return True
            if self.retry_in() > 0:
                return False
            self._transition(CircuitState.HALF_OPEN)
            self._trial_in_flight = True
            return True

    def record_success(self) -> None:
        with self._lock:
            self._trial_in_flight = False
            self._failure_count = 0
            if self._state == CircuitState.HALF_OPEN:
                self._transition(CircuitState.CLOSED)

    def record_failure(self) -> None:
        with self._lock:
            self._trial_in_flight = False
            self._failure_count += 1
            # A failed trial call reopens immediately
            if self._state == CircuitState.HALF_OPEN or self._failure_count >= self._failure_threshold:
                self._opened_at = self._clock()
                if self._state != CircuitState.OPEN:
                    self._transition(CircuitState.OPEN)

    def _transition(self, new_state: CircuitState) -> None:
        """Caller holds the lock."""
        previous, self._state = self._state, new_state
        strategy_circuit_state.labels(breaker=self._name).set(0 if new_state == CircuitState.CLOSED else 1)
        log = logger.error if new_state == CircuitState.OPEN else logger.info
        log(
            f"Circuit breaker '{self._name}' {previous.value} -> {new_state.value} "
            f"(failures={self._failure_count})"
        )

    def reset(self) -> None:
        """Manually close the breaker."""
        with self._lock:
            self._failure_count = 0
            self._opened_at = None
            self._trial_in_flight = False
            if self._state != CircuitState.CLOSED:
                self._transition(CircuitState.CLOSED)

    def snapshot(self) -> Dict[str, object]:
        """State summary for readiness checks."""
        return {
            "name": self._name,
            "state": self._state.value,
            "failure_count": self._failure_count,
            "retry_in_sec": round(self.retry_in(), 3),
        }
