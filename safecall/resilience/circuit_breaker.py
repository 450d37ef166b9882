"""Circuit breaker for chronically failing operations.

Provides per-resource circuit breakers with:
- Three states: CLOSED (normal), OPEN (rejecting), HALF_OPEN (trial)
- Configurable failure threshold and cooldown
- Threshold re-accumulation in HALF_OPEN: one success closes the breaker,
  but it only reopens after ``threshold`` further failures
"""

import logging
import threading
import time
from enum import Enum
from typing import Any, Optional

from ..monitoring import metrics

logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "CLOSED"  # Normal operation
    OPEN = "OPEN"  # Operation failing, reject calls
    HALF_OPEN = "HALF_OPEN"  # Cooldown elapsed, trying again


_STATE_GAUGE = {
    CircuitState.CLOSED: 0,
    CircuitState.HALF_OPEN: 1,
    CircuitState.OPEN: 2,
}


class CircuitBreaker:
    """Failure-counting gate in front of one protected resource.

    ``SafeCall.call_with_circuit_breaker`` drives it; it can also be used
    manually:

        if breaker.allow_request():
            result = invoke(fn)
            if result.success:
                breaker.record_success()
            else:
                breaker.record_failure()
    """

    def __init__(
        self,
        threshold: int = 5,
        reset_timeout: float = 30.0,
        name: str = "default",
    ):
        """Initialize circuit breaker.

        Args:
            threshold: Consecutive failures that open the circuit
            reset_timeout: Seconds after the last failure before a trial call
            name: Label for logs and metrics
        """
        if threshold < 1:
            raise ValueError("threshold must be >= 1")
        if reset_timeout < 0:
            raise ValueError("reset_timeout must be >= 0")

        self.name = name
        self.threshold = threshold
        self.reset_timeout = reset_timeout
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: Optional[float] = None
        self._lock = threading.Lock()
        metrics.circuit_breaker_state.set(_STATE_GAUGE[self._state], breaker=name)

    @property
    def state(self) -> CircuitState:
        with self._lock:
            return self._state

    @property
    def failure_count(self) -> int:
        with self._lock:
            return self._failure_count

    @property
    def last_failure_time(self) -> Optional[float]:
        with self._lock:
            return self._last_failure_time

    def allow_request(self, now: Optional[float] = None) -> bool:
        """Check whether a call may proceed, moving OPEN to HALF_OPEN when due.

        Args:
            now: Monotonic timestamp; defaults to ``time.monotonic()``

        Returns:
            False if the circuit is OPEN
        """
        now = time.monotonic() if now is None else now
        with self._lock:
            if (
                self._state == CircuitState.OPEN
                and self._last_failure_time is not None
                and now - self._last_failure_time > self.reset_timeout
            ):
                self._set_state(CircuitState.HALF_OPEN)
                self._failure_count = 0
                logger.info(f"Circuit breaker {self.name} entering HALF_OPEN for recovery test")

            return self._state != CircuitState.OPEN

    def record_success(self) -> CircuitState:
        """Record a successful call and return the resulting state."""
        with self._lock:
            if self._state == CircuitState.HALF_OPEN:
                self._set_state(CircuitState.CLOSED)
                logger.info(f"Circuit breaker {self.name} CLOSED - operation recovered")
            self._failure_count = 0
            return self._state

    def record_failure(self, now: Optional[float] = None) -> bool:
        """Record a failed call.

        Returns:
            True if this failure opened the circuit
        """
        now = time.monotonic() if now is None else now
        with self._lock:
            self._failure_count += 1
            self._last_failure_time = now

            if self._state != CircuitState.OPEN and self._failure_count >= self.threshold:
                self._set_state(CircuitState.OPEN)
                metrics.circuit_breaker_trips.inc(breaker=self.name)
                logger.warning(
                    f"Circuit breaker {self.name} OPENED after {self._failure_count} failures"
                )
                return True
            return False

    def _set_state(self, state: CircuitState) -> None:
        self._state = state
        metrics.circuit_breaker_state.set(_STATE_GAUGE[state], breaker=self.name)

    def reset(self) -> None:
        """Manually reset the circuit breaker."""
        with self._lock:
            self._set_state(CircuitState.CLOSED)
            self._failure_count = 0
            self._last_failure_time = None
        logger.info(f"Circuit breaker {self.name} manually reset")

    def get_status(self) -> dict[str, Any]:
        """Get circuit breaker status.

        Returns:
            Status dictionary
        """
        with self._lock:
            return {
                "name": self.name,
                "state": self._state.value,
                "failure_count": self._failure_count,
                "threshold": self.threshold,
                "reset_timeout": self.reset_timeout,
                "last_failure": self._last_failure_time,
            }
