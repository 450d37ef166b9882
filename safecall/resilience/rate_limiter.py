"""Sliding-window rate limiting.

A limiter admits at most ``max_calls`` calls in any trailing ``window``
seconds. Pruning, counting and recording happen under one lock.
"""

import logging
import threading
import time
from collections import deque
from typing import Any, Optional

from ..monitoring import metrics

logger = logging.getLogger(__name__)


class RateLimiter:
    """Sliding-window rate limiter.

    Usage:
        limiter = RateLimiter(max_calls=10, window=60.0)
        if limiter.try_acquire():
            # Make request
            pass
    """

    def __init__(self, max_calls: int = 10, window: float = 60.0, name: str = "default"):
        """Initialize rate limiter.

        Args:
            max_calls: Calls admitted per window
            window: Window length in seconds
            name: Label for logs and metrics
        """
        if max_calls < 0:
            raise ValueError("max_calls must be >= 0")
        if window <= 0:
            raise ValueError("window must be > 0")

        self.name = name
        self.max_calls = max_calls
        self.window = window
        self._calls: deque[float] = deque()
        self._lock = threading.Lock()

    def _prune(self, now: float) -> None:
        """Drop timestamps that have left the window."""
        while self._calls and now - self._calls[0] > self.window:
            self._calls.popleft()

    def try_acquire(self, now: Optional[float] = None) -> bool:
        """Admit and record one call if the window has room.

        Args:
            now: Monotonic timestamp; defaults to ``time.monotonic()``

        Returns:
            True if the call was admitted
        """
        now = time.monotonic() if now is None else now
        with self._lock:
            self._prune(now)
            if len(self._calls) >= self.max_calls:
                metrics.rate_limited_total.inc(limiter=self.name)
                logger.debug(f"Rate limiter {self.name} rejected call")
                return False
            self._calls.append(now)
            return True

    def remaining(self, now: Optional[float] = None) -> int:
        """Calls still admissible in the current window."""
        now = time.monotonic() if now is None else now
        with self._lock:
            self._prune(now)
            return max(self.max_calls - len(self._calls), 0)

    @property
    def call_count(self) -> int:
        """Recorded timestamps, without pruning."""
        with self._lock:
            return len(self._calls)

    def reset(self) -> None:
        """Forget all recorded calls."""
        with self._lock:
            self._calls.clear()

    def get_status(self) -> dict[str, Any]:
        """Get rate limiter status."""
        return {
            "name": self.name,
            "max_calls": self.max_calls,
            "window": self.window,
            "remaining": self.remaining(),
        }
