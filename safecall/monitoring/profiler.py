"""Call profiling: counts, errors, slow calls and timing."""

import logging
import threading
from dataclasses import asdict, dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProfilerStats:
    """Snapshot of a profiler. Ratios are 0 when no call was made."""

    calls: int
    errors: int
    error_rate: float
    avg_time: float
    slow_calls: int
    slow_call_rate: float
    total_time: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class Profiler:
    """Accumulates statistics for calls made through ``call_with_profiler``.

    Counters only grow; nothing resets them except an explicit :meth:`reset`.
    """

    def __init__(self, slow_threshold: float = 0.1, name: str = "default"):
        """Initialize profiler.

        Args:
            slow_threshold: Calls longer than this many seconds count as slow
            name: Label for logs
        """
        if slow_threshold < 0:
            raise ValueError("slow_threshold must be >= 0")

        self.name = name
        self.slow_threshold = slow_threshold
        self.call_count = 0
        self.error_count = 0
        self.slow_call_count = 0
        self.total_duration = 0.0
        self._lock = threading.Lock()

    def record(self, duration: float, success: bool) -> None:
        """Record one finished call."""
        with self._lock:
            self.call_count += 1
            self.total_duration += duration
            if not success:
                self.error_count += 1
            if duration > self.slow_threshold:
                self.slow_call_count += 1
                logger.debug(f"Profiler {self.name}: slow call took {duration:.3f}s")

    def get_stats(self) -> ProfilerStats:
        with self._lock:
            calls = self.call_count
            return ProfilerStats(
                calls=calls,
                errors=self.error_count,
                error_rate=self.error_count / calls if calls else 0.0,
                avg_time=self.total_duration / calls if calls else 0.0,
                slow_calls=self.slow_call_count,
                slow_call_rate=self.slow_call_count / calls if calls else 0.0,
                total_time=self.total_duration,
            )

    def reset(self) -> None:
        with self._lock:
            self.call_count = 0
            self.error_count = 0
            self.slow_call_count = 0
            self.total_duration = 0.0
