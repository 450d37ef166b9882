"""Process-wide metrics for SafeCall policies.

Rendered in Prometheus text format by :func:`render_metrics`:
- safecall_failures_total: unfiltered operation failures by context tag
- safecall_retries_total: retry attempts that failed
- safecall_circuit_breaker_trips_total / safecall_circuit_breaker_state
- safecall_rate_limited_total: calls rejected by a rate limiter
- safecall_timeouts_total: calls abandoned by the timeout guard
"""

import logging
import threading
from typing import Optional

logger = logging.getLogger(__name__)


# =============================================================================
# Metric Classes (Lightweight implementation without prometheus_client dependency)
# =============================================================================


class _Metric:
    """Labelled metric storage shared by counters and gauges."""

    kind = "untyped"

    def __init__(self, name: str, description: str, labels: Optional[list[str]] = None):
        self.name = name
        self.description = description
        self._label_names = labels or []
        self._values: dict[tuple, float] = {}
        self._lock = threading.Lock()

    def _key(self, label_values: dict[str, str]) -> tuple:
        return tuple(str(label_values.get(l, "")) for l in self._label_names)

    def get(self, **labels) -> float:
        """Current value for a label set (0 if never touched)."""
        with self._lock:
            return self._values.get(self._key(labels), 0.0)

    def get_all(self) -> dict[tuple, float]:
        """Get all values."""
        with self._lock:
            return self._values.copy()

    def clear(self) -> None:
        with self._lock:
            self._values.clear()

    def to_prometheus(self) -> str:
        """Format as Prometheus text."""
        lines = [f"# HELP {self.name} {self.description}", f"# TYPE {self.name} {self.kind}"]
        with self._lock:
            for label_values, value in self._values.items():
                if label_values:
                    labels_str = ",".join(
                        f'{l}="{v}"' for l, v in zip(self._label_names, label_values)
                    )
                    lines.append(f"{self.name}{{{labels_str}}} {value}")
                else:
                    lines.append(f"{self.name} {value}")
        return "\n".join(lines)


class Counter(_Metric):
    """A counter metric that can only increase."""

    kind = "counter"

    def inc(self, value: float = 1.0, **labels) -> None:
        if value < 0:
            raise ValueError("Counters can only increase")
        with self._lock:
            key = self._key(labels)
            self._values[key] = self._values.get(key, 0.0) + value


class Gauge(_Metric):
    """A gauge metric that can be set to any value."""

    kind = "gauge"

    def set(self, value: float, **labels) -> None:
        with self._lock:
            self._values[self._key(labels)] = value


failures_total = Counter(
    "safecall_failures_total",
    "Operation failures reported to the log sink and global handlers",
    ["context"],
)

retries_total = Counter(
    "safecall_retries_total",
    "Failed attempts inside call_with_retry",
)

circuit_breaker_trips = Counter(
    "safecall_circuit_breaker_trips_total",
    "Times a circuit breaker transitioned to OPEN",
    ["breaker"],
)

circuit_breaker_state = Gauge(
    "safecall_circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=half-open, 2=open)",
    ["breaker"],
)

rate_limited_total = Counter(
    "safecall_rate_limited_total",
    "Calls rejected by a rate limiter",
    ["limiter"],
)

timeouts_total = Counter(
    "safecall_timeouts_total",
    "Calls abandoned by the timeout guard",
)

ALL_METRICS: list[_Metric] = [
    failures_total,
    retries_total,
    circuit_breaker_trips,
    circuit_breaker_state,
    rate_limited_total,
    timeouts_total,
]


def render_metrics() -> str:
    """Render every SafeCall metric in Prometheus text format."""
    return "\n\n".join(metric.to_prometheus() for metric in ALL_METRICS) + "\n"


def reset_metrics() -> None:
    """Clear all metric values."""
    for metric in ALL_METRICS:
        metric.clear()
