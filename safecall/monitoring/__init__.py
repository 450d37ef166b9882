"""Monitoring module for SafeCall.

This module provides:
- Call profiling (counts, error and slow-call rates, timing)
- Prometheus-format counters for policy events
"""

from .metrics import (
    Counter,
    Gauge,
    circuit_breaker_state,
    circuit_breaker_trips,
    failures_total,
    rate_limited_total,
    render_metrics,
    reset_metrics,
    retries_total,
    timeouts_total,
)
from .profiler import Profiler, ProfilerStats

__all__ = [
    "Profiler",
    "ProfilerStats",
    "Counter",
    "Gauge",
    "failures_total",
    "retries_total",
    "circuit_breaker_trips",
    "circuit_breaker_state",
    "rate_limited_total",
    "timeouts_total",
    "render_metrics",
    "reset_metrics",
]
