"""SafeCall: failure containment and recovery policies for fallible calls."""

__version__ = "1.2.0"

from .config import Settings, settings
from .context import ErrorFilterChain, GlobalHandlerRegistry, SafeCallContext, default_context
from .core import SafeCall
from .errors import ConfigurationError, SafeCallError
from .invoker import (
    CIRCUIT_OPEN,
    RATE_LIMITED,
    RETRIES_EXHAUSTED,
    TIMED_OUT,
    InvocationResult,
    ainvoke,
    invoke,
    safe_call,
)
from .monitoring import Profiler, ProfilerStats, render_metrics
from .resilience import CircuitBreaker, CircuitState, RateLimiter, RetryConfig
from .scheduler import Scheduler

__all__ = [
    "SafeCall",
    "SafeCallContext",
    "default_context",
    "ErrorFilterChain",
    "GlobalHandlerRegistry",
    "InvocationResult",
    "invoke",
    "ainvoke",
    "safe_call",
    "CIRCUIT_OPEN",
    "RATE_LIMITED",
    "TIMED_OUT",
    "RETRIES_EXHAUSTED",
    "RetryConfig",
    "CircuitBreaker",
    "CircuitState",
    "RateLimiter",
    "Profiler",
    "ProfilerStats",
    "render_metrics",
    "Scheduler",
    "Settings",
    "settings",
    "SafeCallError",
    "ConfigurationError",
]
