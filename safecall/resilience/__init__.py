"""Resilience policies for SafeCall.

This module provides:
- Retry with exponential backoff
- Circuit breakers
- Sliding-window rate limiting
- Non-cancelling timeout guards
"""

from .circuit_breaker import CircuitBreaker, CircuitState
from .rate_limiter import RateLimiter
from .retry import RetryConfig, calculate_backoff
from .timeout import run_with_async_timeout, run_with_timeout

__all__ = [
    "RetryConfig",
    "calculate_backoff",
    "CircuitBreaker",
    "CircuitState",
    "RateLimiter",
    "run_with_timeout",
    "run_with_async_timeout",
]
