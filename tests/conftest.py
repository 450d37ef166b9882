"""Pytest configuration and fixtures for SafeCall tests."""

import pytest

from safecall import SafeCall, SafeCallContext, Settings
from safecall.monitoring import reset_metrics


@pytest.fixture(autouse=True)
def clean_metrics():
    """Start every test with empty metrics."""
    reset_metrics()
    yield
    reset_metrics()


@pytest.fixture
def context():
    """Isolated registries, torn down after the test."""
    ctx = SafeCallContext()
    yield ctx
    ctx.shutdown()


@pytest.fixture
def log_messages():
    """Messages captured by the test log sink."""
    return []


@pytest.fixture
def test_settings():
    return Settings(
        retry_attempts=3,
        retry_delay=0.1,
        retry_backoff=1.5,
        breaker_threshold=5,
        breaker_reset_timeout=30.0,
        rate_limit_max_calls=10,
        rate_limit_window=60.0,
        profiler_slow_threshold=0.1,
    )


@pytest.fixture
def safe(context, log_messages, test_settings):
    """SafeCall wired to an isolated context and a capturing log sink."""
    return SafeCall(log_sink=log_messages.append, context=context, settings=test_settings)


class Flaky:
    """Callable failing a fixed number of times before succeeding."""

    def __init__(self, failures: int, value="ok", message="transient"):
        self.failures = failures
        self.value = value
        self.message = message
        self.calls = 0

    def __call__(self, *args, **kwargs):
        self.calls += 1
        if self.calls <= self.failures:
            raise RuntimeError(self.message)
        return self.value


@pytest.fixture
def flaky():
    """Factory for callables that fail N times, then succeed."""
    return Flaky

