"""Tests for the sliding-window rate limiter."""

import threading
import time
from unittest.mock import Mock

import pytest

from safecall.invoker import CIRCUIT_OPEN, RATE_LIMITED
from safecall.monitoring import metrics
from safecall.resilience.rate_limiter import RateLimiter


class TestRateLimiter:
    """Test admission control."""

    def test_admits_up_to_max_calls(self):
        limiter = RateLimiter(max_calls=3, window=10.0)

        assert [limiter.try_acquire(now=t) for t in (0.0, 1.0, 2.0)] == [True, True, True]
        assert limiter.try_acquire(now=3.0) is False

    def test_admission_resumes_after_oldest_leaves_window(self):
        limiter = RateLimiter(max_calls=2, window=10.0)
        limiter.try_acquire(now=0.0)
        limiter.try_acquire(now=5.0)

        # The call at 0.0 is still inside the window at exactly 10.0
        assert limiter.try_acquire(now=10.0) is False
        assert limiter.try_acquire(now=10.5) is True
        assert limiter.try_acquire(now=11.0) is False

    def test_never_holds_more_than_max_calls(self):
        limiter = RateLimiter(max_calls=5, window=1.0)
        for i in range(50):
            limiter.try_acquire(now=i * 0.1)
            assert limiter.call_count <= 5

    def test_rejected_calls_not_recorded(self):
        limiter = RateLimiter(max_calls=1, window=10.0)
        limiter.try_acquire(now=0.0)
        limiter.try_acquire(now=9.0)

        assert limiter.try_acquire(now=10.5) is True

    def test_zero_max_calls_rejects_everything(self):
        limiter = RateLimiter(max_calls=0, window=1.0)
        assert limiter.try_acquire() is False

    def test_remaining(self):
        limiter = RateLimiter(max_calls=3, window=10.0)
        limiter.try_acquire(now=0.0)
        assert limiter.remaining(now=1.0) == 2
        assert limiter.remaining(now=20.0) == 3

    def test_reset(self):
        limiter = RateLimiter(max_calls=1, window=60.0)
        limiter.try_acquire()
        limiter.reset()
        assert limiter.try_acquire() is True

    def test_get_status(self):
        limiter = RateLimiter(max_calls=4, window=30.0, name="search")
        limiter.try_acquire()

        status = limiter.get_status()

        assert status == {"name": "search", "max_calls": 4, "window": 30.0, "remaining": 3}

    def test_rejections_counted(self):
        limiter = RateLimiter(max_calls=1, window=60.0, name="api")
        limiter.try_acquire()
        limiter.try_acquire()
        limiter.try_acquire()

        assert metrics.rate_limited_total.get(limiter="api") == 2

    @pytest.mark.parametrize("kwargs", [{"max_calls": -1}, {"window": 0}])
    def test_invalid_config(self, kwargs):
        with pytest.raises(ValueError):
            RateLimiter(**kwargs)

    def test_concurrent_admission_is_exact(self):
        limiter = RateLimiter(max_calls=25, window=60.0)
        admitted = []
        lock = threading.Lock()
        barrier = threading.Barrier(20)

        def worker():
            barrier.wait()
            for _ in range(5):
                if limiter.try_acquire():
                    with lock:
                        admitted.append(1)

        threads = [threading.Thread(target=worker) for _ in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(admitted) == 25


class TestCallWithRateLimit:
    """Test SafeCall.call_with_rate_limit."""

    def test_rejects_over_limit_without_calling(self, safe, log_messages):
        limiter = safe.create_rate_limiter(max_calls=2, window=60.0)
        op = Mock(return_value="ok")

        results = [safe.call_with_rate_limit(limiter, op) for _ in range(3)]

        assert [r.success for r in results] == [True, True, False]
        assert results[2].error == RATE_LIMITED
        assert op.call_count == 2
        assert log_messages == ["Rate limit exceeded"]

    def test_admits_again_after_window(self, safe):
        limiter = safe.create_rate_limiter(max_calls=1, window=0.05)
        op = Mock(return_value="ok")

        assert safe.call_with_rate_limit(limiter, op).success is True
        assert safe.call_with_rate_limit(limiter, op).success is False
        time.sleep(0.1)
        assert safe.call_with_rate_limit(limiter, op).success is True

    def test_admitted_failure_still_counts(self, safe):
        limiter = safe.create_rate_limiter(max_calls=1, window=60.0)
        op = Mock(side_effect=RuntimeError("nope"))

        first = safe.call_with_rate_limit(limiter, op)
        second = safe.call_with_rate_limit(limiter, op)

        assert first.error == "nope"
        assert second.error == RATE_LIMITED

    def test_defaults_from_settings(self, safe):
        limiter = safe.create_rate_limiter()
        assert limiter.max_calls == 10
        assert limiter.window == 60.0

    def test_composes_with_circuit_breaker(self, safe, log_messages):
        limiter = safe.create_rate_limiter(max_calls=3, window=60.0)
        breaker = safe.create_circuit_breaker(threshold=1)
        op = Mock(side_effect=RuntimeError("down"))

        results = [
            safe.call_with_rate_limit(limiter, safe.call_with_circuit_breaker, breaker, op)
            for _ in range(4)
        ]

        assert [r.error for r in results] == ["down", CIRCUIT_OPEN, CIRCUIT_OPEN, RATE_LIMITED]
        assert op.call_count == 1
        # The inner failure is reported once, not again by the outer call
        assert log_messages.count("down") == 1
