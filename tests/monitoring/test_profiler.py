"""Tests for the call profiler."""

import time

import pytest

from safecall.monitoring.profiler import Profiler, ProfilerStats


def fail():
    raise RuntimeError("boom")


class TestProfiler:
    """Test statistics accumulation."""

    def test_empty_stats_are_zero(self):
        stats = Profiler().get_stats()

        assert stats == ProfilerStats(
            calls=0,
            errors=0,
            error_rate=0.0,
            avg_time=0.0,
            slow_calls=0,
            slow_call_rate=0.0,
            total_time=0.0,
        )

    def test_rates(self):
        profiler = Profiler(slow_threshold=0.1)
        profiler.record(0.05, success=True)
        profiler.record(0.2, success=False)
        profiler.record(0.15, success=True)
        profiler.record(0.0, success=False)

        stats = profiler.get_stats()

        assert stats.calls == 4
        assert stats.errors == 2
        assert stats.error_rate == 0.5
        assert stats.slow_calls == 2
        assert stats.slow_call_rate == 0.5
        assert stats.total_time == pytest.approx(0.4)
        assert stats.avg_time == pytest.approx(0.1)

    def test_threshold_is_exclusive(self):
        profiler = Profiler(slow_threshold=0.1)
        profiler.record(0.1, success=True)
        assert profiler.get_stats().slow_calls == 0

    def test_reset(self):
        profiler = Profiler()
        profiler.record(1.0, success=False)
        profiler.reset()
        assert profiler.get_stats().calls == 0

    def test_to_dict(self):
        profiler = Profiler()
        profiler.record(0.5, success=True)

        data = profiler.get_stats().to_dict()

        assert data["calls"] == 1
        assert set(data) == {
            "calls",
            "errors",
            "error_rate",
            "avg_time",
            "slow_calls",
            "slow_call_rate",
            "total_time",
        }

    def test_negative_threshold(self):
        with pytest.raises(ValueError):
            Profiler(slow_threshold=-0.1)


class TestCallWithProfiler:
    """Test SafeCall.call_with_profiler."""

    def test_records_success_and_failure(self, safe):
        profiler = safe.create_profiler()

        ok = safe.call_with_profiler(profiler, lambda: 7)
        bad = safe.call_with_profiler(profiler, fail)

        assert tuple(ok) == (True, 7)
        assert tuple(bad) == (False, "boom")
        stats = profiler.get_stats()
        assert stats.calls == 2
        assert stats.errors == 1
        assert stats.error_rate == 0.5

    def test_slow_call_detected(self, safe):
        profiler = safe.create_profiler(slow_threshold=0.01)

        safe.call_with_profiler(profiler, time.sleep, 0.05)
        safe.call_with_profiler(profiler, lambda: None)

        stats = profiler.get_stats()
        assert stats.slow_calls == 1
        assert stats.total_time >= 0.05

    def test_failures_still_reported(self, safe, log_messages):
        profiler = safe.create_profiler()
        safe.call_with_profiler(profiler, fail, context_tag="report")

        assert log_messages == ["[report] boom"]

    def test_default_threshold_from_settings(self, safe):
        assert safe.create_profiler().slow_threshold == 0.1
