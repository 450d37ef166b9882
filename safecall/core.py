"""SafeCall: fail-safe wrapper for unsafe calls.

One ``SafeCall`` instance carries a log sink and retry defaults; process-wide
state (error filters, global handlers, retry veto, scheduled tasks) lives on a
:class:`~safecall.context.SafeCallContext`.

Every ``call_with_*`` method returns an :class:`InvocationResult` and never
raises for a failing operation.
"""

import asyncio
import logging
import threading
import time
from concurrent.futures import Executor, Future
from dataclasses import replace
from typing import Any, Callable, Iterable, Mapping, Optional

from .caching import Memoizer
from .config import Settings
from .config import settings as default_settings
from .context import GlobalHandler, LogSink, RetryVeto, SafeCallContext, default_context
from .errors import ConfigurationError
from .invoker import (
    CIRCUIT_OPEN,
    RATE_LIMITED,
    RETRIES_EXHAUSTED,
    TIMED_OUT,
    InvocationResult,
    ainvoke,
    invoke,
)
from .monitoring import metrics
from .monitoring.profiler import Profiler
from .resilience.circuit_breaker import CircuitBreaker
from .resilience.rate_limiter import RateLimiter
from .resilience.retry import RetryConfig, calculate_backoff
from .resilience.timeout import run_with_async_timeout, run_with_timeout, validate_timeout

logger = logging.getLogger("safecall")


class SafeCall:
    """Failure containment and recovery policies around arbitrary callables.

    Usage:
        safe = SafeCall()
        ok, profile = safe.call(fetch_profile, user_id, context_tag="profile")

        breaker = safe.create_circuit_breaker(threshold=3, reset_timeout=10)
        result = safe.call_with_circuit_breaker(breaker, fetch_profile, user_id)
        if result.is_rejection:
            ...
    """

    def __init__(
        self,
        log_sink: Optional[LogSink] = None,
        context: Optional[SafeCallContext] = None,
        settings: Optional[Settings] = None,
    ):
        """Initialize SafeCall.

        Args:
            log_sink: Callable receiving each log message; defaults to a
                warning on the ``safecall`` logger
            context: Shared registries; defaults to the process-wide context
            settings: Library defaults; defaults to environment settings
        """
        self.settings = settings or default_settings
        self.context = context or default_context
        self.log: LogSink = log_sink or self._default_sink
        self.retry_defaults = RetryConfig(
            attempts=self.settings.retry_attempts,
            initial_delay=self.settings.retry_delay,
            backoff_multiplier=self.settings.retry_backoff,
        )
        self._executor: Optional[Executor] = None

    def _default_sink(self, message: str) -> None:
        logger.warning(f"{self.settings.log_prefix}: {message}")

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def set_logger(self, log_sink: LogSink) -> "SafeCall":
        self.log = log_sink
        return self

    def set_retry_defaults(
        self,
        attempts: Optional[int] = None,
        delay: Optional[float] = None,
        backoff: Optional[float] = None,
    ) -> "SafeCall":
        """Replace this instance's retry defaults.

        Omitted values fall back to the library settings, not to the previous
        defaults.
        """
        self.retry_defaults = RetryConfig(
            attempts=self.settings.retry_attempts if attempts is None else attempts,
            initial_delay=self.settings.retry_delay if delay is None else delay,
            backoff_multiplier=self.settings.retry_backoff if backoff is None else backoff,
        )
        return self

    def set_retry_veto(self, veto: Optional[RetryVeto]) -> None:
        """Register a callback deciding, per error message, whether to retry."""
        self.context.set_retry_veto(veto)

    def add_error_ignore_pattern(self, pattern: str) -> None:
        self.context.filters.add(pattern)

    def add_global_handler(self, handler: GlobalHandler) -> None:
        self.context.handlers.add(handler)

    def remove_global_handler(self, handler: GlobalHandler) -> bool:
        return self.context.handlers.remove(handler)

    def set_executor(self, executor: Optional[Executor]) -> "SafeCall":
        """Executor used by :meth:`call_async`."""
        self._executor = executor
        return self

    # ------------------------------------------------------------------
    # Basic calls
    # ------------------------------------------------------------------

    def call(
        self,
        fn: Callable,
        *args,
        context_tag: Optional[str] = None,
        **kwargs,
    ) -> InvocationResult:
        """Invoke ``fn`` and report any failure through the funnel.

        Args:
            fn: Operation to run
            *args: Positional arguments for ``fn``
            context_tag: Label prefixed to the logged failure
            **kwargs: Keyword arguments for ``fn``

        Returns:
            InvocationResult
        """
        return self._report(invoke(fn, *args, **kwargs), context_tag)

    async def acall(
        self,
        fn: Callable,
        *args,
        context_tag: Optional[str] = None,
        **kwargs,
    ) -> InvocationResult:
        """Async twin of :meth:`call`; awaits coroutine functions."""
        return self._report(await ainvoke(fn, *args, **kwargs), context_tag)

    def _report(self, result: InvocationResult, context_tag: Optional[str]) -> InvocationResult:
        if result.success or result.reported:
            return result
        self.context.report_failure(result, context_tag, self.log)
        return replace(result, reported=True)

    def call_async(
        self,
        fn: Callable,
        *args,
        context_tag: Optional[str] = None,
        **kwargs,
    ) -> "Future[InvocationResult]":
        """Run :meth:`call` on the configured executor.

        Raises:
            ConfigurationError: If no executor was set with :meth:`set_executor`
        """
        if self._executor is None:
            raise ConfigurationError(
                "No executor provided. Use SafeCall.set_executor(executor)"
            )
        return self._executor.submit(self.call, fn, *args, context_tag=context_tag, **kwargs)

    def call_deferred(
        self,
        fn: Callable,
        *args,
        context_tag: Optional[str] = None,
        **kwargs,
    ) -> threading.Thread:
        """Run :meth:`call` on a background thread without waiting for it."""
        thread = threading.Thread(
            target=self.call,
            args=(fn, *args),
            kwargs={"context_tag": context_tag, **kwargs},
            name="safecall-deferred",
            daemon=True,
        )
        thread.start()
        return thread

    def call_delayed(
        self,
        delay: float,
        fn: Callable,
        *args,
        context_tag: Optional[str] = None,
        **kwargs,
    ) -> InvocationResult:
        """Sleep ``delay`` seconds, then :meth:`call`."""
        time.sleep(delay)
        return self.call(fn, *args, context_tag=context_tag, **kwargs)

    def call_batch(self, functions: Iterable[Callable]) -> list[InvocationResult]:
        """Call each zero-argument function in order."""
        return [self.call(fn) for fn in functions]

    def protect(self, target: Mapping[str, Any]) -> dict[str, Any]:
        """Copy a mapping, wrapping callable values so they go through :meth:`call`.

        Wrapped functions return an InvocationResult instead of raising.
        """
        protected: dict[str, Any] = {}
        for key, value in target.items():
            if callable(value):
                protected[key] = self._protected(value, str(key))
            else:
                protected[key] = value
        return protected

    def _protected(self, fn: Callable, name: str) -> Callable[..., InvocationResult]:
        def wrapper(*args, **kwargs) -> InvocationResult:
            return self.call(fn, *args, **kwargs)

        wrapper.__name__ = name
        wrapper.__wrapped__ = fn
        return wrapper

    # ------------------------------------------------------------------
    # Retry
    # ------------------------------------------------------------------

    def _retry_config(
        self,
        attempts: Optional[int],
        delay: Optional[float],
        backoff: Optional[float],
    ) -> RetryConfig:
        return self.retry_defaults.override(attempts=attempts, delay=delay, backoff=backoff)

    def _retry_attempt_failed(
        self, result: InvocationResult, attempt: int, config: RetryConfig
    ) -> bool:
        """Log a failed attempt. Returns False if the veto stops retrying."""
        metrics.retries_total.inc()
        if not self.context.should_retry(result.error):
            logger.info(f"Retry vetoed after attempt {attempt}/{config.attempts}")
            return False
        self.log(f"[Retry {attempt}/{config.attempts}] {result.error}")
        return True

    def call_with_retry(
        self,
        fn: Callable,
        *args,
        attempts: Optional[int] = None,
        delay: Optional[float] = None,
        backoff: Optional[float] = None,
        **kwargs,
    ) -> InvocationResult:
        """Call ``fn`` until it succeeds or the attempts run out.

        ``attempts``, ``delay`` and ``backoff`` are reserved keywords: they
        configure the retry and are never passed to ``fn``.

        Args:
            fn: Operation to run
            *args: Positional arguments for ``fn``
            attempts: Maximum attempts (default: retry defaults)
            delay: Seconds before the second attempt
            backoff: Multiplier applied to the delay after each wait
            **kwargs: Keyword arguments for ``fn``

        Returns:
            The first successful result, or a failed result with message
            ``"All retry attempts failed"`` carrying the last exception
        """
        config = self._retry_config(attempts, delay, backoff)
        last_failure: Optional[InvocationResult] = None

        for attempt in range(1, config.attempts + 1):
            result = invoke(fn, *args, **kwargs)
            if result.success:
                return result

            last_failure = result
            if not self._retry_attempt_failed(result, attempt, config):
                break

            if attempt < config.attempts:
                time.sleep(calculate_backoff(attempt - 1, config))

        return InvocationResult.rejected(
            RETRIES_EXHAUSTED, last_failure.cause if last_failure is not None else None
        )

    async def acall_with_retry(
        self,
        fn: Callable,
        *args,
        attempts: Optional[int] = None,
        delay: Optional[float] = None,
        backoff: Optional[float] = None,
        **kwargs,
    ) -> InvocationResult:
        """Async twin of :meth:`call_with_retry`."""
        config = self._retry_config(attempts, delay, backoff)
        last_failure: Optional[InvocationResult] = None

        for attempt in range(1, config.attempts + 1):
            result = await ainvoke(fn, *args, **kwargs)
            if result.success:
                return result

            last_failure = result
            if not self._retry_attempt_failed(result, attempt, config):
                break

            if attempt < config.attempts:
                await asyncio.sleep(calculate_backoff(attempt - 1, config))

        return InvocationResult.rejected(
            RETRIES_EXHAUSTED, last_failure.cause if last_failure is not None else None
        )

    # ------------------------------------------------------------------
    # Circuit breaker
    # ------------------------------------------------------------------

    def create_circuit_breaker(
        self,
        threshold: Optional[int] = None,
        reset_timeout: Optional[float] = None,
        name: str = "default",
    ) -> CircuitBreaker:
        return CircuitBreaker(
            threshold=self.settings.breaker_threshold if threshold is None else threshold,
            reset_timeout=(
                self.settings.breaker_reset_timeout if reset_timeout is None else reset_timeout
            ),
            name=name,
        )

    def call_with_circuit_breaker(
        self,
        breaker: CircuitBreaker,
        fn: Callable,
        *args,
        **kwargs,
    ) -> InvocationResult:
        """Call ``fn`` unless ``breaker`` is OPEN.

        Returns:
            The call's result, or a failed ``"Circuit breaker open"`` result
            when rejected without calling ``fn``
        """
        now = time.monotonic()

        if not breaker.allow_request(now):
            self.log("Circuit breaker is OPEN - rejecting call")
            return InvocationResult.rejected(CIRCUIT_OPEN)

        result = self.call(fn, *args, **kwargs)

        if result.success:
            breaker.record_success()
        elif breaker.record_failure(now):
            self.log(f"Circuit breaker OPENED after {breaker.threshold} failures")

        return result

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    def create_rate_limiter(
        self,
        max_calls: Optional[int] = None,
        window: Optional[float] = None,
        name: str = "default",
    ) -> RateLimiter:
        return RateLimiter(
            max_calls=self.settings.rate_limit_max_calls if max_calls is None else max_calls,
            window=self.settings.rate_limit_window if window is None else window,
            name=name,
        )

    def call_with_rate_limit(
        self,
        limiter: RateLimiter,
        fn: Callable,
        *args,
        **kwargs,
    ) -> InvocationResult:
        """Call ``fn`` if ``limiter`` admits it, else fail with ``"Rate limited"``."""
        if not limiter.try_acquire():
            self.log("Rate limit exceeded")
            return InvocationResult.rejected(RATE_LIMITED)
        return self.call(fn, *args, **kwargs)

    # ------------------------------------------------------------------
    # Timeout
    # ------------------------------------------------------------------

    def _timed_out(self, timeout: float) -> InvocationResult:
        metrics.timeouts_total.inc()
        self.log(f"Function call timed out after {timeout} seconds")
        return InvocationResult.rejected(TIMED_OUT)

    def call_with_timeout(
        self,
        timeout: float,
        fn: Callable,
        *args,
        **kwargs,
    ) -> InvocationResult:
        """Call ``fn`` on a worker thread, giving up after ``timeout`` seconds.

        A call that overruns is not cancelled; it finishes in the background
        and its result is discarded.
        """
        completed, result = run_with_timeout(timeout, self.call, fn, *args, **kwargs)
        if completed:
            return result
        return self._timed_out(timeout)

    async def acall_with_timeout(
        self,
        timeout: float,
        fn: Callable,
        *args,
        **kwargs,
    ) -> InvocationResult:
        """Async twin of :meth:`call_with_timeout`; the task is not cancelled."""
        validate_timeout(timeout)
        completed, result = await run_with_async_timeout(
            timeout, self.acall(fn, *args, **kwargs)
        )
        if completed:
            return result
        return self._timed_out(timeout)

    # ------------------------------------------------------------------
    # Memoization and profiling
    # ------------------------------------------------------------------

    def memoize(self, fn: Callable, ttl: Optional[float] = None) -> Memoizer:
        """Wrap ``fn`` so results (failures included) are cached for ``ttl`` seconds."""
        return Memoizer(fn, self.call, ttl=ttl)

    def create_profiler(
        self,
        slow_threshold: Optional[float] = None,
        name: str = "default",
    ) -> Profiler:
        return Profiler(
            slow_threshold=(
                self.settings.profiler_slow_threshold if slow_threshold is None else slow_threshold
            ),
            name=name,
        )

    def call_with_profiler(
        self,
        profiler: Profiler,
        fn: Callable,
        *args,
        **kwargs,
    ) -> InvocationResult:
        start = time.perf_counter()
        result = self.call(fn, *args, **kwargs)
        profiler.record(time.perf_counter() - start, result.success)
        return result

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def schedule(self, name: str, interval: float, fn: Callable[[str], Any]) -> bool:
        """Run ``fn(name)`` every ``interval`` seconds until stopped.

        Returns:
            False if a task with this name is already running

        Raises:
            ConfigurationError: If ``fn`` is a coroutine function
        """
        if asyncio.iscoroutinefunction(fn):
            raise ConfigurationError(
                f"{getattr(fn, '__name__', fn)!r} is a coroutine function and cannot be scheduled"
            )
        return self.context.scheduler.schedule(
            name, interval, lambda task_name: self.call(fn, task_name, context_tag=task_name)
        )

    def stop_schedule(self, name: str) -> bool:
        return self.context.scheduler.stop(name)

    def is_scheduled(self, name: str) -> bool:
        return self.context.scheduler.is_scheduled(name)

    def scheduled_names(self) -> list[str]:
        return self.context.scheduler.names()
