"""Shared failure funnel and registries.

Every failure of a funneled call passes through:
1. ErrorFilterChain - known-noisy errors are suppressed
2. The caller's log sink
3. GlobalHandlerRegistry - process-wide observers
"""

import logging
import re
import threading
from typing import Callable, Optional

from .invoker import InvocationResult
from .monitoring import metrics
from .scheduler import Scheduler

logger = logging.getLogger(__name__)

LogSink = Callable[[str], None]
GlobalHandler = Callable[[str, str, Optional[str]], None]
RetryVeto = Callable[[str], bool]


class ErrorFilterChain:
    """Ordered, append-only list of error patterns to suppress.

    Patterns are regular expressions matched with ``re.search`` against the
    error message. Readers take a snapshot, so matching never blocks on
    registration.
    """

    def __init__(self):
        self._patterns: tuple[re.Pattern, ...] = ()
        self._lock = threading.Lock()

    def add(self, pattern: str) -> None:
        """Append a pattern. Raises ``re.error`` if it does not compile."""
        compiled = re.compile(pattern)
        with self._lock:
            self._patterns = self._patterns + (compiled,)

    def matches(self, error: Optional[str]) -> bool:
        if error is None:
            return False
        return any(p.search(error) for p in self._patterns)

    @property
    def patterns(self) -> list[str]:
        return [p.pattern for p in self._patterns]

    def __len__(self) -> int:
        return len(self._patterns)


class GlobalHandlerRegistry:
    """Observers notified with ``(error, stack_trace, context_tag)``."""

    def __init__(self):
        self._handlers: tuple[GlobalHandler, ...] = ()
        self._lock = threading.Lock()

    def add(self, handler: GlobalHandler) -> None:
        with self._lock:
            self._handlers = self._handlers + (handler,)

    def remove(self, handler: GlobalHandler) -> bool:
        """Remove the first registration of ``handler``.

        Returns:
            True if a handler was removed
        """
        with self._lock:
            handlers = list(self._handlers)
            for i, h in enumerate(handlers):
                if h == handler:
                    del handlers[i]
                    self._handlers = tuple(handlers)
                    return True
        return False

    def dispatch(self, error: str, stack_trace: str, context_tag: Optional[str]) -> None:
        """Notify every handler; one handler failing never stops the others."""
        for handler in self._handlers:
            try:
                handler(error, stack_trace, context_tag)
            except Exception as e:
                logger.warning(f"Global error handler {handler!r} failed: {e}")

    def __len__(self) -> int:
        return len(self._handlers)


class SafeCallContext:
    """Process-level state shared by SafeCall instances.

    Holds the error filters, the global handlers, the retry veto and the
    periodic task scheduler. Create one per isolated environment (tests,
    embedded hosts) or use :data:`default_context`.
    """

    def __init__(self):
        self.filters = ErrorFilterChain()
        self.handlers = GlobalHandlerRegistry()
        self.scheduler = Scheduler()
        self._retry_veto: Optional[RetryVeto] = None

    @property
    def retry_veto(self) -> Optional[RetryVeto]:
        return self._retry_veto

    def set_retry_veto(self, veto: Optional[RetryVeto]) -> None:
        self._retry_veto = veto

    def should_retry(self, error: Optional[str]) -> bool:
        """Ask the veto callback whether a failed attempt may be retried."""
        veto = self._retry_veto
        if veto is None:
            return True
        try:
            return bool(veto(error))
        except Exception as e:
            logger.warning(f"Retry veto raised, not retrying: {e}")
            return False

    def report_failure(
        self,
        result: InvocationResult,
        context_tag: Optional[str],
        log_sink: LogSink,
    ) -> bool:
        """Send a failed result through the funnel.

        Args:
            result: Failed invocation result
            context_tag: Optional label prefixed to the log line
            log_sink: Where the failure is logged

        Returns:
            False if the failure matched an ignore pattern and was suppressed
        """
        if self.filters.matches(result.error):
            logger.debug(f"Suppressed filtered error: {result.error}")
            return False

        prefix = f"[{context_tag}] " if context_tag else ""
        log_sink(f"{prefix}{result.error}")
        metrics.failures_total.inc(context=context_tag or "")

        self.handlers.dispatch(result.error, result.stack_trace, context_tag)
        return True

    def shutdown(self) -> None:
        """Stop all scheduled tasks."""
        self.scheduler.stop_all()


default_context = SafeCallContext()
