"""Failure-isolated invocation of operations.

Provides:
- InvocationResult, the tagged success/failure value every policy returns
- invoke / ainvoke, which capture raised exceptions into a result
- Sentinel messages for policy rejections
"""

import asyncio
import logging
import traceback
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Optional

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


# Messages of failures produced by a policy rather than by the operation
CIRCUIT_OPEN = "Circuit breaker open"
RATE_LIMITED = "Rate limited"
TIMED_OUT = "Timeout"
RETRIES_EXHAUSTED = "All retry attempts failed"

# Messages that mean the operation was never run
REJECTION_MESSAGES = frozenset({CIRCUIT_OPEN, RATE_LIMITED, TIMED_OUT})


@dataclass(frozen=True)
class InvocationResult:
    """Outcome of one invocation.

    Unpacks as a ``(success, value_or_error)`` pair:

        ok, result = safe.call(fetch_profile, user_id)

    ``reported`` marks failures that were already sent through the failure
    funnel (or logged as a policy rejection), so an outer policy wrapping
    this call does not report them again.
    """

    success: bool
    value: Any = None
    error: Optional[str] = None
    cause: Optional[BaseException] = None
    reported: bool = False

    @classmethod
    def ok(cls, value: Any) -> "InvocationResult":
        return cls(success=True, value=value)

    @classmethod
    def failed(cls, error: str, cause: Optional[BaseException] = None) -> "InvocationResult":
        return cls(success=False, error=error, cause=cause)

    @classmethod
    def rejected(cls, error: str, cause: Optional[BaseException] = None) -> "InvocationResult":
        """Failure produced by a policy, already logged by it."""
        return cls(success=False, error=error, cause=cause, reported=True)

    @property
    def result(self) -> Any:
        """Value on success, error message on failure."""
        return self.value if self.success else self.error

    @property
    def is_rejection(self) -> bool:
        """True if a policy rejected the call instead of running it."""
        return not self.success and self.error in REJECTION_MESSAGES

    @property
    def stack_trace(self) -> str:
        """Formatted traceback of the captured exception, if any."""
        if self.cause is None:
            return ""
        return "".join(
            traceback.format_exception(type(self.cause), self.cause, self.cause.__traceback__)
        )

    def __iter__(self) -> Iterator[Any]:
        yield self.success
        yield self.result


def error_message(exc: BaseException) -> str:
    """Message used to report a captured exception."""
    return str(exc) or type(exc).__name__


def _wrap(value: Any) -> InvocationResult:
    if isinstance(value, InvocationResult):
        return value
    return InvocationResult.ok(value)


def invoke(fn: Callable, *args, **kwargs) -> InvocationResult:
    """Run ``fn`` and capture any exception into a failed result.

    If ``fn`` itself returns an InvocationResult (a nested policy call), that
    result is returned as is.

    Args:
        fn: Synchronous callable
        *args: Positional arguments for ``fn``
        **kwargs: Keyword arguments for ``fn``

    Returns:
        InvocationResult

    Raises:
        ConfigurationError: If ``fn`` is a coroutine function
    """
    if asyncio.iscoroutinefunction(fn):
        raise ConfigurationError(
            f"{getattr(fn, '__name__', fn)!r} is a coroutine function, use the async call path"
        )

    try:
        value = fn(*args, **kwargs)
    except Exception as e:
        return InvocationResult.failed(error_message(e), e)
    return _wrap(value)


async def ainvoke(fn: Callable, *args, **kwargs) -> InvocationResult:
    """Async twin of :func:`invoke`; awaits coroutine functions."""
    try:
        if asyncio.iscoroutinefunction(fn):
            value = await fn(*args, **kwargs)
        else:
            value = fn(*args, **kwargs)
    except Exception as e:
        return InvocationResult.failed(error_message(e), e)
    return _wrap(value)


def safe_call(fn: Callable, *args, **kwargs) -> InvocationResult:
    """Invoke ``fn`` without a context, warning on failure."""
    result = invoke(fn, *args, **kwargs)
    if not result.success:
        logger.warning(f"[SafeCall]: {result.error}")
    return result
