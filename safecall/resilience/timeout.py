"""Timeout guard for blocking and async calls.

The guard only stops *waiting*. A call that overruns is not cancelled: it
keeps running in the background and its result is dropped.
"""

import asyncio
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)

# asyncio tasks that outlived their timeout; kept referenced until they finish
_orphaned_tasks: set[asyncio.Task] = set()


def validate_timeout(timeout: float) -> None:
    if timeout < 0:
        raise ValueError("timeout must be >= 0")


def run_with_timeout(timeout: float, fn: Callable, *args, **kwargs) -> tuple[bool, Any]:
    """Run ``fn`` on a worker thread and wait at most ``timeout`` seconds.

    Args:
        timeout: Seconds to wait
        fn: Callable to run; exceptions it raises propagate to the caller
        *args: Positional arguments for ``fn``
        **kwargs: Keyword arguments for ``fn``

    Returns:
        Tuple of (completed, value). ``value`` is None when not completed.
    """
    validate_timeout(timeout)

    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="safecall-timeout")
    future: Future = executor.submit(fn, *args, **kwargs)
    # Don't block on the worker; an overrunning call finishes on its own.
    executor.shutdown(wait=False)

    try:
        return True, future.result(timeout=timeout)
    except FuturesTimeoutError:
        logger.debug(f"Timeout after {timeout}s in {getattr(fn, '__name__', fn)}")
        return False, None


async def run_with_async_timeout(timeout: float, coro: Awaitable) -> tuple[bool, Any]:
    """Await ``coro`` for at most ``timeout`` seconds without cancelling it.

    Returns:
        Tuple of (completed, value)
    """
    validate_timeout(timeout)

    task = asyncio.ensure_future(coro)
    done, _ = await asyncio.wait({task}, timeout=timeout)
    if task in done:
        return True, task.result()

    _orphaned_tasks.add(task)
    task.add_done_callback(_orphaned_tasks.discard)
    return False, None


def orphaned_task_count() -> int:
    """Async calls that timed out and are still running."""
    return len(_orphaned_tasks)
