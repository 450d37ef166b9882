"""Memoization of invocation results with time-to-live.

Results are keyed by the call's arguments as a structural tuple, so ``f(1, 2)``
and ``f("1_2")`` never share an entry. Failures are cached too: a failing call
is not repeated until its entry expires. Expired entries are dropped lazily
when read.
"""

import functools
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Hashable, Optional

from ..invoker import InvocationResult

logger = logging.getLogger(__name__)

_KWARGS_MARK = object()


@dataclass(frozen=True)
class MemoEntry:
    """Cached result and when it was stored."""

    result: InvocationResult
    cached_at: float

    def is_expired(self, ttl: Optional[float], now: float) -> bool:
        return ttl is not None and now - self.cached_at >= ttl


def make_key(args: tuple, kwargs: dict[str, Any]) -> Optional[Hashable]:
    """Build a cache key, or None if any argument is unhashable."""
    key: tuple = args
    if kwargs:
        key = args + (_KWARGS_MARK,) + tuple(sorted(kwargs.items()))
    try:
        hash(key)
    except TypeError:
        return None
    return key


class Memoizer:
    """Callable wrapper caching results of ``invoke(fn, *args, **kwargs)``.

    Args:
        fn: Operation to memoize
        invoke: Callable running ``fn`` and returning an InvocationResult
        ttl: Seconds an entry stays fresh; None never expires
    """

    def __init__(
        self,
        fn: Callable,
        invoke: Callable[..., InvocationResult],
        ttl: Optional[float] = None,
    ):
        if ttl is not None and ttl < 0:
            raise ValueError("ttl must be >= 0")

        functools.update_wrapper(self, fn)
        self.fn = fn
        self.ttl = ttl
        self._invoke = invoke
        self._cache: dict[Hashable, MemoEntry] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def __call__(self, *args, **kwargs) -> InvocationResult:
        key = make_key(args, kwargs)
        if key is None:
            logger.debug(f"Unhashable arguments for {self.fn!r}, not caching")
            return self._invoke(self.fn, *args, **kwargs)

        with self._lock:
            entry = self._cache.get(key)
            if entry is not None:
                if not entry.is_expired(self.ttl, time.monotonic()):
                    self.hits += 1
                    return entry.result
                del self._cache[key]
            self.misses += 1

        # Concurrent misses on the same key may each run the operation
        result = self._invoke(self.fn, *args, **kwargs)

        with self._lock:
            self._cache[key] = MemoEntry(result=result, cached_at=time.monotonic())
        return result

    def invalidate(self, *args, **kwargs) -> bool:
        """Drop the entry for these arguments. Returns True if one existed."""
        key = make_key(args, kwargs)
        if key is None:
            return False
        with self._lock:
            return self._cache.pop(key, None) is not None

    def cache_clear(self) -> None:
        with self._lock:
            self._cache.clear()
            self.hits = 0
            self.misses = 0

    def cache_info(self) -> dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            return {
                "hits": self.hits,
                "misses": self.misses,
                "size": len(self._cache),
                "ttl": self.ttl,
            }
