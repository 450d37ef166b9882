"""Result caching for SafeCall."""

from .memoizer import MemoEntry, Memoizer, make_key

__all__ = ["Memoizer", "MemoEntry", "make_key"]
