"""Retry with exponential backoff.

The i-th wait (1-indexed) is ``initial_delay * backoff_multiplier ** (i - 1)``.
No jitter and no cap, so the schedule is fully predictable.
"""

import logging
from dataclasses import dataclass
from typing import Iterator, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for retry behavior."""

    attempts: int = 3
    initial_delay: float = 0.1  # Seconds before the first retry
    backoff_multiplier: float = 1.5

    def __post_init__(self):
        if self.attempts < 0:
            raise ValueError("attempts must be >= 0")
        if self.initial_delay < 0:
            raise ValueError("initial_delay must be >= 0")
        if self.backoff_multiplier <= 0:
            raise ValueError("backoff_multiplier must be > 0")

    def override(
        self,
        attempts: Optional[int] = None,
        delay: Optional[float] = None,
        backoff: Optional[float] = None,
    ) -> "RetryConfig":
        """Copy with any given values replaced."""
        return RetryConfig(
            attempts=self.attempts if attempts is None else attempts,
            initial_delay=self.initial_delay if delay is None else delay,
            backoff_multiplier=self.backoff_multiplier if backoff is None else backoff,
        )

    def delays(self) -> Iterator[float]:
        """Waits between consecutive attempts (``attempts - 1`` of them)."""
        for attempt in range(max(self.attempts - 1, 0)):
            yield calculate_backoff(attempt, self)


def calculate_backoff(attempt: int, config: RetryConfig) -> float:
    """Calculate backoff delay for a retry attempt.

    Args:
        attempt: Current attempt number (0-indexed)
        config: Retry configuration

    Returns:
        Delay in seconds
    """
    return config.initial_delay * (config.backoff_multiplier**attempt)
