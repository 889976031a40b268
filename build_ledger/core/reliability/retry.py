"""
Retry policy — bounded exponential backoff with jitter.

Used around the pull → mutate → commit → push cycle so that a push
rejected by a concurrent writer is retried against the new remote state
instead of failing the run.
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass
class RetryPolicy:
    """How many times to attempt an operation and how long to wait between."""

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def delay_for(self, attempt: int) -> float:
        """Backoff before retrying after ``attempt`` (1-based) failed."""
        delay = min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)
        jitter = random.uniform(0, delay * 0.3)
        return delay + jitter

    def exhausted(self, attempt: int) -> bool:
        return attempt >= self.max_attempts

    def wait(self, attempt: int) -> float:
        """Sleep for the backoff of ``attempt`` and return the delay used."""
        delay = self.delay_for(attempt)
        logger.debug(
            "Retry scheduled: attempt %d/%d, delay %.1fs",
            attempt + 1,
            self.max_attempts,
            delay,
        )
        if delay > 0:
            time.sleep(delay)
        return delay
