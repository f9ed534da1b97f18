"""Retry policy for pipeline transitions."""

import logging
import random
import time
from dataclasses import dataclass, field
from typing import Callable

logger = logging.getLogger(__name__)


def exponential_backoff(attempt: int) -> float:
    """Seconds to wait after failed attempt ``attempt`` (1-indexed): 2, 4, 8, ..."""
    return float(2**attempt)


@dataclass
class RetryPolicy:
    """How many times to attempt a transition and how long to wait in between.

    ``sleep`` is injectable so tests can record delays instead of waiting.

    Example:
        >>> delays = []
        >>> policy = RetryPolicy(max_attempts=3, sleep=delays.append)
        >>> for attempt in (1, 2):
        ...     _ = policy.wait(attempt)
        >>> delays
        [2.0, 4.0]
    """

    max_attempts: int = 3
    backoff: Callable[[int], float] = exponential_backoff
    sleep: Callable[[float], None] = field(default=time.sleep)
    max_delay: float = 60.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def delay_for(self, attempt: int) -> float:
        return min(self.backoff(attempt), self.max_delay)

    def should_retry(self, attempt: int) -> bool:
        return attempt < self.max_attempts

    def wait(self, attempt: int) -> float:
        delay = self.delay_for(attempt)
        logger.debug(f"Backing off {delay:.2f}s after attempt {attempt}")
        self.sleep(delay)
        return delay

    @classmethod
    def with_jitter(
        cls,
        max_attempts: int = 3,
        jitter: float = 0.25,
        sleep: Callable[[float], None] = time.sleep,
    ) -> "RetryPolicy":
        """Exponential backoff spread by +/- ``jitter`` so workers don't retry in lockstep."""

        def backoff(attempt: int) -> float:
            base = exponential_backoff(attempt)
            return max(0.0, base * (1 + random.uniform(-jitter, jitter)))

        return cls(max_attempts=max_attempts, backoff=backoff, sleep=sleep)
