"""Exponential-backoff decision for rate-limited fetches."""

import random
from typing import Callable, NamedTuple

DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY = 2.0  # seconds


class RetryDecision(NamedTuple):
    should_retry: bool
    delay: float


class RetryPolicy:
    """Decide whether, and after how long, a rate-limited fetch is retried.

    The delay before retry *n* (0-based) is ``base * 2**n`` plus a random
    jitter in ``[0, jitter_ratio * base)``.  Keeping the jitter below *base*
    guarantees that successive delays never shrink.
    """

    def __init__(
        self,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_delay: float = DEFAULT_BASE_DELAY,
        jitter_ratio: float = 0.1,
        rng: Callable[[float, float], float] = random.uniform,
    ) -> None:
        if not 0 <= jitter_ratio <= 1:
            raise ValueError("jitter_ratio must be between 0 and 1.")
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.jitter_ratio = jitter_ratio
        self._rng = rng

    def decide(self, attempt: int) -> RetryDecision:
        """Return the decision for a failure after *attempt* prior retries."""
        if attempt >= self.max_retries:
            return RetryDecision(False, 0.0)
        jitter = self._rng(0.0, self.jitter_ratio * self.base_delay) if self.jitter_ratio else 0.0
        return RetryDecision(True, self.base_delay * 2 ** attempt + jitter)
