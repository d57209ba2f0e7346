"""Redelivery policies for failed task messages.

The retry budget belongs to the message (``max_retries`` travels with every
enqueue), so strategies here only decide *how long* to wait and whether the
error is eligible at all. Errors flagged ``retryable=False`` are never
redelivered, whatever budget remains.

Example:
    >>> from orderflow.execution.retry import ExponentialBackoff
    >>>
    >>> strategy = ExponentialBackoff(base_delay=15.0, max_delay=600.0, jitter=False)
    >>> [strategy.next_delay(a) for a in range(3)]
    [15.0, 30.0, 60.0]
"""

import random
from abc import ABC, abstractmethod
from dataclasses import dataclass

from orderflow.core.errors import get_retry_after, is_retryable


class RetryStrategy(ABC):
    """Abstract base for retry strategies."""

    @abstractmethod
    def next_delay(self, attempt: int) -> float:
        """Delay in seconds before redelivery.

        Args:
            attempt: Zero-based retry number (0 = first retry)
        """
        ...

    def should_retry(self, attempt: int, max_retries: int, error: BaseException | None = None) -> bool:
        """True if the message should be redelivered after ``attempt`` failed retries."""
        if attempt >= max_retries:
            return False
        if error is not None and not is_retryable(error):
            return False
        return True

    def delay_for(self, attempt: int, error: BaseException | None = None) -> float:
        """``next_delay`` unless the error asks for a specific ``retry_after``."""
        if error is not None:
            retry_after = get_retry_after(error)
            if retry_after is not None:
                return float(retry_after)
        return self.next_delay(attempt)


@dataclass
class ExponentialBackoff(RetryStrategy):
    """Exponential backoff with optional jitter.

    Delay = min(base_delay * (multiplier ** attempt), max_delay) + jitter
    """

    base_delay: float = 15.0
    max_delay: float = 600.0
    multiplier: float = 2.0
    jitter: bool = True
    jitter_range: float = 0.25

    def next_delay(self, attempt: int) -> float:
        delay = min(self.base_delay * (self.multiplier ** attempt), self.max_delay)
        if self.jitter:
            jitter_amount = delay * self.jitter_range
            delay = max(0.0, delay + random.uniform(-jitter_amount, jitter_amount))
        return delay


@dataclass
class ConstantBackoff(RetryStrategy):
    """Constant delay between retries."""

    delay: float = 15.0

    def next_delay(self, attempt: int) -> float:
        return self.delay


@dataclass
class NoRetry(RetryStrategy):
    """Never redeliver."""

    def next_delay(self, attempt: int) -> float:
        return 0.0

    def should_retry(self, attempt: int, max_retries: int, error: BaseException | None = None) -> bool:
        return False


__all__ = [
    "RetryStrategy",
    "ExponentialBackoff",
    "ConstantBackoff",
    "NoRetry",
]
