"""
Bounded retry over result-returning asynchronous operations.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional, Tuple, Type

from .errors import NetworkError, OperatorError, RateLimitError, TransactionError
from .result import Err, Result
from .task import ResultTask

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """
    Fixed-delay retry policy.

    Attributes:
        max_attempts: Total number of invocations allowed (>= 1)
        delay: Seconds to wait between attempts
        retryable: Error types worth another attempt; errors whose
            ``retryable`` flag is False are never retried
        name: Label used in log messages
    """

    max_attempts: int = 3
    delay: float = 0.0
    retryable: Tuple[Type[OperatorError], ...] = field(
        default=(NetworkError, RateLimitError, TransactionError)
    )
    name: str = "operation"

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.delay < 0:
            raise ValueError(f"delay must be >= 0, got {self.delay}")

    def should_retry(self, error: OperatorError, attempt: int) -> bool:
        """
        Determine if an error should trigger a retry.

        Args:
            error: Error returned by the failed attempt
            attempt: Current attempt number (0-based)
        """
        if attempt >= self.max_attempts - 1:
            return False
        if not getattr(error, "retryable", False):
            return False
        return isinstance(error, self.retryable)

    async def run(self, task: ResultTask, label: Optional[str] = None) -> Result:
        """
        Invoke ``task`` until it succeeds, fails permanently or the attempt
        budget is exhausted.

        Returns:
            The first ``Ok``, or the last ``Err`` observed
        """
        label = label or self.name
        last: Optional[Result] = None

        for attempt in range(self.max_attempts):
            result = await task()
            if not isinstance(result, Err):
                return result

            last = result
            if not self.should_retry(result.error, attempt):
                if attempt < self.max_attempts - 1:
                    logger.info(f"Not retrying {label}: {result.error}")
                break

            logger.info(
                f"Retrying {label} in {self.delay}s... "
                f"(attempt {attempt + 1}/{self.max_attempts}): {result.error}"
            )
            if self.delay:
                await asyncio.sleep(self.delay)

        return last


# Monitor reads: 3 attempts back to back
MONITOR_READ_POLICY = RetryPolicy(max_attempts=3, delay=0.0, name="monitor read")

# Ledger writes: 3 attempts, 5 seconds apart
TRANSACTION_POLICY = RetryPolicy(max_attempts=3, delay=5.0, name="transaction")
