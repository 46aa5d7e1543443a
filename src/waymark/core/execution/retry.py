"""
Retry helper with exponential backoff for flaky async operations.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')

RETRYABLE_MARKERS = ('timeout', 'network', 'rate limit', 'schema')


def is_transient_error(error: BaseException) -> bool:
    """Default retry condition: messages that look like transient failures."""
    message = str(error).lower()
    return isinstance(error, (asyncio.TimeoutError, ConnectionError)) or any(
        marker in message for marker in RETRYABLE_MARKERS
    )


@dataclass
class RetryOptions:
    max_attempts: int = 3
    base_delay: float = 1.0      # seconds
    max_delay: float = 10.0
    backoff_multiplier: float = 2.0
    retry_condition: Callable[[BaseException], bool] = is_transient_error

    def delay_for(self, attempt: int) -> float:
        return min(self.base_delay * self.backoff_multiplier ** (attempt - 1), self.max_delay)


async def with_retry(operation: Callable[[], Awaitable[T]],
                     options: Optional[RetryOptions] = None) -> T:
    """
    Run operation, retrying transient failures.

    Args:
        operation: Zero-argument callable returning a fresh awaitable per attempt
        options: Retry policy

    Returns:
        The first successful result

    Raises:
        The last error once attempts are exhausted, or immediately when the
        error does not satisfy the retry condition
    """
    options = options or RetryOptions()

    for attempt in range(1, options.max_attempts + 1):
        try:
            if attempt > 1:
                logger.debug(f"Attempt {attempt}/{options.max_attempts}")
            return await operation()
        except Exception as e:
            if attempt >= options.max_attempts:
                logger.debug(f"All {options.max_attempts} attempts failed")
                raise
            if not options.retry_condition(e):
                logger.debug("Error does not meet retry condition, not retrying")
                raise

            delay = options.delay_for(attempt)
            logger.debug(f"Retrying in {delay:.1f}s. Error: {e}")
            await asyncio.sleep(delay)

    raise ValueError("max_attempts must be at least 1")
