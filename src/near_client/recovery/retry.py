"""
Retry policies for broadcasting transactions.

Provides backoff strategies with jitter. Only transient failures are
retried; anything else is re-raised unchanged on the first attempt.
"""

import asyncio
import logging
import random
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional

from ..runtime.errors import ErrorContext, ErrorHandler, RetryExhaustedError


logger = logging.getLogger(__name__)


@dataclass
class RetryAttempt:
    """Information about a retry attempt."""
    attempt: int
    delay: float
    exception: Optional[BaseException] = None
    start_time: float = 0.0
    end_time: float = 0.0

    @property
    def duration(self) -> float:
        """Get attempt duration in seconds."""
        if self.end_time > self.start_time:
            return self.end_time - self.start_time
        return 0.0


class RetryPolicy(ABC):
    """
    Abstract base class for retry policies.

    Subclasses define the backoff curve; the base class owns the attempt
    loop, jitter, and statistics.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        jitter: bool = True,
        jitter_factor: float = 0.1,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        """
        Initialize retry policy.

        Args:
            max_attempts: Maximum number of attempts, the first one included
            base_delay: Base delay between retries in seconds
            max_delay: Maximum delay between retries in seconds
            jitter: Whether to add jitter to delays
            jitter_factor: Jitter factor (0.0 to 1.0)
            sleep: Coroutine used to wait between attempts (tests pass a fake)
        """
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.jitter = jitter
        self.jitter_factor = jitter_factor
        self.sleep = sleep or asyncio.sleep

        # Statistics
        self.total_attempts = 0
        self.total_retries = 0
        self.total_successes = 0
        self.total_failures = 0

    @abstractmethod
    def calculate_delay(self, attempt: int) -> float:
        """
        Calculate delay for given attempt number.

        Args:
            attempt: Attempt number (1-based)

        Returns:
            Delay in seconds
        """

    def should_retry(self, attempt: int, exception: BaseException) -> bool:
        """
        Determine if operation should be retried.

        Args:
            attempt: Current attempt number
            exception: Exception that occurred

        Returns:
            True if should retry, False otherwise
        """
        if attempt >= self.max_attempts:
            return False
        return ErrorHandler.is_retryable(exception)

    def add_jitter(self, delay: float) -> float:
        """
        Add jitter to delay if enabled.

        Args:
            delay: Base delay

        Returns:
            Delay with jitter applied
        """
        if not self.jitter:
            return delay

        jitter_amount = delay * self.jitter_factor * (random.random() - 0.5) * 2
        return max(0, delay + jitter_amount)

    async def execute(
        self,
        func: Callable[..., Awaitable[Any]],
        *args,
        context: Optional[ErrorContext] = None,
        **kwargs
    ) -> Any:
        """
        Execute a coroutine function with this retry policy.

        Args:
            func: Coroutine function to execute
            *args: Function arguments
            context: Transaction context attached to the exhaustion error
            **kwargs: Function keyword arguments

        Returns:
            Function result

        Raises:
            RetryExhaustedError: If every attempt failed with a transient error
            Exception: The first non-transient error, unchanged
        """
        attempt = 0
        last_exception: Optional[BaseException] = None
        attempts: List[RetryAttempt] = []

        while attempt < self.max_attempts:
            attempt += 1
            self.total_attempts += 1

            retry_attempt = RetryAttempt(attempt=attempt, delay=0.0)
            retry_attempt.start_time = time.time()

            try:
                result = await func(*args, **kwargs)

                retry_attempt.end_time = time.time()
                attempts.append(retry_attempt)

                self.total_successes += 1
                if attempt > 1:
                    logger.info(f"Operation succeeded on attempt {attempt}")

                return result

            except Exception as e:
                retry_attempt.end_time = time.time()
                retry_attempt.exception = e
                attempts.append(retry_attempt)

                last_exception = e

                if not ErrorHandler.is_retryable(e):
                    self.total_failures += 1
                    raise

                if not self.should_retry(attempt, e):
                    break

                delay = self.add_jitter(min(self.calculate_delay(attempt), self.max_delay))
                retry_attempt.delay = delay
                self.total_retries += 1

                logger.warning(
                    f"Attempt {attempt} failed: {e}. "
                    f"Retrying in {delay:.2f}s..."
                )

                await self.sleep(delay)

        self.total_failures += 1
        raise RetryExhaustedError(attempt, last_exception, context)

    def get_stats(self) -> dict:
        """Get retry policy statistics."""
        return {
            "total_attempts": self.total_attempts,
            "total_retries": self.total_retries,
            "total_successes": self.total_successes,
            "total_failures": self.total_failures,
            "success_rate": self.total_successes / max(self.total_attempts, 1),
            "retry_rate": self.total_retries / max(self.total_attempts, 1)
        }


class ExponentialBackoff(RetryPolicy):
    """
    Exponential backoff retry policy.

    Delay increases exponentially with each attempt: base_delay * (factor ^ (attempt - 1))
    """

    def __init__(
        self,
        max_attempts: int = 5,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        factor: float = 2.0,
        jitter: bool = True,
        jitter_factor: float = 0.1,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        super().__init__(max_attempts, base_delay, max_delay, jitter, jitter_factor, sleep)
        self.factor = factor

    def calculate_delay(self, attempt: int) -> float:
        """Calculate exponential backoff delay."""
        delay = self.base_delay * (self.factor ** (attempt - 1))
        return min(delay, self.max_delay)


class FixedBackoff(RetryPolicy):
    """Constant delay between attempts."""

    def __init__(
        self,
        max_attempts: int = 3,
        delay: float = 1.0,
        jitter: bool = False,
        jitter_factor: float = 0.1,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        super().__init__(max_attempts, delay, delay, jitter, jitter_factor, sleep)

    def calculate_delay(self, attempt: int) -> float:
        return self.base_delay


def create_network_retry_policy() -> RetryPolicy:
    """Create retry policy optimized for network operations."""
    return ExponentialBackoff(
        max_attempts=5,
        base_delay=1.0,
        max_delay=30.0,
        factor=2.0,
        jitter=True
    )
