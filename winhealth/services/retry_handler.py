"""Retry handler with exponential backoff for transient host failures."""

import asyncio
import random
import logging
from typing import Awaitable, Callable, Optional, Tuple, TypeVar


T = TypeVar('T')


class RetryHandler:
    """
    Retries an async operation with exponential backoff and jitter.

    Used for whole-host retries when a collection attempt could not reach
    the host at all.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        jitter: float = 0.1
    ):
        """
        Args:
            max_attempts: Total attempts including the first one
            base_delay: Initial delay in seconds
            max_delay: Maximum delay in seconds
            jitter: Fraction of the delay added at random (0-10% by default)
        """
        self.max_attempts = max(1, max_attempts)
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.jitter = jitter

    def delay_for(self, attempt: int) -> float:
        """Backoff before the attempt following ``attempt`` (1-based)."""
        delay = min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)
        return delay + random.uniform(0, delay * self.jitter)

    async def run(
        self,
        func: Callable[[int], Awaitable[T]],
        exceptions: Tuple[type, ...] = (Exception,),
        can_retry: Optional[Callable[[float], bool]] = None,
        logger: logging.Logger = None
    ) -> T:
        """
        Execute ``func(attempt)`` with exponential backoff retry.

        Args:
            func: Async callable receiving the 1-based attempt number
            exceptions: Exception types that trigger a retry
            can_retry: Called with the planned delay; returning False stops retrying
            logger: Optional logger for retry events

        Returns:
            Result from the first successful attempt

        Raises:
            Exception: Last exception if all retries are exhausted or refused
        """
        logger = logger or logging.getLogger(__name__)

        for attempt in range(1, self.max_attempts + 1):
            try:
                return await func(attempt)

            except exceptions as e:
                if attempt == self.max_attempts:
                    logger.error(f"All {self.max_attempts} attempts exhausted: {e}")
                    raise

                delay = self.delay_for(attempt)
                if can_retry is not None and not can_retry(delay):
                    logger.warning(f"Attempt {attempt}/{self.max_attempts} failed: {e}. Not retrying.")
                    raise

                logger.warning(
                    f"Attempt {attempt}/{self.max_attempts} failed: {e}. "
                    f"Retrying in {delay:.2f}s..."
                )

                await asyncio.sleep(delay)

        raise RuntimeError("Retry loop exited without result")
