"""Retry handling shared by chapter fetching and file saving."""
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, TypeVar

from crawler.exceptions import ArchiverError, RetryExhaustedError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded retry with a delay computed from the attempt index.

    delay(n) is the pause before attempt n, where n starts at 1 for the
    first retry (the first attempt never waits).
    """

    max_attempts: int = 3
    delay: Callable[[int], float] = field(default=lambda attempt: 0.0)
    sleep: Callable[[float], None] = field(default=time.sleep, compare=False)

    @classmethod
    def linear(cls, max_attempts: int = 3, step: float = 1.0, sleep=time.sleep) -> "RetryPolicy":
        """Wait attempt * step seconds before each retry."""
        return cls(max_attempts=max_attempts, delay=lambda attempt: attempt * step, sleep=sleep)

    @classmethod
    def fixed(cls, max_attempts: int = 3, seconds: float = 2.0, sleep=time.sleep) -> "RetryPolicy":
        """Wait the same number of seconds before each retry."""
        return cls(max_attempts=max_attempts, delay=lambda attempt: seconds, sleep=sleep)

    @classmethod
    def from_settings(cls, settings, kind: str, sleep=time.sleep) -> "RetryPolicy":
        """Build the 'fetch' or 'save' policy from application settings."""
        if kind == "fetch":
            return cls.linear(settings.fetch_max_attempts, settings.fetch_retry_delay, sleep=sleep)
        if kind == "save":
            return cls.fixed(settings.save_max_attempts, settings.save_retry_delay, sleep=sleep)
        raise ValueError(f"Unknown retry policy kind: {kind}")

    def run(
        self,
        operation: Callable[[], T],
        description: str,
        on_failure: Optional[Callable[[int, Exception], None]] = None,
    ) -> T:
        """
        Call operation until it succeeds or attempts run out.

        Only ArchiverError and OSError are retried; anything else is a bug
        and propagates immediately.

        Args:
            operation: Zero-argument callable
            description: Used in log lines and the final error
            on_failure: Called with (attempt number, error) after each failure

        Returns:
            The first successful result

        Raises:
            RetryExhaustedError: every attempt failed
        """
        last_error = None

        for attempt in range(self.max_attempts):
            if attempt > 0:
                logger.info(
                    f"Retrying {description} "
                    f"(attempt {attempt + 1}/{self.max_attempts})"
                )
                self.sleep(self.delay(attempt))

            try:
                result = operation()
            except (ArchiverError, OSError) as e:
                last_error = e
                logger.warning(
                    f"{description} failed "
                    f"(attempt {attempt + 1}/{self.max_attempts}): {e}"
                )
                if on_failure is not None:
                    on_failure(attempt + 1, e)
                continue

            if attempt > 0:
                logger.info(f"{description} succeeded on attempt {attempt + 1}")
            return result

        logger.error(f"Max retries reached for {description}")
        raise RetryExhaustedError(description, self.max_attempts, last_error) from last_error
