"""
Caller-side retry with exponential backoff.

The client never retries on its own. Callers that want retries wrap a call
in RetryPolicy.call(), which retries only errors whose kind is retryable
(network, rate limited, server error) and re-raises everything else.
"""

import logging
import random
import time
from typing import Any, Callable, Optional

from .config import RetryConfig
from .errors import ConfigurationError, ResoError


class RetryPolicy:
    """Exponential backoff with jitter for retryable ResoErrors."""

    def __init__(
        self,
        max_retries: int = 3,
        base_delay: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize RetryPolicy.

        Args:
            max_retries: Maximum number of retry attempts after the first call.
            base_delay: Base delay in seconds for exponential backoff.
            sleep: Function used to wait between attempts.
            logger: Logger for retry warnings.

        Raises:
            ConfigurationError: If max_retries is negative.
        """
        if max_retries < 0:
            raise ConfigurationError(f"Max retries cannot be negative: {max_retries}")
        self.max_retries = max_retries
        self.base_delay = base_delay
        self._sleep = sleep
        self.logger = logger or logging.getLogger(__name__)

    @classmethod
    def from_config(cls, config: RetryConfig) -> 'RetryPolicy':
        return cls(max_retries=config.max_retries, base_delay=config.base_delay)

    def calculate_delay(self, attempt: int) -> float:
        """
        Calculate exponential backoff delay with jitter.

        Args:
            attempt: Current attempt number (0-based).

        Returns:
            Delay in seconds.
        """
        # Exponential backoff: base_delay * (2 ^ attempt)
        delay = self.base_delay * (2 ** attempt)

        # Add jitter (+/-25% of delay)
        jitter = delay * 0.25 * (2 * random.random() - 1)

        return max(0, delay + jitter)

    def call(self, func: Callable[..., Any], *args, **kwargs) -> Any:
        """
        Call func, retrying retryable ResoErrors.

        Returns:
            Whatever func returns.

        Raises:
            ResoError: A non-retryable error immediately, or the last
                retryable error once max_retries is exhausted.
        """
        for attempt in range(self.max_retries + 1):
            try:
                return func(*args, **kwargs)
            except ResoError as e:
                if not e.is_retryable or attempt >= self.max_retries:
                    raise
                delay = self.calculate_delay(attempt)
                self.logger.warning(
                    "Retryable %s error (attempt %d/%d), retrying in %.2fs: %s",
                    e.kind.value, attempt + 1, self.max_retries, delay, e.message
                )
                self._sleep(delay)
