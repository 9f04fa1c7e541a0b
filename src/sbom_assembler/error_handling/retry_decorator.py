"""
Retry decorator used by network-facing publishers.
"""

import logging
import random
import time
from dataclasses import dataclass
from functools import wraps
from typing import Callable, List, Optional, Type

logger = logging.getLogger(__name__)


@dataclass
class RetryConfig:
    """Attempts, backoff and retryable exception types for :func:`retry`."""
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    exponential_base: float = 2.0
    jitter: bool = True
    exceptions: Optional[List[Type[Exception]]] = None


def backoff_delay(attempt: int, base_delay: float, max_delay: float,
                  exponential_base: float, jitter: bool) -> float:
    """Seconds to wait after failed attempt number ``attempt`` (0-based)."""
    delay = min(base_delay * exponential_base ** attempt, max_delay)
    if jitter:
        delay *= random.uniform(0.5, 1.0)
    return delay


def retry(
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    exceptions: Optional[List[Type[Exception]]] = None
) -> Callable:
    """
    Retry the decorated call with exponential backoff.

    Args:
        max_attempts: Total number of calls before giving up
        base_delay: Delay after the first failure in seconds
        max_delay: Cap on any single delay
        exponential_base: Growth factor between delays
        jitter: Scale each delay by a random factor in [0.5, 1.0]
        exceptions: Exception types worth retrying; anything else is
            raised at once. Every exception is retried when None.
    """
    retryable = tuple(exceptions) if exceptions else (Exception,)

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            attempt = 0
            while True:
                try:
                    return func(*args, **kwargs)
                except retryable as e:
                    if attempt + 1 >= max_attempts:
                        logger.error(f"Giving up on {func.__name__} after {max_attempts} attempts: {e}")
                        raise
                    delay = backoff_delay(attempt, base_delay, max_delay, exponential_base, jitter)
                    logger.warning(
                        f"{func.__name__} failed on attempt {attempt + 1}/{max_attempts}: {e}; "
                        f"retrying in {delay:.2f}s"
                    )
                    time.sleep(delay)
                    attempt += 1

        return wrapper
    return decorator


def retry_with_config(config: RetryConfig) -> Callable:
    """Build a retry decorator from a RetryConfig."""
    return retry(
        max_attempts=config.max_attempts,
        base_delay=config.base_delay,
        max_delay=config.max_delay,
        exponential_base=config.exponential_base,
        jitter=config.jitter,
        exceptions=config.exceptions
    )
