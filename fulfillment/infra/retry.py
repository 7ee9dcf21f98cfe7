"""
Retry utilities with exponential backoff and jitter.
"""
import logging
import random
import time
from functools import wraps
from typing import Any, Callable, TypeVar

T = TypeVar('T')

logger = logging.getLogger(__name__)


def backoff_delays(
    retries: int,
    initial_delay: float,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
):
    """Yield the wait before each retry attempt."""
    delay = initial_delay
    for _ in range(retries):
        # Up to 25% random jitter
        actual = delay + delay * 0.25 * random.random() if jitter else delay
        yield min(actual, max_delay)
        delay *= exponential_base


def retry_with_backoff(
    max_retries: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    exceptions: tuple = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
):
    """
    Decorator for retrying functions with exponential backoff and jitter.

    Args:
        max_retries: Maximum number of retry attempts after the first call
        initial_delay: Initial delay in seconds
        max_delay: Maximum delay in seconds
        exponential_base: Base for exponential backoff
        jitter: Whether to add random jitter to delay
        exceptions: Tuple of exceptions to catch and retry
        sleep: Function used to wait between attempts
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            delays = backoff_delays(
                max_retries, initial_delay, max_delay, exponential_base, jitter
            )
            attempt = 0
            while True:
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    wait = next(delays, None)
                    if wait is None:
                        raise
                    attempt += 1
                    logger.warning(
                        "retrying_after_error",
                        extra={
                            "operation": func.__name__,
                            "attempt": attempt,
                            "error": str(e),
                        },
                    )
                    sleep(wait)

        return wrapper
    return decorator
