"""
Utility for retrying flaky network operations with exponential backoff.
"""
import time
import random
import logging
from functools import wraps
from typing import TypeVar, Callable, Any, Tuple, Type

from ..config import MAX_RETRIES, RETRY_BACKOFF_FACTOR

T = TypeVar('T')

logger = logging.getLogger(__name__)


def with_retry(
    max_retries: int = MAX_RETRIES,
    backoff_factor: float = RETRY_BACKOFF_FACTOR,
    exceptions: Tuple[Type[BaseException], ...] = (Exception,)
) -> Callable:
    """
    Decorator for retrying functions with exponential backoff.

    The wrapped call is attempted once plus up to ``max_retries`` more
    times. Exceptions outside ``exceptions`` propagate immediately.

    Args:
        max_retries: Maximum number of retry attempts
        backoff_factor: Base of the exponential delay
        exceptions: Tuple of exceptions to catch and retry on

    Returns:
        Decorated function with retry logic
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        func_name = getattr(func, '__name__', 'function')

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            attempt = 0
            while True:
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    attempt += 1
                    if attempt > max_retries:
                        logger.error(f"Giving up on {func_name} after {max_retries} retries: {e}")
                        raise

                    # Jitter keeps parallel workers from retrying in lockstep
                    delay = backoff_factor ** attempt + random.uniform(0, 1)
                    logger.warning(
                        f"Attempt {attempt}/{max_retries} failed for {func_name}: "
                        f"{e.__class__.__name__}: {e}. Retrying in {delay:.2f}s"
                    )
                    time.sleep(delay)

        return wrapper
    return decorator
