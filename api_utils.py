"""
Rate limiting and retry utilities for API calls
Handles LLM rate limit errors with exponential backoff
"""

import time
import random
from typing import Callable, Any, Optional, TypeVar
import logging

# Configure logging
logging.basicConfig(level=logging.INFO,
                    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger("api_utils")

# Type variable for generic function return type
T = TypeVar('T')


class RateLimitHandler:
    """Handler for API rate limits with exponential backoff"""

    def __init__(self,
                 base_delay: float = 1.0,
                 max_delay: float = 60.0,
                 max_retries: int = 5,
                 jitter: bool = True,
                 sleep: Callable[[float], Any] = time.sleep):
        """
        Initialize rate limit handler

        Args:
            base_delay: Initial delay in seconds
            max_delay: Maximum delay in seconds
            max_retries: Maximum number of attempts
            jitter: Whether to add randomness to delay
            sleep: Function used to wait between attempts
        """
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.max_retries = max_retries
        self.jitter = jitter
        self._sleep = sleep

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retry number `attempt` (0-based)"""
        delay = min(self.base_delay * (2 ** attempt), self.max_delay)
        if self.jitter:
            delay = delay * (0.5 + random.random())
        return delay

    def with_retry(self, func: Callable[..., T], *args, **kwargs) -> T:
        """
        Execute a function, retrying only when it fails with a rate limit error

        Args:
            func: Function to execute
            *args: Positional arguments for the function
            **kwargs: Keyword arguments for the function

        Returns:
            Result from the function call

        Raises:
            Exception: The original error if it is not a rate limit, or the
                last rate limit error once all attempts are used
        """
        last_exception: Optional[Exception] = None

        for attempt in range(self.max_retries):
            try:
                return func(*args, **kwargs)
            except Exception as e:
                if not is_rate_limit_error(e):
                    raise
                last_exception = e
                if attempt + 1 >= self.max_retries:
                    break
                delay = self.backoff_delay(attempt)
                logger.warning(f"Rate limit hit. Retrying in {delay:.2f} seconds. Attempt {attempt+1}/{self.max_retries}")
                self._sleep(delay)

        logger.error(f"All {self.max_retries} retry attempts failed")
        raise last_exception


def is_rate_limit_error(exception: Exception) -> bool:
    """
    Determine if an exception is due to rate limiting

    Args:
        exception: The exception to check

    Returns:
        True if rate limit error, False otherwise
    """
    if getattr(exception, 'status_code', None) == 429:
        return True

    response = getattr(exception, 'response', None)
    if response is not None and getattr(response, 'status_code', None) == 429:
        return True

    error_str = str(exception).lower()
    if '429' in error_str or 'too many requests' in error_str:
        return True
    if 'rate limit' in error_str or 'quota exceeded' in error_str:
        return True

    return False


# Global rate limit handler instance
global_rate_limiter = RateLimitHandler()


def with_rate_limit(func: Callable[..., T], *args, **kwargs) -> T:
    """
    Convenience wrapper to use global rate limiter

    Args:
        func: Function to execute with rate limiting
        *args: Positional arguments for the function
        **kwargs: Keyword arguments for the function

    Returns:
        Result from the function call
    """
    return global_rate_limiter.with_retry(func, *args, **kwargs)
