"""Retry decorator with exponential backoff for idempotent platform calls.

Usage:
    from utils.retry import retry

    @retry(max_attempts=3, delay=1.0, exceptions=(requests.ConnectionError, requests.Timeout))
    def fetch_profile(session, url):
        return session.get(url, timeout=10)

Only wrap reads (profile lookups, link previews, media status polls). A
retried create call can publish the same message twice.
"""

import logging
import time
from collections.abc import Callable
from functools import wraps
from typing import Any

logger = logging.getLogger(__name__)


def retry(
    max_attempts: int = 3,
    delay: float = 1.0,
    backoff: float = 2.0,
    exceptions: tuple[type[Exception], ...] = (Exception,),
    logger_name: str | None = None,
) -> Callable:
    """Decorator to retry a function with exponential backoff.

    Args:
        max_attempts: Maximum number of attempts (default: 3)
        delay: Initial delay between attempts in seconds (default: 1.0)
        backoff: Multiplier for delay on each retry (default: 2.0)
        exceptions: Tuple of exception types to catch (default: all exceptions)
        logger_name: Optional logger name for custom logging

    Returns:
        Decorated function that retries on failure and re-raises the last
        exception once attempts are exhausted.

    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            log = logging.getLogger(logger_name) if logger_name else logger

            attempt = 0
            current_delay = delay

            while True:
                try:
                    return func(*args, **kwargs)

                except exceptions as e:
                    attempt += 1

                    if attempt >= max_attempts:
                        log.error(
                            "Function %s failed after %d attempts. Last error: %s",
                            func.__name__,
                            max_attempts,
                            e,
                        )
                        raise

                    log.warning(
                        "Attempt %d/%d failed for %s: %s. Retrying in %.1fs...",
                        attempt,
                        max_attempts,
                        func.__name__,
                        e,
                        current_delay,
                    )

                    time.sleep(current_delay)
                    current_delay *= backoff

        return wrapper

    return decorator
