"""Retry with exponential backoff for Confluence API rate limits.

Only HTTP 429 responses are retried (1s, 2s, 4s). Every other failure is
raised immediately so the sync engines see transport errors without delay.
"""

import logging
import time
from typing import Callable, Optional, TypeVar

from .errors import APIAccessError

logger = logging.getLogger(__name__)

T = TypeVar('T')

MAX_RETRIES = 3

RATE_LIMIT_PATTERNS = (
    '429',
    'too many requests',
    'rate limit exceeded',
    'rate limited',
)


def status_code_of(exception: BaseException) -> Optional[int]:
    """Extract an HTTP status code from an exception, if it carries one.

    Handles both a direct ``status_code`` attribute and the requests
    ``HTTPError.response.status_code`` shape.
    """
    status = getattr(exception, 'status_code', None)
    if isinstance(status, int):
        return status
    response = getattr(exception, 'response', None)
    status = getattr(response, 'status_code', None)
    if isinstance(status, int):
        return status
    return None


def is_rate_limit_error(exception: Exception) -> bool:
    if status_code_of(exception) == 429:
        return True
    error_msg = str(exception).lower()
    return any(pattern in error_msg for pattern in RATE_LIMIT_PATTERNS)


def retry_on_rate_limit(func: Callable[..., T], *args, **kwargs) -> T:
    """Call func, retrying on 429 rate limit with exponential backoff.

    Args:
        func: The function to execute
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        The return value of func

    Raises:
        APIAccessError: If the rate limit persists after 3 retries
        Other exceptions: Passed through immediately without retry

    Example:
        >>> page = retry_on_rate_limit(api.get_page, "123")
    """
    for retry_num in range(MAX_RETRIES + 1):
        try:
            return func(*args, **kwargs)
        except Exception as e:
            if not is_rate_limit_error(e):
                raise

            if retry_num >= MAX_RETRIES:
                logger.error(
                    f"Rate limit persisted after {MAX_RETRIES} retries, giving up"
                )
                raise APIAccessError("Confluence API failure (after 3 retries)") from e

            wait_time = 2 ** retry_num
            logger.info(
                f"Rate limit hit, retrying in {wait_time}s "
                f"(retry {retry_num + 1}/{MAX_RETRIES})"
            )
            time.sleep(wait_time)

    raise APIAccessError("Confluence API failure (after 3 retries)")
