from __future__ import annotations

import logging
from functools import wraps
from typing import Any, Awaitable, Callable, TypeVar, cast

from tenacity import (
    after_log,
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .exceptions import TransientError

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])


def retry_transient(
    max_attempts: int = 5,
    base_wait: float = 1.0,
    max_wait: float = 60.0,
) -> Callable[[F], F]:
    """
    Decorator for retrying transient errors with exponential backoff.

    Only background work uses this (guild reconciliation); the per-message
    pipeline never retries on its own.

    Args:
        max_attempts: Maximum number of attempts (default: 5)
        base_wait: Base wait time in seconds before exponential backoff (default: 1.0)
        max_wait: Maximum wait time in seconds between retries (default: 60.0)

    Returns:
        A decorator that wraps async functions with retry logic.

    Raises:
        TransientError: The last error once all attempts are exhausted.
    """
    logger = logging.getLogger(__name__)

    def decorator(func: F) -> F:
        @wraps(func)
        @retry(
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential(multiplier=base_wait, max=max_wait, exp_base=2),
            retry=retry_if_exception_type(TransientError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            after=after_log(logger, logging.INFO),
            reraise=True,
        )
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            return await func(*args, **kwargs)

        return cast(F, wrapper)

    return decorator
