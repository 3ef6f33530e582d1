"""
Database utilities for connection management and error handling
"""
import asyncio
import functools
import logging
from typing import Callable, Any, TypeVar, cast, Awaitable

from dreamsaver.core.errors import TransientError

logger = logging.getLogger(__name__)

# Define a type variable for the return type of the decorated function
T = TypeVar('T')

CONNECTION_ERROR_NAMES = (
    "ConnectionError", "OperationalError",
    "ConnectionDoesNotExistError", "ConnectionRefusedError",
)


def is_connection_error(exc: BaseException) -> bool:
    error_name = type(exc).__name__
    return any(err in error_name for err in CONNECTION_ERROR_NAMES)


def with_db_retry(
    max_retries: int = 3,
    retry_delay: float = 0.5
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """
    Decorator that retries database operations on transient errors.

    Only wrap operations that are safe to replay from scratch, e.g. a
    settlement keyed by its provider reference.

    Args:
        max_retries: Maximum number of retries before giving up
        retry_delay: Delay before the first retry in seconds, doubled on each attempt

    Returns:
        Decorated function with retry logic
    """
    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            retries = 0
            last_error = None

            while retries <= max_retries:
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    if isinstance(e, TransientError) or is_connection_error(e):
                        retries += 1
                        last_error = e

                        if retries <= max_retries:
                            delay = retry_delay * (2 ** (retries - 1))  # Exponential backoff
                            logger.warning(
                                f"Transient database error in {func.__name__}: {str(e)}. "
                                f"Retrying in {delay:.2f}s... (Attempt {retries}/{max_retries})"
                            )
                            await asyncio.sleep(delay)
                        continue
                    else:
                        raise

            logger.error(f"{func.__name__} failed after {max_retries} retries: {last_error}")
            if isinstance(last_error, TransientError):
                raise last_error
            raise TransientError(f"Database operation failed: {last_error}") from last_error

        return cast(Callable[..., Awaitable[T]], wrapper)

    return decorator
