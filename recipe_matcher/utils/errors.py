"""Log-and-degrade helpers shared by the Gemini adapters.

The engine never raises for data problems; collaborator calls are wrapped
so a failure is logged once and turned into a default value, or retried
when the error looks transient.
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional, TypeVar

from recipe_matcher.utils.config import config
from recipe_matcher.utils.logger import logger

T = TypeVar("T")

# Substrings of error messages worth retrying (timeouts, dropped connections, 429/5xx)
TRANSIENT_ERROR_KEYWORDS = ("timeout", "connection", "429", "500", "502", "503", "retryable")

_LOG_LEVELS = ("debug", "warning", "error")


def log_failure(operation_name: str, exception: BaseException, log_level: str = "warning") -> None:
    level = log_level if log_level in _LOG_LEVELS else "warning"
    getattr(logger, level)(f"{operation_name}: {exception}")


async def safe_execute_async(
    coro: Awaitable[T],
    operation_name: str,
    log_level: str = "warning",
    default_return: Any = None,
    reraise: bool = False,
) -> Any:
    """Await ``coro``; on failure log it and return ``default_return``.

    Args:
        coro: Awaitable to run.
        operation_name: Shown in the log line, e.g. "Fetch image from URL".
        log_level: "debug", "warning" or "error".
        default_return: Returned when the awaitable raises.
        reraise: Log, then re-raise instead of returning the default.
    """
    try:
        return await coro
    except Exception as e:
        log_failure(operation_name, e, log_level)
        if reraise:
            raise
        return default_return


def safe_execute_sync(
    func: Callable[[], T],
    operation_name: str,
    log_level: str = "warning",
    default_return: Any = None,
    reraise: bool = False,
) -> Any:
    """Blocking counterpart of safe_execute_async; ``func`` takes no arguments."""
    try:
        return func()
    except Exception as e:
        log_failure(operation_name, e, log_level)
        if reraise:
            raise
        return default_return


def is_transient_error(error: BaseException) -> bool:
    message = str(error).lower()
    return any(keyword in message for keyword in TRANSIENT_ERROR_KEYWORDS)


async def retry_transient(
    call: Callable[[], Awaitable[Optional[T]]],
    operation_name: str,
    max_retries: Optional[int] = None,
) -> Optional[T]:
    """Run ``call`` until it returns a value, retrying transient failures.

    A None result counts as a failed attempt. Waits DELAY_BETWEEN_RETRIES
    between attempts, doubling it when EXPONENTIAL_BACKOFF is set.

    Returns:
        The first non-None result, or None once retries are exhausted.

    Raises:
        Exception: The first non-transient error, unchanged.
    """
    max_retries = config.MAX_RETRIES if max_retries is None else max_retries
    delay_seconds = config.DELAY_BETWEEN_RETRIES

    for attempt in range(1, max_retries + 1):
        try:
            result = await call()
            if result is not None:
                return result
            logger.debug(f"{operation_name}: empty response ({attempt}/{max_retries})", extra={"attempt": attempt})
        except Exception as e:
            if not is_transient_error(e):
                raise
            logger.debug(f"{operation_name}: transient error ({attempt}/{max_retries}): {e}", extra={"attempt": attempt})

        if attempt < max_retries:
            await asyncio.sleep(delay_seconds)
            if config.EXPONENTIAL_BACKOFF:
                delay_seconds *= 2

    logger.warning(f"{operation_name}: gave up after {max_retries} attempts")
    return None
