"""Retry utilities with exponential backoff for transient errors."""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import httpx

logger = logging.getLogger(__name__)


# HTTP status codes that indicate transient errors worth retrying
RETRYABLE_STATUS_CODES = frozenset(
    {
        429,  # Rate limit exceeded
        500,  # Internal server error
        502,  # Bad gateway
        503,  # Service unavailable
        504,  # Gateway timeout
    }
)

# HTTP status codes that should NOT be retried
NON_RETRYABLE_STATUS_CODES = frozenset({400, 401, 403, 404, 422})


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_attempts: int = 3
    base_delay: float = 2.0
    max_delay: float = 30.0
    exponential_base: float = 2.0
    jitter: float = 0.1  # fraction of the delay added at random


class TransientError(Exception):
    """Error that should trigger a retry."""

    retryable = True

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class PermanentError(Exception):
    """Error that should NOT trigger a retry."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def _status_code(error: Exception) -> int | None:
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code
    status_code = getattr(error, "status_code", None)
    return status_code if isinstance(status_code, int) else None


def is_retryable_error(error: Exception) -> bool:
    """Check if an error should trigger a retry.

    Transient errors, timeouts, connection failures and HTTP 429/5xx are
    retried; permanent errors, client errors and anything unknown are not.
    """
    if isinstance(error, PermanentError):
        return False
    if isinstance(error, TransientError):
        return error.retryable
    if isinstance(error, (TimeoutError, ConnectionError, httpx.TransportError)):
        return True

    status_code = _status_code(error)
    if status_code is not None:
        if status_code in NON_RETRYABLE_STATUS_CODES:
            return False
        return status_code in RETRYABLE_STATUS_CODES or status_code >= 500

    # Default: don't retry unknown errors
    return False


def calculate_delay(attempt: int, config: RetryConfig) -> float:
    """Calculate delay before next retry with exponential backoff and jitter.

    Args:
        attempt: Current attempt number (1-indexed).
        config: Retry configuration.

    Returns:
        Delay in seconds, never below the un-jittered backoff.
    """
    delay = config.base_delay * (config.exponential_base ** (attempt - 1))
    delay = min(delay, config.max_delay)

    delay += random.uniform(0, delay * config.jitter)  # noqa: S311

    return max(0.0, delay)


async def with_retry[T](
    func: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    operation: str = "call",
) -> T:
    """Execute async function with exponential backoff retry.

    Args:
        func: Async function to execute (takes no arguments).
        config: Retry configuration.
        operation: Name for logging.

    Returns:
        Result from successful function execution.

    Raises:
        Exception: The last exception if all retries fail, or the first
            non-retryable one.
    """
    config = config or RetryConfig()

    for attempt in range(1, config.max_attempts + 1):
        try:
            return await func()
        except Exception as e:
            if not is_retryable_error(e):
                logger.debug(
                    "retry_not_retryable",
                    extra={
                        "operation": operation,
                        "attempt": attempt,
                        "error.type": type(e).__name__,
                    },
                )
                raise

            if attempt >= config.max_attempts:
                logger.warning(
                    "retry_exhausted",
                    extra={
                        "operation": operation,
                        "attempts": config.max_attempts,
                        "error.message": str(e),
                        "error.type": type(e).__name__,
                    },
                )
                raise

            delay = calculate_delay(attempt, config)
            logger.info(
                "retry_attempt",
                extra={
                    "operation": operation,
                    "attempt": attempt,
                    "max_attempts": config.max_attempts,
                    "retry_delay_s": round(delay, 2),
                    "error.message": str(e),
                    "error.type": type(e).__name__,
                },
            )
            await asyncio.sleep(delay)

    raise RuntimeError("Unexpected retry loop exit")
