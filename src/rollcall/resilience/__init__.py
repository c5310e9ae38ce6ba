"""Retry with backoff and per-dependency circuit breakers."""

from rollcall.resilience.breaker import (
    CircuitBreaker,
    CircuitOpenError,
    CircuitState,
)
from rollcall.resilience.registry import Resilience
from rollcall.resilience.retry import (
    PermanentError,
    RetryConfig,
    TransientError,
    calculate_delay,
    is_retryable_error,
    with_retry,
)

__all__ = [
    "CircuitBreaker",
    "CircuitOpenError",
    "CircuitState",
    "PermanentError",
    "Resilience",
    "RetryConfig",
    "TransientError",
    "calculate_delay",
    "is_retryable_error",
    "with_retry",
]
