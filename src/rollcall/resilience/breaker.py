"""Circuit breaker for calls to an external dependency.

The breaker operates in three states:
- CLOSED: Normal operation, calls pass through
- OPEN: Too many consecutive failures, calls are rejected until the
  cooldown (``reset_timeout``) has elapsed
- HALF_OPEN: One trial call at a time is admitted; ``success_threshold``
  consecutive successes close the circuit, any failure re-opens it

Every admitted call runs under ``asyncio.timeout(timeout)``; a timeout
counts as a failure.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from rollcall.resilience.retry import TransientError

logger = logging.getLogger(__name__)


class CircuitState(StrEnum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitOpenError(TransientError):
    """Raised when a call is rejected without reaching the dependency.

    Transient in nature, but retrying inside the cooldown cannot succeed,
    so ``with_retry`` gives up on it immediately.
    """

    retryable = False

    def __init__(self, name: str, state: CircuitState, retry_after: float = 0.0):
        super().__init__(f"Circuit breaker '{name}' is {state.value}")
        self.name = name
        self.state = state
        self.retry_after = retry_after


@dataclass
class CircuitMetrics:
    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    rejected_calls: int = 0


class CircuitBreaker:
    """Per-dependency circuit breaker."""

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        success_threshold: int = 2,
        timeout: float = 30.0,
        reset_timeout: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.success_threshold = success_threshold
        self.timeout = timeout
        self.reset_timeout = reset_timeout
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._next_attempt = 0.0
        self._trial_in_flight = False
        self._metrics = CircuitMetrics()

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state == CircuitState.OPEN

    def _admit(self) -> None:
        """Admit a call or raise CircuitOpenError. Synchronous by construction."""
        if self._state == CircuitState.OPEN:
            now = self._clock()
            if now < self._next_attempt:
                self._reject(self._next_attempt - now)
            self._state = CircuitState.HALF_OPEN
            self._success_count = 0
            logger.info(
                "circuit_half_open",
                extra={"breaker.name": self.name},
            )

        if self._state == CircuitState.HALF_OPEN:
            if self._trial_in_flight:
                self._reject(0.0)
            self._trial_in_flight = True

    def _reject(self, retry_after: float) -> None:
        self._metrics.rejected_calls += 1
        logger.debug(
            "circuit_rejected",
            extra={
                "breaker.name": self.name,
                "breaker.state": self._state.value,
                "retry_after_s": round(retry_after, 1),
            },
        )
        raise CircuitOpenError(self.name, self._state, retry_after)

    def _on_success(self) -> None:
        self._metrics.successful_calls += 1
        if self._state == CircuitState.HALF_OPEN:
            self._success_count += 1
            if self._success_count >= self.success_threshold:
                self._close()
        else:
            self._failure_count = 0

    def _on_failure(self, error: BaseException) -> None:
        self._metrics.failed_calls += 1
        if self._state == CircuitState.HALF_OPEN:
            self._trip(error)
            return
        self._failure_count += 1
        if self._failure_count >= self.failure_threshold:
            self._trip(error)

    def _trip(self, error: BaseException) -> None:
        self._state = CircuitState.OPEN
        self._success_count = 0
        self._next_attempt = self._clock() + self.reset_timeout
        logger.error(
            "circuit_opened",
            extra={
                "breaker.name": self.name,
                "failure_count": self._failure_count,
                "reset_timeout_s": self.reset_timeout,
                "error.type": type(error).__name__,
                "error.message": str(error),
            },
        )

    def _close(self) -> None:
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        logger.info("circuit_closed", extra={"breaker.name": self.name})

    async def call[T](self, func: Callable[[], Awaitable[T]]) -> T:
        """Execute func with circuit breaker protection.

        Raises:
            CircuitOpenError: If the call was rejected.
            Exception: Whatever func raised (after recording the failure).
        """
        self._admit()
        half_open_trial = self._state == CircuitState.HALF_OPEN
        self._metrics.total_calls += 1
        try:
            async with asyncio.timeout(self.timeout):
                result = await func()
        except Exception as e:
            self._on_failure(e)
            raise
        finally:
            if half_open_trial:
                self._trial_in_flight = False
        self._on_success()
        return result

    def reset(self) -> None:
        """Force the breaker back to CLOSED and clear its statistics."""
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._next_attempt = 0.0
        self._trial_in_flight = False
        self._metrics = CircuitMetrics()
        logger.info("circuit_reset", extra={"breaker.name": self.name})

    def stats(self) -> dict[str, Any]:
        """Get circuit breaker statistics."""
        m = self._metrics
        completed = m.successful_calls + m.failed_calls
        return {
            "name": self.name,
            "state": self._state.value,
            "failure_count": self._failure_count,
            "success_count": self._success_count,
            "total_calls": m.total_calls,
            "successful_calls": m.successful_calls,
            "failed_calls": m.failed_calls,
            "rejected_calls": m.rejected_calls,
            "success_rate": (m.successful_calls / completed) if completed else 1.0,
            "retry_after_s": max(0.0, self._next_attempt - self._clock())
            if self._state == CircuitState.OPEN
            else 0.0,
        }
