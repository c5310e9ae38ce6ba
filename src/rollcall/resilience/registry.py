"""Per-dependency breakers plus the shared retry policy."""

import logging
import time
from collections.abc import Awaitable, Callable, Mapping
from typing import TYPE_CHECKING, Any

from rollcall.resilience.breaker import CircuitBreaker
from rollcall.resilience.retry import RetryConfig, with_retry

if TYPE_CHECKING:
    from rollcall.config.models import RollcallConfig

logger = logging.getLogger(__name__)


class Resilience:
    """Registry of named circuit breakers sharing one retry policy.

    ``call`` retries around the breaker, so each attempt is admitted (or
    rejected) and recorded by the breaker individually.
    """

    def __init__(
        self,
        retry: RetryConfig | None = None,
        breakers: Mapping[str, CircuitBreaker] | None = None,
    ):
        self.retry = retry or RetryConfig()
        self._breakers: dict[str, CircuitBreaker] = dict(breakers or {})

    @classmethod
    def from_config(
        cls,
        config: "RollcallConfig",
        clock: Callable[[], float] = time.monotonic,
    ) -> "Resilience":
        retry = RetryConfig(
            max_attempts=config.retry.max_attempts,
            base_delay=config.retry.base_delay,
            max_delay=config.retry.max_delay,
            exponential_base=config.retry.exponential_base,
            jitter=config.retry.jitter,
        )
        breakers = {
            name: CircuitBreaker(
                name,
                failure_threshold=settings.failure_threshold,
                success_threshold=settings.success_threshold,
                timeout=settings.timeout,
                reset_timeout=settings.reset_timeout,
                clock=clock,
            )
            for name, settings in config.breakers.items()
        }
        return cls(retry=retry, breakers=breakers)

    def breaker(self, name: str) -> CircuitBreaker:
        """Get the breaker for a dependency, creating a default one if unknown."""
        if name not in self._breakers:
            logger.debug("circuit_created_with_defaults", extra={"breaker.name": name})
            self._breakers[name] = CircuitBreaker(name)
        return self._breakers[name]

    async def call[T](
        self,
        name: str,
        func: Callable[[], Awaitable[T]],
        operation: str | None = None,
    ) -> T:
        breaker = self.breaker(name)
        return await with_retry(
            lambda: breaker.call(func),
            self.retry,
            operation=operation or name,
        )

    def stats(self) -> dict[str, dict[str, Any]]:
        return {name: b.stats() for name, b in sorted(self._breakers.items())}

    def reset(self, name: str | None = None) -> None:
        """Reset one breaker, or all of them."""
        if name is not None:
            self.breaker(name).reset()
            return
        for breaker in self._breakers.values():
            breaker.reset()
