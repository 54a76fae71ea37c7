"""
Circuit breaker and bounded retry for outbound collaborators.

Each remote dependency (delivery gateway, availability service, booking
service) gets a named breaker. Calls go through `call_with_resilience`,
which retries transient errors with jittered exponential backoff and stops
calling a dependency that keeps failing.
"""

import logging
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_random_exponential,
)

from app.config import settings

logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    """Breaker states."""

    CLOSED = "closed"        # Normal operation
    OPEN = "open"            # Failing, reject calls
    HALF_OPEN = "half_open"  # Trial call allowed


class CircuitBreakerOpenError(Exception):
    """Raised when a call is rejected because the circuit is open."""
    pass


class CircuitBreaker:
    """
    Async circuit breaker.

    After `failure_threshold` consecutive failures the circuit opens and
    calls fail fast for `recovery_timeout` seconds. The next call after that
    is a trial: success closes the circuit, failure re-opens it.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: Optional[int] = None,
        recovery_timeout: Optional[int] = None,
    ):
        self.name = name
        self.failure_threshold = failure_threshold or settings.circuit_breaker_failure_threshold
        self.recovery_timeout = recovery_timeout or settings.circuit_breaker_recovery_timeout

        self.failure_count = 0
        self.last_failure_time: Optional[float] = None
        self.state = CircuitState.CLOSED

    async def call(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        """Execute an awaitable with breaker protection."""
        if self.state == CircuitState.OPEN:
            if self._should_attempt_reset():
                logger.info(f"Circuit breaker [{self.name}] attempting recovery (HALF_OPEN)")
                self.state = CircuitState.HALF_OPEN
            else:
                remaining = int(self.recovery_timeout - (time.monotonic() - self.last_failure_time))
                raise CircuitBreakerOpenError(
                    f"Circuit breaker [{self.name}] is OPEN, retry in {remaining}s"
                )

        try:
            result = await func(*args, **kwargs)
        except Exception:
            self._on_failure()
            raise

        self._on_success()
        return result

    def _should_attempt_reset(self) -> bool:
        return (
            self.last_failure_time is not None
            and time.monotonic() - self.last_failure_time >= self.recovery_timeout
        )

    def _on_success(self) -> None:
        if self.state == CircuitState.HALF_OPEN:
            logger.info(f"Circuit breaker [{self.name}] recovered - state: CLOSED")
        self.failure_count = 0
        self.state = CircuitState.CLOSED

    def _on_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.monotonic()

        if self.state == CircuitState.HALF_OPEN or self.failure_count >= self.failure_threshold:
            self.state = CircuitState.OPEN
            logger.error(
                f"Circuit breaker [{self.name}] OPENED after {self.failure_count} failures"
            )
        else:
            logger.warning(
                f"Circuit breaker [{self.name}] failure {self.failure_count}/{self.failure_threshold}"
            )

    def reset(self) -> None:
        """Force the breaker closed."""
        self.failure_count = 0
        self.last_failure_time = None
        self.state = CircuitState.CLOSED


# Registry of breakers by dependency name
_circuit_breakers: dict[str, CircuitBreaker] = {}


def get_circuit_breaker(name: str, **kwargs) -> CircuitBreaker:
    """Get or create circuit breaker for a dependency."""
    if name not in _circuit_breakers:
        _circuit_breakers[name] = CircuitBreaker(name, **kwargs)
    return _circuit_breakers[name]


async def call_with_resilience(
    breaker: CircuitBreaker,
    func: Callable[..., Awaitable[Any]],
    *args,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    attempts: int = 3,
    max_wait: float = 4.0,
    **kwargs,
) -> Any:
    """
    Run `func` through the breaker with bounded retries.

    Retries only exceptions in `retry_on`; an open circuit is never retried.

    Raises:
        CircuitBreakerOpenError: If the dependency is failing fast
        Exception: The last error once attempts are exhausted
    """
    async for attempt in AsyncRetrying(
        retry=retry_if_exception(
            lambda e: isinstance(e, retry_on) and not isinstance(e, CircuitBreakerOpenError)
        ),
        stop=stop_after_attempt(attempts),
        wait=wait_random_exponential(multiplier=0.5, max=max_wait),
        before_sleep=before_sleep_log(logger, logging.INFO),
        reraise=True,
    ):
        with attempt:
            return await breaker.call(func, *args, **kwargs)
