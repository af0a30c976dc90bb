"""
Store Circuit Breaker Implementation

Implements circuit breaker pattern for durable cache store operations
so an unavailable store is skipped quickly instead of slowing every lookup.
"""

import time
import asyncio
import inspect
import logging
from enum import Enum
from typing import Callable, Any, Optional, TypeVar
from dataclasses import dataclass

from ..exceptions import CacheStoreCircuitOpenException, CacheStoreUnavailableException

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing, reject calls
    HALF_OPEN = "half_open"  # Testing if store recovered


@dataclass
class CircuitBreakerConfig:
    """Configuration for circuit breaker."""

    # Failure threshold - number of failures before opening
    failure_threshold: int = 5

    # Recovery timeout - seconds to wait before trying again
    recovery_timeout: float = 30.0

    # Success threshold - number of successes needed to close circuit
    success_threshold: int = 1

    # Timeout for individual operations
    operation_timeout: float = 10.0

    # Monitor these exception types as failures
    failure_exceptions: tuple = (
        CacheStoreUnavailableException,
        ConnectionError,
        TimeoutError,
        OSError,
    )


@dataclass
class CircuitBreakerMetrics:
    """Metrics for circuit breaker monitoring."""

    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    rejected_calls: int = 0
    circuit_opens: int = 0
    last_failure_time: Optional[float] = None
    last_success_time: Optional[float] = None

    @property
    def success_rate(self) -> float:
        """Calculate success rate."""
        if self.total_calls == 0:
            return 0.0
        return self.successful_calls / self.total_calls


class StoreCircuitBreaker:
    """
    Circuit breaker for durable store operations.

    Opens after ``failure_threshold`` consecutive failures and rejects calls
    with ``CacheStoreCircuitOpenException`` until ``recovery_timeout`` elapses.
    """

    def __init__(self, config: Optional[CircuitBreakerConfig] = None):
        self.config = config or CircuitBreakerConfig()
        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.success_count = 0
        self.last_failure_time: Optional[float] = None
        self.last_state_change_time = time.time()
        self.metrics = CircuitBreakerMetrics()
        self._lock = asyncio.Lock()

    async def call(self, func: Callable[..., Any], *args, **kwargs) -> Any:
        """
        Execute function with circuit breaker protection.

        Raises:
            CacheStoreCircuitOpenException: If circuit is open
            CacheStoreUnavailableException: If the operation timed out
            Exception: Original exception from function call
        """
        async with self._lock:
            self.metrics.total_calls += 1
            if self.state == CircuitState.OPEN:
                if self._should_attempt_reset():
                    self.state = CircuitState.HALF_OPEN
                    self.last_state_change_time = time.time()
                    logger.info(
                        "Store circuit breaker transitioning to HALF_OPEN",
                        extra={"failure_count": self.failure_count},
                    )
                else:
                    self.metrics.rejected_calls += 1
                    raise CacheStoreCircuitOpenException()

        start_time = time.time()
        try:
            result = await asyncio.wait_for(
                self._execute_function(func, *args, **kwargs),
                timeout=self.config.operation_timeout,
            )
        except asyncio.TimeoutError as e:
            await self._record_failure("timeout")
            raise CacheStoreUnavailableException(
                message=(
                    f"Store operation timed out after {self.config.operation_timeout}s"
                ),
                operation=getattr(func, "__name__", None),
                original_error=e,
            ) from e
        except Exception as e:
            if isinstance(e, self.config.failure_exceptions):
                await self._record_failure(type(e).__name__)
                logger.warning(
                    "Store circuit breaker: operation failed",
                    extra={
                        "exception_type": type(e).__name__,
                        "execution_time": time.time() - start_time,
                        "failure_count": self.failure_count,
                        "state": self.state.value,
                    },
                )
            raise

        await self._record_success()
        return result

    async def _execute_function(self, func: Callable[..., Any], *args, **kwargs) -> Any:
        """Execute the function (sync or async)."""
        if inspect.iscoroutinefunction(func):
            return await func(*args, **kwargs)
        return await asyncio.to_thread(func, *args, **kwargs)

    async def _record_success(self) -> None:
        """Record successful operation."""
        async with self._lock:
            self.metrics.successful_calls += 1
            self.metrics.last_success_time = time.time()

            if self.state == CircuitState.HALF_OPEN:
                self.success_count += 1
                if self.success_count >= self.config.success_threshold:
                    self.state = CircuitState.CLOSED
                    self.failure_count = 0
                    self.success_count = 0
                    self.last_state_change_time = time.time()
                    logger.info("Store circuit breaker closed after recovery")
            elif self.state == CircuitState.CLOSED:
                self.failure_count = 0

    async def _record_failure(self, failure_type: str) -> None:
        """Record failed operation."""
        async with self._lock:
            self.metrics.failed_calls += 1
            self.metrics.last_failure_time = time.time()
            self.last_failure_time = time.time()

            if self.state == CircuitState.HALF_OPEN:
                self.state = CircuitState.OPEN
                self.success_count = 0
                self.last_state_change_time = time.time()
                self.metrics.circuit_opens += 1
                logger.warning(
                    "Store circuit breaker reopened after failure in half-open state",
                    extra={"failure_type": failure_type},
                )

            elif self.state == CircuitState.CLOSED:
                self.failure_count += 1

                if self.failure_count >= self.config.failure_threshold:
                    self.state = CircuitState.OPEN
                    self.last_state_change_time = time.time()
                    self.metrics.circuit_opens += 1
                    logger.warning(
                        "Store circuit breaker opened due to failure threshold",
                        extra={
                            "failure_count": self.failure_count,
                            "threshold": self.config.failure_threshold,
                            "failure_type": failure_type,
                        },
                    )

    def _should_attempt_reset(self) -> bool:
        """Check if enough time has passed to attempt circuit reset."""
        if self.last_failure_time is None:
            return True
        return time.time() - self.last_failure_time >= self.config.recovery_timeout

    def get_status(self) -> dict:
        """Get current circuit breaker status for monitoring."""
        return {
            "state": self.state.value,
            "failure_count": self.failure_count,
            "last_failure_time": self.last_failure_time,
            "last_state_change_time": self.last_state_change_time,
            "metrics": {
                "total_calls": self.metrics.total_calls,
                "successful_calls": self.metrics.successful_calls,
                "failed_calls": self.metrics.failed_calls,
                "rejected_calls": self.metrics.rejected_calls,
                "success_rate": self.metrics.success_rate,
                "circuit_opens": self.metrics.circuit_opens,
            },
            "config": {
                "failure_threshold": self.config.failure_threshold,
                "recovery_timeout": self.config.recovery_timeout,
                "operation_timeout": self.config.operation_timeout,
            },
        }

    async def reset(self) -> None:
        """Manually reset circuit breaker to closed state."""
        async with self._lock:
            self.state = CircuitState.CLOSED
            self.failure_count = 0
            self.success_count = 0
            self.last_failure_time = None
            self.last_state_change_time = time.time()

            logger.info("Store circuit breaker manually reset to CLOSED state")
