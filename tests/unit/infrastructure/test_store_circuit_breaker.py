"""
Tests for the store circuit breaker.
"""

import pytest

from vision_image_cache.infrastructure.exceptions import (
    CacheStoreCircuitOpenException,
    CacheStoreUnavailableException,
)
from vision_image_cache.infrastructure.storage.circuit_breaker import (
    CircuitBreakerConfig,
    CircuitState,
    StoreCircuitBreaker,
)


async def failing_operation():
    raise CacheStoreUnavailableException(operation="find_by_key")


async def working_operation():
    return "ok"


class TestStoreCircuitBreaker:
    """Test breaker state transitions."""

    @pytest.mark.asyncio
    async def test_passes_results_through(self):
        breaker = StoreCircuitBreaker()

        assert await breaker.call(working_operation) == "ok"
        assert breaker.metrics.successful_calls == 1

    @pytest.mark.asyncio
    async def test_runs_sync_callables(self):
        breaker = StoreCircuitBreaker()

        assert await breaker.call(lambda value: value * 2, 21) == 42

    @pytest.mark.asyncio
    async def test_opens_at_failure_threshold(self):
        breaker = StoreCircuitBreaker(CircuitBreakerConfig(failure_threshold=2))

        for _ in range(2):
            with pytest.raises(CacheStoreUnavailableException):
                await breaker.call(failing_operation)

        assert breaker.state == CircuitState.OPEN

        with pytest.raises(CacheStoreCircuitOpenException):
            await breaker.call(working_operation)
        assert breaker.metrics.rejected_calls == 1

    @pytest.mark.asyncio
    async def test_success_resets_failure_count(self):
        breaker = StoreCircuitBreaker(CircuitBreakerConfig(failure_threshold=2))

        with pytest.raises(CacheStoreUnavailableException):
            await breaker.call(failing_operation)
        await breaker.call(working_operation)
        with pytest.raises(CacheStoreUnavailableException):
            await breaker.call(failing_operation)

        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_recovers_after_timeout(self):
        breaker = StoreCircuitBreaker(
            CircuitBreakerConfig(failure_threshold=1, recovery_timeout=0.0)
        )
        with pytest.raises(CacheStoreUnavailableException):
            await breaker.call(failing_operation)
        assert breaker.state == CircuitState.OPEN

        assert await breaker.call(working_operation) == "ok"
        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_unrelated_errors_do_not_count(self):
        breaker = StoreCircuitBreaker(CircuitBreakerConfig(failure_threshold=1))

        async def buggy():
            raise KeyError("boom")

        with pytest.raises(KeyError):
            await breaker.call(buggy)
        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_manual_reset(self):
        breaker = StoreCircuitBreaker(CircuitBreakerConfig(failure_threshold=1))
        with pytest.raises(CacheStoreUnavailableException):
            await breaker.call(failing_operation)

        await breaker.reset()

        status = breaker.get_status()
        assert status["state"] == "closed"
        assert status["failure_count"] == 0
        assert status["metrics"]["failed_calls"] == 1
