"""
Storage Infrastructure

Circuit breaker protecting the durable image cache store.
"""

from .circuit_breaker import (
    CircuitBreakerConfig,
    CircuitState,
    StoreCircuitBreaker,
)

__all__ = ["CircuitBreakerConfig", "CircuitState", "StoreCircuitBreaker"]
