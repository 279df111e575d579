"""Core infrastructure: caching, resilience, errors and telemetry."""
from .cache import CacheInterface, Clock, InMemoryCache
from .circuit_breaker import CircuitBreaker, CircuitState
from .exceptions import (
    AppException,
    CircuitBreakerOpenError,
    LimitOutOfRangeError,
    ServiceUnavailableError,
    UnknownOptionError,
    ValidationError,
)

__all__ = [
    "AppException",
    "CacheInterface",
    "CircuitBreaker",
    "CircuitBreakerOpenError",
    "CircuitState",
    "Clock",
    "InMemoryCache",
    "LimitOutOfRangeError",
    "ServiceUnavailableError",
    "UnknownOptionError",
    "ValidationError",
]
