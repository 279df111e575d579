"""
Custom exception hierarchy for centralized error handling.
All exceptions map to appropriate HTTP status codes.

Strategy failures never surface here: the engine records them in response
metadata. Only bad input and collaborator outages reach the caller.
"""
from typing import Any, Dict, Optional, Sequence


class AppException(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to API response format."""
        return {
            "error": {
                "code": self.error_code,
                "message": self.message,
                "details": self.details,
            }
        }


class ValidationError(AppException):
    """Invalid request parameter."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(
            message=message,
            status_code=400,
            error_code="VALIDATION_ERROR",
            details=details,
        )


class LimitOutOfRangeError(ValidationError):
    """Requested result count outside [1, max_limit]."""

    def __init__(self, limit: int, max_limit: int) -> None:
        super().__init__(
            f"limit must be between 1 and {max_limit}",
            details={"limit": limit, "max_limit": max_limit},
        )


class UnknownOptionError(ValidationError):
    """Enumerated parameter (timeframe, difficulty) with an unsupported value."""

    def __init__(self, parameter: str, value: str, allowed: Sequence[str]) -> None:
        super().__init__(
            f"Unknown {parameter}: {value}",
            details={"parameter": parameter, "value": value, "allowed": list(allowed)},
        )


class ServiceUnavailableError(AppException):
    """A collaborator store (catalog, watch history) failed."""

    def __init__(self, service_name: str, reason: str = "Unknown error") -> None:
        super().__init__(
            message=f"Service temporarily unavailable: {service_name}",
            status_code=503,
            error_code="SERVICE_UNAVAILABLE",
            details={"service": service_name, "reason": reason},
        )


class CircuitBreakerOpenError(AppException):
    """Strategy skipped because its breaker is open."""

    def __init__(self, breaker_name: str, retry_in_sec: float = 0.0) -> None:
        super().__init__(
            message=f"Circuit breaker open for: {breaker_name}",
            status_code=503,
            error_code="CIRCUIT_BREAKER_OPEN",
            details={"breaker": breaker_name, "retry_in_sec": round(retry_in_sec, 3)},
        )
