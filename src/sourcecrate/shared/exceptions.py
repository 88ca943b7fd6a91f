"""
Exception hierarchy for SourceCrate search.

Errors never cross the search boundary to the consumer: adapter failures are
reported per source, malformed records are dropped, and cache corruption is a
miss. The hierarchy exists so each layer can classify what it caught.

Exception Hierarchy:
    SourceCrateError (base)
    ├── APIError
    │   ├── RateLimitError
    │   ├── NetworkError
    │   ├── SourceTimeoutError
    │   └── ServiceUnavailableError
    ├── ValidationError
    │   ├── InvalidQueryError
    │   └── InvalidParameterError
    ├── DataError
    │   ├── MalformedRecordError
    │   └── ParseError
    └── ConfigurationError
        └── UnknownSourceError
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field, replace
from enum import Enum, auto
from typing import Any


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    WARNING = auto()  # Recoverable, search continues
    ERROR = auto()  # One unit of work failed
    CRITICAL = auto()  # Misconfiguration
    TRANSIENT = auto()  # Temporary, worth retrying


class ErrorCategory(Enum):
    """Categories for error classification."""

    API = "api"
    VALIDATION = "validation"
    DATA = "data"
    CONFIGURATION = "config"
    NETWORK = "network"


@dataclass(frozen=True, slots=True)
class ErrorContext:
    """Structured context attached to every SourceCrate error."""

    source: str | None = None
    operation: str | None = None
    input_value: Any = None
    suggestion: str | None = None
    retry_after: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class SourceCrateError(Exception):
    """
    Base exception for all SourceCrate errors.

    Provides:
    - Structured error context
    - Severity classification
    - Retry guidance
    """

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        category: ErrorCategory = ErrorCategory.API,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.context = context or ErrorContext()
        self.severity = severity
        self.category = category
        self.retryable = retryable

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "error": str(self),
            "category": self.category.value,
            "severity": self.severity.name.lower(),
            "retryable": self.retryable,
        }
        if self.context.source:
            result["source"] = self.context.source
        if self.context.operation:
            result["operation"] = self.context.operation
        if self.context.suggestion:
            result["suggestion"] = self.context.suggestion
        if self.context.retry_after:
            result["retry_after_seconds"] = self.context.retry_after
        return result


# =============================================================================
# API Errors
# =============================================================================


class APIError(SourceCrateError):
    """Base class for errors raised while talking to a remote source."""

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
        retryable: bool = True,
    ) -> None:
        super().__init__(
            message,
            context=context,
            severity=ErrorSeverity.ERROR,
            category=ErrorCategory.API,
            retryable=retryable,
        )


class RateLimitError(APIError):
    """Raised when a source refuses requests (429 or open circuit breaker)."""

    def __init__(
        self,
        message: str = "API rate limit exceeded",
        *,
        retry_after: float = 1.0,
        context: ErrorContext | None = None,
    ) -> None:
        ctx = context or ErrorContext()
        ctx = replace(
            ctx,
            suggestion=ctx.suggestion or "Wait and retry the request",
            retry_after=retry_after,
        )
        super().__init__(message, context=ctx, retryable=True)
        self.severity = ErrorSeverity.TRANSIENT


class NetworkError(APIError):
    """Raised for network connectivity issues."""

    def __init__(
        self,
        message: str = "Network connection failed",
        *,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(message, context=context, retryable=True)
        self.category = ErrorCategory.NETWORK


class SourceTimeoutError(APIError):
    """Raised when a source does not settle within its time budget."""

    def __init__(
        self,
        source: str,
        timeout: float,
        *,
        context: ErrorContext | None = None,
    ) -> None:
        ctx = replace(context or ErrorContext(), source=source, input_value=timeout)
        super().__init__(f"{source}: timed out after {timeout:g}s", context=ctx, retryable=True)
        self.severity = ErrorSeverity.TRANSIENT


class ServiceUnavailableError(APIError):
    """Raised when the external service is temporarily unavailable."""

    def __init__(
        self,
        message: str = "Service temporarily unavailable",
        *,
        service: str = "API",
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(f"{service}: {message}", context=context, retryable=True)
        self.severity = ErrorSeverity.TRANSIENT


# =============================================================================
# Validation Errors
# =============================================================================


class ValidationError(SourceCrateError):
    """Base class for validation errors."""

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(
            message,
            context=context,
            severity=ErrorSeverity.WARNING,
            category=ErrorCategory.VALIDATION,
            retryable=False,
        )


class InvalidQueryError(ValidationError):
    """Raised when a search query cannot be used."""

    def __init__(
        self,
        query: str | None,
        reason: str = "Query cannot be empty",
        *,
        context: ErrorContext | None = None,
    ) -> None:
        ctx = context or ErrorContext()
        ctx = replace(
            ctx,
            input_value=query,
            suggestion=ctx.suggestion or "Provide a non-blank search query",
        )
        super().__init__(f"Invalid query: {reason}", context=ctx)


class InvalidParameterError(ValidationError):
    """Raised when a parameter value is invalid."""

    def __init__(
        self,
        param_name: str,
        value: Any,
        expected: str,
        *,
        context: ErrorContext | None = None,
    ) -> None:
        ctx = replace(context or ErrorContext(), input_value=value, suggestion=f"Expected {expected}")
        super().__init__(
            f"Invalid parameter '{param_name}': {value!r} (expected {expected})",
            context=ctx,
        )


# =============================================================================
# Data Errors
# =============================================================================


class DataError(SourceCrateError):
    """Base class for data-related errors."""

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(
            message,
            context=context,
            severity=ErrorSeverity.WARNING,
            category=ErrorCategory.DATA,
            retryable=False,
        )


class MalformedRecordError(DataError):
    """Raised when an adapter hands back a record that cannot become a Paper."""

    def __init__(
        self,
        reason: str,
        *,
        source: str | None = None,
        record: Any = None,
        context: ErrorContext | None = None,
    ) -> None:
        ctx = replace(context or ErrorContext(), source=source, input_value=record)
        prefix = f"Malformed record from {source}" if source else "Malformed record"
        super().__init__(f"{prefix}: {reason}", context=ctx)


class ParseError(DataError):
    """Raised when a source payload cannot be parsed."""

    def __init__(
        self,
        message: str,
        *,
        source: str | None = None,
        context: ErrorContext | None = None,
    ) -> None:
        full_msg = f"Parse error: {message}"
        if source:
            full_msg = f"Parse error ({source}): {message}"
        super().__init__(full_msg, context=context)


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(SourceCrateError):
    """Raised for configuration-related errors."""

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(
            message,
            context=context,
            severity=ErrorSeverity.CRITICAL,
            category=ErrorCategory.CONFIGURATION,
            retryable=False,
        )


class UnknownSourceError(ConfigurationError):
    """Raised when a source name is not present in the registry."""

    def __init__(
        self,
        name: str,
        available: list[str] | None = None,
        *,
        context: ErrorContext | None = None,
    ) -> None:
        suggestion = None
        if available:
            suggestion = f"Use one of: {', '.join(available)}"
        ctx = replace(context or ErrorContext(), source=name, suggestion=suggestion)
        super().__init__(f"Unknown source: {name}", context=ctx)


# =============================================================================
# Retry helpers
# =============================================================================

_TRANSIENT_PATTERNS = (
    "rate limit",
    "too many requests",
    "temporarily unavailable",
    "service unavailable",
    "backend failed",
    "connection reset",
    "timeout",
    "timed out",
)


def is_retryable_error(error: Exception) -> bool:
    """Check if an error should be retried."""
    if isinstance(error, SourceCrateError):
        return error.retryable

    error_str = str(error).lower()
    return any(pattern in error_str for pattern in _TRANSIENT_PATTERNS)


def get_retry_delay(error: Exception, attempt: int) -> float:
    """
    Calculate retry delay with exponential backoff.

    Args:
        error: The exception that occurred
        attempt: Current attempt number (0-based)

    Returns:
        Delay in seconds before next retry, capped at 30 seconds
    """
    base_delay = 1.0
    if isinstance(error, SourceCrateError) and error.context.retry_after:
        base_delay = error.context.retry_after

    delay = base_delay * (2**attempt)
    jitter = random.uniform(0, 0.1 * delay)
    return min(delay + jitter, 30.0)


__all__ = [
    "APIError",
    "ConfigurationError",
    "DataError",
    "ErrorCategory",
    "ErrorContext",
    "ErrorSeverity",
    "InvalidParameterError",
    "InvalidQueryError",
    "MalformedRecordError",
    "NetworkError",
    "ParseError",
    "RateLimitError",
    "ServiceUnavailableError",
    "SourceCrateError",
    "SourceTimeoutError",
    "UnknownSourceError",
    "ValidationError",
    "get_retry_delay",
    "is_retryable_error",
]
