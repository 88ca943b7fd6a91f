"""
Shared module for SourceCrate search.

Provides:
- Exception hierarchy
- Async utilities (circuit breaker, timeouts, callback invocation)
"""

from .async_utils import CircuitBreaker, invoke_callback, run_with_timeout
from .exceptions import (
    APIError,
    ConfigurationError,
    DataError,
    ErrorCategory,
    ErrorContext,
    ErrorSeverity,
    InvalidParameterError,
    InvalidQueryError,
    MalformedRecordError,
    NetworkError,
    ParseError,
    RateLimitError,
    ServiceUnavailableError,
    SourceCrateError,
    SourceTimeoutError,
    UnknownSourceError,
    ValidationError,
    get_retry_delay,
    is_retryable_error,
)

__all__ = [
    # Exceptions
    "SourceCrateError",
    "ErrorContext",
    "ErrorSeverity",
    "ErrorCategory",
    "APIError",
    "RateLimitError",
    "NetworkError",
    "SourceTimeoutError",
    "ServiceUnavailableError",
    "ValidationError",
    "InvalidQueryError",
    "InvalidParameterError",
    "DataError",
    "MalformedRecordError",
    "ParseError",
    "ConfigurationError",
    "UnknownSourceError",
    "is_retryable_error",
    "get_retry_delay",
    # Async utilities
    "CircuitBreaker",
    "invoke_callback",
    "run_with_timeout",
]
