"""
Shared kernel for the Typesense search core.

Provides:
- Unified exception hierarchy
- Async fan-out utilities
- Settings loaded from the environment
"""

from .async_utils import (
    # Fault tolerance
    CircuitBreaker,
    # Parallel execution
    gather_with_errors,
)
from .exceptions import (
    CircuitOpenError,
    ConfigurationError,
    DataError,
    ErrorCategory,
    ErrorContext,
    ErrorSeverity,
    InvalidFieldNameError,
    InvalidFilterExpressionError,
    InvalidGeoFilterError,
    InvalidParameterError,
    InvalidSortError,
    NetworkError,
    ParseError,
    RateLimitError,
    ServiceError,
    ServiceUnavailableError,
    # Base
    TypesenseSearchError,
    ValidationError,
    # Utilities
    get_retry_delay,
    is_retryable_error,
)
from .settings import SearchDefaults, TypesenseSettings, load_collection_configs

__all__ = [
    # Exceptions
    "TypesenseSearchError",
    "ErrorContext",
    "ErrorSeverity",
    "ErrorCategory",
    "ServiceError",
    "RateLimitError",
    "NetworkError",
    "ServiceUnavailableError",
    "CircuitOpenError",
    "ValidationError",
    "InvalidFieldNameError",
    "InvalidGeoFilterError",
    "InvalidSortError",
    "InvalidFilterExpressionError",
    "InvalidParameterError",
    "DataError",
    "ParseError",
    "ConfigurationError",
    "is_retryable_error",
    "get_retry_delay",
    # Async utilities
    "gather_with_errors",
    "CircuitBreaker",
    # Settings
    "TypesenseSettings",
    "SearchDefaults",
    "load_collection_configs",
]
