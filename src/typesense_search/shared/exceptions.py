"""
Unified Exception Hierarchy for the Typesense search core.

Exception Hierarchy:
    TypesenseSearchError (base)
    ├── ServiceError
    │   ├── RateLimitError
    │   ├── NetworkError
    │   └── ServiceUnavailableError
    │       └── CircuitOpenError
    ├── ValidationError
    │   ├── InvalidFieldNameError
    │   ├── InvalidGeoFilterError
    │   ├── InvalidSortError
    │   ├── InvalidFilterExpressionError
    │   └── InvalidParameterError
    ├── DataError
    │   └── ParseError
    └── ConfigurationError

Validation errors are raised synchronously before any request is sent.
Service errors describe a single failed request to the backing service; the
orchestrator and the merger turn them into per-item diagnostics instead of
letting them abort a whole search.
"""

from __future__ import annotations

import dataclasses
import random
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    WARNING = auto()  # Recoverable, can continue
    ERROR = auto()  # Failed but can retry
    CRITICAL = auto()  # Cannot continue
    TRANSIENT = auto()  # Temporary, should retry automatically


class ErrorCategory(Enum):
    """Categories for error classification."""

    SERVICE = "service"
    VALIDATION = "validation"
    DATA = "data"
    CONFIGURATION = "config"
    NETWORK = "network"


@dataclass(frozen=True, slots=True)
class ErrorContext:
    """Rich context attached to every error."""

    operation: str | None = None
    collection: str | None = None
    field: str | None = None
    input_value: Any = None
    suggestion: str | None = None
    retry_after: float | None = None
    metadata: dict[str, Any] = dataclasses.field(default_factory=dict)

    def with_updates(self, **changes: Any) -> ErrorContext:
        """Return a copy with the given attributes replaced."""
        values = {
            "operation": self.operation,
            "collection": self.collection,
            "field": self.field,
            "input_value": self.input_value,
            "suggestion": self.suggestion,
            "retry_after": self.retry_after,
            "metadata": self.metadata,
        }
        values.update(changes)
        return ErrorContext(**values)


class TypesenseSearchError(Exception):
    """
    Base exception for all search-core errors.

    Provides:
    - Structured error context
    - Severity classification
    - Retry guidance
    """

    __slots__ = ("context", "severity", "category", "retryable")

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        category: ErrorCategory = ErrorCategory.SERVICE,
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
            "type": type(self).__name__,
            "category": self.category.value,
            "severity": self.severity.name.lower(),
            "retryable": self.retryable,
        }
        if self.context.collection:
            result["collection"] = self.context.collection
        if self.context.field:
            result["field"] = self.context.field
        if self.context.suggestion:
            result["suggestion"] = self.context.suggestion
        if self.context.retry_after:
            result["retry_after_seconds"] = self.context.retry_after
        return result


# =============================================================================
# Service Errors
# =============================================================================


class ServiceError(TypesenseSearchError):
    """A request to the backing search service did not succeed."""

    def __init__(
        self,
        message: str,
        *,
        collection: str | None = None,
        status_code: int | None = None,
        context: ErrorContext | None = None,
        retryable: bool = False,
    ) -> None:
        ctx = context or ErrorContext()
        if collection and not ctx.collection:
            ctx = ctx.with_updates(collection=collection)
        super().__init__(
            message,
            context=ctx,
            severity=ErrorSeverity.ERROR,
            category=ErrorCategory.SERVICE,
            retryable=retryable,
        )
        self.status_code = status_code

    @property
    def collection(self) -> str | None:
        return self.context.collection


class RateLimitError(ServiceError):
    """Raised when the service answers with HTTP 429."""

    def __init__(
        self,
        message: str = "Search service rate limit exceeded",
        *,
        retry_after: float = 1.0,
        collection: str | None = None,
        context: ErrorContext | None = None,
    ) -> None:
        ctx = (context or ErrorContext()).with_updates(retry_after=retry_after)
        if not ctx.suggestion:
            ctx = ctx.with_updates(suggestion="Wait and retry the request")
        super().__init__(message, collection=collection, status_code=429, context=ctx, retryable=True)
        self.severity = ErrorSeverity.TRANSIENT


class NetworkError(ServiceError):
    """Raised for network connectivity issues."""

    def __init__(
        self,
        message: str = "Network connection failed",
        *,
        collection: str | None = None,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(message, collection=collection, context=context, retryable=True)
        self.category = ErrorCategory.NETWORK


class ServiceUnavailableError(ServiceError):
    """Raised when the search service is temporarily unavailable."""

    def __init__(
        self,
        message: str = "Service temporarily unavailable",
        *,
        status_code: int | None = None,
        collection: str | None = None,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(
            f"Typesense: {message}",
            collection=collection,
            status_code=status_code,
            context=context,
            retryable=True,
        )
        self.severity = ErrorSeverity.TRANSIENT


class CircuitOpenError(ServiceUnavailableError):
    """Raised by the circuit breaker without contacting the service; not retried."""

    def __init__(self, message: str = "circuit breaker is open", *, context: ErrorContext | None = None) -> None:
        ctx = context or ErrorContext()
        if not ctx.suggestion:
            ctx = ctx.with_updates(suggestion="Wait for the breaker recovery timeout before retrying")
        super().__init__(message, context=ctx)
        self.retryable = False


# =============================================================================
# Validation Errors
# =============================================================================


class ValidationError(TypesenseSearchError):
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


class InvalidFieldNameError(ValidationError):
    """Raised when a field name cannot be used in a filter or sort expression."""

    def __init__(self, field_name: Any, *, context: ErrorContext | None = None) -> None:
        ctx = (context or ErrorContext()).with_updates(
            field=str(field_name),
            input_value=field_name,
            suggestion="Field names start with a letter or underscore and contain letters, digits, '_' or '.'",
        )
        super().__init__(f"Invalid field name: {field_name!r}", context=ctx)


class InvalidGeoFilterError(ValidationError):
    """Raised when geo radius coordinates or radius are out of range."""

    def __init__(
        self,
        reason: str,
        *,
        field_name: str | None = None,
        value: Any = None,
        context: ErrorContext | None = None,
    ) -> None:
        ctx = (context or ErrorContext()).with_updates(field=field_name, input_value=value)
        super().__init__(reason, context=ctx)


class InvalidSortError(ValidationError):
    """Raised when a sort direction is not one of the canonical tokens."""

    def __init__(self, field_name: str, direction: Any, *, context: ErrorContext | None = None) -> None:
        ctx = (context or ErrorContext()).with_updates(
            field=field_name,
            input_value=direction,
            suggestion="Use 'asc' or 'desc'",
        )
        super().__init__(f"Invalid sort direction for '{field_name}': {direction!r}", context=ctx)


class InvalidFilterExpressionError(ValidationError):
    """Raised when a raw filter expression is syntactically malformed."""

    def __init__(self, expression: str, reason: str, *, context: ErrorContext | None = None) -> None:
        ctx = (context or ErrorContext()).with_updates(input_value=expression)
        super().__init__(f"Invalid filter expression: {reason}", context=ctx)


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
        ctx = (context or ErrorContext()).with_updates(input_value=value, suggestion=f"Expected {expected}")
        super().__init__(
            f"Invalid parameter '{param_name}': {value!r} (expected {expected})",
            context=ctx,
        )


# =============================================================================
# Data Errors
# =============================================================================


class DataError(TypesenseSearchError):
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
            severity=ErrorSeverity.ERROR,
            category=ErrorCategory.DATA,
            retryable=False,
        )


class ParseError(DataError):
    """Raised when a service response cannot be parsed."""

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


class ConfigurationError(TypesenseSearchError):
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


# =============================================================================
# Retry helpers
# =============================================================================


def is_retryable_error(error: BaseException) -> bool:
    """Check if an error should be retried by the transport."""
    if isinstance(error, TypesenseSearchError):
        return error.retryable

    error_str = str(error).lower()
    transient_patterns = [
        "rate limit",
        "too many requests",
        "temporarily unavailable",
        "service unavailable",
        "connection reset",
        "timeout",
    ]
    return any(pattern in error_str for pattern in transient_patterns)


def get_retry_delay(error: BaseException, attempt: int, base_delay: float = 0.1) -> float:
    """
    Calculate retry delay with exponential backoff.

    Args:
        error: The exception that occurred
        attempt: Current attempt number (0-based)
        base_delay: Delay for the first retry in seconds

    Returns:
        Delay in seconds before next retry
    """
    if isinstance(error, TypesenseSearchError) and error.context.retry_after:
        base_delay = error.context.retry_after

    delay = base_delay * (2**attempt)
    jitter = random.uniform(0, 0.1 * delay)

    # Cap at 30 seconds
    return min(delay + jitter, 30.0)
