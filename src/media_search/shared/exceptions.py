"""
Unified Exception Hierarchy for Media Search.

Exception Hierarchy:
    MediaSearchError (base)
    ├── ValidationError
    │   └── InvalidKeywordError
    ├── AuthenticationError
    ├── SourceError
    │   ├── SourceTimeoutError
    │   └── SourceResponseError
    ├── ClassificationError
    ├── PolicyError
    └── ConfigurationError

Only ValidationError, AuthenticationError and PolicyError ever reach a client.
SourceError and ClassificationError are recovered inside the pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any


class ErrorSeverity(Enum):
    """Severity levels for errors."""
    WARNING = auto()      # Recoverable, can continue
    ERROR = auto()        # Failed but can retry
    CRITICAL = auto()     # Cannot continue
    TRANSIENT = auto()    # Temporary, should retry automatically


class ErrorCategory(Enum):
    """Categories for error classification."""
    VALIDATION = "validation"
    AUTH = "auth"
    SOURCE = "source"
    CLASSIFICATION = "classification"
    POLICY = "policy"
    CONFIGURATION = "config"


@dataclass(frozen=True, slots=True)
class ErrorContext:
    """Rich context attached to an error."""
    operation: str | None = None
    source_key: str | None = None
    input_value: Any = None
    suggestion: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class MediaSearchError(Exception):
    """
    Base exception for all media search errors.

    Provides:
    - Structured error context
    - Severity classification
    - Retry guidance
    - JSON-friendly formatting
    """

    __slots__ = ('context', 'severity', 'category', 'retryable')

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        category: ErrorCategory = ErrorCategory.SOURCE,
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
        if self.context.operation:
            result["operation"] = self.context.operation
        if self.context.source_key:
            result["source"] = self.context.source_key
        if self.context.suggestion:
            result["suggestion"] = self.context.suggestion
        return result


# =============================================================================
# Input / Auth Errors
# =============================================================================

class ValidationError(MediaSearchError):
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


class InvalidKeywordError(ValidationError):
    """Raised when the search keyword is missing or blank."""

    def __init__(
        self,
        keyword: Any,
        reason: str = "Keyword cannot be empty",
    ) -> None:
        ctx = ErrorContext(
            operation="search",
            input_value=keyword,
            suggestion="Pass a non-empty keyword with ?q=",
        )
        super().__init__(f"Invalid keyword: {reason}", context=ctx)


class AuthenticationError(MediaSearchError):
    """Raised when the request carries no known principal."""

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(
            message,
            severity=ErrorSeverity.WARNING,
            category=ErrorCategory.AUTH,
            retryable=False,
        )


# =============================================================================
# Source Errors (recovered per source, never surfaced)
# =============================================================================

class SourceError(MediaSearchError):
    """Base class for failures of a single upstream source."""

    def __init__(
        self,
        message: str,
        *,
        source_key: str | None = None,
        retryable: bool = True,
    ) -> None:
        super().__init__(
            message,
            context=ErrorContext(operation="source_search", source_key=source_key),
            severity=ErrorSeverity.ERROR,
            category=ErrorCategory.SOURCE,
            retryable=retryable,
        )
        self.source_key = source_key


class SourceTimeoutError(SourceError):
    """Raised when a source does not answer in time."""

    def __init__(self, source_key: str, timeout: float) -> None:
        super().__init__(f"{source_key}: timed out after {timeout:.1f}s", source_key=source_key)
        self.severity = ErrorSeverity.TRANSIENT


class SourceResponseError(SourceError):
    """Raised for non-success status codes and malformed payloads."""

    def __init__(
        self,
        source_key: str,
        message: str,
        *,
        status_code: int | None = None,
        retry_after: float | None = None,
    ) -> None:
        prefix = f"{source_key}: HTTP {status_code}" if status_code else source_key
        super().__init__(
            f"{prefix}: {message}",
            source_key=source_key,
            retryable=status_code is not None and (status_code == 429 or status_code >= 500),
        )
        self.status_code = status_code
        self.retry_after = retry_after


# =============================================================================
# Pipeline Errors
# =============================================================================

class ClassificationError(MediaSearchError):
    """Raised when an item cannot be classified at all."""

    def __init__(self, message: str) -> None:
        super().__init__(
            message,
            severity=ErrorSeverity.WARNING,
            category=ErrorCategory.CLASSIFICATION,
        )


class PolicyError(MediaSearchError):
    """Raised when no policy decision can be made for a session."""

    def __init__(self, message: str, *, context: ErrorContext | None = None) -> None:
        super().__init__(
            message,
            context=context or ErrorContext(operation="policy_snapshot"),
            severity=ErrorSeverity.CRITICAL,
            category=ErrorCategory.POLICY,
            retryable=True,
        )


class ConfigurationError(MediaSearchError):
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
# Utilities
# =============================================================================

def validate_keyword(keyword: str | None) -> str:
    """Return the stripped keyword or raise InvalidKeywordError."""
    if keyword is None:
        raise InvalidKeywordError(keyword, "Keyword is required")
    if not isinstance(keyword, str):
        raise InvalidKeywordError(keyword, "Keyword must be a string")
    stripped = keyword.strip()
    if not stripped:
        raise InvalidKeywordError(keyword)
    return stripped


def is_retryable_error(error: Exception) -> bool:
    """Check if an error should be retried."""
    if isinstance(error, MediaSearchError):
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
