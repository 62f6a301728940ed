"""
Shared module for Media Search.

Provides:
- Unified exception hierarchy
- Async utilities for upstream calls (rate limiting, circuit breaking)
"""

from .async_utils import CircuitBreaker, RateLimiter
from .exceptions import (
    AuthenticationError,
    ClassificationError,
    ConfigurationError,
    ErrorCategory,
    ErrorContext,
    ErrorSeverity,
    InvalidKeywordError,
    MediaSearchError,
    PolicyError,
    SourceError,
    SourceResponseError,
    SourceTimeoutError,
    ValidationError,
    is_retryable_error,
    validate_keyword,
)

__all__ = [
    # Base
    "MediaSearchError",
    "ErrorContext",
    "ErrorSeverity",
    "ErrorCategory",
    # Input / auth
    "ValidationError",
    "InvalidKeywordError",
    "AuthenticationError",
    # Sources
    "SourceError",
    "SourceTimeoutError",
    "SourceResponseError",
    # Pipeline
    "ClassificationError",
    "PolicyError",
    "ConfigurationError",
    # Utilities
    "validate_keyword",
    "is_retryable_error",
    "RateLimiter",
    "CircuitBreaker",
]
