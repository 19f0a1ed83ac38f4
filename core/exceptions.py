"""
Custom exceptions for TrendArc with structured error context.

Every exception carries a message, a context dictionary and optionally the
exception it wraps. Route handlers turn them into JSON responses using the
``status_code`` class attribute.

Exception Hierarchy:
    TrendArcException (base)
    ├── ValidationError
    │   ├── InvalidSlugError
    │   └── InvalidTermError
    ├── ComparisonError
    │   └── InsufficientDataError
    ├── ProviderError
    │   ├── NetworkError (retryable)
    │   ├── RateLimitError (retryable)
    │   └── AuthenticationError
    ├── ForecastError
    │   └── InsufficientSeriesError
    ├── CacheError
    │   └── LockNotAcquiredError
    ├── WarmupError
    ├── InsightUnavailableError
    ├── ResourceNotFoundError
    └── RetryableError / NonRetryableError (mixins)
"""

from typing import Optional, Dict, Any, List
from datetime import datetime


class TrendArcException(Exception):
    """
    Base exception for all TrendArc errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (slug, term, key, etc.)
        original_exception: The original exception that was caught (if any)
        status_code: HTTP status used when the error reaches a route handler
    """

    status_code: int = 500

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.utcnow()

        self.context["error_timestamp"] = self.timestamp.isoformat()

        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {str(self.original_exception)}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/responses."""
        return {
            "error": self.message,
            "error_type": self.__class__.__name__,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


# ============================================================================
# Retry Strategy Mixins
# ============================================================================

class RetryableError(TrendArcException):
    """
    Mixin for errors that should trigger retry logic.

    Use this for transient errors like:
    - Network timeouts
    - Rate limiting (HTTP 429)
    - Provider 5xx responses
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
        max_retries: int = 3,
        retry_delay: float = 1.0
    ):
        super().__init__(message, context, original_exception)
        self.max_retries = max_retries
        self.retry_delay = retry_delay


class NonRetryableError(TrendArcException):
    """Mixin for permanent errors (bad input, auth failures, missing resources)."""
    pass


# ============================================================================
# Validation Errors
# ============================================================================

class ValidationError(NonRetryableError):
    """
    Raised when user input fails validation.

    Context should include:
        - field_name: Name of the offending field
        - field_value: Value that failed validation
        - reason: Validation rule that was violated
    """
    status_code = 400


class InvalidSlugError(ValidationError):
    """Slug is missing, malformed or not in canonical form."""
    pass


class InvalidTermError(ValidationError):
    """A comparison term failed keyword or deep validation."""
    pass


# ============================================================================
# Comparison Errors
# ============================================================================

class ComparisonError(TrendArcException):
    """Base exception for comparison building failures."""
    pass


class InsufficientDataError(NonRetryableError, ComparisonError):
    """The trends provider returned no usable series for the terms."""

    status_code = 404

    def __init__(
        self,
        terms: List[str],
        timeframe: str,
        geo: str,
        original_exception: Optional[Exception] = None
    ):
        super().__init__(
            f"Insufficient data for comparison: {' vs '.join(terms)}",
            context={"terms": terms, "timeframe": timeframe, "geo": geo},
            original_exception=original_exception
        )
        self.terms = terms
        self.timeframe = timeframe
        self.geo = geo

    @property
    def user_message(self) -> str:
        joined = '" and "'.join(self.terms)
        return (
            f'We couldn\'t find enough data to compare "{joined}". '
            "Try a different timeframe or different terms."
        )


# ============================================================================
# Trends Provider Errors
# ============================================================================

class ProviderError(TrendArcException):
    """
    Raised when the trends data provider fails.

    Context should include:
        - api_url: The endpoint that failed
        - status_code: HTTP status code (if applicable)
        - retry_count: Number of retries attempted
    """
    status_code = 502


class NetworkError(RetryableError, ProviderError):
    """Network-related errors that should be retried."""
    pass


class RateLimitError(RetryableError, ProviderError):
    """Rate limiting errors (HTTP 429) that should be retried with backoff."""

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
        retry_after: Optional[int] = None
    ):
        super().__init__(message, context, original_exception)
        self.retry_after = retry_after
        if retry_after:
            self.context["retry_after"] = retry_after


class AuthenticationError(NonRetryableError, ProviderError):
    """Provider rejected our credentials (HTTP 401, 403)."""
    pass


# ============================================================================
# Forecast Errors
# ============================================================================

class ForecastError(TrendArcException):
    """Base exception for forecast computation failures."""
    pass


class InsufficientSeriesError(NonRetryableError, ForecastError):
    """Series too short to forecast."""
    status_code = 422


# ============================================================================
# Cache and Job Errors
# ============================================================================

class CacheError(TrendArcException):
    """Base exception for cache failures."""
    pass


class LockNotAcquiredError(CacheError):
    """Another worker holds the lock for this key."""
    status_code = 409


class WarmupError(TrendArcException):
    """
    Raised when a warmup execution fails.

    Context should include:
        - slug, timeframe, geo, data_hash
        - stage: step that failed (terms, comparison, forecast, verify)
    """
    pass


class InsightUnavailableError(NonRetryableError):
    """No AI insight could be produced: no model configured, over budget or a bad reply."""
    status_code = 503


class ResourceNotFoundError(NonRetryableError):
    """Generic missing resource (alert, saved comparison, user)."""
    status_code = 404


class AuthorizationError(NonRetryableError):
    """Missing or wrong shared secret / user identity."""
    status_code = 401
