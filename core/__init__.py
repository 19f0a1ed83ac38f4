"""
Core utilities and configuration for the TrendArc backend.

This package provides foundational components used throughout the service:

Modules:
    config: Application configuration and environment variable management
    database: Database engine and session management
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration

Usage:
    from core.config import settings
    from core.database import get_db_session
    from core.exceptions import InvalidSlugError, InsufficientDataError
    from core.logging import setup_logging

Example:
    # Initialize logging
    setup_logging()

    # Get database session in a background job
    async with get_db_session() as session:
        # Perform database operations
        pass
"""

__all__ = [
    "settings",
    "get_db_session",
    "setup_logging",
    # Exceptions
    "TrendArcException",
    "RetryableError",
    "NonRetryableError",
    "ValidationError",
    "InvalidSlugError",
    "InvalidTermError",
    "ComparisonError",
    "InsufficientDataError",
    "ProviderError",
    "NetworkError",
    "RateLimitError",
    "AuthenticationError",
    "ForecastError",
    "InsufficientSeriesError",
    "CacheError",
    "LockNotAcquiredError",
    "WarmupError",
    "InsightUnavailableError",
    "ResourceNotFoundError",
    "AuthorizationError",
]
