"""
SQLAlchemy ORM models for database tables.

Models:
    base: Base declarative class, JSON column type and shared enums
    comparison: Stored comparisons and score snapshots
    user: Users, saved comparisons and view history
    alert: Trend alerts
    forecast: Forecast runs, points, evaluations and trust statistics

Database Schema:
    All models inherit from the Base declarative class. JSON columns use
    JSONB on PostgreSQL and plain JSON on other backends.

Usage:
    from models import Comparison, ForecastRun
    from models.base import AlertType, AlertStatus

Relationships:
    - Comparison → ForecastRun (one-to-many, cascade delete)
    - ForecastRun → ForecastPoint (one-to-many, cascade delete)
    - ForecastRun → ForecastEvaluation (one-to-one, cascade delete)
    - User → SavedComparison / ComparisonHistory / TrendAlert (one-to-many)
"""

from models.base import (
    Base, AlertType, AlertFrequency, AlertStatus, ForecastTerm, WarmupStatus
)
from models.comparison import Comparison, ComparisonSnapshot
from models.user import User, SavedComparison, ComparisonHistory
from models.alert import TrendAlert
from models.forecast import ForecastRun, ForecastPoint, ForecastEvaluation, ForecastTrustStats

__all__ = [
    "Base",
    "AlertType",
    "AlertFrequency",
    "AlertStatus",
    "ForecastTerm",
    "WarmupStatus",
    "Comparison",
    "ComparisonSnapshot",
    "User",
    "SavedComparison",
    "ComparisonHistory",
    "TrendAlert",
    "ForecastRun",
    "ForecastPoint",
    "ForecastEvaluation",
    "ForecastTrustStats",
]
