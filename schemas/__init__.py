"""
Pydantic schemas for API request and response bodies.

Domain results (scores, verdicts, forecasts) are pydantic models or
dataclasses defined next to the code that computes them; the schemas here
only describe what crosses the HTTP boundary.

Usage:
    from schemas.api import CompareRequest, AlertResponse
"""

__all__ = [
    "HealthCheckResponse",
    "ComparisonCoreResponse",
    "CompareRequest",
    "CompareResponse",
    "WarmupRequest",
    "SaveComparisonRequest",
    "SavedComparisonResponse",
    "HistoryResponse",
    "CreateAlertRequest",
    "UpdateAlertRequest",
    "AlertResponse",
    "TrustStatsResponse",
    "KeywordValidateRequest",
    "KeywordValidateResponse",
]
