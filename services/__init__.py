"""
Service layer between route handlers and the domain libraries.

Modules:
    trends_client: httpx client for the trends data provider
    comparisons: get-or-build stored comparisons, view counting, scoring and analysis
    saved: saved comparisons per user
    history: comparison view history per user
    alerts: trend alert management
    forecast_pack: per-term forecasts and head to head, persisted per data hash

Usage:
    from services.comparisons import get_or_build_comparison, analyze_comparison
    from services.forecast_pack import get_or_compute_forecast_pack
"""

__all__ = [
    "TrendsClient",
    "get_or_build_comparison",
    "analyze_comparison",
    "score_comparison",
    "get_or_compute_forecast_pack",
]
