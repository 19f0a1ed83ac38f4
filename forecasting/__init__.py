"""
Forecasting for comparison series.

Modules:
    core: per-term ETS / ARIMA forecasts with walk-forward backtests
    head_to_head: Monte Carlo winner probability between two term forecasts
    trend_index: bounded-index forecasting (damped Holt, Theta, naive)
    gap: forecast of the gap between two terms and whether to show it
    prediction: ensemble prediction engine used for forecast bundles
    bundle: cached 14/30-day forecast summaries

Usage:
    from forecasting.core import forecast, to_points
    from forecasting.head_to_head import compute_head_to_head
    from forecasting.bundle import generate_forecast_bundle

Example:
    result_a = forecast(to_points(rows_a), horizon=28)
    result_b = forecast(to_points(rows_b), horizon=28)
    h2h = compute_head_to_head(result_a, result_b, rows_a[-1]["value"], rows_b[-1]["value"])
"""

__all__ = [
    "forecast",
    "compute_head_to_head",
    "forecast_trend_index",
    "forecast_gap",
    "predict_trend",
    "generate_forecast_bundle",
]
