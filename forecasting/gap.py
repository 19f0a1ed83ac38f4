"""
Forecast the gap (A - B) between two trend indices.

Forecasting the gap directly avoids the fake convergence that appears when
two normalised indices are forecast independently.
"""

import math
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from forecasting.trend_index import MIN_POINTS, TrendIndexForecast, forecast_trend_index
from trends.confidence import get_confidence_label

GAP_BOUNDS = (-100.0, 100.0)
SIMULATIONS = 1000
VOLATILITY_WINDOW = 24
MAX_VOLATILITY = 1.5
MAX_BACKTEST_ERROR = 20


@dataclass
class GapForecast:
    gap_forecast: TrendIndexForecast
    expected_gap: float
    lead_change_risk: float  # 0-100
    expected_margin_change: float
    current_gap: float
    should_show: bool
    reason: Optional[str] = None


@dataclass
class GapForecastInsights:
    expected_margin_in_horizon: float
    lead_change_risk: float
    confidence_label: str
    confidence_score: float


def forecast_gap(
    series_a: Sequence[float],
    series_b: Sequence[float],
    horizon: int = 10,
    rng: Optional[np.random.Generator] = None,
) -> GapForecast:
    rng = rng or np.random.default_rng()

    if len(series_a) != len(series_b) or len(series_a) < MIN_POINTS:
        current_gap = series_a[-1] - series_b[-1] if len(series_a) and len(series_b) else 0.0
        reason = (
            f"Insufficient data (need at least {MIN_POINTS} points)"
            if len(series_a) < MIN_POINTS else "Series length mismatch"
        )
        return GapForecast(
            gap_forecast=TrendIndexForecast(
                forecast=[current_gap] * horizon,
                lower=[current_gap - 10] * horizon,
                upper=[current_gap + 10] * horizon,
                model_used="naive",
                residual_std=10.0,
            ),
            expected_gap=current_gap,
            lead_change_risk=50.0,
            expected_margin_change=0.0,
            current_gap=current_gap,
            should_show=False,
            reason=reason,
        )

    gap = np.asarray(series_a, dtype=float) - np.asarray(series_b, dtype=float)
    recent = gap[-VOLATILITY_WINDOW:]
    volatility = recent.std() / (abs(recent.mean()) or 1)

    result = forecast_trend_index(gap, horizon=horizon, bounds=GAP_BOUNDS, rng=rng)
    current_gap = float(gap[-1])
    expected_gap = result.forecast[-1] if result.forecast else current_gap

    forecast = np.array(result.forecast)
    spread = np.array(result.upper) - np.array(result.lower)
    paths = np.clip(forecast + (rng.random((SIMULATIONS, horizon)) - 0.5) * spread, *GAP_BOUNDS)
    initial_positive = current_gap >= 0
    crossed = ((paths >= 0) != initial_positive).any(axis=1)
    lead_change_risk = float(np.mean(crossed)) * 100 if horizon else 0.0

    error = result.backtest_error
    high_volatility = volatility > MAX_VOLATILITY
    high_error = error > MAX_BACKTEST_ERROR
    should_show = not high_volatility and not high_error and not math.isnan(error)

    reason = None
    if high_volatility:
        reason = "High volatility detected"
    elif high_error:
        reason = "High forecast error (low reliability)"
    elif math.isnan(error):
        reason = "Forecast calculation error"

    return GapForecast(
        gap_forecast=result,
        expected_gap=expected_gap,
        lead_change_risk=lead_change_risk,
        expected_margin_change=expected_gap - current_gap,
        current_gap=current_gap,
        should_show=should_show,
        reason=reason,
    )


def gap_forecast_insights(result: GapForecast) -> GapForecastInsights:
    error_score = max(0.0, 100 - result.gap_forecast.backtest_error * 2)
    std_score = max(0.0, 100 - result.gap_forecast.residual_std * 2)
    score = min(100.0, error_score * 0.6 + std_score * 0.4)
    return GapForecastInsights(
        expected_margin_in_horizon=result.expected_gap,
        lead_change_risk=result.lead_change_risk,
        confidence_label=get_confidence_label(score),
        confidence_score=score,
    )
