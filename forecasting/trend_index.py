"""
Forecasting for bounded trend indices (0-100 by default).

Candidates are damped Holt, Theta and a naive last-value baseline. The one
with the lowest rolling-origin MAE wins, and its 80% band comes from a
residual bootstrap. Every value is clamped to the bounds.
"""

from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

MIN_POINTS = 24
BOOTSTRAP_SIMULATIONS = 200
DEFAULT_RESIDUAL_STD = 5.0

Bounds = Tuple[float, float]
ModelFn = Callable[[np.ndarray, int, Bounds], Tuple[np.ndarray, np.ndarray]]


@dataclass
class TrendIndexForecast:
    forecast: List[float]
    lower: List[float]  # 10th percentile
    upper: List[float]  # 90th percentile
    model_used: str  # holt_damped | theta | naive
    backtest_error: float = float("inf")
    residual_std: float = DEFAULT_RESIDUAL_STD
    diagnostics: dict = field(default_factory=dict)


def _flat(series: np.ndarray, horizon: int, bounds: Bounds) -> np.ndarray:
    last = series[-1] if len(series) else 50.0
    return np.full(horizon, np.clip(last, *bounds), dtype=float)


def holt_damped(series: np.ndarray, horizon: int, bounds: Bounds,
                alpha: float = 0.3, beta: float = 0.1, phi: float = 0.9) -> Tuple[np.ndarray, np.ndarray]:
    n = len(series)
    if n < 3:
        return _flat(series, horizon, bounds), np.array([])

    level = float(series[0])
    trend = float(series[1] - series[0])
    residuals = []
    for y in series[1:]:
        fitted = level + phi * trend
        residuals.append(y - fitted)
        prev_level = level
        level = alpha * y + (1 - alpha) * fitted
        trend = beta * (level - prev_level) + (1 - beta) * phi * trend

    h = np.arange(1, horizon + 1)
    damped_sum = phi * (1 - phi ** h) / (1 - phi)
    return np.clip(level + damped_sum * trend, *bounds), np.array(residuals)


def theta_method(series: np.ndarray, horizon: int, bounds: Bounds,
                 alpha: float = 0.3) -> Tuple[np.ndarray, np.ndarray]:
    n = len(series)
    if n < 3:
        return _flat(series, horizon, bounds), np.array([])

    t = np.arange(1, n + 1, dtype=float)
    slope, intercept = np.polyfit(t, series, 1)
    theta_line = intercept + slope * t
    local = series - theta_line

    ses_level = local[0]
    residuals = []
    for i in range(1, n):
        ses_level = alpha * local[i] + (1 - alpha) * ses_level
        residuals.append(series[i] - (theta_line[i] + ses_level))

    future_t = np.arange(n + 1, n + horizon + 1, dtype=float)
    forecast = intercept + slope * future_t + ses_level
    return np.clip(forecast, *bounds), np.array(residuals)


def naive_method(series: np.ndarray, horizon: int, bounds: Bounds) -> Tuple[np.ndarray, np.ndarray]:
    return _flat(series, horizon, bounds), np.diff(series)


MODELS: List[Tuple[str, ModelFn]] = [
    ("holt_damped", holt_damped),
    ("theta", theta_method),
    ("naive", naive_method),
]


def rolling_origin_backtest(series: np.ndarray, model_fn: ModelFn, bounds: Bounds = (0, 100),
                            test_window: int = 12, horizon: int = 4, min_train: int = 12) -> float:
    """MAE over every origin in the last ``test_window`` points."""
    n = len(series)
    if n < min_train + horizon:
        return float("inf")

    errors = []
    for origin in range(max(min_train, n - test_window), n - horizon + 1):
        forecast, _ = model_fn(series[:origin], horizon, bounds)
        actual = series[origin:origin + horizon]
        errors.extend(np.abs(forecast[:len(actual)] - actual))

    return float(np.mean(errors)) if errors else float("inf")


def bootstrap_intervals(point_forecast: np.ndarray, residuals: np.ndarray, bounds: Bounds,
                        rng: np.random.Generator,
                        simulations: int = BOOTSTRAP_SIMULATIONS) -> Tuple[np.ndarray, np.ndarray]:
    if len(residuals) < 2:
        spread = 1.28 * DEFAULT_RESIDUAL_STD
        return np.maximum(bounds[0], point_forecast - spread), np.minimum(bounds[1], point_forecast + spread)

    centered = residuals - residuals.mean()
    draws = rng.choice(centered, size=(simulations, len(point_forecast)), replace=True)
    paths = np.clip(point_forecast + draws, *bounds)
    paths.sort(axis=0)

    lower_idx = int(0.1 * simulations)
    upper_idx = min(simulations - 1, int(0.9 * simulations))
    return np.maximum(bounds[0], paths[lower_idx]), np.minimum(bounds[1], paths[upper_idx])


def _residual_std(residuals: np.ndarray) -> float:
    if len(residuals) == 0:
        return DEFAULT_RESIDUAL_STD
    return float(np.sqrt(np.mean(residuals ** 2)))


def forecast_trend_index(
    series: Sequence[float],
    horizon: int = 10,
    bounds: Bounds = (0, 100),
    rng: Optional[np.random.Generator] = None,
) -> TrendIndexForecast:
    values = np.asarray(series, dtype=float)
    rng = rng or np.random.default_rng()

    if len(values) < MIN_POINTS:
        forecast, residuals = naive_method(values, horizon, bounds)
        return TrendIndexForecast(
            forecast=forecast.tolist(),
            lower=np.maximum(bounds[0], forecast - 10).tolist(),
            upper=np.minimum(bounds[1], forecast + 10).tolist(),
            model_used="naive",
            residual_std=_residual_std(residuals),
        )

    errors = {name: rolling_origin_backtest(values, fn, bounds) for name, fn in MODELS}
    # First model wins ties
    name, model_fn = min(MODELS, key=lambda m: errors[m[0]])

    forecast, residuals = model_fn(values, horizon, bounds)
    lower, upper = bootstrap_intervals(forecast, residuals, bounds, rng)

    return TrendIndexForecast(
        forecast=forecast.tolist(),
        lower=lower.tolist(),
        upper=upper.tolist(),
        model_used=name,
        backtest_error=errors[name],
        residual_std=_residual_std(residuals),
        diagnostics={"backtest_errors": errors},
    )
