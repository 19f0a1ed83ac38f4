"""
Classical time-series forecasting for comparison score series.

Two models compete on every series:

- ETS / Holt-Winters: triple exponential smoothing with weekly seasonality,
  parameters picked by grid search on in-sample MSE
- ARIMA(p,1,0): first differences with an AR(1) or AR(2) fit via Yule-Walker

A walk-forward backtest picks the model with the lower MAE. Prediction
intervals come from the residual standard error and widen with sqrt(h).
"""

import logging
import math
from dataclasses import asdict, dataclass, field
from typing import Callable, Dict, List, Sequence, Tuple

import numpy as np
import pandas as pd

from trends.mathutils import round_half_up

logger = logging.getLogger(__name__)

SEASON_LENGTH = 7
MIN_FORECAST_POINTS = 7
MIN_QUALITY_POINTS = 14
Z80 = 1.28
Z95 = 1.96

ALPHA_GRID = (0.1, 0.2, 0.3, 0.4, 0.5)
BETA_GRID = (0.05, 0.1, 0.15, 0.2)
GAMMA_GRID = (0.05, 0.1, 0.15, 0.2)


@dataclass
class TimeSeriesPoint:
    date: str  # YYYY-MM-DD
    value: float


@dataclass
class ForecastPoint:
    date: str
    value: float
    lower80: float
    upper80: float
    lower95: float
    upper95: float


@dataclass
class BacktestResult:
    mae: float = math.inf
    mape: float = math.inf
    interval_coverage80: float = 0.0
    interval_coverage95: float = 0.0
    sample_size: int = 0


@dataclass
class QualityFlags:
    series_too_short: bool = False
    too_spiky: bool = False
    event_shock_likely: bool = False


@dataclass
class ForecastResult:
    points: List[ForecastPoint]
    model: str  # ets | arima | naive
    metrics: BacktestResult
    confidence_score: int
    quality_flags: QualityFlags = field(default_factory=QualityFlags)

    def to_dict(self) -> Dict:
        return asdict(self)


def future_dates(last_date: str, horizon: int) -> List[str]:
    """The ``horizon`` calendar days after ``last_date``."""
    start = pd.Timestamp(last_date).normalize() + pd.Timedelta(days=1)
    return [d.strftime("%Y-%m-%d") for d in pd.date_range(start=start, periods=horizon, freq="D")]


def to_points(rows: Sequence[Dict]) -> List[TimeSeriesPoint]:
    """``[{"date", "value"}]`` rows to TimeSeriesPoint objects."""
    return [TimeSeriesPoint(date=str(r["date"]), value=float(r["value"])) for r in rows]


def assess_quality(series: Sequence[TimeSeriesPoint]) -> QualityFlags:
    if len(series) < MIN_QUALITY_POINTS:
        return QualityFlags(series_too_short=True)

    values = np.array([p.value for p in series], dtype=float)
    mean = values.mean()
    cv = values.std() / (mean or 1)

    previous = np.abs(values[:-1])
    previous[previous == 0] = 1
    pct_changes = np.abs(np.diff(values)) / previous
    large_changes = int(np.sum(pct_changes > 0.5))

    return QualityFlags(
        series_too_short=False,
        too_spiky=bool(cv > 1.5),
        event_shock_likely=large_changes / len(values) > 0.1,
    )


def _naive_points(last_value: float, dates: List[str]) -> List[ForecastPoint]:
    return [
        ForecastPoint(
            date=d,
            value=last_value,
            lower80=last_value * 0.8,
            upper80=last_value * 1.2,
            lower95=last_value * 0.7,
            upper95=last_value * 1.3,
        )
        for d in dates
    ]


def _interval_points(forecasts: Sequence[float], mse: float, dates: List[str]) -> List[ForecastPoint]:
    residual_std = math.sqrt(mse)
    points = []
    for i, (value, d) in enumerate(zip(forecasts, dates)):
        uncertainty = residual_std * math.sqrt(i + 1)
        points.append(ForecastPoint(
            date=d,
            value=float(value),
            lower80=max(0.0, value - Z80 * uncertainty),
            upper80=value + Z80 * uncertainty,
            lower95=max(0.0, value - Z95 * uncertainty),
            upper95=value + Z95 * uncertainty,
        ))
    return points


def _initial_seasonal(values: np.ndarray, seasonal_enabled: bool) -> List[float]:
    if not seasonal_enabled:
        return []
    level = values[0] or 1
    return [values[i] / level for i in range(SEASON_LENGTH)]


def fit_ets(values: np.ndarray, alpha: float, beta: float, gamma: float,
            seasonal_enabled: bool) -> Tuple[float, float, List[float], float]:
    """One pass of Holt-Winters; returns (level, trend, seasonal, mse)."""
    n = len(values)
    level = float(values[0])
    trend = float(values[1] - values[0]) if n > 1 else 0.0
    seasonal = _initial_seasonal(values, seasonal_enabled)

    squared_errors = 0.0
    for i in range(1, n):
        prev_level, prev_trend = level, trend
        s_idx = (i - 1) % SEASON_LENGTH
        s = (seasonal[s_idx] or 1) if seasonal_enabled else 1.0

        error = values[i] - (prev_level + prev_trend) * s
        level = alpha * (values[i] / s) + (1 - alpha) * (prev_level + prev_trend)
        trend = beta * (level - prev_level) + (1 - beta) * prev_trend
        if seasonal_enabled:
            seasonal[s_idx] = gamma * (values[i] / (level or 1)) + (1 - gamma) * s
        squared_errors += error * error

    return level, trend, seasonal, squared_errors / max(n - 1, 1)


def forecast_ets(series: Sequence[TimeSeriesPoint], horizon: int) -> Tuple[List[ForecastPoint], float]:
    values = np.array([p.value for p in series], dtype=float)
    n = len(values)
    dates = future_dates(series[-1].date, horizon)
    if n < 4:
        return _naive_points(float(values[-1]), dates), 0.0

    seasonal_enabled = n >= SEASON_LENGTH * 2
    best_mse, best = math.inf, (0.3, 0.1, 0.1)
    for a in ALPHA_GRID:
        for b in BETA_GRID:
            for g in (GAMMA_GRID if seasonal_enabled else (0.0,)):
                mse = fit_ets(values, a, b, g, seasonal_enabled)[3]
                if mse < best_mse:
                    best_mse, best = mse, (a, b, g)

    level, trend, seasonal, mse = fit_ets(values, *best, seasonal_enabled)

    forecasts = []
    for i in range(horizon):
        level += trend
        value = level
        if seasonal_enabled and seasonal:
            value = level * (seasonal[(n + i) % SEASON_LENGTH] or 1)
        forecasts.append(value)

    return _interval_points(forecasts, mse, dates), mse


def _yule_walker(diffs: np.ndarray, order: int) -> Tuple[float, float]:
    centered = diffs - diffs.mean()
    if order == 1:
        denominator = float(np.sum(centered[:-1] ** 2))
        phi1 = float(np.sum(centered[1:] * centered[:-1])) / denominator if denominator > 0 else 0.0
        return float(np.clip(phi1, -0.99, 0.99)), 0.0

    d0, d1, d2 = centered[2:], centered[1:-1], centered[:-2]
    var0 = float(np.sum(d0 * d0))
    if var0 <= 0:
        return 0.0, 0.0
    r1 = float(np.sum(d0 * d1)) / var0
    r2 = float(np.sum(d0 * d2)) / var0
    if abs(1 - r1 * r1) < 1e-12:
        return 0.0, 0.0
    phi1 = (r1 * (1 - r2)) / (1 - r1 * r1)
    phi2 = (r2 - r1 * r1) / (1 - r1 * r1)
    return float(np.clip(phi1, -0.99, 0.99)), float(np.clip(phi2, -0.99, 0.99))


def forecast_arima(series: Sequence[TimeSeriesPoint], horizon: int) -> Tuple[List[ForecastPoint], float]:
    values = np.array([p.value for p in series], dtype=float)
    n = len(values)
    dates = future_dates(series[-1].date, horizon)
    if n < 4:
        return _naive_points(float(values[-1]), dates), 0.0

    diffs = np.diff(values)
    order = 2 if len(diffs) >= 10 else 1
    phi1, phi2 = _yule_walker(diffs, order)

    residuals = []
    for i in range(order, len(diffs)):
        predicted = phi1 * diffs[i - 1] + (phi2 * diffs[i - 2] if order == 2 else 0.0)
        residuals.append(diffs[i] - predicted)
    mse = float(np.mean(np.square(residuals))) if residuals else 0.0

    last1 = float(diffs[-1])
    last2 = float(diffs[-2]) if len(diffs) > 1 else 0.0
    forecasts = []
    cumulative = float(values[-1])
    for _ in range(horizon):
        step = phi1 * last1 + (phi2 * last2 if order == 2 else 0.0)
        last2, last1 = last1, step
        cumulative += step
        forecasts.append(cumulative)

    return _interval_points(forecasts, mse, dates), mse


MODELS: Dict[str, Callable[[Sequence[TimeSeriesPoint], int], Tuple[List[ForecastPoint], float]]] = {
    "ets": forecast_ets,
    "arima": forecast_arima,
}


def walk_forward_backtest(
    series: Sequence[TimeSeriesPoint],
    model: str,
    min_train_size: int = 14,
    validation_size: int = 7,
    step_size: int = 7,
) -> BacktestResult:
    n = len(series)
    if n < min_train_size + validation_size:
        return BacktestResult()

    forecast_fn = MODELS[model]
    errors, pct_errors, hits80, hits95 = [], [], [], []

    for train_end in range(min_train_size, n - validation_size, step_size):
        points, _ = forecast_fn(series[:train_end], validation_size)
        validation = series[train_end:train_end + validation_size]
        for point, actual_point in zip(points, validation):
            actual = actual_point.value
            error = abs(actual - point.value)
            errors.append(error)
            pct_errors.append((error / actual) * 100 if actual > 0 else 0.0)
            hits80.append(point.lower80 <= actual <= point.upper80)
            hits95.append(point.lower95 <= actual <= point.upper95)

    if not errors:
        return BacktestResult()

    return BacktestResult(
        mae=float(np.mean(errors)),
        mape=float(np.mean(pct_errors)),
        interval_coverage80=float(np.mean(hits80)) * 100,
        interval_coverage95=float(np.mean(hits95)) * 100,
        sample_size=len(errors),
    )


def calculate_confidence_score(metrics: BacktestResult, flags: QualityFlags) -> int:
    """
    0-100 from backtest accuracy (40%), interval calibration (30%) and
    backtest sample size (30%), then discounted for quality flags.
    """
    if metrics.sample_size == 0:
        return 0

    mae_score = max(0.0, 100 - min(100.0, metrics.mae * 2))
    mape_score = max(0.0, 100 - min(100.0, metrics.mape))
    error_score = (mae_score + mape_score) / 2

    coverage80 = max(0.0, 100 - abs(metrics.interval_coverage80 - 80) * 2)
    coverage95 = max(0.0, 100 - abs(metrics.interval_coverage95 - 95) * 2)
    coverage_score = (coverage80 + coverage95) / 2

    sample_score = min(100.0, (metrics.sample_size / 20) * 100)

    confidence = error_score * 0.4 + coverage_score * 0.3 + sample_score * 0.3
    if flags.series_too_short:
        confidence *= 0.5
    if flags.too_spiky:
        confidence *= 0.7
    if flags.event_shock_likely:
        confidence *= 0.8

    return int(max(0, min(100, round_half_up(confidence))))


def forecast(series: Sequence[TimeSeriesPoint], horizon: int = 28) -> ForecastResult:
    """
    Forecast ``horizon`` days ahead with whichever model backtests better.

    Fewer than 7 points yields a flat naive forecast with confidence 0.
    """
    if len(series) < MIN_FORECAST_POINTS:
        if series:
            last_value, last_date = series[-1].value, series[-1].date
        else:
            last_value, last_date = 0.0, pd.Timestamp.now(tz="UTC").strftime("%Y-%m-%d")
        return ForecastResult(
            points=_naive_points(last_value, future_dates(last_date, horizon)),
            model="naive",
            metrics=BacktestResult(),
            confidence_score=0,
            quality_flags=QualityFlags(series_too_short=True),
        )

    flags = assess_quality(series)
    ets_backtest = walk_forward_backtest(series, "ets")
    arima_backtest = walk_forward_backtest(series, "arima")

    model = "ets" if ets_backtest.mae <= arima_backtest.mae else "arima"
    backtest = ets_backtest if model == "ets" else arima_backtest
    points, _ = MODELS[model](series, horizon)

    if points:
        max_forecast = max(p.value for p in points)
        last_value = series[-1].value
        logger.debug(
            f"Generated {len(points)} points with {model}: "
            f"first={points[0].value:.2f} max={max_forecast:.2f} last_actual={last_value:.2f}"
        )
        if max_forecast == 0 and last_value > 0:
            logger.warning(f"Forecast collapsed to zero although last actual is {last_value}")

    return ForecastResult(
        points=points,
        model=model,
        metrics=backtest,
        confidence_score=calculate_confidence_score(backtest, flags),
        quality_flags=flags,
    )
