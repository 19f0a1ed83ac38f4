"""
Ensemble trend prediction.

Five simple forecasters (linear, quadratic, Holt, exponential smoothing and
a weighted moving average) each produce a daily path with a per-day
confidence. Paths are blended with weights derived from each method's
reliability and from how well the method suits the series (volatility,
trend strength, seasonality). The spread between methods gives a 95% band.
"""

import logging
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np

from forecasting.core import future_dates
from trends.mathutils import round_half_up, to_number
from trends.score_series import calculate_score_over_time, resolve_term_key
from trends.series import SeriesPoint

logger = logging.getLogger(__name__)

ALL_METHODS = ("linear", "polynomial", "exponential", "holt-winters", "moving-average")


@dataclass
class MethodResult:
    method: str
    predictions: List[Dict]
    reliability: float


@dataclass
class PredictionResult:
    predictions: List[Dict]  # [{"date", "value", "confidence"}]
    trend: str  # rising | falling | stable
    confidence: int
    forecast_period: int
    methods: List[str]
    explanation: str
    lower: List[float] = field(default_factory=list)
    upper: List[float] = field(default_factory=list)
    data_quality: float = 0.0
    volatility: float = 0.0
    trend_strength: float = 0.0

    def to_dict(self) -> Dict:
        return asdict(self)


# ============================================================================
# Series characteristics
# ============================================================================

def calculate_volatility(values: np.ndarray) -> float:
    mean = values.mean()
    return float(values.std() / mean) if mean > 0 else 0.0


def calculate_data_quality(values: np.ndarray) -> float:
    if len(values) < 14:
        return 30.0
    missing = np.sum((values == 0) | np.isnan(values))
    completeness = 1 - missing / len(values)

    ordered = np.sort(values)
    q1 = ordered[int(len(ordered) * 0.25)]
    q3 = ordered[int(len(ordered) * 0.75)]
    iqr = q3 - q1
    outliers = np.sum((values < q1 - 1.5 * iqr) | (values > q3 + 1.5 * iqr))
    quality = (completeness * 0.6 + (1 - outliers / len(values)) * 0.4) * 100
    return float(np.clip(quality, 0, 100))


def _linear_fit(values: np.ndarray):
    x = np.arange(len(values), dtype=float)
    slope, intercept = np.polyfit(x, values, 1)
    return x, float(slope), float(intercept)


def r_squared(values: np.ndarray, fitted: np.ndarray) -> float:
    ss_tot = float(np.sum((values - values.mean()) ** 2))
    if ss_tot == 0:
        return 0.0
    return float(np.clip(1 - np.sum((values - fitted) ** 2) / ss_tot, 0, 1))


def calculate_trend_strength(values: np.ndarray) -> float:
    if len(values) < 7:
        return 0.5
    _, slope, _ = _linear_fit(values)
    max_slope = (values.max() - values.min()) / len(values)
    return float(min(1.0, abs(slope) / max_slope)) if max_slope > 0 else 0.5


def calculate_stability(values: np.ndarray) -> float:
    if len(values) < 3:
        return 0.5
    mean_value = values.mean()
    if mean_value == 0:
        return 0.5
    relative_variation = np.abs(np.diff(values)).mean() / mean_value
    return float(np.clip(1 - relative_variation, 0, 1))


def autocorrelation_at_lag(values: np.ndarray, lag: int) -> float:
    if len(values) < lag * 2:
        return 0.0
    centered = values - values.mean()
    denominator = float(np.sum(centered[:-lag] ** 2))
    return float(np.sum(centered[:-lag] * centered[lag:])) / denominator if denominator else 0.0


def detect_seasonality(values: np.ndarray) -> Optional[Dict]:
    """Strongest of the 7/14/30-day lags, when its autocorrelation exceeds 0.3."""
    if len(values) < 28:
        return None
    best_period, best_strength = 7, 0.0
    for period in (7, 14, 30):
        strength = autocorrelation_at_lag(values, period)
        if strength > best_strength:
            best_period, best_strength = period, strength
    if best_strength > 0.3:
        return {"strength": best_strength, "period": best_period}
    return None


def calculate_momentum(values: np.ndarray) -> float:
    """Last 7 days vs the 7 before, in percent."""
    if len(values) < 14:
        return 0.0
    previous = values[-14:-7].mean()
    return float((values[-7:].mean() - previous) / previous * 100) if previous else 0.0


def calculate_acceleration(values: np.ndarray) -> float:
    if len(values) < 21:
        return 0.0
    return calculate_momentum(values) - calculate_momentum(values[:-7])


# ============================================================================
# Methods
# ============================================================================

def _point(date: str, value: float, confidence: float) -> Dict:
    return {
        "date": date,
        "value": float(np.clip(round_half_up(max(0.0, value), 2), 0, 100)),
        "confidence": round_half_up(confidence, 2),
    }


def linear_regression(values: np.ndarray, dates: List[str]) -> List[Dict]:
    n = len(values)
    if n < 3:
        return []
    x, slope, intercept = _linear_fit(values)
    fitted = slope * x + intercept
    r2 = r_squared(values, fitted)
    adjusted_r2 = 1 - (1 - r2) * ((n - 1) / (n - 2))
    standard_error = float(np.sqrt(np.sum((values - fitted) ** 2) / (n - 2)))
    mean = values.mean()
    relative_error = standard_error / mean if mean > 0 else 1.0
    base = float(np.clip(adjusted_r2 * 100 * (1 - min(0.5, relative_error)), 40, 95))

    x_mean = x.mean()
    sxx = float(np.sum((x - x_mean) ** 2))
    horizon = len(dates)
    points = []
    for i, date in enumerate(dates, start=1):
        future_x = n + i - 1
        prediction_error = standard_error * np.sqrt(1 + 1 / n + (future_x - x_mean) ** 2 / sxx)
        horizon_factor = 1 - (i / horizon) * 0.35
        confidence = max(25.0, base * horizon_factor * (1 - min(0.3, prediction_error / (mean or 1))))
        points.append(_point(date, slope * future_x + intercept, confidence))
    return points


def polynomial_regression(values: np.ndarray, dates: List[str]) -> List[Dict]:
    n = len(values)
    if n < 4:
        return linear_regression(values, dates)
    x = np.arange(n, dtype=float)
    coefficients = np.polyfit(x, values, 2)
    r2 = r_squared(values, np.polyval(coefficients, x))
    adjusted_r2 = 1 - (1 - r2) * ((n - 1) / (n - 3))
    base = float(np.clip(adjusted_r2 * 100, 45, 92))

    horizon = len(dates)
    return [
        _point(date, float(np.polyval(coefficients, n + i - 1)), max(25.0, base * (1 - (i / horizon) * 0.45)))
        for i, date in enumerate(dates, start=1)
    ]


def holt_prediction(values: np.ndarray, dates: List[str], alpha: float = 0.3, beta: float = 0.1) -> List[Dict]:
    if len(values) < 4:
        return []
    level = float(values[0])
    trend = float(np.diff(values[:5]).mean())

    smoothed = [level]
    for y in values[1:]:
        prev_level = level
        level = alpha * y + (1 - alpha) * (level + trend)
        trend = beta * (level - prev_level) + (1 - beta) * trend
        smoothed.append(level)

    mse = float(np.mean((values - np.array(smoothed)) ** 2))
    mean = values.mean()
    cv = np.sqrt(mse) / mean if mean > 0 else 0.0
    base = float(np.clip(100 - cv * 100, 50, 90))

    horizon = len(dates)
    points = []
    for i, date in enumerate(dates, start=1):
        level += trend
        points.append(_point(date, level, max(30.0, base * (1 - (i / horizon) * 0.5))))
    return points


def moving_average(values: np.ndarray, dates: List[str]) -> List[Dict]:
    n = len(values)
    window = min(14, n // 2) if calculate_volatility(values) > 0.3 else min(7, n // 3)
    if window < 1 or n < window:
        return []

    recent = values[-window:]
    weights = np.arange(1, window + 1) / window
    weighted_avg = float(np.sum(recent * weights) / weights.sum())
    trend = (recent[-1] - recent[0]) / window
    spread = float(np.sqrt(np.mean((recent - weighted_avg) ** 2)))
    stability = 75 if spread < 5 else 60 if spread < 15 else 45

    horizon = len(dates)
    points = []
    current = weighted_avg
    for i, date in enumerate(dates, start=1):
        current += trend
        points.append(_point(date, current, max(25.0, stability * (1 - (i / horizon) * 0.4))))
    return points


def run_method(method: str, values: np.ndarray, dates: List[str]) -> MethodResult:
    x = np.arange(len(values), dtype=float)
    if method == "linear":
        predictions = linear_regression(values, dates)
        linear_r2 = r_squared(values, np.polyval(np.polyfit(x, values, 1), x)) if len(values) > 1 else 0.0
        reliability = float(np.clip(linear_r2 * 100, 45, 95))
    elif method == "polynomial":
        predictions = polynomial_regression(values, dates)
        quad_r2 = r_squared(values, np.polyval(np.polyfit(x, values, 2), x)) if len(values) > 2 else 0.0
        reliability = float(np.clip(quad_r2 * 100 * 0.95, 40, 90))
    elif method == "holt-winters":
        predictions = holt_prediction(values, dates)
        seasonality = detect_seasonality(values)
        strength = seasonality["strength"] if seasonality else 0.0
        reliability = float(np.clip(100 - calculate_volatility(values) * 50 + strength * 0.2, 50, 90))
    elif method == "exponential":
        predictions = holt_prediction(values, dates, alpha=0.3, beta=0.05)
        reliability = float(np.clip(100 - calculate_volatility(values) * 50, 50, 85))
    elif method == "moving-average":
        predictions = moving_average(values, dates)
        reliability = float(np.clip(calculate_stability(values) * 100, 45, 80))
    else:
        raise ValueError(f"Unknown prediction method: {method}")
    return MethodResult(method=method, predictions=predictions, reliability=reliability)


# ============================================================================
# Ensemble
# ============================================================================

def _adjusted_reliability(result: MethodResult, volatility: float, trend_strength: float,
                          seasonality: Optional[Dict]) -> float:
    adjusted = result.reliability
    method = result.method
    if method == "linear" and trend_strength > 0.7 and volatility < 0.3:
        adjusted += 12
    if method == "polynomial" and trend_strength > 0.5 and volatility < 0.4:
        adjusted += 8
    if method == "holt-winters" and (volatility > 0.3 or (seasonality and seasonality["strength"] > 0.5)):
        adjusted += 10
    if method == "moving-average" and volatility < 0.2 and trend_strength < 0.5:
        adjusted += 7
    if method == "exponential" and volatility < 0.25:
        adjusted += 5
    if method == "linear" and volatility > 0.4:
        adjusted -= 5
    if method == "moving-average" and trend_strength > 0.7:
        adjusted -= 5
    return min(100.0, max(30.0, adjusted))


def combine_predictions(results: List[MethodResult], dates: List[str], volatility: float,
                        trend_strength: float, seasonality: Optional[Dict]):
    """Returns (predictions, lower, upper)."""
    if not results:
        return [], [], []

    if len(results) == 1:
        predictions = results[0].predictions
        std = volatility * (predictions[0]["value"] if predictions else 1)
        lower = [max(0.0, p["value"] - 1.96 * std) for p in predictions]
        upper = [p["value"] + 1.96 * std for p in predictions]
        return predictions, lower, upper

    reliabilities = np.array([_adjusted_reliability(r, volatility, trend_strength, seasonality) for r in results])
    weights = reliabilities / reliabilities.sum()

    combined, lower, upper = [], [], []
    for i, date in enumerate(dates):
        value = confidence = 0.0
        day_values = []
        for result, weight in zip(results, weights):
            if i < len(result.predictions):
                point = result.predictions[i]
                value += point["value"] * weight
                confidence += point["confidence"] * weight
                day_values.append(point["value"])
        combined.append({
            "date": date,
            "value": float(np.clip(round_half_up(value, 2), 0, 100)),
            "confidence": round_half_up(confidence, 2),
        })
        day = np.array(day_values)
        if len(day):
            lower.append(float(np.clip(day.mean() - 1.96 * day.std(), 0, 100)))
            upper.append(float(np.clip(day.mean() + 1.96 * day.std(), 0, 100)))
        else:
            lower.append(0.0)
            upper.append(0.0)
    return combined, lower, upper


def overall_confidence(results: List[MethodResult], n_values: int, data_quality: float, volatility: float,
                       trend_strength: float, seasonality: Optional[Dict], momentum: float) -> int:
    reliabilities = np.array([r.reliability for r in results]) if results else np.array([50.0])
    avg_reliability = float(reliabilities.mean())
    agreement = max(0.0, 100 - float(reliabilities.var()) * 12)
    sufficiency = min(100.0, n_values)
    momentum_consistency = min(100.0, 70 + abs(momentum) * 0.5) if abs(momentum) > 5 else 50.0

    confidence = (
        avg_reliability * 0.40
        + data_quality * 0.20
        + agreement * 0.15
        + sufficiency * 0.10
        + momentum_consistency * 0.08
        + (1 - min(1.0, volatility)) * 50 * 0.05
        + trend_strength * 15 * 0.02
    )
    if seasonality and seasonality["strength"] > 0.5:
        confidence += 5
    return int(round_half_up(max(0.0, min(100.0, confidence))))


def determine_trend(predictions: List[Dict], values: np.ndarray, trend_strength: float,
                    momentum: float, acceleration: float) -> str:
    if len(predictions) < 2:
        return "stable"

    recent_avg = float(values[-7:].mean()) if len(values) else 0.0
    future = np.array([p["value"] for p in predictions])
    short_avg = future[:7].mean()
    long_avg = future[:14].mean()
    short_change = (short_avg - recent_avg) / recent_avg * 100 if recent_avg > 0 else 0.0
    long_change = (long_avg - recent_avg) / recent_avg * 100 if recent_avg > 0 else 0.0

    combined = short_change * 0.5 + long_change * 0.3 + momentum * 0.3 + acceleration * 0.2
    base = 7 if trend_strength > 0.7 else 10 if trend_strength > 0.4 else 13
    threshold = base * (1 + abs(momentum) / 100)

    if combined > threshold:
        return "rising"
    if combined < -threshold:
        return "falling"
    return "stable"


def build_explanation(trend: str, confidence: int, predictions: List[Dict], term: str, data_quality: float,
                      volatility: float, trend_strength: float, momentum: float, acceleration: float,
                      seasonality: Optional[Dict], data_points: int, forecast_days: int) -> str:
    avg_future = float(np.mean([p["value"] for p in predictions])) if predictions else 0.0
    name = term.replace("-", " ")
    strength_pct = round_half_up(trend_strength * 100)

    text = (
        "Based on comprehensive statistical analysis using multiple forecasting methods (linear regression, "
        "polynomial regression, exponential smoothing, and moving averages) applied to "
        f"{data_points} data points, "
    )

    if trend == "rising":
        momentum_text = (
            f" with strong momentum ({momentum:.1f}%)" if momentum > 10
            else f" with positive momentum ({momentum:.1f}%)" if momentum > 5 else ""
        )
        accel_text = (
            " and accelerating growth" if acceleration > 5
            else " though growth is decelerating" if acceleration < -5 else ""
        )
        text += (
            f"{name} is projected to show an upward trend over the next {forecast_days} days"
            f"{momentum_text}{accel_text}, with an average forecasted value of {avg_future:.1f}. "
        )
        if trend_strength > 0.7:
            text += (
                f"This represents a strong upward trend ({strength_pct}% strength), "
                "indicating sustained growth momentum. "
            )
        elif trend_strength > 0.4:
            text += f"This represents a moderate upward trend ({strength_pct}% strength). "
    elif trend == "falling":
        momentum_text = (
            f" with strong negative momentum ({momentum:.1f}%)" if momentum < -10
            else f" with declining momentum ({momentum:.1f}%)" if momentum < -5 else ""
        )
        accel_text = (
            " and accelerating decline" if acceleration < -5
            else " though decline is slowing" if acceleration > 5 else ""
        )
        text += (
            f"{name} is projected to show a downward trend over the next {forecast_days} days"
            f"{momentum_text}{accel_text}, with an average forecasted value of {avg_future:.1f}. "
        )
        if trend_strength > 0.7:
            text += (
                f"This represents a strong downward trend ({strength_pct}% strength), "
                "suggesting significant declining interest. "
            )
    else:
        text += (
            f"{name} is projected to remain relatively stable over the next {forecast_days} days, "
            f"with an average forecasted value of {avg_future:.1f}. "
        )
        if volatility > 0.3:
            text += (
                f"However, the data shows high volatility ({volatility * 100:.1f}%), "
                "indicating potential for short-term fluctuations. "
            )

    if seasonality and seasonality["strength"] > 0.5:
        text += (
            f"Seasonal patterns detected ({round_half_up(seasonality['strength'] * 100)}% strength, "
            f"{seasonality['period']}-day period) have been incorporated into the forecast. "
        )

    if confidence >= 80:
        text += (
            f"This forecast has high confidence ({confidence}%) based on consistent historical patterns, "
            "strong model agreement across multiple methods, and robust statistical indicators."
        )
    elif confidence >= 60:
        text += (
            f"This forecast has moderate-to-high confidence ({confidence}%) - the trend direction is reliable, "
            "though exact values may vary. Multiple forecasting methods show general agreement."
        )
    elif confidence >= 40:
        reasons = []
        if volatility > 0.3:
            reasons.append("high data volatility")
        if data_quality < 70:
            reasons.append("limited data quality")
        if trend_strength < 0.4:
            reasons.append("weak trend patterns")
        due_to = f" due to {' and '.join(reasons)}" if reasons else ""
        text += (
            f"This forecast has moderate confidence ({confidence}%){due_to}. "
            "Exercise caution when making decisions based on these projections."
        )
    else:
        text += (
            f"This forecast has lower confidence ({confidence}%) due to significant data variability and "
            "limited predictive patterns. These projections should be considered preliminary and used with caution."
        )

    if confidence >= 60:
        text += (
            " The ensemble approach combining multiple statistical methods provides robust predictions "
            "with confidence intervals."
        )
    return text


def predict_trend(
    series: Sequence[SeriesPoint],
    term: str,
    forecast_days: int = 30,
    methods: Sequence[str] = ("all",),
    category: str = "general",
    use_trendarc_score: bool = True,
) -> Optional[PredictionResult]:
    """
    Forecast one term of a comparison series.

    Returns None when the series is empty or the term is not one of its
    columns.
    """
    if not series:
        logger.warning(f"No series data for {term!r}, skipping prediction")
        return None

    key = resolve_term_key(series, term)
    if key is None:
        logger.warning(f"Term {term!r} not found in series, skipping prediction")
        return None

    raw_values = [to_number(p.get(key)) for p in series]
    raw_dates = [str(p.get("date")) for p in series]
    values, dates = raw_values, raw_dates

    if use_trendarc_score:
        scores = calculate_score_over_time(series, key, category)
        if scores and any(s["score"] > 0 for s in scores):
            values = [float(s["score"]) for s in scores]
            dates = [str(s["date"]) for s in scores]
        else:
            logger.warning(f"TrendArc Score series is empty or all zero for {term!r}, using raw interest")

    if len(values) < 7:
        logger.warning(f"Only {len(values)} points for {term!r}, prediction accuracy will be limited")

    arr = np.array(values, dtype=float)
    data_quality = calculate_data_quality(arr)
    volatility = calculate_volatility(arr)
    trend_strength = calculate_trend_strength(arr)
    seasonality = detect_seasonality(arr)
    momentum = calculate_momentum(arr)
    acceleration = calculate_acceleration(arr)

    selected = list(ALL_METHODS) if "all" in methods else [m for m in methods if m in ALL_METHODS]
    forecast_dates = future_dates(dates[-1], forecast_days)
    results = [r for r in (run_method(m, arr, forecast_dates) for m in selected) if r.predictions]

    predictions, lower, upper = combine_predictions(results, forecast_dates, volatility, trend_strength, seasonality)
    confidence = overall_confidence(results, len(arr), data_quality, volatility, trend_strength, seasonality, momentum)
    trend = determine_trend(predictions, arr, trend_strength, momentum, acceleration)

    return PredictionResult(
        predictions=predictions,
        trend=trend,
        confidence=confidence,
        forecast_period=forecast_days,
        methods=[r.method for r in results],
        explanation=build_explanation(
            trend, confidence, predictions, term, data_quality, volatility, trend_strength,
            momentum, acceleration, seasonality, len(arr), forecast_days,
        ),
        lower=lower,
        upper=upper,
        data_quality=data_quality,
        volatility=volatility,
        trend_strength=trend_strength,
    )
