"""
Forecast bundles: the cached per-term summary the warmup jobs precompute.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from pydantic import BaseModel

from cache.hashing import stable_hash
from core.config import settings
from forecasting.prediction import predict_trend
from trends.mathutils import to_number
from trends.series import SeriesPoint, term_keys

logger = logging.getLogger(__name__)

MIN_VALUES = 7
KEY_POINTS = 5
HASH_WINDOW = 20


class KeyPoint(BaseModel):
    date: str
    value: float
    lower_bound: float
    upper_bound: float
    confidence: float


class ForecastWindow(BaseModel):
    average_value: float
    confidence: float
    key_points: List[KeyPoint]
    warnings: Optional[List[str]] = None


class DataFreshness(BaseModel):
    last_updated_at: datetime
    source: str = "prediction-engine"


class ForecastBundleSummary(BaseModel):
    id: str
    term: str  # termA | termB
    direction: str
    forecast_14_day: ForecastWindow
    forecast_30_day: ForecastWindow
    overall_confidence: float
    warnings: Optional[List[str]] = None
    forecast_hash: str
    generated_at: datetime
    data_freshness: DataFreshness
    prediction_engine_version: str


def _term_key(series: Sequence[SeriesPoint], term: str) -> Optional[str]:
    keys = term_keys(series)
    for key in keys:
        if key.lower() == term.lower():
            return key
    return keys[0] if keys else None


def _key_points(predictions: List[dict], lower: List[float], upper: List[float]) -> List[KeyPoint]:
    points = []
    for i, p in enumerate(predictions[:KEY_POINTS]):
        points.append(KeyPoint(
            date=p["date"],
            value=p["value"],
            lower_bound=(lower[i] if i < len(lower) else 0) or max(0.0, p["value"] - 5),
            upper_bound=(upper[i] if i < len(upper) else 0) or min(100.0, p["value"] + 5),
            confidence=p["confidence"],
        ))
    return points


def _window(predictions: List[dict], fallback_confidence: float, lower: List[float],
            upper: List[float], warnings: Optional[List[str]]) -> ForecastWindow:
    if predictions:
        average = sum(p["value"] for p in predictions) / len(predictions)
        confidence = sum(p["confidence"] for p in predictions) / len(predictions)
    else:
        average, confidence = 50.0, fallback_confidence
    return ForecastWindow(
        average_value=average,
        confidence=confidence,
        key_points=_key_points(predictions, lower, upper),
        warnings=warnings,
    )


def generate_forecast_bundle(
    series: Sequence[SeriesPoint],
    term: str,
    category: str = "general",
    term_label: str = "termA",
) -> Optional[ForecastBundleSummary]:
    """
    Build the forecast bundle for one term of a comparison.

    Returns None when the term has fewer than 7 usable values or the
    prediction engine produces nothing.
    """
    key = _term_key(series, term)
    if key is None:
        return None

    points = [{"date": p.get("date"), term: to_number(p.get(key))} for p in series]
    values = [p[term] for p in points if p[term] >= 0]
    if len(values) < MIN_VALUES:
        logger.debug(f"Only {len(values)} values for {term!r}, no forecast bundle")
        return None

    try:
        prediction = predict_trend(points, term, category=category, use_trendarc_score=True)
    except Exception as e:
        logger.error(f"Error generating forecast for {term!r}: {e}", exc_info=True)
        return None
    if prediction is None:
        return None

    forecast_hash = stable_hash({
        "term": term,
        "series": values[-HASH_WINDOW:],
        "version": settings.PREDICTION_ENGINE_VERSION,
    })

    warnings = []
    if prediction.confidence < 70:
        warnings.append("low_confidence")
    if len(values) < 14:
        warnings.append("insufficient_data")
    if prediction.volatility > 0.5:
        warnings.append("high_volatility")
    if prediction.data_quality < 60:
        warnings.append("data_quality_concern")
    warnings = warnings or None

    lower = prediction.lower[:KEY_POINTS]
    upper = prediction.upper[:KEY_POINTS]
    now = datetime.now(timezone.utc)

    return ForecastBundleSummary(
        id=f"forecast-{term}-{forecast_hash}",
        term=term_label,
        direction=prediction.trend,
        forecast_14_day=_window(prediction.predictions[:14], prediction.confidence, lower, upper, warnings),
        forecast_30_day=_window(prediction.predictions[:30], prediction.confidence, lower, upper, warnings),
        overall_confidence=prediction.confidence,
        warnings=warnings,
        forecast_hash=forecast_hash,
        generated_at=now,
        data_freshness=DataFreshness(last_updated_at=now),
        prediction_engine_version=settings.PREDICTION_ENGINE_VERSION,
    )
