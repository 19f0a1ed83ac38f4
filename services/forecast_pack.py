"""
Forecast pack: per-term forecasts plus head to head, persisted per data hash.

A stored ForecastRun is reused while it is younger than 24 hours; otherwise
both terms are re-forecast and the run and its points are replaced.
"""

import logging
import math
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from cache.hashing import stable_hash
from forecasting.core import (
    BacktestResult,
    ForecastPoint as PointResult,
    ForecastResult,
    QualityFlags,
    TimeSeriesPoint,
    forecast,
)
from forecasting.head_to_head import HeadToHeadForecast, compute_head_to_head
from models.base import ForecastTerm
from models.comparison import Comparison
from models.forecast import ForecastPoint, ForecastRun
from trends.score_series import calculate_score_over_time, resolve_term_key
from trends.mathutils import to_number

logger = logging.getLogger(__name__)

DEFAULT_HORIZON = 28
MIN_POINTS = 7
MAX_RUN_AGE = timedelta(hours=24)
INSERT_BATCH_SIZE = 100


@dataclass
class ForecastPack:
    term_a: ForecastResult
    term_b: ForecastResult
    head_to_head: HeadToHeadForecast
    computed_at: datetime
    data_hash: str
    horizon: int

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["computed_at"] = self.computed_at.isoformat()
        return data


def to_score_series(series: Sequence[Dict], term: str, category: str = "general") -> List[TimeSeriesPoint]:
    """
    TrendArc score series for ``term``, sorted by date.

    Falls back to the raw interest column when scoring yields nothing.
    """
    if not series:
        return []

    scores = calculate_score_over_time(series, term, category)
    if scores:
        rows = [(str(s["date"]), float(s["score"])) for s in scores]
    else:
        key = resolve_term_key(series, term)
        if key is None:
            logger.warning(f"No matching key for {term!r} in series")
            return []
        logger.warning(f"Score series empty for {term!r}, falling back to raw interest")
        rows = [(str(p.get("date")), to_number(p.get(key))) for p in series]

    points = [TimeSeriesPoint(date=d, value=v) for d, v in rows if math.isfinite(v) and v >= 0]
    return sorted(points, key=lambda p: p.date)


def hash_series(series_a: Sequence[TimeSeriesPoint], series_b: Sequence[TimeSeriesPoint]) -> str:
    combined = (
        [{"date": p.date, "term": "A", "value": p.value} for p in series_a]
        + [{"date": p.date, "term": "B", "value": p.value} for p in series_b]
    )
    return stable_hash(combined)


def _finite_or_none(metrics: Dict) -> Dict:
    return {k: (v if not isinstance(v, float) or math.isfinite(v) else None) for k, v in metrics.items()}


def _metrics_from_json(data: Optional[Dict]) -> BacktestResult:
    data = data or {}
    return BacktestResult(
        mae=data.get("mae") if data.get("mae") is not None else math.inf,
        mape=data.get("mape") if data.get("mape") is not None else math.inf,
        interval_coverage80=data.get("interval_coverage80", 0.0),
        interval_coverage95=data.get("interval_coverage95", 0.0),
        sample_size=data.get("sample_size", 0),
    )


def _result_from_points(points: Sequence[ForecastPoint], model: str, metrics: Optional[Dict],
                        confidence: float, flags: Optional[Dict]) -> ForecastResult:
    return ForecastResult(
        points=[
            PointResult(
                date=p.date.strftime("%Y-%m-%d"),
                value=p.value,
                lower80=p.lower80,
                upper80=p.upper80,
                lower95=p.lower95,
                upper95=p.upper95,
            )
            for p in points
        ],
        model=model,
        metrics=_metrics_from_json(metrics),
        confidence_score=int(confidence),
        quality_flags=QualityFlags(**(flags or {})),
    )


async def _find_run(session: AsyncSession, comparison_id: int, timeframe: str,
                    horizon: int, data_hash: str) -> Optional[ForecastRun]:
    stmt = select(ForecastRun).where(
        ForecastRun.comparison_id == comparison_id,
        ForecastRun.timeframe == timeframe,
        ForecastRun.horizon == horizon,
        ForecastRun.data_hash == data_hash,
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def _load_points(session: AsyncSession, run_id: int, term: ForecastTerm) -> List[ForecastPoint]:
    stmt = (
        select(ForecastPoint)
        .where(ForecastPoint.forecast_run_id == run_id, ForecastPoint.term == term)
        .order_by(ForecastPoint.date)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def load_cached_pack(session: AsyncSession, comparison_id: int, timeframe: str, horizon: int,
                           data_hash: str, current_margin: float = 0.0) -> Optional[ForecastPack]:
    run = await _find_run(session, comparison_id, timeframe, horizon, data_hash)
    if run is None or datetime.utcnow() - run.computed_at > MAX_RUN_AGE:
        return None

    points_a = await _load_points(session, run.id, ForecastTerm.TERM_A)
    points_b = await _load_points(session, run.id, ForecastTerm.TERM_B)

    return ForecastPack(
        term_a=_result_from_points(points_a, run.model_term_a, run.metrics_a,
                                   run.confidence_score_a, run.quality_flags_a),
        term_b=_result_from_points(points_b, run.model_term_b, run.metrics_b,
                                   run.confidence_score_b, run.quality_flags_b),
        head_to_head=HeadToHeadForecast(
            winner_probability=run.winner_probability if run.winner_probability is not None else 50.0,
            expected_margin_points=run.expected_margin or 0.0,
            lead_change_risk=run.lead_change_risk or "medium",
            current_margin=current_margin,
            forecast_horizon=horizon,
        ),
        computed_at=run.computed_at,
        data_hash=data_hash,
        horizon=horizon,
    )


def _point_rows(run_id: int, term: ForecastTerm, result: ForecastResult) -> List[ForecastPoint]:
    return [
        ForecastPoint(
            forecast_run_id=run_id,
            term=term,
            date=datetime.strptime(p.date, "%Y-%m-%d"),
            value=p.value,
            lower80=p.lower80,
            upper80=p.upper80,
            lower95=p.lower95,
            upper95=p.upper95,
        )
        for p in result.points
    ]


async def save_pack(session: AsyncSession, comparison_id: int, timeframe: str, pack: ForecastPack) -> ForecastRun:
    """Upsert the run for the pack's key and replace its points."""
    run = await _find_run(session, comparison_id, timeframe, pack.horizon, pack.data_hash)
    if run is None:
        run = ForecastRun(
            comparison_id=comparison_id,
            timeframe=timeframe,
            horizon=pack.horizon,
            data_hash=pack.data_hash,
        )
        session.add(run)

    run.model_term_a = pack.term_a.model
    run.model_term_b = pack.term_b.model
    run.confidence_score_a = pack.term_a.confidence_score
    run.confidence_score_b = pack.term_b.confidence_score
    run.metrics_a = _finite_or_none(asdict(pack.term_a.metrics))
    run.metrics_b = _finite_or_none(asdict(pack.term_b.metrics))
    run.quality_flags_a = asdict(pack.term_a.quality_flags)
    run.quality_flags_b = asdict(pack.term_b.quality_flags)
    run.winner_probability = pack.head_to_head.winner_probability
    run.expected_margin = pack.head_to_head.expected_margin_points
    run.lead_change_risk = pack.head_to_head.lead_change_risk
    run.computed_at = pack.computed_at
    await session.flush()

    await session.execute(delete(ForecastPoint).where(ForecastPoint.forecast_run_id == run.id))

    rows = (
        _point_rows(run.id, ForecastTerm.TERM_A, pack.term_a)
        + _point_rows(run.id, ForecastTerm.TERM_B, pack.term_b)
    )
    for start in range(0, len(rows), INSERT_BATCH_SIZE):
        session.add_all(rows[start:start + INSERT_BATCH_SIZE])
        await session.flush()

    await session.commit()
    return run


async def get_or_compute_forecast_pack(
    session: AsyncSession,
    comparison: Comparison,
    horizon: int = DEFAULT_HORIZON,
) -> Optional[ForecastPack]:
    """None when either term has fewer than 7 usable points."""
    term_a, term_b = comparison.terms[0], comparison.terms[1]
    category = comparison.category or "general"
    series_a = to_score_series(comparison.series or [], term_a, category)
    series_b = to_score_series(comparison.series or [], term_b, category)

    if len(series_a) < MIN_POINTS or len(series_b) < MIN_POINTS:
        logger.info(f"Insufficient data for forecasting {comparison.slug}")
        return None

    current_a, current_b = series_a[-1].value, series_b[-1].value
    data_hash = hash_series(series_a, series_b)

    cached = await load_cached_pack(
        session, comparison.id, comparison.timeframe, horizon, data_hash, current_b - current_a
    )
    if cached is not None:
        logger.debug(f"Using stored forecast run for {comparison.slug}")
        return cached

    logger.info(f"Computing new forecast for {comparison.slug}")
    result_a = forecast(series_a, horizon)
    result_b = forecast(series_b, horizon)

    pack = ForecastPack(
        term_a=result_a,
        term_b=result_b,
        head_to_head=compute_head_to_head(result_a, result_b, current_a, current_b),
        computed_at=datetime.utcnow(),
        data_hash=data_hash,
        horizon=horizon,
    )

    try:
        await save_pack(session, comparison.id, comparison.timeframe, pack)
    except Exception as e:
        # Persisting is best effort; the computed pack is still returned
        await session.rollback()
        logger.error(f"Failed to store forecast run for {comparison.slug}: {e}")

    return pack
