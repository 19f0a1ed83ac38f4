"""
Forecast evaluation against observed data.

Runs whose horizon has passed are compared to the comparison's current
score series. Per-run accuracy lands in ForecastEvaluation; the aggregate
lands in ForecastTrustStats under period ``alltime``.
"""

import logging
import time
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import pandas as pd
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db_session
from models.base import ForecastTerm
from models.comparison import Comparison
from models.forecast import ForecastEvaluation, ForecastPoint, ForecastRun, ForecastTrustStats
from services.forecast_pack import to_score_series

logger = logging.getLogger(__name__)

EVALUATION_DELAY = timedelta(days=28)
BATCH_SIZE = 100
RECENT_WINDOW = timedelta(days=90)
TRUST_PERIOD = "alltime"


def _points_frame(points: List[ForecastPoint]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "date": p.date.strftime("%Y-%m-%d"),
                "value": p.value,
                "lower80": p.lower80,
                "upper80": p.upper80,
                "lower95": p.lower95,
                "upper95": p.upper95,
            }
            for p in points
        ],
        columns=["date", "value", "lower80", "upper80", "lower95", "upper95"],
    )


def _actuals_frame(series: List[Dict], term: str, category: str) -> pd.DataFrame:
    return pd.DataFrame(
        [{"date": p.date[:10], "actual": p.value} for p in to_score_series(series, term, category)],
        columns=["date", "actual"],
    ).drop_duplicates("date", keep="last")


def score_term(points: pd.DataFrame, actuals: pd.DataFrame) -> Optional[Dict[str, Any]]:
    """
    Accuracy of one term's forecast points against observed values.

    None when no forecast date has an observation.
    """
    df = points.sort_values("date").merge(actuals, on="date", how="left")
    observed = df[df["actual"].notna()]
    if observed.empty:
        return None

    errors = (observed["actual"] - observed["value"]).abs()
    pct_errors = (errors / observed["actual"] * 100).where(observed["actual"] > 0, 0.0)
    hit80 = observed["actual"].between(observed["lower80"], observed["upper80"])
    hit95 = observed["actual"].between(observed["lower95"], observed["upper95"])

    # Day-over-day direction, only where both days were observed
    prev_actual = df["actual"].shift(1)
    prev_value = df["value"].shift(1)
    comparable = df["actual"].notna() & prev_actual.notna()
    forecast_up = df["value"] > prev_value
    actual_up = df["actual"] > prev_actual
    direction_total = int(comparable.sum())
    direction_correct = int(((forecast_up == actual_up) & comparable).sum())

    return {
        "mae": float(errors.mean()),
        "mape": float(pct_errors.mean()),
        "hit80": float(hit80.mean() * 100),
        "hit95": float(hit95.mean() * 100),
        "points": int(len(observed)),
        "direction_correct": direction_correct / direction_total > 0.5 if direction_total else None,
        "final_actual": float(observed["actual"].iloc[-1]),
    }


def _combine(a: Optional[float], b: Optional[float]) -> Optional[float]:
    if a is not None and b is not None:
        return (a + b) / 2
    return a if a is not None else b


async def _load_points(session: AsyncSession, run_id: int, term: ForecastTerm) -> List[ForecastPoint]:
    stmt = (
        select(ForecastPoint)
        .where(ForecastPoint.forecast_run_id == run_id, ForecastPoint.term == term)
        .order_by(ForecastPoint.date)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def _mark_skipped(session: AsyncSession, run: ForecastRun, reason: str) -> None:
    run.evaluated_at = datetime.utcnow()
    run.evaluation_skipped_reason = reason
    await session.commit()
    logger.info(f"[EvaluateForecasts] Skipped run {run.id}: {reason}")


async def evaluate_forecast_run(session: AsyncSession, run: ForecastRun) -> Optional[ForecastEvaluation]:
    """
    Score one run against observed data.

    None when the run is already evaluated or cannot be scored; the latter
    is marked with ``evaluated_at`` and a skip reason so later batches pass
    over it.
    """
    existing = await session.execute(
        select(ForecastEvaluation).where(ForecastEvaluation.forecast_run_id == run.id)
    )
    if existing.scalar_one_or_none() is not None:
        if run.evaluated_at is None:
            run.evaluated_at = datetime.utcnow()
            await session.commit()
        return None

    points_a = await _load_points(session, run.id, ForecastTerm.TERM_A)
    points_b = await _load_points(session, run.id, ForecastTerm.TERM_B)
    if not points_a or not points_b:
        await _mark_skipped(session, run, "no-points")
        return None

    comparison = await session.get(Comparison, run.comparison_id)
    if comparison is None or len(comparison.terms or []) < 2:
        await _mark_skipped(session, run, "no-comparison")
        return None

    category = comparison.category or "general"
    series = comparison.series or []
    result_a = score_term(_points_frame(points_a), _actuals_frame(series, comparison.terms[0], category))
    result_b = score_term(_points_frame(points_b), _actuals_frame(series, comparison.terms[1], category))
    if result_a is None or result_b is None:
        await _mark_skipped(session, run, "no-actuals")
        return None

    predicted_winner = ForecastTerm.TERM_B if run.winner_probability > 50 else ForecastTerm.TERM_A
    actual_winner = ForecastTerm.TERM_B if result_b["final_actual"] > result_a["final_actual"] else ForecastTerm.TERM_A

    evaluation = ForecastEvaluation(
        forecast_run_id=run.id,
        winner_correct=predicted_winner == actual_winner,
        direction_correct_a=result_a["direction_correct"],
        direction_correct_b=result_b["direction_correct"],
        interval_hit_rate80=_combine(result_a["hit80"], result_b["hit80"]),
        interval_hit_rate95=_combine(result_a["hit95"], result_b["hit95"]),
        mae=_combine(result_a["mae"], result_b["mae"]),
        mape=_combine(result_a["mape"], result_b["mape"]),
        evaluated_points=result_a["points"] + result_b["points"],
    )
    session.add(evaluation)
    run.evaluated_at = datetime.utcnow()
    await session.commit()

    logger.info(
        f"[EvaluateForecasts] Evaluated run {run.id}: winner_correct={evaluation.winner_correct}, "
        f"mae={evaluation.mae:.2f}, interval_hit_rate80={evaluation.interval_hit_rate80:.1f}%"
    )
    return evaluation


async def update_trust_stats(session: AsyncSession, now: Optional[datetime] = None) -> ForecastTrustStats:
    now = now or datetime.utcnow()
    result = await session.execute(select(ForecastEvaluation))
    evaluations = list(result.scalars().all())

    total = len(evaluations)
    winner_accuracy = (
        sum(1 for e in evaluations if e.winner_correct) / total * 100 if total else None
    )
    coverages = [e.interval_hit_rate80 for e in evaluations if e.interval_hit_rate80 is not None]
    coverage = sum(coverages) / len(coverages) if coverages else None

    recent = [e for e in evaluations if e.evaluated_at >= now - RECENT_WINDOW]
    recent_accuracy = (
        sum(1 for e in recent if e.winner_correct) / len(recent) * 100 if recent else None
    )

    stats_result = await session.execute(
        select(ForecastTrustStats).where(ForecastTrustStats.period == TRUST_PERIOD)
    )
    stats = stats_result.scalar_one_or_none()
    if stats is None:
        stats = ForecastTrustStats(period=TRUST_PERIOD)
        session.add(stats)

    stats.total_evaluated = total
    stats.sample_size = total
    stats.winner_accuracy_percent = winner_accuracy
    stats.interval_coverage_percent = coverage
    stats.last_90_days_accuracy = recent_accuracy
    stats.last_calculated = now
    await session.commit()

    logger.info(f"[EvaluateForecasts] Updated trust stats: total_evaluated={total}, winner_accuracy={winner_accuracy}")
    return stats


async def evaluate_forecasts(session: Optional[AsyncSession] = None, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Returns ``{success, evaluated, skipped, total_found, duration_ms}``."""
    if session is None:
        async with get_db_session() as own_session:
            return await evaluate_forecasts(own_session, now)

    started = time.monotonic()
    now = now or datetime.utcnow()

    stmt = (
        select(ForecastRun.id)
        .where(ForecastRun.evaluated_at.is_(None), ForecastRun.computed_at <= now - EVALUATION_DELAY)
        .order_by(ForecastRun.computed_at)
        .limit(BATCH_SIZE)
    )
    run_ids = list((await session.execute(stmt)).scalars().all())
    logger.info(f"[EvaluateForecasts] Found {len(run_ids)} forecast runs to evaluate")

    evaluated = skipped = 0
    for run_id in run_ids:
        try:
            run = await session.get(ForecastRun, run_id, populate_existing=True)
            if await evaluate_forecast_run(session, run) is not None:
                evaluated += 1
            elif run.evaluation_skipped_reason:
                skipped += 1
        except Exception as e:
            await session.rollback()
            logger.error(f"[EvaluateForecasts] Error evaluating forecast run {run_id}: {e}")

    await update_trust_stats(session, now)

    return {
        "success": True,
        "evaluated": evaluated,
        "skipped": skipped,
        "total_found": len(run_ids),
        "duration_ms": int((time.monotonic() - started) * 1000),
    }


async def get_trust_stats(session: AsyncSession) -> Optional[ForecastTrustStats]:
    result = await session.execute(
        select(ForecastTrustStats).where(ForecastTrustStats.period == TRUST_PERIOD)
    )
    return result.scalar_one_or_none()
