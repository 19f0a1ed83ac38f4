"""
Trend alert checks.

Alerts are due by frequency (instant hourly, daily, weekly). Each due alert
is scored against its stored comparison; a trigger is recorded on the row
(last_triggered, notify_count) since notification delivery happens
elsewhere.
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db_session
from models.alert import TrendAlert
from models.base import AlertFrequency, AlertStatus, AlertType
from services.comparisons import get_comparison, score_comparison
from trends.mathutils import round_half_up

logger = logging.getLogger(__name__)

CHECK_INTERVALS = {
    AlertFrequency.INSTANT: timedelta(hours=1),
    AlertFrequency.DAILY: timedelta(days=1),
    AlertFrequency.WEEKLY: timedelta(days=7),
}


@dataclass
class AlertCheck:
    should_trigger: bool
    reason: Optional[str] = None
    current_score_a: Optional[int] = None
    current_score_b: Optional[int] = None


async def get_alerts_to_check(session: AsyncSession, now: Optional[datetime] = None) -> List[TrendAlert]:
    now = now or datetime.utcnow()
    due = [TrendAlert.last_checked.is_(None)]
    for frequency, interval in CHECK_INTERVALS.items():
        due.append(and_(TrendAlert.frequency == frequency, TrendAlert.last_checked < now - interval))

    stmt = (
        select(TrendAlert)
        .where(TrendAlert.status == AlertStatus.ACTIVE, or_(*due))
        .order_by(TrendAlert.last_checked.asc(), TrendAlert.id.asc())
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


def check_alert(alert: TrendAlert, scores: Tuple[int, int]) -> AlertCheck:
    """Decide whether ``alert`` fires for the current (score_a, score_b)."""
    score_a, score_b = scores
    check = AlertCheck(should_trigger=False, current_score_a=score_a, current_score_b=score_b)
    baseline_a = alert.baseline_score_a or 0
    baseline_b = alert.baseline_score_b or 0

    if alert.alert_type == AlertType.SCORE_CHANGE:
        max_change = max(abs(score_a - baseline_a), abs(score_b - baseline_b))
        percent = max_change / baseline_a * 100 if baseline_a else 0.0
        if percent >= alert.change_percent:
            check.should_trigger = True
            check.reason = f"Score changed by {percent:.1f}% (threshold: {alert.change_percent:g}%)"

    elif alert.alert_type == AlertType.POSITION_CHANGE:
        baseline_winner = alert.term_a if baseline_a >= baseline_b else alert.term_b
        current_winner = alert.term_a if score_a >= score_b else alert.term_b
        if baseline_winner != current_winner:
            check.should_trigger = True
            check.reason = f"Winner changed from {baseline_winner} to {current_winner}"

    elif alert.alert_type == AlertType.THRESHOLD and alert.threshold:
        if score_a >= alert.threshold or score_b >= alert.threshold:
            term, score = (alert.term_a, score_a) if score_a >= alert.threshold else (alert.term_b, score_b)
            check.should_trigger = True
            check.reason = f"{term} reached threshold of {alert.threshold:g} (current: {score})"

    return check


async def current_scores(session: AsyncSession, alert: TrendAlert) -> Optional[Tuple[int, int]]:
    comparison = await get_comparison(session, alert.slug)
    if comparison is None:
        return None
    score_a, score_b = score_comparison(comparison)
    # Stored term order may differ from the alert's
    if comparison.terms[0] != alert.term_a:
        score_a, score_b = score_b, score_a
    return int(round_half_up(score_a.overall)), int(round_half_up(score_b.overall))


async def run_alert_checks(session: Optional[AsyncSession] = None, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Returns ``{success, processed, triggered, errors, duration_ms}``."""
    if session is None:
        async with get_db_session() as own_session:
            return await run_alert_checks(own_session, now)

    started = time.monotonic()
    processed = triggered = 0
    errors: List[str] = []

    alert_ids = [a.id for a in await get_alerts_to_check(session, now)]
    logger.info(f"[CheckAlerts] Found {len(alert_ids)} alerts to check")

    for alert_id in alert_ids:
        processed += 1
        checked_at = now or datetime.utcnow()
        try:
            # Reload: a rollback for an earlier alert expires every instance
            alert = await session.get(TrendAlert, alert_id, populate_existing=True)
            scores = await current_scores(session, alert)
            if scores is None:
                logger.warning(f"[CheckAlerts] No comparison stored for alert {alert.id} ({alert.slug})")
                alert.last_checked = checked_at
            else:
                result = check_alert(alert, scores)
                alert.last_checked = checked_at
                if result.should_trigger:
                    triggered += 1
                    alert.last_triggered = checked_at
                    alert.notify_count = (alert.notify_count or 0) + 1
                    logger.info(f"[CheckAlerts] Alert {alert.id} triggered: {result.reason}")
            await session.commit()
        except Exception as e:
            await session.rollback()
            errors.append(f"Alert {alert_id}: {e}")
            logger.error(f"[CheckAlerts] Error processing alert {alert_id}: {e}")

    summary = {
        "success": True,
        "processed": processed,
        "triggered": triggered,
        "errors": len(errors),
        "duration_ms": int((time.monotonic() - started) * 1000),
    }
    if errors:
        summary["error_details"] = errors
    logger.info(f"[CheckAlerts] Completed: {summary}")
    return summary
