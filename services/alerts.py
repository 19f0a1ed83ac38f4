"""
Trend alert management. Every operation is scoped to the owning user.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import ResourceNotFoundError, ValidationError
from models.alert import TrendAlert
from models.base import AlertFrequency, AlertStatus, AlertType

logger = logging.getLogger(__name__)


async def create_alert(
    session: AsyncSession,
    user_id: int,
    slug: str,
    term_a: str,
    term_b: str,
    alert_type: AlertType,
    threshold: Optional[float] = None,
    change_percent: float = 10.0,
    frequency: AlertFrequency = AlertFrequency.DAILY,
    baseline_score_a: Optional[float] = None,
    baseline_score_b: Optional[float] = None,
) -> TrendAlert:
    if alert_type == AlertType.THRESHOLD and threshold is None:
        raise ValidationError(
            "Threshold alerts need a threshold",
            context={"field_name": "threshold", "reason": "required for threshold alerts"}
        )

    alert = TrendAlert(
        user_id=user_id,
        slug=slug,
        term_a=term_a,
        term_b=term_b,
        alert_type=alert_type,
        threshold=threshold,
        change_percent=change_percent,
        frequency=frequency,
        status=AlertStatus.ACTIVE,
        baseline_score_a=baseline_score_a,
        baseline_score_b=baseline_score_b,
        baseline_date=datetime.utcnow() if baseline_score_a is not None else None,
    )
    session.add(alert)
    await session.commit()
    await session.refresh(alert)
    logger.info(f"Created {alert_type.value} alert {alert.id} for user {user_id} on {slug}")
    return alert


async def get_user_alert(session: AsyncSession, user_id: int, alert_id: int) -> TrendAlert:
    """
    Raises:
        ResourceNotFoundError: no such alert, deleted, or owned by someone else
    """
    alert = await session.get(TrendAlert, alert_id)
    if alert is None or alert.user_id != user_id or alert.status == AlertStatus.DELETED:
        raise ResourceNotFoundError("Alert not found", context={"alert_id": alert_id})
    return alert


async def list_alerts(session: AsyncSession, user_id: int, include_paused: bool = True) -> List[TrendAlert]:
    statuses = [AlertStatus.ACTIVE, AlertStatus.PAUSED] if include_paused else [AlertStatus.ACTIVE]
    stmt = (
        select(TrendAlert)
        .where(TrendAlert.user_id == user_id, TrendAlert.status.in_(statuses))
        .order_by(TrendAlert.created_at.desc(), TrendAlert.id.desc())
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def update_alert_status(session: AsyncSession, user_id: int, alert_id: int, status: AlertStatus) -> TrendAlert:
    alert = await get_user_alert(session, user_id, alert_id)
    alert.status = status
    await session.commit()
    await session.refresh(alert)
    return alert


async def delete_alert(session: AsyncSession, user_id: int, alert_id: int) -> None:
    """Soft delete."""
    await update_alert_status(session, user_id, alert_id, AlertStatus.DELETED)
