"""
Trend alert management for the signed-in user
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_current_user, get_db
from models.user import User
from schemas.api import AlertResponse, CreateAlertRequest, UpdateAlertRequest
from services.alerts import create_alert, delete_alert, list_alerts, update_alert_status

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/alerts", tags=["Alerts"])


@router.get("", response_model=List[AlertResponse])
async def get_alerts(
    include_paused: bool = Query(True),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await list_alerts(db, user.id, include_paused)


@router.post("", response_model=AlertResponse, status_code=201)
async def post_alert(
    body: CreateAlertRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await create_alert(
        db,
        user.id,
        body.slug,
        body.term_a,
        body.term_b,
        body.alert_type,
        threshold=body.threshold,
        change_percent=body.change_percent,
        frequency=body.frequency,
        baseline_score_a=body.baseline_score_a,
        baseline_score_b=body.baseline_score_b,
    )


@router.patch("/{alert_id}", response_model=AlertResponse)
async def patch_alert(
    alert_id: int,
    body: UpdateAlertRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await update_alert_status(db, user.id, alert_id, body.status)


@router.delete("/{alert_id}")
async def remove_alert(
    alert_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await delete_alert(db, user.id, alert_id)
    return {"success": True, "id": alert_id}
