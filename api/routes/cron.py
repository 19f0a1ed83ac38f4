"""
Cron entry points for scheduled jobs run from outside the process
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_db, require_cron_secret
from api.middleware import get_request_id
from jobs.alerts import run_alert_checks
from jobs.evaluation import evaluate_forecasts

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/cron", tags=["Cron"], dependencies=[Depends(require_cron_secret)])


@router.get("/check-alerts")
async def check_alerts(request: Request, db: AsyncSession = Depends(get_db)):
    logger.info(f"[{get_request_id(request)}] Cron: check alerts")
    result = await run_alert_checks(db)
    return JSONResponse(status_code=200 if result["success"] else 500, content=result)


@router.get("/evaluate-forecasts")
async def evaluate_forecasts_endpoint(request: Request, db: AsyncSession = Depends(get_db)):
    logger.info(f"[{get_request_id(request)}] Cron: evaluate forecasts")
    result = await evaluate_forecasts(db)
    return JSONResponse(status_code=200 if result["success"] else 500, content=result)
