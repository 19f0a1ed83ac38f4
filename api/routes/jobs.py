"""
Warmup job endpoints, protected by the X-Warmup-Secret header
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_db, get_trends_client, require_warmup_secret
from api.middleware import get_request_id
from core.exceptions import TrendArcException
from jobs.warmup import execute_warmup, get_warmup_status, warmup_forecasts
from schemas.api import WarmupBatchRequest, WarmupRequest
from services.trends_client import TrendsClient

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/jobs", tags=["Jobs"], dependencies=[Depends(require_warmup_secret)])


@router.post("/execute-warmup")
async def execute_warmup_endpoint(
    request: Request,
    body: WarmupRequest,
    db: AsyncSession = Depends(get_db),
    client: TrendsClient = Depends(get_trends_client)
):
    """
    Compute and cache forecasts for one comparison.

    200 ``{ok, status, slug, dataHash}`` on success or when the same key is
    already running, 500 ``{ok: false, status: failed, error, ...}`` on failure.
    """
    request_id = get_request_id(request)
    # geo may be empty (worldwide); the other fields may not
    missing = [name for name, value in (
        ("slug", body.slug), ("tf", body.tf), ("geo", body.geo), ("dataHash", body.data_hash)
    ) if value is None or (value == "" and name != "geo")]
    if missing:
        return JSONResponse(
            status_code=400,
            content={"error": f"Missing required fields: {', '.join(missing)}"}
        )

    logger.info(f"[{request_id}] Execute warmup for {body.slug} (dataHash: {body.data_hash})")
    try:
        return await execute_warmup(db, body.slug, body.tf, body.geo, body.data_hash, client=client)
    except Exception as e:
        message = e.message if isinstance(e, TrendArcException) else str(e)
        return JSONResponse(
            status_code=500,
            content={
                "ok": False,
                "status": "failed",
                "error": message,
                "slug": body.slug,
                "dataHash": body.data_hash,
            }
        )


@router.post("/warmup-forecasts")
async def warmup_forecasts_endpoint(
    request: Request,
    body: Optional[WarmupBatchRequest] = None,
    db: AsyncSession = Depends(get_db)
):
    request_id = get_request_id(request)
    logger.info(f"[{request_id}] Warmup batch requested")
    result = await warmup_forecasts(db, limit=body.limit if body else None)
    return JSONResponse(status_code=200 if result["success"] else 409, content=result)


@router.get("/warmup-status")
async def warmup_status_endpoint(
    slug: str = Query(...),
    tf: str = Query("12m"),
    geo: str = Query(""),
    data_hash: str = Query(..., alias="dataHash")
):
    return await get_warmup_status(slug, tf, geo, data_hash)
