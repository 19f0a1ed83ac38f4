"""
Forecast accuracy (trust) statistics
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_db
from jobs.evaluation import get_trust_stats
from schemas.api import TrustStatsResponse

router = APIRouter(prefix="/api/forecasts", tags=["Forecasts"])


@router.get("/trust", response_model=TrustStatsResponse)
async def trust_stats(db: AsyncSession = Depends(get_db)):
    """Empty stats until the first evaluation run."""
    stats = await get_trust_stats(db)
    if stats is None:
        return TrustStatsResponse()
    return stats
