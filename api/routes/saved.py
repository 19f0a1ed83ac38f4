"""
Saved comparisons and view history for the signed-in user
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_current_user, get_db
from models.user import User
from schemas.api import HistoryItemResponse, HistoryResponse, SaveComparisonRequest, SavedComparisonResponse
from services.history import clear_history, list_history, most_viewed
from services.saved import list_saved, save_comparison, unsave_comparison

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/comparisons", tags=["Saved"])


@router.get("/saved", response_model=List[SavedComparisonResponse])
async def get_saved_comparisons(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await list_saved(db, user.id, limit, offset)


@router.post("/saved", response_model=SavedComparisonResponse)
async def save(
    body: SaveComparisonRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Create a bookmark, or update notes/tags when it already exists."""
    saved = await save_comparison(
        db, user.id, body.slug, body.term_a, body.term_b, body.category, body.notes, body.tags
    )
    logger.info(f"User {user.id} saved {body.slug}")
    return saved


@router.delete("/saved")
async def unsave(
    slug: str = Query(...),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    if not await unsave_comparison(db, user.id, slug):
        raise HTTPException(status_code=404, detail="Saved comparison not found")
    return {"success": True, "slug": slug}


@router.get("/history", response_model=HistoryResponse)
async def get_history(
    limit: int = Query(50, ge=1, le=200),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    items = await list_history(db, user.id, limit)
    return HistoryResponse(
        items=[HistoryItemResponse.model_validate(item) for item in items],
        most_viewed=await most_viewed(db, user.id),
    )


@router.delete("/history")
async def delete_history(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    deleted = await clear_history(db, user.id)
    logger.info(f"Cleared {deleted} history rows for user {user.id}")
    return {"success": True, "deleted": deleted}
