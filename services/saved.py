"""
Saved comparisons per user.
"""

import logging
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.user import SavedComparison

logger = logging.getLogger(__name__)


async def get_saved(session: AsyncSession, user_id: int, slug: str) -> Optional[SavedComparison]:
    stmt = select(SavedComparison).where(
        SavedComparison.user_id == user_id, SavedComparison.slug == slug
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def save_comparison(
    session: AsyncSession,
    user_id: int,
    slug: str,
    term_a: str,
    term_b: str,
    category: Optional[str] = None,
    notes: Optional[str] = None,
    tags: Optional[List[str]] = None,
) -> SavedComparison:
    """Create the bookmark, or update notes/tags/category of an existing one."""
    saved = await get_saved(session, user_id, slug)
    if saved is None:
        saved = SavedComparison(
            user_id=user_id,
            slug=slug,
            term_a=term_a,
            term_b=term_b,
            category=category,
            notes=notes,
            tags=list(tags or []),
        )
        session.add(saved)
    else:
        if notes is not None:
            saved.notes = notes
        if tags is not None:
            saved.tags = list(tags)
        if category is not None:
            saved.category = category

    await session.commit()
    await session.refresh(saved)
    return saved


async def unsave_comparison(session: AsyncSession, user_id: int, slug: str) -> bool:
    result = await session.execute(
        delete(SavedComparison).where(SavedComparison.user_id == user_id, SavedComparison.slug == slug)
    )
    await session.commit()
    return result.rowcount > 0


async def list_saved(session: AsyncSession, user_id: int, limit: int = 50, offset: int = 0) -> List[SavedComparison]:
    stmt = (
        select(SavedComparison)
        .where(SavedComparison.user_id == user_id)
        .order_by(SavedComparison.created_at.desc(), SavedComparison.id.desc())
        .limit(limit)
        .offset(offset)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def is_saved(session: AsyncSession, user_id: int, slug: str) -> bool:
    return await get_saved(session, user_id, slug) is not None
