"""
Comparison view history per user.
"""

import logging
from typing import Dict, List

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.user import ComparisonHistory

logger = logging.getLogger(__name__)


async def record_history(
    session: AsyncSession,
    user_id: int,
    slug: str,
    term_a: str,
    term_b: str,
    timeframe: str = "12m",
    geo: str = "",
) -> None:
    """Best effort: failures are logged and do not reach the caller."""
    try:
        session.add(ComparisonHistory(
            user_id=user_id,
            slug=slug,
            term_a=term_a,
            term_b=term_b,
            timeframe=timeframe,
            geo=geo,
        ))
        await session.commit()
    except Exception as e:
        await session.rollback()
        logger.warning(f"Failed to record history for user {user_id} on {slug}: {e}")


async def list_history(session: AsyncSession, user_id: int, limit: int = 50) -> List[ComparisonHistory]:
    stmt = (
        select(ComparisonHistory)
        .where(ComparisonHistory.user_id == user_id)
        .order_by(ComparisonHistory.viewed_at.desc(), ComparisonHistory.id.desc())
        .limit(limit)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def most_viewed(session: AsyncSession, user_id: int, limit: int = 10) -> List[Dict]:
    """``[{"slug", "term_a", "term_b", "count"}]``, most viewed first."""
    views = func.count(ComparisonHistory.id).label("views")
    stmt = (
        select(ComparisonHistory.slug, ComparisonHistory.term_a, ComparisonHistory.term_b, views)
        .where(ComparisonHistory.user_id == user_id)
        .group_by(ComparisonHistory.slug, ComparisonHistory.term_a, ComparisonHistory.term_b)
        .order_by(views.desc(), ComparisonHistory.slug)
        .limit(limit)
    )
    result = await session.execute(stmt)
    return [
        {"slug": row.slug, "term_a": row.term_a, "term_b": row.term_b, "count": row.views}
        for row in result.all()
    ]


async def clear_history(session: AsyncSession, user_id: int) -> int:
    result = await session.execute(delete(ComparisonHistory).where(ComparisonHistory.user_id == user_id))
    await session.commit()
    return result.rowcount
