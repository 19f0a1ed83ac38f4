"""
FastAPI dependencies: database session, current user, job secrets and
external clients
"""

import hmac
import logging
from typing import AsyncGenerator, Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.config import settings
from core.database import async_session_maker, get_session
from insights.generator import CompleteFn, http_completion
from models.user import User
from services.trends_client import TrendsClient, get_trends_client as shared_trends_client

logger = logging.getLogger(__name__)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async for session in get_session():
        yield session


def get_session_factory() -> async_sessionmaker:
    """Session factory for work that outlives the request session."""
    return async_session_maker


async def get_current_user(
    x_user_id: Optional[str] = Header(None, alias="X-User-ID"),
    db: AsyncSession = Depends(get_db)
) -> User:
    """Resolve the signed-in user from the X-User-ID header."""
    if not x_user_id or not x_user_id.isdigit():
        raise HTTPException(status_code=401, detail="Unauthorized")

    user = await db.get(User, int(x_user_id))
    if user is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user


async def get_optional_user(
    x_user_id: Optional[str] = Header(None, alias="X-User-ID"),
    db: AsyncSession = Depends(get_db)
) -> Optional[User]:
    if not x_user_id or not x_user_id.isdigit():
        return None
    return await db.get(User, int(x_user_id))


def _matches(provided: Optional[str], expected: str) -> bool:
    return provided is not None and hmac.compare_digest(provided.encode(), expected.encode())


async def require_warmup_secret(
    x_warmup_secret: Optional[str] = Header(None, alias="X-Warmup-Secret")
) -> None:
    """503 when no secret is configured, 401 on mismatch."""
    if not settings.WARMUP_SECRET:
        logger.error("WARMUP_SECRET not configured")
        raise HTTPException(status_code=503, detail="Warmup endpoint not configured")

    if not _matches(x_warmup_secret, settings.WARMUP_SECRET):
        logger.warning("Unauthorized warmup request")
        raise HTTPException(status_code=401, detail="Unauthorized")


async def require_cron_secret(
    authorization: Optional[str] = Header(None)
) -> None:
    """Bearer CRON_SECRET, enforced only when the secret is configured."""
    if not settings.CRON_SECRET:
        return

    if not _matches(authorization, f"Bearer {settings.CRON_SECRET}"):
        logger.warning("Unauthorized cron request")
        raise HTTPException(status_code=401, detail="Unauthorized")


def get_trends_client() -> TrendsClient:
    return shared_trends_client()


def get_insight_completion() -> Optional[CompleteFn]:
    """Completion callable for AI insights, None when no endpoint is configured."""
    if not settings.INSIGHT_COMPLETION_URL:
        return None
    return http_completion(settings.INSIGHT_COMPLETION_URL, settings.INSIGHT_COMPLETION_API_KEY)
