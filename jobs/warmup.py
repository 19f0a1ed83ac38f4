"""
Forecast warmup jobs.

Cache-aside with status flags: a status key is written before any work so a
second trigger for the same (slug, timeframe, geo, data hash) sees
``running`` and backs off. TTLs on the status keys are the only recovery
from a crashed worker.

Status lifetimes:
    running   30 min (batch) / 15 min (single execution)
    ready     7 days
    queued    5 min, one of the two bundles could not be built
    failed    10 min, with the error message under the error key
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from cache.cache import Cache, get_cache
from cache.keys import (
    WARMUP_BATCH_LOCK_KEY,
    compute_data_hash,
    forecast_key,
    warmup_error_key,
    warmup_finished_at_key,
    warmup_lock_key,
    warmup_started_at_key,
    warmup_status_key,
)
from core.config import settings
from core.database import get_db_session
from core.exceptions import WarmupError
from forecasting.bundle import generate_forecast_bundle
from models.base import WarmupStatus
from models.comparison import Comparison
from services.comparisons import get_or_build_comparison
from services.trends_client import TrendsClient
from trends.slug import from_slug
from trends.terms import validate_term

logger = logging.getLogger(__name__)

MINUTE = 60
HOUR = 60 * MINUTE
DAY = 24 * HOUR

BATCH_LOCK_TTL = HOUR
BATCH_RUNNING_TTL = 30 * MINUTE
EXECUTE_RUNNING_TTL = 15 * MINUTE
READY_TTL = 7 * DAY
QUEUED_TTL = 5 * MINUTE
FAILED_TTL = 10 * MINUTE
FORECAST_TTL = DAY
FORECAST_STALE_TTL = 7 * DAY
POPULAR_WINDOW = timedelta(days=7)
MAX_REPORTED_ERRORS = 10


@dataclass
class WarmupTarget:
    slug: str
    term_a: str
    term_b: str
    timeframe: str
    geo: str
    category: str
    series: List[Dict[str, Any]]


async def _set_flag(cache: Cache, key: str, value: Any, ttl: int) -> None:
    # No stale window: an expired flag must read as absent
    await cache.set(key, value, ttl=ttl, stale_ttl=ttl)


async def _cache_bundles(cache: Cache, target: WarmupTarget, data_hash: str):
    bundle_a = generate_forecast_bundle(target.series, target.term_a, target.category, "termA")
    bundle_b = generate_forecast_bundle(target.series, target.term_b, target.category, "termB")

    keys = {}
    for term, bundle in ((target.term_a, bundle_a), (target.term_b, bundle_b)):
        if bundle is None:
            continue
        key = forecast_key(target.slug, term, target.timeframe, target.geo, data_hash)
        await cache.set(key, bundle.model_dump(mode="json"), ttl=FORECAST_TTL, stale_ttl=FORECAST_STALE_TTL)
        keys[term] = key
    return bundle_a, bundle_b, keys


# ============================================================================
# Batch job
# ============================================================================

async def load_popular_comparisons(session: AsyncSession, limit: int, now: Optional[datetime] = None) -> List[WarmupTarget]:
    """Recently created or visited comparisons, or any with views, most viewed first."""
    since = (now or datetime.utcnow()) - POPULAR_WINDOW
    stmt = (
        select(Comparison)
        .where(or_(
            Comparison.created_at >= since,
            Comparison.last_visited >= since,
            Comparison.view_count > 0,
        ))
        .order_by(
            Comparison.view_count.desc(),
            Comparison.last_visited.desc(),
            Comparison.created_at.desc(),
        )
        .limit(limit)
    )
    result = await session.execute(stmt)

    targets = []
    for row in result.scalars().all():
        if len(row.terms or []) < 2:
            logger.debug(f"Skipping {row.slug}: fewer than two terms")
            continue
        targets.append(target_for(row))
    return targets


async def _warm_one(cache: Cache, target: WarmupTarget) -> None:
    if not target.series:
        raise WarmupError(f"No data for {target.slug}", context={"slug": target.slug, "stage": "comparison"})

    data_hash = compute_data_hash(target.series, target.timeframe, target.term_a, target.term_b)
    status_key = warmup_status_key(target.slug, target.timeframe, target.geo, data_hash)
    error_key = warmup_error_key(target.slug, target.timeframe, target.geo, data_hash)

    await _set_flag(cache, status_key, WarmupStatus.RUNNING.value, BATCH_RUNNING_TTL)
    try:
        bundle_a, bundle_b, _ = await _cache_bundles(cache, target, data_hash)
        if bundle_a is not None and bundle_b is not None:
            await _set_flag(cache, status_key, WarmupStatus.READY.value, READY_TTL)
        else:
            await _set_flag(cache, status_key, WarmupStatus.QUEUED.value, QUEUED_TTL)
        logger.info(f"[WarmupForecasts] Processed {target.slug}")
    except Exception as e:
        await _set_flag(cache, status_key, WarmupStatus.FAILED.value, FAILED_TTL)
        await _set_flag(cache, error_key, str(e)[:200], FAILED_TTL)
        raise


async def warmup_forecasts(
    session: Optional[AsyncSession] = None,
    limit: Optional[int] = None,
    concurrency: int = 5,
    cache: Optional[Cache] = None,
) -> Dict[str, Any]:
    """
    Precompute forecast bundles for popular comparisons.

    Returns ``{success, processed, failed, errors, duration_ms}``. Only one
    batch runs at a time; a second call while the global lock is held
    returns ``success=False`` without doing any work.
    """
    if session is None:
        async with get_db_session() as own_session:
            return await warmup_forecasts(own_session, limit, concurrency, cache)

    cache = cache or get_cache()
    limit = limit or settings.WARMUP_BATCH_LIMIT
    started = time.monotonic()
    processed = failed = 0
    errors: List[str] = []

    def result(success: bool, error: Optional[str] = None) -> Dict[str, Any]:
        summary = {
            "success": success,
            "processed": processed,
            "failed": failed,
            "errors": errors[:MAX_REPORTED_ERRORS],
            "duration_ms": int((time.monotonic() - started) * 1000),
        }
        if error:
            summary["error"] = error
        return summary

    if not cache.store.acquire_lock(WARMUP_BATCH_LOCK_KEY, BATCH_LOCK_TTL):
        logger.info("[WarmupForecasts] Another warmup job is already running")
        return result(False, "Another warmup job is already running")

    try:
        targets = await load_popular_comparisons(session, limit)
        logger.info(f"[WarmupForecasts] Found {len(targets)} comparisons to warm up")

        for start in range(0, len(targets), concurrency):
            batch = targets[start:start + concurrency]
            outcomes = await asyncio.gather(*(_warm_one(cache, t) for t in batch), return_exceptions=True)
            for target, outcome in zip(batch, outcomes):
                if isinstance(outcome, BaseException):
                    failed += 1
                    message = outcome.message if isinstance(outcome, WarmupError) else str(outcome)
                    errors.append(f"{target.slug}: {message}")
                    logger.error(f"[WarmupForecasts] Failed {target.slug}: {message}")
                else:
                    processed += 1

        logger.info(f"[WarmupForecasts] Completed: {processed} processed, {failed} failed")
        return result(True)

    except Exception as e:
        logger.error(f"[WarmupForecasts] Job failed: {e}", exc_info=True)
        return result(False, str(e))

    finally:
        cache.store.release_lock(WARMUP_BATCH_LOCK_KEY)


# ============================================================================
# Single execution
# ============================================================================

TargetLoader = Callable[[], Awaitable[WarmupTarget]]


def target_for(comparison: Comparison) -> WarmupTarget:
    terms = comparison.terms or []
    if len(terms) < 2:
        raise WarmupError("Invalid slug format", context={"slug": comparison.slug, "stage": "terms"})
    return WarmupTarget(
        slug=comparison.slug,
        term_a=terms[0],
        term_b=terms[1],
        timeframe=comparison.timeframe,
        geo=comparison.geo,
        category=comparison.category or "general",
        series=comparison.series or [],
    )


async def get_warmup_status(slug: str, tf: str, geo: str, data_hash: str,
                            cache: Optional[Cache] = None) -> Dict[str, Any]:
    cache = cache or get_cache()
    return {
        "slug": slug,
        "dataHash": data_hash,
        "status": await cache.get(warmup_status_key(slug, tf, geo, data_hash)),
        "error": await cache.get(warmup_error_key(slug, tf, geo, data_hash)),
        "startedAt": await cache.get(warmup_started_at_key(slug, tf, geo, data_hash)),
        "finishedAt": await cache.get(warmup_finished_at_key(slug, tf, geo, data_hash)),
    }


async def _run_warmup(cache: Cache, slug: str, tf: str, geo: str, data_hash: str,
                      load_target: TargetLoader) -> Dict[str, Any]:
    status_key = warmup_status_key(slug, tf, geo, data_hash)
    error_key = warmup_error_key(slug, tf, geo, data_hash)
    lock_key = warmup_lock_key(slug, tf, geo, data_hash)
    outcome = {"slug": slug, "dataHash": data_hash}

    if await cache.get(status_key) == WarmupStatus.RUNNING.value:
        logger.info(f"[ExecuteWarmup] {slug} already running, skipping")
        return {"ok": True, "status": WarmupStatus.RUNNING.value, **outcome}
    if not cache.store.acquire_lock(lock_key, EXECUTE_RUNNING_TTL):
        logger.info(f"[ExecuteWarmup] Lock held for {slug}, skipping")
        return {"ok": True, "status": WarmupStatus.RUNNING.value, **outcome}

    await _set_flag(cache, status_key, WarmupStatus.RUNNING.value, EXECUTE_RUNNING_TTL)
    await _set_flag(cache, warmup_started_at_key(slug, tf, geo, data_hash),
                    datetime.utcnow().isoformat(), EXECUTE_RUNNING_TTL)
    logger.info(f"[ExecuteWarmup] Starting warmup for {slug} (dataHash: {data_hash})")

    context = {"slug": slug, "timeframe": tf, "geo": geo, "data_hash": data_hash}
    try:
        target = await load_target()
        if not target.series:
            raise WarmupError("No comparison data available", context={**context, "stage": "comparison"})

        bundle_a, bundle_b, keys = await _cache_bundles(cache, target, data_hash)
        if bundle_a is None or bundle_b is None:
            raise WarmupError(
                f"Failed to generate forecasts (termA: {bundle_a is not None}, termB: {bundle_b is not None})",
                context={**context, "stage": "forecast"}
            )

        verified = [await cache.get(key) for key in keys.values()]
        if not all(verified):
            raise WarmupError("Forecast cache write verification failed", context={**context, "stage": "verify"})

        await _set_flag(cache, status_key, WarmupStatus.READY.value, READY_TTL)
        await _set_flag(cache, warmup_finished_at_key(slug, tf, geo, data_hash),
                        datetime.utcnow().isoformat(), READY_TTL)
        await cache.delete(error_key)

        logger.info(f"[ExecuteWarmup] Forecasts cached for {slug}")
        return {"ok": True, "status": WarmupStatus.READY.value, **outcome}

    except Exception as e:
        message = e.message if isinstance(e, WarmupError) else str(e)
        logger.error(f"[ExecuteWarmup] Failed for {slug}: {message}")
        await _set_flag(cache, status_key, WarmupStatus.FAILED.value, FAILED_TTL)
        await _set_flag(cache, error_key, message, FAILED_TTL)
        raise

    finally:
        cache.store.release_lock(lock_key)


async def execute_warmup(
    session: AsyncSession,
    slug: str,
    tf: str,
    geo: str,
    data_hash: str,
    cache: Optional[Cache] = None,
    client: Optional[TrendsClient] = None,
) -> Dict[str, Any]:
    """
    Compute and cache both forecast bundles for one comparison.

    Returns ``{ok, status, slug, dataHash}``. If the same key is already
    running the call returns at once with status ``running``.

    Raises:
        WarmupError: invalid slug, no data, forecast or verification failure
    """
    async def load_target() -> WarmupTarget:
        checked = [validate_term(raw) for raw in from_slug(slug)]
        terms = [c.term for c in checked if c.ok]
        if len(terms) != 2:
            raise WarmupError(
                "Invalid slug format",
                context={"slug": slug, "timeframe": tf, "geo": geo, "data_hash": data_hash, "stage": "terms"}
            )
        comparison = await get_or_build_comparison(session, slug, terms, tf, geo, client)
        target = target_for(comparison)
        target.timeframe, target.geo = tf, geo
        return target

    return await _run_warmup(cache or get_cache(), slug, tf, geo, data_hash, load_target)


async def warm_target(target: WarmupTarget, data_hash: str, cache: Optional[Cache] = None) -> Dict[str, Any]:
    """
    Warm a comparison the caller has already loaded.

    Runs as a background task after a response is sent, so failures are
    logged and left in the status keys rather than raised.
    """
    async def load_target() -> WarmupTarget:
        return target

    try:
        return await _run_warmup(cache or get_cache(), target.slug, target.timeframe, target.geo,
                                 data_hash, load_target)
    except Exception as e:
        logger.warning(f"[ExecuteWarmup] Background warmup for {target.slug} failed: {e}")
        return {"ok": False, "status": WarmupStatus.FAILED.value, "slug": target.slug, "dataHash": data_hash}


# ============================================================================
# Read side
# ============================================================================

async def get_cached_forecasts(target: WarmupTarget, data_hash: str,
                               cache: Optional[Cache] = None) -> Dict[str, Any]:
    """
    Forecast bundles the warmup jobs left in the cache for ``target``.

    ``status`` is ``ready`` when both bundles are present, otherwise the
    stored warmup status (``queued``, ``running``, ``failed``) or None when
    nothing has been scheduled yet. ``forecasts`` is only set when ready.
    """
    cache = cache or get_cache()
    slug, tf, geo = target.slug, target.timeframe, target.geo
    bundle_a = await cache.get(forecast_key(slug, target.term_a, tf, geo, data_hash))
    bundle_b = await cache.get(forecast_key(slug, target.term_b, tf, geo, data_hash))

    if bundle_a is not None and bundle_b is not None:
        return {
            "dataHash": data_hash,
            "status": WarmupStatus.READY.value,
            "forecasts": {"termA": bundle_a, "termB": bundle_b},
        }

    return {
        "dataHash": data_hash,
        "status": await cache.get(warmup_status_key(slug, tf, geo, data_hash)),
        "forecasts": None,
    }


async def queue_warmup(target: WarmupTarget, data_hash: str, cache: Optional[Cache] = None) -> None:
    """Mark ``target`` queued so concurrent readers do not schedule it twice."""
    cache = cache or get_cache()
    key = warmup_status_key(target.slug, target.timeframe, target.geo, data_hash)
    await _set_flag(cache, key, WarmupStatus.QUEUED.value, QUEUED_TTL)
    logger.info(f"[ExecuteWarmup] Queued warmup for {target.slug} (dataHash: {data_hash})")
