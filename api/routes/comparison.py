"""
Comparison endpoints: page core data, ad-hoc compare, forecasts and AI insights
"""

import logging
import math
from dataclasses import asdict
from typing import Any, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from api.dependencies import (
    get_db,
    get_insight_completion,
    get_optional_user,
    get_session_factory,
    get_trends_client,
)
from api.middleware import get_request_id
from cache.cache import get_cache
from cache.keys import ai_insights_key, compute_data_hash, forecast_pack_key
from core.config import settings
from core.exceptions import (
    InsightUnavailableError,
    InsufficientDataError,
    InsufficientSeriesError,
    InvalidSlugError,
    InvalidTermError,
)
from forecasting.gap import forecast_gap, gap_forecast_insights
from insights.budget import budget
from insights.data import prepare_insight_data
from insights.generator import CompleteFn, generate_insights
from jobs.warmup import get_cached_forecasts, queue_warmup, target_for, warm_target
from models.base import WarmupStatus
from models.comparison import Comparison
from models.user import User
from schemas.api import CompareRequest, CompareResponse, ComparisonCoreResponse
from services.comparisons import (
    analyze_comparison,
    get_or_build_comparison,
    latest_snapshot,
    parse_comparison_slug,
    record_view,
    save_snapshot,
)
from services.forecast_pack import get_or_compute_forecast_pack, to_score_series
from services.history import record_history
from services.saved import is_saved
from services.trends_client import TrendsClient
from trends.score_series import resolve_term_key
from trends.series import share_stats, smooth_series
from trends.slug import from_slug, to_canonical_slug
from trends.terms import validate_term

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["Comparison"])

CORE_CACHE_CONTROL = "public, s-maxage=600, stale-while-revalidate=3600"
SMOOTHING_WINDOW = 4
GAP_HORIZON = 10


def json_safe(value: Any) -> Any:
    """Replace NaN/inf floats with None so the payload is valid JSON."""
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, dict):
        return {k: json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [json_safe(v) for v in value]
    return value


async def load_comparison(db: AsyncSession, slug: Optional[str], tf: str, geo: str,
                          client: TrendsClient) -> Comparison:
    """
    Comparison for a canonical slug, fetched from the provider on first use.

    400 for a bad slug, 404 when the provider has no series for the pair.
    """
    terms = parse_comparison_slug(slug)

    comparison = await get_or_build_comparison(db, slug, terms, tf, geo, client)
    if not comparison.series:
        raise InsufficientDataError(list(comparison.terms), tf, geo)
    return comparison


def comparison_data_hash(comparison: Comparison) -> str:
    if comparison.data_hash:
        return comparison.data_hash
    return compute_data_hash(comparison.series, comparison.timeframe, comparison.terms[0], comparison.terms[1])


@router.get("/comparison/core", response_model=ComparisonCoreResponse)
async def comparison_core(
    request: Request,
    response: Response,
    slug: Optional[str] = Query(None, description="Canonical comparison slug"),
    tf: str = Query("12m", description="Timeframe"),
    geo: str = Query("", description="Region code, empty for worldwide"),
    db: AsyncSession = Depends(get_db),
    client: TrendsClient = Depends(get_trends_client)
):
    """
    Smoothed series and per-term share for a comparison page.

    The view counter is bumped on every call; a failure to do so is logged
    and does not fail the request.
    """
    request_id = get_request_id(request)
    logger.info(f"[{request_id}] GET /api/comparison/core - slug={slug}, tf={tf}, geo={geo!r}")

    comparison = await load_comparison(db, slug, tf, geo, client)
    term_a, term_b = comparison.terms[0], comparison.terms[1]
    series = smooth_series(comparison.series, SMOOTHING_WINDOW)

    key_a = resolve_term_key(series, term_a) or term_a
    key_b = resolve_term_key(series, term_b) or term_b
    shares = share_stats(series, key_a, key_b)

    try:
        await record_view(db, comparison)
    except Exception as e:
        await db.rollback()
        logger.warning(f"[{request_id}] Failed to record view for {slug}: {e}")

    response.headers["Cache-Control"] = CORE_CACHE_CONTROL
    return ComparisonCoreResponse(
        slug=comparison.slug,
        term_a=term_a,
        term_b=term_b,
        timeframe=comparison.timeframe,
        geo=comparison.geo,
        category=comparison.category,
        view_count=comparison.view_count or 0,
        series=series,
        stats={term_a: shares["term_a"], term_b: shares["term_b"]},
        data_hash=comparison.data_hash,
    )


@router.post("/compare", response_model=CompareResponse)
async def compare(
    request: Request,
    body: CompareRequest,
    db: AsyncSession = Depends(get_db),
    user: Optional[User] = Depends(get_optional_user),
    client: TrendsClient = Depends(get_trends_client)
):
    """Validate two raw terms, build the comparison if needed and analyse it."""
    request_id = get_request_id(request)

    checks = [validate_term(raw) for raw in body.terms]
    for raw, check in zip(body.terms, checks):
        if not check.ok:
            raise InvalidTermError(
                f"Invalid term: {check.reason}",
                context={"field_name": "terms", "field_value": raw, "reason": check.reason}
            )

    slug = to_canonical_slug([c.term for c in checks])
    if slug is None:
        raise InvalidSlugError("Terms must be two distinct keywords", context={"terms": body.terms})

    logger.info(f"[{request_id}] POST /api/compare - {slug} ({body.timeframe}, geo={body.geo!r})")

    comparison = await get_or_build_comparison(
        db, slug, from_slug(slug), body.timeframe, body.geo, client, body.category
    )
    previous = await latest_snapshot(db, slug, body.timeframe, body.geo)
    analysis = analyze_comparison(comparison, previous)

    try:
        await save_snapshot(db, comparison, analysis, user.id if user else None)
    except Exception as e:
        await db.rollback()
        logger.warning(f"[{request_id}] Failed to save snapshot for {slug}: {e}")

    saved = False
    if user is not None:
        term_a, term_b = analysis["terms"]
        await record_history(db, user.id, slug, term_a, term_b, body.timeframe, body.geo)
        saved = await is_saved(db, user.id, slug)

    return CompareResponse(
        slug=analysis["slug"],
        terms=analysis["terms"],
        timeframe=analysis["timeframe"],
        geo=analysis["geo"],
        category=analysis["category"],
        scores={term: score.model_dump() for term, score in analysis["scores"].items()},
        verdict=analysis["verdict"].model_dump(),
        metrics=json_safe(analysis["metrics"].model_dump()),
        evidence=[card.model_dump() for card in analysis["evidence"]],
        faqs=[faq.model_dump() for faq in analysis["faqs"]],
        saved=saved,
    )


@router.get("/comparison/forecast")
async def comparison_forecast(
    request: Request,
    slug: Optional[str] = Query(None),
    tf: str = Query("12m"),
    geo: str = Query(""),
    horizon: int = Query(28, ge=7, le=90),
    db: AsyncSession = Depends(get_db),
    client: TrendsClient = Depends(get_trends_client),
    session_factory: async_sessionmaker = Depends(get_session_factory)
):
    """
    Per-term forecasts and head-to-head analytics.

    Served from the cache; concurrent misses share one computation and a
    stale pack is refreshed in the background with its own session.
    """
    request_id = get_request_id(request)
    comparison = await load_comparison(db, slug, tf, geo, client)
    comparison_id = comparison.id

    async def compute():
        async with session_factory() as session:
            fresh = await session.get(Comparison, comparison_id)
            pack = await get_or_compute_forecast_pack(session, fresh, horizon) if fresh else None
        if pack is None:
            raise InsufficientSeriesError(
                "Not enough data to forecast this comparison",
                context={"slug": slug, "timeframe": tf, "geo": geo}
            )
        return json_safe(pack.to_dict())

    key = forecast_pack_key(comparison.slug, tf, geo, horizon, comparison_data_hash(comparison))
    pack = await get_cache().get_or_set(key, compute)

    logger.info(f"[{request_id}] Forecast pack for {slug} (hash {pack['data_hash']})")
    return {
        "slug": comparison.slug,
        "terms": comparison.terms,
        **pack,
    }


@router.get("/comparison/forecast-bundles")
async def comparison_forecast_bundles(
    request: Request,
    background_tasks: BackgroundTasks,
    slug: Optional[str] = Query(None),
    tf: str = Query("12m"),
    geo: str = Query(""),
    db: AsyncSession = Depends(get_db),
    client: TrendsClient = Depends(get_trends_client)
):
    """
    Precomputed forecast bundles for both terms.

    Bundles come only from the warmup cache. When neither the bundles nor a
    warmup status exist the comparison is queued and warmed after the
    response is sent.
    """
    request_id = get_request_id(request)
    comparison = await load_comparison(db, slug, tf, geo, client)
    target = target_for(comparison)
    data_hash = comparison_data_hash(comparison)

    cached = await get_cached_forecasts(target, data_hash)
    triggered = cached["status"] != WarmupStatus.READY.value
    if cached["status"] is None:
        await queue_warmup(target, data_hash)
        background_tasks.add_task(warm_target, target, data_hash)
        cached["status"] = WarmupStatus.QUEUED.value

    logger.info(f"[{request_id}] Forecast bundles for {slug}: {cached['status']}")
    return json_safe({
        "slug": comparison.slug,
        "terms": comparison.terms,
        **cached,
        "needsWarmup": cached["forecasts"] is None,
        "warmupTriggered": triggered,
    })


@router.get("/comparison/gap-forecast")
async def comparison_gap_forecast(
    request: Request,
    slug: Optional[str] = Query(None),
    tf: str = Query("12m"),
    geo: str = Query(""),
    db: AsyncSession = Depends(get_db),
    client: TrendsClient = Depends(get_trends_client)
):
    """Forecast of the score gap between the two terms."""
    request_id = get_request_id(request)
    comparison = await load_comparison(db, slug, tf, geo, client)
    term_a, term_b = comparison.terms[0], comparison.terms[1]
    category = comparison.category or "general"

    points_a = {p.date: p.value for p in to_score_series(comparison.series, term_a, category)}
    points_b = {p.date: p.value for p in to_score_series(comparison.series, term_b, category)}
    dates = sorted(set(points_a) & set(points_b))

    result = forecast_gap([points_a[d] for d in dates], [points_b[d] for d in dates], GAP_HORIZON)
    insights = gap_forecast_insights(result)

    logger.info(f"[{request_id}] Gap forecast for {slug}: show={result.should_show}")
    return json_safe({
        "slug": comparison.slug,
        "terms": comparison.terms,
        "gap": asdict(result),
        "insights": asdict(insights),
    })


@router.get("/comparison/ai-insights")
async def comparison_ai_insights(
    request: Request,
    slug: Optional[str] = Query(None),
    tf: str = Query("12m"),
    geo: str = Query(""),
    db: AsyncSession = Depends(get_db),
    client: TrendsClient = Depends(get_trends_client),
    complete: Optional[CompleteFn] = Depends(get_insight_completion)
):
    """
    Model-written insights for a comparison, cached per data hash.

    503 when nothing is cached and no insight can be generated (no
    completion endpoint, budget spent, failed or unparsable reply).
    """
    request_id = get_request_id(request)
    comparison = await load_comparison(db, slug, tf, geo, client)
    term_a, term_b = comparison.terms[0], comparison.terms[1]
    data_hash = comparison_data_hash(comparison)
    series = comparison.series
    key = ai_insights_key(comparison.slug, tf, geo, data_hash)
    context = {"slug": comparison.slug, "timeframe": tf, "geo": geo}

    cache = get_cache()
    if complete is None:
        insights = await cache.get(key)
        if insights is None:
            raise InsightUnavailableError("AI insights are not configured", context=context)
    else:
        async def compute():
            data = prepare_insight_data(
                resolve_term_key(series, term_a) or term_a,
                resolve_term_key(series, term_b) or term_b,
                series,
            )
            result = await generate_insights(data, complete)
            if result is None:
                raise InsightUnavailableError("AI insights are unavailable right now", context=context)
            return result.model_dump(by_alias=True)

        insights = await cache.get_or_set(
            key, compute, ttl=settings.INSIGHT_CACHE_TTL, stale_ttl=settings.INSIGHT_CACHE_TTL * 7
        )

    logger.info(f"[{request_id}] AI insights for {slug} (dataHash: {data_hash})")
    return {
        "slug": comparison.slug,
        "terms": comparison.terms,
        "dataHash": data_hash,
        "insights": insights,
    }


@router.get("/ai-insights-status")
async def ai_insights_status():
    """Insight budget usage."""
    return budget.status()
