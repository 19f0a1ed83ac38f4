"""
Comparison service: load or build stored comparisons and analyse them.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from cache.keys import compute_data_hash
from core.exceptions import InsufficientDataError, InvalidSlugError, InvalidTermError
from models.comparison import Comparison, ComparisonSnapshot
from services.trends_client import TrendsClient, get_trends_client
from trends.evidence import EvidenceCard, build_evidence_cards
from trends.faqs import ComparisonFAQ, ComparisonFAQData, build_comparison_faqs
from trends.mathutils import clamp, round_half_up
from trends.metrics import ComparisonMetrics, compute_comparison_metrics
from trends.score import (
    ComparisonVerdict,
    GoogleTrendsMetrics,
    SourceMetrics,
    TrendArcScore,
    calculate_trendarc_score,
    generate_verdict,
)
from trends.series import SeriesPoint, compute_stats, term_values
from trends.slug import from_slug, to_canonical_slug
from trends.terms import validate_term

logger = logging.getLogger(__name__)


def parse_comparison_slug(slug: Optional[str]) -> List[str]:
    """
    Terms of a canonical two-term slug.

    Raises:
        InvalidSlugError: missing slug or a slug that is not canonical
        InvalidTermError: a term fails term validation (gibberish, stop phrase, ...)
            or the slug does not hold exactly two terms
    """
    if not slug:
        raise InvalidSlugError("Missing slug", context={"field_name": "slug"})

    terms = from_slug(slug)
    checks = [validate_term(t.replace("-", " ")) for t in terms]
    rejected = {t: c.reason for t, c in zip(terms, checks) if not c.ok}
    if rejected or len(terms) != 2:
        raise InvalidTermError(
            "Invalid terms",
            context={"field_name": "slug", "field_value": slug, "terms": terms, "rejected": rejected}
        )
    canonical = to_canonical_slug(terms)
    if canonical != slug:
        raise InvalidSlugError(
            "Slug is not canonical",
            context={"field_name": "slug", "field_value": slug, "canonical": canonical}
        )
    return terms


async def get_comparison(
    session: AsyncSession, slug: str, timeframe: str = "12m", geo: str = ""
) -> Optional[Comparison]:
    stmt = select(Comparison).where(
        Comparison.slug == slug,
        Comparison.timeframe == timeframe,
        Comparison.geo == geo,
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_or_build_comparison(
    session: AsyncSession,
    slug: str,
    terms: Sequence[str],
    timeframe: str = "12m",
    geo: str = "",
    client: Optional[TrendsClient] = None,
    category: Optional[str] = None,
) -> Comparison:
    """
    Stored comparison for (slug, timeframe, geo), fetched and saved on a miss.

    Raises:
        InsufficientDataError: the provider has no series for the terms
        ProviderError: provider failures, see TrendsClient
    """
    existing = await get_comparison(session, slug, timeframe, geo)
    if existing is not None:
        return existing

    client = client or get_trends_client()
    series = await client.fetch_series(terms, timeframe, geo)
    if not series:
        raise InsufficientDataError(list(terms), timeframe, geo)

    comparison = Comparison(
        slug=slug,
        timeframe=timeframe,
        geo=geo,
        terms=list(terms),
        series=series,
        stats=compute_stats(series, terms),
        category=category or "general",
        data_hash=compute_data_hash(series, timeframe, terms[0], terms[1]),
    )
    session.add(comparison)

    try:
        await session.commit()
    except IntegrityError:
        # Built concurrently by another request
        await session.rollback()
        logger.info(f"Comparison {slug} ({timeframe}, geo={geo!r}) already stored, reloading")
        existing = await get_comparison(session, slug, timeframe, geo)
        if existing is None:
            raise
        return existing

    await session.refresh(comparison)
    logger.info(f"Built comparison {slug} ({timeframe}, geo={geo!r}) with {len(series)} points")
    return comparison


async def record_view(session: AsyncSession, comparison: Comparison) -> None:
    comparison.view_count = (comparison.view_count or 0) + 1
    comparison.last_visited = datetime.utcnow()
    await session.commit()


# ============================================================================
# Scoring
# ============================================================================

def series_stats(series: Sequence[SeriesPoint], term: str, other: str) -> GoogleTrendsMetrics:
    """Search-interest metrics for one term against the other."""
    values = term_values(series, term)
    if not values:
        return GoogleTrendsMetrics(avg_interest=50, momentum=0, lead_percentage=50, volatility=0)

    others = term_values(series, other)
    avg = sum(values) / len(values)

    half = len(values) // 2
    first, second = values[:half], values[half:]
    first_avg = sum(first) / (len(first) or 1)
    second_avg = sum(second) / (len(second) or 1)
    momentum = (second_avg - first_avg) / (first_avg or 1) * 100

    leads = sum(1 for v, o in zip(values, others) if v >= o)
    variance = sum((v - avg) ** 2 for v in values) / len(values)

    return GoogleTrendsMetrics(
        avg_interest=round_half_up(avg),
        momentum=round_half_up(clamp(momentum, -100, 100)),
        lead_percentage=round_half_up(leads / len(values) * 100),
        volatility=round_half_up(variance ** 0.5),
    )


def score_comparison(comparison: Comparison) -> Tuple[TrendArcScore, TrendArcScore]:
    """TrendArc scores for both terms from the stored search-interest series."""
    term_a, term_b = comparison.terms[0], comparison.terms[1]
    category = comparison.category or "general"
    series = comparison.series or []

    score_a = calculate_trendarc_score(
        SourceMetrics(google_trends=series_stats(series, term_a, term_b)), category
    )
    score_b = calculate_trendarc_score(
        SourceMetrics(google_trends=series_stats(series, term_b, term_a)), category
    )
    return score_a, score_b


async def latest_snapshot(session: AsyncSession, slug: str, timeframe: str, geo: str) -> Optional[ComparisonSnapshot]:
    stmt = (
        select(ComparisonSnapshot)
        .where(
            ComparisonSnapshot.slug == slug,
            ComparisonSnapshot.timeframe == timeframe,
            ComparisonSnapshot.geo == geo,
        )
        .order_by(ComparisonSnapshot.computed_at.desc(), ComparisonSnapshot.id.desc())
        .limit(1)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


def analyze_comparison(comparison: Comparison, previous_snapshot=None) -> Dict[str, Any]:
    """Scores, verdict, metrics, evidence and FAQs for a stored comparison."""
    term_a, term_b = comparison.terms[0], comparison.terms[1]
    series = comparison.series or []
    category = comparison.category or "general"

    score_a, score_b = score_comparison(comparison)
    verdict: ComparisonVerdict = generate_verdict(term_a, term_b, score_a, score_b, category)

    breakdown_a = score_a.breakdown.model_dump()
    breakdown_b = score_b.breakdown.model_dump()

    metrics: ComparisonMetrics = compute_comparison_metrics(
        series, term_a, term_b, verdict.winner, verdict.margin,
        breakdown_a, breakdown_b, previous_snapshot,
    )
    evidence: List[EvidenceCard] = build_evidence_cards(term_a, term_b, breakdown_a, breakdown_b)
    faqs: List[ComparisonFAQ] = build_comparison_faqs(ComparisonFAQData(
        term_a=term_a,
        term_b=term_b,
        winner=verdict.winner,
        loser=verdict.loser,
        top_drivers=metrics.top_drivers,
        agreement_index=metrics.agreement_index,
        disagreement_flag=metrics.disagreement_flag,
        stability=metrics.stability,
        volatility=metrics.volatility,
        gap_change_points=metrics.gap_change_points,
        series=series,
    ))

    return {
        "slug": comparison.slug,
        "terms": [term_a, term_b],
        "timeframe": comparison.timeframe,
        "geo": comparison.geo,
        "category": category,
        "scores": {term_a: score_a, term_b: score_b},
        "verdict": verdict,
        "metrics": metrics,
        "evidence": evidence,
        "faqs": faqs,
    }


async def save_snapshot(
    session: AsyncSession,
    comparison: Comparison,
    analysis: Dict[str, Any],
    user_id: Optional[int] = None,
) -> ComparisonSnapshot:
    term_a, term_b = analysis["terms"]
    verdict: ComparisonVerdict = analysis["verdict"]
    metrics: ComparisonMetrics = analysis["metrics"]

    snapshot = ComparisonSnapshot(
        user_id=user_id,
        slug=comparison.slug,
        term_a=term_a,
        term_b=term_b,
        timeframe=comparison.timeframe,
        geo=comparison.geo,
        score_a=analysis["scores"][term_a].overall,
        score_b=analysis["scores"][term_b].overall,
        winner=verdict.winner,
        margin=verdict.margin,
        confidence=metrics.confidence,
        volatility=metrics.volatility,
        agreement_index=metrics.agreement_index,
    )
    session.add(snapshot)
    await session.commit()
    return snapshot
