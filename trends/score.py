"""
TrendArc Score.

Blends search interest, social buzz, authority and momentum into one
0-100 number, weighted per comparison category. Search interest is always
the heaviest component so the score agrees with the trend chart.
"""

import math
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from trends.mathutils import clamp, round_half_up

CATEGORIES = ("movies", "products", "tech", "people", "games", "brands", "places", "general")

CATEGORY_WEIGHTS: Dict[str, Dict[str, float]] = {
    "movies": {"search_interest": 0.45, "social_buzz": 0.15, "authority": 0.3, "momentum": 0.1},
    "products": {"search_interest": 0.45, "social_buzz": 0.25, "authority": 0.2, "momentum": 0.1},
    "tech": {"search_interest": 0.4, "social_buzz": 0.2, "authority": 0.25, "momentum": 0.15},
    "people": {"search_interest": 0.45, "social_buzz": 0.35, "authority": 0.1, "momentum": 0.1},
    "games": {"search_interest": 0.4, "social_buzz": 0.3, "authority": 0.2, "momentum": 0.1},
    "brands": {"search_interest": 0.4, "social_buzz": 0.25, "authority": 0.25, "momentum": 0.1},
    "places": {"search_interest": 0.45, "social_buzz": 0.2, "authority": 0.25, "momentum": 0.1},
    "general": {"search_interest": 0.45, "social_buzz": 0.25, "authority": 0.2, "momentum": 0.1},
}

NEUTRAL = 50.0


# ============================================================================
# Source metrics
# ============================================================================

class GoogleTrendsMetrics(BaseModel):
    avg_interest: float = Field(..., description="0-100")
    momentum: float = Field(0, description="-100..100, negative means declining")
    volatility: float = 0
    lead_percentage: float = 0


class YouTubeMetrics(BaseModel):
    total_views: float = 0
    avg_views: float = 0
    video_count: int = 0
    engagement: float = Field(0, description="likes / views")


class RedditMetrics(BaseModel):
    post_count: int = 0
    total_score: float = 0
    avg_score: float = 0
    sentiment: float = Field(0, description="-1..1")


class WikipediaMetrics(BaseModel):
    page_views: float = 0
    article_quality: float = Field(0, description="0-100")


class TMDBMetrics(BaseModel):
    rating: float = Field(0, description="0-10")
    vote_count: int = 0
    popularity: float = 0


class OMDbMetrics(BaseModel):
    imdb_rating: float = 0
    rotten_tomatoes: float = 0
    metascore: float = 0


class GitHubMetrics(BaseModel):
    stars: int = 0
    forks: int = 0
    contributors: int = 0


class SourceMetrics(BaseModel):
    google_trends: Optional[GoogleTrendsMetrics] = None
    youtube: Optional[YouTubeMetrics] = None
    reddit: Optional[RedditMetrics] = None
    wikipedia: Optional[WikipediaMetrics] = None
    tmdb: Optional[TMDBMetrics] = None
    omdb: Optional[OMDbMetrics] = None
    github: Optional[GitHubMetrics] = None


# ============================================================================
# Results
# ============================================================================

class ScoreBreakdown(BaseModel):
    search_interest: int
    social_buzz: int
    authority: int
    momentum: int


class TrendArcScore(BaseModel):
    overall: int
    confidence: int
    breakdown: ScoreBreakdown
    sources: List[str] = Field(default_factory=list)
    explanation: str


class ComparisonVerdict(BaseModel):
    winner: str
    loser: str
    winner_score: TrendArcScore
    loser_score: TrendArcScore
    margin: int
    confidence: int
    headline: str
    recommendation: str
    evidence: List[str]


def _mean(values: List[float]) -> float:
    return sum(values) / len(values)


def calculate_trendarc_score(metrics: SourceMetrics, category: str = "general") -> TrendArcScore:
    weights = CATEGORY_WEIGHTS.get(category, CATEGORY_WEIGHTS["general"])
    sources: List[str] = []

    search_interest = social_buzz = authority = momentum = NEUTRAL

    gt = metrics.google_trends
    if gt:
        search_interest = gt.avg_interest
        sources.append("Google Trends")

    social_scores = []
    if metrics.youtube:
        yt = metrics.youtube
        social_scores.append(min(100.0, (yt.avg_views / 100000) * 50 + yt.engagement * 100))
        sources.append("YouTube")
    if metrics.reddit:
        rd = metrics.reddit
        social_scores.append(min(100.0, rd.avg_score * 2 + (rd.sentiment + 1) * 25))
        sources.append("Reddit")
    if social_scores:
        social_buzz = _mean(social_scores)

    authority_scores = []
    if metrics.wikipedia:
        wp = metrics.wikipedia
        authority_scores.append(min(100.0, (wp.page_views / 10000) * 30 + wp.article_quality * 0.7))
        sources.append("Wikipedia")
    if metrics.tmdb:
        authority_scores.append(metrics.tmdb.rating * 10)
        sources.append("TMDB")
    if metrics.omdb:
        om = metrics.omdb
        authority_scores.append(((om.imdb_rating or 0) * 10 + (om.rotten_tomatoes or 0) + (om.metascore or 0)) / 3)
        sources.append("OMDb")
    if metrics.github:
        gh = metrics.github
        authority_scores.append(min(100.0, math.log10(gh.stars + 1) * 15 + math.log10(gh.forks + 1) * 10))
        sources.append("GitHub")
    if authority_scores:
        authority = _mean(authority_scores)

    if gt:
        # -100..100 onto 0..100
        momentum = 50 + gt.momentum / 2

    overall = round_half_up(
        search_interest * weights["search_interest"]
        + social_buzz * weights["social_buzz"]
        + authority * weights["authority"]
        + momentum * weights["momentum"]
    )

    confidence = min(95, 40 + len(sources) * 15)

    parts = []
    if search_interest >= 60:
        parts.append("high search interest")
    elif search_interest <= 40:
        parts.append("lower search volume")
    if social_buzz >= 60:
        parts.append("strong social engagement")
    if authority >= 70:
        parts.append("well-rated")
    if momentum >= 60:
        parts.append("trending upward")
    elif momentum <= 40:
        parts.append("declining interest")

    explanation = f"Shows {', '.join(parts)}" if parts else "Moderate performance across metrics"

    return TrendArcScore(
        overall=int(clamp(overall)),
        confidence=confidence,
        breakdown=ScoreBreakdown(
            search_interest=round_half_up(search_interest),
            social_buzz=round_half_up(social_buzz),
            authority=round_half_up(authority),
            momentum=round_half_up(momentum),
        ),
        sources=sources,
        explanation=explanation,
    )


def _recommendation(category: str, winner: str, loser: str, winner_score: TrendArcScore,
                    loser_score: TrendArcScore, margin: int) -> str:
    if category == "movies":
        if margin >= 10:
            return (
                f"Based on ratings and audience interest, you should watch {winner}. "
                f"It scores {winner_score.overall}/100 compared to {loser_score.overall}/100 for {loser}."
            )
        return f"Both are great choices! {winner} edges out slightly with better ratings and buzz."
    if category == "products":
        return (
            f"{winner} is the more popular choice with stronger search interest and user engagement. "
            f"Consider {winner} as your primary option."
        )
    if category == "tech":
        return (
            f"{winner} shows more developer adoption and community activity. "
            "It may be the safer bet for your project."
        )
    if category == "games":
        return f"{winner} has more player interest and engagement. If you can only pick one, go with {winner}."
    return (
        f"Based on our analysis across {len(winner_score.sources)} data sources, "
        f"{winner} is currently more popular than {loser}."
    )


def generate_verdict(
    term_a: str,
    term_b: str,
    score_a: TrendArcScore,
    score_b: TrendArcScore,
    category: str = "general",
) -> ComparisonVerdict:
    """Pick a winner (term A on ties) and describe the outcome."""
    a_wins = score_a.overall >= score_b.overall
    winner, loser = (term_a, term_b) if a_wins else (term_b, term_a)
    winner_score, loser_score = (score_a, score_b) if a_wins else (score_b, score_a)

    margin = abs(score_a.overall - score_b.overall)
    confidence = round_half_up((score_a.confidence + score_b.confidence) / 2)

    if margin >= 20:
        headline = f"{winner} clearly leads over {loser}"
    elif margin >= 10:
        headline = f"{winner} has the edge over {loser}"
    elif margin >= 5:
        headline = f"{winner} slightly ahead of {loser}"
    else:
        headline = f"{winner} and {loser} are virtually tied"

    wb, lb = winner_score.breakdown, loser_score.breakdown
    evidence = []
    if wb.search_interest > lb.search_interest:
        evidence.append(f"Higher search interest ({wb.search_interest} vs {lb.search_interest})")
    if wb.social_buzz > lb.social_buzz:
        evidence.append("Stronger social engagement")
    if wb.authority > lb.authority:
        evidence.append("Better ratings and reviews")
    if wb.momentum > lb.momentum:
        evidence.append("Trending more positively")

    all_sources = list(dict.fromkeys(winner_score.sources + loser_score.sources))
    evidence.append(f"Data from {', '.join(all_sources)}")

    return ComparisonVerdict(
        winner=winner,
        loser=loser,
        winner_score=winner_score,
        loser_score=loser_score,
        margin=margin,
        confidence=confidence,
        headline=headline,
        recommendation=_recommendation(category, winner, loser, winner_score, loser_score, margin),
        evidence=evidence,
    )


def quick_score(avg_interest: float, lead_percentage: float, momentum: float = 0) -> int:
    """Cheap score from basic series statistics."""
    return round_half_up(avg_interest * 0.5 + lead_percentage * 0.3 + (50 + momentum / 2) * 0.2)
