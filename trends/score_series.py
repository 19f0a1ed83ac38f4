"""
TrendArc Score over time.

Converts a raw search-interest column into a per-day score series using
category weights and a day-over-day momentum component. Historical social
and authority signals are not available per day, so they stay neutral.
"""

import logging
import re
from typing import Dict, List, Optional, Sequence

from trends.mathutils import clamp, round_half_up, to_number
from trends.score import CATEGORY_WEIGHTS
from trends.series import SeriesPoint, term_keys

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def _normalize_for_match(text: str) -> str:
    return _NON_ALNUM.sub("", text.lower())


def resolve_term_key(series: Sequence[SeriesPoint], term: str) -> Optional[str]:
    """Find the series column for ``term``, tolerating case, spaces and hyphens."""
    keys = term_keys(series)
    if term in keys:
        return term

    wanted = term.lower()
    wanted_normalized = _normalize_for_match(term)
    for key in keys:
        lower = key.lower()
        if (
            lower == wanted
            or _normalize_for_match(key) == wanted_normalized
            or re.sub(r"\s+", "-", lower) == wanted
            or lower.replace("-", " ") == wanted
            or re.sub(r"\s+", "", lower) == re.sub(r"\s+", "", wanted)
        ):
            return key
    return None


def calculate_score_over_time(
    series: Sequence[SeriesPoint],
    term: str,
    category: str = "general",
) -> List[Dict]:
    """
    Returns ``[{"date", "score", "components": {...}}]``, empty when the term
    is not a column of the series.
    """
    if not series:
        return []

    key = resolve_term_key(series, term)
    if key is None:
        logger.error(f"Term {term!r} not found in series. Available keys: {', '.join(term_keys(series))}")
        return []
    if key != term:
        logger.debug(f"Matched {term!r} to series key {key!r}")

    weights = CATEGORY_WEIGHTS.get(category, CATEGORY_WEIGHTS["general"])
    social_buzz = authority = 50.0

    scores = []
    previous = None
    for point in series:
        search_interest = to_number(point.get(key))
        # +-1 point of interest is +-2 points of momentum
        momentum = 50.0 if previous is None else clamp(50 + (search_interest - previous) * 2)
        previous = search_interest

        score = round_half_up(
            search_interest * weights["search_interest"]
            + social_buzz * weights["social_buzz"]
            + authority * weights["authority"]
            + momentum * weights["momentum"]
        )
        scores.append({
            "date": point.get("date"),
            "score": int(clamp(score)),
            "components": {
                "search_interest": round_half_up(search_interest),
                "social_buzz": round_half_up(social_buzz),
                "authority": round_half_up(authority),
                "momentum": round_half_up(momentum),
            },
        })
    return scores


def score_series_to_points(scores: List[Dict]) -> List[Dict]:
    """Flatten to ``[{"date", "value"}]`` for the forecasters."""
    return [{"date": s["date"], "value": float(s["score"])} for s in scores]
