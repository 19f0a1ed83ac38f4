"""
Cache key layout for forecasts and warmup bookkeeping.

Every key embeds the data hash, so new series data or a new engine version
lands on fresh keys instead of overwriting old ones.
"""

import math
import re
from typing import Dict, List, Optional, Sequence

from cache.hashing import create_cache_key, stable_hash
from core.config import settings
from trends.mathutils import to_number
from trends.series import SeriesPoint, term_keys

WARMUP_BATCH_LOCK_KEY = "warmup:forecasts:lock"

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def forecast_key(slug: str, term: str, tf: str, geo: str, data_hash: str,
                 engine_version: Optional[str] = None) -> str:
    engine_version = engine_version or settings.PREDICTION_ENGINE_VERSION
    return create_cache_key("forecast", slug, term, tf, geo, data_hash, engine_version)


def forecast_pack_key(slug: str, tf: str, geo: str, horizon: int, data_hash: str) -> str:
    return create_cache_key("forecast-pack", slug, tf, geo, horizon, data_hash)


def ai_insights_key(slug: str, tf: str, geo: str, data_hash: str) -> str:
    return create_cache_key("ai-insights", slug, tf, geo, data_hash)


def warmup_status_key(slug: str, tf: str, geo: str, data_hash: str) -> str:
    return create_cache_key("warmup-status", slug, tf, geo, data_hash)


def warmup_error_key(slug: str, tf: str, geo: str, data_hash: str) -> str:
    return create_cache_key("warmup-error", slug, tf, geo, data_hash)


def warmup_started_at_key(slug: str, tf: str, geo: str, data_hash: str) -> str:
    return create_cache_key("warmup-started-at", slug, tf, geo, data_hash)


def warmup_finished_at_key(slug: str, tf: str, geo: str, data_hash: str) -> str:
    return create_cache_key("warmup-finished-at", slug, tf, geo, data_hash)


def warmup_debug_id_key(slug: str, tf: str, geo: str, data_hash: str) -> str:
    return create_cache_key("warmup-debug-id", slug, tf, geo, data_hash)


def warmup_lock_key(slug: str, tf: str, geo: str, data_hash: str) -> str:
    return create_cache_key("warmup-lock", slug, tf, geo, data_hash)


def _matches(key: str, term: str) -> bool:
    lower, wanted = key.lower(), term.lower()
    return (
        lower == wanted
        or _NON_ALNUM.sub("", lower) == _NON_ALNUM.sub("", wanted)
        or re.sub(r"\s+", "-", lower) == wanted
        or lower.replace("-", " ") == wanted
    )


def _clean_series(series: Sequence[SeriesPoint], term_a: str, term_b: str) -> List[Dict]:
    keys = term_keys(series)
    if not keys:
        return []

    key_a = next((k for k in keys if _matches(k, term_a)), keys[0])
    key_b = next(
        (k for k in keys if _matches(k, term_b) and k != key_a),
        keys[1] if len(keys) > 1 else keys[0],
    )

    cleaned = []
    for point in series:
        value_a = to_number(point.get(key_a))
        value_b = to_number(point.get(key_b))
        if math.isfinite(value_a) and math.isfinite(value_b):
            cleaned.append({"date": str(point.get("date")), "valueA": value_a, "valueB": value_b})
    return cleaned


def compute_data_hash(series: Sequence[SeriesPoint], timeframe: str, term_a: str, term_b: str) -> str:
    """
    Stable fingerprint of a comparison's data.

    Covers the cleaned series, the timeframe, both terms and the engine
    versions, so it changes whenever any forecast input changes.
    """
    return stable_hash({
        "series": _clean_series(series, term_a, term_b),
        "timeframe": timeframe,
        "termA": term_a,
        "termB": term_b,
        "versions": {
            "insight": settings.INSIGHT_VERSION,
            "prediction": settings.PREDICTION_ENGINE_VERSION,
            "prompt": settings.PROMPT_VERSION,
        },
    })
