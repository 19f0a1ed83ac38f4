"""
Caching layer for computed comparison data.

Modules:
    hashing: stable_hash and create_cache_key
    store: in-process MemoryStore with fresh/stale deadlines, tags and locks
    cache: Cache facade with request coalescing and stale-while-revalidate
    keys: forecast and warmup key layout, compute_data_hash

Usage:
    from cache.cache import get_cache
    from cache.keys import forecast_key, compute_data_hash

Example:
    cache = get_cache()
    bundle = await cache.get_or_set(
        forecast_key(slug, term, "12m", "", data_hash),
        lambda: build_bundle(),
        ttl=86400,
        stale_ttl=7 * 86400,
    )
"""

__all__ = [
    "Cache",
    "MemoryStore",
    "get_cache",
    "stable_hash",
    "create_cache_key",
    "compute_data_hash",
]
