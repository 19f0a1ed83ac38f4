"""
Cache facade with request coalescing and stale-while-revalidate.

Concurrent ``get_or_set`` calls for the same key share one computation. A
stale hit is returned immediately while a background task recomputes it.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from cache.store import MemoryStore, StoreHit
from core.config import settings

logger = logging.getLogger(__name__)

ComputeFn = Callable[[], Awaitable[Any]]

LOCK_RETRY_DELAY = 0.1


class Cache:
    def __init__(self, store: Optional[MemoryStore] = None,
                 default_ttl: Optional[float] = None,
                 default_stale_ttl: Optional[float] = None):
        self.store = store or MemoryStore()
        self.default_ttl = default_ttl if default_ttl is not None else settings.CACHE_DEFAULT_TTL
        self.default_stale_ttl = (
            default_stale_ttl if default_stale_ttl is not None else settings.CACHE_DEFAULT_STALE_TTL
        )
        self._pending: Dict[str, asyncio.Future] = {}
        self._background: Set[asyncio.Task] = set()

    async def get(self, key: str) -> Any:
        """Value for ``key`` (fresh or stale), or None."""
        hit = self.store.get(key)
        return hit.value if hit else None

    async def peek(self, key: str) -> Optional[StoreHit]:
        return self.store.get(key)

    async def set(self, key: str, value: Any, ttl: Optional[float] = None,
                  stale_ttl: Optional[float] = None, tags: Optional[List[str]] = None) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        stale_ttl = self.default_stale_ttl if stale_ttl is None else stale_ttl
        self.store.set(key, value, ttl, stale_ttl, tags)

    async def delete(self, key: str) -> bool:
        return self.store.delete(key)

    async def delete_by_tag(self, tag: str) -> int:
        count = self.store.delete_by_tag(tag)
        logger.debug(f"Invalidated {count} cache entries tagged '{tag}'")
        return count

    async def clear(self) -> None:
        self.store.clear()

    async def get_or_set(
        self,
        key: str,
        compute_fn: ComputeFn,
        ttl: Optional[float] = None,
        stale_ttl: Optional[float] = None,
        lock_seconds: float = 30,
        tags: Optional[List[str]] = None,
        force_refresh: bool = False,
    ) -> Any:
        if not force_refresh:
            hit = self.store.get(key)
            if hit is not None:
                if hit.is_stale:
                    self._refresh_in_background(key, compute_fn, ttl, stale_ttl, lock_seconds, tags)
                return hit.value

        pending = self._pending.get(key)
        if pending is not None:
            return await asyncio.shield(pending)

        return await self._compute_and_set(key, compute_fn, ttl, stale_ttl, lock_seconds, tags)

    async def _compute_and_set(self, key: str, compute_fn: ComputeFn, ttl: Optional[float],
                               stale_ttl: Optional[float], lock_seconds: float,
                               tags: Optional[List[str]]) -> Any:
        future = asyncio.get_running_loop().create_future()
        self._pending[key] = future
        lock_key = f"lock:{key}"

        try:
            acquired = self.store.acquire_lock(lock_key, lock_seconds)
            if not acquired:
                # Another holder is computing; give it a moment and re-read
                await asyncio.sleep(LOCK_RETRY_DELAY)
                hit = self.store.get(key)
                if hit is not None:
                    future.set_result(hit.value)
                    return hit.value
                logger.debug(f"Lock {lock_key} still held, computing anyway")

            try:
                value = await compute_fn()
                await self.set(key, value, ttl, stale_ttl, tags)
            finally:
                if acquired:
                    self.store.release_lock(lock_key)

            future.set_result(value)
            return value

        except Exception as e:
            future.set_exception(e)
            # Mark retrieved; the caller re-raises it below
            future.exception()
            raise

        finally:
            self._pending.pop(key, None)

    def _refresh_in_background(self, key: str, compute_fn: ComputeFn, ttl: Optional[float],
                               stale_ttl: Optional[float], lock_seconds: float,
                               tags: Optional[List[str]]) -> None:
        if key in self._pending:
            return

        async def refresh():
            try:
                await self._compute_and_set(key, compute_fn, ttl, stale_ttl, lock_seconds, tags)
            except Exception as e:
                logger.warning(f"Background refresh failed for {key}: {e}")

        task = asyncio.create_task(refresh())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def wait_for_background(self) -> None:
        """Wait for in-flight background refreshes."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    def get_stats(self) -> Dict[str, Any]:
        return {
            "provider": self.store.provider,
            "memory_size": self.store.size(),
            "pending": len(self._pending),
        }


_cache: Optional[Cache] = None


def get_cache() -> Cache:
    """Process-wide cache instance."""
    global _cache
    if _cache is None:
        _cache = Cache()
    return _cache


def reset_cache() -> None:
    global _cache
    _cache = None
