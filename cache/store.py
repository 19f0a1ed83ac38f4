"""
In-process cache store.

Entries carry a fresh deadline and a stale deadline. Between the two the value
is still served but flagged stale; after the stale deadline it is gone.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    value: Any
    fresh_until: float
    stale_until: float
    tags: List[str] = field(default_factory=list)

    def is_expired(self, now: float) -> bool:
        return now >= self.stale_until

    def is_stale(self, now: float) -> bool:
        return now >= self.fresh_until


@dataclass
class StoreHit:
    value: Any
    is_stale: bool


class MemoryStore:
    """Dict-backed store with tag index and set-if-absent locks."""

    provider = "memory"

    def __init__(self):
        self._entries: Dict[str, CacheEntry] = {}
        self._tags: Dict[str, Set[str]] = {}
        self._locks: Dict[str, float] = {}

    def get(self, key: str) -> Optional[StoreHit]:
        entry = self._entries.get(key)
        if entry is None:
            return None

        now = time.monotonic()
        if entry.is_expired(now):
            self._remove(key)
            return None

        return StoreHit(value=entry.value, is_stale=entry.is_stale(now))

    def set(self, key: str, value: Any, ttl: float,
            stale_ttl: Optional[float] = None, tags: Optional[List[str]] = None) -> None:
        """
        Store ``value`` fresh for ``ttl`` seconds.

        ``stale_ttl`` is the total lifetime; when it is missing or not longer
        than ``ttl`` the entry has no stale window.
        """
        now = time.monotonic()
        lifetime = max(ttl, stale_ttl or 0)

        if key in self._entries:
            self._remove(key)

        self._entries[key] = CacheEntry(
            value=value,
            fresh_until=now + ttl,
            stale_until=now + lifetime,
            tags=list(tags or []),
        )
        for tag in tags or []:
            self._tags.setdefault(tag, set()).add(key)

    def delete(self, key: str) -> bool:
        return self._remove(key)

    def delete_by_tag(self, tag: str) -> int:
        keys = self._tags.pop(tag, set())
        count = 0
        for key in list(keys):
            if self._remove(key):
                count += 1
        return count

    def acquire_lock(self, key: str, ttl: float) -> bool:
        now = time.monotonic()
        held_until = self._locks.get(key)
        if held_until is not None and held_until > now:
            return False
        self._locks[key] = now + ttl
        return True

    def release_lock(self, key: str) -> None:
        self._locks.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()
        self._tags.clear()
        self._locks.clear()

    def size(self) -> int:
        return len(self._entries)

    def _remove(self, key: str) -> bool:
        entry = self._entries.pop(key, None)
        if entry is None:
            return False
        for tag in entry.tags:
            keys = self._tags.get(tag)
            if keys is not None:
                keys.discard(key)
                if not keys:
                    del self._tags[tag]
        return True
