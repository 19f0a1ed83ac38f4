"""
Stable hashing for cache keys and data fingerprints.
"""

import hashlib
import json
from typing import Any

HASH_LENGTH = 16


def stable_hash(obj: Any) -> str:
    """
    First 16 hex chars of the sha256 of ``obj`` as canonical JSON.

    Keys are sorted at every depth, so dicts that differ only in key order
    hash the same. Values are JSON-encoded even when they are strings, which
    keeps ``1`` and ``"1"`` apart.
    """
    payload = json.dumps(obj, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:HASH_LENGTH]


def create_cache_key(*parts: Any) -> str:
    """Join parts with ``:``; anything that is not a str or number is hashed."""
    rendered = []
    for part in parts:
        if isinstance(part, (str, int, float)) and not isinstance(part, bool):
            rendered.append(str(part))
        else:
            rendered.append(stable_hash(part))
    return ":".join(rendered)
