"""
Canonical comparison slugs and canonical URLs.

A slug is the URL-safe identifier of a comparison, e.g. ``chatgpt-vs-gemini``.
Terms are slugified, de-duplicated and sorted, so the same pair always maps
to the same slug whatever order the user typed them in.
"""

import re
import unicodedata
from typing import List, Optional, Sequence, Union

from core.config import settings

SLUG_SEPARATOR = "-vs-"
MAX_TERM_LENGTH = 40
MAX_TERMS = 3

_DISALLOWED = re.compile(r"[^a-z0-9 -]")
_SPACES = re.compile(r"\s+")
_HYPHENS = re.compile(r"-{2,}")


def _strip_accents(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def slugify_term(term: str) -> str:
    """
    Turn a single term into its slug form.

    ``"São Paulo"`` -> ``"sao-paulo"``, ``"Node.js"`` -> ``"nodejs"``,
    ``"C++"`` -> ``"c"``.

    Raises:
        TypeError: if term is None
    """
    if term is None:
        raise TypeError("term must be a string, got None")

    text = _strip_accents(str(term).strip()).lower()
    text = _DISALLOWED.sub("", text)
    text = _SPACES.sub("-", text.strip())
    text = _HYPHENS.sub("-", text).strip("-")
    return text[:MAX_TERM_LENGTH].strip("-")


normalize_term_for_slug = slugify_term


def to_canonical_slug(terms: Sequence[str]) -> Optional[str]:
    """Build the canonical slug, or None when fewer than two distinct terms remain."""
    unique = sorted({s for s in (slugify_term(t) for t in terms) if s})
    unique = unique[:MAX_TERMS]
    if len(unique) < 2:
        return None
    return SLUG_SEPARATOR.join(unique)


def from_slug(slug: Union[str, List[str], None]) -> List[str]:
    """Split a slug back into its terms. Lists (repeated query params) use the first element."""
    if isinstance(slug, (list, tuple)):
        slug = slug[0] if slug else None
    if not slug:
        return []
    return [part for part in slug.split(SLUG_SEPARATOR) if part]


def build_canonical_compare_slug(term_a: str, term_b: str) -> Optional[str]:
    a = slugify_term(term_a)
    b = slugify_term(term_b)
    if not a or not b:
        raise ValueError(f"Cannot build slug from empty term: {term_a!r}, {term_b!r}")
    return to_canonical_slug([a, b])


# ============================================================================
# Canonical URLs
# ============================================================================

def canonical_url(path: str = "") -> str:
    base = settings.SITE_URL.rstrip("/")
    clean = (path or "").strip().strip("/").lower()
    return f"{base}/{clean}" if clean else base


def compare_url(slug: str) -> str:
    return canonical_url(f"compare/{slug}")


def blog_url(slug: str) -> str:
    return canonical_url(f"blog/{slug}")


def page_url(path: str) -> str:
    return canonical_url(path)
