"""
Keyword validation.

Filters out malicious, random or junk keywords while letting legitimate
terms with special characters (``C++``, ``Node.js``, ``Disney+``) through.
"""

import logging
import re
from typing import Iterable, List

logger = logging.getLogger(__name__)

MIN_LENGTH = 2
MAX_LENGTH = 100

# Accepted outright when matched, after the blocklist
LEGITIMATE_PATTERNS = {
    "programming": re.compile(r"^(c\+\+|c#|f#|\.net|node\.js|next\.js|vue\.js|react\.js|angular\.js)$", re.I),
    "versions": re.compile(r"^[a-z0-9]+(?: +[0-9]+(?:\.[0-9]+)*)?$", re.I),
    "brands": re.compile(r"^[a-z][a-z0-9]*(?:[ -][a-z0-9]+)*$", re.I),
}

BLOCKED_PATTERNS = [
    re.compile(r"[<>{}\[\]]"),
    re.compile(r"javascript:", re.I),
    re.compile(r"on\w+=", re.I),
    re.compile(r"<script", re.I),
    re.compile(r"eval\(", re.I),
    re.compile(r"[^\x00-\x7F]{10,}"),
    re.compile(r"(.)\1{5,}"),
    re.compile(r"^[^a-z0-9]+$", re.I),
    re.compile(r"\.\."),
    re.compile(r"[!@#$%^&*()]{3,}"),
]

WHITELIST_KEYWORDS = frozenset({
    # Tech
    "c++", "c#", "f#", ".net",
    "node.js", "next.js", "vue.js", "react.js", "angular.js", "svelte.js",
    # AI
    "chatgpt", "gpt-4", "gpt-3", "claude", "gemini", "copilot", "perplexity",
    # Phones
    "iphone", "iphone 14", "iphone 15", "iphone 16",
    "galaxy s24", "galaxy s23", "pixel 9", "pixel 8",
    # Gaming
    "ps5", "ps4", "xbox series x", "xbox series s", "nintendo switch",
    # Streaming
    "disney+", "disney plus", "amazon prime", "prime video",
    # Social
    "x.com", "meta",
})

_UNSAFE_FOR_SLUG = [
    re.compile(r"__proto__", re.I),
    re.compile(r"constructor", re.I),
    re.compile(r"prototype", re.I),
]

_SPECIAL_CHARS = re.compile(r"[^a-z0-9\s-]", re.I)
_OPEN_BRACKETS = re.compile(r"[({\[]")
_CLOSE_BRACKETS = re.compile(r"[)}\]]")
_ALPHANUMERIC = re.compile(r"[a-z0-9]", re.I)


def is_valid_keyword(keyword: str) -> bool:
    """Validate a keyword for legitimacy and safety."""
    if not keyword or not isinstance(keyword, str):
        return False

    trimmed = keyword.strip()
    if len(trimmed) < MIN_LENGTH or len(trimmed) > MAX_LENGTH:
        return False

    if trimmed.lower() in WHITELIST_KEYWORDS:
        return True

    for pattern in BLOCKED_PATTERNS:
        if pattern.search(trimmed):
            logger.warning(f"Blocked keyword: {trimmed!r} (matched {pattern.pattern})")
            return False

    for pattern in LEGITIMATE_PATTERNS.values():
        if pattern.search(trimmed):
            return True

    if len(trimmed.split()) > 6:
        return False

    if len(_SPECIAL_CHARS.findall(trimmed)) > 3:
        return False

    if len(_OPEN_BRACKETS.findall(trimmed)) != len(_CLOSE_BRACKETS.findall(trimmed)):
        return False

    if len(_ALPHANUMERIC.findall(trimmed)) < len(trimmed) * 0.5:
        return False

    return True


def sanitize_keyword(keyword: str) -> str:
    """Trim and collapse whitespace. Special characters are kept."""
    if not keyword:
        return ""
    return " ".join(keyword.split())[:MAX_LENGTH]


def validate_keywords(keywords: Iterable[str]) -> List[str]:
    """Sanitize keywords and keep only the valid ones."""
    sanitized = (sanitize_keyword(k) for k in keywords)
    return [k for k in sanitized if is_valid_keyword(k)]


def is_safe_for_slug(keyword: str) -> bool:
    if not is_valid_keyword(keyword):
        return False
    return not any(pattern.search(keyword) for pattern in _UNSAFE_FOR_SLUG)
