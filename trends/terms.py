"""
Deep validation of comparison terms before they reach the trends provider.

Unlike the keyword validator, which only guards against hostile input, this
rejects terms that would produce useless comparisons: URLs, e-mail
addresses, piracy/adult stop phrases, profanity and keyboard mashing.
"""

import re
import unicodedata
from typing import NamedTuple, Optional
from urllib.parse import urlparse

_ZERO_WIDTH = re.compile(r"[\u200B-\u200F\uFEFF]")
_NOT_ALLOWED = re.compile(r"[^A-Za-z0-9 \-]")
_MULTI_SPACES = re.compile(r"\s{2,}")
_EMAIL = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")
_BARE_DOMAIN = re.compile(r"^(www\.)?[a-z0-9-]+(\.[a-z0-9-]+)*\.(com|net|org|io|co|dev|app|ai)(/\S*)?$", re.I)

STOP_PHRASES = (
    # spam & location
    "near me", "location", "map",
    # low quality / piracy
    "lyrics", "mp3", "song", "torrent", "movie", "download", "free download",
    "watch online", "stream", "episode",
    # explicit / adult
    "porn", "xxx", "sex", "adult", "nude", "nsfw",
    # scam / hacking
    "hack", "crack", "generator", "cheat", "mod", "proxy", "vpn", "keygen", "serial", "code",
    # gambling / drugs
    "bet", "casino", "gambling", "drug", "weed", "marijuana",
)

# Whole-word match only
PROFANITY = frozenset({
    "fuck", "fucking", "shit", "bitch", "bastard", "asshole", "dick", "cunt",
    "piss", "slut", "whore", "motherfucker", "wanker", "twat", "bollocks",
})

MAX_WORDS = 6
MIN_LETTERS = 3


class TermCheck(NamedTuple):
    ok: bool
    term: Optional[str] = None
    reason: Optional[str] = None


def _strip_accents(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_term(raw: str) -> str:
    text = unicodedata.normalize("NFKC", raw)
    text = _ZERO_WIDTH.sub("", text)
    text = _strip_accents(text)
    text = _NOT_ALLOWED.sub(" ", text)
    return _MULTI_SPACES.sub(" ", text).strip()


def _is_url(raw: str) -> bool:
    candidate = raw.strip()
    parsed = urlparse(candidate)
    if parsed.scheme in ("http", "https", "ftp") and parsed.netloc:
        return True
    return bool(_BARE_DOMAIN.match(candidate))


_STOP_PHRASE_RE = re.compile(
    r"\b(" + "|".join(re.escape(p) for p in STOP_PHRASES) + r")\b", re.I
)


def _has_stop_phrase(text: str) -> bool:
    return bool(_STOP_PHRASE_RE.search(text))


def _has_profanity(text: str) -> bool:
    return any(token in PROFANITY for token in re.split(r"[-\s]+", text.lower()) if token)


def looks_gibberish(word: str) -> bool:
    w = word.lower()
    has_vowel = bool(re.search(r"[aeiouy]", w))
    digits = sum(ch.isdigit() for ch in w)
    digit_ratio = digits / max(len(w), 1)
    repeats = bool(re.search(r"(.)\1\1\1", w))
    too_long = len(w) > 32
    consonant_streak = bool(re.search(r"[bcdfghjklmnpqrstvwxz]{6,}", w))
    # Short tokens like "ps5" or "tv" are allowed without vowels
    no_vowel = not has_vowel and len(w) > 3 and digits == 0
    return no_vowel or digit_ratio > 0.5 or repeats or too_long or consonant_streak


def _mixed_scripts(raw: str) -> bool:
    groups = [
        re.search(r"[A-Za-z]", raw),
        re.search(r"[\u0400-\u04FF]", raw),
        re.search(r"[\u0370-\u03FF]", raw),
        re.search(r"[\u0600-\u06FF]", raw),
        re.search(r"[\u0900-\u097F]", raw),
    ]
    return sum(1 for g in groups if g) >= 2


def validate_term(raw: Optional[str]) -> TermCheck:
    """
    Validate and normalise a single comparison term.

    Reasons are checked in a fixed order and the first failing one is
    returned: empty, too-short, url, email, stop-phrase, profanity,
    too-many-words, gibberish, too-few-letters, mixed-scripts.
    """
    if not raw or not raw.strip():
        return TermCheck(False, reason="empty")

    term = normalize_term(raw)
    if len(term) < 2:
        return TermCheck(False, reason="too-short")

    if _is_url(raw):
        return TermCheck(False, reason="url")
    if _EMAIL.search(raw):
        return TermCheck(False, reason="email")

    if _has_stop_phrase(term):
        return TermCheck(False, reason="stop-phrase")
    if _has_profanity(term):
        return TermCheck(False, reason="profanity")

    tokens = [t for t in re.split(r"[-\s]", term) if t]
    if len(tokens) > MAX_WORDS:
        return TermCheck(False, reason="too-many-words")
    if any(looks_gibberish(t) for t in tokens):
        return TermCheck(False, reason="gibberish")

    if len(re.findall(r"[A-Za-z]", term)) < MIN_LETTERS:
        return TermCheck(False, reason="too-few-letters")

    if _mixed_scripts(raw):
        return TermCheck(False, reason="mixed-scripts")

    return TermCheck(True, term=term)
