"""
Unit tests for slugs, keyword/term validation and series helpers
"""

import pytest
from core.config import settings
from trends.keywords import is_safe_for_slug, is_valid_keyword, sanitize_keyword, validate_keywords
from trends.mathutils import coefficient_of_variation, round_half_up, to_number
from trends.series import compute_stats, non_zero_ratio, share_stats, smooth_series
from trends.slug import (
    build_canonical_compare_slug,
    compare_url,
    from_slug,
    slugify_term,
    to_canonical_slug,
)
from trends.terms import looks_gibberish, validate_term


class TestSlugs:
    """Canonical slug handling"""

    def test_slugify_term(self):
        assert slugify_term("São Paulo") == "sao-paulo"
        assert slugify_term("Node.js") == "nodejs"
        assert slugify_term("C++") == "c"
        assert slugify_term("  iPhone   16  ") == "iphone-16"

    def test_slugify_none_raises(self):
        with pytest.raises(TypeError):
            slugify_term(None)

    def test_canonical_slug_is_order_independent(self):
        assert to_canonical_slug(["Gemini", "ChatGPT"]) == "chatgpt-vs-gemini"
        assert to_canonical_slug(["ChatGPT", "Gemini"]) == "chatgpt-vs-gemini"

    def test_canonical_slug_needs_two_distinct_terms(self):
        assert to_canonical_slug(["Apple", "apple"]) is None
        assert to_canonical_slug(["apple", "!!!"]) is None

    def test_from_slug(self):
        assert from_slug("chatgpt-vs-gemini") == ["chatgpt", "gemini"]
        assert from_slug(["iphone-vs-pixel", "ignored"]) == ["iphone", "pixel"]
        assert from_slug(None) == []
        assert from_slug("") == []

    def test_build_compare_slug_rejects_empty_term(self):
        with pytest.raises(ValueError):
            build_canonical_compare_slug("", "gemini")
        assert build_canonical_compare_slug("Pixel 9", "iPhone 16") == "iphone-16-vs-pixel-9"

    def test_compare_url(self):
        assert compare_url("chatgpt-vs-gemini") == f"{settings.SITE_URL.rstrip('/')}/compare/chatgpt-vs-gemini"


class TestKeywords:
    """Keyword filter"""

    def test_whitelisted_special_characters(self):
        assert is_valid_keyword("C++") is True
        assert is_valid_keyword("Disney+") is True
        assert is_valid_keyword("node.js") is True

    def test_blocked_input(self):
        assert is_valid_keyword("<script>alert(1)</script>") is False
        assert is_valid_keyword("javascript:void(0)") is False
        assert is_valid_keyword("aaaaaaa") is False
        assert is_valid_keyword("a") is False
        assert is_valid_keyword("") is False

    def test_regular_terms(self):
        assert is_valid_keyword("iphone 15 pro") is True
        assert is_valid_keyword("tesla model 3") is True

    def test_sanitize_and_validate(self):
        assert sanitize_keyword("  hello   world ") == "hello world"
        assert validate_keywords([" chatgpt ", "<b>", "gemini"]) == ["chatgpt", "gemini"]

    def test_unsafe_for_slug(self):
        assert is_safe_for_slug("constructor") is False
        assert is_safe_for_slug("chatgpt") is True


class TestTermValidation:
    """Deep term validation"""

    @pytest.mark.parametrize("raw,reason", [
        ("", "empty"),
        (None, "empty"),
        ("   ", "empty"),
        ("https://example.com", "url"),
        ("example.com", "url"),
        ("john@example.com", "email"),
        ("taylor swift lyrics", "stop-phrase"),
        ("pizza near me", "stop-phrase"),
        ("bitcoin shit", "profanity"),
        ("one two three four five six seven", "too-many-words"),
        ("xkcdqwrtz", "gibberish"),
        ("ab", "too-few-letters"),
    ])
    def test_rejections(self, raw, reason):
        result = validate_term(raw)
        assert result.ok is False
        assert result.reason == reason

    def test_stop_phrases_match_whole_words(self):
        # "songs" and "modern" contain stop phrases but are not them
        assert validate_term("songs of praise").ok is True
        assert validate_term("modern art").ok is True

    def test_normalises_accents_and_spacing(self):
        result = validate_term("  Café   Latte ")
        assert result.ok is True
        assert result.term == "Cafe Latte"

    def test_mixed_scripts(self):
        result = validate_term("apple яблоко")
        assert result.reason == "mixed-scripts"

    def test_short_tokens_without_vowels_allowed(self):
        assert looks_gibberish("ps5") is False
        assert looks_gibberish("tv") is False
        assert looks_gibberish("rhythm") is False
        assert looks_gibberish("aaaab") is True


class TestSeries:
    """Series helpers"""

    def test_smooth_series_trailing_mean(self):
        series = [{"date": f"2024-01-0{i + 1}", "a": v} for i, v in enumerate([1, 2, 3, 4, 5])]
        smoothed = smooth_series(series, window=4)
        assert [row["a"] for row in smoothed] == [1, 1.5, 2, 2.5, 3.5]
        assert smoothed[0]["date"] == "2024-01-01"

    def test_smooth_series_passthrough(self):
        assert smooth_series(None) is None
        assert smooth_series([], 4) == []
        series = [{"date": "2024-01-01", "a": 1}]
        assert smooth_series(series, window=1) is series

    def test_share_stats(self):
        series = [{"date": "d1", "a": 10, "b": 30}, {"date": "d2", "a": 30, "b": 30}]
        stats = share_stats(series, "a", "b")
        assert stats["term_a"]["total"] == 40
        assert stats["term_b"]["total"] == 60
        assert stats["term_a"]["share"] == pytest.approx(40.0)
        assert stats["term_b"]["average"] == pytest.approx(30.0)

    def test_share_stats_all_zero(self):
        series = [{"date": "d1", "a": 0, "b": 0}]
        stats = share_stats(series, "a", "b")
        assert stats["term_a"]["share"] == 50.0
        assert stats["term_b"]["share"] == 50.0

    def test_non_zero_ratio_and_stats(self, sample_series):
        assert non_zero_ratio(sample_series) == 1.0
        assert non_zero_ratio([]) == 0.0
        stats = compute_stats(sample_series, ["chatgpt", "gemini"])
        assert set(stats["global_avg"]) == {"chatgpt", "gemini"}
        assert stats["peaks"][0]["term"] == "chatgpt"


class TestMathUtils:

    def test_round_half_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(-2.5) == -2
        assert round_half_up(0.125, 2) == 0.13
        assert isinstance(round_half_up(4.4), int)

    def test_to_number(self):
        assert to_number("3.5") == 3.5
        assert to_number("abc") == 0.0
        assert to_number(None) == 0.0
        assert to_number(True) == 0.0
        assert to_number(float("nan")) == 0.0

    def test_coefficient_of_variation(self):
        assert coefficient_of_variation([]) == 0.0
        assert coefficient_of_variation([5, 5, 5]) == 0.0
        assert coefficient_of_variation([0, 20]) == pytest.approx(1.0)
