"""
Comparison domain logic.

Pure functions over comparison terms and series; nothing in this package
touches the database or the network.

Modules:
    slug: Canonical "-vs-" slugs and canonical URLs
    keywords: Keyword safety validation
    terms: Deep term validation with rejection reasons
    series: Smoothing, statistics and per-term shares over a series
    score: TrendArc Score and comparison verdicts
    score_series: TrendArc Score over time
    metrics: Volatility, agreement, stability and change metrics
    confidence: Continuous confidence score and label
    faqs: Comparison FAQs derived from metrics
    evidence: Evidence cards and their validation

Usage:
    from trends.slug import from_slug, to_canonical_slug
    from trends.terms import validate_term
    from trends.score import calculate_trendarc_score, generate_verdict
"""

__all__ = [
    "slug",
    "keywords",
    "terms",
    "series",
    "score",
    "score_series",
    "metrics",
    "confidence",
    "faqs",
    "evidence",
]
