"""
Unit tests for TrendArc scores, comparison metrics, FAQs and evidence
"""

from types import SimpleNamespace

import pytest
from trends.confidence import calculate_comparison_confidence, calculate_confidence_score, get_confidence_label
from trends.evidence import EvidenceCard, build_evidence_cards, is_valid_evidence
from trends.faqs import ComparisonFAQData, build_comparison_faqs, pretty_term
from trends.metrics import (
    Driver,
    calculate_agreement_index,
    calculate_change_metrics,
    calculate_volatility,
    classify_stability,
    compute_comparison_metrics,
    estimate_leader_change_risk,
    extract_top_drivers,
    generate_risk_flags,
)
from trends.score import (
    CATEGORY_WEIGHTS,
    GoogleTrendsMetrics,
    SourceMetrics,
    calculate_trendarc_score,
    generate_verdict,
    quick_score,
)
from trends.score_series import calculate_score_over_time, resolve_term_key, score_series_to_points

BREAKDOWN_A = {"search_interest": 80, "social_buzz": 50, "authority": 50, "momentum": 60}
BREAKDOWN_B = {"search_interest": 40, "social_buzz": 60, "authority": 50, "momentum": 40}


class TestTrendArcScore:

    def test_search_interest_only(self):
        metrics = SourceMetrics(google_trends=GoogleTrendsMetrics(avg_interest=80, momentum=20))
        score = calculate_trendarc_score(metrics, "general")

        assert score.overall == 65
        assert score.confidence == 55
        assert score.sources == ["Google Trends"]
        assert score.breakdown.momentum == 60
        assert score.explanation == "Shows high search interest, trending upward"

    def test_no_sources_is_neutral(self):
        score = calculate_trendarc_score(SourceMetrics(), "general")
        assert score.overall == 50
        assert score.confidence == 40
        assert score.explanation == "Moderate performance across metrics"

    def test_unknown_category_uses_general_weights(self):
        metrics = SourceMetrics(google_trends=GoogleTrendsMetrics(avg_interest=70))
        assert (
            calculate_trendarc_score(metrics, "unknown").overall
            == calculate_trendarc_score(metrics, "general").overall
        )

    def test_search_interest_is_heaviest_weight(self):
        for weights in CATEGORY_WEIGHTS.values():
            assert weights["search_interest"] == max(weights.values())
            assert sum(weights.values()) == pytest.approx(1.0)

    def test_verdict_tie_goes_to_term_a(self):
        score = calculate_trendarc_score(SourceMetrics(), "general")
        verdict = generate_verdict("chatgpt", "gemini", score, score)
        assert verdict.winner == "chatgpt"
        assert verdict.margin == 0
        assert verdict.headline == "chatgpt and gemini are virtually tied"

    def test_verdict_clear_leader(self):
        high = calculate_trendarc_score(SourceMetrics(google_trends=GoogleTrendsMetrics(avg_interest=95, momentum=50)))
        low = calculate_trendarc_score(SourceMetrics(google_trends=GoogleTrendsMetrics(avg_interest=20, momentum=-50)))
        verdict = generate_verdict("chatgpt", "gemini", low, high, "tech")

        assert verdict.winner == "gemini"
        assert verdict.loser == "chatgpt"
        assert verdict.margin >= 20
        assert verdict.headline == "gemini clearly leads over chatgpt"
        assert verdict.evidence[-1] == "Data from Google Trends"
        assert "developer adoption" in verdict.recommendation

    def test_quick_score(self):
        assert quick_score(60, 50, 0) == 55


class TestScoreOverTime:

    def test_momentum_component(self):
        series = [{"date": "2024-01-01", "chat-gpt": 50}, {"date": "2024-01-02", "chat-gpt": 60}]
        scores = calculate_score_over_time(series, "Chat GPT")

        assert [s["score"] for s in scores] == [50, 57]
        assert scores[1]["components"]["momentum"] == 70
        assert score_series_to_points(scores)[1] == {"date": "2024-01-02", "value": 57.0}

    def test_unknown_term(self):
        assert calculate_score_over_time([{"date": "d", "a": 1}], "zzz") == []
        assert resolve_term_key([{"date": "d", "Node JS": 1}], "node-js") == "Node JS"


class TestConfidence:

    def test_defaults_are_medium(self):
        assert calculate_confidence_score() == 50
        assert get_confidence_label(50) == "medium"

    def test_clamped(self):
        assert calculate_confidence_score(agreement_index=100, data_points=100, source_count=3, margin=30) == 100
        result = calculate_comparison_confidence(0, 400, 0, 1)
        assert result.score == 0
        assert result.label == "low"


class TestComparisonMetrics:

    def test_agreement_index(self):
        assert calculate_agreement_index(BREAKDOWN_A, BREAKDOWN_B) == pytest.approx(75.0)
        assert calculate_agreement_index(None, BREAKDOWN_B) == 50.0

    def test_agreement_index_weighted(self):
        weights = CATEGORY_WEIGHTS["general"]
        assert calculate_agreement_index(BREAKDOWN_A, BREAKDOWN_B, weights) == pytest.approx(75.0)

    def test_top_drivers(self):
        drivers = extract_top_drivers(BREAKDOWN_A, BREAKDOWN_B)
        assert [d.name for d in drivers] == ["Search Interest", "Momentum"]
        assert drivers[0].impact == 40

    def test_volatility(self):
        assert calculate_volatility([{"a": 10}, {"a": 10}], "a") == 0.0
        assert calculate_volatility([{"a": 0}, {"a": 20}], "a") == pytest.approx(100.0)
        assert calculate_volatility(None, "a") == 0.0

    def test_stability(self):
        flat = [{"a": 50} for _ in range(20)]
        spike = [{"a": 10} for _ in range(19)] + [{"a": 100}]
        assert classify_stability(flat[:5], "a", 0) == "volatile"
        assert classify_stability(flat, "a", 0) == "stable"
        assert classify_stability(flat, "a", 45) == "volatile"
        assert classify_stability(spike, "a", 0) == "hype"

    def test_risk_helpers(self):
        assert estimate_leader_change_risk(10, 3) == pytest.approx(57.0)
        assert estimate_leader_change_risk(0, 20) == 0.0
        assert generate_risk_flags(60, 50, "hype", True) == [
            "High volatility detected",
            "Source disagreement",
            "Potential hype pattern",
            "Recent spike detected",
        ]
        assert generate_risk_flags(10, 90, "stable", False) == []

    def test_change_metrics(self):
        current = {"margin_points": 10, "confidence": 70, "volatility": 20, "agreement_index": 80}
        previous = {"margin_points": 4, "confidence": 60, "volatility": 25, "agreement_index": 80}
        changes = calculate_change_metrics(current, previous)
        assert changes.gap_change_points == 6
        assert changes.confidence_change == 10
        assert changes.volatility_delta == -5
        assert changes.agreement_change == 0

    def test_uses_previous_snapshot(self, sample_series):
        snapshot = SimpleNamespace(margin=5, volatility=10.0, agreement_index=80.0)
        metrics = compute_comparison_metrics(
            sample_series, "chatgpt", "gemini", "chatgpt", 12, BREAKDOWN_A, BREAKDOWN_B, snapshot
        )
        assert metrics.gap_change_points == 7
        assert metrics.agreement_change == pytest.approx(75.0 - 80.0)
        assert metrics.disagreement_flag is False
        assert len(metrics.top_drivers) == 2

    def test_falls_back_to_first_half(self, sample_series):
        metrics = compute_comparison_metrics(
            sample_series, "chatgpt", "gemini", "chatgpt", 12, BREAKDOWN_A, BREAKDOWN_B
        )
        assert 0 <= metrics.confidence <= 100
        assert metrics.margin_points == 12


class TestFAQsAndEvidence:

    def test_pretty_term(self):
        assert pretty_term("iphone-16") == "Iphone 16"

    def test_faqs_are_deterministic_and_capped(self, sample_series):
        data = ComparisonFAQData(
            term_a="chatgpt",
            term_b="gemini",
            winner="chatgpt",
            loser="gemini",
            top_drivers=[Driver(name="Search Interest", impact=30), Driver(name="Momentum", impact=10)],
            agreement_index=90,
            stability="stable",
            volatility=12.345,
            gap_change_points=3.2,
            series=sample_series,
        )
        faqs = build_comparison_faqs(data)

        assert faqs == build_comparison_faqs(data)
        assert len(faqs) == 4
        assert [f.id for f in faqs] == ["why-winner-leads", "has-loser-overtaken", "stable-or-hype", "gap-change"]
        assert "Momentum also contributes significantly" in faqs[0].answer
        assert "(12.3%)" in faqs[2].answer
        assert faqs[3].answer.startswith("The gap widened by 3.2 points")

    def test_no_flips_answer(self):
        series = [{"date": "d1", "a": 60, "b": 10}, {"date": "d2", "a": 70, "b": 20}]
        faqs = build_comparison_faqs(ComparisonFAQData(term_a="a", term_b="b", winner="a", loser="b", series=series))
        assert faqs[0].id == "has-loser-overtaken"
        assert faqs[0].answer.startswith("No.")

    def test_evidence_cards(self):
        cards = build_evidence_cards("chatgpt", "gemini", BREAKDOWN_A, BREAKDOWN_B)
        by_source = {c.source: c for c in cards}

        assert by_source["Search Interest"].direction == "termA"
        assert by_source["Search Interest"].interpretation == "chatgpt leads by 40 points"
        assert by_source["Social Buzz"].direction == "termB"
        assert by_source["Authority"].direction == "tie"

    def test_invalid_evidence(self):
        def card(a, b, text):
            return EvidenceCard(source="x", term_a_value=a, term_b_value=b, direction="tie", magnitude=0,
                                interpretation=text)

        assert is_valid_evidence(card(0, 0, "level")) is False
        assert is_valid_evidence(card(1, 2, "N/A")) is False
        assert is_valid_evidence(card(1, 2, "No data yet")) is False
        assert is_valid_evidence(card(float("nan"), 2, "text")) is False
        assert is_valid_evidence(card(1, 2, "gemini leads")) is True
