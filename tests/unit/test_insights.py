"""
Unit tests for insight data, prompt building and generation
"""

import json
from unittest.mock import AsyncMock

import pytest
from insights.budget import InsightBudget
from insights.data import prepare_insight_data
from insights.generator import build_insight_prompt, generate_insights, parse_insight_response

REPLY = {
    "whatDataTellsUs": ["chatgpt averaged 66 this week", "gemini peaked on 2024-01-02"],
    "whyThisMatters": "Interest is concentrating on one product.",
    "keyDifferences": "chatgpt leads by a wide margin.",
    "volatilityAnalysis": "Both terms are steady.",
    "practicalImplications": {"forContentCreators": "Publish early in the week."},
    "prediction": "chatgpt keeps the lead.",
}


def _flat_series(days, a, b):
    return [{"date": f"2024-01-{i + 1:02d}", "a": a, "b": b} for i in range(days)]


class TestPrepareInsightData:

    def test_leader_and_advantage(self):
        data = prepare_insight_data("a", "b", _flat_series(14, 60, 40))

        assert data.current_leader == "a"
        assert data.advantage == 50
        assert data.current_week_avg_a == 60
        assert data.current_week_avg_b == 40

    def test_zero_smaller_average_gives_no_advantage(self):
        data = prepare_insight_data("a", "b", _flat_series(14, 30, 0))
        assert data.advantage == 0

    def test_peaks(self):
        series = _flat_series(10, 10, 10)
        series[3]["a"] = 90
        data = prepare_insight_data("a", "b", series)

        assert data.peak_a_value == 90
        assert data.peak_a_date == "2024-01-04"

    def test_recent_spike(self):
        series = _flat_series(7, 10, 10) + [
            {"date": f"2024-01-{i + 8:02d}", "a": 30, "b": 10} for i in range(7)
        ]
        data = prepare_insight_data("a", "b", series)

        assert data.recent_spike is not None
        assert data.recent_spike.term == "a"
        assert data.recent_spike.magnitude == 200
        assert data.recent_spike.date == "2024-01-14"

    def test_no_spike_on_short_series(self):
        data = prepare_insight_data("a", "b", _flat_series(10, 10, 10))
        assert data.recent_spike is None

    def test_crossovers(self):
        series = [
            {"date": "2024-01-01", "a": 10, "b": 5},
            {"date": "2024-01-02", "a": 5, "b": 10},
            {"date": "2024-01-03", "a": 10, "b": 5},
        ]
        assert prepare_insight_data("a", "b", series).crossover_count == 2

    @pytest.mark.parametrize("first,second,direction", [
        (10, 20, "rising"),
        (20, 10, "falling"),
        (20, 21, "stable"),
        (0, 30, "stable"),
    ])
    def test_trend_direction(self, first, second, direction):
        series = _flat_series(4, first, 5) + [
            {"date": f"2024-01-{i + 5:02d}", "a": second, "b": 5} for i in range(4)
        ]
        assert prepare_insight_data("a", "b", series).trend_direction == direction

    def test_steady_series_has_zero_volatility(self):
        data = prepare_insight_data("a", "b", _flat_series(14, 50, 50))
        assert data.volatility_a == 0
        assert data.volatility_b == 0


class TestPrompt:

    def test_prompt_mentions_the_data(self, sample_series):
        data = prepare_insight_data("chatgpt", "gemini", sample_series)
        prompt = build_insight_prompt(data)

        assert "COMPARISON: chatgpt vs gemini" in prompt
        assert f"Leadership changes: {data.crossover_count} times" in prompt
        assert '"whatDataTellsUs"' in prompt

    def test_prompt_without_spike(self):
        data = prepare_insight_data("a", "b", _flat_series(14, 60, 40))
        assert "No major spikes detected in past week" in build_insight_prompt(data)

    def test_prompt_prettifies_hyphenated_terms(self):
        series = [{"date": "2024-01-01", "iphone-16": 50, "pixel-9": 40}]
        prompt = build_insight_prompt(prepare_insight_data("iphone-16", "pixel-9", series))
        assert "iphone 16 vs pixel 9" in prompt


class TestParseResponse:

    def test_plain_json(self):
        assert parse_insight_response(json.dumps(REPLY)) == REPLY

    def test_fenced_json(self):
        text = "Here you go:\n```json\n" + json.dumps(REPLY) + "\n```"
        assert parse_insight_response(text) == REPLY

    @pytest.mark.parametrize("text", [None, "", "no json here", "{not json}", "[1, 2]"])
    def test_unparsable(self, text):
        assert parse_insight_response(text) is None


class TestBudget:

    def test_daily_limit(self):
        budget = InsightBudget(daily_limit=2, monthly_limit=10)
        budget.record()
        budget.record()

        assert budget.can_generate() is False
        budget.reset_daily()
        assert budget.can_generate() is True

    def test_monthly_limit(self):
        budget = InsightBudget(daily_limit=10, monthly_limit=1)
        budget.record()
        budget.reset_daily()

        assert budget.can_generate() is False

    def test_status(self):
        budget = InsightBudget(daily_limit=5, monthly_limit=100)
        budget.record()
        status = budget.status()

        assert status["daily_remaining"] == 4
        assert status["monthly_remaining"] == 99
        assert status["estimated_cost"] == "$0.00"


class TestGenerateInsights:

    @pytest.mark.asyncio
    async def test_generates_and_records_usage(self, sample_series):
        complete = AsyncMock(return_value=json.dumps(REPLY))
        budget = InsightBudget()
        data = prepare_insight_data("chatgpt", "gemini", sample_series)

        result = await generate_insights(data, complete, budget)

        assert result.why_this_matters == REPLY["whyThisMatters"]
        assert result.practical_implications.for_content_creators == "Publish early in the week."
        assert budget.daily_used == 1
        complete.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_skips_when_over_budget(self, sample_series):
        complete = AsyncMock(return_value=json.dumps(REPLY))
        budget = InsightBudget(daily_limit=0)
        data = prepare_insight_data("chatgpt", "gemini", sample_series)

        assert await generate_insights(data, complete, budget) is None
        complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_completion_error_returns_none(self, sample_series):
        complete = AsyncMock(side_effect=RuntimeError("upstream down"))
        budget = InsightBudget()
        data = prepare_insight_data("chatgpt", "gemini", sample_series)

        assert await generate_insights(data, complete, budget) is None
        assert budget.daily_used == 0

    @pytest.mark.asyncio
    async def test_bad_reply_returns_none(self, sample_series):
        complete = AsyncMock(return_value="I cannot help with that")
        data = prepare_insight_data("chatgpt", "gemini", sample_series)

        assert await generate_insights(data, complete, InsightBudget()) is None
