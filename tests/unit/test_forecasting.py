"""
Unit tests for the forecasting engines
"""

import math

import numpy as np
import pytest
from core.config import settings
from forecasting.bundle import generate_forecast_bundle
from forecasting.core import (
    BacktestResult,
    ForecastPoint,
    ForecastResult,
    QualityFlags,
    TimeSeriesPoint,
    assess_quality,
    calculate_confidence_score,
    forecast,
    future_dates,
    walk_forward_backtest,
)
from forecasting.gap import forecast_gap, gap_forecast_insights
from forecasting.head_to_head import compute_head_to_head
from forecasting.prediction import calculate_momentum, detect_seasonality, predict_trend
from forecasting.trend_index import forecast_trend_index, naive_method, rolling_origin_backtest


def _points(values, start_day=1):
    return [TimeSeriesPoint(date=f"2024-01-{i + start_day:02d}", value=float(v)) for i, v in enumerate(values)]


def _daily(values):
    return [TimeSeriesPoint(date=d, value=float(v)) for d, v in zip(future_dates("2023-12-31", len(values)), values)]


def _flat_forecast(value, horizon=14, confidence=80):
    return ForecastResult(
        points=[ForecastPoint(date=d, value=value, lower80=value, upper80=value, lower95=value, upper95=value)
                for d in future_dates("2024-03-01", horizon)],
        model="ets",
        metrics=BacktestResult(),
        confidence_score=confidence,
    )


class TestCoreForecast:

    def test_future_dates_cross_month(self):
        assert future_dates("2024-01-30", 3) == ["2024-01-31", "2024-02-01", "2024-02-02"]

    def test_short_series_is_naive(self):
        result = forecast(_points([10, 12, 11, 13, 12]), horizon=28)

        assert result.model == "naive"
        assert result.confidence_score == 0
        assert result.quality_flags.series_too_short is True
        assert len(result.points) == 28
        assert result.points[0].date == "2024-01-06"
        assert result.points[0].value == 12
        assert result.points[0].lower80 == pytest.approx(9.6)

    def test_forecast_full_series(self):
        values = [40 + i * 0.3 + 5 * math.sin(2 * math.pi * i / 7) for i in range(90)]
        series = _daily(values)
        result = forecast(series, horizon=28)

        assert result.model in ("ets", "arima")
        assert len(result.points) == 28
        assert result.points[0].date == future_dates(series[-1].date, 1)[0]
        assert 0 <= result.confidence_score <= 100
        assert result.metrics.sample_size > 0
        for point in result.points:
            assert point.lower95 <= point.lower80
            assert point.upper80 <= point.upper95

    def test_backtest_needs_enough_points(self):
        result = walk_forward_backtest(_points(range(10)), "ets")
        assert result.sample_size == 0
        assert math.isinf(result.mae)

    def test_confidence_score(self):
        perfect = BacktestResult(mae=0, mape=0, interval_coverage80=80, interval_coverage95=95, sample_size=20)
        assert calculate_confidence_score(BacktestResult(), QualityFlags()) == 0
        assert calculate_confidence_score(perfect, QualityFlags()) == 100
        assert calculate_confidence_score(perfect, QualityFlags(series_too_short=True)) == 50

    def test_quality_flags(self):
        assert assess_quality(_points([1] * 10)).series_too_short is True
        spiky = assess_quality(_points([0] * 18 + [100] * 2))
        assert spiky.too_spiky is True
        assert spiky.series_too_short is False


class TestHeadToHead:

    def test_clear_leader(self):
        result = compute_head_to_head(_flat_forecast(40), _flat_forecast(60), current_a=40, current_b=60,
                                      rng=np.random.default_rng(1))

        assert result.winner_probability == 100.0
        assert result.expected_margin_points == pytest.approx(20.0)
        assert result.crossover_probability == 0.0
        assert result.current_margin == 20
        assert result.lead_change_risk == "low"
        assert result.forecast_horizon == 14

    def test_thin_margin_is_high_risk(self):
        result = compute_head_to_head(_flat_forecast(50), _flat_forecast(52), current_a=50, current_b=52)
        assert result.lead_change_risk == "high"

    def test_empty_forecasts(self):
        empty = ForecastResult(points=[], model="naive", metrics=BacktestResult(), confidence_score=0)
        result = compute_head_to_head(empty, empty, 10, 20)
        assert result.winner_probability == 50.0
        assert result.lead_change_risk == "medium"
        assert result.forecast_horizon == 0


class TestTrendIndex:

    def test_short_series_naive(self):
        result = forecast_trend_index([10, 20, 30], horizon=5)
        assert result.model_used == "naive"
        assert result.forecast == [30.0] * 5
        assert result.lower == [20.0] * 5
        assert result.upper == [40.0] * 5

    def test_bounded_and_reproducible(self):
        values = [50 + 20 * math.sin(i / 3) for i in range(60)]
        first = forecast_trend_index(values, horizon=10, rng=np.random.default_rng(7))
        second = forecast_trend_index(values, horizon=10, rng=np.random.default_rng(7))

        assert first.model_used in ("holt_damped", "theta", "naive")
        assert first.forecast == second.forecast
        assert first.lower == second.lower
        assert all(0 <= v <= 100 for v in first.forecast + first.lower + first.upper)
        assert set(first.diagnostics["backtest_errors"]) == {"holt_damped", "theta", "naive"}

    def test_backtest_short_series(self):
        assert math.isinf(rolling_origin_backtest(np.array([1.0] * 10), naive_method))


class TestGapForecast:

    def test_length_mismatch(self):
        result = forecast_gap([50.0] * 30, [40.0] * 29)
        assert result.should_show is False
        assert result.reason == "Series length mismatch"
        assert result.gap_forecast.model_used == "naive"

    def test_insufficient_data(self):
        result = forecast_gap([50.0] * 10, [40.0] * 10, horizon=5)
        assert result.should_show is False
        assert result.reason.startswith("Insufficient data")
        assert result.current_gap == 10.0
        assert len(result.gap_forecast.forecast) == 5

    def test_steady_lead(self):
        series_a = [60 + 2 * math.sin(i) for i in range(48)]
        series_b = [40 + math.sin(i) for i in range(48)]
        result = forecast_gap(series_a, series_b, horizon=10, rng=np.random.default_rng(3))

        assert result.current_gap == pytest.approx(series_a[-1] - series_b[-1])
        assert result.should_show is True
        assert result.reason is None
        assert result.lead_change_risk < 50

        insights = gap_forecast_insights(result)
        assert insights.expected_margin_in_horizon == result.expected_gap
        assert insights.confidence_label in ("high", "medium", "low")


class TestPrediction:

    def test_predict_trend(self, sample_series):
        result = predict_trend(sample_series, "chatgpt", forecast_days=30)

        assert result is not None
        assert len(result.predictions) == 30
        assert len(result.lower) == len(result.upper) == 30
        assert result.trend in ("rising", "falling", "stable")
        assert 0 <= result.confidence <= 100
        assert set(result.methods) <= {"linear", "polynomial", "exponential", "holt-winters", "moving-average"}
        assert all(0 <= p["value"] <= 100 for p in result.predictions)
        assert result.explanation

    def test_single_method(self, sample_series):
        result = predict_trend(sample_series, "gemini", forecast_days=7, methods=("linear",))
        assert result.methods == ["linear"]
        assert len(result.predictions) == 7

    def test_missing_data(self, sample_series):
        assert predict_trend([], "chatgpt") is None
        assert predict_trend(sample_series, "unknown-term") is None

    def test_series_characteristics(self):
        weekly = np.array([50 + 10 * math.sin(2 * math.pi * i / 7) for i in range(60)])
        assert detect_seasonality(weekly)["period"] == 7
        assert detect_seasonality(weekly[:20]) is None
        assert calculate_momentum(np.array([10.0] * 7 + [20.0] * 7)) == pytest.approx(100.0)


class TestForecastBundle:

    def test_bundle(self, sample_series):
        bundle = generate_forecast_bundle(sample_series, "chatgpt", term_label="termA")

        assert bundle is not None
        assert bundle.term == "termA"
        assert bundle.prediction_engine_version == settings.PREDICTION_ENGINE_VERSION
        assert bundle.id == f"forecast-chatgpt-{bundle.forecast_hash}"
        assert len(bundle.forecast_14_day.key_points) == 5
        assert bundle.direction in ("rising", "falling", "stable")

    def test_bundle_hash_is_stable(self, sample_series):
        first = generate_forecast_bundle(sample_series, "gemini", term_label="termB")
        second = generate_forecast_bundle(sample_series, "gemini", term_label="termB")
        assert first.forecast_hash == second.forecast_hash

    def test_too_few_values(self, sample_series):
        assert generate_forecast_bundle(sample_series[:5], "chatgpt") is None
