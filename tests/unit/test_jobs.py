import pytest
from unittest.mock import AsyncMock, patch
from jobs.alerts import check_alert
from jobs.scheduler import JobScheduler
from models.alert import TrendAlert
from models.base import AlertType


def _alert(alert_type, baseline_a=50.0, baseline_b=50.0, threshold=None, change_percent=10.0):
    return TrendAlert(
        user_id=1,
        slug="chatgpt-vs-gemini",
        term_a="chatgpt",
        term_b="gemini",
        alert_type=alert_type,
        threshold=threshold,
        change_percent=change_percent,
        baseline_score_a=baseline_a,
        baseline_score_b=baseline_b,
    )


class TestCheckAlert:

    def test_score_change_triggers(self):
        result = check_alert(_alert(AlertType.SCORE_CHANGE), (56, 50))

        assert result.should_trigger is True
        assert result.reason == "Score changed by 12.0% (threshold: 10%)"
        assert (result.current_score_a, result.current_score_b) == (56, 50)

    def test_small_score_change_does_not_trigger(self):
        assert check_alert(_alert(AlertType.SCORE_CHANGE), (52, 50)).should_trigger is False

    def test_score_change_without_baseline(self):
        alert = _alert(AlertType.SCORE_CHANGE, baseline_a=None, baseline_b=None)
        assert check_alert(alert, (90, 10)).should_trigger is False

    def test_position_change(self):
        result = check_alert(_alert(AlertType.POSITION_CHANGE, 60, 40), (40, 60))

        assert result.should_trigger is True
        assert result.reason == "Winner changed from chatgpt to gemini"

    def test_same_position(self):
        assert check_alert(_alert(AlertType.POSITION_CHANGE, 60, 40), (55, 45)).should_trigger is False

    def test_threshold(self):
        result = check_alert(_alert(AlertType.THRESHOLD, threshold=70), (65, 72))

        assert result.should_trigger is True
        assert result.reason == "gemini reached threshold of 70 (current: 72)"

    def test_threshold_not_reached(self):
        assert check_alert(_alert(AlertType.THRESHOLD, threshold=70), (65, 69)).should_trigger is False

    def test_custom_never_triggers(self):
        assert check_alert(_alert(AlertType.CUSTOM), (100, 0)).should_trigger is False


@pytest.mark.asyncio
async def test_scheduler_registers_jobs():
    scheduler = JobScheduler()
    scheduler.start()
    try:
        job_ids = {job.id for job in scheduler.scheduler.get_jobs()}
        assert job_ids == {"forecast_warmup", "alert_checks", "forecast_evaluation"}
    finally:
        scheduler.stop()

    assert scheduler.scheduler.running is False


@pytest.mark.asyncio
async def test_scheduler_jobs_swallow_errors():
    scheduler = JobScheduler()

    with patch("jobs.scheduler.warmup_forecasts", AsyncMock(side_effect=RuntimeError("db down"))) as warmup, \
            patch("jobs.scheduler.run_alert_checks", AsyncMock(side_effect=RuntimeError("db down"))) as alerts, \
            patch("jobs.scheduler.evaluate_forecasts", AsyncMock(return_value={"success": True})) as evaluate:
        await scheduler.run_warmup_job()
        await scheduler.run_alert_job()
        await scheduler.run_evaluation_job()

    warmup.assert_awaited_once()
    alerts.assert_awaited_once()
    evaluate.assert_awaited_once()
