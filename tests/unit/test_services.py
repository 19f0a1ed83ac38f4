"""
Unit tests for the trends client and the database-backed services
"""

import httpx
import pytest
from datetime import datetime, timedelta
from unittest.mock import AsyncMock
from core.exceptions import (
    AuthenticationError,
    InsufficientDataError,
    InvalidSlugError,
    InvalidTermError,
    NetworkError,
    ProviderError,
    RateLimitError,
    ResourceNotFoundError,
    ValidationError,
)
from models.base import AlertStatus, AlertType
from models.user import User
from services.alerts import create_alert, delete_alert, get_user_alert, list_alerts, update_alert_status
from services.comparisons import (
    analyze_comparison,
    get_or_build_comparison,
    latest_snapshot,
    parse_comparison_slug,
    record_view,
    save_snapshot,
)
from services.history import clear_history, list_history, most_viewed, record_history
from services.saved import is_saved, list_saved, save_comparison, unsave_comparison
from services.trends_client import TrendsClient, get_trends_client, reset_trends_client


def _client(handler, **kwargs):
    kwargs.setdefault("max_retries", 3)
    return TrendsClient(
        base_url="https://trends.example.com",
        api_key="test_key",
        retry_delay=0,
        transport=httpx.MockTransport(handler),
        **kwargs
    )


async def _user(session, email="user@example.com") -> User:
    user = User(email=email, name="Test User")
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


class TestTrendsClient:
    """Provider client behaviour"""

    @pytest.mark.asyncio
    async def test_fetch_series_success(self):
        seen = {}

        def handler(request):
            seen["params"] = dict(request.url.params)
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={"series": [
                {"date": "2024-01-01", "chatgpt": 70, "gemini": 30},
                {"chatgpt": 1},
            ]})

        series = await _client(handler).fetch_series(["chatgpt", "gemini"], "12m", "US")

        assert series == [{"date": "2024-01-01", "chatgpt": 70, "gemini": 30}]
        assert seen["params"] == {"terms": "chatgpt,gemini", "timeframe": "12m", "geo": "US"}
        assert seen["auth"] == "Bearer test_key"

    @pytest.mark.asyncio
    async def test_fetch_series_accepts_plain_list(self):
        def handler(request):
            return httpx.Response(200, json=[{"date": "2024-01-01", "a": 1, "b": 2}])

        assert len(await _client(handler).fetch_series(["a", "b"])) == 1

    @pytest.mark.asyncio
    async def test_authentication_error_not_retried(self):
        calls = []

        def handler(request):
            calls.append(1)
            return httpx.Response(401)

        with pytest.raises(AuthenticationError):
            await _client(handler).fetch_series(["a", "b"])
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_server_error_retried_then_raised(self):
        calls = []

        def handler(request):
            calls.append(1)
            return httpx.Response(503, text="unavailable")

        with pytest.raises(NetworkError):
            await _client(handler).fetch_series(["a", "b"])
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_recovers_after_server_error(self):
        responses = iter([
            httpx.Response(500),
            httpx.Response(200, json={"series": [{"date": "2024-01-01", "a": 1, "b": 2}]}),
        ])

        series = await _client(lambda request: next(responses)).fetch_series(["a", "b"])
        assert len(series) == 1

    @pytest.mark.asyncio
    async def test_rate_limit_on_last_attempt(self):
        def handler(request):
            return httpx.Response(429, headers={"Retry-After": "0"})

        with pytest.raises(RateLimitError):
            await _client(handler, max_retries=2).fetch_series(["a", "b"])

    @pytest.mark.asyncio
    async def test_retry_after_http_date_falls_back_to_backoff(self):
        responses = iter([
            httpx.Response(429, headers={"Retry-After": "Wed, 21 Oct 2015 07:28:00 GMT"}),
            httpx.Response(200, json={"series": [{"date": "2024-01-01", "a": 1, "b": 2}]}),
        ])

        series = await _client(lambda request: next(responses)).fetch_series(["a", "b"])
        assert len(series) == 1

    @pytest.mark.asyncio
    async def test_timeout_becomes_network_error(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        with pytest.raises(NetworkError):
            await _client(handler, max_retries=2).fetch_series(["a", "b"])

    @pytest.mark.asyncio
    async def test_client_error_is_provider_error(self):
        calls = []

        def handler(request):
            calls.append(1)
            return httpx.Response(404, text="not found")

        with pytest.raises(ProviderError) as exc_info:
            await _client(handler).fetch_series(["a", "b"])
        assert exc_info.value.context["status_code"] == 404
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        def handler(request):
            return httpx.Response(200, text="<html>")

        with pytest.raises(ProviderError, match="parse JSON"):
            await _client(handler).fetch_series(["a", "b"])

    @pytest.mark.asyncio
    async def test_circuit_breaker_opens(self):
        calls = []

        def handler(request):
            calls.append(1)
            return httpx.Response(500)

        client = _client(handler, max_retries=1)
        for _ in range(5):
            with pytest.raises(NetworkError):
                await client.fetch_series(["a", "b"])

        with pytest.raises(ProviderError, match="Circuit breaker"):
            await client.fetch_series(["a", "b"])
        assert len(calls) == 5


class TestSharedTrendsClient:
    """One client per process so breaker state outlives a request"""

    def setup_method(self):
        reset_trends_client()

    def teardown_method(self):
        reset_trends_client()

    def test_dependency_returns_shared_client(self):
        from api.dependencies import get_trends_client as dependency

        shared = get_trends_client()
        assert dependency() is shared
        assert get_trends_client() is shared

    @pytest.mark.asyncio
    async def test_breaker_state_survives_between_callers(self):
        shared = get_trends_client()
        shared._circuit_breaker_open_until = datetime.utcnow() + timedelta(seconds=60)

        with pytest.raises(ProviderError, match="Circuit breaker"):
            await get_trends_client().fetch_series(["a", "b"])

    @pytest.mark.asyncio
    async def test_build_without_client_uses_shared_client(self, db_session, sample_series):
        shared = get_trends_client()
        shared.fetch_series = AsyncMock(return_value=sample_series)

        await get_or_build_comparison(db_session, "chatgpt-vs-gemini", ["chatgpt", "gemini"])

        shared.fetch_series.assert_awaited_once()


class TestComparisonService:

    def test_parse_slug(self):
        assert parse_comparison_slug("chatgpt-vs-gemini") == ["chatgpt", "gemini"]

    def test_parse_slug_not_canonical(self):
        with pytest.raises(InvalidSlugError):
            parse_comparison_slug("gemini-vs-chatgpt")

    @pytest.mark.parametrize("slug", [None, ""])
    def test_parse_slug_missing(self, slug):
        with pytest.raises(InvalidSlugError):
            parse_comparison_slug(slug)

    @pytest.mark.parametrize("slug", ["bcdfghjk-vs-gemini", "gemini-vs-porn"])
    def test_parse_slug_rejects_gibberish_and_stop_phrases(self, slug):
        with pytest.raises(InvalidTermError) as exc_info:
            parse_comparison_slug(slug)
        assert exc_info.value.context["rejected"]

    def test_parse_slug_wrong_term_count(self):
        with pytest.raises(InvalidTermError):
            parse_comparison_slug("apple-vs-banana-vs-cherry")

    @pytest.mark.asyncio
    async def test_build_then_reuse(self, db_session, sample_series):
        client = AsyncMock()
        client.fetch_series.return_value = sample_series

        first = await get_or_build_comparison(db_session, "chatgpt-vs-gemini", ["chatgpt", "gemini"], client=client)
        second = await get_or_build_comparison(db_session, "chatgpt-vs-gemini", ["chatgpt", "gemini"], client=client)

        assert first.id == second.id
        assert first.category == "general"
        assert len(first.data_hash) == 16
        assert len(first.series) == len(sample_series)
        client.fetch_series.assert_awaited_once_with(["chatgpt", "gemini"], "12m", "")

    @pytest.mark.asyncio
    async def test_build_without_data(self, db_session):
        client = AsyncMock()
        client.fetch_series.return_value = []

        with pytest.raises(InsufficientDataError):
            await get_or_build_comparison(db_session, "apple-vs-banana", ["apple", "banana"], client=client)

    @pytest.mark.asyncio
    async def test_record_view(self, db_session, sample_series):
        client = AsyncMock()
        client.fetch_series.return_value = sample_series
        comparison = await get_or_build_comparison(db_session, "chatgpt-vs-gemini", ["chatgpt", "gemini"], client=client)

        await record_view(db_session, comparison)
        await record_view(db_session, comparison)

        assert comparison.view_count == 2
        assert comparison.last_visited is not None

    @pytest.mark.asyncio
    async def test_analyze_and_snapshot(self, db_session, sample_series):
        client = AsyncMock()
        client.fetch_series.return_value = sample_series
        comparison = await get_or_build_comparison(db_session, "chatgpt-vs-gemini", ["chatgpt", "gemini"], client=client)

        analysis = analyze_comparison(comparison)
        assert analysis["terms"] == ["chatgpt", "gemini"]
        assert analysis["verdict"].winner == "chatgpt"
        assert set(analysis["scores"]) == {"chatgpt", "gemini"}
        assert analysis["faqs"]

        await save_snapshot(db_session, comparison, analysis)
        snapshot = await latest_snapshot(db_session, "chatgpt-vs-gemini", "12m", "")
        assert snapshot.winner == "chatgpt"
        assert snapshot.score_a == analysis["scores"]["chatgpt"].overall


class TestSavedAndHistory:

    @pytest.mark.asyncio
    async def test_save_update_and_unsave(self, db_session):
        user = await _user(db_session)

        saved = await save_comparison(db_session, user.id, "chatgpt-vs-gemini", "chatgpt", "gemini", notes="first")
        updated = await save_comparison(db_session, user.id, "chatgpt-vs-gemini", "chatgpt", "gemini", tags=["ai"])

        assert updated.id == saved.id
        assert updated.notes == "first"
        assert updated.tags == ["ai"]
        assert await is_saved(db_session, user.id, "chatgpt-vs-gemini")
        assert len(await list_saved(db_session, user.id)) == 1

        assert await unsave_comparison(db_session, user.id, "chatgpt-vs-gemini") is True
        assert await unsave_comparison(db_session, user.id, "chatgpt-vs-gemini") is False
        assert not await is_saved(db_session, user.id, "chatgpt-vs-gemini")

    @pytest.mark.asyncio
    async def test_saved_is_per_user(self, db_session):
        alice = await _user(db_session, "alice@example.com")
        bob = await _user(db_session, "bob@example.com")

        await save_comparison(db_session, alice.id, "apple-vs-banana", "apple", "banana")

        assert await list_saved(db_session, bob.id) == []

    @pytest.mark.asyncio
    async def test_history_and_most_viewed(self, db_session):
        user = await _user(db_session)
        for _ in range(3):
            await record_history(db_session, user.id, "chatgpt-vs-gemini", "chatgpt", "gemini")
        await record_history(db_session, user.id, "apple-vs-banana", "apple", "banana")

        assert len(await list_history(db_session, user.id)) == 4

        top = await most_viewed(db_session, user.id)
        assert top[0] == {"slug": "chatgpt-vs-gemini", "term_a": "chatgpt", "term_b": "gemini", "count": 3}
        assert top[1]["count"] == 1

        assert await clear_history(db_session, user.id) == 4
        assert await list_history(db_session, user.id) == []


class TestAlertService:

    @pytest.mark.asyncio
    async def test_create_and_list(self, db_session):
        user = await _user(db_session)
        alert = await create_alert(
            db_session, user.id, "chatgpt-vs-gemini", "chatgpt", "gemini", AlertType.SCORE_CHANGE,
            baseline_score_a=60, baseline_score_b=40,
        )

        assert alert.status == AlertStatus.ACTIVE
        assert alert.baseline_date is not None
        assert [a.id for a in await list_alerts(db_session, user.id)] == [alert.id]

    @pytest.mark.asyncio
    async def test_threshold_alert_needs_threshold(self, db_session):
        user = await _user(db_session)
        with pytest.raises(ValidationError):
            await create_alert(db_session, user.id, "chatgpt-vs-gemini", "chatgpt", "gemini", AlertType.THRESHOLD)

    @pytest.mark.asyncio
    async def test_pause_and_delete(self, db_session):
        user = await _user(db_session)
        alert = await create_alert(db_session, user.id, "chatgpt-vs-gemini", "chatgpt", "gemini", AlertType.POSITION_CHANGE)

        paused = await update_alert_status(db_session, user.id, alert.id, AlertStatus.PAUSED)
        assert paused.status == AlertStatus.PAUSED
        assert await list_alerts(db_session, user.id, include_paused=False) == []

        await delete_alert(db_session, user.id, alert.id)
        assert await list_alerts(db_session, user.id) == []
        with pytest.raises(ResourceNotFoundError):
            await get_user_alert(db_session, user.id, alert.id)

    @pytest.mark.asyncio
    async def test_alert_owned_by_other_user(self, db_session):
        owner = await _user(db_session, "owner@example.com")
        other = await _user(db_session, "other@example.com")
        alert = await create_alert(db_session, owner.id, "chatgpt-vs-gemini", "chatgpt", "gemini", AlertType.POSITION_CHANGE)

        with pytest.raises(ResourceNotFoundError):
            await get_user_alert(db_session, other.id, alert.id)
