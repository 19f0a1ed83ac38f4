"""
HTTP client for the trends data provider.

The provider returns one row per day for the requested terms:

    GET {TRENDS_API_URL}/series?terms=chatgpt,gemini&timeframe=12m&geo=US
    -> {"series": [{"date": "2024-01-01", "chatgpt": 71, "gemini": 38}, ...]}

Resilience:
- Exponential backoff retry for timeouts, network errors and 5xx
- Retry-After handling for 429
- Circuit breaker so a failing provider is not hammered
"""

import httpx
import asyncio
from typing import List, Dict, Any, Optional, Sequence
from datetime import datetime, timedelta
from core.config import settings
from core.exceptions import (
    ProviderError,
    NetworkError,
    RateLimitError,
    AuthenticationError,
)
import logging

logger = logging.getLogger(__name__)


def _retry_after_seconds(response: httpx.Response, default: float) -> float:
    """Retry-After in seconds; the HTTP-date form and garbage fall back to ``default``."""
    value = response.headers.get("Retry-After")
    if value is None:
        return default
    try:
        return max(0, int(value))
    except ValueError:
        logger.debug(f"Unparseable Retry-After header {value!r}, using {default}s")
        return default


class TrendsClient:
    """
    Fetch comparison series from the trends provider.

    Attributes:
        base_url: Provider base URL (default: settings.TRENDS_API_URL)
        max_retries: Maximum number of attempts (default: settings.MAX_RETRIES)
        retry_delay: Initial retry delay in seconds (default: 1.0)
        timeout: Request timeout in seconds (default: settings.TRENDS_TIMEOUT)
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        max_retries: Optional[int] = None,
        retry_delay: float = 1.0,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = (base_url or settings.TRENDS_API_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.TRENDS_API_KEY
        self.max_retries = max_retries or settings.MAX_RETRIES
        self.retry_delay = retry_delay
        self.timeout = timeout or settings.TRENDS_TIMEOUT
        self._transport = transport

        # Circuit breaker state
        self._circuit_breaker_failures = 0
        self._circuit_breaker_threshold = 5
        self._circuit_breaker_open_until: Optional[datetime] = None
        self._circuit_breaker_timeout = 60  # seconds

    def _is_circuit_open(self) -> bool:
        if self._circuit_breaker_open_until is None:
            return False

        if datetime.utcnow() >= self._circuit_breaker_open_until:
            logger.info("Circuit breaker reset for trends provider")
            self._circuit_breaker_failures = 0
            self._circuit_breaker_open_until = None
            return False

        return True

    def _record_failure(self):
        self._circuit_breaker_failures += 1

        if self._circuit_breaker_failures >= self._circuit_breaker_threshold:
            self._circuit_breaker_open_until = datetime.utcnow() + timedelta(
                seconds=self._circuit_breaker_timeout
            )
            logger.warning(
                f"Circuit breaker opened for trends provider. "
                f"Will retry after {self._circuit_breaker_timeout} seconds."
            )

    def _record_success(self):
        self._circuit_breaker_failures = 0
        self._circuit_breaker_open_until = None

    async def _get_with_retry(
        self,
        client: httpx.AsyncClient,
        url: str,
        params: Dict[str, Any]
    ) -> httpx.Response:
        """
        GET with retry and exponential backoff.

        Raises:
            AuthenticationError: 401/403, not retried
            RateLimitError: 429 on the last attempt
            NetworkError: timeouts, connection errors or 5xx after all retries
            ProviderError: circuit open or any other non-success status
        """
        if self._is_circuit_open():
            raise ProviderError(
                "Circuit breaker is open for trends provider",
                context={
                    "api_url": url,
                    "open_until": self._circuit_breaker_open_until.isoformat()
                }
            )

        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        for attempt in range(self.max_retries):
            delay = self.retry_delay * (2 ** attempt)
            last_attempt = attempt == self.max_retries - 1

            try:
                logger.debug(f"Request attempt {attempt + 1}/{self.max_retries} to {url}")
                response = await client.get(url, headers=headers, params=params)
            except httpx.TimeoutException as e:
                if not last_attempt:
                    logger.warning(f"Request timeout. Retrying in {delay} seconds")
                    await asyncio.sleep(delay)
                    continue
                self._record_failure()
                raise NetworkError(
                    f"Request timeout after {self.max_retries} retries",
                    context={"api_url": url, "timeout": self.timeout, "retry_count": attempt + 1},
                    original_exception=e
                )
            except httpx.TransportError as e:
                if not last_attempt:
                    logger.warning(f"Network error. Retrying in {delay} seconds")
                    await asyncio.sleep(delay)
                    continue
                self._record_failure()
                raise NetworkError(
                    f"Network error after {self.max_retries} retries",
                    context={"api_url": url, "retry_count": attempt + 1},
                    original_exception=e
                )

            if response.status_code in (401, 403):
                self._record_failure()
                raise AuthenticationError(
                    f"Authentication failed for {url}",
                    context={"status_code": response.status_code, "api_url": url}
                )

            if response.status_code == 429:
                retry_after = _retry_after_seconds(response, delay)
                if not last_attempt:
                    logger.warning(f"Rate limited. Retrying after {retry_after} seconds")
                    await asyncio.sleep(retry_after)
                    continue
                self._record_failure()
                raise RateLimitError(
                    f"Rate limit exceeded for {url}",
                    context={"status_code": 429, "api_url": url, "retry_count": attempt + 1},
                    retry_after=retry_after
                )

            if response.status_code >= 500:
                if not last_attempt:
                    logger.warning(
                        f"Server error {response.status_code}. "
                        f"Retrying in {delay} seconds (attempt {attempt + 1}/{self.max_retries})"
                    )
                    await asyncio.sleep(delay)
                    continue
                self._record_failure()
                raise NetworkError(
                    f"Server error after {self.max_retries} retries",
                    context={
                        "status_code": response.status_code,
                        "api_url": url,
                        "retry_count": attempt + 1,
                        "response_body": response.text[:500]
                    }
                )

            if response.status_code >= 400:
                raise ProviderError(
                    f"Trends provider returned {response.status_code}",
                    context={
                        "status_code": response.status_code,
                        "api_url": url,
                        "response_body": response.text[:500]
                    }
                )

            self._record_success()
            return response

        raise ProviderError("Max retries exceeded", context={"api_url": url})

    async def fetch_series(
        self,
        terms: Sequence[str],
        timeframe: str = "12m",
        geo: str = ""
    ) -> List[Dict[str, Any]]:
        """
        Daily interest rows for ``terms``. An empty list means the provider
        has no data for them.
        """
        url = f"{self.base_url}/series"
        params = {"terms": ",".join(terms), "timeframe": timeframe, "geo": geo}

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await self._get_with_retry(client, url, params)

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(
                "Failed to parse JSON response",
                context={"api_url": url, "response_body": response.text[:500]},
                original_exception=e
            )

        if isinstance(data, dict):
            rows = data.get("series") or data.get("data") or []
        elif isinstance(data, list):
            rows = data
        else:
            rows = []

        series = [row for row in rows if isinstance(row, dict) and "date" in row]
        logger.info(f"Fetched {len(series)} points for {' vs '.join(terms)} ({timeframe}, geo={geo!r})")
        return series


_client: Optional[TrendsClient] = None


def get_trends_client() -> TrendsClient:
    """Process-wide client, so the circuit breaker state spans requests and jobs."""
    global _client
    if _client is None:
        _client = TrendsClient()
    return _client


def reset_trends_client() -> None:
    global _client
    _client = None
