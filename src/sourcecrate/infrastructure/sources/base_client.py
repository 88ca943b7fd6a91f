"""
Base API Client - shared HTTP plumbing and the source adapter contract.

Every academic source is a small subclass of BaseAPIClient that maps the
service's payload onto the common raw record shape consumed by
``Paper.from_raw``:

    title, authors, abstract, year, doi, url, pdf_url, journal,
    source, citation_count, is_open_access

The base class provides:
- Automatic retry on 429 (rate limit) with Retry-After support
- Exponential backoff with jitter on connection errors
- Rate limiting (configurable interval between requests)
- Circuit breaker for fault tolerance
- Per-item parsing so one bad item never loses the whole batch

Adapters never raise for "no results" or for HTTP failures; those come back
as an empty list and a log line. Anything unexpected propagates to the
orchestrator, which reports it on that source's completion event.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from typing import Any, Protocol, runtime_checkable

import httpx
from typing_extensions import Self

from sourcecrate.shared.async_utils import CircuitBreaker
from sourcecrate.shared.exceptions import ErrorContext, NetworkError, RateLimitError, get_retry_delay

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_TIMEOUT = 15.0
DEFAULT_EMAIL = "sourcecrate@example.com"
USER_AGENT = "sourcecrate-search/0.1"

RawRecord = dict[str, Any]


@runtime_checkable
class SourceAdapter(Protocol):
    """Contract every source adapter fulfils."""

    name: str
    search_timeout: float

    async def search(self, query: str, limit: int) -> list[RawRecord]: ...


class BaseAPIClient(ABC):
    """
    Base class for external API clients.

    Subclasses set ``name`` (registry key), ``_service_name`` (display name
    stored on each record) and implement ``search``. They can override:
    - ``_execute_request()``: Add service-specific headers/params
    - ``_handle_expected_status()``: Handle service-specific status codes (e.g., 404)
    - ``_parse_response()``: Custom response extraction

    Example:
        class MyClient(BaseAPIClient):
            name = "myapi"
            _service_name = "MyAPI"

            async def search(self, query: str, limit: int) -> list[RawRecord]:
                data = await self._make_request(f"/search?q={query}")
                ...
    """

    name: str = "api"
    _service_name: str = "API"
    _MAX_RETRIES: int = 3
    search_timeout: float = DEFAULT_SEARCH_TIMEOUT

    def __init__(
        self,
        base_url: str = "",
        timeout: float = 30.0,
        min_interval: float = 0.1,
        headers: dict[str, str] | None = None,
        circuit_breaker: CircuitBreaker | None = None,
        search_timeout: float | None = None,
    ) -> None:
        """
        Initialize base client.

        Args:
            base_url: Base URL for the API (optional, can pass full URLs)
            timeout: Per-request HTTP timeout in seconds
            min_interval: Minimum seconds between requests (rate limiting)
            headers: Default headers for all requests
            circuit_breaker: Optional circuit breaker. If None, a default one
                             is created (threshold=10, recovery=60s).
            search_timeout: Overall budget for one ``search`` call, enforced
                            by the orchestrator
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._min_interval = min_interval
        self._last_request_time = 0.0
        if search_timeout is not None:
            self.search_timeout = search_timeout
        self._client = httpx.AsyncClient(
            timeout=self._timeout,
            headers={"User-Agent": USER_AGENT, **(headers or {})},
            follow_redirects=True,
            limits=httpx.Limits(
                max_connections=20,
                max_keepalive_connections=10,
                keepalive_expiry=30.0,
            ),
        )
        self._circuit_breaker = circuit_breaker or CircuitBreaker(
            failure_threshold=10, recovery_timeout=60.0, name=self._service_name
        )

    @property
    def display_name(self) -> str:
        return self._service_name

    @abstractmethod
    async def search(self, query: str, limit: int) -> list[RawRecord]:
        """Query the service and return raw records, or an empty list."""

    # -------------------------------------------------------------------------
    # HTTP
    # -------------------------------------------------------------------------

    async def _rate_limit(self) -> None:
        """Enforce minimum interval between requests."""
        elapsed = time.time() - self._last_request_time
        if elapsed < self._min_interval:
            await asyncio.sleep(self._min_interval - elapsed)
        self._last_request_time = time.time()

    def _build_url(self, url: str) -> str:
        """Build full URL from path or full URL."""
        if url.startswith(("http://", "https://")):
            return url
        return f"{self._base_url}{url}"

    async def _make_request(
        self,
        url: str,
        *,
        method: str = "GET",
        data: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        expect_json: bool = True,
    ) -> dict[str, Any] | list[Any] | str | None:
        """
        Make HTTP request with retry on 429 and circuit breaker protection.

        Args:
            url: Full URL or path (appended to base_url)
            method: HTTP method (GET or POST)
            data: JSON body for POST requests
            headers: Additional headers for this request
            expect_json: If True, parse response as JSON; otherwise return text

        Returns:
            Parsed JSON, response text, or None on error
        """
        full_url = self._build_url(url)

        for attempt in range(self._MAX_RETRIES + 1):
            await self._rate_limit()
            try:
                async with self._circuit_breaker:
                    response = await self._execute_request(full_url, method=method, data=data, headers=headers)

                    expected = self._handle_expected_status(response, full_url)
                    if expected is not _CONTINUE:
                        return expected

                    if response.status_code == 429:
                        if attempt < self._MAX_RETRIES:
                            retry_after = self._get_retry_after(response, attempt)
                            logger.warning(
                                f"{self._service_name}: Rate limited (429), "
                                f"retry {attempt + 1}/{self._MAX_RETRIES} in {retry_after:.1f}s"
                            )
                            await asyncio.sleep(retry_after)
                            continue
                        logger.warning(f"{self._service_name}: Rate limit exceeded after retries")
                        return None

                    response.raise_for_status()
                    return self._parse_response(response, expect_json)

            except RateLimitError:
                logger.warning(f"{self._service_name}: Circuit breaker open, skipping request")
                return None
            except httpx.HTTPStatusError as e:
                logger.warning(
                    f"{self._service_name} HTTP error {e.response.status_code}: {e.response.reason_phrase}"
                )
                return None
            except httpx.RequestError as e:
                error = NetworkError(
                    f"{self._service_name} request error: {e}",
                    context=ErrorContext(source=self._service_name, operation=method),
                )
                if attempt < self._MAX_RETRIES:
                    delay = get_retry_delay(error, attempt)
                    logger.warning(f"{error} (attempt {attempt + 1}), retrying in {delay:.1f}s")
                    await asyncio.sleep(delay)
                    continue
                logger.error(f"{self._service_name} request failed: {e}")
                return None
            except ValueError as e:
                logger.warning(f"{self._service_name}: invalid response body: {e}")
                return None

        return None

    async def _execute_request(
        self,
        url: str,
        *,
        method: str = "GET",
        data: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Execute the actual HTTP request. Override for custom behavior."""
        if method == "POST" and data:
            return await self._client.post(url, json=data, headers=headers or {})
        return await self._client.get(url, headers=headers or {})

    def _handle_expected_status(self, response: httpx.Response, url: str) -> Any:
        """
        Handle expected non-200 status codes that shouldn't trigger retry.

        Return a value to short-circuit, or the sentinel ``_CONTINUE`` to
        continue normal processing. Default: 404 means "no results".
        """
        if response.status_code == 404:
            logger.debug(f"{self._service_name}: 404 for {url}")
            return None
        return _CONTINUE

    def _parse_response(self, response: httpx.Response, expect_json: bool) -> Any:
        """Parse response body. Override for custom extraction logic."""
        if expect_json:
            return response.json()
        return response.text

    @staticmethod
    def _get_retry_after(response: httpx.Response, attempt: int) -> float:
        """Extract Retry-After from response headers, with exponential backoff fallback."""
        try:
            return float(response.headers.get("Retry-After", 2 ** (attempt + 1)))
        except (ValueError, TypeError):
            return float(2 ** (attempt + 1))

    # -------------------------------------------------------------------------
    # Record helpers
    # -------------------------------------------------------------------------

    def _parse_items(self, items: Iterable[Any], parse: Callable[[Any], RawRecord | None]) -> list[RawRecord]:
        """Apply ``parse`` to each item, skipping items that fail."""
        records: list[RawRecord] = []
        for item in items:
            try:
                record = parse(item)
            except (KeyError, IndexError, TypeError, ValueError, AttributeError) as e:
                logger.warning(f"{self._service_name}: skipping unparseable item: {e}")
                continue
            if record:
                records.append(record)
        return records

    def _record(self, **fields: Any) -> RawRecord:
        """Raw record stamped with this source's display name."""
        record: RawRecord = {
            "title": None,
            "authors": [],
            "abstract": "",
            "year": None,
            "doi": None,
            "url": None,
            "pdf_url": None,
            "journal": None,
            "citation_count": 0,
            "is_open_access": False,
        }
        record.update(fields)
        record["source"] = self._service_name
        return record

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()


# Sentinel object to indicate "continue normal processing" from _handle_expected_status
_CONTINUE = object()


__all__ = ["BaseAPIClient", "DEFAULT_EMAIL", "DEFAULT_SEARCH_TIMEOUT", "RawRecord", "SourceAdapter"]
