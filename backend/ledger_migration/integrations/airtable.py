"""Airtable REST API client for reading source tables.

Features:
- Async HTTP client using httpx (direct API calls)
- Offset-cursor pagination hidden behind list_records()
- Circuit breaker for fault tolerance
- Retry logic with exponential backoff
- Handles timeouts, rate limits (429), auth failures (401/403/404)
- Masks the API key in all logs

ERROR LOGGING REQUIREMENTS:
- Log all outbound API calls with table, page, timing
- Include retry attempt number in logs
- Log circuit breaker state changes
"""

import asyncio
import time
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from collections.abc import Sequence
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from ledger_migration.core.circuit_breaker import CircuitBreaker, CircuitBreakerConfig
from ledger_migration.core.config import get_settings
from ledger_migration.core.logging import airtable_logger, get_logger
from ledger_migration.schemas.source_record import SourcePage, SourceRecord

logger = get_logger(__name__)

# Airtable caps list-records pages at 100
MAX_PAGE_SIZE = 100


def parse_retry_after(value: str | None) -> float | None:
    """Seconds to wait from a Retry-After header (delta-seconds or HTTP-date).

    Returns None when the header is absent or unparseable, so the caller
    falls back to exponential backoff.
    """
    if not value:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        pass
    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=UTC)
    return max((retry_at - datetime.now(UTC)).total_seconds(), 0.0)


class AirtableError(Exception):
    """Base exception for Airtable API errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class AirtableTimeoutError(AirtableError):
    """Raised when a request times out on every attempt."""

    pass


class AirtableRateLimitError(AirtableError):
    """Raised when still rate limited (429) after all retries."""

    def __init__(
        self,
        message: str,
        retry_after: float | None = None,
        response_body: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, status_code=429, response_body=response_body)
        self.retry_after = retry_after


class AirtableAuthError(AirtableError):
    """Raised when the token is rejected or the base/table is not visible to it."""

    pass


class AirtableCircuitOpenError(AirtableError):
    """Raised when circuit breaker is open."""

    pass


class AirtableClient:
    """Async client for the Airtable list-records endpoint."""

    def __init__(
        self,
        api_key: str | None = None,
        base_id: str | None = None,
        api_url: str | None = None,
        page_size: int | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        retry_delay: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize Airtable client.

        Args:
            api_key: Airtable token. Defaults to settings.
            base_id: Airtable base id. Defaults to settings.
            api_url: API base URL. Defaults to settings.
            page_size: Records per page, capped at 100. Defaults to settings.
            timeout: Request timeout in seconds. Defaults to settings.
            max_retries: Retries after the first attempt. Defaults to settings.
            retry_delay: Base delay between retries. Defaults to settings.
            transport: Optional httpx transport (tests use httpx.MockTransport).
        """
        settings = get_settings()

        self._api_key = api_key or settings.airtable_api_key
        self._base_id = base_id or settings.airtable_base_id
        self._api_url = (api_url or settings.airtable_api_url).rstrip("/")
        self._page_size = min(page_size or settings.airtable_page_size, MAX_PAGE_SIZE)
        self._timeout = timeout or settings.airtable_timeout
        self._max_retries = (
            max_retries if max_retries is not None else settings.airtable_max_retries
        )
        self._retry_delay = (
            retry_delay if retry_delay is not None else settings.airtable_retry_delay
        )
        self._transport = transport

        self._circuit_breaker = CircuitBreaker(
            CircuitBreakerConfig(
                failure_threshold=settings.airtable_circuit_failure_threshold,
                recovery_timeout=settings.airtable_circuit_recovery_timeout,
            ),
            name="airtable",
        )

        # HTTP client (created lazily)
        self._client: httpx.AsyncClient | None = None

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._circuit_breaker

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._api_url,
                headers={
                    "Accept": "application/json",
                    "Authorization": f"Bearer {self._api_key}",
                },
                timeout=httpx.Timeout(self._timeout),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
        logger.debug("Airtable client closed")

    async def list_records(
        self,
        table: str,
        fields: Sequence[str] | None = None,
    ) -> list[SourceRecord]:
        """Fetch every record of ``table``, following offset cursors.

        Args:
            table: Airtable table name (or id).
            fields: Optional projection; only these fields are returned.

        Returns:
            All records of the table in Airtable's iteration order.

        Raises:
            AirtableError: On auth failure, exhausted retries, an open circuit
                or a malformed response.
        """
        start_time = time.monotonic()
        records: list[SourceRecord] = []
        offset: str | None = None
        page = 0

        while True:
            page += 1
            params: dict[str, Any] = {"pageSize": self._page_size}
            if offset:
                params["offset"] = offset
            if fields:
                params["fields[]"] = list(fields)

            source_page = await self._fetch_page(table, params, page)
            records.extend(source_page.records)

            offset = source_page.offset
            if not offset:
                break

        airtable_logger.fetch_complete(
            table, len(records), page, (time.monotonic() - start_time) * 1000
        )
        return records

    def _backoff(self, attempt: int) -> float:
        return self._retry_delay * (2**attempt)

    async def _fetch_page(
        self, table: str, params: dict[str, Any], page: int
    ) -> SourcePage:
        """GET one page with retry on 429, 5xx, timeouts and transport errors."""
        if not await self._circuit_breaker.can_execute():
            raise AirtableCircuitOpenError(
                f"Airtable circuit breaker is open, not fetching {table}"
            )

        client = await self._get_client()
        endpoint = f"/v0/{self._base_id}/{quote(table, safe='')}"
        last_error: AirtableError | None = None

        for attempt in range(self._max_retries + 1):
            attempt_start = time.monotonic()
            airtable_logger.api_call_start(table, page, retry_attempt=attempt)

            try:
                response = await client.get(endpoint, params=params)
            except httpx.TimeoutException as e:
                duration_ms = (time.monotonic() - attempt_start) * 1000
                airtable_logger.api_call_error(
                    table, duration_ms, None, str(e) or "timeout", "TimeoutError", attempt
                )
                await self._circuit_breaker.record_failure()
                last_error = AirtableTimeoutError(
                    f"Airtable request for {table} timed out after {self._timeout}s"
                )
                if attempt < self._max_retries:
                    await asyncio.sleep(self._backoff(attempt))
                    continue
                raise last_error from e
            except httpx.TransportError as e:
                duration_ms = (time.monotonic() - attempt_start) * 1000
                airtable_logger.api_call_error(
                    table, duration_ms, None, str(e), type(e).__name__, attempt
                )
                await self._circuit_breaker.record_failure()
                last_error = AirtableError(f"Airtable unreachable: {e}")
                if attempt < self._max_retries:
                    await asyncio.sleep(self._backoff(attempt))
                    continue
                raise last_error from e

            duration_ms = (time.monotonic() - attempt_start) * 1000
            body = self._safe_json(response)

            if response.status_code == 429:
                retry_after_str = response.headers.get("retry-after")
                retry_after = parse_retry_after(retry_after_str)
                airtable_logger.rate_limit(table, retry_after=retry_after)
                last_error = AirtableRateLimitError(
                    f"Airtable rate limit exceeded for {table}",
                    retry_after=retry_after,
                    response_body=body,
                )
                if attempt < self._max_retries:
                    await asyncio.sleep(retry_after or self._backoff(attempt))
                    continue
                raise last_error

            if response.status_code in (401, 403, 404):
                airtable_logger.auth_failure(response.status_code, self._api_key)
                await self._circuit_breaker.record_failure()
                raise AirtableAuthError(
                    f"Airtable rejected access to {table} ({response.status_code})",
                    status_code=response.status_code,
                    response_body=body,
                )

            if response.status_code >= 500:
                airtable_logger.api_call_error(
                    table,
                    duration_ms,
                    response.status_code,
                    f"Server error ({response.status_code})",
                    "ServerError",
                    attempt,
                )
                await self._circuit_breaker.record_failure()
                last_error = AirtableError(
                    f"Airtable server error ({response.status_code}) for {table}",
                    status_code=response.status_code,
                    response_body=body,
                )
                if attempt < self._max_retries:
                    await asyncio.sleep(self._backoff(attempt))
                    continue
                raise last_error

            if response.status_code >= 400:
                # Client error (unknown field, bad formula) - don't retry
                error_msg = self._error_message(body) or f"HTTP {response.status_code}"
                airtable_logger.api_call_error(
                    table, duration_ms, response.status_code, error_msg, "ClientError", attempt
                )
                raise AirtableError(
                    f"Airtable rejected request for {table}: {error_msg}",
                    status_code=response.status_code,
                    response_body=body,
                )

            await self._circuit_breaker.record_success()
            try:
                source_page = SourcePage.model_validate(body or {})
            except ValidationError as e:
                raise AirtableError(
                    f"Malformed Airtable response for {table}: {e.error_count()} errors",
                    status_code=response.status_code,
                ) from e

            airtable_logger.page_fetched(
                table, page, len(source_page.records), duration_ms
            )
            return source_page

        # Loop always returns or raises; keep the type checker satisfied
        raise last_error or AirtableError(f"Airtable request for {table} failed")

    @staticmethod
    def _safe_json(response: httpx.Response) -> dict[str, Any] | None:
        if not response.content:
            return None
        try:
            body = response.json()
        except ValueError:
            return None
        return body if isinstance(body, dict) else None

    @staticmethod
    def _error_message(body: dict[str, Any] | None) -> str | None:
        if not body:
            return None
        error = body.get("error")
        if isinstance(error, dict):
            return str(error.get("message") or error.get("type") or error)
        if error:
            return str(error)
        return None
