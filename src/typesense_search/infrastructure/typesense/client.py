"""
Typesense Client - Async HTTP transport for the documents search endpoint.

Provides:
- httpx.AsyncClient management (API key header, base URL, timeout)
- Retry on transient failures (429, 5xx, network) with tenacity backoff
- Retry-After support on 429
- Circuit breaker for fault tolerance
- Mapping of HTTP failures onto the ServiceError hierarchy

Satisfies the SearchBackend protocol, so it can be handed directly to
SearchService and MultiCollectionSearcher.

Example:
    async with TypesenseClient(TypesenseSettings.from_env()) as client:
        response = await client.search("products", SearchParams(q="laptop", query_by="name"))
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt
from typing_extensions import Self

from typesense_search.domain.entities.search import SearchParams, SearchResponse
from typesense_search.shared.async_utils import CircuitBreaker
from typesense_search.shared.exceptions import (
    NetworkError,
    ParseError,
    RateLimitError,
    ServiceError,
    ServiceUnavailableError,
    get_retry_delay,
    is_retryable_error,
)
from typesense_search.shared.settings import TypesenseSettings

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-TYPESENSE-API-KEY"


class TypesenseClient:
    """
    Async client for ``GET /collections/{collection}/documents/search``.

    Only 429, 5xx and network failures are retried and counted by the
    circuit breaker. Other 4xx answers are caller errors: they are raised
    immediately as non-retryable ServiceError.
    """

    _service_name: str = "Typesense"

    def __init__(
        self,
        settings: TypesenseSettings,
        *,
        circuit_breaker: CircuitBreaker | None = None,
    ) -> None:
        """
        Initialize client.

        Args:
            settings: Connection settings
            circuit_breaker: Optional circuit breaker for fault tolerance.
                             If None, a default one is created (threshold=10, recovery=60s).
        """
        self.settings = settings
        self._client = httpx.AsyncClient(
            base_url=settings.base_url,
            timeout=settings.connection_timeout_seconds,
            headers={API_KEY_HEADER: settings.api_key, "Accept": "application/json"},
            limits=httpx.Limits(
                max_connections=20,
                max_keepalive_connections=10,
                keepalive_expiry=30.0,
            ),
        )
        self._circuit_breaker = circuit_breaker or CircuitBreaker(failure_threshold=10, recovery_timeout=60.0)

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._circuit_breaker

    @staticmethod
    def _search_path(collection: str) -> str:
        return f"/collections/{quote(collection, safe='')}/documents/search"

    async def search(self, collection: str, params: SearchParams) -> SearchResponse:
        """
        Run one search request.

        Args:
            collection: Collection name
            params: Search parameters; unset values are not sent

        Returns:
            Parsed SearchResponse

        Raises:
            RateLimitError: still rate limited after all retries
            ServiceUnavailableError: 5xx after all retries, or circuit open
            NetworkError: connection failures after all retries
            ServiceError: any other non-2xx answer (not retried)
            ParseError: body is not a JSON object
        """
        query = params.to_query_params()
        attempts = self.settings.num_retries + 1

        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=self._wait,
            retry=retry_if_exception(is_retryable_error),
            before_sleep=self._log_retry,
            reraise=True,
        ):
            with attempt:
                response = await self._request(collection, query)

        return self._parse_response(response, collection)

    async def _request(self, collection: str, query: dict[str, Any]) -> httpx.Response:
        """One HTTP round trip; failures the breaker should count are raised inside it."""
        async with self._circuit_breaker:
            try:
                response = await self._client.get(self._search_path(collection), params=query)
            except httpx.RequestError as e:
                raise NetworkError(f"{self._service_name} request failed: {e}", collection=collection) from e

            if response.status_code == 429:
                raise RateLimitError(
                    f"{self._service_name}: rate limited on '{collection}'",
                    retry_after=self._get_retry_after(response),
                    collection=collection,
                )
            if response.status_code >= 500:
                raise ServiceUnavailableError(
                    f"HTTP {response.status_code}: {self._error_message(response)}",
                    status_code=response.status_code,
                    collection=collection,
                )

        if response.status_code >= 400:
            raise ServiceError(
                f"{self._service_name} HTTP {response.status_code} on '{collection}': {self._error_message(response)}",
                collection=collection,
                status_code=response.status_code,
            )
        return response

    def _wait(self, retry_state: RetryCallState) -> float:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        if error is None:
            return self.settings.retry_interval_seconds
        return get_retry_delay(error, retry_state.attempt_number - 1, self.settings.retry_interval_seconds)

    def _log_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            f"{self._service_name}: {error} "
            f"(retry {retry_state.attempt_number}/{self.settings.num_retries} in {delay:.2f}s)"
        )

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        """The service's own ``message`` field when the body carries one."""
        try:
            body = response.json()
        except ValueError:
            return response.text or response.reason_phrase
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        return response.reason_phrase

    @staticmethod
    def _get_retry_after(response: httpx.Response) -> float:
        """Retry-After header in seconds; 0 when absent so backoff applies."""
        try:
            return max(0.0, float(response.headers.get("Retry-After", 0)))
        except (ValueError, TypeError):
            return 0.0

    @staticmethod
    def _parse_response(response: httpx.Response, collection: str) -> SearchResponse:
        try:
            data = response.json()
        except ValueError as e:
            raise ParseError(f"response is not valid JSON: {e}", source=collection) from e
        return SearchResponse.from_dict(data, source=collection)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
