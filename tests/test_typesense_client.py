"""Tests for the Typesense HTTP transport."""

from __future__ import annotations

from unittest.mock import AsyncMock, Mock

import httpx
import pytest

from typesense_search.domain.entities.search import SearchParams
from typesense_search.infrastructure.typesense import API_KEY_HEADER, TypesenseClient
from typesense_search.shared.async_utils import CircuitBreaker
from typesense_search.shared.exceptions import (
    CircuitOpenError,
    NetworkError,
    ParseError,
    RateLimitError,
    ServiceError,
    ServiceUnavailableError,
)

from conftest import make_hit

SEARCH_URL = "https://search.example.com:8108/collections/products/documents/search"


def _response(status: int = 200, *, json=None, content: bytes | None = None, headers=None) -> httpx.Response:
    request = httpx.Request("GET", SEARCH_URL)
    if json is not None:
        return httpx.Response(status, json=json, headers=headers, request=request)
    return httpx.Response(status, content=content or b"", headers=headers, request=request)


OK_BODY = {
    "hits": [make_hit("1", 99, name="MacBook")],
    "found": 1,
    "out_of": 250,
    "page": 1,
    "search_time_ms": 2,
    "facet_counts": [{"field_name": "brand", "counts": [{"value": "Apple", "count": 1}]}],
}


@pytest.fixture
async def client(settings):
    client = TypesenseClient(settings)
    yield client
    await client.close()


def _patch_get(monkeypatch, client: TypesenseClient, *outcomes) -> AsyncMock:
    get = AsyncMock(side_effect=list(outcomes))
    monkeypatch.setattr(client._client, "get", get)
    return get


class TestClientSetup:
    def test_headers_and_base_url(self, client):
        assert client._client.headers[API_KEY_HEADER] == "test-key"
        assert client._client.base_url.host == "search.example.com"
        assert client._client.base_url.port == 8108
        assert client._client.base_url.scheme == "https"

    def test_default_circuit_breaker(self, client):
        assert client.circuit_breaker.failure_threshold == 10
        assert client.circuit_breaker.state == "closed"

    async def test_context_manager_closes(self, settings):
        async with TypesenseClient(settings) as client:
            assert not client._client.is_closed
        assert client._client.is_closed


class TestSearch:
    """Request construction and response parsing."""

    async def test_success(self, client, monkeypatch):
        get = _patch_get(monkeypatch, client, _response(json=OK_BODY))
        response = await client.search("products", SearchParams(q="laptop", query_by="name", facet_by="brand"))

        assert response.found == 1
        assert response.hits[0].document["name"] == "MacBook"
        assert response.facet("brand").counts[0].value == "Apple"

        path = get.await_args.args[0]
        assert path == "/collections/products/documents/search"
        assert get.await_args.kwargs["params"] == {
            "q": "laptop",
            "query_by": "name",
            "facet_by": "brand",
            "page": 1,
            "per_page": 20,
        }

    async def test_collection_name_is_quoted(self, client, monkeypatch):
        get = _patch_get(monkeypatch, client, _response(json=OK_BODY))
        await client.search("a/b", SearchParams())
        assert get.await_args.args[0] == "/collections/a%2Fb/documents/search"

    async def test_invalid_json(self, client, monkeypatch):
        _patch_get(monkeypatch, client, _response(content=b"<html>oops</html>"))
        with pytest.raises(ParseError):
            await client.search("products", SearchParams())

    async def test_non_object_json(self, client, monkeypatch):
        _patch_get(monkeypatch, client, _response(json=[1, 2, 3]))
        with pytest.raises(ParseError):
            await client.search("products", SearchParams())


class TestRetries:
    """Transient failures are retried, caller errors are not."""

    async def test_rate_limit_then_success(self, client, monkeypatch):
        get = _patch_get(
            monkeypatch,
            client,
            _response(429, json={"message": "slow down"}, headers={"Retry-After": "0"}),
            _response(json=OK_BODY),
        )
        response = await client.search("products", SearchParams())
        assert response.found == 1
        assert get.await_count == 2

    async def test_rate_limit_exhausted(self, client, monkeypatch):
        get = _patch_get(monkeypatch, client, *[_response(429, headers={"Retry-After": "0"})] * 3)
        with pytest.raises(RateLimitError):
            await client.search("products", SearchParams())
        assert get.await_count == 3

    async def test_server_error_exhausts_retries(self, client, monkeypatch):
        get = _patch_get(monkeypatch, client, *[_response(503, json={"message": "Not Ready"})] * 3)
        with pytest.raises(ServiceUnavailableError) as exc_info:
            await client.search("products", SearchParams())
        assert get.await_count == 3
        assert exc_info.value.status_code == 503
        assert "Not Ready" in str(exc_info.value)

    async def test_client_error_not_retried(self, client, monkeypatch):
        get = _patch_get(
            monkeypatch,
            client,
            _response(400, json={"message": "Could not find a field named `colour` in the schema."}),
        )
        with pytest.raises(ServiceError) as exc_info:
            await client.search("products", SearchParams(filter_by="colour:=red"))
        assert type(exc_info.value) is ServiceError
        assert exc_info.value.status_code == 400
        assert exc_info.value.retryable is False
        assert "colour" in str(exc_info.value)
        assert get.await_count == 1
        assert client.circuit_breaker.state == "closed"

    async def test_network_error(self, client, monkeypatch):
        get = _patch_get(monkeypatch, client, *[httpx.ConnectError("connection refused")] * 3)
        with pytest.raises(NetworkError):
            await client.search("products", SearchParams())
        assert get.await_count == 3

    async def test_open_breaker_stops_requests(self, settings, monkeypatch):
        client = TypesenseClient(settings, circuit_breaker=CircuitBreaker(failure_threshold=1, recovery_timeout=60.0))
        get = _patch_get(monkeypatch, client, _response(502))
        try:
            with pytest.raises(ServiceUnavailableError):
                await client.search("products", SearchParams())
        finally:
            await client.close()
        assert get.await_count == 1
        assert client.circuit_breaker.state == "open"

    async def test_open_breaker_is_not_retried(self, settings, monkeypatch):
        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=60.0)
        with pytest.raises(RuntimeError):
            async with breaker:
                raise RuntimeError("earlier failure")

        client = TypesenseClient(settings, circuit_breaker=breaker)
        get = _patch_get(monkeypatch, client, _response(json=OK_BODY))
        log_retry = Mock()
        monkeypatch.setattr(client, "_log_retry", log_retry)
        try:
            with pytest.raises(CircuitOpenError) as exc_info:
                await client.search("products", SearchParams())
        finally:
            await client.close()
        assert exc_info.value.retryable is False
        assert get.await_count == 0
        log_retry.assert_not_called()
