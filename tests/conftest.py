"""
Pytest configuration and shared fixtures.
"""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock

import pytest

from typesense_search.domain.entities.search import SearchResponse
from typesense_search.shared.settings import TypesenseSettings

# ============================================================
# Response Builders
# ============================================================


def make_hit(doc_id: str, text_match: float | None = None, **document: Any) -> dict[str, Any]:
    """Raw Typesense hit dict."""
    hit: dict[str, Any] = {"document": {"id": doc_id, **document}, "highlight": {}}
    if text_match is not None:
        hit["text_match"] = text_match
    return hit


def make_facet(field_name: str, counts: dict[str, int], stats: dict[str, float] | None = None) -> dict[str, Any]:
    """Raw Typesense facet_counts entry."""
    facet: dict[str, Any] = {
        "field_name": field_name,
        "counts": [{"value": value, "count": count} for value, count in counts.items()],
    }
    if stats:
        facet["stats"] = stats
    return facet


def make_response(
    hits: list[dict[str, Any]] | None = None,
    *,
    found: int | None = None,
    facets: list[dict[str, Any]] | None = None,
    page: int = 1,
) -> SearchResponse:
    hits = hits or []
    return SearchResponse.from_dict(
        {
            "hits": hits,
            "found": len(hits) if found is None else found,
            "out_of": 1000,
            "page": page,
            "search_time_ms": 3,
            "facet_counts": facets or [],
        }
    )


def scored_response(collection: str, scores: list[float], *, found: int | None = None) -> SearchResponse:
    """Response whose hits carry the given text_match scores, ids ``<collection>-<n>``."""
    return make_response(
        [make_hit(f"{collection}-{i}", score) for i, score in enumerate(scores, start=1)],
        found=found,
    )


# ============================================================
# Backend Fixtures
# ============================================================


class RecordingBackend:
    """
    In-memory SearchBackend.

    ``responses`` maps a collection (or a ``(collection, facet_by)`` pair) to a
    SearchResponse or an exception to raise. Every call is recorded.
    """

    def __init__(self, responses: dict[Any, Any] | None = None) -> None:
        self.responses = responses or {}
        self.calls: list[tuple[str, Any]] = []

    async def search(self, collection: str, params: Any) -> SearchResponse:
        self.calls.append((collection, params))
        outcome = self.responses.get((collection, params.facet_by), self.responses.get(collection))
        if isinstance(outcome, BaseException):
            raise outcome
        if outcome is None:
            return make_response()
        return outcome


@pytest.fixture
def recording_backend():
    """Provide an empty RecordingBackend."""
    return RecordingBackend()


@pytest.fixture
def mock_backend():
    """AsyncMock backend returning an empty response."""
    backend = AsyncMock()
    backend.search.return_value = make_response()
    return backend


# ============================================================
# Settings Fixtures
# ============================================================


@pytest.fixture
def settings():
    """Fast-retry settings for transport tests."""
    return TypesenseSettings(
        api_key="test-key",
        host="search.example.com",
        port=8108,
        protocol="https",
        num_retries=2,
        retry_interval_seconds=0.0,
    )


@pytest.fixture
def clean_env(monkeypatch):
    """Remove TYPESENSE_* variables from the environment."""
    for name in (
        "TYPESENSE_API_KEY",
        "TYPESENSE_HOST",
        "TYPESENSE_PORT",
        "TYPESENSE_PROTOCOL",
        "TYPESENSE_PATH",
        "TYPESENSE_TIMEOUT",
        "TYPESENSE_NUM_RETRIES",
        "TYPESENSE_RETRY_INTERVAL",
        "TYPESENSE_PER_PAGE",
        "TYPESENSE_MAX_FACET_VALUES",
        "TYPESENSE_DISJUNCTIVE_FACETS",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch
