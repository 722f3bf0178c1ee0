"""Tests for search_service.py - state to request, one collection."""

from __future__ import annotations

import pytest

from typesense_search.application.search.search_service import SearchService
from typesense_search.application.search.state_reducer import (
    SearchState,
    SetDisjunctiveFacets,
    SetMultiSortBy,
    SetNumericFilter,
    SetQuery,
    create_initial_state,
    reduce_actions,
)
from typesense_search.shared.settings import SearchDefaults

from conftest import RecordingBackend, make_facet, make_hit, make_response


@pytest.fixture
def state():
    return reduce_actions(
        create_initial_state(disjunctive_fields=frozenset({"brand", "category"})),
        [
            SetQuery("laptop"),
            SetDisjunctiveFacets({"brand": ["Apple", "Dell"]}),
            SetNumericFilter("price", max=2000),
            SetMultiSortBy("price:asc"),
        ],
    )


class TestBuildParams:
    """Base request parameters."""

    def test_empty_query_is_wildcard(self):
        params = SearchService(RecordingBackend()).build_params(SearchState())
        assert params.q == "*"
        assert params.query_by == "*"
        assert params.facet_by is None
        assert params.max_facet_values is None
        assert params.filter_by is None
        assert params.sort_by is None

    def test_facet_by_defaults_to_flagged_fields(self, state):
        params = SearchService(RecordingBackend()).build_params(state, query_by="name")
        assert params.q == "laptop"
        assert params.query_by == "name"
        assert params.facet_by == "brand,category"
        assert params.max_facet_values == 10000
        assert params.sort_by == "price:asc"

    def test_explicit_facet_by(self, state):
        service = SearchService(RecordingBackend(), SearchDefaults(max_facet_values=50, query_by="title"))
        params = service.build_params(state, facet_by="color")
        assert params.facet_by == "color"
        assert params.max_facet_values == 50
        assert params.query_by == "title"

    def test_pagination_from_state(self):
        params = SearchService(RecordingBackend()).build_params(SearchState(page=3, per_page=12))
        assert params.page == 3
        assert params.per_page == 12


class TestSearch:
    """Search through the orchestrator."""

    async def test_search_sends_filter_and_auxiliary(self, state):
        backend = RecordingBackend(
            {
                ("products", "brand,category"): make_response(
                    [make_hit("1", 5)], found=1, facets=[make_facet("brand", {"Apple": 1})]
                ),
                ("products", "brand"): make_response(facets=[make_facet("brand", {"Apple": 4, "Dell": 3, "HP": 2})]),
            }
        )
        result = await SearchService(backend).search("products", state, query_by="name")

        sent = {params.facet_by: params for _, params in backend.calls}
        primary, auxiliary = sent["brand,category"], sent["brand"]
        assert primary.filter_by == "(brand:=`Apple` || brand:=`Dell`) && price:<=2000"
        assert auxiliary.filter_by == "price:<=2000"
        assert auxiliary.per_page == 0
        assert result.found == 1
        assert [v.value for v in result.facet_counts.counts("brand")] == ["Apple", "Dell", "HP"]

    async def test_disjunctive_queries_disabled(self, state, mock_backend):
        service = SearchService(mock_backend, SearchDefaults(enable_disjunctive_facet_queries=False))
        await service.search("products", state)
        assert mock_backend.search.await_count == 1

    async def test_explicit_disjunctive_fields(self, state):
        backend = RecordingBackend()
        await SearchService(backend).search("products", state, disjunctive_fields=[])
        assert len(backend.calls) == 1

    async def test_state_changes_after_call_do_not_leak(self, state):
        backend = RecordingBackend()
        service = SearchService(backend)
        await service.search("products", state)
        reduce_actions(state, [SetDisjunctiveFacets({"brand": ["HP"]})])
        await service.search("products", state)
        assert backend.calls[0][1].filter_by == backend.calls[-1][1].filter_by
