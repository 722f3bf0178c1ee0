"""Tests for the search domain entities."""

from __future__ import annotations

import pytest

from typesense_search.domain.entities.search import (
    FacetCountResult,
    FacetCounts,
    FacetValue,
    RequestFailure,
    SearchHit,
    SearchParams,
    SearchResponse,
    SearchResult,
)
from typesense_search.shared.exceptions import ParseError, RateLimitError

from conftest import make_facet, make_hit, make_response


class TestSearchParams:
    def test_unset_values_dropped(self):
        params = SearchParams(q="tv", filter_by="", extra={"prefix": "false", "num_typos": None})
        assert params.to_query_params() == {
            "q": "tv",
            "query_by": "*",
            "page": 1,
            "per_page": 20,
            "prefix": "false",
        }

    def test_replace_returns_copy(self):
        params = SearchParams(q="tv")
        changed = params.replace(page=3)
        assert changed.page == 3
        assert params.page == 1


class TestSearchResponse:
    def test_from_dict(self):
        response = make_response(
            [make_hit("1", 7, name="TV")],
            found=40,
            facets=[make_facet("price", {"10": 2}, stats={"min": 10, "max": 10})],
        )
        assert response.found == 40
        assert response.out_of == 1000
        assert response.hits[0].text_match == 7
        assert response.facet("price").stats.max == 10
        assert response.facet("brand") is None

    def test_geo_distance_mapping(self):
        hit = SearchHit.from_dict({"document": {"id": "1"}, "geo_distance_meters": {"location": 1520}})
        assert hit.geo_distance_meters == 1520
        assert hit.score == 1520.0

    def test_score_defaults_to_one(self):
        assert SearchHit(document={}).score == 1.0

    @pytest.mark.parametrize("payload", [[], "oops", {"found": "many"}])
    def test_malformed(self, payload):
        with pytest.raises(ParseError):
            SearchResponse.from_dict(payload, source="products")


class TestSearchResult:
    def _result(self, found: int, page: int, hits: int) -> SearchResult:
        return SearchResult(
            hits=[SearchHit(document={"id": str(i)}) for i in range(hits)],
            found=found,
            page=page,
            per_page=20,
            search_time_ms=1.0,
            facet_counts=FacetCountResult(),
        )

    def test_pagination(self):
        result = self._result(found=57, page=2, hits=20)
        assert result.total_pages == 3
        assert result.has_next_page
        assert result.has_previous_page
        assert result.results_range() == "21-40 of 57"

    def test_last_page(self):
        result = self._result(found=57, page=3, hits=17)
        assert not result.has_next_page
        assert result.results_range() == "41-57 of 57"

    def test_empty(self):
        result = self._result(found=0, page=1, hits=0)
        assert result.total_pages == 0
        assert result.results_range() == "0 results"


class TestFacetCountResult:
    def test_last_entry_per_field_wins(self):
        latest = FacetCounts("brand", (FacetValue("Acme", 3),))
        result = FacetCountResult([FacetCounts("brand"), FacetCounts("color"), latest])
        assert result.fields == ["brand", "color"]
        assert len(result) == 2
        assert result["brand"] is latest
        assert result.to_dict() == {"brand": [{"value": "Acme", "count": 3}], "color": []}


class TestRequestFailure:
    def test_from_exception(self):
        failure = RequestFailure.from_exception("brand", RateLimitError("slow down", retry_after=2.0))
        assert failure.target == "brand"
        assert failure.error_type == "RateLimitError"
        assert failure.retryable is True
        assert failure.status_code == 429

    def test_plain_exception(self):
        failure = RequestFailure.from_exception("products", RuntimeError())
        assert failure.message == "RuntimeError"
        assert failure.retryable is False
        assert failure.status_code is None
