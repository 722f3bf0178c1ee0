"""Tests for result_merger.py - multi-collection ranking strategies."""

from __future__ import annotations

import pytest

from typesense_search.application.search.result_merger import merge, normalize_scores, score_collection
from typesense_search.domain.entities.multi_collection import (
    CollectionResult,
    CollectionSearchConfig,
    MergeStrategy,
)
from typesense_search.shared.exceptions import InvalidParameterError, ServiceUnavailableError

from conftest import scored_response


def _result(name: str, scores: list[float], weight: float = 1.0, **config) -> CollectionResult:
    return CollectionResult(
        config=CollectionSearchConfig(name, weight=weight, **config),
        response=scored_response(name, scores),
        search_time_ms=5.0,
    )


@pytest.fixture
def products_and_categories():
    """products: weight 2, scores 100..10; categories: weight 1, scores 50..10."""
    return [
        _result("products", [100, 90, 80, 70, 60, 50, 40, 30, 20, 10], weight=2.0),
        _result("categories", [50, 30, 10], weight=1.0),
    ]


class TestNormalizeScores:
    def test_min_max(self):
        assert normalize_scores([100, 55, 10]) == [1.0, 0.5, 0.0]

    def test_single_score_is_one(self):
        assert normalize_scores([42]) == [1.0]

    def test_equal_scores_are_one(self):
        assert normalize_scores([7, 7, 7]) == [1.0, 1.0, 1.0]

    def test_empty(self):
        assert normalize_scores([]) == []


class TestScoreCollection:
    def test_provenance(self):
        hits = score_collection(_result("products", [100, 10], weight=2.0, namespace="catalog"))
        assert [h.collection_rank for h in hits] == [1, 2]
        assert [h.normalized_score for h in hits] == [1.0, 0.0]
        assert [h.merged_score for h in hits] == [2.0, 0.0]
        assert hits[0].raw_score == 100
        assert hits[0].source_collection == "products"
        assert hits[0].namespace == "catalog"
        assert hits[0].document["id"] == "products-1"

    def test_without_normalization(self):
        hits = score_collection(_result("products", [100, 10], weight=0.5), normalize=False)
        assert [h.normalized_score for h in hits] == [100, 10]
        assert [h.merged_score for h in hits] == [50.0, 5.0]


class TestRelevance:
    """relevance and collection-weighted strategies."""

    def test_weighted_top_hit_first(self, products_and_categories):
        merged = merge(products_and_categories, MergeStrategy.RELEVANCE)
        top = merged.hits[0]
        assert top.source_collection == "products"
        assert top.merged_score == 2.0
        first_category = next(h for h in merged.hits if h.source_collection == "categories")
        assert first_category.merged_score == 1.0
        assert merged.hits.index(top) < merged.hits.index(first_category)

    def test_non_increasing_merged_score(self, products_and_categories):
        scores = [h.merged_score for h in merge(products_and_categories, "relevance").hits]
        assert scores == sorted(scores, reverse=True)

    def test_tie_breaks_by_weight_then_rank(self):
        merged = merge(
            [_result("a", [5], weight=1.0), _result("b", [9, 1], weight=1.0), _result("c", [3], weight=1.0)],
            MergeStrategy.RELEVANCE,
        )
        # a, b#1 and c all normalize to 1.0 with equal weight: rank, then declaration order
        assert [(h.source_collection, h.collection_rank) for h in merged.hits] == [
            ("a", 1),
            ("b", 1),
            ("c", 1),
            ("b", 2),
        ]

    def test_weight_scales_equal_raw_scores(self):
        merged = merge([_result("low", [5], weight=1.0), _result("high", [5], weight=0.5)], "relevance")
        assert [h.source_collection for h in merged.hits] == ["low", "high"]

    def test_zero_weight_sorts_last(self):
        merged = merge(
            [_result("hidden", [100, 90], weight=0.0), _result("shown", [30, 20, 10], weight=1.0)],
            MergeStrategy.RELEVANCE,
        )
        hidden_positions = [i for i, h in enumerate(merged.hits) if h.source_collection == "hidden"]
        shown_nonzero = [i for i, h in enumerate(merged.hits) if h.source_collection == "shown" and h.merged_score > 0]
        assert min(hidden_positions) > max(shown_nonzero)

    def test_collection_weighted_is_alias(self, products_and_categories):
        relevance = merge(products_and_categories, MergeStrategy.RELEVANCE)
        weighted = merge(products_and_categories, MergeStrategy.COLLECTION_WEIGHTED)
        assert weighted.hits == relevance.hits

    def test_deterministic(self, products_and_categories):
        assert merge(products_and_categories).hits == merge(products_and_categories).hits


class TestRoundRobin:
    def test_five_three_one(self):
        merged = merge([_result("a", [5, 4, 3, 2, 1]), _result("b", [3, 2, 1]), _result("c", [1])], "round-robin")
        sources = [h.source_collection for h in merged.hits]
        assert set(sources[:3]) == {"a", "b", "c"}
        assert sources == ["a", "b", "c", "a", "b", "a", "b", "a", "a"]

    def test_weight_order(self):
        merged = merge([_result("a", [1, 1], weight=1.0), _result("b", [1, 1], weight=3.0)], "round_robin")
        assert [h.source_collection for h in merged.hits] == ["b", "a", "b", "a"]

    def test_internal_order_kept(self):
        merged = merge([_result("a", [1, 9, 5]), _result("b", [2])], MergeStrategy.ROUND_ROBIN)
        assert [h.collection_rank for h in merged.hits if h.source_collection == "a"] == [1, 2, 3]


class TestCollectionPriority:
    def test_whole_collections_by_weight(self):
        merged = merge(
            [_result("a", [9, 8], weight=1.0), _result("b", [1], weight=2.0), _result("c", [5], weight=1.0)],
            MergeStrategy.COLLECTION_PRIORITY,
        )
        assert [h.source_collection for h in merged.hits] == ["b", "a", "a", "c"]


class TestTruncationAndFailures:
    def test_truncates_after_ordering(self):
        merged = merge(
            [_result("a", [5, 4, 3]), _result("b", [3, 2, 1])],
            MergeStrategy.ROUND_ROBIN,
            global_max_results=2,
        )
        assert [h.source_collection for h in merged.hits] == ["a", "b"]
        assert len(merged.scored_hits) == 6

    def test_failed_collection_is_distinct_from_empty(self):
        failed = CollectionResult(
            config=CollectionSearchConfig("categories"),
            error=ServiceUnavailableError("down", status_code=503),
            search_time_ms=2.0,
        )
        empty = _result("brands", [])
        merged = merge([_result("products", [10, 5]), failed, empty])
        assert [h.source_collection for h in merged.hits] == ["products", "products"]
        assert merged.total_found_by_collection == {"products": 2, "categories": None, "brands": 0}
        assert merged.failed_collections == ["categories"]
        assert merged.is_failed("categories")
        assert not merged.is_failed("brands")
        assert merged.errors_by_collection["categories"].error_type == "ServiceUnavailableError"
        assert merged.search_time_by_collection["categories"] == 2.0

    def test_missing_response_is_failure(self):
        merged = merge([CollectionResult(config=CollectionSearchConfig("a"))])
        assert merged.total_found_by_collection == {"a": None}
        assert merged.errors_by_collection["a"].error_type == "MissingResponse"

    def test_unknown_strategy(self):
        with pytest.raises(InvalidParameterError):
            merge([], "best-effort")
