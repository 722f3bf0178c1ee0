"""Tests for disjunctive.py - per-field count queries and reconciliation."""

from __future__ import annotations

import pytest

from typesense_search.application.search.disjunctive import (
    DisjunctiveFacetOrchestrator,
    DisjunctiveSearch,
    OrchestratorPhase,
    build_auxiliary_params,
    plan_facet_queries,
    reconcile_facet_counts,
)
from typesense_search.domain.entities.filter_state import FilterState
from typesense_search.domain.entities.search import FacetCounts, FacetValue, SearchParams
from typesense_search.shared.exceptions import NetworkError, ServiceError, ServiceUnavailableError

from conftest import RecordingBackend, make_facet, make_hit, make_response

FULL_FILTER = "(category:=`Electronics` || category:=`Books`) && brand:=`Apple` && price:>=100"


@pytest.fixture
def state():
    """Two disjunctive selections plus a numeric filter."""
    return FilterState(
        disjunctive_facets={"category": ["Electronics", "Books"], "brand": ["Apple"]},
        numeric_filters={"price": {"min": 100}},
    )


@pytest.fixture
def base():
    return SearchParams(q="laptop", query_by="name", facet_by="category,brand,color", page=2, per_page=10)


class TestPlanning:
    """Request batch construction."""

    def test_primary_carries_full_filter(self, state, base):
        plan = plan_facet_queries("products", base, state, {"category", "brand"})
        assert plan.primary.filter_by == FULL_FILTER
        assert plan.primary.facet_by == "category,brand,color"
        assert plan.primary.page == 2

    def test_one_auxiliary_per_selected_flagged_field(self, state, base):
        plan = plan_facet_queries("products", base, state, {"category", "brand", "color"})
        assert plan.disjunctive_fields == ["category", "brand"]
        assert plan.request_count == 3

    def test_auxiliary_omits_own_clause_and_keeps_others(self, state, base):
        plan = plan_facet_queries("products", base, state, {"category", "brand"})
        by_field = {q.field: q.params for q in plan.auxiliary}
        assert by_field["category"].filter_by == "brand:=`Apple` && price:>=100"
        assert by_field["brand"].filter_by == "(category:=`Electronics` || category:=`Books`) && price:>=100"

    def test_auxiliary_shape(self, state, base):
        params = build_auxiliary_params(base, state, "category")
        assert params.q == "laptop"
        assert params.query_by == "name"
        assert params.facet_by == "category"
        assert params.page == 1
        assert params.per_page == 0

    def test_auxiliary_without_other_filters(self, base):
        state = FilterState(disjunctive_facets={"category": ["Books"]})
        assert build_auxiliary_params(base, state, "category").filter_by is None

    def test_unflagged_field_gets_no_auxiliary(self, state, base):
        plan = plan_facet_queries("products", base, state, {"brand"})
        assert plan.disjunctive_fields == ["brand"]

    def test_disabled_sends_primary_only(self, state, base):
        plan = plan_facet_queries("products", base, state, {"category", "brand"}, enabled=False)
        assert plan.request_count == 1
        assert plan.requests() == [plan.primary]

    def test_requests_order(self, state, base):
        plan = plan_facet_queries("products", base, state, {"category", "brand"})
        requests = plan.requests()
        assert requests[0] is plan.primary
        assert [r.facet_by for r in requests[1:]] == ["category", "brand"]


class TestReconcile:
    """Substituting per-field counts."""

    def test_substitutes_disjunctive_counts(self, state, base):
        plan = plan_facet_queries("products", base, state, {"category"})
        primary = make_response(
            facets=[
                make_facet("category", {"Electronics": 5, "Books": 2}),
                make_facet("color", {"red": 3}),
            ]
        )
        aux = make_response(facets=[make_facet("category", {"Electronics": 9, "Books": 4, "Toys": 7})])
        counts, failures = reconcile_facet_counts(plan, primary, [aux])
        assert failures == {}
        assert [v.value for v in counts.counts("category")] == ["Electronics", "Books", "Toys"]
        assert counts.counts("color") == [FacetValue("red", 3)]

    def test_failed_auxiliary_omits_field(self, state, base):
        plan = plan_facet_queries("products", base, state, {"category"})
        primary = make_response(facets=[make_facet("category", {"Electronics": 5})])
        counts, failures = reconcile_facet_counts(plan, primary, [NetworkError("reset")])
        assert "category" not in counts
        assert failures["category"].error_type == "NetworkError"
        assert failures["category"].retryable is True

    def test_missing_facet_in_auxiliary_is_empty(self, state, base):
        plan = plan_facet_queries("products", base, state, {"category"})
        counts, _ = reconcile_facet_counts(plan, make_response(), [make_response()])
        assert counts.get("category") == FacetCounts(field_name="category")

    def test_numeric_fields_get_stats(self, base):
        state = FilterState(disjunctive_facets={"rating": ["4"]}, field_types={"rating": "int32"})
        plan = plan_facet_queries("products", base, state, {"rating"})
        aux = make_response(facets=[make_facet("rating", {"3": 1, "4": 2, "5": 1})])
        counts, _ = reconcile_facet_counts(plan, make_response(), [aux], state.field_types)
        stats = counts.stats("rating")
        assert stats.min == 3
        assert stats.max == 5
        assert stats.avg == 4.0

    def test_outcome_count_must_match(self, state, base):
        plan = plan_facet_queries("products", base, state, {"category", "brand"})
        with pytest.raises(ValueError):
            reconcile_facet_counts(plan, make_response(), [make_response()])


class TestDisjunctiveSearch:
    """One orchestrated invocation against a backend."""

    async def test_full_search(self, state, base):
        backend = RecordingBackend(
            {
                ("products", "category,brand,color"): make_response(
                    [make_hit("1", 10), make_hit("2", 5)],
                    found=12,
                    facets=[make_facet("category", {"Electronics": 5}), make_facet("color", {"red": 2})],
                ),
                ("products", "category"): make_response(
                    facets=[make_facet("category", {"Electronics": 9, "Books": 4})]
                ),
                ("products", "brand"): make_response(facets=[make_facet("brand", {"Apple": 3, "Dell": 6})]),
            }
        )
        orchestrator = DisjunctiveFacetOrchestrator(backend)
        result = await orchestrator.search("products", base, state, {"category", "brand"})

        assert len(backend.calls) == 3
        assert result.found == 12
        assert [h.document["id"] for h in result.hits] == ["1", "2"]
        assert result.page == 2
        assert result.per_page == 10
        assert result.facet_counts.counts("category") == [FacetValue("Electronics", 9), FacetValue("Books", 4)]
        assert [v.value for v in result.facet_counts.counts("brand")] == ["Apple", "Dell"]
        assert result.facet_counts.counts("color") == [FacetValue("red", 2)]
        assert not result.has_partial_failure

    async def test_auxiliary_failure_is_partial(self, state, base):
        backend = RecordingBackend(
            {
                ("products", "category,brand,color"): make_response(
                    [make_hit("1")], facets=[make_facet("category", {"Electronics": 5})]
                ),
                ("products", "category"): ServiceUnavailableError("down", status_code=503),
            }
        )
        result = await DisjunctiveFacetOrchestrator(backend).search("products", base, state, {"category"})
        assert result.found == 1
        assert "category" not in result.facet_counts
        assert result.has_partial_failure
        assert result.facet_failures["category"].status_code == 503

    async def test_primary_failure_raises(self, state, base):
        error = ServiceError("bad request", status_code=400)
        backend = RecordingBackend({("products", "category,brand,color"): error})
        search = DisjunctiveFacetOrchestrator(backend).start("products", base, state, {"category"})
        with pytest.raises(ServiceError) as exc_info:
            await search.run()
        assert exc_info.value is error
        assert search.phase is OrchestratorPhase.SETTLED
        # Auxiliary queries still ran to completion
        assert len(backend.calls) == 2

    async def test_phase_transitions(self, state, base):
        search = DisjunctiveFacetOrchestrator(RecordingBackend()).start("products", base, state, {"brand"})
        assert search.phase is OrchestratorPhase.IDLE
        await search.run()
        assert search.transitions == [
            OrchestratorPhase.IDLE,
            OrchestratorPhase.FANNED_OUT,
            OrchestratorPhase.MERGING,
            OrchestratorPhase.SETTLED,
        ]

    async def test_run_only_once(self, state, base):
        search = DisjunctiveSearch(RecordingBackend(), plan_facet_queries("products", base, state), state)
        await search.run()
        with pytest.raises(RuntimeError):
            await search.run()

    async def test_disabled_orchestrator(self, state, base, mock_backend):
        orchestrator = DisjunctiveFacetOrchestrator(mock_backend, enabled=False)
        await orchestrator.search("products", base, state, {"category", "brand"})
        assert mock_backend.search.await_count == 1
        collection, params = mock_backend.search.await_args.args
        assert collection == "products"
        assert params.filter_by == FULL_FILTER

    async def test_no_selection_single_request(self, base, mock_backend):
        await DisjunctiveFacetOrchestrator(mock_backend).search("products", base, FilterState(), {"category"})
        assert mock_backend.search.await_count == 1
        assert mock_backend.search.await_args.args[1].filter_by is None
