"""
Search orchestration: state reducer, disjunctive facet queries, multi-collection merge.
"""

from .backend import SearchBackend
from .disjunctive import (
    AuxiliaryQuery,
    DisjunctiveFacetOrchestrator,
    DisjunctiveSearch,
    FacetQueryPlan,
    OrchestratorPhase,
    build_auxiliary_params,
    plan_facet_queries,
    reconcile_facet_counts,
)
from .multi_collection import MultiCollectionSearcher, build_collection_params
from .result_merger import merge, normalize_scores, order_hits, score_collection
from .search_service import SearchService
from .state_reducer import (
    AddSortField,
    BatchUpdate,
    ClearAllFilters,
    ClearFilter,
    ClearMultiSort,
    ClearNumericFacetRange,
    RemoveSortField,
    ResetSearch,
    SearchState,
    SetAdditionalFilters,
    SetCustomFilter,
    SetDateFilter,
    SetDisjunctiveFacets,
    SetDisjunctiveFields,
    SetFieldTypes,
    SetMultiSortBy,
    SetNumericFacetMode,
    SetNumericFacetRange,
    SetNumericFilter,
    SetPage,
    SetPerPage,
    SetQuery,
    SetSelectiveFilter,
    SetSortBy,
    ToggleDisjunctiveFacet,
    create_initial_state,
    reduce_actions,
    search_reducer,
)

__all__ = [
    "SearchBackend",
    # Disjunctive facets
    "DisjunctiveFacetOrchestrator",
    "DisjunctiveSearch",
    "FacetQueryPlan",
    "AuxiliaryQuery",
    "OrchestratorPhase",
    "build_auxiliary_params",
    "plan_facet_queries",
    "reconcile_facet_counts",
    # Multi-collection
    "MultiCollectionSearcher",
    "build_collection_params",
    "merge",
    "normalize_scores",
    "order_hits",
    "score_collection",
    # Service
    "SearchService",
    # State
    "SearchState",
    "search_reducer",
    "reduce_actions",
    "create_initial_state",
    "SetQuery",
    "SetPage",
    "SetPerPage",
    "SetSortBy",
    "SetMultiSortBy",
    "AddSortField",
    "RemoveSortField",
    "ClearMultiSort",
    "SetDisjunctiveFacets",
    "ToggleDisjunctiveFacet",
    "SetNumericFilter",
    "SetDateFilter",
    "SetSelectiveFilter",
    "SetCustomFilter",
    "SetAdditionalFilters",
    "ClearFilter",
    "ClearAllFilters",
    "SetNumericFacetMode",
    "SetNumericFacetRange",
    "ClearNumericFacetRange",
    "SetFieldTypes",
    "SetDisjunctiveFields",
    "BatchUpdate",
    "ResetSearch",
]
