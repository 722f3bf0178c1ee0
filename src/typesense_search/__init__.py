"""
Typesense Search Core - Client-side faceted search for Typesense.

Builds filter_by / sort_by expressions from structured selections, keeps
facet counts correct for OR-semantics ("disjunctive") facets by issuing one
auxiliary query per selected field, and merges ranked hits from several
collections into one list.

Usage:
    from typesense_search import (
        SearchService,
        TypesenseClient,
        TypesenseSettings,
        create_initial_state,
        search_reducer,
        SetDisjunctiveFacets,
    )

    state = search_reducer(
        create_initial_state(disjunctive_fields=frozenset({"category"})),
        SetDisjunctiveFacets({"category": ["Electronics", "Books"]}),
    )
    async with TypesenseClient(TypesenseSettings.from_env()) as client:
        result = await SearchService(client).search("products", state, query_by="name")

Features:
    - Filter expression builder (equality, OR-groups, numeric/date ranges, geo radius)
    - Sort expression builder
    - Disjunctive facet count orchestration
    - Multi-collection merge (relevance, weighted, round-robin, priority)
    - Immutable search state reducer
"""

from .application.filters import build_filter_string, build_sort_string
from .application.search import (
    DisjunctiveFacetOrchestrator,
    MultiCollectionSearcher,
    SearchService,
    SearchState,
    SetDisjunctiveFacets,
    create_initial_state,
    merge,
    search_reducer,
)
from .domain.entities import (
    CollectionSearchConfig,
    FilterState,
    MergeStrategy,
    MultiCollectionRequest,
    SearchParams,
    SearchResult,
)
from .infrastructure.typesense import TypesenseClient
from .shared.exceptions import ServiceError, TypesenseSearchError, ValidationError
from .shared.settings import SearchDefaults, TypesenseSettings

__version__ = "0.1.0"

__all__ = [
    # Builders
    "build_filter_string",
    "build_sort_string",
    # State
    "FilterState",
    "SearchState",
    "search_reducer",
    "create_initial_state",
    "SetDisjunctiveFacets",
    # Search
    "SearchService",
    "DisjunctiveFacetOrchestrator",
    "MultiCollectionSearcher",
    "merge",
    "SearchParams",
    "SearchResult",
    "CollectionSearchConfig",
    "MultiCollectionRequest",
    "MergeStrategy",
    # Transport
    "TypesenseClient",
    "TypesenseSettings",
    "SearchDefaults",
    # Errors
    "TypesenseSearchError",
    "ServiceError",
    "ValidationError",
]
