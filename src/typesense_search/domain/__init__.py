"""
Domain Layer - Core entities for faceted search.

Contains:
- entities: FilterState, search request/response types, multi-collection types
"""

from .entities import (
    CollectionSearchConfig,
    FacetCountResult,
    FilterState,
    MergedHit,
    MergeStrategy,
    SearchParams,
    SearchResponse,
    SearchResult,
)

__all__ = [
    "FilterState",
    "SearchParams",
    "SearchResponse",
    "SearchResult",
    "FacetCountResult",
    "CollectionSearchConfig",
    "MergedHit",
    "MergeStrategy",
]
