"""
Domain entities for the Typesense search core.
"""

from .filter_state import (
    BOOLEAN_FIELD_TYPES,
    NUMERIC_FIELD_TYPES,
    DateRange,
    FilterKind,
    FilterState,
    GeoRadius,
    NumericFacetMode,
    NumericRange,
)
from .multi_collection import (
    CollectionResult,
    CollectionSearchConfig,
    HighlightConfig,
    MergedHit,
    MergeResult,
    MergeStrategy,
    MultiCollectionRequest,
    MultiCollectionSearchResult,
    ResultMode,
)
from .search import (
    FacetCountResult,
    FacetCounts,
    FacetStats,
    FacetValue,
    RequestFailure,
    SearchHit,
    SearchParams,
    SearchResponse,
    SearchResult,
)

__all__ = [
    # Filter state
    "FilterState",
    "FilterKind",
    "NumericRange",
    "DateRange",
    "GeoRadius",
    "NumericFacetMode",
    "NUMERIC_FIELD_TYPES",
    "BOOLEAN_FIELD_TYPES",
    # Search
    "SearchParams",
    "SearchHit",
    "SearchResponse",
    "SearchResult",
    "FacetValue",
    "FacetStats",
    "FacetCounts",
    "FacetCountResult",
    "RequestFailure",
    # Multi-collection
    "CollectionSearchConfig",
    "CollectionResult",
    "HighlightConfig",
    "MergedHit",
    "MergeResult",
    "MergeStrategy",
    "MultiCollectionRequest",
    "MultiCollectionSearchResult",
    "ResultMode",
]
