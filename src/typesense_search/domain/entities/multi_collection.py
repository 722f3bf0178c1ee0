"""
Multi-collection search entities.

A multi-collection search queries several Typesense collections
independently and merges the ranked hit lists into one. Each merged hit
keeps its provenance (collection, rank inside that collection, raw and
normalized scores) next to the merged score that drives ordering.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from typesense_search.shared.exceptions import InvalidParameterError

from .search import FacetCounts, RequestFailure, SearchHit, SearchResponse


class MergeStrategy(Enum):
    """
    How hits from several collections are ordered into one list.

    RELEVANCE and COLLECTION_WEIGHTED share the same sort key; they differ
    only in which score a consumer is expected to display.
    """

    RELEVANCE = "relevance"
    COLLECTION_WEIGHTED = "collection-weighted"
    ROUND_ROBIN = "round-robin"
    COLLECTION_PRIORITY = "collection-priority"

    @classmethod
    def parse(cls, value: MergeStrategy | str) -> MergeStrategy:
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower().replace("_", "-")
        for strategy in cls:
            if strategy.value == normalized:
                return strategy
        raise InvalidParameterError(
            "merge_strategy",
            value,
            " | ".join(s.value for s in cls),
        )


class ResultMode(Enum):
    """Shape of a multi-collection result."""

    INTERLEAVED = "interleaved"
    PER_COLLECTION = "per_collection"
    BOTH = "both"


@dataclass(frozen=True)
class HighlightConfig:
    start_tag: str = "<mark>"
    end_tag: str = "</mark>"
    affix_num_tokens: int = 4


@dataclass(frozen=True)
class CollectionSearchConfig:
    """
    Per-collection settings for one multi-collection search.

    ``weight`` scales the collection's normalized scores (>= 0, default 1.0);
    ``max_results`` is the per-collection hit limit requested from the service.
    """

    collection: str
    query_by: str | None = None
    weight: float = 1.0
    max_results: int = 20
    filter_by: str | None = None
    sort_by: str | None = None
    namespace: str | None = None
    include_facets: bool = False
    facet_by: str | None = None
    include_fields: str | None = None
    exclude_fields: str | None = None

    def __post_init__(self) -> None:
        if not self.collection:
            raise InvalidParameterError("collection", self.collection, "a non-empty collection name")
        if self.weight is None:
            object.__setattr__(self, "weight", 1.0)
        if not isinstance(self.weight, (int, float)) or isinstance(self.weight, bool) or self.weight < 0:
            raise InvalidParameterError("weight", self.weight, "a number >= 0")
        if not isinstance(self.max_results, int) or self.max_results <= 0:
            raise InvalidParameterError("max_results", self.max_results, "a positive integer")

    @property
    def name(self) -> str:
        return self.collection


@dataclass(frozen=True)
class MultiCollectionRequest:
    """A search across several collections."""

    query: str
    collections: tuple[CollectionSearchConfig, ...]
    merge_strategy: MergeStrategy = MergeStrategy.RELEVANCE
    global_max_results: int | None = None
    normalize_scores: bool = True
    result_mode: ResultMode = ResultMode.INTERLEAVED
    enable_highlighting: bool = False
    highlight_config: HighlightConfig | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "collections", tuple(self.collections))
        object.__setattr__(self, "merge_strategy", MergeStrategy.parse(self.merge_strategy))
        if not isinstance(self.result_mode, ResultMode):
            object.__setattr__(self, "result_mode", ResultMode(self.result_mode))
        if self.global_max_results is not None and self.global_max_results < 0:
            raise InvalidParameterError("global_max_results", self.global_max_results, "a non-negative integer")
        names = [c.collection for c in self.collections]
        if len(names) != len(set(names)):
            raise InvalidParameterError("collections", names, "unique collection names")


@dataclass(frozen=True)
class CollectionResult:
    """Settled outcome of one collection's query: a response or an error."""

    config: CollectionSearchConfig
    response: SearchResponse | None = None
    error: BaseException | None = None
    search_time_ms: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.response is not None


@dataclass(frozen=True)
class MergedHit:
    """A hit placed in the merged list, with its provenance and scores."""

    document: dict[str, Any]
    source_collection: str
    collection_rank: int
    raw_score: float
    normalized_score: float
    merged_score: float
    collection_weight: float
    highlight: dict[str, Any] = field(default_factory=dict)
    namespace: str | None = None
    hit: SearchHit | None = None


@dataclass
class MergeResult:
    """
    Output of the merger.

    ``total_found_by_collection`` maps a failed collection to ``None`` so it
    stays distinguishable from a collection that legitimately found nothing.
    """

    hits: list[MergedHit]
    total_found_by_collection: dict[str, int | None]
    search_time_by_collection: dict[str, float]
    errors_by_collection: dict[str, RequestFailure] = field(default_factory=dict)
    scored_hits: list[MergedHit] = field(default_factory=list)

    @property
    def failed_collections(self) -> list[str]:
        return [name for name, found in self.total_found_by_collection.items() if found is None]

    def is_failed(self, collection: str) -> bool:
        return collection in self.total_found_by_collection and self.total_found_by_collection[collection] is None


@dataclass
class MultiCollectionSearchResult:
    """Result of one multi-collection search invocation."""

    hits: list[MergedHit]
    found: int
    query: str
    merge_strategy: MergeStrategy
    result_mode: ResultMode
    search_time_ms: float
    total_found_by_collection: dict[str, int | None]
    included_by_collection: dict[str, int]
    search_time_by_collection: dict[str, float]
    errors_by_collection: dict[str, RequestFailure] = field(default_factory=dict)
    facets_by_collection: dict[str, tuple[FacetCounts, ...]] = field(default_factory=dict)
    hits_by_collection: dict[str, list[MergedHit]] | None = None

    @property
    def has_partial_failure(self) -> bool:
        return bool(self.errors_by_collection)
