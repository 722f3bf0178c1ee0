"""
Multi-Collection Searcher

Runs one query against several collections concurrently and merges the
settled results.

Each collection gets its own request built from its CollectionSearchConfig:
query fields, per-collection hit limit, sort and filter overrides, facets
(capped at 100 values), field selection and optional highlighting. A
collection whose query fails is reported in ``errors_by_collection`` and
never aborts the others.

Example:
    >>> searcher = MultiCollectionSearcher(client)
    >>> result = await searcher.search(
    ...     MultiCollectionRequest(
    ...         query="laptop",
    ...         collections=(
    ...             CollectionSearchConfig("products", query_by="name", weight=2.0),
    ...             CollectionSearchConfig("categories", query_by="name"),
    ...         ),
    ...         merge_strategy=MergeStrategy.RELEVANCE,
    ...     )
    ... )
    >>> [h.source_collection for h in result.hits]
"""

from __future__ import annotations

import logging
import time

from typesense_search.domain.entities.multi_collection import (
    CollectionResult,
    CollectionSearchConfig,
    MergedHit,
    MultiCollectionRequest,
    MultiCollectionSearchResult,
    ResultMode,
)
from typesense_search.domain.entities.search import SearchParams
from typesense_search.shared.async_utils import gather_with_errors

from .backend import SearchBackend
from .result_merger import merge

logger = logging.getLogger(__name__)

MULTI_COLLECTION_MAX_FACET_VALUES = 100


def build_collection_params(
    config: CollectionSearchConfig,
    request: MultiCollectionRequest,
    *,
    default_query_by: str = "*",
) -> SearchParams:
    """Search parameters for one collection of a multi-collection request."""
    query_by = config.query_by or default_query_by
    params = SearchParams(
        q=request.query,
        query_by=query_by,
        page=1,
        per_page=config.max_results,
        sort_by=config.sort_by or None,
        filter_by=config.filter_by or None,
    )

    if config.include_facets and config.facet_by:
        params = params.replace(facet_by=config.facet_by, max_facet_values=MULTI_COLLECTION_MAX_FACET_VALUES)

    if config.include_fields:
        params = params.replace(include_fields=config.include_fields)
    elif config.exclude_fields:
        params = params.replace(exclude_fields=config.exclude_fields)

    if request.enable_highlighting:
        params = params.replace(highlight_fields=query_by, highlight_full_fields=query_by)
        if request.highlight_config is not None:
            highlight = request.highlight_config
            params = params.replace(
                highlight_start_tag=highlight.start_tag,
                highlight_end_tag=highlight.end_tag,
                highlight_affix_num_tokens=highlight.affix_num_tokens,
            )

    return params


class MultiCollectionSearcher:
    """Concurrent per-collection search plus merge."""

    def __init__(self, backend: SearchBackend, *, default_query_by: str = "*"):
        self._backend = backend
        self.default_query_by = default_query_by

    async def _search_collection(self, config: CollectionSearchConfig, params: SearchParams) -> CollectionResult:
        start = time.perf_counter()
        try:
            response = await self._backend.search(config.collection, params)
        except Exception as e:
            elapsed = (time.perf_counter() - start) * 1000.0
            logger.warning(f"Search on collection '{config.collection}' failed: {type(e).__name__}: {e}")
            return CollectionResult(config=config, error=e, search_time_ms=elapsed)
        elapsed = (time.perf_counter() - start) * 1000.0
        return CollectionResult(config=config, response=response, search_time_ms=elapsed)

    async def search(self, request: MultiCollectionRequest) -> MultiCollectionSearchResult:
        start = time.perf_counter()
        configs = request.collections
        logger.debug(f"Multi-collection search over {len(configs)} collections: {request.query!r}")

        results = await gather_with_errors(
            *(
                self._search_collection(
                    config,
                    build_collection_params(config, request, default_query_by=self.default_query_by),
                )
                for config in configs
            )
        )

        merged = merge(
            results,
            request.merge_strategy,
            global_max_results=request.global_max_results,
            normalize=request.normalize_scores,
        )

        mode = request.result_mode
        hits: list[MergedHit] = []
        hits_by_collection: dict[str, list[MergedHit]] | None = None
        if mode in (ResultMode.INTERLEAVED, ResultMode.BOTH):
            hits = merged.hits
        if mode in (ResultMode.PER_COLLECTION, ResultMode.BOTH):
            hits_by_collection = {}
            for result in results:
                if result.succeeded:
                    name = result.config.collection
                    own = [h for h in merged.scored_hits if h.source_collection == name]
                    hits_by_collection[name] = own[: result.config.max_results]

        included = {r.config.collection: 0 for r in results if r.succeeded}
        if hits_by_collection is not None:
            included.update({name: len(own) for name, own in hits_by_collection.items()})
        else:
            for hit in hits:
                included[hit.source_collection] += 1

        facets = {
            r.config.collection: r.response.facet_counts
            for r in results
            if r.succeeded and r.config.include_facets and r.response.facet_counts
        }

        found = len(merged.scored_hits) if mode is ResultMode.PER_COLLECTION else len(hits)
        return MultiCollectionSearchResult(
            hits=hits,
            found=found,
            query=request.query,
            merge_strategy=request.merge_strategy,
            result_mode=mode,
            search_time_ms=(time.perf_counter() - start) * 1000.0,
            total_found_by_collection=merged.total_found_by_collection,
            included_by_collection=included,
            search_time_by_collection=merged.search_time_by_collection,
            errors_by_collection=merged.errors_by_collection,
            facets_by_collection=facets,
            hits_by_collection=hits_by_collection,
        )
