"""
Multi-Collection Result Merger

Merges independently ranked per-collection hit lists into one list.

Every hit is scored the same way whatever the strategy:
1. collection_rank: 1-based position inside its own collection's list
2. normalized_score: raw score rescaled to [0, 1] with that collection's own
   min/max (a collection whose scores are all equal, including a single
   hit, normalizes to 1.0)
3. merged_score: normalized_score × collection weight

Strategies:
- relevance: merged_score desc, then weight desc, then collection_rank asc
- collection-weighted: same ordering as relevance
- round-robin: one hit per collection per round, collections in weight-desc
  order, exhausted collections skipped
- collection-priority: whole collections by weight desc

Ties that survive every key fall back to collection declaration order, so
the same inputs always produce the same list. ``global_max_results`` is
applied after ordering.

Architecture Decision:
    merge() is a pure function over settled CollectionResults. It does NOT
    make API calls; MultiCollectionSearcher runs the queries.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from typesense_search.domain.entities.multi_collection import (
    CollectionResult,
    MergedHit,
    MergeResult,
    MergeStrategy,
)
from typesense_search.domain.entities.search import RequestFailure, SearchHit

logger = logging.getLogger(__name__)


def normalize_scores(scores: Sequence[float]) -> list[float]:
    """Min-max rescale to [0, 1]; equal scores all map to 1.0."""
    if not scores:
        return []
    low, high = min(scores), max(scores)
    if high == low:
        return [1.0] * len(scores)
    span = high - low
    return [(s - low) / span for s in scores]


def score_collection(result: CollectionResult, *, normalize: bool = True) -> list[MergedHit]:
    """MergedHits for one successful collection, in the collection's own order."""
    config = result.config
    hits: tuple[SearchHit, ...] = result.response.hits if result.response else ()
    raw_scores = [hit.score for hit in hits]
    normalized = normalize_scores(raw_scores) if normalize else list(raw_scores)
    weight = float(config.weight)

    return [
        MergedHit(
            document=hit.document,
            source_collection=config.collection,
            collection_rank=rank,
            raw_score=raw,
            normalized_score=norm,
            merged_score=norm * weight,
            collection_weight=weight,
            highlight=hit.highlight,
            namespace=config.namespace,
            hit=hit,
        )
        for rank, (hit, raw, norm) in enumerate(zip(hits, raw_scores, normalized, strict=True), start=1)
    ]


def _priority_order(names: list[str], weights: dict[str, float]) -> list[str]:
    # sorted() is stable: equal weights keep declaration order
    return sorted(names, key=lambda name: -weights[name])


def _order_by_relevance(hits: list[MergedHit], declaration: dict[str, int]) -> list[MergedHit]:
    return sorted(
        hits,
        key=lambda h: (
            -h.merged_score,
            -h.collection_weight,
            h.collection_rank,
            declaration[h.source_collection],
        ),
    )


def _order_round_robin(grouped: dict[str, list[MergedHit]], order: list[str]) -> list[MergedHit]:
    merged: list[MergedHit] = []
    depth = max((len(grouped[name]) for name in order), default=0)
    for index in range(depth):
        for name in order:
            hits = grouped[name]
            if index < len(hits):
                merged.append(hits[index])
    return merged


def _order_by_priority(grouped: dict[str, list[MergedHit]], order: list[str]) -> list[MergedHit]:
    return [hit for name in order for hit in grouped[name]]


def order_hits(
    grouped: dict[str, list[MergedHit]],
    strategy: MergeStrategy,
    weights: dict[str, float],
) -> list[MergedHit]:
    """Order scored hits; ``grouped`` must be in collection declaration order."""
    names = list(grouped)
    if strategy in (MergeStrategy.RELEVANCE, MergeStrategy.COLLECTION_WEIGHTED):
        declaration = {name: i for i, name in enumerate(names)}
        return _order_by_relevance([h for name in names for h in grouped[name]], declaration)
    order = _priority_order(names, weights)
    if strategy is MergeStrategy.ROUND_ROBIN:
        return _order_round_robin(grouped, order)
    return _order_by_priority(grouped, order)


def merge(
    results: Sequence[CollectionResult],
    strategy: MergeStrategy | str = MergeStrategy.RELEVANCE,
    *,
    global_max_results: int | None = None,
    normalize: bool = True,
) -> MergeResult:
    """
    Merge settled per-collection results.

    Args:
        results: One CollectionResult per collection, in declaration order
        strategy: Merge strategy
        global_max_results: Truncate the ordered list to this many hits
        normalize: Rescale raw scores per collection; when False the raw
            score is used as the normalized score

    Returns:
        MergeResult; a failed collection contributes no hits, its
        ``total_found_by_collection`` entry is None and it has an entry in
        ``errors_by_collection``.
    """
    strategy = MergeStrategy.parse(strategy)
    grouped: dict[str, list[MergedHit]] = {}
    weights: dict[str, float] = {}
    total_found: dict[str, int | None] = {}
    search_time: dict[str, float] = {}
    errors: dict[str, RequestFailure] = {}

    for result in results:
        name = result.config.collection
        weights[name] = float(result.config.weight)
        search_time[name] = result.search_time_ms

        if result.error is not None or result.response is None:
            total_found[name] = None
            grouped[name] = []
            if result.error is not None:
                errors[name] = RequestFailure.from_exception(name, result.error)
            else:
                errors[name] = RequestFailure(target=name, error_type="MissingResponse", message="no response")
            logger.debug(f"Collection '{name}' failed: {errors[name].message}")
            continue

        total_found[name] = result.response.found
        grouped[name] = score_collection(result, normalize=normalize)

    ordered = order_hits(grouped, strategy, weights)
    if global_max_results is not None:
        ordered = ordered[:global_max_results]

    logger.debug(
        f"Merged {sum(len(h) for h in grouped.values())} hits from {len(grouped)} collections "
        f"({strategy.value}), kept {len(ordered)}"
    )
    return MergeResult(
        hits=ordered,
        total_found_by_collection=total_found,
        search_time_by_collection=search_time,
        errors_by_collection=errors,
        scored_hits=[h for hits in grouped.values() for h in hits],
    )
