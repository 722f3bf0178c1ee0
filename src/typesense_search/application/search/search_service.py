"""
Single-collection search service.

Turns a SearchState into request parameters and runs it through the
disjunctive facet orchestrator. The FilterState snapshot is taken once when
``search`` is called; later reducer actions produce new states and cannot
affect an invocation already in flight.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from typesense_search.domain.entities.search import SearchParams, SearchResult
from typesense_search.shared.settings import SearchDefaults

from .backend import SearchBackend
from .disjunctive import DisjunctiveFacetOrchestrator
from .state_reducer import SearchState

logger = logging.getLogger(__name__)


class SearchService:
    """
    Facade over the orchestrator for one collection at a time.

    Example:
        service = SearchService(client, SearchDefaults(per_page=24))
        result = await service.search("products", state, query_by="name,description", facet_by="brand,price")
    """

    def __init__(self, backend: SearchBackend, defaults: SearchDefaults | None = None):
        self.defaults = defaults or SearchDefaults()
        self.orchestrator = DisjunctiveFacetOrchestrator(
            backend,
            enabled=self.defaults.enable_disjunctive_facet_queries,
        )

    def build_params(
        self,
        state: SearchState,
        *,
        query_by: str | None = None,
        facet_by: str | None = None,
    ) -> SearchParams:
        """
        Base parameters for ``state``, without ``filter_by``.

        When ``facet_by`` is not given, the flagged disjunctive fields are
        faceted in sorted order.
        """
        if facet_by is None and state.disjunctive_fields:
            facet_by = ",".join(sorted(state.disjunctive_fields))
        return SearchParams(
            q=state.query or "*",
            query_by=query_by or self.defaults.query_by,
            sort_by=state.sort_expression or None,
            facet_by=facet_by or None,
            max_facet_values=self.defaults.max_facet_values if facet_by else None,
            page=state.page,
            per_page=state.per_page,
        )

    async def search(
        self,
        collection: str,
        state: SearchState,
        *,
        query_by: str | None = None,
        facet_by: str | None = None,
        disjunctive_fields: Iterable[str] | None = None,
    ) -> SearchResult:
        """
        Run one search.

        Args:
            collection: Collection name
            state: Current search state
            query_by: Fields to search (defaults to SearchDefaults.query_by)
            facet_by: Comma-separated facet fields
            disjunctive_fields: Fields with OR semantics (defaults to
                ``state.disjunctive_fields``)

        Raises:
            ServiceError: the primary query failed
        """
        snapshot = state.snapshot()
        flagged = state.disjunctive_fields if disjunctive_fields is None else frozenset(disjunctive_fields)
        base = self.build_params(state, query_by=query_by, facet_by=facet_by)
        logger.debug(f"Searching '{collection}' (q={base.q!r}, page={base.page}, disjunctive={sorted(flagged)})")
        return await self.orchestrator.search(collection, base, snapshot, flagged)
