"""
Disjunctive Facet Orchestrator

When a facet field's own OR-selection is part of the filter, asking the
service for that field's counts returns counts already restricted to the
selected values, so unselected options collapse toward zero. For each
disjunctive field with a selection, one auxiliary query is sent whose filter
drops only that field's clause while keeping every other active filter. That
field's counts are taken from its auxiliary response; all other fields use
the primary response.

Architecture Decision:
    Planning and reconciliation are pure functions over one FilterState
    snapshot. DisjunctiveSearch runs a single invocation and owns its phase
    (IDLE → FANNED_OUT → MERGING → SETTLED); the orchestrator itself keeps no
    per-call state, so one instance can serve concurrent searches.

    All requests of a batch are joined once every one of them has settled.
    A failed auxiliary query omits that field's counts and is reported in
    ``SearchResult.facet_failures``; a failed primary query is raised.

Example:
    >>> orchestrator = DisjunctiveFacetOrchestrator(client)
    >>> result = await orchestrator.search(
    ...     "products",
    ...     SearchParams(q="laptop", query_by="name", facet_by="brand,category"),
    ...     state,
    ...     disjunctive_fields={"brand", "category"},
    ... )
    >>> result.facet_counts.counts("brand")
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum

from typesense_search.application.facets.numeric_ranges import with_numeric_stats
from typesense_search.application.filters.filter_builder import build_filter_string
from typesense_search.domain.entities.filter_state import NUMERIC_FIELD_TYPES, FilterState
from typesense_search.domain.entities.search import (
    FacetCountResult,
    FacetCounts,
    RequestFailure,
    SearchParams,
    SearchResponse,
    SearchResult,
)
from typesense_search.shared.async_utils import gather_with_errors

from .backend import SearchBackend

logger = logging.getLogger(__name__)


class OrchestratorPhase(Enum):
    IDLE = "idle"
    FANNED_OUT = "fanned_out"
    MERGING = "merging"
    SETTLED = "settled"


@dataclass(frozen=True)
class AuxiliaryQuery:
    """Count query for one disjunctive field, without that field's own clause."""

    field: str
    params: SearchParams


@dataclass(frozen=True)
class FacetQueryPlan:
    """The primary request plus one auxiliary request per disjunctive field."""

    collection: str
    primary: SearchParams
    auxiliary: tuple[AuxiliaryQuery, ...] = ()

    @property
    def request_count(self) -> int:
        return 1 + len(self.auxiliary)

    @property
    def disjunctive_fields(self) -> list[str]:
        return [q.field for q in self.auxiliary]

    def requests(self) -> list[SearchParams]:
        """All requests; index 0 is the primary, index i+1 is ``auxiliary[i]``."""
        return [self.primary, *(q.params for q in self.auxiliary)]


def build_auxiliary_params(base: SearchParams, state: FilterState, field_name: str) -> SearchParams:
    """
    Parameters for ``field_name``'s count query.

    Same query and every other filter as the primary request, facets only
    for this field, and no hits.
    """
    return base.replace(
        filter_by=build_filter_string(state.without_disjunctive(field_name)) or None,
        facet_by=field_name,
        page=1,
        per_page=0,
    )


def plan_facet_queries(
    collection: str,
    base: SearchParams,
    state: FilterState,
    disjunctive_fields: Iterable[str] = (),
    *,
    enabled: bool = True,
) -> FacetQueryPlan:
    """
    Build the request batch for one search.

    Only fields that are flagged disjunctive and currently have a selection
    get an auxiliary query; a flagged field with no selection is not
    self-suppressed, so its primary counts are already correct.
    """
    primary = base.replace(filter_by=build_filter_string(state) or None)
    if not enabled:
        return FacetQueryPlan(collection=collection, primary=primary)

    auxiliary = tuple(
        AuxiliaryQuery(field=name, params=build_auxiliary_params(base, state, name))
        for name in state.active_disjunctive_fields(disjunctive_fields)
    )
    return FacetQueryPlan(collection=collection, primary=primary, auxiliary=auxiliary)


def reconcile_facet_counts(
    plan: FacetQueryPlan,
    primary: SearchResponse,
    auxiliary_outcomes: Sequence[SearchResponse | BaseException],
    field_types: Mapping[str, str] | None = None,
) -> tuple[FacetCountResult, dict[str, RequestFailure]]:
    """
    Substitute each disjunctive field's counts from its own auxiliary response.

    Outcomes are matched to fields by position. A failed auxiliary query
    removes that field from the result instead of leaving self-suppressed
    primary counts in place.
    """
    facets: dict[str, FacetCounts] = {f.field_name: f for f in primary.facet_counts}
    failures: dict[str, RequestFailure] = {}

    for query, outcome in zip(plan.auxiliary, auxiliary_outcomes, strict=True):
        if isinstance(outcome, BaseException):
            facets.pop(query.field, None)
            failures[query.field] = RequestFailure.from_exception(query.field, outcome)
            continue
        facets[query.field] = outcome.facet(query.field) or FacetCounts(field_name=query.field)

    types = field_types or {}
    ordered = [
        with_numeric_stats(facet) if types.get(name) in NUMERIC_FIELD_TYPES else facet
        for name, facet in facets.items()
    ]
    return FacetCountResult(ordered), failures


class DisjunctiveSearch:
    """One orchestrated search invocation."""

    def __init__(self, backend: SearchBackend, plan: FacetQueryPlan, state: FilterState):
        self._backend = backend
        self.plan = plan
        self.state = state
        self.phase = OrchestratorPhase.IDLE
        self.transitions: list[OrchestratorPhase] = [OrchestratorPhase.IDLE]

    def _enter(self, phase: OrchestratorPhase) -> None:
        logger.debug(f"[{self.plan.collection}] {self.phase.value} -> {phase.value}")
        self.phase = phase
        self.transitions.append(phase)

    async def run(self) -> SearchResult:
        """
        Dispatch the batch, join it, and reconcile.

        Raises:
            The primary request's exception when the primary query fails.
        """
        if self.phase is not OrchestratorPhase.IDLE:
            raise RuntimeError("DisjunctiveSearch can only run once")

        requests = self.plan.requests()
        self._enter(OrchestratorPhase.FANNED_OUT)
        logger.debug(f"[{self.plan.collection}] Dispatching {len(requests)} request(s)")
        outcomes = await gather_with_errors(
            *(self._backend.search(self.plan.collection, params) for params in requests),
            return_exceptions=True,
        )

        self._enter(OrchestratorPhase.MERGING)
        primary, auxiliary = outcomes[0], outcomes[1:]
        if isinstance(primary, BaseException):
            self._enter(OrchestratorPhase.SETTLED)
            raise primary

        facet_counts, failures = reconcile_facet_counts(self.plan, primary, auxiliary, self.state.field_types)
        for name, failure in failures.items():
            logger.warning(f"[{self.plan.collection}] Facet count query for '{name}' failed: {failure.message}")

        self._enter(OrchestratorPhase.SETTLED)
        return SearchResult(
            hits=list(primary.hits),
            found=primary.found,
            page=self.plan.primary.page,
            per_page=self.plan.primary.per_page,
            search_time_ms=primary.search_time_ms,
            facet_counts=facet_counts,
            out_of=primary.out_of,
            facet_failures=failures,
            request=self.plan.primary,
        )


class DisjunctiveFacetOrchestrator:
    """
    Issues the primary query plus the per-field count queries.

    With ``enabled=False`` only the primary query is sent and callers accept
    self-suppressed counts for disjunctive fields in exchange for one round
    trip.
    """

    def __init__(self, backend: SearchBackend, *, enabled: bool = True):
        self._backend = backend
        self.enabled = enabled

    def plan(
        self,
        collection: str,
        base: SearchParams,
        state: FilterState,
        disjunctive_fields: Iterable[str] = (),
    ) -> FacetQueryPlan:
        return plan_facet_queries(collection, base, state, disjunctive_fields, enabled=self.enabled)

    def start(
        self,
        collection: str,
        base: SearchParams,
        state: FilterState,
        disjunctive_fields: Iterable[str] = (),
    ) -> DisjunctiveSearch:
        """Prepare an invocation without running it."""
        return DisjunctiveSearch(self._backend, self.plan(collection, base, state, disjunctive_fields), state)

    async def search(
        self,
        collection: str,
        base: SearchParams,
        state: FilterState,
        disjunctive_fields: Iterable[str] = (),
    ) -> SearchResult:
        return await self.start(collection, base, state, disjunctive_fields).run()
