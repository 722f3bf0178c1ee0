"""
Search state reducer.

SearchState is the canonical query/filter/sort/pagination state. It is
frozen: ``search_reducer(state, action)`` returns a new state and never
mutates the old one, so a FilterState taken with ``state.snapshot()`` can be
handed to a fan-out batch and stays unchanged while the batch runs.

Invariants kept by every action:
- empty per-field selections are removed, never stored
- any change to filters, query, sort or page size resets ``page`` to 1
- configuration (field types, flagged disjunctive fields, range-mode fields)
  survives RESET_SEARCH

Example:
    >>> state = SearchState()
    >>> state = search_reducer(state, ToggleDisjunctiveFacet("category", "Books"))
    >>> state.filters.disjunctive_facets["category"]
    ('Books',)
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from typesense_search.application.filters.filter_builder import build_filter_string
from typesense_search.application.filters.sort_builder import SortField, build_combined_sort_string, normalize_sort_input
from typesense_search.domain.entities.filter_state import (
    FilterKind,
    FilterState,
    NumericFacetMode,
    NumericRange,
    is_unset_bound,
)
from typesense_search.shared.exceptions import InvalidParameterError

logger = logging.getLogger(__name__)

DEFAULT_PER_PAGE = 20


@dataclass(frozen=True)
class SearchState:
    """Query, filter, sort and pagination state plus per-field configuration."""

    query: str = ""
    filters: FilterState = field(default_factory=FilterState)
    page: int = 1
    per_page: int = DEFAULT_PER_PAGE
    sort_by: str = ""
    multi_sort_by: tuple[SortField, ...] = ()
    disjunctive_fields: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        object.__setattr__(self, "multi_sort_by", tuple(self.multi_sort_by))
        object.__setattr__(self, "disjunctive_fields", frozenset(self.disjunctive_fields))

    def snapshot(self) -> FilterState:
        """Immutable filter snapshot for one search invocation."""
        return self.filters

    @property
    def sort_expression(self) -> str:
        return build_combined_sort_string(self.sort_by, self.multi_sort_by)

    @property
    def filter_expression(self) -> str:
        return build_filter_string(self.filters)

    @property
    def active_filter_count(self) -> int:
        return self.filters.active_filter_count

    @property
    def has_active_filters(self) -> bool:
        return self.filters.has_active_filters


# =============================================================================
# Actions
# =============================================================================


@dataclass(frozen=True)
class SetQuery:
    query: str


@dataclass(frozen=True)
class SetPage:
    page: int


@dataclass(frozen=True)
class SetPerPage:
    per_page: int


@dataclass(frozen=True)
class SetSortBy:
    sort_by: str


@dataclass(frozen=True)
class SetMultiSortBy:
    sorts: Any


@dataclass(frozen=True)
class AddSortField:
    """Append a sort key, or replace the existing key for the same field in place."""

    sort: SortField


@dataclass(frozen=True)
class RemoveSortField:
    field: str


@dataclass(frozen=True)
class ClearMultiSort:
    pass


@dataclass(frozen=True)
class SetDisjunctiveFacets:
    facets: Mapping[str, Iterable[Any]]


@dataclass(frozen=True)
class ToggleDisjunctiveFacet:
    field: str
    value: Any


@dataclass(frozen=True)
class SetNumericFilter:
    field: str
    min: int | float | None = None
    max: int | float | None = None


@dataclass(frozen=True)
class SetDateFilter:
    field: str
    start: Any = None
    end: Any = None


@dataclass(frozen=True)
class SetSelectiveFilter:
    field: str
    value: Any


@dataclass(frozen=True)
class SetCustomFilter:
    field: str
    values: Iterable[Any] | None


@dataclass(frozen=True)
class SetAdditionalFilters:
    expression: str | None


@dataclass(frozen=True)
class ClearFilter:
    field: str
    kind: FilterKind


@dataclass(frozen=True)
class ClearAllFilters:
    """Drop every selection, the passthrough expression included."""


@dataclass(frozen=True)
class SetNumericFacetMode:
    field: str
    mode: NumericFacetMode


@dataclass(frozen=True)
class SetNumericFacetRange:
    field: str
    min: int | float | None = None
    max: int | float | None = None


@dataclass(frozen=True)
class ClearNumericFacetRange:
    field: str


@dataclass(frozen=True)
class SetFieldTypes:
    field_types: Mapping[str, str]


@dataclass(frozen=True)
class SetDisjunctiveFields:
    fields: Iterable[str]


@dataclass(frozen=True)
class BatchUpdate:
    """Apply several top-level changes at once (keys are SearchState / FilterState attribute names)."""

    changes: Mapping[str, Any]


@dataclass(frozen=True)
class ResetSearch:
    pass


# =============================================================================
# Handlers
# =============================================================================

_FILTER_KEYS = frozenset(
    {
        "disjunctive_facets",
        "numeric_filters",
        "date_filters",
        "selective_filters",
        "custom_filters",
        "additional_filters",
    }
)
_STATE_KEYS = frozenset({"query", "page", "per_page", "sort_by", "multi_sort_by"})
_PAGE_RESET_KEYS = (_FILTER_KEYS | _STATE_KEYS) - {"page"}

_KIND_ATTRIBUTE = {
    FilterKind.DISJUNCTIVE: "disjunctive_facets",
    FilterKind.NUMERIC: "numeric_filters",
    FilterKind.DATE: "date_filters",
    FilterKind.SELECTIVE: "selective_filters",
    FilterKind.CUSTOM: "custom_filters",
}


def _with_filters(state: SearchState, **changes: Any) -> SearchState:
    return replace(state, filters=state.filters.with_changes(**changes), page=1)


def _set_entry(state: SearchState, attribute: str, field_name: str, value: Any) -> SearchState:
    entries = dict(getattr(state.filters, attribute))
    entries[field_name] = value
    return _with_filters(state, **{attribute: entries})


def _drop_entry(state: SearchState, attribute: str, field_name: str) -> SearchState:
    entries = {k: v for k, v in getattr(state.filters, attribute).items() if k != field_name}
    return _with_filters(state, **{attribute: entries})


def _positive_int(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise InvalidParameterError(name, value, "a positive integer")
    return value


def _set_query(state: SearchState, action: SetQuery) -> SearchState:
    return replace(state, query=action.query or "", page=1)


def _set_page(state: SearchState, action: SetPage) -> SearchState:
    return replace(state, page=_positive_int("page", action.page))


def _set_per_page(state: SearchState, action: SetPerPage) -> SearchState:
    return replace(state, per_page=_positive_int("per_page", action.per_page), page=1)


def _set_sort_by(state: SearchState, action: SetSortBy) -> SearchState:
    return replace(state, sort_by=action.sort_by or "", page=1)


def _set_multi_sort_by(state: SearchState, action: SetMultiSortBy) -> SearchState:
    return replace(state, multi_sort_by=tuple(normalize_sort_input(action.sorts)), page=1)


def _add_sort_field(state: SearchState, action: AddSortField) -> SearchState:
    sorts = list(state.multi_sort_by)
    for i, existing in enumerate(sorts):
        if existing.field == action.sort.field:
            sorts[i] = action.sort
            break
    else:
        sorts.append(action.sort)
    return replace(state, multi_sort_by=tuple(sorts), page=1)


def _remove_sort_field(state: SearchState, action: RemoveSortField) -> SearchState:
    sorts = tuple(s for s in state.multi_sort_by if s.field != action.field)
    return replace(state, multi_sort_by=sorts, page=1)


def _clear_multi_sort(state: SearchState, action: ClearMultiSort) -> SearchState:
    return replace(state, multi_sort_by=(), page=1)


def _set_disjunctive_facets(state: SearchState, action: SetDisjunctiveFacets) -> SearchState:
    return _with_filters(state, disjunctive_facets=dict(action.facets))


def _toggle_disjunctive_facet(state: SearchState, action: ToggleDisjunctiveFacet) -> SearchState:
    # Normalize through a throwaway snapshot so "1.0" and 1.0 toggle the same entry
    normalized = FilterState(disjunctive_facets={action.field: [action.value]})
    if action.field not in normalized.disjunctive_facets:
        return state
    value = normalized.disjunctive_facets[action.field][0]
    current = list(state.filters.disjunctive_facets.get(action.field, ()))
    if value in current:
        current.remove(value)
    else:
        current.append(value)
    if not current:
        return _drop_entry(state, "disjunctive_facets", action.field)
    return _set_entry(state, "disjunctive_facets", action.field, current)


def _set_numeric_filter(state: SearchState, action: SetNumericFilter) -> SearchState:
    if action.min is None and action.max is None:
        return _drop_entry(state, "numeric_filters", action.field)
    return _set_entry(state, "numeric_filters", action.field, NumericRange(action.min, action.max))


def _set_date_filter(state: SearchState, action: SetDateFilter) -> SearchState:
    if is_unset_bound(action.start) and is_unset_bound(action.end):
        return _drop_entry(state, "date_filters", action.field)
    return _set_entry(state, "date_filters", action.field, {"start": action.start, "end": action.end})


def _set_selective_filter(state: SearchState, action: SetSelectiveFilter) -> SearchState:
    if action.value is None or action.value == "":
        return _drop_entry(state, "selective_filters", action.field)
    return _set_entry(state, "selective_filters", action.field, action.value)


def _set_custom_filter(state: SearchState, action: SetCustomFilter) -> SearchState:
    if not action.values:
        return _drop_entry(state, "custom_filters", action.field)
    return _set_entry(state, "custom_filters", action.field, action.values)


def _set_additional_filters(state: SearchState, action: SetAdditionalFilters) -> SearchState:
    return _with_filters(state, additional_filters=action.expression)


def _clear_filter(state: SearchState, action: ClearFilter) -> SearchState:
    kind = FilterKind(action.kind)
    attribute = _KIND_ATTRIBUTE.get(kind)
    if attribute is None:
        raise InvalidParameterError("kind", action.kind, " | ".join(k.value for k in _KIND_ATTRIBUTE))
    return _drop_entry(state, attribute, action.field)


def _clear_all_filters(state: SearchState, action: ClearAllFilters) -> SearchState:
    return _with_filters(
        state,
        disjunctive_facets={},
        numeric_filters={},
        date_filters={},
        selective_filters={},
        custom_filters={},
        additional_filters=None,
    )


def _set_numeric_facet_mode(state: SearchState, action: SetNumericFacetMode) -> SearchState:
    mode = NumericFacetMode(action.mode)
    fields = set(state.filters.range_mode_fields)
    if mode is NumericFacetMode.RANGE:
        fields.add(action.field)
    else:
        fields.discard(action.field)
    return _with_filters(state, range_mode_fields=frozenset(fields))


def _set_numeric_facet_range(state: SearchState, action: SetNumericFacetRange) -> SearchState:
    return _set_numeric_filter(state, SetNumericFilter(action.field, action.min, action.max))


def _clear_numeric_facet_range(state: SearchState, action: ClearNumericFacetRange) -> SearchState:
    return _drop_entry(state, "numeric_filters", action.field)


def _set_field_types(state: SearchState, action: SetFieldTypes) -> SearchState:
    return replace(state, filters=state.filters.with_changes(field_types=dict(action.field_types)))


def _set_disjunctive_fields(state: SearchState, action: SetDisjunctiveFields) -> SearchState:
    return replace(state, disjunctive_fields=frozenset(action.fields))


def _batch_update(state: SearchState, action: BatchUpdate) -> SearchState:
    changes = dict(action.changes)
    unknown = set(changes) - _FILTER_KEYS - _STATE_KEYS
    if unknown:
        raise InvalidParameterError("changes", sorted(unknown), f"keys among {sorted(_FILTER_KEYS | _STATE_KEYS)}")

    filter_changes = {k: v for k, v in changes.items() if k in _FILTER_KEYS}
    state_changes = {k: v for k, v in changes.items() if k in _STATE_KEYS}
    if "multi_sort_by" in state_changes:
        state_changes["multi_sort_by"] = tuple(normalize_sort_input(state_changes["multi_sort_by"]))
    if "per_page" in state_changes:
        _positive_int("per_page", state_changes["per_page"])

    if _PAGE_RESET_KEYS & set(changes):
        state_changes["page"] = 1
    elif "page" in state_changes:
        _positive_int("page", state_changes["page"])

    if filter_changes:
        state_changes["filters"] = state.filters.with_changes(**filter_changes)
    return replace(state, **state_changes)


def _reset_search(state: SearchState, action: ResetSearch) -> SearchState:
    return SearchState(
        filters=FilterState(
            field_types=state.filters.field_types,
            range_mode_fields=state.filters.range_mode_fields,
        ),
        disjunctive_fields=state.disjunctive_fields,
    )


_HANDLERS: dict[type, Callable[[SearchState, Any], SearchState]] = {
    SetQuery: _set_query,
    SetPage: _set_page,
    SetPerPage: _set_per_page,
    SetSortBy: _set_sort_by,
    SetMultiSortBy: _set_multi_sort_by,
    AddSortField: _add_sort_field,
    RemoveSortField: _remove_sort_field,
    ClearMultiSort: _clear_multi_sort,
    SetDisjunctiveFacets: _set_disjunctive_facets,
    ToggleDisjunctiveFacet: _toggle_disjunctive_facet,
    SetNumericFilter: _set_numeric_filter,
    SetDateFilter: _set_date_filter,
    SetSelectiveFilter: _set_selective_filter,
    SetCustomFilter: _set_custom_filter,
    SetAdditionalFilters: _set_additional_filters,
    ClearFilter: _clear_filter,
    ClearAllFilters: _clear_all_filters,
    SetNumericFacetMode: _set_numeric_facet_mode,
    SetNumericFacetRange: _set_numeric_facet_range,
    ClearNumericFacetRange: _clear_numeric_facet_range,
    SetFieldTypes: _set_field_types,
    SetDisjunctiveFields: _set_disjunctive_fields,
    BatchUpdate: _batch_update,
    ResetSearch: _reset_search,
}


def search_reducer(state: SearchState, action: Any) -> SearchState:
    """Return the state that results from applying ``action`` to ``state``."""
    handler = _HANDLERS.get(type(action))
    if handler is None:
        raise InvalidParameterError("action", type(action).__name__, "a search state action")
    logger.debug(f"Applying {type(action).__name__}")
    return handler(state, action)


def reduce_actions(state: SearchState, actions: Iterable[Any]) -> SearchState:
    for action in actions:
        state = search_reducer(state, action)
    return state


def create_initial_state(**overrides: Any) -> SearchState:
    """
    Build a starting state. Filter attributes (``disjunctive_facets``,
    ``field_types``, ...) are routed into the FilterState.
    """
    filter_keys = _FILTER_KEYS | {"field_types", "range_mode_fields"}
    filter_values = {k: v for k, v in overrides.items() if k in filter_keys}
    state_values = {k: v for k, v in overrides.items() if k not in filter_keys}
    if filter_values:
        state_values["filters"] = FilterState(**filter_values)
    if "multi_sort_by" in state_values:
        state_values["multi_sort_by"] = tuple(normalize_sort_input(state_values["multi_sort_by"]))
    return SearchState(**state_values)
