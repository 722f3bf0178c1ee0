"""
Filter state domain entities.

FilterState is an immutable snapshot of every active filter. The reducer is
its only producer; builders and the orchestrator only ever read it, so a
snapshot handed to one fan-out batch cannot change while the batch runs.

Per-field entries that carry no constraint (empty value collections, ranges
with neither bound, empty strings) are dropped on construction, so builders
never see them.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from types import MappingProxyType
from typing import Any

# Typesense field types treated as numeric / boolean by the filter builders
NUMERIC_FIELD_TYPES: frozenset[str] = frozenset({"int32", "int64", "float", "int32[]", "int64[]", "float[]"})
BOOLEAN_FIELD_TYPES: frozenset[str] = frozenset({"bool", "bool[]"})

DateLike = date | datetime | str | int | float


def is_unset_bound(value: Any) -> bool:
    """A range bound counts as absent only when None or an empty string; 0 is a real bound."""
    return value is None or (isinstance(value, str) and not value.strip())


class FilterKind(Enum):
    """Filter kinds, in the order they are composed into one expression."""

    DISJUNCTIVE = "disjunctive"
    NUMERIC = "numeric"
    DATE = "date"
    SELECTIVE = "selective"
    CUSTOM = "custom"
    GEO = "geo"


class NumericFacetMode(Enum):
    """How a numeric facet presents its selections."""

    INDIVIDUAL = "individual"
    RANGE = "range"


@dataclass(frozen=True)
class NumericRange:
    """Inclusive numeric bounds, either of which may be absent."""

    min: int | float | None = None
    max: int | float | None = None

    @property
    def is_empty(self) -> bool:
        return self.min is None and self.max is None


@dataclass(frozen=True)
class DateRange:
    """Inclusive calendar bounds, either of which may be absent."""

    start: DateLike | None = None
    end: DateLike | None = None

    @property
    def is_empty(self) -> bool:
        return is_unset_bound(self.start) and is_unset_bound(self.end)


@dataclass(frozen=True)
class GeoRadius:
    """Geo radius constraint around a point."""

    lat: float
    lng: float
    radius: float
    unit: str = "km"


def _normalize_values(values: Any) -> tuple[str, ...]:
    """
    Normalize a value collection to a duplicate-free tuple of strings.

    Sequences keep caller order. Unordered sets are sorted, since their
    iteration order is not stable across interpreter runs.
    """
    if values is None:
        return ()
    if isinstance(values, str):
        values = (values,)
    elif isinstance(values, (set, frozenset)):
        values = sorted(values, key=str)
    seen: dict[str, None] = {}
    for value in values:
        if value is None:
            continue
        text = _value_to_str(value)
        if text != "":
            seen.setdefault(text, None)
    return tuple(seen)


def _value_to_str(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _coerce_numeric_range(value: Any) -> NumericRange:
    if isinstance(value, NumericRange):
        return value
    if isinstance(value, Mapping):
        return NumericRange(min=value.get("min"), max=value.get("max"))
    if isinstance(value, (tuple, list)) and len(value) == 2:
        return NumericRange(min=value[0], max=value[1])
    raise TypeError(f"Cannot interpret {value!r} as a numeric range")


def _coerce_date_range(value: Any) -> DateRange:
    if isinstance(value, DateRange):
        return value
    if isinstance(value, Mapping):
        return DateRange(start=value.get("start"), end=value.get("end"))
    if isinstance(value, (tuple, list)) and len(value) == 2:
        return DateRange(start=value[0], end=value[1])
    raise TypeError(f"Cannot interpret {value!r} as a date range")


def _freeze(mapping: dict[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class FilterState:
    """
    Immutable snapshot of all filter selections.

    Attributes:
        disjunctive_facets: OR-selected values per facet field
        numeric_filters: inclusive numeric ranges per field
        date_filters: inclusive date ranges per field
        selective_filters: single selected value per field
        custom_filters: OR-selected values for fields not shown as facets
        additional_filters: raw expression ANDed verbatim with everything else
        field_types: declared Typesense type per field (drives quoting)
        range_mode_fields: numeric facet fields presented as a range
    """

    disjunctive_facets: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    numeric_filters: Mapping[str, NumericRange] = field(default_factory=dict)
    date_filters: Mapping[str, DateRange] = field(default_factory=dict)
    selective_filters: Mapping[str, str] = field(default_factory=dict)
    custom_filters: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    additional_filters: str | None = None
    field_types: Mapping[str, str] = field(default_factory=dict)
    range_mode_fields: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        disjunctive = {}
        for name, values in dict(self.disjunctive_facets).items():
            normalized = _normalize_values(values)
            if normalized:
                disjunctive[name] = normalized

        numeric = {}
        for name, value in dict(self.numeric_filters).items():
            if value is None:
                continue
            numeric_range = _coerce_numeric_range(value)
            if not numeric_range.is_empty:
                numeric[name] = numeric_range

        dates = {}
        for name, value in dict(self.date_filters).items():
            if value is None:
                continue
            date_range = _coerce_date_range(value)
            if not date_range.is_empty:
                dates[name] = date_range

        selective = {}
        for name, value in dict(self.selective_filters).items():
            if value is None:
                continue
            text = _value_to_str(value)
            if text != "":
                selective[name] = text

        custom = {}
        for name, values in dict(self.custom_filters).items():
            normalized = _normalize_values(values)
            if normalized:
                custom[name] = normalized

        additional = (self.additional_filters or "").strip() or None

        object.__setattr__(self, "disjunctive_facets", _freeze(disjunctive))
        object.__setattr__(self, "numeric_filters", _freeze(numeric))
        object.__setattr__(self, "date_filters", _freeze(dates))
        object.__setattr__(self, "selective_filters", _freeze(selective))
        object.__setattr__(self, "custom_filters", _freeze(custom))
        object.__setattr__(self, "additional_filters", additional)
        object.__setattr__(self, "field_types", _freeze(dict(self.field_types)))
        object.__setattr__(self, "range_mode_fields", frozenset(self.range_mode_fields))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def field_type(self, field_name: str) -> str | None:
        return self.field_types.get(field_name)

    def is_numeric(self, field_name: str) -> bool:
        return self.field_types.get(field_name) in NUMERIC_FIELD_TYPES

    def is_boolean(self, field_name: str) -> bool:
        return self.field_types.get(field_name) in BOOLEAN_FIELD_TYPES

    def is_range_mode(self, field_name: str) -> bool:
        return field_name in self.range_mode_fields

    @property
    def has_active_filters(self) -> bool:
        return bool(
            self.disjunctive_facets
            or self.numeric_filters
            or self.date_filters
            or self.selective_filters
            or self.custom_filters
            or self.additional_filters
        )

    @property
    def active_filter_count(self) -> int:
        """Disjunctive values count individually, every other entry counts once."""
        count = sum(len(values) for values in self.disjunctive_facets.values())
        count += len(self.numeric_filters)
        count += len(self.date_filters)
        count += len(self.selective_filters)
        count += len(self.custom_filters)
        return count

    def active_disjunctive_fields(self, flagged: Iterable[str] | None = None) -> list[str]:
        """Disjunctive fields with a selection, optionally limited to ``flagged``."""
        if flagged is None:
            return list(self.disjunctive_facets)
        wanted = set(flagged)
        return [name for name in self.disjunctive_facets if name in wanted]

    # ------------------------------------------------------------------
    # Derived snapshots
    # ------------------------------------------------------------------

    def without_disjunctive(self, field_name: str) -> FilterState:
        """Copy of this snapshot with one disjunctive field's selection removed."""
        remaining = {k: v for k, v in self.disjunctive_facets.items() if k != field_name}
        return self.with_changes(disjunctive_facets=remaining)

    def with_changes(self, **changes: Any) -> FilterState:
        values: dict[str, Any] = {
            "disjunctive_facets": self.disjunctive_facets,
            "numeric_filters": self.numeric_filters,
            "date_filters": self.date_filters,
            "selective_filters": self.selective_filters,
            "custom_filters": self.custom_filters,
            "additional_filters": self.additional_filters,
            "field_types": self.field_types,
            "range_mode_fields": self.range_mode_fields,
        }
        values.update(changes)
        return FilterState(**values)
