"""
Numeric facet range helpers.

A numeric facet shown as a slider needs the bounds of its values. Typesense
reports ``stats`` for numeric facets; when a response carries none, the
bounds are derived from the facet values themselves.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from typing import Any

from typesense_search.domain.entities.filter_state import NumericRange
from typesense_search.domain.entities.search import FacetCounts, FacetStats


def _to_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _compact(number: float) -> int | float:
    return int(number) if number.is_integer() else number


def values_to_range(values: Iterable[Any]) -> NumericRange | None:
    """Bounds of the numeric values; non-numeric values are ignored."""
    numbers = [n for n in (_to_number(v) for v in values) if n is not None]
    if not numbers:
        return None
    return NumericRange(min=_compact(min(numbers)), max=_compact(max(numbers)))


def is_value_in_range(value: Any, numeric_range: NumericRange | None) -> bool:
    """Inclusive bounds check; a missing bound is open."""
    if numeric_range is None:
        return True
    number = _to_number(value)
    if number is None:
        return False
    if numeric_range.min is not None and number < numeric_range.min:
        return False
    if numeric_range.max is not None and number > numeric_range.max:
        return False
    return True


def facet_stats_from_counts(facet: FacetCounts) -> FacetStats | None:
    """Count-weighted stats computed from a facet's values."""
    pairs = [(n, c.count) for c in facet.counts if (n := _to_number(c.value)) is not None]
    if not pairs:
        return None
    total = sum(n * count for n, count in pairs)
    weight = sum(count for _, count in pairs)
    return FacetStats(
        min=_compact(min(n for n, _ in pairs)),
        max=_compact(max(n for n, _ in pairs)),
        avg=total / weight if weight else None,
        sum=_compact(float(total)),
    )


def with_numeric_stats(facet: FacetCounts) -> FacetCounts:
    """Fill in missing min/max stats for a numeric facet."""
    if facet.stats is not None and facet.stats.min is not None and facet.stats.max is not None:
        return facet
    stats = facet_stats_from_counts(facet)
    if stats is None:
        return facet
    return FacetCounts(field_name=facet.field_name, counts=facet.counts, stats=stats)
