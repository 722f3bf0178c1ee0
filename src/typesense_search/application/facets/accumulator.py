"""
Facet Accumulator

Remembers facet values seen across successive searches so options do not
disappear from a facet list as filters narrow the results.

The accumulator sits outside the search core: every search still returns a
freshly built FacetCountResult, and the accumulator folds those results into
a running union per field. Values absent from the current result are shown
with count 0.

Features:
- Ordered union of seen values per field (first-seen order)
- Running numeric bounds for numeric fields
- Optional reorder by count (count desc, then value asc)
- Optional move-selected-to-top
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from typesense_search.domain.entities.filter_state import NumericRange
from typesense_search.domain.entities.search import FacetCountResult, FacetValue, SearchResult

from .numeric_ranges import values_to_range

logger = logging.getLogger(__name__)


@dataclass
class AccumulatedField:
    """Values seen so far for one facet field."""

    ordered_values: list[str] = field(default_factory=list)
    numeric_bounds: NumericRange | None = None

    def __contains__(self, value: object) -> bool:
        return value in self._seen

    def __post_init__(self) -> None:
        self._seen: set[str] = set(self.ordered_values)

    def add(self, value: str) -> bool:
        if value in self._seen:
            return False
        self._seen.add(value)
        self.ordered_values.append(value)
        return True


class FacetAccumulator:
    """
    Running union of facet values across searches.

    Example:
        accumulator = FacetAccumulator(numeric_fields={"price"})
        accumulator.fold(first_result)
        accumulator.fold(second_result)

        options = accumulator.merged_values("brand", second_result.facet_counts, active=["Acme"])
    """

    def __init__(
        self,
        *,
        numeric_fields: Iterable[str] = (),
        reorder_by_count: bool = True,
        move_selected_to_top: bool = False,
        option_limit: int = 0,
    ):
        """
        Args:
            numeric_fields: Fields whose values also feed numeric bounds
            reorder_by_count: Sort merged values by count desc, then value asc
            move_selected_to_top: Put active values ahead of the others
            option_limit: Maximum values returned per field (0 = no limit)
        """
        self.numeric_fields = frozenset(numeric_fields)
        self.reorder_by_count = reorder_by_count
        self.move_selected_to_top = move_selected_to_top
        self.option_limit = option_limit
        self._fields: dict[str, AccumulatedField] = {}

    @property
    def fields(self) -> list[str]:
        return list(self._fields)

    def fold(self, result: FacetCountResult | SearchResult) -> None:
        """Add every value of ``result`` to the running union."""
        facets = result.facet_counts if isinstance(result, SearchResult) else result
        for facet in facets:
            accumulated = self._fields.setdefault(facet.field_name, AccumulatedField())
            added = [c.value for c in facet.counts if accumulated.add(c.value)]
            if added and facet.field_name in self.numeric_fields:
                bounds = values_to_range(added)
                if bounds is not None:
                    accumulated.numeric_bounds = _widen(accumulated.numeric_bounds, bounds)
            if added:
                logger.debug(f"Accumulated {len(added)} new values for facet '{facet.field_name}'")

    def seen_values(self, field_name: str) -> list[str]:
        accumulated = self._fields.get(field_name)
        return list(accumulated.ordered_values) if accumulated else []

    def numeric_bounds(self, field_name: str) -> NumericRange | None:
        accumulated = self._fields.get(field_name)
        return accumulated.numeric_bounds if accumulated else None

    def merged_values(
        self,
        field_name: str,
        current: FacetCountResult | None = None,
        active: Iterable[str] = (),
    ) -> list[FacetValue]:
        """
        Values to display for one field.

        Args:
            field_name: Facet field
            current: Facet counts of the latest search
            active: Currently selected values of the field

        Returns:
            Every seen value with its current count (0 when absent from
            ``current``), followed by current values never folded in.
        """
        current_counts = current.counts(field_name) if current is not None else []
        counts = {c.value: c.count for c in current_counts}
        accumulated = self._fields.get(field_name)

        if accumulated is None:
            merged = list(current_counts)
        else:
            merged = [FacetValue(value=v, count=counts.get(v, 0)) for v in accumulated.ordered_values]
            merged.extend(c for c in current_counts if c.value not in accumulated)

        return self._arrange(merged, list(active))

    def _arrange(self, values: list[FacetValue], active: list[str]) -> list[FacetValue]:
        if self.reorder_by_count:
            values = sorted(values, key=lambda v: (-v.count, v.value))
        if self.move_selected_to_top and active:
            selected = set(active)
            values = [v for v in values if v.value in selected] + [v for v in values if v.value not in selected]
        if self.option_limit > 0:
            values = values[: self.option_limit]
        return values

    def clear(self, field_name: str | None = None) -> None:
        """Forget one field, or every field when ``field_name`` is None."""
        if field_name is None:
            self._fields.clear()
        else:
            self._fields.pop(field_name, None)


def _widen(current: NumericRange | None, extra: NumericRange) -> NumericRange:
    if current is None:
        return extra
    return NumericRange(min=min(current.min, extra.min), max=max(current.max, extra.max))
