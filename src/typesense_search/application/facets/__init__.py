"""
Facet presentation helpers layered outside the search core.
"""

from .accumulator import AccumulatedField, FacetAccumulator
from .numeric_ranges import facet_stats_from_counts, is_value_in_range, values_to_range, with_numeric_stats

__all__ = [
    "FacetAccumulator",
    "AccumulatedField",
    "values_to_range",
    "is_value_in_range",
    "facet_stats_from_counts",
    "with_numeric_stats",
]
