"""
Filter and sort expression builders.

Pure functions from structural selections to Typesense filter_by / sort_by
strings, plus helpers for the raw passthrough expression and date presets.
"""

from .additional_filters import (
    FilterValidationResult,
    combine_additional_filters,
    extract_field_from_filter,
    get_filter_for_field,
    has_field_in_additional_filters,
    merge_additional_filters,
    parse_additional_filters,
    remove_filter_from_additional_filters,
    update_filter_in_additional_filters,
    validate_additional_filters,
)
from .date_presets import (
    DatePreset,
    after_date_filter,
    apply_date_preset,
    before_date_filter,
    current_month_filter,
    current_year_filter,
    date_range_filter,
    last_n_days_filter,
    last_n_months_filter,
    month_filter,
    parse_date_range_filter,
)
from .filter_builder import (
    ParsedFilters,
    build_custom_filter,
    build_date_filter,
    build_disjunctive_filter,
    build_equality_filter,
    build_facet_filter,
    build_filter,
    build_filter_fragment,
    build_filter_fragments,
    build_filter_string,
    build_geo_filter,
    build_numeric_filter,
    build_range_mode_filter,
    build_selective_filter,
    combine_filters,
    escape_filter_value,
    is_boolean_field,
    is_numeric_field,
    parse_filter_string,
    split_top_level,
    to_unix_timestamp,
    validate_field_name,
)
from .sort_builder import (
    SortField,
    SortOrder,
    build_combined_sort_string,
    build_single_sort_string,
    build_sort_string,
    get_sort_direction,
    is_sort_active,
    normalize_sort_input,
    parse_single_sort_string,
    parse_sort_string,
    toggle_sort_direction,
    validate_sort_fields,
)

__all__ = [
    # Filter builder
    "build_filter_string",
    "build_filter_fragments",
    "build_filter_fragment",
    "build_equality_filter",
    "build_disjunctive_filter",
    "build_numeric_filter",
    "build_date_filter",
    "build_geo_filter",
    "build_selective_filter",
    "build_custom_filter",
    "build_range_mode_filter",
    "build_filter",
    "build_facet_filter",
    "combine_filters",
    "escape_filter_value",
    "is_numeric_field",
    "is_boolean_field",
    "parse_filter_string",
    "ParsedFilters",
    "split_top_level",
    "to_unix_timestamp",
    "validate_field_name",
    # Sort builder
    "SortField",
    "SortOrder",
    "build_sort_string",
    "build_single_sort_string",
    "build_combined_sort_string",
    "parse_sort_string",
    "parse_single_sort_string",
    "normalize_sort_input",
    "validate_sort_fields",
    "toggle_sort_direction",
    "get_sort_direction",
    "is_sort_active",
    # Passthrough filters
    "parse_additional_filters",
    "combine_additional_filters",
    "update_filter_in_additional_filters",
    "remove_filter_from_additional_filters",
    "has_field_in_additional_filters",
    "get_filter_for_field",
    "merge_additional_filters",
    "extract_field_from_filter",
    "validate_additional_filters",
    "FilterValidationResult",
    # Date presets
    "DatePreset",
    "apply_date_preset",
    "date_range_filter",
    "last_n_days_filter",
    "last_n_months_filter",
    "month_filter",
    "current_month_filter",
    "current_year_filter",
    "after_date_filter",
    "before_date_filter",
    "parse_date_range_filter",
]
