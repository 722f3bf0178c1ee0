"""
Application Layer - Query construction and result aggregation.

Contains:
- filters: filter_by / sort_by builders, passthrough filters, date presets
- search: state reducer, disjunctive facet orchestrator, multi-collection merge
- facets: facet accumulation and numeric range helpers
"""
