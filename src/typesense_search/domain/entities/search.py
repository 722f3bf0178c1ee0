"""
Search request/response entities for the backing Typesense service.

SearchParams is the wire-level request (the keys Typesense expects on
``/collections/{name}/documents/search``). SearchResponse, SearchHit and
FacetCounts are parsed from the service's JSON answer. FacetCountResult and
SearchResult are what the search core hands back to callers.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, fields, replace
from typing import Any

from typesense_search.shared.exceptions import ParseError, TypesenseSearchError


@dataclass(frozen=True)
class SearchParams:
    """Search parameters for a single Typesense search request."""

    q: str = "*"
    query_by: str = "*"
    filter_by: str | None = None
    sort_by: str | None = None
    facet_by: str | None = None
    max_facet_values: int | None = None
    page: int = 1
    per_page: int = 20
    include_fields: str | None = None
    exclude_fields: str | None = None
    highlight_fields: str | None = None
    highlight_full_fields: str | None = None
    highlight_start_tag: str | None = None
    highlight_end_tag: str | None = None
    highlight_affix_num_tokens: int | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def replace(self, **changes: Any) -> SearchParams:
        return replace(self, **changes)

    def to_query_params(self) -> dict[str, Any]:
        """Flatten to query-string parameters, dropping unset values."""
        params: dict[str, Any] = {}
        for f in fields(self):
            if f.name == "extra":
                continue
            value = getattr(self, f.name)
            if value is None or value == "":
                continue
            params[f.name] = value
        for key, value in self.extra.items():
            if value is not None:
                params[key] = value
        return params


@dataclass(frozen=True)
class FacetValue:
    """A single facet value with its match count."""

    value: str
    count: int
    highlighted: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"value": self.value, "count": self.count}


@dataclass(frozen=True)
class FacetStats:
    """Numeric statistics Typesense reports for numeric facets."""

    min: float | None = None
    max: float | None = None
    avg: float | None = None
    sum: float | None = None


@dataclass(frozen=True)
class FacetCounts:
    """Facet counts for one field."""

    field_name: str
    counts: tuple[FacetValue, ...] = ()
    stats: FacetStats | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FacetCounts:
        counts = tuple(
            FacetValue(
                value=str(item.get("value", "")),
                count=int(item.get("count", 0)),
                highlighted=item.get("highlighted"),
            )
            for item in data.get("counts") or []
        )
        stats = None
        raw_stats = data.get("stats")
        if isinstance(raw_stats, dict) and raw_stats:
            stats = FacetStats(
                min=raw_stats.get("min"),
                max=raw_stats.get("max"),
                avg=raw_stats.get("avg"),
                sum=raw_stats.get("sum"),
            )
        return cls(field_name=str(data.get("field_name", "")), counts=counts, stats=stats)

    @property
    def values(self) -> list[str]:
        return [c.value for c in self.counts]

    def count_for(self, value: str) -> int:
        for c in self.counts:
            if c.value == value:
                return c.count
        return 0


@dataclass(frozen=True)
class SearchHit:
    """One hit as returned by Typesense."""

    document: dict[str, Any]
    highlight: dict[str, Any] = field(default_factory=dict)
    highlights: tuple[dict[str, Any], ...] = ()
    text_match: float | None = None
    geo_distance_meters: float | None = None
    vector_distance: float | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SearchHit:
        geo = data.get("geo_distance_meters")
        if isinstance(geo, dict):
            # Typesense reports one distance per geo field
            geo = next(iter(geo.values()), None)
        return cls(
            document=dict(data.get("document") or {}),
            highlight=dict(data.get("highlight") or {}),
            highlights=tuple(data.get("highlights") or ()),
            text_match=data.get("text_match"),
            geo_distance_meters=geo,
            vector_distance=data.get("vector_distance"),
        )

    @property
    def score(self) -> float:
        """Raw relevance score: text match, else geo distance, else vector distance, else 1."""
        for candidate in (self.text_match, self.geo_distance_meters, self.vector_distance):
            if candidate:
                return float(candidate)
        return 1.0


@dataclass(frozen=True)
class SearchResponse:
    """Parsed response of one Typesense search request."""

    hits: tuple[SearchHit, ...] = ()
    found: int = 0
    out_of: int = 0
    page: int = 1
    search_time_ms: float = 0.0
    facet_counts: tuple[FacetCounts, ...] = ()
    request_params: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any, *, source: str | None = None) -> SearchResponse:
        if not isinstance(data, dict):
            raise ParseError(f"expected a JSON object, got {type(data).__name__}", source=source)
        try:
            return cls(
                hits=tuple(SearchHit.from_dict(h) for h in data.get("hits") or []),
                found=int(data.get("found") or 0),
                out_of=int(data.get("out_of") or 0),
                page=int(data.get("page") or 1),
                search_time_ms=float(data.get("search_time_ms") or 0),
                facet_counts=tuple(FacetCounts.from_dict(f) for f in data.get("facet_counts") or []),
                request_params=dict(data.get("request_params") or {}),
            )
        except (TypeError, ValueError, AttributeError) as e:
            raise ParseError(str(e), source=source) from e

    def facet(self, field_name: str) -> FacetCounts | None:
        for facet in self.facet_counts:
            if facet.field_name == field_name:
                return facet
        return None


class FacetCountResult:
    """
    Facet counts keyed by field, in a fixed field order.

    Rebuilt on every search; a field's counts are always replaced as a
    whole, never merged with counts from another call.
    """

    def __init__(self, facets: list[FacetCounts] | tuple[FacetCounts, ...] = ()) -> None:
        self._facets: dict[str, FacetCounts] = {}
        for facet in facets:
            self._facets[facet.field_name] = facet

    def __contains__(self, field_name: object) -> bool:
        return field_name in self._facets

    def __getitem__(self, field_name: str) -> FacetCounts:
        return self._facets[field_name]

    def __iter__(self):
        return iter(self._facets.values())

    def __len__(self) -> int:
        return len(self._facets)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FacetCountResult):
            return NotImplemented
        return list(self._facets.items()) == list(other._facets.items())

    def __repr__(self) -> str:
        return f"FacetCountResult(fields={self.fields!r})"

    @property
    def fields(self) -> list[str]:
        return list(self._facets)

    def get(self, field_name: str) -> FacetCounts | None:
        return self._facets.get(field_name)

    def counts(self, field_name: str) -> list[FacetValue]:
        facet = self._facets.get(field_name)
        return list(facet.counts) if facet else []

    def stats(self, field_name: str) -> FacetStats | None:
        facet = self._facets.get(field_name)
        return facet.stats if facet else None

    def to_dict(self) -> dict[str, list[dict[str, Any]]]:
        return {name: [c.to_dict() for c in facet.counts] for name, facet in self._facets.items()}


@dataclass(frozen=True)
class RequestFailure:
    """Diagnostic for one request that failed inside a fan-out batch."""

    target: str
    error_type: str
    message: str
    retryable: bool = False
    status_code: int | None = None

    @classmethod
    def from_exception(cls, target: str, error: BaseException) -> RequestFailure:
        retryable = error.retryable if isinstance(error, TypesenseSearchError) else False
        return cls(
            target=target,
            error_type=type(error).__name__,
            message=str(error) or type(error).__name__,
            retryable=retryable,
            status_code=getattr(error, "status_code", None),
        )


@dataclass
class SearchResult:
    """Merged result of one single-collection search invocation."""

    hits: list[SearchHit]
    found: int
    page: int
    per_page: int
    search_time_ms: float
    facet_counts: FacetCountResult
    out_of: int = 0
    facet_failures: dict[str, RequestFailure] = field(default_factory=dict)
    request: SearchParams | None = None

    @property
    def has_partial_failure(self) -> bool:
        return bool(self.facet_failures)

    @property
    def total_pages(self) -> int:
        if self.per_page <= 0:
            return 0
        return math.ceil(self.found / self.per_page)

    @property
    def has_next_page(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_previous_page(self) -> bool:
        return self.page > 1

    def results_range(self) -> str:
        """Human readable range, e.g. ``"21-40 of 57"``."""
        if self.found == 0:
            return "0 results"
        start = (self.page - 1) * self.per_page + 1
        end = min(start + len(self.hits) - 1, self.found)
        return f"{start}-{end} of {self.found}"
