"""
FilterBuilder - Typesense filter_by expression construction

Translates structural filter selections into the service's textual filter
language:

- equality          ``field:=`value```  (bare literal for numeric/bool fields)
- OR-group          ``(field:=`a` || field:=`b`)``
- numeric range     ``field:[min..max]``, ``field:>=min``, ``field:<=max``
- geo radius        ``field:(lat,lng,radius unit)``

Every builder returns ``None`` when its input carries no constraint. Builders
only raise for malformed input (bad field names, out-of-range coordinates).

Clauses from a FilterState are composed in a fixed kind order
(disjunctive → numeric → date → selective → custom → passthrough) and, inside
each kind, in the state's field order, so one snapshot always serializes to
the same string.

Example:
    >>> state = FilterState(
    ...     disjunctive_facets={"category": ["Electronics", "Books"]},
    ...     numeric_filters={"price": {"min": 100}},
    ... )
    >>> build_filter_string(state)
    '(category:=`Electronics` || category:=`Books`) && price:>=100'
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from typing import Any

from typesense_search.domain.entities.filter_state import (
    BOOLEAN_FIELD_TYPES,
    NUMERIC_FIELD_TYPES,
    DateRange,
    FilterKind,
    FilterState,
    GeoRadius,
    NumericRange,
    is_unset_bound,
)
from typesense_search.shared.exceptions import (
    InvalidFieldNameError,
    InvalidGeoFilterError,
    InvalidParameterError,
)

logger = logging.getLogger(__name__)

FIELD_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_.]*$")

# Typesense string-literal delimiter
QUOTE = "`"

AND = " && "
OR = " || "

GEO_UNITS = frozenset({"km", "mi"})


# =============================================================================
# Primitives
# =============================================================================


def validate_field_name(field_name: Any) -> str:
    if not isinstance(field_name, str) or not FIELD_NAME_PATTERN.match(field_name):
        raise InvalidFieldNameError(field_name)
    return field_name


def escape_filter_value(value: str) -> str:
    """Escape backslashes, then backticks."""
    return value.replace("\\", "\\\\").replace(QUOTE, "\\" + QUOTE)


def unescape_filter_value(value: str) -> str:
    return re.sub(r"\\(.)", r"\1", value)


def is_numeric_field(field_name: str, field_types: Mapping[str, str] | None = None) -> bool:
    return bool(field_types) and field_types.get(field_name) in NUMERIC_FIELD_TYPES


def is_boolean_field(field_name: str, field_types: Mapping[str, str] | None = None) -> bool:
    return bool(field_types) and field_types.get(field_name) in BOOLEAN_FIELD_TYPES


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def format_number(value: Any, *, param_name: str = "value") -> str:
    """Render a number for a filter clause; integral floats print without a fraction."""
    if not _is_number(value):
        raise InvalidParameterError(param_name, value, "a number")
    if isinstance(value, float):
        if not math.isfinite(value):
            raise InvalidParameterError(param_name, value, "a finite number")
        if value.is_integer():
            return str(int(value))
        return repr(value)
    return str(value)


def _literal(value: Any, *, bare: bool) -> str:
    if isinstance(value, bool):
        text = "true" if value else "false"
    elif isinstance(value, float) and value.is_integer():
        text = str(int(value))
    else:
        text = str(value)
    if bare:
        return text
    return f"{QUOTE}{escape_filter_value(text)}{QUOTE}"


def _is_bare(field_name: str, field_types: Mapping[str, str] | None) -> bool:
    return is_numeric_field(field_name, field_types) or is_boolean_field(field_name, field_types)


def _values_list(values: Any) -> list[Any]:
    if values is None:
        return []
    if isinstance(values, (str, bytes)):
        return [values]
    if isinstance(values, (set, frozenset)):
        values = sorted(values, key=str)
    return [v for v in values if v is not None and v != ""]


# =============================================================================
# Fragment builders
# =============================================================================


def build_equality_filter(field_name: str, value: Any, field_types: Mapping[str, str] | None = None) -> str | None:
    """``field:=`value```, or ``field:=value`` for numeric and boolean fields."""
    validate_field_name(field_name)
    if value is None or value == "":
        return None
    return f"{field_name}:={_literal(value, bare=_is_bare(field_name, field_types))}"


def build_disjunctive_filter(
    field_name: str,
    values: Iterable[Any] | None,
    field_types: Mapping[str, str] | None = None,
) -> str | None:
    """
    OR-group over the selected values.

    A single value collapses to the plain equality form with no parentheses.
    """
    validate_field_name(field_name)
    items = _values_list(values)
    if not items:
        return None
    bare = _is_bare(field_name, field_types)
    clauses = [f"{field_name}:={_literal(v, bare=bare)}" for v in items]
    if len(clauses) == 1:
        return clauses[0]
    return f"({OR.join(clauses)})"


def build_numeric_filter(field_name: str, min: Any = None, max: Any = None) -> str | None:
    """
    Inclusive numeric range.

    ``min == max`` still produces a range clause, not an equality.
    """
    validate_field_name(field_name)
    if min is None and max is None:
        return None
    if min is not None and max is not None:
        return f"{field_name}:[{format_number(min, param_name='min')}..{format_number(max, param_name='max')}]"
    if min is not None:
        return f"{field_name}:>={format_number(min, param_name='min')}"
    return f"{field_name}:<={format_number(max, param_name='max')}"


def to_unix_timestamp(value: date | datetime | str | int | float) -> int:
    """
    Convert a calendar value to unix seconds.

    Naive datetimes and plain dates are read as UTC; a plain date maps to
    midnight. Strings must be ISO 8601.
    """
    if isinstance(value, bool):
        raise InvalidParameterError("date", value, "a date, datetime, ISO 8601 string or unix timestamp")
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.strip())
        except ValueError as e:
            raise InvalidParameterError("date", value, "an ISO 8601 date string") from e
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return math.floor(value.timestamp())
    if isinstance(value, date):
        return math.floor(datetime(value.year, value.month, value.day, tzinfo=UTC).timestamp())
    raise InvalidParameterError("date", value, "a date, datetime, ISO 8601 string or unix timestamp")


def build_date_filter(field_name: str, start: Any = None, end: Any = None) -> str | None:
    """Date bounds, converted to unix seconds and emitted as a numeric range."""
    start_ts = None if is_unset_bound(start) else to_unix_timestamp(start)
    end_ts = None if is_unset_bound(end) else to_unix_timestamp(end)
    return build_numeric_filter(field_name, start_ts, end_ts)


def build_geo_filter(field_name: str, lat: float, lng: float, radius: float, unit: str = "km") -> str:
    """
    Geo radius clause with 4-decimal coordinates.

    Raises:
        InvalidGeoFilterError: latitude outside [-90, 90], longitude outside
            [-180, 180], non-positive radius or unknown unit
    """
    validate_field_name(field_name)
    if not _is_number(lat) or not -90 <= lat <= 90:
        raise InvalidGeoFilterError("Latitude must be between -90 and 90", field_name=field_name, value=lat)
    if not _is_number(lng) or not -180 <= lng <= 180:
        raise InvalidGeoFilterError("Longitude must be between -180 and 180", field_name=field_name, value=lng)
    if not _is_number(radius) or not radius > 0 or not math.isfinite(radius):
        raise InvalidGeoFilterError("Radius must be greater than 0", field_name=field_name, value=radius)
    if unit not in GEO_UNITS:
        raise InvalidGeoFilterError(
            f"Radius unit must be one of {sorted(GEO_UNITS)}",
            field_name=field_name,
            value=unit,
        )
    return f"{field_name}:({lat:.4f},{lng:.4f},{format_number(radius, param_name='radius')} {unit})"


def build_selective_filter(field_name: str, value: Any, field_types: Mapping[str, str] | None = None) -> str | None:
    return build_equality_filter(field_name, value, field_types)


def build_custom_filter(
    field_name: str,
    values: Iterable[Any] | None,
    field_types: Mapping[str, str] | None = None,
) -> str | None:
    """Custom filters share the disjunctive OR-group form."""
    return build_disjunctive_filter(field_name, values, field_types)


def build_range_mode_filter(field_name: str, values: Iterable[Any]) -> str | None:
    """Collapse discrete numeric selections into one ``[min..max]`` range."""
    numbers = []
    for value in _values_list(values):
        try:
            number = float(value)
        except (TypeError, ValueError):
            continue
        if math.isfinite(number):
            numbers.append(number)
    if not numbers:
        return None
    return build_numeric_filter(field_name, min(numbers), max(numbers))


def build_filter_fragment(
    field_name: str,
    kind: FilterKind | str,
    value: Any,
    field_type: str | None = None,
) -> str | None:
    """
    Build one clause for any filter kind.

    ``value`` is a value collection for DISJUNCTIVE/CUSTOM, a NumericRange
    (or ``{"min", "max"}`` mapping) for NUMERIC, a DateRange (or
    ``{"start", "end"}`` mapping) for DATE, a scalar for SELECTIVE and a
    GeoRadius for GEO.
    """
    kind = FilterKind(kind)
    types = {field_name: field_type} if field_type else None

    if kind in (FilterKind.DISJUNCTIVE, FilterKind.CUSTOM):
        return build_disjunctive_filter(field_name, value, types)
    if kind is FilterKind.SELECTIVE:
        return build_selective_filter(field_name, value, types)
    if kind is FilterKind.NUMERIC:
        if value is None:
            return None
        if isinstance(value, Mapping):
            value = NumericRange(min=value.get("min"), max=value.get("max"))
        return build_numeric_filter(field_name, value.min, value.max)
    if kind is FilterKind.DATE:
        if value is None:
            return None
        if isinstance(value, Mapping):
            value = DateRange(start=value.get("start"), end=value.get("end"))
        return build_date_filter(field_name, value.start, value.end)
    if kind is FilterKind.GEO:
        if value is None:
            return None
        if isinstance(value, Mapping):
            value = GeoRadius(**value)
        return build_geo_filter(field_name, value.lat, value.lng, value.radius, value.unit)
    raise InvalidParameterError("kind", kind, "a FilterKind")


# =============================================================================
# Composition
# =============================================================================


def combine_filters(filters: Iterable[str | None], operator: str = AND) -> str:
    """Join the non-empty fragments with ``operator``."""
    return operator.join(f for f in filters if f)


def build_filter(
    field_name: str,
    value: str | list[str] | None,
    *,
    exact_match: bool = False,
    negate: bool = False,
) -> str:
    """
    Simple clause without type awareness.

    Lists use Typesense's ``field:=[a,b]`` shorthand; ``negate`` switches to
    ``:!=``. Returns an empty string when there is no value.
    """
    validate_field_name(field_name)
    if not value:
        return ""
    operator = "!=" if negate else "="
    if isinstance(value, (list, tuple)):
        return f"{field_name}:{operator}[{','.join(str(v) for v in value)}]"
    if exact_match:
        return f"{field_name}:{operator}{QUOTE}{escape_filter_value(value)}{QUOTE}"
    return f"{field_name}:{operator}{value}"


def build_facet_filter(selections: Mapping[str, Iterable[str]]) -> str:
    """AND of plain facet selections; multi-value fields use the list shorthand."""
    filters = []
    for field_name, values in selections.items():
        items = _values_list(values)
        if not items:
            continue
        validate_field_name(field_name)
        if len(items) == 1:
            filters.append(f"{field_name}:={items[0]}")
        else:
            filters.append(f"{field_name}:=[{','.join(str(v) for v in items)}]")
    return combine_filters(filters)


def build_filter_fragments(state: FilterState) -> list[str]:
    """Every clause of ``state`` in composition order."""
    fragments: list[str | None] = []
    types = state.field_types

    for field_name, values in state.disjunctive_facets.items():
        fragment = None
        if state.is_range_mode(field_name) and state.is_numeric(field_name) and len(values) > 1:
            fragment = build_range_mode_filter(field_name, values)
        if fragment is None:
            fragment = build_disjunctive_filter(field_name, values, types)
        fragments.append(fragment)

    for field_name, numeric_range in state.numeric_filters.items():
        fragments.append(build_numeric_filter(field_name, numeric_range.min, numeric_range.max))

    for field_name, date_range in state.date_filters.items():
        fragments.append(build_date_filter(field_name, date_range.start, date_range.end))

    for field_name, value in state.selective_filters.items():
        fragments.append(build_selective_filter(field_name, value, types))

    for field_name, values in state.custom_filters.items():
        fragments.append(build_custom_filter(field_name, values, types))

    if state.additional_filters:
        fragments.append(state.additional_filters)

    return [f for f in fragments if f]


def build_filter_string(state: FilterState) -> str:
    """
    Compose the full filter_by expression for one FilterState snapshot.

    Selected values of a list or tuple keep their order inside an OR-group.
    A ``set`` has no stable order and is emitted sorted, so
    ``{"Electronics", "Books"}`` serializes Books first; pass a list when the
    clause order matters.
    """
    expression = combine_filters(build_filter_fragments(state))
    logger.debug(f"Built filter expression: {expression!r}")
    return expression


# =============================================================================
# Parsing
# =============================================================================


def split_top_level(expression: str, separator: str = "&&") -> list[str]:
    """
    Split on ``separator`` outside parentheses and backtick literals.

    Parts are stripped; empty parts are kept so callers can detect them.
    """
    parts: list[str] = []
    depth = 0
    in_literal = False
    start = 0
    i = 0
    n = len(expression)
    while i < n:
        ch = expression[i]
        if in_literal:
            if ch == "\\":
                i += 2
                continue
            if ch == QUOTE:
                in_literal = False
        elif ch == QUOTE:
            in_literal = True
        elif ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        elif depth == 0 and expression.startswith(separator, i):
            parts.append(expression[start:i].strip())
            i += len(separator)
            start = i
            continue
        i += 1
    parts.append(expression[start:].strip())
    return parts


_NUMBER = r"-?\d+(?:\.\d+)?"
_RANGE_RE = re.compile(rf"^([\w.]+):\[({_NUMBER})\.\.({_NUMBER})\]$")
_GE_RE = re.compile(rf"^([\w.]+):>=({_NUMBER})$")
_LE_RE = re.compile(rf"^([\w.]+):<=({_NUMBER})$")
_QUOTED_EQ_RE = re.compile(r"^([\w.]+):=`((?:[^`\\]|\\.)*)`$")
_BARE_EQ_RE = re.compile(r"^([\w.]+):=([^\s`\[\]()]+)$")


def _parse_number(text: str) -> int | float:
    number = float(text)
    return int(number) if number.is_integer() and "." not in text else number


def _parse_equality(text: str) -> tuple[str, str] | None:
    match = _QUOTED_EQ_RE.match(text)
    if match:
        return match.group(1), unescape_filter_value(match.group(2))
    match = _BARE_EQ_RE.match(text)
    if match:
        return match.group(1), match.group(2)
    return None


@dataclass
class ParsedFilters:
    """Best-effort decomposition of a filter_by expression."""

    disjunctive_facets: dict[str, list[str]] = field(default_factory=dict)
    numeric_filters: dict[str, NumericRange] = field(default_factory=dict)
    selective_filters: dict[str, str] = field(default_factory=dict)
    remaining_filters: str = ""

    def to_filter_state(self, field_types: Mapping[str, str] | None = None) -> FilterState:
        """Unrecognized clauses become the passthrough expression."""
        return FilterState(
            disjunctive_facets=self.disjunctive_facets,
            numeric_filters=self.numeric_filters,
            selective_filters=self.selective_filters,
            additional_filters=self.remaining_filters or None,
            field_types=field_types or {},
        )


def parse_filter_string(expression: str | None) -> ParsedFilters:
    """
    Recover structural filters from an expression built by this module.

    OR-groups over one field become disjunctive selections, ranges and
    comparisons become numeric filters, single equalities become selective
    filters. Anything else is kept verbatim in ``remaining_filters``.
    """
    parsed = ParsedFilters()
    if not expression or not expression.strip():
        return parsed

    unprocessed: list[str] = []
    for part in split_top_level(expression):
        if not part:
            continue

        if part.startswith("(") and part.endswith(")") and OR.strip() in part:
            pairs = [_parse_equality(c) for c in split_top_level(part[1:-1], "||")]
            names = {p[0] for p in pairs if p}
            if pairs and all(pairs) and len(names) == 1:
                parsed.disjunctive_facets[pairs[0][0]] = [p[1] for p in pairs]
                continue
            unprocessed.append(part)
            continue

        match = _RANGE_RE.match(part)
        if match:
            parsed.numeric_filters[match.group(1)] = NumericRange(
                min=_parse_number(match.group(2)),
                max=_parse_number(match.group(3)),
            )
            continue

        match = _GE_RE.match(part) or _LE_RE.match(part)
        if match:
            name = match.group(1)
            existing = parsed.numeric_filters.get(name, NumericRange())
            bound = _parse_number(match.group(2))
            if ":>=" in part:
                parsed.numeric_filters[name] = NumericRange(min=bound, max=existing.max)
            else:
                parsed.numeric_filters[name] = NumericRange(min=existing.min, max=bound)
            continue

        equality = _parse_equality(part)
        if equality:
            parsed.selective_filters[equality[0]] = equality[1]
            continue

        unprocessed.append(part)

    parsed.remaining_filters = combine_filters(unprocessed)
    return parsed
