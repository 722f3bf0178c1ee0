"""
SortBuilder - Typesense sort_by expression construction and parsing

Each sort key serializes as ``field:direction``; keys are comma-joined in
caller order, which is also their tie-break priority. A key without a
direction sorts ascending.

    >>> build_sort_string([SortField("price", "desc"), SortField("name")])
    'price:desc,name:asc'
    >>> parse_sort_string("price:desc,name")
    [SortField(field='price', order=<SortOrder.DESC: 'desc'>), SortField(field='name', order=<SortOrder.ASC: 'asc'>)]
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from typesense_search.shared.exceptions import InvalidFieldNameError, InvalidSortError

logger = logging.getLogger(__name__)

# Plain fields, special fields (_text_match) and parameterized geo sorts: location(48.85,2.34)
SORT_FIELD_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_.]*(\([^()]*\))?$")


class SortOrder(Enum):
    ASC = "asc"
    DESC = "desc"

    @classmethod
    def parse(cls, value: SortOrder | str | None, *, field_name: str = "") -> SortOrder:
        """``None`` means ascending; anything other than asc/desc is rejected."""
        if value is None:
            return cls.ASC
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise InvalidSortError(field_name, value)

    @property
    def opposite(self) -> SortOrder:
        return SortOrder.DESC if self is SortOrder.ASC else SortOrder.ASC


@dataclass(frozen=True)
class SortField:
    """One sort key."""

    field: str
    order: SortOrder = SortOrder.ASC

    def __post_init__(self) -> None:
        if not isinstance(self.field, str) or not SORT_FIELD_PATTERN.match(self.field.strip()):
            raise InvalidFieldNameError(self.field)
        object.__setattr__(self, "field", self.field.strip())
        object.__setattr__(self, "order", SortOrder.parse(self.order, field_name=self.field))

    def to_string(self) -> str:
        return f"{self.field}:{self.order.value}"

    def toggled(self) -> SortField:
        return SortField(self.field, self.order.opposite)


SortInput = SortField | tuple[str, Any] | Mapping[str, Any] | str


def _coerce(sort: SortInput) -> SortField:
    if isinstance(sort, SortField):
        return sort
    if isinstance(sort, str):
        return SortField(sort)
    if isinstance(sort, Mapping):
        return SortField(sort.get("field", ""), sort.get("order", sort.get("direction")))
    if isinstance(sort, tuple) and len(sort) == 2:
        return SortField(sort[0], sort[1])
    raise InvalidSortError(str(sort), None)


def build_sort_string(sorts: Iterable[SortInput] | None) -> str:
    """
    Comma-join ``field:direction`` pairs in the given order.

    Raises:
        InvalidSortError: a direction other than asc/desc
        InvalidFieldNameError: an empty or malformed field
    """
    if not sorts:
        return ""
    expression = ",".join(_coerce(s).to_string() for s in sorts)
    logger.debug(f"Built sort expression: {expression!r}")
    return expression


def build_single_sort_string(field_name: str, order: SortOrder | str | None = None) -> str:
    return SortField(field_name, order).to_string()


def parse_single_sort_string(sort_string: str | None) -> SortField | None:
    """Parse one ``field[:direction]`` token; malformed tokens yield ``None``."""
    if not sort_string or not sort_string.strip():
        return None
    name, sep, direction = sort_string.strip().rpartition(":")
    if not sep:
        name, direction = direction, None
    try:
        return SortField(name, direction)
    except (InvalidSortError, InvalidFieldNameError):
        logger.debug(f"Skipping malformed sort token: {sort_string!r}")
        return None


def _split_sort_tokens(sort_string: str) -> list[str]:
    # Commas inside geo sort parentheses are part of the token
    tokens: list[str] = []
    depth = 0
    current: list[str] = []
    for ch in sort_string:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        if ch == "," and depth == 0:
            tokens.append("".join(current))
            current = []
        else:
            current.append(ch)
    tokens.append("".join(current))
    return [t.strip() for t in tokens if t.strip()]


def parse_sort_string(sort_string: str | None) -> list[SortField]:
    """Inverse of build_sort_string. Malformed tokens are skipped."""
    if not sort_string:
        return []
    parsed = (parse_single_sort_string(token) for token in _split_sort_tokens(sort_string))
    return [s for s in parsed if s is not None]


def build_combined_sort_string(sort_by: str | None = None, multi_sort_by: Iterable[SortInput] | None = None) -> str:
    """A non-empty multi-sort list wins over the single sort string."""
    sorts = list(multi_sort_by or [])
    if sorts:
        return build_sort_string(sorts)
    return sort_by or ""


def normalize_sort_input(sort: str | Iterable[SortInput] | None) -> list[SortField]:
    if not sort:
        return []
    if isinstance(sort, str):
        return parse_sort_string(sort)
    return [_coerce(s) for s in sort]


def validate_sort_fields(sorts: Iterable[SortField], sortable: Iterable[str] | None = None) -> list[SortField]:
    """Keep only sorts on ``sortable`` fields. No field list means everything is sortable."""
    sorts = list(sorts)
    if sortable is None:
        return sorts
    allowed = set(sortable)
    return [s for s in sorts if s.field in allowed]


def toggle_sort_direction(sort_string: str | None) -> str:
    """Flip the direction of one sort token; a bare field (ascending) becomes desc."""
    parsed = parse_single_sort_string(sort_string)
    if parsed is None:
        return sort_string or ""
    return parsed.toggled().to_string()


def get_sort_direction(sort_string: str | None) -> SortOrder | None:
    """Explicit direction of one token, or ``None`` when absent or invalid."""
    if not sort_string or ":" not in sort_string:
        return None
    parsed = parse_single_sort_string(sort_string)
    return parsed.order if parsed else None


def is_sort_active(field_name: str, sort_string: str | None) -> bool:
    if not field_name or not sort_string:
        return False
    return any(s.field == field_name for s in parse_sort_string(sort_string))
