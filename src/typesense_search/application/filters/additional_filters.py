"""
Passthrough filter management.

The passthrough ("additional") filter is a raw filter_by expression that is
ANDed verbatim with the built clauses. These helpers treat it as an ordered
map of top-level clauses keyed by field name, so callers can replace or drop
the clause for one field without touching the rest. A parenthesized group is
keyed by its own text.

Example:
    >>> update_filter_in_additional_filters("brand:=`Acme` && stock:>0", "stock", "stock:>5")
    'brand:=`Acme` && stock:>5'
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from .filter_builder import AND, combine_filters, split_top_level

_FIELD_RE = re.compile(r"^([A-Za-z_][A-Za-z0-9_.]*):(?:!?=|>=?|<=?|\[|\(|(?![=><\[(!]))")


def extract_field_from_filter(expression: str | None) -> str | None:
    """Field name at the start of a ``field:...`` clause, or ``None``."""
    if not expression or not expression.strip():
        return None
    match = _FIELD_RE.match(expression.strip())
    return match.group(1) if match else None


def _is_group(part: str) -> bool:
    return part.startswith("(") and part.endswith(")")


def parse_additional_filters(expression: str | None) -> dict[str, str]:
    """Split into ``{key: clause}`` in expression order."""
    clauses: dict[str, str] = {}
    if not expression or not expression.strip():
        return clauses
    for part in split_top_level(expression):
        if not part:
            continue
        if _is_group(part):
            clauses[part] = part
            continue
        name = extract_field_from_filter(part)
        if name:
            clauses[name] = part
    return clauses


def combine_additional_filters(clauses: dict[str, str]) -> str:
    return combine_filters(clauses.values(), AND)


def update_filter_in_additional_filters(expression: str | None, field_name: str, new_filter: str | None) -> str:
    """Replace (or append) the clause for ``field_name``; an empty filter removes it."""
    clauses = parse_additional_filters(expression)
    if new_filter:
        clauses[field_name] = new_filter
    else:
        clauses.pop(field_name, None)
    return combine_additional_filters(clauses)


def remove_filter_from_additional_filters(expression: str | None, field_name: str) -> str:
    return update_filter_in_additional_filters(expression, field_name, None)


def has_field_in_additional_filters(expression: str | None, field_name: str) -> bool:
    return field_name in parse_additional_filters(expression)


def get_filter_for_field(expression: str | None, field_name: str) -> str | None:
    return parse_additional_filters(expression).get(field_name)


def merge_additional_filters(first: str | None, second: str | None) -> str:
    """Merge two expressions; clauses from ``second`` win on the same key."""
    merged = parse_additional_filters(first)
    merged.update(parse_additional_filters(second))
    return combine_additional_filters(merged)


@dataclass
class FilterValidationResult:
    """Result of passthrough filter syntax validation."""

    is_valid: bool
    errors: list[str] = field(default_factory=list)

    @property
    def error(self) -> str | None:
        return self.errors[0] if self.errors else None


def _check_parentheses(expression: str) -> str | None:
    depth = 0
    in_literal = False
    escaped = False
    for ch in expression:
        if escaped:
            escaped = False
            continue
        if in_literal:
            if ch == "\\":
                escaped = True
            elif ch == "`":
                in_literal = False
            continue
        if ch == "`":
            in_literal = True
        elif ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth < 0:
                return "Unmatched closing parenthesis"
    if depth:
        return "Unmatched opening parenthesis"
    return None


def validate_additional_filters(expression: str | None) -> FilterValidationResult:
    """
    Check a passthrough expression before it is sent.

    Checks (in order):
    1. Balanced parentheses
    2. No doubled ``&&`` operators
    3. No empty clauses or empty groups
    4. Every clause is ``field:...`` or a parenthesized group
    """
    if not expression or not expression.strip():
        return FilterValidationResult(is_valid=True)

    paren_error = _check_parentheses(expression)
    if paren_error:
        return FilterValidationResult(is_valid=False, errors=[paren_error])

    if re.search(r"&&\s*&&", expression):
        return FilterValidationResult(
            is_valid=False,
            errors=["Invalid filter format: multiple consecutive operators"],
        )

    for part in split_top_level(expression):
        if not part:
            return FilterValidationResult(is_valid=False, errors=["Invalid filter format: empty filter part"])
        if _is_group(part):
            if not part[1:-1].strip():
                return FilterValidationResult(is_valid=False, errors=["Invalid filter format: empty parentheses"])
            continue
        if extract_field_from_filter(part) is None:
            return FilterValidationResult(is_valid=False, errors=[f"Invalid filter format: {part}"])

    return FilterValidationResult(is_valid=True)
