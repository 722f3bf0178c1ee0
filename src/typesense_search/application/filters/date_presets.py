"""
Date range presets.

Common calendar windows rendered as unix-second filter clauses. Every window
is computed in UTC; "now" is injectable so results are reproducible.

Example:
    >>> now = datetime(2024, 3, 15, 12, 0, tzinfo=UTC)
    >>> apply_date_preset("created_at", DatePreset.THIS_MONTH, now=now)
    'created_at:[1709251200..1711929599]'
"""

from __future__ import annotations

import calendar
import re
from datetime import UTC, date, datetime, timedelta
from enum import Enum

from typesense_search.shared.exceptions import InvalidParameterError

from .filter_builder import build_numeric_filter, to_unix_timestamp, validate_field_name


class DatePreset(Enum):
    TODAY = "TODAY"
    YESTERDAY = "YESTERDAY"
    LAST_7_DAYS = "LAST_7_DAYS"
    LAST_30_DAYS = "LAST_30_DAYS"
    THIS_MONTH = "THIS_MONTH"
    LAST_MONTH = "LAST_MONTH"
    THIS_YEAR = "THIS_YEAR"
    LAST_YEAR = "LAST_YEAR"


def _now(now: datetime | None) -> datetime:
    if now is None:
        return datetime.now(UTC)
    if now.tzinfo is None:
        return now.replace(tzinfo=UTC)
    return now.astimezone(UTC)


def _start_of_day(day: date) -> datetime:
    return datetime(day.year, day.month, day.day, tzinfo=UTC)


def _end_of_day(day: date) -> datetime:
    return datetime(day.year, day.month, day.day, 23, 59, 59, tzinfo=UTC)


def _month_bounds(year: int, month: int) -> tuple[datetime, datetime]:
    last_day = calendar.monthrange(year, month)[1]
    return _start_of_day(date(year, month, 1)), _end_of_day(date(year, month, last_day))


def _shift_months(moment: datetime, months: int) -> datetime:
    index = moment.year * 12 + (moment.month - 1) + months
    year, month = divmod(index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def date_range_filter(field_name: str, start: datetime | date | str, end: datetime | date | str) -> str:
    """Inclusive window; reversed bounds are swapped."""
    start_ts = to_unix_timestamp(start)
    end_ts = to_unix_timestamp(end)
    if end_ts < start_ts:
        start_ts, end_ts = end_ts, start_ts
    return build_numeric_filter(field_name, start_ts, end_ts)


def last_n_days_filter(field_name: str, days: int, *, now: datetime | None = None) -> str:
    """The last ``days`` calendar days, today included."""
    if days < 1:
        raise InvalidParameterError("days", days, "a positive integer")
    today = _now(now).date()
    return date_range_filter(field_name, _start_of_day(today - timedelta(days=days - 1)), _end_of_day(today))


def last_n_months_filter(field_name: str, months: int, *, now: datetime | None = None) -> str:
    if months < 1:
        raise InvalidParameterError("months", months, "a positive integer")
    current = _now(now)
    return date_range_filter(field_name, _shift_months(current, -months), current)


def month_filter(field_name: str, year: int, month: int) -> str:
    """One calendar month; ``month`` is 1-12."""
    if not 1 <= month <= 12:
        raise InvalidParameterError("month", month, "1-12")
    start, end = _month_bounds(year, month)
    return date_range_filter(field_name, start, end)


def current_month_filter(field_name: str, *, now: datetime | None = None) -> str:
    current = _now(now)
    return month_filter(field_name, current.year, current.month)


def current_year_filter(field_name: str, *, now: datetime | None = None) -> str:
    year = _now(now).year
    return date_range_filter(field_name, _start_of_day(date(year, 1, 1)), _end_of_day(date(year, 12, 31)))


def after_date_filter(field_name: str, moment: datetime | date | str) -> str:
    validate_field_name(field_name)
    return f"{field_name}:>{to_unix_timestamp(moment)}"


def before_date_filter(field_name: str, moment: datetime | date | str) -> str:
    validate_field_name(field_name)
    return f"{field_name}:<{to_unix_timestamp(moment)}"


def apply_date_preset(field_name: str, preset: DatePreset | str, *, now: datetime | None = None) -> str:
    try:
        preset = DatePreset(preset)
    except ValueError as e:
        raise InvalidParameterError("preset", preset, " | ".join(p.value for p in DatePreset)) from e
    current = _now(now)
    today = current.date()

    if preset is DatePreset.TODAY:
        return date_range_filter(field_name, _start_of_day(today), _end_of_day(today))
    if preset is DatePreset.YESTERDAY:
        yesterday = today - timedelta(days=1)
        return date_range_filter(field_name, _start_of_day(yesterday), _end_of_day(yesterday))
    if preset is DatePreset.LAST_7_DAYS:
        return last_n_days_filter(field_name, 7, now=current)
    if preset is DatePreset.LAST_30_DAYS:
        return last_n_days_filter(field_name, 30, now=current)
    if preset is DatePreset.THIS_MONTH:
        return current_month_filter(field_name, now=current)
    if preset is DatePreset.LAST_MONTH:
        previous = _shift_months(current.replace(day=1), -1)
        return month_filter(field_name, previous.year, previous.month)
    if preset is DatePreset.THIS_YEAR:
        return current_year_filter(field_name, now=current)
    last_year = current.year - 1
    return date_range_filter(field_name, _start_of_day(date(last_year, 1, 1)), _end_of_day(date(last_year, 12, 31)))


def _from_timestamp(text: str) -> datetime:
    value = int(text)
    # Millisecond timestamps have more than 10 digits
    if len(text) > 10:
        value //= 1000
    return datetime.fromtimestamp(value, UTC)


def parse_date_range_filter(
    expression: str | None,
    field_name: str | None = None,
    *,
    now: datetime | None = None,
) -> tuple[datetime, datetime] | None:
    """
    Recover ``(start, end)`` from a date clause.

    Without ``field_name`` the whole expression must be one
    ``field:[start..end]`` clause. With ``field_name`` the clause for that
    field is searched inside a larger expression, and open-ended ``:>`` /
    ``:<`` clauses are accepted (missing bounds become the epoch and ``now``).
    """
    if not expression:
        return None
    if field_name is None:
        match = re.match(r"^[\w.]+:\[(\d+)\.\.(\d+)\]$", expression.strip())
        if not match:
            return None
        return _from_timestamp(match.group(1)), _from_timestamp(match.group(2))

    name = re.escape(field_name)
    match = re.search(rf"(?<![\w.]){name}:\[(\d+)\.\.(\d+)\]", expression)
    if match:
        return _from_timestamp(match.group(1)), _from_timestamp(match.group(2))
    match = re.search(rf"(?<![\w.]){name}:>=?(\d+)", expression)
    if match:
        return _from_timestamp(match.group(1)), _now(now)
    match = re.search(rf"(?<![\w.]){name}:<=?(\d+)", expression)
    if match:
        return datetime.fromtimestamp(0, UTC), _from_timestamp(match.group(1))
    return None
