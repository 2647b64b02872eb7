"""Calendar month helpers.

A stored month marker is the first day of the month *after* the data it
holds: the record marked ``5/1/2020`` contains April 2020. Markers are
persisted as ``M/D/YYYY`` (no zero padding), the same form the query
templates receive for their date placeholders.
"""

from __future__ import annotations

import re
from datetime import date, datetime

_US_DATE = re.compile(r"^\s*(\d{1,2})/(\d{1,2})/(\d{4})\s*$")


def month_start(value: date | datetime) -> date:
    """First day of the month containing ``value``."""
    return date(value.year, value.month, 1)


def add_months(value: date, months: int) -> date:
    """Shift a date by whole months, landing on the first of the month."""
    index = value.year * 12 + (value.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def collection_window(target: date | datetime) -> tuple[date, date]:
    """
    Window collected for a target date.

    Returns ``(from_date, to_date)`` where ``to_date`` is the first day of the
    target's month (exclusive bound, also the record's marker) and
    ``from_date`` is one month earlier. Any day within a month gives the same
    window.
    """
    to_date = month_start(target)
    return add_months(to_date, -1), to_date


def format_us_date(value: date) -> str:
    """``date(2020, 5, 1)`` -> ``'5/1/2020'``."""
    return f"{value.month}/{value.day}/{value.year}"


def parse_month_marker(value: str | date | datetime) -> date:
    """Parse a persisted marker (``M/D/YYYY`` or ISO) into a first-of-month date."""
    if isinstance(value, (date, datetime)):
        return month_start(value)
    match = _US_DATE.match(value)
    if match:
        month, day, year = (int(part) for part in match.groups())
        return month_start(date(year, month, day))
    return month_start(date.fromisoformat(value.strip()[:10]))


__all__ = [
    "month_start",
    "add_months",
    "collection_window",
    "format_us_date",
    "parse_month_marker",
]
