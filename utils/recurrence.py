# utils/recurrence.py
from __future__ import annotations

from datetime import date, timedelta
from typing import List, Optional

from dateutil.relativedelta import relativedelta

from models.enums import RecurrenceUnit
from utils.dates import DateLike, to_date

UNITS = tuple(u.value for u in RecurrenceUnit)


def _check(frequency, unit) -> None:
    if isinstance(frequency, bool) or not isinstance(frequency, int) or frequency < 1:
        raise ValueError(f"recurrence frequency must be a positive integer, got {frequency!r}")
    if unit not in UNITS:
        raise ValueError(f"recurrence unit must be one of {UNITS}, got {unit!r}")


def step(d: date, frequency: int, unit: str) -> date:
    if unit == RecurrenceUnit.DAYS:
        return d + timedelta(days=frequency)
    if unit == RecurrenceUnit.WEEKS:
        return d + timedelta(days=7 * frequency)
    # calendar months; Jan 31 + 1 month clamps to the end of February
    return d + relativedelta(months=frequency)


def expand(start: DateLike, end: DateLike, frequency: int, unit: str) -> List[str]:
    """Occurrence dates from ``start`` through ``end`` inclusive.

    >>> expand("2025-01-01", "2025-01-15", 7, "days")
    ['2025-01-01', '2025-01-08', '2025-01-15']

    ``start`` after ``end`` yields no occurrences.
    """
    _check(frequency, unit)
    current, last = to_date(start), to_date(end)
    out = []
    while current <= last:
        out.append(current.isoformat())
        current = step(current, frequency, unit)
    return out


def project_end_date(start: DateLike, frequency: int, unit: str, count: int) -> str:
    """End date covering ``count`` occurrences, for template previews."""
    _check(frequency, unit)
    if count < 1:
        raise ValueError(f"recurrence count must be at least 1, got {count!r}")
    d = to_date(start)
    if unit == RecurrenceUnit.MONTHS:
        return (d + relativedelta(months=frequency * (count - 1))).isoformat()
    per = 7 * frequency if unit == RecurrenceUnit.WEEKS else frequency
    return (d + timedelta(days=per * (count - 1))).isoformat()


def preview(start: DateLike, frequency: int, unit: str,
            end: Optional[DateLike] = None, count: Optional[int] = None) -> List[str]:
    if end is None:
        if count is None:
            raise ValueError("preview needs an end date or an occurrence count")
        end = project_end_date(start, frequency, unit, count)
    return expand(start, end, frequency, unit)


def validate_recurrence(row: dict) -> List[str]:
    problems = []
    if row.get("is_recurring"):
        if not row.get("recurrence_frequency"):
            problems.append("recurring task has no recurrence_frequency")
        if not row.get("recurrence_unit"):
            problems.append("recurring task has no recurrence_unit")
        elif row["recurrence_unit"] not in UNITS:
            problems.append(f"unknown recurrence_unit {row['recurrence_unit']!r}")
    return problems
