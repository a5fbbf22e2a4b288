"""Working-day arithmetic and month helpers shared by the forecast and overtime engines."""

from __future__ import annotations

import calendar
from datetime import date, timedelta
from decimal import Decimal

WORK_WEEK_DAYS = 5
DEFAULT_HOURS_PER_WEEK = Decimal("40")


def parse_year_month(value: str) -> date:
    """Parse ``YYYY-MM`` into the first day of that month.

    Raises ``ValueError`` for anything else; callers at the request boundary
    translate it into a validation error.
    """

    parts = value.strip().split("-")
    if len(parts) != 2 or len(parts[0]) != 4 or len(parts[1]) != 2:
        raise ValueError(f"Invalid year-month value: {value!r}")
    return date(int(parts[0]), int(parts[1]), 1)


def format_year_month(month_start: date) -> str:
    return f"{month_start.year:04d}-{month_start.month:02d}"


def days_in_month(month_start: date) -> int:
    return calendar.monthrange(month_start.year, month_start.month)[1]


def month_bounds(month_start: date) -> tuple[date, date]:
    first = date(month_start.year, month_start.month, 1)
    return first, date(first.year, first.month, days_in_month(first))


def month_sequence(start_month: date, end_month: date) -> list[date]:
    current = date(start_month.year, start_month.month, 1)
    end = date(end_month.year, end_month.month, 1)
    months: list[date] = []
    while current <= end:
        months.append(current)
        if current.month == 12:
            current = date(current.year + 1, 1, 1)
        else:
            current = date(current.year, current.month + 1, 1)
    return months


def working_days_in_range(start: date, end: date) -> int:
    """Count Monday-Friday days in ``[start, end]`` inclusive.

    Public holidays are not considered here; callers subtract them separately.
    """

    if end < start:
        return 0

    total_days = (end - start).days + 1
    full_weeks, remainder = divmod(total_days, 7)
    working = full_weeks * WORK_WEEK_DAYS

    day = start + timedelta(days=full_weeks * 7)
    for _ in range(remainder):
        if day.weekday() < WORK_WEEK_DAYS:
            working += 1
        day += timedelta(days=1)
    return working


def is_active_in_month(
    month_start: date,
    month_end: date,
    person_start: date | None,
    person_end: date | None,
) -> bool:
    if person_start is not None and person_start > month_end:
        return False
    if person_end is not None and person_end < month_start:
        return False
    return True


def effective_working_days(
    month_start: date,
    month_end: date,
    person_start: date | None = None,
    person_end: date | None = None,
) -> int:
    """Working days of the month clipped to a person's employment window.

    The window is clipped first and weekdays are counted afterwards, so a
    start or end date falling on a weekend is handled without special cases.
    """

    if not is_active_in_month(month_start, month_end, person_start, person_end):
        return 0

    clipped_start = month_start
    if person_start is not None and person_start > month_start:
        clipped_start = person_start

    clipped_end = month_end
    if person_end is not None and person_end < month_end:
        clipped_end = person_end

    return working_days_in_range(clipped_start, clipped_end)
