"""
Calendar and Period Utilities

A month is split into two sub-periods: days 1-15 and day 16 to the
month's last day. Ledger bounds are half-open [start, end); day ranges
used for counting are inclusive.

Every report resolves a record's calendar day through
resolve_record_date so dashboard, ledger and trends agree.
"""

import calendar
from collections.abc import Iterable, Mapping
from datetime import date, timedelta
from typing import Any, Optional, Union

from motoring.models.records import SubPeriod, coerce_calendar_date, coerce_timestamp


SubPeriodLike = Union[SubPeriod, str]


def resolve_record_date(record: Any, today: Optional[date] = None) -> date:
    """
    The calendar day a record belongs to.

    Explicit date field first (`tanggal`, then `date`), then the UTC day
    of the creation timestamp, then today. Works on models and on raw
    stored mappings.
    """
    if isinstance(record, Mapping):
        explicit = record.get("tanggal") or record.get("date") or record.get("record_date")
        created = record.get("createdAt") or record.get("created_at")
    else:
        explicit = getattr(record, "record_date", None)
        created = getattr(record, "created_at", None)

    day = coerce_calendar_date(explicit)
    if day is not None:
        return day
    timestamp = coerce_timestamp(created)
    if timestamp is not None:
        return timestamp.date()
    return today or date.today()


def month_key(day: date) -> str:
    return f"{day.year:04d}-{day.month:02d}"


def parse_month_key(key: str) -> tuple[int, int]:
    """'2024-03' -> (2024, 3)."""
    try:
        year_text, month_text = key.split("-")
        year, month = int(year_text), int(month_text)
    except (AttributeError, ValueError):
        raise ValueError(f"Invalid month key: {key!r} (expected YYYY-MM)")
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month key: {key!r} (month out of range)")
    return year, month


def sub_period_of(day: date) -> SubPeriod:
    return SubPeriod.FIRST_HALF if day.day <= 15 else SubPeriod.SECOND_HALF


def current_sub_period(today: Optional[date] = None) -> SubPeriod:
    return sub_period_of(today or date.today())


def first_of_next_month(year: int, month: int) -> date:
    if month == 12:
        return date(year + 1, 1, 1)
    return date(year, month + 1, 1)


def previous_month(year: int, month: int) -> tuple[int, int]:
    if month == 1:
        return year - 1, 12
    return year, month - 1


def period_bounds(year: int, month: int, sub_period: SubPeriodLike) -> tuple[date, date]:
    """
    Half-open [start, end) bounds of a sub-period.

    The first half ends on the 16th, the second half on the first day of
    the next month.
    """
    if SubPeriod(sub_period) == SubPeriod.FIRST_HALF:
        return date(year, month, 1), date(year, month, 16)
    return date(year, month, 16), first_of_next_month(year, month)


def period_day_range(
    year: int,
    month: int,
    sub_period: Optional[SubPeriodLike] = None,
) -> tuple[date, date]:
    """Inclusive first and last day; no sub-period means the whole month."""
    if sub_period is None:
        return date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1])
    start, end = period_bounds(year, month, sub_period)
    return start, end - timedelta(days=1)


def in_period(day: date, year_month: Optional[str], sub_period: Optional[SubPeriodLike]) -> bool:
    """Month filter (None = any month) combined with sub-period filter (None = whole month)."""
    if year_month is not None and month_key(day) != year_month:
        return False
    if sub_period is not None and sub_period_of(day) != SubPeriod(sub_period):
        return False
    return True


def working_days_in_range(start: date, end: date) -> int:
    """Monday-Friday count over [start, end], both inclusive."""
    count = 0
    day = start
    while day <= end:
        if day.weekday() < 5:
            count += 1
        day += timedelta(days=1)
    return count


def working_days_in_period(
    year: int,
    month: int,
    sub_period: Optional[SubPeriodLike] = None,
) -> int:
    return working_days_in_range(*period_day_range(year, month, sub_period))


def elapsed_working_days(
    year: int,
    month: int,
    sub_period: Optional[SubPeriodLike],
    today: date,
) -> int:
    """
    Working days of the period up to and including today.

    Zero for a period that starts after today; the full count for a
    period entirely in the past.
    """
    start, end = period_day_range(year, month, sub_period)
    if start > today:
        return 0
    return working_days_in_range(start, min(end, today))


def trailing_months(today: date, count: int = 6) -> list[str]:
    """Month keys of the `count` months ending at today's month, oldest first."""
    year, month = today.year, today.month
    keys = []
    for _ in range(count):
        keys.append(f"{year:04d}-{month:02d}")
        year, month = previous_month(year, month)
    return list(reversed(keys))


def available_months(records: Iterable[Any], today: Optional[date] = None) -> list[str]:
    """Distinct month keys present in the records, most recent first."""
    return sorted(
        {month_key(resolve_record_date(record, today)) for record in records},
        reverse=True,
    )


def month_label(key: str) -> str:
    """'2024-03' -> 'Mar 2024'."""
    year, month = parse_month_key(key)
    return date(year, month, 1).strftime("%b %Y")
