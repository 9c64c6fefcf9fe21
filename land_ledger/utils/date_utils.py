"""Date manipulation utilities"""

import calendar
from datetime import date


def last_day_of_month(year: int, month: int) -> int:
    """Number of days in the given month, leap years included"""
    return calendar.monthrange(year, month)[1]


def add_months(from_date: date, months: int, day: int | None = None) -> date:
    """
    Move a date forward by whole calendar months.

    The target day defaults to from_date's day. When that day does not exist
    in the target month it is clamped to the month's last day, so Jan 31 + 1
    month is Feb 28 (Feb 29 in leap years) rather than early March.
    """
    month_index = from_date.month - 1 + months
    year = from_date.year + month_index // 12
    month = month_index % 12 + 1
    target_day = from_date.day if day is None else day
    return date(year, month, min(target_day, last_day_of_month(year, month)))


def add_years(from_date: date, years: int) -> date:
    """Same month/day in a later year; Feb 29 falls back to Feb 28"""
    year = from_date.year + years
    return date(year, from_date.month, min(from_date.day, last_day_of_month(year, from_date.month)))
