"""Date manipulation utilities"""

import calendar
from datetime import date


def days_in_month(year: int, month: int) -> int:
    """Number of days in the given month"""
    return calendar.monthrange(year, month)[1]


def clamp_day(year: int, month: int, day: int) -> date:
    """Build a date, clamping day to the last day of the month"""
    return date(year, month, min(day, days_in_month(year, month)))


def add_months(from_date: date, months: int) -> date:
    """Shift a date by whole months, keeping the day where the month allows it"""
    total = from_date.month - 1 + months
    year = from_date.year + total // 12
    month = total % 12 + 1
    return clamp_day(year, month, from_date.day)
