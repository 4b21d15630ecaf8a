"""Date manipulation utilities"""

import calendar
from datetime import date
from typing import Tuple


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    """First and last day of a calendar month"""
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month: {month}")
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def quarter_bounds(year: int, quarter: int) -> Tuple[date, date]:
    """First and last day of a calendar quarter (Q1 = Jan-Mar)"""
    if not 1 <= quarter <= 4:
        raise ValueError(f"Invalid quarter: {quarter}")
    start_month = (quarter - 1) * 3 + 1
    start, _ = month_bounds(year, start_month)
    _, end = month_bounds(year, start_month + 2)
    return start, end
