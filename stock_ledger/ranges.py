"""Selectable chart ranges and their start dates."""

from __future__ import annotations

from datetime import date, timedelta
from enum import Enum

import pandas as pd


class ChartTimeRange(str, Enum):
    ONE_WEEK = "1W"
    MONTH_TO_DATE = "MTD"
    ONE_MONTH = "1M"
    THREE_MONTHS = "3M"
    SIX_MONTHS = "6M"
    YEAR_TO_DATE = "YTD"
    ONE_YEAR = "1Y"
    FIVE_YEARS = "5Y"
    ALL = "ALL"


_MONTH_OFFSETS = {
    ChartTimeRange.ONE_MONTH: pd.DateOffset(months=1),
    ChartTimeRange.THREE_MONTHS: pd.DateOffset(months=3),
    ChartTimeRange.SIX_MONTHS: pd.DateOffset(months=6),
    ChartTimeRange.ONE_YEAR: pd.DateOffset(years=1),
    ChartTimeRange.FIVE_YEARS: pd.DateOffset(years=5),
}


def years_before(end: date, years: int) -> date:
    """Same calendar day ``years`` earlier (Feb 29 falls back to Feb 28)."""

    return (pd.Timestamp(end) - pd.DateOffset(years=years)).date()


def range_start(time_range: ChartTimeRange | str, end: date, earliest: date) -> date:
    """Resolve the first date of ``time_range`` ending at ``end``.

    The result is clamped so it never precedes ``earliest``.
    """

    time_range = ChartTimeRange(time_range)
    if time_range is ChartTimeRange.ALL:
        start = earliest
    elif time_range is ChartTimeRange.ONE_WEEK:
        start = end - timedelta(days=7)
    elif time_range is ChartTimeRange.MONTH_TO_DATE:
        start = end.replace(day=1)
    elif time_range is ChartTimeRange.YEAR_TO_DATE:
        start = date(end.year, 1, 1)
    else:
        start = (pd.Timestamp(end) - _MONTH_OFFSETS[time_range]).date()
    return max(start, earliest)


__all__ = ["ChartTimeRange", "range_start", "years_before"]
