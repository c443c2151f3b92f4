from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import date
from decimal import Decimal

from practice_reports.utils.months import YearMonth


TRAILING_WINDOW_MONTHS = 12


def lookback_start(window_start: date, months: int = TRAILING_WINDOW_MONTHS) -> date:
    """First day of the month ``months`` before the visible window starts."""
    return YearMonth.of(window_start).shift(-months).first_day


def trailing_sum(
    series: Mapping[YearMonth, Decimal],
    month: YearMonth,
    window: int = TRAILING_WINDOW_MONTHS,
) -> Decimal:
    total = Decimal("0")
    for offset in range(window):
        total += series.get(month.shift(-offset), Decimal("0"))
    return total


def trailing_sums(
    series: Mapping[YearMonth, Decimal],
    months: Sequence[YearMonth],
    window: int = TRAILING_WINDOW_MONTHS,
) -> dict[YearMonth, Decimal]:
    """Sum of ``series`` over ``[M - window + 1, M]`` for every month ``M``."""
    return {month: trailing_sum(series, month, window) for month in months}
