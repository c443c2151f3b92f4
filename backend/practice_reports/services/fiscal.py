from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import MAXYEAR, MINYEAR, date

from fastapi import HTTPException, status

from practice_reports.schemas.fiscal import FiscalCalendarOut, FiscalMonthOut, FiscalQuarterOut, FiscalYearOut
from practice_reports.utils.months import YearMonth, month_range


MONTH_NAMES = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
ALL_YEARS_SPAN = 3


@dataclass(frozen=True)
class FiscalPeriod:
    fiscal_year: int
    start: date
    end: date


@dataclass(frozen=True)
class FiscalYearPeriod:
    year: int


@dataclass(frozen=True)
class AllFiscalYears:
    pass


@dataclass(frozen=True)
class CustomDateRange:
    start: date
    end: date


PeriodDescriptor = FiscalYearPeriod | AllFiscalYears | CustomDateRange


def expand_to_months(start: date, end: date) -> tuple[date, date]:
    """Widen ``[start, end]`` to whole calendar months."""
    if start > end:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="startDate must be on or before endDate.",
        )
    return YearMonth.of(start).first_day, YearMonth.of(end).last_day


class FiscalPeriodResolver:
    """
    Maps fiscal-year numbers onto calendar dates.

    A fiscal year is named after the calendar year it ends in. With the
    default September start, FY2024 runs 2023-09-01 through 2024-08-31.
    """

    def __init__(self, start_month: int = 9, today: Callable[[], date] = date.today) -> None:
        if not 1 <= start_month <= 12:
            raise ValueError(f"Invalid fiscal start month: {start_month}")
        self.start_month = start_month
        self._today = today

    def today(self) -> date:
        return self._today()

    def fiscal_year_for(self, day: date) -> int:
        if self.start_month > 1 and day.month >= self.start_month:
            return day.year + 1
        return day.year

    def current_fiscal_year(self) -> int:
        return self.fiscal_year_for(self.today())

    @property
    def min_year(self) -> int:
        # The first fiscal month less a twelve-month lookback must still be a real date.
        return MINYEAR + (2 if self.start_month > 1 else 1)

    @property
    def max_year(self) -> int:
        return MAXYEAR

    def period(self, fiscal_year: int) -> FiscalPeriod:
        first = YearMonth(fiscal_year if self.start_month == 1 else fiscal_year - 1, self.start_month)
        return FiscalPeriod(fiscal_year, first.first_day, first.shift(11).last_day)

    def is_closed(self, fiscal_year: int) -> bool:
        return self.period(fiscal_year).end < self.today()

    def all_years(self) -> list[int]:
        current = self.current_fiscal_year()
        return [current - offset for offset in reversed(range(ALL_YEARS_SPAN))]

    def preceding_years(self, fiscal_year: int, count: int = ALL_YEARS_SPAN - 1) -> list[int]:
        return [fiscal_year - offset for offset in range(1, count + 1)]

    def fiscal_month(self, day: date) -> int:
        return (day.month - self.start_month) % 12 + 1

    def fiscal_quarter(self, day: date) -> int:
        return (self.fiscal_month(day) - 1) // 3 + 1

    def quarter_range(self, fiscal_year: int, quarter: int) -> FiscalPeriod:
        if not 1 <= quarter <= 4:
            raise ValueError(f"Invalid fiscal quarter: {quarter}")
        first = YearMonth.of(self.period(fiscal_year).start).shift((quarter - 1) * 3)
        return FiscalPeriod(fiscal_year, first.first_day, first.shift(2).last_day)

    def month_label(self, day: date) -> str:
        fiscal_year = self.fiscal_year_for(day)
        quarter = self.fiscal_quarter(day)
        return f"{MONTH_NAMES[day.month - 1]} {day.year} (Q{quarter} FY{fiscal_year})"

    @staticmethod
    def label(fiscal_year: int, quarter: int | None = None) -> str:
        if quarter is None:
            return f"FY{fiscal_year}"
        return f"Q{quarter} FY{fiscal_year}"


def check_fiscal_year(fiscal: FiscalPeriodResolver, fiscal_year: int) -> int:
    if not fiscal.min_year <= fiscal_year <= fiscal.max_year:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"fiscalYear must be between {fiscal.min_year} and {fiscal.max_year}.",
        )
    return fiscal_year


def fiscal_calendar(fiscal: FiscalPeriodResolver, fiscal_year: int | None = None) -> FiscalCalendarOut:
    """Year selector options plus the quarter and month breakdown of one fiscal year."""
    current = fiscal.current_fiscal_year()
    year = check_fiscal_year(fiscal, current if fiscal_year is None else fiscal_year)
    period = fiscal.period(year)
    quarters = []
    for quarter in range(1, 5):
        bounds = fiscal.quarter_range(year, quarter)
        quarters.append(
            FiscalQuarterOut(
                quarter=quarter,
                label=fiscal.label(year, quarter),
                start_date=bounds.start,
                end_date=bounds.end,
            )
        )
    months = [
        FiscalMonthOut(
            month=str(month),
            fiscal_month=fiscal.fiscal_month(month.first_day),
            fiscal_quarter=fiscal.fiscal_quarter(month.first_day),
            label=fiscal.month_label(month.first_day),
        )
        for month in month_range(YearMonth.of(period.start), YearMonth.of(period.end))
    ]
    return FiscalCalendarOut(
        current_fiscal_year=current,
        available_years=fiscal.all_years(),
        year=FiscalYearOut(
            fiscal_year=year,
            label=fiscal.label(year),
            start_date=period.start,
            end_date=period.end,
            is_closed=fiscal.is_closed(year),
            quarters=quarters,
            months=months,
        ),
    )
