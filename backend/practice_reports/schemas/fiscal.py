from __future__ import annotations

from datetime import date

from practice_reports.schemas.common import CamelModel


class FiscalMonthOut(CamelModel):
    month: str
    fiscal_month: int
    fiscal_quarter: int
    label: str


class FiscalQuarterOut(CamelModel):
    quarter: int
    label: str
    start_date: date
    end_date: date


class FiscalYearOut(CamelModel):
    fiscal_year: int
    label: str
    start_date: date
    end_date: date
    is_closed: bool
    quarters: list[FiscalQuarterOut]
    months: list[FiscalMonthOut]


class FiscalCalendarOut(CamelModel):
    current_fiscal_year: int
    available_years: list[int]
    year: FiscalYearOut
