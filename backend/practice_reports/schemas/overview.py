from __future__ import annotations

from datetime import date
from typing import Literal

from practice_reports.models.enums import FilterMode
from practice_reports.schemas.common import CamelModel, ReportNumber


class MonthlyMetricsOut(CamelModel):
    month: str
    net_revenue: ReportNumber
    gross_profit: ReportNumber
    collections: ReportNumber
    wip_lockup_days: ReportNumber
    debtors_lockup_days: ReportNumber
    writeoff_percentage: ReportNumber
    gross_time: ReportNumber
    provisions: ReportNumber
    wip_balance: ReportNumber
    debtors_balance: ReportNumber
    trailing12_revenue: ReportNumber
    trailing12_billings: ReportNumber
    writeoff_amount: ReportNumber
    gross_wip: ReportNumber
    net_wip: ReportNumber


class DateRangeOut(CamelModel):
    start_date: date
    end_date: date


class OverviewReportOut(CamelModel):
    monthly_metrics: list[MonthlyMetricsOut] | None = None
    yearly_data: dict[str, list[MonthlyMetricsOut]] | None = None
    filter_mode: FilterMode
    employee_code: str
    fiscal_year: int | Literal["all"] | None = None
    date_range: DateRangeOut | None = None
    is_cumulative: bool = True
