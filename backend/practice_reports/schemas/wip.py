from __future__ import annotations

from datetime import date

from practice_reports.schemas.common import CamelModel, ReportNumber


class MonthlyBalanceOut(CamelModel):
    month: str
    balance: ReportNumber


class TaskWipBalancesOut(CamelModel):
    task_code: str
    start_date: date
    end_date: date
    balances: list[MonthlyBalanceOut]
