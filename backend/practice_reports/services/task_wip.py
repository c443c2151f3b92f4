from __future__ import annotations

import asyncio
from datetime import MINYEAR, date

from fastapi import HTTPException, status

from practice_reports.schemas.wip import MonthlyBalanceOut, TaskWipBalancesOut
from practice_reports.services.fiscal import expand_to_months
from practice_reports.services.ledger_reader import LedgerFilter, LedgerReader, OwnerColumn
from practice_reports.services.metrics import net_wip
from practice_reports.services.time_series import running_categorized_balances
from practice_reports.utils.decimal_math import money
from practice_reports.utils.months import YearMonth, month_grid
from practice_reports.utils.retry import RetryConfig, retry_async


DEFAULT_HISTORY_MONTHS = 24


async def task_wip_balances(
    reader: LedgerReader,
    task_code: str,
    *,
    today: date,
    start_date: date | None = None,
    end_date: date | None = None,
    retry: RetryConfig | None = None,
    cost_excluded_categories: frozenset[str] = frozenset(),
) -> TaskWipBalancesOut:
    end = end_date or today
    start = start_date or max(
        YearMonth.of(end).shift(1 - DEFAULT_HISTORY_MONTHS), YearMonth(MINYEAR, 1)
    ).first_day
    start, end = expand_to_months(start, end)
    months = month_grid(start, end, today=today)
    if months:
        end = min(end, months[-1].last_day)

    config = retry or RetryConfig()
    ledger_filter = LedgerFilter(OwnerColumn.task_code, task_code, None, end)
    try:
        rows = await retry_async(
            lambda: asyncio.to_thread(reader.wip_transactions, ledger_filter),
            config=config,
            operation=f"Task WIP read ({task_code})",
        )
    except config.retryable_exceptions as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Ledger data is temporarily unavailable. Please retry shortly.",
        ) from exc

    balances = running_categorized_balances(
        rows,
        months,
        today=today,
        delta=net_wip,
        cost_excluded_categories=cost_excluded_categories,
    )
    return TaskWipBalancesOut(
        task_code=task_code,
        start_date=start,
        end_date=end,
        balances=[
            MonthlyBalanceOut(month=str(row.month), balance=money(row.balance)) for row in balances
        ],
    )
