from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, fields
from datetime import MINYEAR, date
from typing import Literal, TypeVar, assert_never

from fastapi import HTTPException, status

from practice_reports.models.enums import AggregationMode, DebtorEntryKind, FilterMode
from practice_reports.schemas.overview import DateRangeOut, MonthlyMetricsOut, OverviewReportOut
from practice_reports.services.aggregation import (
    aggregate,
    aggregate_categorized,
    group_by_month,
    group_categorized_by_month,
    negated_amount,
)
from practice_reports.services.categorizer import LedgerTransaction
from practice_reports.services.employees import EmployeeRecord, EmployeeResolver, filter_mode_for
from practice_reports.services.fiscal import (
    AllFiscalYears,
    CustomDateRange,
    FiscalPeriodResolver,
    FiscalYearPeriod,
    PeriodDescriptor,
    check_fiscal_year,
    expand_to_months,
)
from practice_reports.services.ledger_reader import (
    LedgerFilter,
    LedgerReader,
    OwnerColumn,
    owner_column_for,
)
from practice_reports.services.metrics import MonthInputs, MonthlyMetrics, compose, net_revenue, net_wip
from practice_reports.services.report_cache import ReportCache, ReportScope
from practice_reports.services.time_series import running_balances, running_categorized_balances
from practice_reports.services.trailing import lookback_start, trailing_sums
from practice_reports.utils.months import YearMonth, month_grid
from practice_reports.utils.retry import RetryConfig, retry_async


logger = logging.getLogger("practice_reports.overview")

T = TypeVar("T")

LEDGER_UNAVAILABLE = "Ledger data is temporarily unavailable. Please retry shortly."
EMPLOYEES_UNAVAILABLE = "The employee directory is temporarily unavailable. Please retry shortly."


@dataclass(frozen=True)
class OverviewRequest:
    mode: Literal["fiscal", "custom"] = "fiscal"
    fiscal_year: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    service_lines: tuple[str, ...] = ()


@dataclass(frozen=True)
class ReportContext:
    employee_code: str
    filter_mode: FilterMode
    service_lines: tuple[str, ...]

    def scope(self, period: PeriodDescriptor) -> ReportScope:
        return ReportScope.build(self.employee_code, self.filter_mode, period, self.service_lines)


@dataclass(frozen=True)
class RawLedgerData:
    cumulative_wip: list[LedgerTransaction]
    incremental_wip: list[LedgerTransaction]
    collections: list[LedgerTransaction]
    net_billings: list[LedgerTransaction]
    debtors_balances: list[LedgerTransaction]
    wip_balances: list[LedgerTransaction]


def parse_period(request: OverviewRequest, fiscal: FiscalPeriodResolver) -> PeriodDescriptor:
    if request.mode == "custom":
        if request.start_date is None or request.end_date is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="startDate and endDate are required for custom date ranges.",
            )
        start, end = expand_to_months(request.start_date, request.end_date)
        if start.year <= MINYEAR:
            # Trailing metrics read a year of history before the window.
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"startDate must be in year {MINYEAR + 1} or later.",
            )
        return CustomDateRange(start, end)

    if request.fiscal_year is None or not request.fiscal_year.strip():
        return FiscalYearPeriod(fiscal.current_fiscal_year())
    token = request.fiscal_year.strip().lower()
    if token == "all":
        return AllFiscalYears()
    try:
        year = int(token)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="fiscalYear must be a year number or 'all'.",
        ) from None
    return FiscalYearPeriod(check_fiscal_year(fiscal, year))


async def gather_or_cancel(*aws: Awaitable[T]) -> list[T]:
    """Like ``asyncio.gather``, but the first failure cancels the siblings before it propagates."""
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


def build_monthly_metrics(
    raw: RawLedgerData,
    months: Sequence[YearMonth],
    *,
    today: date,
    cost_excluded_categories: frozenset[str] = frozenset(),
) -> list[MonthlyMetrics]:
    """Combine the six ledger reads into one metrics row per month of ``months``."""
    cumulative = aggregate_categorized(
        raw.cumulative_wip,
        months,
        AggregationMode.cumulative,
        cost_excluded_categories=cost_excluded_categories,
    )
    collections = aggregate(raw.collections, months, AggregationMode.cumulative, negated_amount)

    revenue_by_month = {
        month: net_revenue(amounts)
        for month, amounts in group_categorized_by_month(
            raw.incremental_wip, cost_excluded_categories=cost_excluded_categories
        ).items()
    }
    trailing_revenue = trailing_sums(revenue_by_month, months)
    trailing_billings = trailing_sums(group_by_month(raw.net_billings), months)

    wip_balances = {
        row.month: row.balance
        for row in running_categorized_balances(
            raw.wip_balances,
            months,
            today=today,
            delta=net_wip,
            cost_excluded_categories=cost_excluded_categories,
        )
    }
    debtors_balances = {
        row.month: row.balance
        for row in running_balances(raw.debtors_balances, months, today=today)
    }

    return compose(
        [
            MonthInputs(
                month=row.month,
                amounts=row.amounts,
                collections=collected.amount,
                wip_balance=wip_balances[row.month],
                debtors_balance=debtors_balances[row.month],
                trailing12_revenue=trailing_revenue[row.month],
                trailing12_billings=trailing_billings[row.month],
            )
            for row, collected in zip(cumulative, collections)
        ]
    )


def metrics_out(row: MonthlyMetrics) -> MonthlyMetricsOut:
    values = {field.name: getattr(row, field.name) for field in fields(row)}
    values["month"] = str(row.month)
    return MonthlyMetricsOut(**values)


class OverviewOrchestrator:
    """
    Builds the "My Reports / Overview" payload for one caller.

    Each report window triggers six concurrent ledger reads, then a
    synchronous aggregation pass. Payloads are cached per report scope and,
    after a fresh current-year report, the two preceding fiscal years are
    computed in the background so switching years is instant.
    """

    def __init__(
        self,
        *,
        reader: LedgerReader,
        employees: EmployeeResolver,
        cache: ReportCache,
        fiscal: FiscalPeriodResolver,
        partner_categories: frozenset[str],
        cost_excluded_categories: frozenset[str] = frozenset(),
        retry: RetryConfig | None = None,
    ) -> None:
        self.reader = reader
        self.employees = employees
        self.cache = cache
        self.fiscal = fiscal
        self.partner_categories = partner_categories
        self.cost_excluded_categories = cost_excluded_categories
        self.retry = retry or RetryConfig()
        self._background: set[asyncio.Task[None]] = set()

    async def run(self, email: str, request: OverviewRequest) -> OverviewReportOut:
        employee = await self._resolve_employee(email)
        context = ReportContext(
            employee_code=employee.employee_code,
            filter_mode=filter_mode_for(employee.category, self.partner_categories),
            service_lines=tuple(sorted(set(request.service_lines))),
        )
        period = parse_period(request, self.fiscal)
        logger.info(
            "Overview report requested employee=%s category=%s filter_mode=%s period=%s",
            employee.employee_code,
            employee.category,
            context.filter_mode.value,
            period,
        )

        match period:
            case FiscalYearPeriod(year=year):
                return await self._fiscal_single(context, year)
            case AllFiscalYears():
                return await self._fiscal_all(context)
            case CustomDateRange(start=start, end=end):
                return await self._custom_range(context, start, end)
            case _:
                assert_never(period)

    async def _resolve_employee(self, email: str) -> EmployeeRecord:
        employee = await self._call_with_retry(
            "Employee lookup",
            self.employees.resolve,
            email,
            unavailable_detail=EMPLOYEES_UNAVAILABLE,
        )
        if employee is None:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="No employee record found for your account.",
            )
        return employee

    async def _fiscal_single(self, context: ReportContext, year: int) -> OverviewReportOut:
        report, fresh = await self._fiscal_year_report(context, year)
        if fresh and year == self.fiscal.current_fiscal_year():
            self._schedule_prewarm(context, self.fiscal.preceding_years(year))
        return report

    async def _fiscal_all(self, context: ReportContext) -> OverviewReportOut:
        scope = context.scope(AllFiscalYears())
        cached = await self.cache.get(scope)
        if cached is not None:
            return OverviewReportOut.model_validate(cached)

        years = self.fiscal.all_years()
        # All-or-nothing: one failing year fails the whole comparison.
        reports = await gather_or_cancel(*(self._fiscal_year_report(context, year) for year in years))
        report = OverviewReportOut(
            yearly_data={
                str(year): single.monthly_metrics or [] for year, (single, _) in zip(years, reports)
            },
            filter_mode=context.filter_mode,
            employee_code=context.employee_code,
            fiscal_year="all",
        )
        await self.cache.set(scope, _dump(report))
        return report

    async def _custom_range(self, context: ReportContext, start: date, end: date) -> OverviewReportOut:
        scope = context.scope(CustomDateRange(start, end))
        cached = await self.cache.get(scope)
        if cached is not None:
            return OverviewReportOut.model_validate(cached)

        rows = await self._run_pipeline(context, start, end)
        report = OverviewReportOut(
            monthly_metrics=[metrics_out(row) for row in rows],
            filter_mode=context.filter_mode,
            employee_code=context.employee_code,
            date_range=DateRangeOut(start_date=start, end_date=end),
        )
        await self.cache.set(scope, _dump(report))
        return report

    async def _fiscal_year_report(
        self, context: ReportContext, year: int
    ) -> tuple[OverviewReportOut, bool]:
        """Cached-or-computed single fiscal year report; the flag is True when freshly computed."""
        scope = context.scope(FiscalYearPeriod(year))
        cached = await self.cache.get(scope)
        if cached is not None:
            return OverviewReportOut.model_validate(cached), False

        period = self.fiscal.period(year)
        rows = await self._run_pipeline(context, period.start, period.end)
        report = OverviewReportOut(
            monthly_metrics=[metrics_out(row) for row in rows],
            filter_mode=context.filter_mode,
            employee_code=context.employee_code,
            fiscal_year=year,
        )
        await self.cache.set(scope, _dump(report))
        return report, True

    async def _run_pipeline(self, context: ReportContext, start: date, end: date) -> list[MonthlyMetrics]:
        today = self.fiscal.today()
        months = month_grid(start, end, today=today)
        if not months:
            return []

        window_end = min(end, months[-1].last_day)
        padded_start = lookback_start(start)
        owner = owner_column_for(context.filter_mode)

        def wip(since: date | None) -> LedgerFilter:
            return LedgerFilter(owner, context.employee_code, since, window_end, context.service_lines)

        def debtors(since: date | None, kind: DebtorEntryKind) -> LedgerFilter:
            return LedgerFilter(
                OwnerColumn.biller,
                context.employee_code,
                since,
                window_end,
                context.service_lines,
                kind,
            )

        started = time.monotonic()
        reads = await gather_or_cancel(
            self._read("cumulative WIP", self.reader.wip_transactions, wip(start)),
            self._read("incremental WIP", self.reader.wip_transactions, wip(padded_start)),
            self._read("collections", self.reader.debtor_transactions, debtors(start, DebtorEntryKind.receipts)),
            self._read(
                "net billings",
                self.reader.debtor_transactions,
                debtors(padded_start, DebtorEntryKind.non_receipts),
            ),
            self._read("debtors balances", self.reader.debtor_transactions, debtors(None, DebtorEntryKind.all)),
            self._read("WIP balances", self.reader.wip_transactions, wip(None)),
        )
        raw = RawLedgerData(*reads)
        logger.info(
            "Ledger reads completed employee=%s window=%s..%s rows=%d in %.2fms",
            context.employee_code,
            start,
            window_end,
            sum(len(batch) for batch in reads),
            (time.monotonic() - started) * 1000,
        )
        return build_monthly_metrics(
            raw,
            months,
            today=today,
            cost_excluded_categories=self.cost_excluded_categories,
        )

    async def _read(
        self,
        label: str,
        fetch: Callable[[LedgerFilter], list[LedgerTransaction]],
        ledger_filter: LedgerFilter,
    ) -> list[LedgerTransaction]:
        return await self._call_with_retry(f"Ledger read ({label})", fetch, ledger_filter)

    async def _call_with_retry(
        self,
        operation: str,
        func: Callable[..., T],
        *args: object,
        unavailable_detail: str = LEDGER_UNAVAILABLE,
    ) -> T:
        try:
            return await retry_async(
                lambda: asyncio.to_thread(func, *args),
                config=self.retry,
                operation=operation,
            )
        except self.retry.retryable_exceptions as exc:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail=unavailable_detail,
            ) from exc

    def _schedule_prewarm(self, context: ReportContext, years: list[int]) -> None:
        """Best-effort: the task is never awaited by the request and its result is discarded."""
        task = asyncio.create_task(self._prewarm(context, years))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _prewarm(self, context: ReportContext, years: list[int]) -> None:
        for year in years:
            try:
                _, fresh = await self._fiscal_year_report(context, year)
            except Exception:
                logger.warning(
                    "Pre-warm of FY%s failed for employee=%s; skipping.",
                    year,
                    context.employee_code,
                    exc_info=True,
                )
                continue
            if fresh:
                logger.info("Pre-warmed FY%s for employee=%s", year, context.employee_code)

    async def wait_for_background(self) -> None:
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    async def aclose(self) -> None:
        await self.wait_for_background()
        await self.cache.close()


def _dump(report: OverviewReportOut) -> dict:
    return report.model_dump(mode="json", by_alias=True, exclude_none=True)
