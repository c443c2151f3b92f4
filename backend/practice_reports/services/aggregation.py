from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal

from practice_reports.models.enums import AggregationMode
from practice_reports.services.categorizer import CategorizedAmounts, LedgerTransaction
from practice_reports.utils.months import YearMonth


ValueFn = Callable[[LedgerTransaction], Decimal]


def plain_amount(transaction: LedgerTransaction) -> Decimal:
    return transaction.amount


def negated_amount(transaction: LedgerTransaction) -> Decimal:
    return -transaction.amount


@dataclass(frozen=True)
class MonthlyTotal:
    month: YearMonth
    amount: Decimal


@dataclass(frozen=True)
class MonthlyCategorized:
    month: YearMonth
    amounts: CategorizedAmounts


def group_by_month(
    transactions: Iterable[LedgerTransaction],
    value: ValueFn = plain_amount,
) -> dict[YearMonth, Decimal]:
    """Per-month sums for months that have at least one transaction."""
    totals: dict[YearMonth, Decimal] = {}
    for transaction in transactions:
        month = YearMonth.of(transaction.transaction_date)
        totals[month] = totals.get(month, Decimal("0")) + value(transaction)
    return totals


def group_categorized_by_month(
    transactions: Iterable[LedgerTransaction],
    *,
    cost_excluded_categories: frozenset[str] = frozenset(),
) -> dict[YearMonth, CategorizedAmounts]:
    buckets: dict[YearMonth, CategorizedAmounts] = {}
    for transaction in transactions:
        month = YearMonth.of(transaction.transaction_date)
        bucket = buckets.get(month)
        if bucket is None:
            bucket = buckets[month] = CategorizedAmounts()
        bucket.add(transaction, cost_excluded_categories=cost_excluded_categories)
    return buckets


def aggregate(
    transactions: Iterable[LedgerTransaction],
    months: Sequence[YearMonth],
    mode: AggregationMode,
    value: ValueFn = plain_amount,
) -> list[MonthlyTotal]:
    """One zero-filled total per month in ``months`` (ascending)."""
    by_month = group_by_month(transactions, value)
    if mode == AggregationMode.incremental:
        return [MonthlyTotal(month, by_month.get(month, Decimal("0"))) for month in months]

    rows: list[MonthlyTotal] = []
    running = Decimal("0")
    pending = sorted(by_month.items())
    cursor = 0
    for month in months:
        while cursor < len(pending) and pending[cursor][0] <= month:
            running += pending[cursor][1]
            cursor += 1
        rows.append(MonthlyTotal(month, running))
    return rows


def aggregate_categorized(
    transactions: Iterable[LedgerTransaction],
    months: Sequence[YearMonth],
    mode: AggregationMode,
    *,
    cost_excluded_categories: frozenset[str] = frozenset(),
) -> list[MonthlyCategorized]:
    by_month = group_categorized_by_month(
        transactions, cost_excluded_categories=cost_excluded_categories
    )
    if mode == AggregationMode.incremental:
        return [
            MonthlyCategorized(month, by_month.get(month) or CategorizedAmounts())
            for month in months
        ]

    rows: list[MonthlyCategorized] = []
    running = CategorizedAmounts()
    pending = sorted(by_month.items(), key=lambda item: item[0])
    cursor = 0
    for month in months:
        while cursor < len(pending) and pending[cursor][0] <= month:
            running.merge(pending[cursor][1])
            cursor += 1
        rows.append(MonthlyCategorized(month, running.copy()))
    return rows
