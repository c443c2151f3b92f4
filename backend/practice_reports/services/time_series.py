from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from practice_reports.services.aggregation import (
    group_by_month,
    group_categorized_by_month,
    plain_amount,
)
from practice_reports.services.categorizer import CategorizedAmounts, LedgerTransaction
from practice_reports.utils.months import YearMonth


@dataclass(frozen=True)
class MonthlyBalance:
    month: YearMonth
    balance: Decimal


def prefix_sums(deltas: dict[YearMonth, Decimal]) -> list[tuple[YearMonth, Decimal]]:
    """Running totals over the months that have activity, ascending."""
    rows: list[tuple[YearMonth, Decimal]] = []
    running = Decimal("0")
    for month in sorted(deltas):
        running += deltas[month]
        rows.append((month, running))
    return rows


def carry_forward(
    running_totals: Sequence[tuple[YearMonth, Decimal]],
    months: Sequence[YearMonth],
) -> list[MonthlyBalance]:
    """
    Project sparse running totals onto a contiguous month grid.

    A grid month without activity takes the balance of the nearest earlier
    active month; months before the first activity are zero.
    """
    balances: list[MonthlyBalance] = []
    current = Decimal("0")
    cursor = 0
    for month in months:
        while cursor < len(running_totals) and running_totals[cursor][0] <= month:
            current = running_totals[cursor][1]
            cursor += 1
        balances.append(MonthlyBalance(month, current))
    return balances


def _capped(months: Sequence[YearMonth], today: date) -> list[YearMonth]:
    current = YearMonth.of(today)
    return [month for month in months if month <= current]


def running_balances(
    transactions: Iterable[LedgerTransaction],
    months: Sequence[YearMonth],
    *,
    today: date,
    delta: Callable[[LedgerTransaction], Decimal] = plain_amount,
) -> list[MonthlyBalance]:
    """Month-end balances from raw rows using a plain signed sum per month."""
    grid = _capped(months, today)
    if not grid:
        return []
    last = grid[-1]
    rows = [row for row in transactions if YearMonth.of(row.transaction_date) <= last]
    deltas = group_by_month(rows, delta)
    return carry_forward(prefix_sums(deltas), grid)


def running_categorized_balances(
    transactions: Iterable[LedgerTransaction],
    months: Sequence[YearMonth],
    *,
    today: date,
    delta: Callable[[CategorizedAmounts], Decimal],
    cost_excluded_categories: frozenset[str] = frozenset(),
) -> list[MonthlyBalance]:
    """Month-end balances where each month's change is derived from its categorized sums."""
    grid = _capped(months, today)
    if not grid:
        return []
    last = grid[-1]
    rows = [row for row in transactions if YearMonth.of(row.transaction_date) <= last]
    grouped = group_categorized_by_month(rows, cost_excluded_categories=cost_excluded_categories)
    deltas = {month: delta(amounts) for month, amounts in grouped.items()}
    return carry_forward(prefix_sums(deltas), grid)
