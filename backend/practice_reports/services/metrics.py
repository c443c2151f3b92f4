from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from practice_reports.services.categorizer import CategorizedAmounts
from practice_reports.utils.decimal_math import money, ratio, safe_div
from practice_reports.utils.months import YearMonth


DAYS_PER_YEAR = Decimal("365")
HUNDRED = Decimal("100")


@dataclass(frozen=True)
class MonthlyMetrics:
    month: YearMonth
    net_revenue: Decimal
    gross_profit: Decimal
    collections: Decimal
    wip_lockup_days: Decimal
    debtors_lockup_days: Decimal
    writeoff_percentage: Decimal
    gross_time: Decimal
    provisions: Decimal
    wip_balance: Decimal
    debtors_balance: Decimal
    trailing12_revenue: Decimal
    trailing12_billings: Decimal
    writeoff_amount: Decimal
    gross_wip: Decimal
    net_wip: Decimal


@dataclass(frozen=True)
class MonthInputs:
    month: YearMonth
    amounts: CategorizedAmounts
    collections: Decimal = Decimal("0")
    wip_balance: Decimal = Decimal("0")
    debtors_balance: Decimal = Decimal("0")
    trailing12_revenue: Decimal = Decimal("0")
    trailing12_billings: Decimal = Decimal("0")


def net_revenue(amounts: CategorizedAmounts) -> Decimal:
    return amounts.time + amounts.time_adjustments + amounts.provision


def gross_profit(amounts: CategorizedAmounts) -> Decimal:
    return net_revenue(amounts) - amounts.cost


def net_adjustments(amounts: CategorizedAmounts) -> Decimal:
    return amounts.time_adjustments + amounts.provision


def writeoff_amount(amounts: CategorizedAmounts) -> Decimal:
    adjustments = net_adjustments(amounts)
    return abs(adjustments) if adjustments < 0 else Decimal("0")


def writeoff_percentage(amounts: CategorizedAmounts) -> Decimal:
    if amounts.time == 0:
        return Decimal("0")
    return writeoff_amount(amounts) / amounts.time * HUNDRED


def gross_wip(amounts: CategorizedAmounts) -> Decimal:
    return (
        amounts.time
        + amounts.time_adjustments
        + amounts.disbursements
        + amounts.disbursement_adjustments
        - amounts.fees
    )


def net_wip(amounts: CategorizedAmounts) -> Decimal:
    return gross_wip(amounts) + amounts.provision


def lockup_days(balance: Decimal, trailing12_base: Decimal) -> Decimal:
    """Days of the trailing-12-month base tied up in ``balance``; 0 when the base is 0."""
    return safe_div(balance * DAYS_PER_YEAR, trailing12_base)


def compose_month(inputs: MonthInputs) -> MonthlyMetrics:
    amounts = inputs.amounts
    return MonthlyMetrics(
        month=inputs.month,
        net_revenue=money(net_revenue(amounts)),
        gross_profit=money(gross_profit(amounts)),
        collections=money(inputs.collections),
        wip_lockup_days=ratio(lockup_days(inputs.wip_balance, inputs.trailing12_revenue)),
        debtors_lockup_days=ratio(lockup_days(inputs.debtors_balance, inputs.trailing12_billings)),
        writeoff_percentage=ratio(writeoff_percentage(amounts)),
        gross_time=money(amounts.time),
        provisions=money(amounts.provision),
        wip_balance=money(inputs.wip_balance),
        debtors_balance=money(inputs.debtors_balance),
        trailing12_revenue=money(inputs.trailing12_revenue),
        trailing12_billings=money(inputs.trailing12_billings),
        writeoff_amount=money(writeoff_amount(amounts)),
        gross_wip=money(gross_wip(amounts)),
        net_wip=money(net_wip(amounts)),
    )


def compose(rows: list[MonthInputs]) -> list[MonthlyMetrics]:
    return [compose_month(row) for row in rows]
