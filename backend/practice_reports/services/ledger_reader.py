from __future__ import annotations

import enum
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Protocol

from sqlalchemy import ColumnElement, or_, select
from sqlalchemy.orm import InstrumentedAttribute, Session

from practice_reports.models.enums import RECEIPT_ENTRY_TYPE, DebtorEntryKind, FilterMode
from practice_reports.models.ledger import DebtorTransaction, ServiceLineExternal, WipTransaction
from practice_reports.services.categorizer import LedgerTransaction


class OwnerColumn(str, enum.Enum):
    task_partner = "task_partner"
    task_manager = "task_manager"
    task_code = "task_code"
    biller = "biller"


def owner_column_for(filter_mode: FilterMode) -> OwnerColumn:
    if filter_mode == FilterMode.partner:
        return OwnerColumn.task_partner
    return OwnerColumn.task_manager


@dataclass(frozen=True)
class LedgerFilter:
    owner_column: OwnerColumn
    owner_code: str
    start: date | None = None
    end: date | None = None
    service_lines: tuple[str, ...] = ()
    entry_kind: DebtorEntryKind = DebtorEntryKind.all


class LedgerReader(Protocol):
    def wip_transactions(self, ledger_filter: LedgerFilter) -> list[LedgerTransaction]: ...

    def debtor_transactions(self, ledger_filter: LedgerFilter) -> list[LedgerTransaction]: ...


_WIP_OWNER_COLUMNS: dict[OwnerColumn, InstrumentedAttribute[str]] = {
    OwnerColumn.task_partner: WipTransaction.task_partner,
    OwnerColumn.task_manager: WipTransaction.task_manager,
    OwnerColumn.task_code: WipTransaction.task_code,
}


def date_range_predicates(
    column: InstrumentedAttribute[date],
    start: date | None,
    end: date | None,
) -> list[ColumnElement[bool]]:
    clauses: list[ColumnElement[bool]] = []
    if start is not None:
        clauses.append(column >= start)
    if end is not None:
        clauses.append(column <= end)
    return clauses


def service_line_predicates(
    column: InstrumentedAttribute[str],
    master_codes: tuple[str, ...],
) -> list[ColumnElement[bool]]:
    if not master_codes:
        return []
    mapped_codes = select(ServiceLineExternal.serv_line_code).where(
        ServiceLineExternal.master_code.in_(master_codes)
    )
    return [column.in_(mapped_codes)]


def wip_predicates(ledger_filter: LedgerFilter) -> list[ColumnElement[bool]]:
    owner = _WIP_OWNER_COLUMNS.get(ledger_filter.owner_column)
    if owner is None:
        raise ValueError(f"WIP rows cannot be filtered by {ledger_filter.owner_column.value}")
    return [
        owner == ledger_filter.owner_code,
        *date_range_predicates(WipTransaction.tran_date, ledger_filter.start, ledger_filter.end),
        *service_line_predicates(WipTransaction.task_serv_line, ledger_filter.service_lines),
    ]


def debtor_predicates(ledger_filter: LedgerFilter) -> list[ColumnElement[bool]]:
    if ledger_filter.owner_column != OwnerColumn.biller:
        raise ValueError(f"Debtors rows cannot be filtered by {ledger_filter.owner_column.value}")
    clauses = [
        DebtorTransaction.biller == ledger_filter.owner_code,
        *date_range_predicates(DebtorTransaction.tran_date, ledger_filter.start, ledger_filter.end),
        *service_line_predicates(DebtorTransaction.serv_line_code, ledger_filter.service_lines),
    ]
    if ledger_filter.entry_kind == DebtorEntryKind.receipts:
        clauses.append(DebtorTransaction.entry_type == RECEIPT_ENTRY_TYPE)
    elif ledger_filter.entry_kind == DebtorEntryKind.non_receipts:
        clauses.append(
            or_(
                DebtorTransaction.entry_type.is_(None),
                DebtorTransaction.entry_type != RECEIPT_ENTRY_TYPE,
            )
        )
    return clauses


def _decimal(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    return Decimal(str(value))


class SqlLedgerReader:
    """Reads ledger rows with a fresh session per call so reads can run in parallel threads."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def wip_transactions(self, ledger_filter: LedgerFilter) -> list[LedgerTransaction]:
        stmt = (
            select(
                WipTransaction.amount,
                WipTransaction.t_type,
                WipTransaction.tran_type,
                WipTransaction.tran_date,
                WipTransaction.cost,
                WipTransaction.emp_cat_code,
            )
            .where(*wip_predicates(ledger_filter))
            .order_by(WipTransaction.tran_date, WipTransaction.id)
        )
        with self._session_factory() as session:
            rows = session.execute(stmt).all()
        return [
            LedgerTransaction(
                amount=_decimal(row.amount),
                type_code=row.t_type,
                sub_type_descriptor=row.tran_type,
                transaction_date=row.tran_date,
                owner_code=ledger_filter.owner_code,
                cost=_decimal(row.cost),
                staff_category=row.emp_cat_code,
            )
            for row in rows
        ]

    def debtor_transactions(self, ledger_filter: LedgerFilter) -> list[LedgerTransaction]:
        stmt = (
            select(
                DebtorTransaction.total,
                DebtorTransaction.entry_type,
                DebtorTransaction.tran_date,
            )
            .where(*debtor_predicates(ledger_filter))
            .order_by(DebtorTransaction.tran_date, DebtorTransaction.id)
        )
        with self._session_factory() as session:
            rows = session.execute(stmt).all()
        return [
            LedgerTransaction(
                amount=_decimal(row.total),
                type_code=row.entry_type or "",
                sub_type_descriptor=None,
                transaction_date=row.tran_date,
                owner_code=ledger_filter.owner_code,
            )
            for row in rows
        ]
