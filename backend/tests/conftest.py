from collections.abc import Callable
from datetime import date
from decimal import Decimal
import threading

import pytest

from practice_reports.models.enums import RECEIPT_ENTRY_TYPE, DebtorEntryKind
from practice_reports.services.categorizer import LedgerTransaction
from practice_reports.services.employees import EmployeeRecord
from practice_reports.services.fiscal import FiscalPeriodResolver
from practice_reports.services.ledger_reader import LedgerFilter
from practice_reports.services.overview import OverviewOrchestrator
from practice_reports.services.report_cache import MemoryCacheBackend, ReportCache
from practice_reports.utils.retry import RetryConfig


TODAY = date(2024, 10, 15)
PARTNER_CATEGORIES = frozenset({"CARL", "Local", "DIR"})


class FakeRow:
    def __init__(self, owners: dict[str, str], transaction: LedgerTransaction) -> None:
        self.owners = owners
        self.transaction = transaction


def _row(owners: dict[str, str], day: date, amount: str, type_code: str, sub_type: str | None = None) -> FakeRow:
    return FakeRow(
        owners,
        LedgerTransaction(
            amount=Decimal(amount),
            type_code=type_code,
            sub_type_descriptor=sub_type,
            transaction_date=day,
            owner_code="",
        ),
    )


class FakeLedgerReader:
    """In-memory ledger honouring owner, date and entry-kind filters."""

    def __init__(self, wip: list[FakeRow], debtors: list[FakeRow]) -> None:
        self.wip = wip
        self.debtors = debtors
        self.filters: list[LedgerFilter] = []
        self.failures_left = 0
        self._lock = threading.Lock()

    def _select(self, rows: list[FakeRow], ledger_filter: LedgerFilter) -> list[LedgerTransaction]:
        with self._lock:
            self.filters.append(ledger_filter)
            failing = self.failures_left > 0
            if failing:
                self.failures_left -= 1
        if failing:
            raise ConnectionError("ledger database unavailable")
        selected = []
        for row in rows:
            txn = row.transaction
            if row.owners.get(ledger_filter.owner_column.value) != ledger_filter.owner_code:
                continue
            if ledger_filter.start is not None and txn.transaction_date < ledger_filter.start:
                continue
            if ledger_filter.end is not None and txn.transaction_date > ledger_filter.end:
                continue
            is_receipt = txn.type_code == RECEIPT_ENTRY_TYPE
            if ledger_filter.entry_kind == DebtorEntryKind.receipts and not is_receipt:
                continue
            if ledger_filter.entry_kind == DebtorEntryKind.non_receipts and is_receipt:
                continue
            selected.append(txn)
        return selected

    def wip_transactions(self, ledger_filter: LedgerFilter) -> list[LedgerTransaction]:
        return self._select(self.wip, ledger_filter)

    def debtor_transactions(self, ledger_filter: LedgerFilter) -> list[LedgerTransaction]:
        return self._select(self.debtors, ledger_filter)


class FakeEmployees:
    def __init__(self, records: dict[str, EmployeeRecord]) -> None:
        self.records = records

    def resolve(self, email: str) -> EmployeeRecord | None:
        return self.records.get(email.lower())


def sample_reader() -> FakeLedgerReader:
    ann = {"task_partner": "E01", "task_manager": "E02", "task_code": "TSK1"}
    bills = {"biller": "E01"}
    return FakeLedgerReader(
        wip=[
            _row(ann, date(2023, 11, 1), "200", "D"),
            _row(ann, date(2024, 3, 10), "500", "T"),
            _row(ann, date(2024, 9, 10), "1000", "T"),
            _row(ann, date(2024, 10, 5), "-300", "ADJ", "TIME WRITE OFF"),
        ],
        debtors=[
            _row(bills, date(2023, 12, 1), "1200", "Invoice"),
            _row(bills, date(2024, 9, 20), "800", "Invoice"),
            _row(bills, date(2024, 10, 1), "-500", RECEIPT_ENTRY_TYPE),
        ],
    )


def sample_employees() -> FakeEmployees:
    return FakeEmployees(
        {
            "ann@firm.co.za": EmployeeRecord("E01", "CARL", "Ann Partner"),
            "bob@firm.co.za": EmployeeRecord("E02", "MGR", "Bob Manager"),
        }
    )


@pytest.fixture
def fiscal() -> FiscalPeriodResolver:
    return FiscalPeriodResolver(9, today=lambda: TODAY)


@pytest.fixture
def reader() -> FakeLedgerReader:
    return sample_reader()


@pytest.fixture
def make_orchestrator(
    fiscal: FiscalPeriodResolver, reader: FakeLedgerReader
) -> Callable[..., OverviewOrchestrator]:
    def _make(**overrides) -> OverviewOrchestrator:
        options = {
            "reader": reader,
            "employees": sample_employees(),
            "cache": ReportCache(MemoryCacheBackend(), fiscal),
            "fiscal": fiscal,
            "partner_categories": PARTNER_CATEGORIES,
            "cost_excluded_categories": frozenset({"CARL"}),
            "retry": RetryConfig(max_attempts=2, base_delay=0, jitter=False),
        }
        options.update(overrides)
        return OverviewOrchestrator(**options)

    return _make
