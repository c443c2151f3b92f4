from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from practice_reports.db.base import Base
from practice_reports.models.employee import Employee
from practice_reports.models.enums import DebtorEntryKind
from practice_reports.models.ledger import DebtorTransaction, ServiceLineExternal, WipTransaction
from practice_reports.services.employees import SqlEmployeeResolver
from practice_reports.services.ledger_reader import (
    LedgerFilter,
    OwnerColumn,
    SqlLedgerReader,
    debtor_predicates,
    wip_predicates,
)


def _session_factory() -> sessionmaker[Session]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


def _wip(day: date, amount: str | None, **overrides) -> WipTransaction:
    values = {
        "task_code": "TSK1",
        "client_code": "CL1",
        "task_partner": "P001",
        "task_manager": "M001",
        "task_serv_line": "SL-A",
        "emp_cat_code": "SNR",
        "tran_date": day,
        "t_type": "T",
        "tran_type": None,
        "amount": Decimal(amount) if amount is not None else None,
        "cost": Decimal("0"),
    }
    values.update(overrides)
    return WipTransaction(**values)


def _seed(factory: sessionmaker[Session]) -> None:
    with factory() as db:
        db.add_all(
            [
                ServiceLineExternal(serv_line_code="SL-A", master_code="AUDIT"),
                ServiceLineExternal(serv_line_code="SL-B", master_code="TAX"),
                _wip(date(2024, 1, 10), "100", cost=Decimal("30")),
                _wip(date(2024, 2, 10), "200", task_serv_line="SL-B"),
                _wip(date(2024, 3, 10), "400", task_partner="P002", task_code="TSK2"),
                _wip(date(2024, 3, 11), "50", t_type="ADJ", tran_type="TIME WRITE OFF", emp_cat_code="CARL"),
                _wip(date(2024, 3, 12), None),
                DebtorTransaction(biller="P001", serv_line_code="SL-A", tran_date=date(2024, 1, 5), entry_type="Invoice", total=Decimal("500")),
                DebtorTransaction(biller="P001", serv_line_code="SL-A", tran_date=date(2024, 2, 5), entry_type="Receipt", total=Decimal("-300")),
                DebtorTransaction(biller="P001", serv_line_code="SL-B", tran_date=date(2024, 2, 6), entry_type=None, total=Decimal("80")),
                DebtorTransaction(biller="P002", serv_line_code="SL-A", tran_date=date(2024, 2, 7), entry_type="Invoice", total=Decimal("999")),
            ]
        )
        db.commit()


def test_wip_rows_filtered_by_partner_and_dates() -> None:
    factory = _session_factory()
    _seed(factory)
    reader = SqlLedgerReader(factory)

    rows = reader.wip_transactions(
        LedgerFilter(OwnerColumn.task_partner, "P001", date(2024, 2, 1), date(2024, 3, 31))
    )
    assert [row.amount for row in rows] == [Decimal("200"), Decimal("50"), Decimal("0")]
    assert rows[1].type_code == "ADJ"
    assert rows[1].sub_type_descriptor == "TIME WRITE OFF"
    assert rows[1].staff_category == "CARL"


def test_wip_rows_filtered_by_manager_without_start() -> None:
    factory = _session_factory()
    _seed(factory)
    reader = SqlLedgerReader(factory)

    rows = reader.wip_transactions(LedgerFilter(OwnerColumn.task_manager, "M001", None, date(2024, 1, 31)))
    assert len(rows) == 1
    assert rows[0].cost == Decimal("30")
    assert rows[0].owner_code == "M001"


def test_service_line_filter_goes_through_master_codes() -> None:
    factory = _session_factory()
    _seed(factory)
    reader = SqlLedgerReader(factory)

    wip = reader.wip_transactions(LedgerFilter(OwnerColumn.task_partner, "P001", service_lines=("TAX",)))
    assert [row.amount for row in wip] == [Decimal("200")]

    debtors = reader.debtor_transactions(
        LedgerFilter(OwnerColumn.biller, "P001", service_lines=("AUDIT",))
    )
    assert [row.amount for row in debtors] == [Decimal("500"), Decimal("-300")]


def test_task_code_filter() -> None:
    factory = _session_factory()
    _seed(factory)
    rows = SqlLedgerReader(factory).wip_transactions(LedgerFilter(OwnerColumn.task_code, "TSK2"))
    assert [row.amount for row in rows] == [Decimal("400")]


def test_debtor_entry_kinds() -> None:
    factory = _session_factory()
    _seed(factory)
    reader = SqlLedgerReader(factory)

    receipts = reader.debtor_transactions(
        LedgerFilter(OwnerColumn.biller, "P001", entry_kind=DebtorEntryKind.receipts)
    )
    assert [row.amount for row in receipts] == [Decimal("-300")]

    billings = reader.debtor_transactions(
        LedgerFilter(OwnerColumn.biller, "P001", entry_kind=DebtorEntryKind.non_receipts)
    )
    assert [row.amount for row in billings] == [Decimal("500"), Decimal("80")]
    assert billings[1].type_code == ""

    everything = reader.debtor_transactions(LedgerFilter(OwnerColumn.biller, "P001"))
    assert len(everything) == 3


def test_owner_column_mismatch_is_rejected() -> None:
    with pytest.raises(ValueError):
        wip_predicates(LedgerFilter(OwnerColumn.biller, "P001"))
    with pytest.raises(ValueError):
        debtor_predicates(LedgerFilter(OwnerColumn.task_partner, "P001"))


def test_employee_lookup_matches_logon_variants() -> None:
    factory = _session_factory()
    with factory() as db:
        db.add_all(
            [
                Employee(emp_code="E01", full_name="Ann Full", category_code="CARL", win_logon="ann@firm.co.za"),
                Employee(emp_code="E02", full_name="Bob Short", category_code="SNR", win_logon="BOB"),
                Employee(emp_code="E03", full_name="Cas Other", category_code="MGR", win_logon="cas@legacy.local"),
                Employee(emp_code="E04", full_name="Dee Gone", category_code="MGR", win_logon="dee@firm.co.za", active=False),
            ]
        )
        db.commit()
    resolver = SqlEmployeeResolver(factory)

    assert resolver.resolve("Ann@Firm.co.za").employee_code == "E01"
    assert resolver.resolve("bob@firm.co.za").employee_code == "E02"
    assert resolver.resolve("cas@firm.co.za").employee_code == "E03"
    assert resolver.resolve("dee@firm.co.za") is None
    assert resolver.resolve("nobody@firm.co.za") is None


def test_employee_lookup_treats_wildcards_literally() -> None:
    factory = _session_factory()
    with factory() as db:
        db.add_all(
            [
                Employee(emp_code="OTHER", full_name="Jax Smith", category_code="CARL", win_logon="jaxsmith@corp.local"),
                Employee(emp_code="PCT", full_name="Per Cent", category_code="MGR", win_logon="p%c@corp.local"),
            ]
        )
        db.commit()
    resolver = SqlEmployeeResolver(factory)

    assert resolver.resolve("ja_smith@firm.co.za") is None
    assert resolver.resolve("j%@firm.co.za") is None
    assert resolver.resolve("p%c@firm.co.za").employee_code == "PCT"
