from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import Date, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from practice_reports.db.base import Base


class WipTransaction(Base):
    """Work-in-progress ledger row, synced nightly from the practice system."""

    __tablename__ = "wip_transactions"
    __table_args__ = (
        Index("ix_wip_partner_date", "task_partner", "tran_date"),
        Index("ix_wip_manager_date", "task_manager", "tran_date"),
        Index("ix_wip_task_date", "task_code", "tran_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    task_code: Mapped[str] = mapped_column(String(10), nullable=False)
    client_code: Mapped[str] = mapped_column(String(10), nullable=False, default="")
    task_partner: Mapped[str] = mapped_column(String(10), nullable=False)
    task_manager: Mapped[str] = mapped_column(String(10), nullable=False)
    task_serv_line: Mapped[str] = mapped_column(String(10), nullable=False, default="")
    emp_code: Mapped[str | None] = mapped_column(String(10), nullable=True)
    emp_cat_code: Mapped[str | None] = mapped_column(String(5), nullable=True)
    tran_date: Mapped[date] = mapped_column(Date, nullable=False)
    t_type: Mapped[str] = mapped_column(String(3), nullable=False)
    tran_type: Mapped[str | None] = mapped_column(String(23), nullable=True)
    amount: Mapped[Decimal | None] = mapped_column(Numeric(19, 4), nullable=True)
    cost: Mapped[Decimal] = mapped_column(Numeric(19, 4), nullable=False, default=0)


class DebtorTransaction(Base):
    """Debtors (accounts receivable) ledger row."""

    __tablename__ = "debtor_transactions"
    __table_args__ = (Index("ix_drs_biller_date", "biller", "tran_date"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    client_code: Mapped[str] = mapped_column(String(10), nullable=False, default="")
    serv_line_code: Mapped[str] = mapped_column(String(10), nullable=False, default="")
    biller: Mapped[str] = mapped_column(String(10), nullable=False)
    tran_date: Mapped[date] = mapped_column(Date, nullable=False)
    entry_type: Mapped[str | None] = mapped_column(String(19), nullable=True)
    reference: Mapped[str | None] = mapped_column(String(20), nullable=True)
    total: Mapped[Decimal | None] = mapped_column(Numeric(19, 4), nullable=True)


class ServiceLineExternal(Base):
    """Maps practice-system service-line codes onto firm-level master codes."""

    __tablename__ = "service_line_external"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    serv_line_code: Mapped[str] = mapped_column(String(10), nullable=False, unique=True)
    master_code: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
