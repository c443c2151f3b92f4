from __future__ import annotations

from sqlalchemy import Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from practice_reports.db.base import Base


class Employee(Base):
    __tablename__ = "employees"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    emp_code: Mapped[str] = mapped_column(String(10), nullable=False, unique=True, index=True)
    full_name: Mapped[str] = mapped_column(String(63), nullable=False)
    category_code: Mapped[str] = mapped_column(String(5), nullable=False)
    category_desc: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    win_logon: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
