from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from practice_reports.models.employee import Employee
from practice_reports.models.enums import FilterMode


@dataclass(frozen=True)
class EmployeeRecord:
    employee_code: str
    category: str
    full_name: str = ""


class EmployeeResolver(Protocol):
    def resolve(self, email: str) -> EmployeeRecord | None: ...


def filter_mode_for(category: str, partner_categories: frozenset[str]) -> FilterMode:
    """Partner-type categories report on tasks they partner; everyone else on tasks they manage."""
    if category in partner_categories:
        return FilterMode.partner
    return FilterMode.manager


class SqlEmployeeResolver:
    """
    Matches the caller's e-mail against the active employee's Windows logon.

    Logons are stored inconsistently upstream: sometimes the full address,
    sometimes only the account name, sometimes the account name at a
    different domain.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def resolve(self, email: str) -> EmployeeRecord | None:
        address = email.strip().lower()
        account = address.split("@", 1)[0]
        logon = func.lower(Employee.win_logon)
        stmt = (
            select(Employee)
            .where(
                Employee.active.is_(True),
                or_(
                    logon == address,
                    logon == account,
                    logon.startswith(f"{account}@", autoescape=True),
                ),
            )
            .order_by(Employee.id)
            .limit(1)
        )
        with self._session_factory() as session:
            employee = session.scalar(stmt)
        if employee is None:
            return None
        return EmployeeRecord(
            employee_code=employee.emp_code,
            category=employee.category_code,
            full_name=employee.full_name,
        )
