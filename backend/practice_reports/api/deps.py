from collections.abc import Generator

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from practice_reports.db.session import SessionLocal
from practice_reports.models.user import User
from practice_reports.services.fiscal import FiscalPeriodResolver
from practice_reports.services.ledger_reader import LedgerReader
from practice_reports.services.overview import OverviewOrchestrator
from practice_reports.utils.retry import RetryConfig


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(
    db: Session = Depends(get_db),
    x_user_id: int | None = Header(default=None),
) -> User:
    if x_user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required.",
        )
    user = db.get(User, x_user_id)
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user.",
        )
    return user


def get_overview_orchestrator(request: Request) -> OverviewOrchestrator:
    return request.app.state.overview_orchestrator


def get_ledger_reader(request: Request) -> LedgerReader:
    return request.app.state.ledger_reader


def get_fiscal_resolver(request: Request) -> FiscalPeriodResolver:
    return request.app.state.fiscal_resolver


def get_retry_config(request: Request) -> RetryConfig:
    return request.app.state.retry_config
