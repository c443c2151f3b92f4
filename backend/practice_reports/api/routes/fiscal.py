from fastapi import APIRouter, Depends, Query

from practice_reports.api.deps import get_current_user, get_fiscal_resolver
from practice_reports.models.user import User
from practice_reports.schemas.fiscal import FiscalCalendarOut
from practice_reports.services.fiscal import FiscalPeriodResolver, fiscal_calendar


router = APIRouter(prefix="/fiscal-periods", tags=["fiscal-periods"])


@router.get("", response_model=FiscalCalendarOut)
def get_fiscal_calendar(
    fiscal_year: int | None = Query(default=None, alias="fiscalYear"),
    current_user: User = Depends(get_current_user),
    fiscal: FiscalPeriodResolver = Depends(get_fiscal_resolver),
) -> FiscalCalendarOut:
    return fiscal_calendar(fiscal, fiscal_year)
