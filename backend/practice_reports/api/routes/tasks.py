from datetime import date

from fastapi import APIRouter, Depends, Query

from practice_reports.api.deps import (
    get_current_user,
    get_fiscal_resolver,
    get_ledger_reader,
    get_retry_config,
)
from practice_reports.core.config import get_settings
from practice_reports.models.user import User
from practice_reports.schemas.wip import TaskWipBalancesOut
from practice_reports.services.fiscal import FiscalPeriodResolver
from practice_reports.services.ledger_reader import LedgerReader
from practice_reports.services.task_wip import task_wip_balances
from practice_reports.utils.retry import RetryConfig


router = APIRouter(prefix="/tasks", tags=["tasks"])


@router.get("/{task_code}/wip-balances", response_model=TaskWipBalancesOut)
async def get_task_wip_balances(
    task_code: str,
    start_date: date | None = Query(default=None, alias="startDate"),
    end_date: date | None = Query(default=None, alias="endDate"),
    current_user: User = Depends(get_current_user),
    reader: LedgerReader = Depends(get_ledger_reader),
    fiscal: FiscalPeriodResolver = Depends(get_fiscal_resolver),
    retry: RetryConfig = Depends(get_retry_config),
) -> TaskWipBalancesOut:
    return await task_wip_balances(
        reader,
        task_code,
        today=fiscal.today(),
        start_date=start_date,
        end_date=end_date,
        retry=retry,
        cost_excluded_categories=get_settings().cost_excluded_categories,
    )
