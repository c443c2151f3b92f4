from datetime import date
from typing import Literal

from fastapi import APIRouter, Depends, Query

from practice_reports.api.deps import get_current_user, get_overview_orchestrator
from practice_reports.models.user import User
from practice_reports.schemas.overview import OverviewReportOut
from practice_reports.services.overview import OverviewOrchestrator, OverviewRequest


router = APIRouter(prefix="/my-reports", tags=["my-reports"])


@router.get(
    "/overview",
    response_model=OverviewReportOut,
    response_model_exclude_none=True,
)
async def get_overview(
    fiscal_year: str | None = Query(default=None, alias="fiscalYear"),
    start_date: date | None = Query(default=None, alias="startDate"),
    end_date: date | None = Query(default=None, alias="endDate"),
    mode: Literal["fiscal", "custom"] = Query(default="fiscal"),
    service_lines: list[str] = Query(default=[], alias="serviceLines"),
    current_user: User = Depends(get_current_user),
    orchestrator: OverviewOrchestrator = Depends(get_overview_orchestrator),
) -> OverviewReportOut:
    return await orchestrator.run(
        current_user.email,
        OverviewRequest(
            mode=mode,
            fiscal_year=fiscal_year,
            start_date=start_date,
            end_date=end_date,
            service_lines=tuple(service_lines),
        ),
    )
