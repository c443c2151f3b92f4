from fastapi import APIRouter

from practice_reports.api.routes import fiscal, health, my_reports, tasks


api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(fiscal.router)
api_router.include_router(my_reports.router)
api_router.include_router(tasks.router)
