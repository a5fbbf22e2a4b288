"""Top-level API router."""

from fastapi import APIRouter

from staffplan.api.routes.bonuses import router as bonuses_router
from staffplan.api.routes.forecasts import router as forecasts_router
from staffplan.api.routes.health import router as health_router
from staffplan.api.routes.overtime import router as overtime_router
from staffplan.api.routes.reports import router as reports_router

api_router = APIRouter()
api_router.include_router(health_router, tags=["health"])
api_router.include_router(forecasts_router)
api_router.include_router(overtime_router)
api_router.include_router(bonuses_router)
api_router.include_router(reports_router)
