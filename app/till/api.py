from fastapi import APIRouter

from app.till.routers.cash_registers import router as cash_registers_router
from app.till.routers.health import router as health_router
from app.till.routers.reports import router as reports_router

api_router = APIRouter()
api_router.include_router(health_router, tags=["ops"])
api_router.include_router(cash_registers_router, tags=["cash-registers"])
api_router.include_router(reports_router, tags=["cash-register-reports"])
