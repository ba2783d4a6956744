from fastapi import APIRouter

from app.tbms.core.config import settings
from app.tbms.routers.exec import router as exec_router
from app.tbms.routers.health import router as health_router
from app.tbms.routers.metrics import router as metrics_router

api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(exec_router, tags=["exec"])
if settings.METRICS_ENABLED:
    api_router.include_router(metrics_router, tags=["ops"])
