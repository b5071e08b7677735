from fastapi import APIRouter

from app.stockflow.core.config import settings
from app.stockflow.routers.delivery import router as delivery_router
from app.stockflow.routers.health import router as health_router
from app.stockflow.routers.locations import router as locations_router
from app.stockflow.routers.metrics import router as metrics_router
from app.stockflow.routers.packing import router as packing_router
from app.stockflow.routers.products import router as products_router
from app.stockflow.routers.roles import router as roles_router
from app.stockflow.routers.transfers import router as transfers_router

api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(locations_router, tags=["locations"])
api_router.include_router(roles_router, tags=["roles"])
api_router.include_router(products_router, tags=["products"])
api_router.include_router(transfers_router, tags=["transfers"])
api_router.include_router(packing_router, tags=["packing"])
api_router.include_router(delivery_router, tags=["delivery"])
if settings.METRICS_ENABLED:
    api_router.include_router(metrics_router, tags=["ops"])
