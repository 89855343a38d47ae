from fastapi import APIRouter

from app.stockflow.core.config import settings
from app.stockflow.routers.audit import router as audit_router
from app.stockflow.routers.health import router as health_router
from app.stockflow.routers.metrics import router as metrics_router
from app.stockflow.routers.products import router as products_router
from app.stockflow.routers.sales import router as sales_router
from app.stockflow.routers.stock import router as stock_router
from app.stockflow.routers.stores import router as stores_router
from app.stockflow.routers.transfers import router as transfers_router

api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(stores_router, tags=["stores"])
api_router.include_router(products_router, tags=["products"])
api_router.include_router(stock_router, tags=["stock"])
api_router.include_router(transfers_router, tags=["transfers"])
api_router.include_router(sales_router, tags=["sales"])
api_router.include_router(audit_router, tags=["audit"])
if settings.METRICS_ENABLED:
    api_router.include_router(metrics_router, tags=["ops"])
