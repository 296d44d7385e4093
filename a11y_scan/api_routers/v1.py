from fastapi import APIRouter

from a11y_scan.features.accessibility.routes.accessibility import router as accessibility_router
from a11y_scan.features.health.routes.health import router as health_router

api_router = APIRouter()

# Register all feature routes
api_router.include_router(accessibility_router)
api_router.include_router(health_router)
