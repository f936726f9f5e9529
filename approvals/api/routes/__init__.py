"""API routes package."""

from fastapi import APIRouter

from approvals.api.routes.admin import router as admin_router
from approvals.api.routes.events import router as events_router
from approvals.api.routes.health import router as health_router

# Create API router with all sub-routers
api_router = APIRouter()

api_router.include_router(health_router)
api_router.include_router(admin_router)
api_router.include_router(events_router)


__all__ = [
    "api_router",
    "admin_router",
    "events_router",
    "health_router",
]
