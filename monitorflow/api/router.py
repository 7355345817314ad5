"""
API router - aggregates all route modules.
"""
from fastapi import APIRouter
from monitorflow.api.events import router as events_router
from monitorflow.api.categories import router as categories_router
from monitorflow.api.webhooks import router as webhooks_router
from monitorflow.api.health import router as health_router

api_router = APIRouter()
api_router.include_router(events_router)
api_router.include_router(categories_router)
api_router.include_router(webhooks_router)
api_router.include_router(health_router)
