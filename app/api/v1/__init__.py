from fastapi import APIRouter

from app.api.v1.routers import health, notification_settings, notifications, two_factor

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(two_factor.router)
api_router.include_router(notifications.router)
api_router.include_router(notification_settings.router)

__all__ = ["api_router"]
