"""HTTP routes.

Combines the producer-facing ``/internal`` router with the dashboard
``/api`` routers.
"""

from fastapi import APIRouter

from nodegaze.api.routes.events import router as events_router
from nodegaze.api.routes.internal import router as internal_router
from nodegaze.api.routes.notifications import router as notifications_router

api_router = APIRouter()

api_router.include_router(internal_router)
api_router.include_router(notifications_router)
api_router.include_router(events_router)

__all__ = ["api_router"]
