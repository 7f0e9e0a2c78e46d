"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.clients import router as clients_router
from routes.tasks import router as tasks_router
from routes.activities import router as activities_router
from routes.ar_aging import router as ar_aging_router
from routes.payments import router as payments_router
from routes.order_tracking import router as order_tracking_router
from routes.production import router as production_router
from routes.production import tracking_router as production_tracking_router
from routes.portal import router as portal_router
from routes.workflows import router as workflows_router
from routes.predictions import router as predictions_router
from routes.sms import router as sms_router
from routes.factory_reviews import router as factory_reviews_router
from routes.collections import router as collections_router
from routes.design_boards import router as design_boards_router
from routes.analytics import router as analytics_router

__all__ = [
    "clients_router",
    "tasks_router",
    "activities_router",
    "ar_aging_router",
    "payments_router",
    "order_tracking_router",
    "production_router",
    "production_tracking_router",
    "portal_router",
    "workflows_router",
    "predictions_router",
    "sms_router",
    "factory_reviews_router",
    "collections_router",
    "design_boards_router",
    "analytics_router",
]
