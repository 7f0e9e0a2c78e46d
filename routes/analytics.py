"""
Business analytics API routes.
"""

from datetime import datetime
from fastapi import APIRouter, Depends
import structlog

from models.user import UserContext
from services.analytics_service import get_analytics_service
from services.auth_service import require_permissions
from utils.responses import handle_error, success

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("")
async def get_analytics(
    user: UserContext = Depends(require_permissions("reports.read"))
):
    """Dashboard metrics computed from the live tables on every request."""
    try:
        analytics = get_analytics_service().get_analytics()
        return success(analytics, computed_at=datetime.utcnow().isoformat())
    except Exception as e:
        return handle_error(e)
