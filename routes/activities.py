"""
CRM activity API routes.
"""

from fastapi import APIRouter, Depends, Query
from typing import Optional
import structlog

from models.activity import ActivityCreate
from models.user import UserContext
from services.activity_service import get_activity_service
from services.auth_service import require_permissions
from utils.responses import handle_error, success

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("")
async def list_activities(
    related_to: Optional[str] = Query(None),
    related_id: Optional[str] = Query(None),
    filter: str = Query("all", description="Activity type, or all"),
    user: UserContext = Depends(require_permissions("customers.read"))
):
    """Activities logged against one customer, newest first."""
    try:
        activities = get_activity_service().get_for_entity(related_to, related_id, filter)
        return success(activities, count=len(activities))
    except Exception as e:
        return handle_error(e)


@router.post("", status_code=201)
async def create_activity(
    data: ActivityCreate,
    user: UserContext = Depends(require_permissions("customers.write"))
):
    try:
        activity = get_activity_service().create(data)
        return success(activity, status_code=201)
    except Exception as e:
        return handle_error(e)
