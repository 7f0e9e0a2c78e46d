"""
Production API routes.

Two routers: item tracking (/api/production-tracking) and stage analytics
(/api/production).
"""

from fastapi import APIRouter, Depends, Query
from typing import Optional
import structlog

from models.production import ProductionItemUpdate
from models.user import UserContext
from services.auth_service import require_permissions
from services.production_service import get_production_service
from utils.responses import handle_error, success

logger = structlog.get_logger(__name__)

tracking_router = APIRouter()
router = APIRouter()


# ===================
# TRACKING
# ===================

@tracking_router.get("")
async def list_production_items(
    status: Optional[str] = Query(None),
    stage: Optional[str] = Query(None),
    order_id: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    user: UserContext = Depends(require_permissions("production.read"))
):
    try:
        items = get_production_service().get_items(
            status=status,
            stage=stage,
            order_id=order_id,
            limit=limit,
            offset=offset,
        )
        return success(items, total=len(items))
    except Exception as e:
        return handle_error(e)


@tracking_router.patch("")
async def update_production_item(
    data: ProductionItemUpdate,
    user: UserContext = Depends(require_permissions("production.write"))
):
    """Update status, stage, completion percentage or estimated completion."""
    try:
        return success(get_production_service().update_item(data))
    except Exception as e:
        return handle_error(e)


# ===================
# ANALYTICS
# ===================

@router.get("/bottlenecks")
async def get_bottlenecks(
    depth: str = Query("standard", pattern="^(standard|detailed)$"),
    user: UserContext = Depends(require_permissions("production.read"))
):
    """
    Stages running behind target over the last 30 days.

    depth=detailed adds eight weeks of per-stage history.
    """
    try:
        return success(get_production_service().get_bottlenecks(depth))
    except Exception as e:
        return handle_error(e)
