"""
Order tracking API routes.
"""

from fastapi import APIRouter, Depends, Query
from typing import Optional
import structlog

from models.user import UserContext
from services.auth_service import require_permissions
from services.order_tracking_service import get_order_tracking_service
from utils.responses import handle_error, success

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("")
async def list_order_tracking(
    status: Optional[str] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    user: UserContext = Depends(require_permissions("orders.read"))
):
    """
    Orders with customer, items, production and shipment state.

    computed_status: delivered > shipped > processing > order status.
    """
    try:
        orders = get_order_tracking_service().get_orders(
            status=status,
            search=search,
            limit=limit,
            offset=offset,
        )
        return success(orders, total=len(orders))
    except Exception as e:
        return handle_error(e)
