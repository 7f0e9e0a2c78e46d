"""
Payment API routes.
"""

from fastapi import APIRouter, Depends, Query
from typing import Optional
import structlog

from models.base import ExportRequest
from models.payment import Period, TransactionFilters
from models.user import UserContext
from services.auth_service import require_permissions
from services.payment_service import get_payment_service
from utils.responses import attachment, export_filename, handle_error, success

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/summary")
async def get_summary(
    period: Period = Query("30d"),
    user: UserContext = Depends(require_permissions("finance.read"))
):
    """Incoming / outgoing totals, pending amounts and reconciliation backlog."""
    try:
        summary, count = get_payment_service().get_summary(period)
        return success(summary, period=period, transaction_count=count)
    except Exception as e:
        return handle_error(e)


@router.get("/transactions")
async def list_transactions(
    date_range: Optional[Period] = Query("30d"),
    status: Optional[str] = Query(None),
    type: Optional[str] = Query(None),
    method: Optional[str] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    include_customer: bool = Query(True),
    include_invoice: bool = Query(True),
    user: UserContext = Depends(require_permissions("finance.read"))
):
    try:
        filters = TransactionFilters(
            date_range=date_range,
            status=status,
            type=type,
            method=method,
            search=search,
        )
        transactions = get_payment_service().get_transactions(
            filters,
            limit=limit,
            offset=offset,
            include_customer=include_customer,
            include_invoice=include_invoice,
        )
        return success(
            transactions,
            count=len(transactions),
            filters=filters.model_dump(exclude_none=True)
        )
    except Exception as e:
        return handle_error(e)


@router.get("/methods-breakdown")
async def get_methods_breakdown(
    period: Period = Query("30d"),
    user: UserContext = Depends(require_permissions("finance.read"))
):
    """Count, total and share per payment method, largest first."""
    try:
        breakdown, count = get_payment_service().get_methods_breakdown(period)
        return success(breakdown, period=period, total_transactions=count)
    except Exception as e:
        return handle_error(e)


@router.post("/export")
async def export_transactions(
    request: ExportRequest,
    user: UserContext = Depends(require_permissions("finance.read"))
):
    try:
        body = get_payment_service().export(request.type, request.filters)
        logger.info("payments_exported", export_type=request.type, user_id=user.id)
        return attachment(body, request.type, export_filename("payment_transactions", request.type))
    except Exception as e:
        return handle_error(e)
