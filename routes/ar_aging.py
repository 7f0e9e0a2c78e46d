"""
Accounts-receivable aging API routes.

Summary buckets, per-customer aging, collections export and collection
activity log.
"""

from fastapi import APIRouter, Body, Depends, Query
from typing import Any, Optional
import structlog

from models.base import ExportRequest
from models.user import UserContext
from services.ar_aging_service import get_ar_aging_service
from services.auth_service import require_permissions
from utils.responses import attachment, export_filename, handle_error, success

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/summary")
async def get_summary(user: UserContext = Depends(require_permissions("finance.read"))):
    """Aging buckets and collection KPIs over every outstanding invoice."""
    try:
        summary, invoice_count = get_ar_aging_service().get_summary()
        return success(summary, invoice_count=invoice_count)
    except Exception as e:
        return handle_error(e)


@router.get("/customers")
async def get_customers(
    search: Optional[str] = Query(None, max_length=100),
    collection_status: Optional[str] = Query(None),
    days_outstanding: Optional[str] = Query(None, description="current | early | moderate | late"),
    sort_by: str = Query("total_outstanding"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    user: UserContext = Depends(require_permissions("finance.read"))
):
    """Outstanding balance per customer, bucketed and risk scored."""
    try:
        customers = get_ar_aging_service().get_customer_aging(
            search=search,
            collection_status=collection_status,
            days_outstanding=days_outstanding,
            sort_by=sort_by,
            sort_order=sort_order,
        )
        return success(
            customers,
            count=len(customers),
            filters={
                "search": search,
                "collection_status": collection_status,
                "days_outstanding": days_outstanding,
                "sort_by": sort_by,
                "sort_order": sort_order,
            }
        )
    except Exception as e:
        return handle_error(e)


@router.post("/export")
async def export_aging(
    request: ExportRequest,
    user: UserContext = Depends(require_permissions("finance.read"))
):
    """Collections report as csv, tsv or excel."""
    try:
        body = get_ar_aging_service().export(request.type, request.filters)
        logger.info("ar_aging_exported", export_type=request.type, user_id=user.id)
        return attachment(body, request.type, export_filename("ar_aging_report", request.type))
    except Exception as e:
        return handle_error(e)


@router.get("/collection-activities")
async def list_collection_activities(
    limit: int = Query(100, ge=1, le=500),
    user: UserContext = Depends(require_permissions("finance.read"))
):
    try:
        activities = get_ar_aging_service().get_collection_activities(limit=limit)
        return success(activities, count=len(activities))
    except Exception as e:
        return handle_error(e)


@router.post("/collection-activities", status_code=201)
async def create_collection_activity(
    payload: dict[str, Any] = Body(...),
    user: UserContext = Depends(require_permissions("finance.create"))
):
    """
    Record a call, email, letter, meeting, payment plan or legal notice.

    Missing fields and unknown activity types are reported with 400.
    """
    try:
        payload.setdefault("created_by", user.email or user.id)
        activity = get_ar_aging_service().create_collection_activity(payload)
        return success(activity, status_code=201)
    except Exception as e:
        return handle_error(e)
