"""
SMS campaign and messaging routes.
"""

from fastapi import APIRouter, Depends, Query
from typing import Optional
import structlog

from models.sms import CampaignCreate, OptOutRequest, SendSMSRequest
from models.user import UserContext
from services.auth_service import require_permissions
from services.sms_campaign_service import get_sms_campaign_manager
from services.sms_provider_service import get_sms_provider_service
from utils.responses import handle_error, success

logger = structlog.get_logger(__name__)

router = APIRouter()


# ===================
# CAMPAIGNS
# ===================

@router.get("/campaigns")
async def list_campaigns(
    status: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    user: UserContext = Depends(require_permissions("customers.write"))
):
    try:
        campaigns = get_sms_campaign_manager().list_campaigns(status=status, limit=limit)
        return success(campaigns, count=len(campaigns))
    except Exception as e:
        return handle_error(e)


@router.post("/campaigns", status_code=201)
async def create_campaign(
    data: CampaignCreate,
    user: UserContext = Depends(require_permissions("customers.write"))
):
    """Create a draft campaign, or a scheduled one when scheduled_date is set."""
    try:
        return success(get_sms_campaign_manager().create_campaign(data), status_code=201)
    except Exception as e:
        return handle_error(e)


@router.get("/campaigns/{campaign_id}")
async def get_campaign(
    campaign_id: str,
    user: UserContext = Depends(require_permissions("customers.write"))
):
    try:
        return success(get_sms_campaign_manager().get_campaign(campaign_id))
    except Exception as e:
        return handle_error(e)


@router.post("/campaigns/{campaign_id}/execute")
async def execute_campaign(
    campaign_id: str,
    user: UserContext = Depends(require_permissions("customers.write"))
):
    """Send now. Returns sent / failed / opted_out counters."""
    try:
        logger.info("sms_campaign_execute_requested", campaign_id=campaign_id, user_id=user.id)
        results = get_sms_campaign_manager().execute_campaign(campaign_id)
        return success(results)
    except Exception as e:
        return handle_error(e)


@router.get("/campaigns/{campaign_id}/analytics")
async def get_campaign_analytics(
    campaign_id: str,
    user: UserContext = Depends(require_permissions("customers.write"))
):
    try:
        return success(get_sms_campaign_manager().get_campaign_analytics(campaign_id))
    except Exception as e:
        return handle_error(e)


# ===================
# MESSAGES
# ===================

@router.post("/send")
async def send_sms(
    data: SendSMSRequest,
    user: UserContext = Depends(require_permissions("customers.write"))
):
    try:
        result = get_sms_provider_service().send_sms(data.to, data.message, data.campaign_id)
        return success(result)
    except Exception as e:
        return handle_error(e)


@router.post("/opt-out")
async def opt_out(
    data: OptOutRequest,
    user: UserContext = Depends(require_permissions("customers.update", "customers.write"))
):
    try:
        get_sms_provider_service().handle_opt_out(data.phone, data.method)
        return success({"phone": data.phone, "opted_out": True})
    except Exception as e:
        return handle_error(e)
