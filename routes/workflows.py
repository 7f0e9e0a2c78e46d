"""
Automation rule and workflow execution routes.
"""

from fastapi import APIRouter, Depends, Query
from typing import Optional
import structlog

from models.automation import RuleCreate, RuleUpdate, WorkflowExecuteRequest
from models.user import UserContext
from services.auth_service import require_permissions
from services.automation_service import get_automation_service
from utils.responses import handle_error, success

logger = structlog.get_logger(__name__)

router = APIRouter()


# ===================
# RULES
# ===================

@router.get("/rules")
async def list_rules(
    trigger_event: Optional[str] = Query(None),
    active_only: bool = Query(False),
    user: UserContext = Depends(require_permissions("system.configure"))
):
    try:
        rules = get_automation_service().list_rules(trigger_event=trigger_event, active_only=active_only)
        return success(rules, count=len(rules))
    except Exception as e:
        return handle_error(e)


@router.post("/rules", status_code=201)
async def create_rule(
    data: RuleCreate,
    user: UserContext = Depends(require_permissions("system.configure"))
):
    try:
        return success(get_automation_service().create_rule(data), status_code=201)
    except Exception as e:
        return handle_error(e)


@router.get("/rules/{rule_id}")
async def get_rule(
    rule_id: str,
    user: UserContext = Depends(require_permissions("system.configure"))
):
    try:
        return success(get_automation_service().get_rule(rule_id))
    except Exception as e:
        return handle_error(e)


@router.put("/rules/{rule_id}")
async def update_rule(
    rule_id: str,
    data: RuleUpdate,
    user: UserContext = Depends(require_permissions("system.configure"))
):
    try:
        return success(get_automation_service().update_rule(rule_id, data))
    except Exception as e:
        return handle_error(e)


@router.delete("/rules/{rule_id}")
async def delete_rule(
    rule_id: str,
    user: UserContext = Depends(require_permissions("system.configure"))
):
    try:
        get_automation_service().delete_rule(rule_id)
        return success({"id": rule_id}, message="Rule deleted successfully")
    except Exception as e:
        return handle_error(e)


@router.get("/rules/{rule_id}/logs")
async def get_rule_logs(
    rule_id: str,
    limit: int = Query(50, ge=1, le=500),
    user: UserContext = Depends(require_permissions("system.configure"))
):
    try:
        logs = get_automation_service().get_logs(rule_id=rule_id, limit=limit)
        return success(logs, count=len(logs))
    except Exception as e:
        return handle_error(e)


# ===================
# EXECUTION
# ===================

@router.post("/execute")
async def execute_workflow(
    request: WorkflowExecuteRequest,
    user: UserContext = Depends(require_permissions("system.configure", "system.integrations"))
):
    """
    Run one rule (rule_id) or every active rule for trigger_event against
    trigger_data. Rules whose conditions fail are reported with
    executed=false.
    """
    try:
        logger.info(
            "workflow_execute_requested",
            trigger_event=request.trigger_event,
            rule_id=request.rule_id,
            user_id=user.id
        )
        outcomes = get_automation_service().execute(
            trigger_event=request.trigger_event,
            rule_id=request.rule_id,
            trigger_data=request.trigger_data,
        )
        return success(outcomes, executed=sum(1 for o in outcomes if o["executed"]))
    except Exception as e:
        return handle_error(e)
