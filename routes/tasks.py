"""
Task API routes.
"""

from fastapi import APIRouter, Depends, Query
from typing import Optional
import structlog

from models.task import TaskCreate, TaskFilters, TaskUpdate
from models.user import UserContext
from services.auth_service import require_permissions
from services.task_service import get_task_service
from utils.responses import handle_error, success

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("")
async def list_tasks(
    status: Optional[str] = Query(None),
    assignedTo: Optional[str] = Query(None),
    priority: Optional[str] = Query(None),
    user: UserContext = Depends(require_permissions("projects.read"))
):
    """
    List tasks. A filter value of "all" means no filter.

    When the tasks table has not been created yet the list is empty and
    tableExists is false.
    """
    try:
        filters = TaskFilters(status=status, assigned_to=assignedTo, priority=priority)
        tasks, table_exists = get_task_service().get_all(filters)
        return success(tasks, count=len(tasks), tableExists=table_exists)
    except Exception as e:
        return handle_error(e)


@router.post("", status_code=201)
async def create_task(
    data: TaskCreate,
    user: UserContext = Depends(require_permissions("projects.create"))
):
    try:
        task = get_task_service().create(data, created_by=user.email)
        return success(task, status_code=201)
    except Exception as e:
        return handle_error(e)


@router.put("")
async def update_task(
    data: TaskUpdate,
    user: UserContext = Depends(require_permissions("projects.update"))
):
    try:
        return success(get_task_service().update(data))
    except Exception as e:
        return handle_error(e)


@router.delete("")
async def delete_task(
    id: str = Query(..., min_length=1),
    user: UserContext = Depends(require_permissions("projects.delete"))
):
    try:
        get_task_service().delete(id)
        return success({"id": id}, message="Task deleted successfully")
    except Exception as e:
        return handle_error(e)
