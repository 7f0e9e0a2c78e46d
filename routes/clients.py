"""
Client API routes.

Responses use frontend field names (contactName, creditTerms, ...).
"""

from fastapi import APIRouter, Depends, Query
from typing import Optional
import structlog

from models.client import ClientCreate, ClientUpdate
from models.user import UserContext
from services.auth_service import require_permissions
from services.client_service import get_client_service
from utils.responses import handle_error, success

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("")
async def list_clients(
    search: Optional[str] = Query(None, max_length=100),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    user: UserContext = Depends(require_permissions("customers.read"))
):
    """List clients, optionally filtered by name, email or contact."""
    try:
        clients = get_client_service().get_all(search=search, limit=limit, offset=offset)
        return success(clients, count=len(clients))
    except Exception as e:
        return handle_error(e)


@router.post("", status_code=201)
async def create_client(
    data: ClientCreate,
    user: UserContext = Depends(require_permissions("customers.write"))
):
    try:
        client = get_client_service().create(data)
        return success(client, status_code=201)
    except Exception as e:
        return handle_error(e)


@router.put("")
async def update_client(
    data: ClientUpdate,
    user: UserContext = Depends(require_permissions("customers.write"))
):
    try:
        return success(get_client_service().update(data))
    except Exception as e:
        return handle_error(e)


@router.delete("")
async def delete_client(
    id: str = Query(..., min_length=1),
    user: UserContext = Depends(require_permissions("customers.delete"))
):
    try:
        get_client_service().delete(id)
        return success({"id": id}, message="Client deleted successfully")
    except Exception as e:
        return handle_error(e)
