"""
Product collection API routes.
"""

from fastapi import APIRouter, Depends
import structlog

from models.collection import CollectionCreate, CollectionUpdate
from models.user import UserContext
from services.auth_service import require_permissions
from services.collection_service import get_collection_service
from utils.responses import handle_error, success

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("")
async def list_collections(
    user: UserContext = Depends(require_permissions("products.read"))
):
    """Collections in display order."""
    try:
        collections = get_collection_service().get_all()
        return success(collections, count=len(collections))
    except Exception as e:
        return handle_error(e)


@router.post("", status_code=201)
async def create_collection(
    data: CollectionCreate,
    user: UserContext = Depends(require_permissions("products.create", "products.write"))
):
    """The caller's email is recorded as designer when none is given."""
    try:
        collection = get_collection_service().create(data, created_by=user.email)
        return success(collection, status_code=201)
    except Exception as e:
        return handle_error(e)


@router.get("/{collection_id}")
async def get_collection(
    collection_id: str,
    user: UserContext = Depends(require_permissions("products.read"))
):
    try:
        return success(get_collection_service().get_by_id(collection_id))
    except Exception as e:
        return handle_error(e)


@router.put("/{collection_id}")
async def update_collection(
    collection_id: str,
    data: CollectionUpdate,
    user: UserContext = Depends(require_permissions("products.update", "products.write"))
):
    try:
        return success(get_collection_service().update(collection_id, data))
    except Exception as e:
        return handle_error(e)


@router.delete("/{collection_id}")
async def delete_collection(
    collection_id: str,
    user: UserContext = Depends(require_permissions("products.delete"))
):
    try:
        get_collection_service().delete(collection_id)
        return success({"id": collection_id}, message="Collection deleted successfully")
    except Exception as e:
        return handle_error(e)
