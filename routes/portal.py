"""
Customer portal messaging routes.

The caller must be a signed-in portal user whose email matches a
customers row.
"""

from fastapi import APIRouter, Depends
import structlog

from models.message import MessageCreate, ThreadCreate
from models.user import UserContext
from services.auth_service import get_current_user
from services.message_service import get_message_service
from utils.responses import handle_error, success

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/threads")
async def list_threads(user: UserContext = Depends(get_current_user)):
    """Threads with unread staff message count and last message preview."""
    try:
        threads = get_message_service().list_threads(user)
        return success(threads, count=len(threads))
    except Exception as e:
        return handle_error(e)


@router.post("/threads", status_code=201)
async def create_thread(data: ThreadCreate, user: UserContext = Depends(get_current_user)):
    try:
        result = get_message_service().create_thread(user, data)
        return success(result, status_code=201)
    except Exception as e:
        return handle_error(e)


@router.get("/threads/{thread_id}/messages")
async def list_messages(thread_id: str, user: UserContext = Depends(get_current_user)):
    """Messages oldest first. Staff messages are marked read."""
    try:
        messages = get_message_service().get_messages(user, thread_id)
        return success(messages, count=len(messages))
    except Exception as e:
        return handle_error(e)


@router.post("/threads/{thread_id}/messages", status_code=201)
async def post_message(
    thread_id: str,
    data: MessageCreate,
    user: UserContext = Depends(get_current_user)
):
    try:
        message = get_message_service().post_message(user, thread_id, data)
        return success(message, status_code=201)
    except Exception as e:
        return handle_error(e)
