"""
Design board API routes.

Boards and their invited participants. Realtime canvas collaboration is
handled client-side and has no endpoints here.
"""

from fastapi import APIRouter, Depends
import structlog

from models.design_board import BoardCreate, BoardParticipantInvite
from models.user import UserContext
from services.auth_service import require_permissions
from services.design_board_service import get_design_board_service
from utils.responses import handle_error, success

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("")
async def list_boards(
    user: UserContext = Depends(require_permissions("design.read"))
):
    """Boards with participant counts. Empty with tableExists=false before setup."""
    try:
        boards, table_exists = get_design_board_service().list_boards()
        return success(boards, count=len(boards), tableExists=table_exists)
    except Exception as e:
        return handle_error(e)


@router.post("", status_code=201)
async def create_board(
    data: BoardCreate,
    user: UserContext = Depends(require_permissions("design.create"))
):
    try:
        board = get_design_board_service().create_board(data, user)
        return success(board, status_code=201)
    except Exception as e:
        return handle_error(e)


@router.get("/{board_id}/participants")
async def list_participants(
    board_id: str,
    user: UserContext = Depends(require_permissions("design.read"))
):
    try:
        participants = get_design_board_service().list_participants(board_id)
        return success(participants, count=len(participants))
    except Exception as e:
        return handle_error(e)


@router.post("/{board_id}/participants", status_code=201)
async def invite_participant(
    board_id: str,
    data: BoardParticipantInvite,
    user: UserContext = Depends(require_permissions("design.update", "design.create"))
):
    try:
        participant = get_design_board_service().invite_participant(board_id, data)
        logger.info("board_invitation_sent", board_id=board_id, invited_by=user.id)
        return success(participant, status_code=201)
    except Exception as e:
        return handle_error(e)
