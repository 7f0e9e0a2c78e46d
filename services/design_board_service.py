"""
Design board service.

Boards and their invited participants (board_permissions). Deployments
without the board tables list empty results instead of failing.
"""

from datetime import datetime
from typing import Optional
import structlog

from config import get_supabase_client
from exceptions import DatabaseError, InvalidChoiceError, TableMissingError
from models.design_board import (
    BOARD_PARTICIPANT_ROLES,
    DEFAULT_BOARD_SETTINGS,
    BoardCreate,
    BoardParticipantInvite,
)
from models.user import UserContext
from services.task_service import is_missing_table

logger = structlog.get_logger(__name__)


BOARD_COLUMNS = (
    "id, name, description, status, created_at, updated_at, created_by, is_public, thumbnail, "
    "board_permissions(count)"
)

# Postgres "infinite recursion detected in policy"
RLS_RECURSION_CODE = "42P17"


class DesignBoardService:
    """
    Design board business logic.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "design_boards"

    def list_boards(self) -> tuple[list[dict], bool]:
        """
        Boards, most recently updated first.

        Returns:
            Tuple of (boards, table_exists)
        """
        try:
            result = (
                self.db.table(self.table)
                .select(BOARD_COLUMNS)
                .order("updated_at", desc=True)
                .execute()
            )
        except Exception as e:
            if is_missing_table(e):
                logger.warning("design_boards_table_missing")
                return [], False
            logger.error("list_design_boards_failed", error=str(e))
            raise DatabaseError("select", str(e))

        boards = []
        for row in result.data or []:
            participants = row.get("board_permissions") or []
            board = {k: v for k, v in row.items() if k != "board_permissions"}
            board["participants_count"] = participants[0].get("count", 0) if participants else 0
            boards.append(board)
        return boards, True

    def create_board(self, data: BoardCreate, user: UserContext) -> dict:
        """New private, non-template board with the default canvas settings."""
        now = datetime.utcnow().isoformat()
        row = {
            "name": data.name,
            "description": data.description,
            "status": data.status or "active",
            "created_by": user.id,
            "settings": dict(DEFAULT_BOARD_SETTINGS),
            "is_template": False,
            "is_public": False,
            "created_at": now,
            "updated_at": now,
        }

        logger.info("creating_design_board", name=data.name, created_by=user.id)

        try:
            result = self.db.table(self.table).insert(row).execute()
            board = result.data[0]
            logger.info("design_board_created", board_id=board.get("id"))
            return board

        except Exception as e:
            if is_missing_table(e):
                raise TableMissingError(self.table)
            logger.error("create_design_board_failed", error=str(e))
            raise DatabaseError("insert", str(e))

    # ===================
    # PARTICIPANTS
    # ===================

    def list_participants(self, board_id: str) -> list[dict]:
        """
        Invited participants, newest first. A missing board_permissions
        table or a recursive row-level policy yields an empty list.
        """
        try:
            result = (
                self.db.table("board_permissions")
                .select("*")
                .eq("board_id", board_id)
                .order("created_at", desc=True)
                .execute()
            )
            return result.data or []

        except Exception as e:
            if is_missing_table(e) or _is_policy_recursion(e):
                logger.warning("board_permissions_unavailable", board_id=board_id, error=str(e))
                return []
            logger.error("list_board_participants_failed", board_id=board_id, error=str(e))
            raise DatabaseError("select", str(e))

    def invite_participant(self, board_id: str, data: BoardParticipantInvite) -> dict:
        """
        Raises:
            InvalidChoiceError: Unknown participant role
        """
        if data.role not in BOARD_PARTICIPANT_ROLES:
            raise InvalidChoiceError("role", data.role, BOARD_PARTICIPANT_ROLES)

        try:
            result = self.db.table("board_permissions").insert({
                "board_id": board_id,
                "user_email": data.email,
                "role": data.role,
                "created_at": datetime.utcnow().isoformat(),
            }).execute()
            participant = result.data[0]

        except Exception as e:
            if is_missing_table(e):
                raise TableMissingError("board_permissions")
            logger.error("invite_board_participant_failed", board_id=board_id, error=str(e))
            raise DatabaseError("insert", str(e))

        logger.info("board_participant_invited", board_id=board_id, role=data.role)
        return participant


def _is_policy_recursion(error: Exception) -> bool:
    return (
        getattr(error, "code", None) == RLS_RECURSION_CODE
        or "infinite recursion" in str(error)
    )


# Singleton instance
_design_board_service: Optional[DesignBoardService] = None


def get_design_board_service() -> DesignBoardService:
    """Get or create DesignBoardService instance."""
    global _design_board_service
    if _design_board_service is None:
        _design_board_service = DesignBoardService()
    return _design_board_service
