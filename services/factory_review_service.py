"""
Factory review sessions, participants and notes.
"""

from datetime import datetime
from typing import Optional
import structlog

from config import get_supabase_client
from exceptions import (
    DatabaseError,
    InvalidChoiceError,
    SessionNotFoundError,
    ValidationError,
)
from models.factory_review import (
    NOTE_STATUSES,
    SESSION_STATUSES,
    NoteCreate,
    ParticipantCreate,
    SessionCreate,
    SessionUpdate,
)
from models.user import UserContext

logger = structlog.get_logger(__name__)


EXPORT_SELECT = "*, factory_review_participants(*), factory_review_notes(*), shop_drawing_files(*)"


def participant_labels(session: dict) -> list[str]:
    """'Name (Role)' for each embedded participant."""
    return [
        f"{p.get('name')} ({p.get('role')})"
        for p in session.get("factory_review_participants") or []
    ]


class FactoryReviewService:
    """
    Factory review business logic.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "factory_review_sessions"

    # ===================
    # SESSIONS
    # ===================

    def list_sessions(self, status: Optional[str] = None, limit: int = 50, offset: int = 0) -> list[dict]:
        """Sessions newest first, each with a participants label list."""
        try:
            query = self.db.table(self.table).select(
                "*, factory_review_participants(name, role, company)"
            )
            if status and status != "all":
                query = query.eq("status", status)

            result = (
                query.order("created_at", desc=True)
                .range(offset, offset + limit - 1)
                .execute()
            )
        except Exception as e:
            logger.error("list_sessions_failed", error=str(e))
            raise DatabaseError("select", str(e))

        sessions = []
        for row in result.data or []:
            session = {k: v for k, v in row.items() if k != "factory_review_participants"}
            session["participants"] = participant_labels(row)
            sessions.append(session)
        return sessions

    def create_session(self, data: SessionCreate) -> dict:
        now = datetime.utcnow().isoformat()
        row = {
            **data.model_dump(mode="json"),
            "status": "scheduled",
            "reviewed_count": 0,
            "approved_count": 0,
            "rejected_count": 0,
            "created_at": now,
            "updated_at": now,
        }

        logger.info("creating_review_session", session_name=data.session_name, factory=data.factory_name)

        try:
            result = self.db.table(self.table).insert(row).execute()
            session = result.data[0]
            logger.info("review_session_created", session_id=session["id"])
            return session

        except Exception as e:
            logger.error("create_session_failed", error=str(e))
            raise DatabaseError("insert", str(e))

    def get_session(self, session_id: str, columns: str = "*") -> dict:
        """
        Raises:
            SessionNotFoundError: No session with that id
        """
        try:
            result = self.db.table(self.table).select(columns).eq("id", session_id).execute()
        except Exception as e:
            logger.error("get_session_failed", session_id=session_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            raise SessionNotFoundError(session_id)
        return result.data[0]

    def update_session(self, session_id: str, data: SessionUpdate) -> dict:
        """
        Update provided fields. Moving to in_progress stamps started_at,
        moving to completed stamps completed_at.
        """
        updates = data.model_dump(exclude_unset=True, mode="json")

        if data.status is not None and data.status not in SESSION_STATUSES:
            raise InvalidChoiceError("status", data.status, SESSION_STATUSES)

        now = datetime.utcnow().isoformat()
        updates["updated_at"] = now
        if data.status == "in_progress":
            updates["started_at"] = now
        elif data.status == "completed":
            updates["completed_at"] = now

        try:
            result = self.db.table(self.table).update(updates).eq("id", session_id).execute()
        except Exception as e:
            logger.error("update_session_failed", session_id=session_id, error=str(e))
            raise DatabaseError("update", str(e))

        if not result.data:
            raise SessionNotFoundError(session_id)

        logger.info("review_session_updated", session_id=session_id, fields=sorted(updates))
        return result.data[0]

    def delete_session(self, session_id: str) -> bool:
        """
        Raises:
            ValidationError: Session is in progress
        """
        session = self.get_session(session_id, "id, status")
        if session.get("status") == "in_progress":
            raise ValidationError(
                "Cannot delete sessions that are in progress",
                code="SESSION_IN_PROGRESS",
                details={"id": session_id}
            )

        try:
            self.db.table(self.table).delete().eq("id", session_id).execute()
            logger.info("review_session_deleted", session_id=session_id)
            return True

        except Exception as e:
            logger.error("delete_session_failed", session_id=session_id, error=str(e))
            raise DatabaseError("delete", str(e))

    def get_export_data(self, session_id: str) -> dict:
        """Session with participants, notes and shop drawings embedded."""
        return self.get_session(session_id, EXPORT_SELECT)

    # ===================
    # PARTICIPANTS
    # ===================

    def list_participants(self, session_id: str) -> list[dict]:
        try:
            result = (
                self.db.table("factory_review_participants")
                .select("*")
                .eq("session_id", session_id)
                .order("created_at")
                .execute()
            )
            return result.data or []

        except Exception as e:
            logger.error("list_participants_failed", session_id=session_id, error=str(e))
            raise DatabaseError("select", str(e))

    def add_participant(self, session_id: str, data: ParticipantCreate) -> dict:
        """
        Raises:
            ValidationError: Email already in this session
        """
        try:
            existing = (
                self.db.table("factory_review_participants")
                .select("id")
                .eq("session_id", session_id)
                .eq("email", data.email)
                .execute()
            )
        except Exception as e:
            logger.error("participant_lookup_failed", session_id=session_id, error=str(e))
            raise DatabaseError("select", str(e))

        if existing.data:
            raise ValidationError(
                "Participant with this email is already in this session",
                code="DUPLICATE_PARTICIPANT",
                details={"email": data.email}
            )

        row = {
            **data.model_dump(),
            "session_id": session_id,
            "created_at": datetime.utcnow().isoformat(),
        }

        try:
            result = self.db.table("factory_review_participants").insert(row).execute()
            participant = result.data[0]
            logger.info("participant_added", session_id=session_id, participant_id=participant["id"])
            return participant

        except Exception as e:
            logger.error("add_participant_failed", session_id=session_id, error=str(e))
            raise DatabaseError("insert", str(e))

    # ===================
    # NOTES
    # ===================

    def list_notes(self, session_id: str) -> list[dict]:
        """Notes newest first."""
        try:
            result = (
                self.db.table("factory_review_notes")
                .select("*")
                .eq("session_id", session_id)
                .order("created_at", desc=True)
                .execute()
            )
        except Exception as e:
            logger.error("list_notes_failed", session_id=session_id, error=str(e))
            raise DatabaseError("select", str(e))

        return [
            {
                **note,
                "created_by_name": note.get("created_by_name") or "Unknown User",
                "photos": note.get("photos") or [],
            }
            for note in result.data or []
        ]

    def add_note(self, session_id: str, data: NoteCreate, user: UserContext) -> dict:
        if data.status not in NOTE_STATUSES:
            raise InvalidChoiceError("status", data.status, NOTE_STATUSES)

        now = datetime.utcnow().isoformat()
        row = {
            "session_id": session_id,
            "content": data.content,
            "status": data.status,
            "status_reason": data.status_reason,
            "photos": data.photos,
            "created_by": user.id,
            "created_by_name": user.full_name or user.email or "Unknown User",
            "created_at": now,
            "updated_at": now,
        }

        try:
            result = self.db.table("factory_review_notes").insert(row).execute()
            note = result.data[0]
            logger.info("review_note_added", session_id=session_id, note_id=note["id"])
            return note

        except Exception as e:
            logger.error("add_note_failed", session_id=session_id, error=str(e))
            raise DatabaseError("insert", str(e))


# Singleton instance
_factory_review_service: Optional[FactoryReviewService] = None


def get_factory_review_service() -> FactoryReviewService:
    """Get or create FactoryReviewService instance."""
    global _factory_review_service
    if _factory_review_service is None:
        _factory_review_service = FactoryReviewService()
    return _factory_review_service
