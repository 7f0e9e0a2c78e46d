"""
Factory review session routes.

Sessions, their participants and review notes, plus the printable HTML
report.
"""

from fastapi import APIRouter, Depends, Query
from typing import Optional
import structlog

from models.factory_review import NoteCreate, ParticipantCreate, SessionCreate, SessionUpdate
from models.user import UserContext
from services.auth_service import require_permissions
from services.export_service import factory_review_filename, render_factory_review_html
from services.factory_review_service import get_factory_review_service
from utils.responses import attachment, handle_error, success

logger = structlog.get_logger(__name__)

router = APIRouter()


# ===================
# SESSIONS
# ===================

@router.get("")
async def list_sessions(
    status: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    user: UserContext = Depends(require_permissions("production.read"))
):
    try:
        sessions = get_factory_review_service().list_sessions(status=status, limit=limit, offset=offset)
        return success(sessions, count=len(sessions))
    except Exception as e:
        return handle_error(e)


@router.post("", status_code=201)
async def create_session(
    data: SessionCreate,
    user: UserContext = Depends(require_permissions("production.update", "production.write"))
):
    try:
        return success(get_factory_review_service().create_session(data), status_code=201)
    except Exception as e:
        return handle_error(e)


@router.get("/{session_id}")
async def get_session(
    session_id: str,
    user: UserContext = Depends(require_permissions("production.read"))
):
    try:
        return success(get_factory_review_service().get_session(session_id))
    except Exception as e:
        return handle_error(e)


@router.put("/{session_id}")
async def update_session(
    session_id: str,
    data: SessionUpdate,
    user: UserContext = Depends(require_permissions("production.update", "production.write"))
):
    """Moving to in_progress or completed stamps started_at / completed_at."""
    try:
        return success(get_factory_review_service().update_session(session_id, data))
    except Exception as e:
        return handle_error(e)


@router.delete("/{session_id}")
async def delete_session(
    session_id: str,
    user: UserContext = Depends(require_permissions("production.update", "production.write"))
):
    try:
        get_factory_review_service().delete_session(session_id)
        return success({"id": session_id}, message="Session deleted successfully")
    except Exception as e:
        return handle_error(e)


@router.get("/{session_id}/export")
async def export_session(
    session_id: str,
    user: UserContext = Depends(require_permissions("production.read"))
):
    """Self-contained HTML report, downloaded as an attachment."""
    try:
        session = get_factory_review_service().get_export_data(session_id)
        html = render_factory_review_html(session)
        filename = factory_review_filename(session.get("session_name") or "session")
        logger.info("factory_review_exported", session_id=session_id, user_id=user.id)
        return attachment(html, "html", filename)
    except Exception as e:
        return handle_error(e)


# ===================
# PARTICIPANTS
# ===================

@router.get("/{session_id}/participants")
async def list_participants(
    session_id: str,
    user: UserContext = Depends(require_permissions("production.read"))
):
    try:
        participants = get_factory_review_service().list_participants(session_id)
        return success(participants, count=len(participants))
    except Exception as e:
        return handle_error(e)


@router.post("/{session_id}/participants", status_code=201)
async def add_participant(
    session_id: str,
    data: ParticipantCreate,
    user: UserContext = Depends(require_permissions("production.update", "production.write"))
):
    try:
        participant = get_factory_review_service().add_participant(session_id, data)
        return success(participant, status_code=201)
    except Exception as e:
        return handle_error(e)


# ===================
# NOTES
# ===================

@router.get("/{session_id}/notes")
async def list_notes(
    session_id: str,
    user: UserContext = Depends(require_permissions("production.read"))
):
    try:
        notes = get_factory_review_service().list_notes(session_id)
        return success(notes, count=len(notes))
    except Exception as e:
        return handle_error(e)


@router.post("/{session_id}/notes", status_code=201)
async def add_note(
    session_id: str,
    data: NoteCreate,
    user: UserContext = Depends(require_permissions("production.update", "production.write"))
):
    try:
        note = get_factory_review_service().add_note(session_id, data, user)
        return success(note, status_code=201)
    except Exception as e:
        return handle_error(e)
