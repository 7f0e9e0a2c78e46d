"""
Factory review session models.

A session is an on-site prototype review at a factory. Participants and
notes hang off the session; the export endpoint renders all of it as HTML.
"""

from datetime import datetime
from typing import Optional
from pydantic import Field

from models.base import BaseSchema


SESSION_STATUSES = ["scheduled", "in_progress", "completed", "on_hold"]
NOTE_STATUSES = ["approved", "cant_complete", "updated_on_drawing", "in_progress"]


class SessionCreate(BaseSchema):
    session_name: str = Field(..., min_length=1, max_length=200)
    factory_name: str = Field(..., min_length=1, max_length=200)
    scheduled_date: datetime
    prototype_count: int = Field(default=0, ge=0)
    session_notes: Optional[str] = None


class SessionUpdate(BaseSchema):
    """Only provided fields are written."""

    session_name: Optional[str] = Field(None, min_length=1, max_length=200)
    factory_name: Optional[str] = Field(None, min_length=1, max_length=200)
    scheduled_date: Optional[datetime] = None
    status: Optional[str] = None
    session_notes: Optional[str] = None
    prototype_count: Optional[int] = Field(None, ge=0)
    reviewed_count: Optional[int] = Field(None, ge=0)
    approved_count: Optional[int] = Field(None, ge=0)
    rejected_count: Optional[int] = Field(None, ge=0)


class ParticipantCreate(BaseSchema):
    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., min_length=3, max_length=255)
    role: str = Field(default="Participant", max_length=100)
    company: str = Field(default="", max_length=200)
    can_approve: bool = False
    user_id: Optional[str] = None


class NoteCreate(BaseSchema):
    content: str = Field(..., min_length=1)
    status: str = Field(..., min_length=1, max_length=50)
    status_reason: Optional[str] = None
    photos: list[str] = Field(default_factory=list)
