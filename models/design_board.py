"""
Design board models.
"""

from typing import Optional
from pydantic import Field

from models.base import BaseSchema


BOARD_PARTICIPANT_ROLES = ["viewer", "commenter", "editor", "owner"]

# Canvas defaults written on every new board
DEFAULT_BOARD_SETTINGS = {
    "gridSize": 20,
    "backgroundColor": "#f7f7f7",
    "gridVisible": True,
    "snapToGrid": True,
}


class BoardCreate(BaseSchema):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    status: str = Field(default="active", max_length=50)


class BoardParticipantInvite(BaseSchema):
    email: str = Field(..., min_length=3, max_length=255)
    role: str = Field(default="viewer", max_length=50)
