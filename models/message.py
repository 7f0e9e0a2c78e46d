"""
Customer portal message models.
"""

from typing import Any, Optional
from pydantic import Field, field_validator

from models.base import BaseSchema


class ThreadCreate(BaseSchema):
    """Open a new thread with its first message."""

    subject: str = Field(..., min_length=1, max_length=300)
    message: str = Field(..., min_length=1)
    order_id: Optional[str] = None
    priority: str = Field(default="normal", max_length=20)


class MessageCreate(BaseSchema):
    """Post a reply into an existing thread."""

    content: str = Field(..., min_length=1)
    attachments: list[Any] = Field(default_factory=list)

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, v: str) -> str:
        """Content is trimmed and must not be blank."""
        v = v.strip()
        if not v:
            raise ValueError("Message content is required")
        return v
