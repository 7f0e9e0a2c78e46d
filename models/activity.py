"""
CRM activity and collection activity models.
"""

from datetime import date
from typing import Any, Optional
from pydantic import Field

from models.base import BaseSchema


# Fixed vocabularies, checked in the services
CRM_ACTIVITY_TYPES = ["call", "email", "meeting", "note", "task", "sms"]

COLLECTION_ACTIVITY_TYPES = [
    "call",
    "email",
    "letter",
    "meeting",
    "payment_plan",
    "legal_notice",
]


class ActivityCreate(BaseSchema):
    """Log a CRM activity against a related entity."""

    type: str = Field(..., min_length=1)
    subject: str = Field(..., min_length=1, max_length=300)
    description: Optional[str] = None
    related_to: str = Field(..., min_length=1, description="Entity kind, e.g. customers")
    related_id: str = Field(..., min_length=1)


class CollectionActivityCreate(BaseSchema):
    """Record a collection effort against a customer."""

    customer_id: str = Field(..., min_length=1)
    activity_type: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    created_by: Optional[str] = None
    next_action_date: Optional[date] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
