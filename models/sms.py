"""
SMS campaign and messaging models.
"""

from datetime import datetime
from typing import Any, Optional
from pydantic import Field

from models.base import BaseSchema


# Segment types understood by recipient resolution
SEGMENT_TYPES = ["tag", "status", "created_after"]


class AudienceSegment(BaseSchema):
    """Recipient filter, e.g. {"type": "tag", "value": "vip"}."""

    type: str
    value: Any


class TargetAudience(BaseSchema):
    """All segments apply together. No segments means every customer with a phone."""

    segments: list[AudienceSegment] = Field(default_factory=list)


class CampaignCreate(BaseSchema):
    name: str = Field(..., min_length=1, max_length=200)
    type: str = Field(default="marketing", max_length=50)
    template_id: str = Field(..., min_length=1)
    target_audience: TargetAudience = Field(default_factory=TargetAudience)
    scheduled_date: Optional[datetime] = None


class CampaignResults(BaseSchema):
    """Counters of one campaign execution."""

    sent: int = 0
    failed: int = 0
    opted_out: int = 0


class CampaignMetrics(BaseSchema):
    delivery_rate: float = 0
    failure_rate: float = 0
    opt_out_rate: float = 0
    total_cost: float = 0


class SendSMSRequest(BaseSchema):
    """Single outbound message."""

    to: str = Field(..., min_length=5, max_length=20)
    message: str = Field(..., min_length=1, max_length=1600)
    campaign_id: Optional[str] = None


class OptOutRequest(BaseSchema):
    phone: str = Field(..., min_length=5, max_length=20)
    method: str = Field(default="sms_reply", max_length=50)
