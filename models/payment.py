"""
Payment transaction models.
"""

from typing import Literal, Optional
from pydantic import Field

from models.base import BaseSchema


Period = Literal["7d", "30d", "90d", "1y"]

PERIODS = ["7d", "30d", "90d", "1y"]

PENDING_STATUSES = ("pending", "processing")
RECONCILIATION_PENDING_STATUSES = ("pending", "failed")


class PaymentSummary(BaseSchema):
    """Cash-flow summary for a period."""

    total_incoming: float = 0
    total_outgoing: float = 0
    net_position: float = 0
    pending_incoming: float = 0
    pending_outgoing: float = 0
    completed_today: int = 0
    failed_count: int = 0
    reconciliation_pending: int = 0


class MethodBreakdown(BaseSchema):
    """Totals for one payment method."""

    method: str
    count: int
    total_amount: float
    success_rate: int = 0
    percentage: float = 0


class TransactionFilters(BaseSchema):
    """Filters shared by the transaction list and export."""

    date_range: Optional[Period] = None
    status: Optional[str] = None
    type: Optional[str] = None
    method: Optional[str] = None
    search: Optional[str] = Field(None, max_length=100)
