"""
Accounts-receivable aging models.

Two bucket layouts exist:
- Summary buckets (dashboard chart): 0-15, 16-30, 31-45, 46-60, 61-90, 90+
- Customer buckets (collections table): 0, 1-15, 16-30, 31-45, 46-60, 61-90, 90+
"""

from datetime import date
from enum import Enum
from typing import Optional, Literal
from pydantic import Field

from models.base import BaseSchema


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class CollectionStatus(str, Enum):
    """Collection stage derived from the oldest non-empty bucket."""

    CURRENT = "current"
    FOLLOW_UP = "follow_up"
    COLLECTIONS = "collections"
    LEGAL = "legal"
    WRITE_OFF = "write_off"


class AgingBucket(BaseSchema):
    """One bar of the summary chart."""

    range: str
    days_min: int
    days_max: Optional[int] = None
    color: str
    risk_level: RiskLevel
    count: int = 0
    total_amount: float = 0
    percentage: int = 0


class AgingTrend(BaseSchema):
    current_vs_prior: float = 0
    improvement_trend: Literal["improving", "stable", "deteriorating"] = "stable"


class ARSummary(BaseSchema):
    """Portfolio-level aging summary."""

    total_outstanding: float = 0
    total_overdue: float = 0
    weighted_average_days: int = 0
    dso: int = 0
    collection_efficiency: int = 100
    aging_buckets: list[AgingBucket] = Field(default_factory=list)
    trending: AgingTrend = Field(default_factory=AgingTrend)


class CustomerBuckets(BaseSchema):
    """Outstanding amount per age band for a single customer."""

    current: float = 0
    days_1_15: float = 0
    days_16_30: float = 0
    days_31_45: float = 0
    days_46_60: float = 0
    days_61_90: float = 0
    days_over_90: float = 0

    @property
    def total(self) -> float:
        return round(
            self.current
            + self.days_1_15
            + self.days_16_30
            + self.days_31_45
            + self.days_46_60
            + self.days_61_90
            + self.days_over_90,
            2,
        )


class CustomerAging(BaseSchema):
    """One row of the collections table."""

    customer_id: str
    customer_name: str
    company_name: str
    total_outstanding: float
    oldest_invoice_days: int
    invoice_count: int
    contact_email: str = ""
    contact_phone: str = ""
    last_payment_date: Optional[date] = None
    last_contact_date: Optional[date] = None
    credit_limit: float = 0
    payment_terms: str = "Net 30"
    risk_score: int = 0
    collection_status: CollectionStatus = CollectionStatus.CURRENT
    buckets: CustomerBuckets
