"""
Production tracking and bottleneck models.
"""

from datetime import date
from enum import Enum
from typing import Optional
from pydantic import Field

from models.base import BaseSchema


class Severity(str, Enum):
    """Bottleneck severity. NONE is never reported."""

    CRITICAL = "critical"
    WARNING = "warning"
    MINOR = "minor"
    NONE = "none"


class ProductionItemUpdate(BaseSchema):
    """PATCH body. Only provided fields are written."""

    id: str = Field(..., min_length=1)
    status: Optional[str] = None
    current_stage: Optional[str] = None
    completion_percentage: Optional[float] = Field(None, ge=0, le=100)
    estimated_completion: Optional[date] = None


class StageHistoryPoint(BaseSchema):
    """Average duration for one week (detailed analysis only)."""

    date: date
    avg_duration: float
    items_count: int


class Bottleneck(BaseSchema):
    """A stage whose throughput is behind target."""

    stage_id: str
    stage_name: str
    severity: Severity
    current_items: int
    avg_duration: float
    target_duration: float
    delay_days: float
    variance_percentage: float
    trend: str
    root_causes: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    historical_data: Optional[list[StageHistoryPoint]] = None


class BottleneckImpact(BaseSchema):
    total_items_delayed: int = 0
    avg_delay_days: float = 0
    cost_impact: float = 0
    customer_impact_score: float = 0


class BottleneckAnalysis(BaseSchema):
    """Response body of the bottleneck endpoint."""

    bottlenecks: list[Bottleneck] = Field(default_factory=list)
    overall_impact: BottleneckImpact = Field(default_factory=BottleneckImpact)
    analysis_depth: str = "standard"
    generated_at: str
