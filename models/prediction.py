"""
Heuristic prediction models.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from pydantic import Field

from models.base import BaseSchema


class PredictionType(str, Enum):
    DEMAND_FORECAST = "demand_forecast"
    REVENUE_PROJECTION = "revenue_projection"
    CUSTOMER_CHURN = "customer_churn"
    QUALITY_PREDICTION = "quality_prediction"


# Days until a stored prediction is considered stale
PREDICTION_EXPIRY_DAYS = {
    PredictionType.DEMAND_FORECAST.value: 30,
    PredictionType.REVENUE_PROJECTION.value: 90,
    PredictionType.CUSTOMER_CHURN.value: 7,
    PredictionType.QUALITY_PREDICTION.value: 1,
}
DEFAULT_EXPIRY_DAYS = 7

MODEL_VERSION = "1.0.0"


class PredictionCreate(BaseSchema):
    """
    Request a prediction.

    `input_data` shape depends on the type:
        demand_forecast: historical_sales [{date, quantity, revenue}],
            forecast_period_days, seasonal_factors {month: multiplier}
        revenue_projection: historical_revenue [{month, revenue}],
            customer_growth_rate, projection_months
        customer_churn: last_order_date (or days_since_last_order),
            order_frequency, avg_order_value, support_tickets, engagement_score
        quality_prediction: manufacturing_parameters,
            material_quality_scores, environmental_conditions
    """

    prediction_type: str
    model_type: str = Field(default="heuristic", max_length=50)
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    input_data: dict[str, Any] = Field(default_factory=dict)
    tenant_id: Optional[str] = None


class PredictionFilters(BaseSchema):
    prediction_type: Optional[str] = None
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    status: Optional[str] = None
    limit: int = Field(default=50, ge=1, le=500)


class AccuracyUpdate(BaseSchema):
    """
    The observed outcome for a stored prediction.

    Scored when comparable: churn takes a 0-1 number or {"churned": bool},
    quality a 0-100 score, demand [{date, quantity}], revenue
    [{month, revenue}].
    """

    actual_outcome: Any


class PredictionResponse(BaseSchema):
    id: str
    tenant_id: Optional[str] = None
    model_type: Optional[str] = None
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    prediction_type: str
    input_data: dict[str, Any] = Field(default_factory=dict)
    prediction_data: dict[str, Any]
    confidence_score: Optional[float] = None
    accuracy_score: Optional[float] = None
    status: str = "active"
    model_version: str = MODEL_VERSION
    metadata: Optional[dict[str, Any]] = None
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
