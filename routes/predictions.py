"""
Prediction API routes.
"""

from fastapi import APIRouter, Depends, Query
from typing import Optional
import structlog

from models.prediction import AccuracyUpdate, PredictionCreate, PredictionFilters
from models.user import UserContext
from services.auth_service import require_permissions
from services.prediction_service import get_prediction_service
from utils.responses import handle_error, success

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.post("", status_code=201)
async def create_prediction(
    data: PredictionCreate,
    user: UserContext = Depends(require_permissions("analytics.view_all"))
):
    """Generate and store a demand, revenue, churn or quality prediction."""
    try:
        return success(get_prediction_service().create_prediction(data), status_code=201)
    except Exception as e:
        return handle_error(e)


@router.get("")
async def list_predictions(
    tenant_id: Optional[str] = Query(None),
    prediction_type: Optional[str] = Query(None),
    entity_type: Optional[str] = Query(None),
    entity_id: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    user: UserContext = Depends(require_permissions("analytics.view_all"))
):
    try:
        filters = PredictionFilters(
            prediction_type=prediction_type,
            entity_type=entity_type,
            entity_id=entity_id,
            status=status,
            limit=limit,
        )
        predictions = get_prediction_service().get_predictions(tenant_id, filters)
        return success(predictions, count=len(predictions))
    except Exception as e:
        return handle_error(e)


@router.get("/{prediction_id}")
async def get_prediction(
    prediction_id: str,
    user: UserContext = Depends(require_permissions("analytics.view_all"))
):
    try:
        return success(get_prediction_service().get_prediction(prediction_id))
    except Exception as e:
        return handle_error(e)


@router.post("/{prediction_id}/accuracy")
async def update_accuracy(
    prediction_id: str,
    data: AccuracyUpdate,
    user: UserContext = Depends(require_permissions("analytics.view_all"))
):
    """Record what actually happened and score the prediction against it."""
    try:
        result = get_prediction_service().update_prediction_accuracy(prediction_id, data.actual_outcome)
        return success(result)
    except Exception as e:
        return handle_error(e)
