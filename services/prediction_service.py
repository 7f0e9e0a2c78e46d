"""
Heuristic predictions: demand forecast, revenue projection, customer churn
and build quality.

These are arithmetic scoring rules over the supplied history, not trained
models. Each result is stored in ai_predictions with an expiry that
depends on the prediction type.
"""

from datetime import date, datetime, timedelta
from typing import Any, Optional
import structlog

from config import get_admin_client
from exceptions import (
    DatabaseError,
    InsufficientDataError,
    MissingFieldsError,
    PredictionNotFoundError,
    UnsupportedPredictionTypeError,
)
from models.prediction import (
    DEFAULT_EXPIRY_DAYS,
    MODEL_VERSION,
    PREDICTION_EXPIRY_DAYS,
    PredictionCreate,
    PredictionFilters,
    PredictionType,
)
from utils.numbers import round_half_up

logger = structlog.get_logger(__name__)


MIN_DEMAND_POINTS = 3
MIN_REVENUE_POINTS = 6

BASE_CONFIDENCE = {
    "demand": 0.6,
    "revenue": 0.7,
    "churn": 0.75,
    "quality": 0.8,
}

OPTIMAL_TEMPERATURE = 22
OPTIMAL_HUMIDITY = 45
CRITICAL_PARAMETERS = ("pressure", "speed", "precision")

CHURN_ACTIONS = {
    "high": [
        "Immediate personal outreach required",
        "Offer special discount or loyalty rewards",
        "Schedule product demo or consultation",
        "Assign dedicated customer success manager",
    ],
    "medium": [
        "Send re-engagement email campaign",
        "Offer product recommendations",
        "Invite to customer feedback survey",
        "Provide educational content",
    ],
    "low": [
        "Continue regular engagement",
        "Monitor for changes in behavior",
        "Send newsletter and updates",
    ],
}


# ===================
# SCORING
# ===================

def confidence_score(data_points: int, kind: str) -> float:
    """Base confidence plus 0.02 per data point, bonus capped at 0.3."""
    base = BASE_CONFIDENCE.get(kind, 0.5)
    return min(1.0, base + min(0.3, data_points * 0.02))


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _add_months(day: date, months: int) -> date:
    month_index = day.month - 1 + months
    return date(day.year + month_index // 12, month_index % 12 + 1, 1)


def _parse_month(value: str) -> date:
    value = str(value)
    if len(value) == 7:
        value += "-01"
    return date.fromisoformat(value[:10])


def forecast_demand(input_data: dict, today: Optional[date] = None) -> tuple[dict, float]:
    """
    Moving average with a trend factor.

    Trend is mean(second half) / mean(first half), split at n // 2.

    Raises:
        InsufficientDataError: Fewer than three sales points
    """
    sales = input_data.get("historical_sales") or []
    if len(sales) < MIN_DEMAND_POINTS:
        raise InsufficientDataError(
            "Insufficient historical data for demand forecasting",
            required=MIN_DEMAND_POINTS,
            provided=len(sales),
        )

    period = int(input_data.get("forecast_period_days") or 30)
    seasonal = input_data.get("seasonal_factors") or {}
    today = today or date.today()

    ordered = sorted(sales, key=lambda s: str(s.get("date")))
    quantities = [float(s.get("quantity") or 0) for s in ordered]

    baseline = _mean(quantities)
    split = len(quantities) // 2
    first_half = _mean(quantities[:split])
    second_half = _mean(quantities[split:])
    trend = second_half / first_half if first_half else 1.0

    forecast = []
    for i in range(1, period + 1):
        day = today + timedelta(days=i)
        multiplier = float(seasonal.get(str(day.month), 1) or 1)
        predicted = max(0, round_half_up(baseline * trend * multiplier))
        forecast.append({
            "date": day.isoformat(),
            "predicted_quantity": predicted,
            "confidence_range": {
                "min": max(0, round_half_up(predicted * 0.8)),
                "max": round_half_up(predicted * 1.2),
            },
        })

    prediction = {
        "forecast": forecast,
        "trend_factor": trend,
        "baseline_quantity": baseline,
        "methodology": "moving_average_with_trend",
    }
    return prediction, confidence_score(len(sales), "demand")


def project_revenue(input_data: dict) -> tuple[dict, float]:
    """
    Compound growth from the last month at the average month-over-month
    rate plus customer growth. Months with zero revenue are skipped as
    growth denominators.

    Raises:
        InsufficientDataError: Fewer than six months of revenue
    """
    history = input_data.get("historical_revenue") or []
    if len(history) < MIN_REVENUE_POINTS:
        raise InsufficientDataError(
            "Insufficient historical revenue data",
            required=MIN_REVENUE_POINTS,
            provided=len(history),
        )

    customer_growth = input_data.get("customer_growth_rate")
    customer_growth = 0.02 if customer_growth is None else float(customer_growth)
    months = int(input_data.get("projection_months") or 6)

    ordered = sorted(history, key=lambda r: str(r.get("month")))
    revenues = [float(r.get("revenue") or 0) for r in ordered]

    growth_rates = [
        (revenues[i] - revenues[i - 1]) / revenues[i - 1]
        for i in range(1, len(revenues))
        if revenues[i - 1]
    ]
    avg_growth = _mean(growth_rates)

    last_month = _parse_month(ordered[-1]["month"])
    current = revenues[-1]

    projections = []
    for i in range(1, months + 1):
        current = current * (1 + avg_growth + customer_growth)
        projections.append({
            "month": _add_months(last_month, i).strftime("%Y-%m"),
            "projected_revenue": round_half_up(current),
            "confidence_range": {
                "min": round_half_up(current * 0.85),
                "max": round_half_up(current * 1.15),
            },
        })

    prediction = {
        "projections": projections,
        "avg_growth_rate": avg_growth,
        "customer_growth_factor": customer_growth,
        "methodology": "compound_growth_model",
    }
    return prediction, confidence_score(len(history), "revenue")


def _days_since_last_order(input_data: dict, today: date) -> int:
    if input_data.get("days_since_last_order") is not None:
        return int(input_data["days_since_last_order"])
    if input_data.get("last_order_date"):
        last = date.fromisoformat(str(input_data["last_order_date"])[:10])
        return (today - last).days
    raise MissingFieldsError(["last_order_date"])


def churn_risk_level(probability: float) -> str:
    if probability > 0.7:
        return "high"
    if probability > 0.4:
        return "medium"
    return "low"


def predict_churn(input_data: dict, today: Optional[date] = None) -> tuple[dict, float]:
    """Additive churn score clamped to 0-100."""
    today = today or date.today()
    days = _days_since_last_order(input_data, today)
    frequency = float(input_data.get("order_frequency") or 0)
    order_value = float(input_data.get("avg_order_value") or 0)
    tickets = int(input_data.get("support_tickets") or 0)
    engagement = float(input_data.get("engagement_score") or 0)

    score = 0
    if days > 90:
        score += 30
    elif days > 60:
        score += 20
    elif days > 30:
        score += 10

    if frequency < 1:
        score += 25
    elif frequency < 2:
        score += 15
    elif frequency < 4:
        score += 5

    if order_value < 100:
        score += 15
    elif order_value < 500:
        score += 10
    else:
        score -= 5

    if tickets > 5:
        score += 20
    elif tickets > 2:
        score += 10

    if engagement < 3:
        score += 25
    elif engagement < 5:
        score += 10
    else:
        score -= 5

    probability = min(100, max(0, score)) / 100
    risk = churn_risk_level(probability)

    if engagement > 5:
        engagement_level = "high"
    elif engagement > 3:
        engagement_level = "medium"
    else:
        engagement_level = "low"

    prediction = {
        "churn_probability": probability,
        "churn_risk_level": risk,
        "contributing_factors": {
            "days_since_last_order": days,
            "order_frequency_score": frequency,
            "support_ticket_impact": "negative" if tickets > 2 else "neutral",
            "engagement_level": engagement_level,
        },
        "recommended_actions": CHURN_ACTIONS[risk],
    }
    return prediction, BASE_CONFIDENCE["churn"]


def quality_grade(score: float) -> str:
    if score > 90:
        return "A"
    if score > 80:
        return "B"
    if score > 70:
        return "C"
    return "D"


def quality_risks(manufacturing: dict, environment: dict) -> list[str]:
    risks = []
    if _is_number(environment.get("temperature")) and environment["temperature"] > 25:
        risks.append("High temperature risk")
    if _is_number(environment.get("humidity")) and environment["humidity"] > 60:
        risks.append("High humidity risk")
    if _is_number(manufacturing.get("speed")) and _is_number(manufacturing.get("optimal_speed")):
        if manufacturing["speed"] > manufacturing["optimal_speed"]:
            risks.append("Production speed too high")
    if _is_number(manufacturing.get("pressure")) and _is_number(manufacturing.get("optimal_pressure")):
        if manufacturing["pressure"] < manufacturing["optimal_pressure"] * 0.9:
            risks.append("Insufficient pressure")
    return risks


def quality_recommendations(score: float, manufacturing: dict) -> list[str]:
    recommendations = []
    if score < 80:
        recommendations.append("Review manufacturing parameters")
        recommendations.append("Increase quality control checkpoints")
    if _is_number(manufacturing.get("speed")) and _is_number(manufacturing.get("optimal_speed")):
        if manufacturing["speed"] > manufacturing["optimal_speed"]:
            recommendations.append("Reduce production speed")
    if score > 95:
        recommendations.append("Current settings are optimal")
    return recommendations


def predict_quality(input_data: dict) -> tuple[dict, float]:
    """
    Start at 50, add ten points per material score point above 5, subtract
    environmental and process deviations. Clamped to 0-100.
    """
    manufacturing = input_data.get("manufacturing_parameters") or {}
    materials = input_data.get("material_quality_scores") or {}
    environment = input_data.get("environmental_conditions") or {}

    score = 50.0

    material_scores = [float(v) for v in materials.values() if _is_number(v)]
    if material_scores:
        score += (_mean(material_scores) - 5) * 10

    if _is_number(environment.get("temperature")) and _is_number(environment.get("humidity")):
        optimal_temp = environment.get("optimal_temperature")
        optimal_humidity = environment.get("optimal_humidity")
        optimal_temp = optimal_temp if _is_number(optimal_temp) else OPTIMAL_TEMPERATURE
        optimal_humidity = optimal_humidity if _is_number(optimal_humidity) else OPTIMAL_HUMIDITY

        score -= abs(environment["temperature"] - optimal_temp) * 2
        score -= abs(environment["humidity"] - optimal_humidity) * 0.5

    for param in CRITICAL_PARAMETERS:
        value = manufacturing.get(param)
        if not _is_number(value):
            continue
        optimal = manufacturing.get(f"optimal_{param}")
        optimal = optimal if _is_number(optimal) else value
        if optimal:
            score -= abs(value - optimal) / optimal * 20

    final = max(0.0, min(100.0, score))

    prediction = {
        "predicted_quality_score": round_half_up(final),
        "quality_grade": quality_grade(final),
        "risk_factors": quality_risks(manufacturing, environment),
        "recommendations": quality_recommendations(final, manufacturing),
    }
    return prediction, BASE_CONFIDENCE["quality"]


def expiry_date(prediction_type: str, now: Optional[datetime] = None) -> datetime:
    now = now or datetime.utcnow()
    return now + timedelta(days=PREDICTION_EXPIRY_DAYS.get(prediction_type, DEFAULT_EXPIRY_DAYS))


# ===================
# ACCURACY
# ===================

def _clamp_unit(value: float) -> float:
    return round(max(0.0, min(1.0, value)), 4)


def _mape_accuracy(predicted: dict[str, float], actual: dict[str, float]) -> Optional[float]:
    """1 - mean absolute percentage error over keys present in both."""
    errors = [
        abs(predicted[key] - value) / value
        for key, value in actual.items()
        if key in predicted and value
    ]
    if not errors:
        return None
    return _clamp_unit(1 - _mean(errors))


def score_accuracy(prediction: dict, actual_outcome: Any) -> Optional[float]:
    """
    Compare an observed outcome with a stored prediction.

    Returns:
        Accuracy in [0, 1], or None when the outcome is not comparable
    """
    prediction_type = prediction.get("prediction_type")
    data = prediction.get("prediction_data") or {}

    if prediction_type == PredictionType.CUSTOMER_CHURN.value:
        actual = actual_outcome
        if isinstance(actual, dict):
            actual = actual.get("churned", actual.get("churn_probability"))
        if isinstance(actual, bool):
            actual = 1.0 if actual else 0.0
        if not _is_number(actual):
            return None
        return _clamp_unit(1 - abs(float(data.get("churn_probability", 0)) - actual))

    if prediction_type == PredictionType.QUALITY_PREDICTION.value:
        actual = actual_outcome
        if isinstance(actual, dict):
            actual = actual.get("quality_score")
        if not _is_number(actual):
            return None
        return _clamp_unit(1 - abs(float(data.get("predicted_quality_score", 0)) - actual) / 100)

    if prediction_type == PredictionType.DEMAND_FORECAST.value and isinstance(actual_outcome, list):
        predicted = {p["date"]: float(p["predicted_quantity"]) for p in data.get("forecast") or []}
        actual = {
            str(a.get("date"))[:10]: float(a["quantity"])
            for a in actual_outcome
            if isinstance(a, dict) and _is_number(a.get("quantity"))
        }
        return _mape_accuracy(predicted, actual)

    if prediction_type == PredictionType.REVENUE_PROJECTION.value and isinstance(actual_outcome, list):
        predicted = {p["month"]: float(p["projected_revenue"]) for p in data.get("projections") or []}
        actual = {
            str(a.get("month"))[:7]: float(a["revenue"])
            for a in actual_outcome
            if isinstance(a, dict) and _is_number(a.get("revenue"))
        }
        return _mape_accuracy(predicted, actual)

    return None


class AIPredictionService:
    """
    Generates, stores and scores heuristic predictions.
    """

    def __init__(self):
        self.db = get_admin_client()
        self.table = "ai_predictions"

    def generate(self, prediction_type: str, input_data: dict) -> tuple[dict, float]:
        """
        Compute prediction data and confidence without storing anything.

        Raises:
            UnsupportedPredictionTypeError: No scoring rule for the type
            InsufficientDataError: Not enough history
        """
        if prediction_type == PredictionType.DEMAND_FORECAST.value:
            return forecast_demand(input_data)
        if prediction_type == PredictionType.REVENUE_PROJECTION.value:
            return project_revenue(input_data)
        if prediction_type == PredictionType.CUSTOMER_CHURN.value:
            return predict_churn(input_data)
        if prediction_type == PredictionType.QUALITY_PREDICTION.value:
            return predict_quality(input_data)
        raise UnsupportedPredictionTypeError(prediction_type)

    def create_prediction(self, data: PredictionCreate) -> dict:
        prediction_data, confidence = self.generate(data.prediction_type, data.input_data)

        logger.info(
            "prediction_generated",
            prediction_type=data.prediction_type,
            entity_type=data.entity_type,
            confidence=confidence
        )

        row = {
            "tenant_id": data.tenant_id,
            "model_type": data.model_type,
            "entity_type": data.entity_type,
            "entity_id": data.entity_id,
            "prediction_type": data.prediction_type,
            "input_data": data.input_data,
            "prediction_data": prediction_data,
            "confidence_score": confidence,
            "status": "active",
            "expires_at": expiry_date(data.prediction_type).isoformat(),
            "model_version": MODEL_VERSION,
        }

        try:
            result = self.db.table(self.table).insert(row).execute()
            return result.data[0]

        except Exception as e:
            logger.error("store_prediction_failed", error=str(e))
            raise DatabaseError("insert", str(e))

    def get_predictions(self, tenant_id: Optional[str], filters: PredictionFilters) -> list[dict]:
        """Stored predictions, newest first."""
        try:
            query = self.db.table(self.table).select("*")

            if tenant_id:
                query = query.eq("tenant_id", tenant_id)
            if filters.entity_type:
                query = query.eq("entity_type", filters.entity_type)
            if filters.entity_id:
                query = query.eq("entity_id", filters.entity_id)
            if filters.prediction_type:
                query = query.eq("prediction_type", filters.prediction_type)
            if filters.status:
                query = query.eq("status", filters.status)

            result = query.order("created_at", desc=True).limit(filters.limit).execute()
            return result.data or []

        except Exception as e:
            logger.error("get_predictions_failed", error=str(e))
            raise DatabaseError("select", str(e))

    def get_prediction(self, prediction_id: str) -> dict:
        try:
            result = self.db.table(self.table).select("*").eq("id", prediction_id).execute()
        except Exception as e:
            logger.error("get_prediction_failed", prediction_id=prediction_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            raise PredictionNotFoundError(prediction_id)
        return result.data[0]

    def update_prediction_accuracy(self, prediction_id: str, actual_outcome: Any) -> dict:
        """
        Record the observed outcome and, where comparable, an accuracy score.
        """
        prediction = self.get_prediction(prediction_id)
        accuracy = score_accuracy(prediction, actual_outcome)

        metadata = dict(prediction.get("metadata") or {})
        metadata["actual_outcome"] = actual_outcome
        metadata["updated_at"] = datetime.utcnow().isoformat()

        try:
            result = (
                self.db.table(self.table)
                .update({"accuracy_score": accuracy, "metadata": metadata})
                .eq("id", prediction_id)
                .execute()
            )
        except Exception as e:
            logger.error("update_prediction_accuracy_failed", prediction_id=prediction_id, error=str(e))
            raise DatabaseError("update", str(e))

        logger.info("prediction_accuracy_updated", prediction_id=prediction_id, accuracy=accuracy)
        return result.data[0] if result.data else {**prediction, "accuracy_score": accuracy, "metadata": metadata}


# Singleton instance
_prediction_service: Optional[AIPredictionService] = None


def get_prediction_service() -> AIPredictionService:
    """Get or create AIPredictionService instance."""
    global _prediction_service
    if _prediction_service is None:
        _prediction_service = AIPredictionService()
    return _prediction_service
