"""
CRM activity service.

Activities are stored as customer_communications rows. Only customer
activities have a home; other relations are rejected.
"""

from datetime import datetime
from typing import Optional
import structlog

from config import get_supabase_client
from exceptions import DatabaseError, InvalidChoiceError, ValidationError
from models.activity import ActivityCreate, CRM_ACTIVITY_TYPES
from services.task_service import is_missing_table

logger = structlog.get_logger(__name__)


SUPPORTED_RELATIONS = ["customers"]


def row_to_activity(row: dict) -> dict:
    """Map a customer_communications row to the activity shape."""
    return {
        "id": row.get("id"),
        "subject": row.get("subject"),
        "description": row.get("message") or "",
        "type": row.get("type"),
        "activity_type": row.get("type") or "note",
        "related_to": "customers",
        "related_id": row.get("customer_id"),
        "order_id": row.get("order_id"),
        "created_at": row.get("created_at"),
    }


class ActivityService:
    """
    CRM activity business logic.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "customer_communications"

    def get_for_entity(
        self,
        related_to: Optional[str],
        related_id: Optional[str],
        type_filter: str = "all"
    ) -> list[dict]:
        """
        List activities of one customer, newest first.

        Other relations, or no related_id, have no stored activities.
        """
        if not related_id or related_to not in SUPPORTED_RELATIONS:
            return []

        logger.info("getting_activities", related_id=related_id, type_filter=type_filter)

        try:
            query = (
                self.db.table(self.table)
                .select("id, subject, message, type, created_at, customer_id, order_id")
                .eq("customer_id", related_id)
                .order("created_at", desc=True)
            )
            if type_filter and type_filter != "all":
                query = query.eq("type", type_filter)

            result = query.execute()
            return [row_to_activity(row) for row in result.data or []]

        except Exception as e:
            if is_missing_table(e):
                logger.warning("customer_communications_table_missing")
                return []
            logger.error("get_activities_failed", error=str(e))
            raise DatabaseError("select", str(e))

    def create(self, data: ActivityCreate) -> dict:
        """
        Log an activity against a customer.

        Raises:
            InvalidChoiceError: Unknown activity type
            ValidationError: Relation other than customers
        """
        if data.type not in CRM_ACTIVITY_TYPES:
            raise InvalidChoiceError("activity_type", data.type, CRM_ACTIVITY_TYPES)

        if data.related_to not in SUPPORTED_RELATIONS:
            raise ValidationError(
                f"Activities cannot be recorded against '{data.related_to}'",
                code="UNSUPPORTED_RELATION",
                details={"provided": data.related_to, "valid": SUPPORTED_RELATIONS}
            )

        logger.info("creating_activity", type=data.type, related_id=data.related_id)

        row = {
            "type": data.type,
            "subject": data.subject,
            "message": data.description or "",
            "customer_id": data.related_id,
            "communication_date": datetime.utcnow().isoformat(),
            "status": "sent",
        }

        try:
            result = self.db.table(self.table).insert(row).execute()
            activity = row_to_activity(result.data[0])
            logger.info("activity_created", activity_id=activity["id"])
            return activity

        except Exception as e:
            logger.error("create_activity_failed", error=str(e))
            raise DatabaseError("insert", str(e))


# Singleton instance
_activity_service: Optional[ActivityService] = None


def get_activity_service() -> ActivityService:
    """Get or create ActivityService instance."""
    global _activity_service
    if _activity_service is None:
        _activity_service = ActivityService()
    return _activity_service
