"""
Custom exception classes for the application.

Every error renders to the same envelope:
    {"error": {"code", "message", "details", "timestamp"}}
"""

from typing import Optional, Any
from datetime import datetime


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "CLIENT_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.utcnow().isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper().replace(' ', '_')}_NOT_FOUND",
            message=f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (400)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=400,
            details=details
        )


class UnauthorizedError(AppError):
    """Missing or invalid credentials (401)."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(
            code="UNAUTHORIZED",
            message=message,
            status_code=401
        )


class ForbiddenError(AppError):
    """Authenticated but not allowed (403)."""

    def __init__(
        self,
        message: str = "Insufficient permissions",
        details: Optional[dict] = None
    ):
        super().__init__(
            code="FORBIDDEN",
            message=message,
            status_code=403,
            details=details
        )


class ConflictError(AppError):
    """Conflict with existing resource (409)."""

    def __init__(
        self,
        message: str,
        code: str = "CONFLICT",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details
        )


class ExternalServiceError(AppError):
    """External service failure (503)."""

    def __init__(
        self,
        service: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code=f"{service.upper()}_ERROR",
            message=message,
            status_code=503,
            details={"service": service, **(details or {})}
        )


class DatabaseError(AppError):
    """Database operation failed (500)."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="DATABASE_ERROR",
            message=f"Database {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


# ===================
# REQUEST VALIDATION
# ===================

class MissingFieldsError(ValidationError):
    """One or more required fields are absent or empty."""

    def __init__(self, missing: list[str]):
        super().__init__(
            code="MISSING_REQUIRED_FIELDS",
            message=f"Missing required fields: {', '.join(missing)}",
            details={"missing": missing}
        )


class InvalidChoiceError(ValidationError):
    """Value is not a member of a fixed vocabulary."""

    def __init__(self, field: str, provided: Any, valid: list[str]):
        super().__init__(
            code=f"INVALID_{field.upper()}",
            message=f"Invalid {field.replace('_', ' ')}",
            details={"provided": provided, "valid": valid}
        )


# ===================
# CRM / CLIENTS / TASKS
# ===================

class ClientNotFoundError(NotFoundError):
    """Client not found."""

    def __init__(self, client_id: str):
        super().__init__(resource="Client", identifier=client_id, code="CLIENT_NOT_FOUND")


class CustomerNotFoundError(NotFoundError):
    """Customer not found."""

    def __init__(self, identifier: str):
        super().__init__(resource="Customer", identifier=identifier, code="CUSTOMER_NOT_FOUND")


class TaskNotFoundError(NotFoundError):
    """Task not found."""

    def __init__(self, task_id: str):
        super().__init__(resource="Task", identifier=task_id, code="TASK_NOT_FOUND")


class CollectionNotFoundError(NotFoundError):
    """Product collection not found."""

    def __init__(self, collection_id: str):
        super().__init__(resource="Collection", identifier=collection_id, code="COLLECTION_NOT_FOUND")


class TableMissingError(AppError):
    """Backing table has not been created yet (404)."""

    def __init__(self, table: str):
        super().__init__(
            code="TABLE_NOT_FOUND",
            message=f"{table.capitalize()} table not found. Please create the {table} table first.",
            status_code=404,
            details={"table": table, "tableExists": False}
        )


# ===================
# EXPORTS
# ===================

class UnsupportedExportTypeError(ValidationError):
    """Export type is not csv, tsv, or excel."""

    def __init__(self, export_type: Any):
        super().__init__(
            code="INVALID_EXPORT_TYPE",
            message="Invalid export type",
            details={"provided": export_type, "valid": ["csv", "tsv", "excel"]}
        )


class NoExportDataError(ValidationError):
    """Nothing left to export after filtering."""

    def __init__(self, message: str = "No data to export"):
        super().__init__(code="NO_EXPORT_DATA", message=message)


# ===================
# PORTAL MESSAGING
# ===================

class ThreadNotFoundError(NotFoundError):
    """Message thread not found or not owned by the caller."""

    def __init__(self, thread_id: str):
        super().__init__(resource="Thread", identifier=thread_id, code="THREAD_NOT_FOUND")


# ===================
# PRODUCTION
# ===================

class ProductionItemNotFoundError(NotFoundError):
    """Production item not found."""

    def __init__(self, item_id: str):
        super().__init__(resource="Production item", identifier=item_id, code="PRODUCTION_ITEM_NOT_FOUND")


# ===================
# FACTORY REVIEWS
# ===================

class SessionNotFoundError(NotFoundError):
    """Factory review session not found."""

    def __init__(self, session_id: str):
        super().__init__(resource="Session", identifier=session_id, code="SESSION_NOT_FOUND")


# ===================
# AUTOMATION
# ===================

class RuleNotFoundError(NotFoundError):
    """Automation rule not found."""

    def __init__(self, rule_id: str):
        super().__init__(resource="Automation rule", identifier=rule_id, code="RULE_NOT_FOUND")


class UnknownActionTypeError(ValidationError):
    """Rule action type is not one the dispatcher knows."""

    def __init__(self, action_type: Any):
        super().__init__(
            code="UNKNOWN_ACTION_TYPE",
            message=f"Unknown action type: {action_type}",
            details={"provided": action_type}
        )


# ===================
# PREDICTIONS
# ===================

class PredictionNotFoundError(NotFoundError):
    """Prediction not found."""

    def __init__(self, prediction_id: str):
        super().__init__(resource="Prediction", identifier=prediction_id, code="PREDICTION_NOT_FOUND")


class UnsupportedPredictionTypeError(ValidationError):
    """Prediction type has no scoring model."""

    def __init__(self, prediction_type: Any):
        super().__init__(
            code="UNSUPPORTED_PREDICTION_TYPE",
            message=f"Unsupported prediction type: {prediction_type}",
            details={"provided": prediction_type}
        )


class InsufficientDataError(ValidationError):
    """Not enough history to compute a prediction."""

    def __init__(self, message: str, required: int, provided: int):
        super().__init__(
            code="INSUFFICIENT_DATA",
            message=message,
            details={"required": required, "provided": provided}
        )


# ===================
# SMS
# ===================

class CampaignNotFoundError(NotFoundError):
    """SMS campaign not found."""

    def __init__(self, campaign_id: str):
        super().__init__(resource="Campaign", identifier=campaign_id, code="CAMPAIGN_NOT_FOUND")


class SMSOptedOutError(ValidationError):
    """Recipient has opted out of SMS communications."""

    def __init__(self, phone: str):
        super().__init__(
            code="SMS_OPTED_OUT",
            message="Recipient has opted out of SMS communications",
            details={"phone": phone}
        )


class SMSDeliveryError(ExternalServiceError):
    """Every configured provider failed to send."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(service="sms", message=message, details=details)
