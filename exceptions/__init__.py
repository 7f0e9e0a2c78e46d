"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    UnauthorizedError,
    ForbiddenError,
    ConflictError,
    ExternalServiceError,
    DatabaseError,

    # Request validation
    MissingFieldsError,
    InvalidChoiceError,

    # CRM / clients / tasks
    ClientNotFoundError,
    CustomerNotFoundError,
    TaskNotFoundError,
    CollectionNotFoundError,
    TableMissingError,

    # Exports
    UnsupportedExportTypeError,
    NoExportDataError,

    # Portal
    ThreadNotFoundError,

    # Production
    ProductionItemNotFoundError,

    # Factory reviews
    SessionNotFoundError,

    # Automation
    RuleNotFoundError,
    UnknownActionTypeError,

    # Predictions
    PredictionNotFoundError,
    UnsupportedPredictionTypeError,
    InsufficientDataError,

    # SMS
    CampaignNotFoundError,
    SMSOptedOutError,
    SMSDeliveryError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "UnauthorizedError",
    "ForbiddenError",
    "ConflictError",
    "ExternalServiceError",
    "DatabaseError",

    # Request validation
    "MissingFieldsError",
    "InvalidChoiceError",

    # CRM / clients / tasks
    "ClientNotFoundError",
    "CustomerNotFoundError",
    "TaskNotFoundError",
    "CollectionNotFoundError",
    "TableMissingError",

    # Exports
    "UnsupportedExportTypeError",
    "NoExportDataError",

    # Portal
    "ThreadNotFoundError",

    # Production
    "ProductionItemNotFoundError",

    # Factory reviews
    "SessionNotFoundError",

    # Automation
    "RuleNotFoundError",
    "UnknownActionTypeError",

    # Predictions
    "PredictionNotFoundError",
    "UnsupportedPredictionTypeError",
    "InsufficientDataError",

    # SMS
    "CampaignNotFoundError",
    "SMSOptedOutError",
    "SMSDeliveryError",
]
