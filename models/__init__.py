"""
Pydantic models for validation and serialization.
"""

from models.base import (
    BaseSchema,
    ExportRequest,
)
from models.user import UserRole, UserContext
from models.client import ClientCreate, ClientUpdate, ClientResponse
from models.task import TaskCreate, TaskUpdate, TaskFilters
from models.activity import (
    CRM_ACTIVITY_TYPES,
    COLLECTION_ACTIVITY_TYPES,
    ActivityCreate,
    CollectionActivityCreate,
)
from models.ar_aging import (
    RiskLevel,
    CollectionStatus,
    AgingBucket,
    AgingTrend,
    ARSummary,
    CustomerBuckets,
    CustomerAging,
)
from models.payment import (
    PaymentSummary,
    MethodBreakdown,
    TransactionFilters,
)
from models.order_tracking import OrderTrackingRow
from models.production import (
    Severity,
    ProductionItemUpdate,
    StageHistoryPoint,
    Bottleneck,
    BottleneckImpact,
    BottleneckAnalysis,
)
from models.message import ThreadCreate, MessageCreate
from models.automation import (
    ConditionOperator,
    ActionType,
    RuleAction,
    ExecutionResult,
    RuleCreate,
    RuleUpdate,
    RuleResponse,
    WorkflowExecuteRequest,
)
from models.prediction import (
    PredictionType,
    PredictionCreate,
    PredictionFilters,
    AccuracyUpdate,
    PredictionResponse,
)
from models.sms import (
    SEGMENT_TYPES,
    AudienceSegment,
    TargetAudience,
    CampaignCreate,
    CampaignResults,
    CampaignMetrics,
    SendSMSRequest,
    OptOutRequest,
)
from models.factory_review import (
    SessionCreate,
    SessionUpdate,
    ParticipantCreate,
    NoteCreate,
)
from models.collection import CollectionCreate, CollectionUpdate, CollectionResponse
from models.design_board import (
    BOARD_PARTICIPANT_ROLES,
    DEFAULT_BOARD_SETTINGS,
    BoardCreate,
    BoardParticipantInvite,
)
from models.analytics import BusinessAnalytics

__all__ = [
    # Base
    "BaseSchema",
    "ExportRequest",
    # Users
    "UserRole",
    "UserContext",
    # Clients / tasks / activities
    "ClientCreate",
    "ClientUpdate",
    "ClientResponse",
    "TaskCreate",
    "TaskUpdate",
    "TaskFilters",
    "CRM_ACTIVITY_TYPES",
    "COLLECTION_ACTIVITY_TYPES",
    "ActivityCreate",
    "CollectionActivityCreate",
    # AR aging
    "RiskLevel",
    "CollectionStatus",
    "AgingBucket",
    "AgingTrend",
    "ARSummary",
    "CustomerBuckets",
    "CustomerAging",
    # Payments
    "PaymentSummary",
    "MethodBreakdown",
    "TransactionFilters",
    # Orders / production
    "OrderTrackingRow",
    "Severity",
    "ProductionItemUpdate",
    "StageHistoryPoint",
    "Bottleneck",
    "BottleneckImpact",
    "BottleneckAnalysis",
    # Portal
    "ThreadCreate",
    "MessageCreate",
    # Automation
    "ConditionOperator",
    "ActionType",
    "RuleAction",
    "ExecutionResult",
    "RuleCreate",
    "RuleUpdate",
    "RuleResponse",
    "WorkflowExecuteRequest",
    # Predictions
    "PredictionType",
    "PredictionCreate",
    "PredictionFilters",
    "AccuracyUpdate",
    "PredictionResponse",
    # SMS
    "SEGMENT_TYPES",
    "AudienceSegment",
    "TargetAudience",
    "CampaignCreate",
    "CampaignResults",
    "CampaignMetrics",
    "SendSMSRequest",
    "OptOutRequest",
    # Factory reviews
    "SessionCreate",
    "SessionUpdate",
    "ParticipantCreate",
    "NoteCreate",
    # Collections / design boards / analytics
    "CollectionCreate",
    "CollectionUpdate",
    "CollectionResponse",
    "BOARD_PARTICIPANT_ROLES",
    "DEFAULT_BOARD_SETTINGS",
    "BoardCreate",
    "BoardParticipantInvite",
    "BusinessAnalytics",
]
