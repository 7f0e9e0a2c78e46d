"""
Business logic services.

Each service handles one domain area.
"""

from services.client_service import ClientService, get_client_service
from services.task_service import TaskService, get_task_service
from services.activity_service import ActivityService, get_activity_service
from services.ar_aging_service import ARAgingService, get_ar_aging_service
from services.payment_service import PaymentService, get_payment_service
from services.order_tracking_service import OrderTrackingService, get_order_tracking_service
from services.production_service import ProductionService, get_production_service
from services.message_service import MessageService, get_message_service
from services.automation_service import (
    AutomationRuleProcessor,
    AutomationService,
    get_rule_processor,
    get_automation_service,
)
from services.prediction_service import AIPredictionService, get_prediction_service
from services.sms_provider_service import SMSProviderService, get_sms_provider_service
from services.sms_campaign_service import SMSCampaignManager, get_sms_campaign_manager
from services.factory_review_service import FactoryReviewService, get_factory_review_service

__all__ = [
    "ClientService",
    "get_client_service",
    "TaskService",
    "get_task_service",
    "ActivityService",
    "get_activity_service",
    "ARAgingService",
    "get_ar_aging_service",
    "PaymentService",
    "get_payment_service",
    "OrderTrackingService",
    "get_order_tracking_service",
    "ProductionService",
    "get_production_service",
    "MessageService",
    "get_message_service",
    "AutomationRuleProcessor",
    "AutomationService",
    "get_rule_processor",
    "get_automation_service",
    "AIPredictionService",
    "get_prediction_service",
    "SMSProviderService",
    "get_sms_provider_service",
    "SMSCampaignManager",
    "get_sms_campaign_manager",
    "FactoryReviewService",
    "get_factory_review_service",
]
