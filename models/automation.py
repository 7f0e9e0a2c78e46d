"""
Automation rule models.

A rule is a trigger event, a map of conditions keyed by dotted payload
path, and an ordered list of actions.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from pydantic import Field

from models.base import BaseSchema


class ConditionOperator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    CONTAINS = "contains"
    IN = "in"


class ActionType(str, Enum):
    SEND_SMS = "send_sms"
    SEND_EMAIL = "send_email"
    UPDATE_RECORD = "update_record"
    CREATE_TASK = "create_task"
    PROCESS_PAYMENT = "process_payment"
    WEBHOOK = "webhook"


class RuleAction(BaseSchema):
    """One action of a rule. `params` strings may contain {{path}} placeholders."""

    type: str
    params: dict[str, Any] = Field(default_factory=dict)


class ExecutionResult(BaseSchema):
    """Outcome of one action."""

    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None


class RuleCreate(BaseSchema):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    trigger_event: str = Field(..., min_length=1, max_length=100)
    trigger_conditions: dict[str, Any] = Field(default_factory=dict)
    actions: list[RuleAction] = Field(..., min_length=1)
    priority: int = 0
    is_active: bool = True


class RuleUpdate(BaseSchema):
    """Only provided fields are written."""

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    trigger_event: Optional[str] = None
    trigger_conditions: Optional[dict[str, Any]] = None
    actions: Optional[list[RuleAction]] = None
    priority: Optional[int] = None
    is_active: Optional[bool] = None


class RuleResponse(BaseSchema):
    id: str
    name: str
    description: Optional[str] = None
    trigger_event: str
    trigger_conditions: dict[str, Any] = Field(default_factory=dict)
    actions: list[dict[str, Any]] = Field(default_factory=list)
    priority: int = 0
    is_active: bool = True
    trigger_count: int = 0
    last_triggered_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class WorkflowExecuteRequest(BaseSchema):
    """Fire every active rule for an event, or a single rule by id."""

    trigger_event: Optional[str] = None
    rule_id: Optional[str] = None
    trigger_data: dict[str, Any] = Field(default_factory=dict)
