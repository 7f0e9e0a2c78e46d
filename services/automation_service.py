"""
Automation rules: storage and the rule processor.

The processor loads active rules for a trigger event, checks each rule's
conditions against the event payload and runs its actions in order.
There is no rollback or retry; triggering an event twice runs the side
effects twice.
"""

import re
import time
from datetime import datetime
from typing import Any, Optional
import structlog

from config import get_admin_client
from exceptions import DatabaseError, RuleNotFoundError, UnknownActionTypeError
from integrations import email, webhook
from models.automation import (
    ActionType,
    ConditionOperator,
    ExecutionResult,
    RuleAction,
    RuleCreate,
    RuleUpdate,
)
from services.sms_provider_service import SMSProviderService, get_sms_provider_service

logger = structlog.get_logger(__name__)


PLACEHOLDER = re.compile(r"{{([^}]+)}}")


# ===================
# PAYLOAD HELPERS
# ===================

def get_nested_value(data: Any, path: str) -> Any:
    """Follow a dotted path through nested dicts. Missing keys give None."""
    current = data
    for part in path.split("."):
        if isinstance(current, dict):
            current = current.get(part)
        else:
            return None
    return current


def resolve_value(template: Any, data: dict) -> Any:
    """
    Fill {{path}} placeholders in a string from the payload.

    Unresolved or falsy values keep the placeholder text. Non-strings are
    returned unchanged.
    """
    if not isinstance(template, str):
        return template

    def replace(match: re.Match) -> str:
        value = get_nested_value(data, match.group(1).strip())
        return str(value) if value else match.group(0)

    return PLACEHOLDER.sub(replace, template)


def resolve_values(obj: Any, data: dict) -> Any:
    """resolve_value applied recursively through dicts and lists."""
    if isinstance(obj, dict):
        return {key: resolve_values(value, data) for key, value in obj.items()}
    if isinstance(obj, list):
        return [resolve_values(value, data) for value in obj]
    return resolve_value(obj, data)


def _to_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return float(value)
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def evaluate_condition(value: Any, condition: Any) -> bool:
    """
    Check one payload value against one condition.

    A dict with an "operator" key applies that operator to its "value";
    anything else is compared by equality.
    """
    if not (isinstance(condition, dict) and condition.get("operator")):
        return value == condition

    operator = condition["operator"]
    expected = condition.get("value")

    if operator == ConditionOperator.EQUALS.value:
        return value == expected
    if operator == ConditionOperator.NOT_EQUALS.value:
        return value != expected

    if operator in (ConditionOperator.GREATER_THAN.value, ConditionOperator.LESS_THAN.value):
        actual = _to_number(value)
        threshold = _to_number(expected or 0)
        if actual is None or threshold is None:
            return False
        if operator == ConditionOperator.GREATER_THAN.value:
            return actual > threshold
        return actual < threshold

    if operator == ConditionOperator.CONTAINS.value:
        return str(expected or "") in str(value)
    if operator == ConditionOperator.IN.value:
        return isinstance(expected, list) and value in expected

    return False


def evaluate_conditions(conditions: Optional[dict], data: dict) -> bool:
    """All conditions must hold. No conditions always holds."""
    if not conditions:
        return True
    return all(
        evaluate_condition(get_nested_value(data, field), condition)
        for field, condition in conditions.items()
    )


class AutomationRuleProcessor:
    """
    Runs automation rules against trigger payloads.
    """

    def __init__(self, sms_service: Optional[SMSProviderService] = None):
        self.db = get_admin_client()
        self.sms_service = sms_service or get_sms_provider_service()

    def process_rules(
        self,
        trigger_event: Optional[str] = None,
        trigger_data: Optional[dict] = None
    ) -> list[dict]:
        """
        Process every active rule (for the event, if given), highest
        priority first.

        Returns:
            One entry per rule: rule_id, executed, results
        """
        try:
            query = (
                self.db.table("automation_rules")
                .select("*")
                .eq("is_active", True)
            )
            if trigger_event:
                query = query.eq("trigger_event", trigger_event)

            rules = query.order("priority", desc=True).execute().data or []

        except Exception as e:
            logger.error("load_automation_rules_failed", trigger_event=trigger_event, error=str(e))
            raise DatabaseError("select", str(e))

        logger.info("processing_rules", trigger_event=trigger_event, rule_count=len(rules))

        outcomes = []
        for rule in rules:
            results = self.process_rule(rule, trigger_data)
            outcomes.append({
                "rule_id": rule["id"],
                "rule_name": rule.get("name"),
                "executed": results is not None,
                "results": results or [],
            })
        return outcomes

    def process_rule(self, rule: dict, trigger_data: Optional[dict] = None) -> Optional[list[ExecutionResult]]:
        """
        Process one rule.

        Returns:
            Action results, or None if the conditions were not met

        Raises:
            Whatever an action raised, after a failed log row is written
        """
        data = trigger_data or {}
        started = time.perf_counter()

        try:
            if not evaluate_conditions(rule.get("trigger_conditions"), data):
                logger.debug("rule_conditions_not_met", rule_id=rule["id"])
                return None

            results = [
                self.execute_action(RuleAction(**action), data)
                for action in rule.get("actions") or []
            ]

            self._log_execution(rule["id"], data, results, "success", started)

            self.db.table("automation_rules").update({
                "last_triggered_at": datetime.utcnow().isoformat(),
                "trigger_count": (rule.get("trigger_count") or 0) + 1,
            }).eq("id", rule["id"]).execute()

            logger.info("rule_processed", rule_id=rule["id"], actions=len(results))
            return results

        except Exception as e:
            logger.error("rule_failed", rule_id=rule["id"], error=str(e))
            self._log_execution(rule["id"], data, None, "failed", started, str(e))
            raise

    def _log_execution(
        self,
        rule_id: str,
        trigger_data: dict,
        results: Optional[list[ExecutionResult]],
        status: str,
        started: float,
        error_message: Optional[str] = None
    ):
        self.db.table("automation_logs").insert({
            "rule_id": rule_id,
            "trigger_data": trigger_data,
            "actions_executed": [r.model_dump(mode="json") for r in results] if results is not None else None,
            "status": status,
            "error_message": error_message,
            "execution_time_ms": int((time.perf_counter() - started) * 1000),
        }).execute()

    # ===================
    # ACTIONS
    # ===================

    def execute_action(self, action: RuleAction, data: dict) -> ExecutionResult:
        """
        Raises:
            UnknownActionTypeError: Action type has no handler
        """
        handlers = {
            ActionType.SEND_SMS.value: self._send_sms,
            ActionType.SEND_EMAIL.value: self._send_email,
            ActionType.UPDATE_RECORD.value: self._update_record,
            ActionType.CREATE_TASK.value: self._create_task,
            ActionType.PROCESS_PAYMENT.value: self._process_payment,
            ActionType.WEBHOOK.value: self._webhook,
        }
        handler = handlers.get(action.type)
        if handler is None:
            raise UnknownActionTypeError(action.type)

        logger.debug("executing_action", action_type=action.type)
        return handler(action.params, data)

    def _send_sms(self, params: dict, data: dict) -> ExecutionResult:
        phone = str(resolve_value(params.get("phone"), data))
        message = str(resolve_value(params.get("message"), data))

        result = self.sms_service.send_sms(phone, message)
        return ExecutionResult(success=True, data=result)

    def _send_email(self, params: dict, data: dict) -> ExecutionResult:
        to = str(resolve_value(params.get("to"), data))
        subject = str(resolve_value(params.get("subject"), data))
        body = str(resolve_value(params.get("body"), data))

        sent = email.send_email(to, subject, body)
        return ExecutionResult(success=True, data={"sent": sent, "to": to, "subject": subject})

    def _update_record(self, params: dict, data: dict) -> ExecutionResult:
        table = str(params.get("table"))
        record_id = str(resolve_value(params.get("record_id"), data))
        updates = resolve_values(params.get("updates") or {}, data)

        try:
            result = self.db.table(table).update(updates).eq("id", record_id).execute()
        except Exception as e:
            return ExecutionResult(success=False, error=str(e))

        if not result.data:
            return ExecutionResult(success=False, error=f"No {table} record with id {record_id}")
        return ExecutionResult(success=True, data=result.data[0])

    def _create_task(self, params: dict, data: dict) -> ExecutionResult:
        task = {
            "title": str(resolve_value(params.get("title"), data)),
            "priority": str(params.get("priority") or "medium"),
            "status": "pending",
        }
        for field in ("description", "assigned_to", "due_date"):
            if params.get(field):
                task[field] = str(resolve_value(params[field], data))

        try:
            result = self.db.table("tasks").insert(task).execute()
        except Exception as e:
            return ExecutionResult(success=False, error=str(e))

        return ExecutionResult(success=True, data=result.data[0] if result.data else task)

    def _process_payment(self, params: dict, data: dict) -> ExecutionResult:
        invoice_id = str(resolve_value(params.get("invoice_id"), data))
        amount = _to_number(resolve_value(params.get("amount"), data))
        method_id = str(resolve_value(params.get("method_id"), data))

        if amount is None or amount <= 0:
            return ExecutionResult(success=False, error="Payment amount must be a positive number")

        row = {
            "type": "incoming",
            "status": "pending",
            "amount": amount,
            "net_amount": amount,
            "invoice_id": invoice_id,
            "method": method_id,
            "description": f"Automated payment for invoice {invoice_id}",
            "created_date": datetime.utcnow().isoformat(),
        }

        try:
            result = self.db.table("payment_transactions").insert(row).execute()
        except Exception as e:
            return ExecutionResult(success=False, error=str(e))

        return ExecutionResult(success=True, data=result.data[0] if result.data else row)

    def _webhook(self, params: dict, data: dict) -> ExecutionResult:
        url = str(params.get("url"))
        payload = resolve_values(params.get("payload"), data)

        response = webhook.post_json(url, payload)
        return ExecutionResult(success=response["ok"], data=response)


class AutomationService:
    """
    Rule storage and execution logs.
    """

    def __init__(self):
        self.db = get_admin_client()
        self.table = "automation_rules"

    def list_rules(self, trigger_event: Optional[str] = None, active_only: bool = False) -> list[dict]:
        try:
            query = self.db.table(self.table).select("*")
            if trigger_event:
                query = query.eq("trigger_event", trigger_event)
            if active_only:
                query = query.eq("is_active", True)

            result = query.order("priority", desc=True).execute()
            return result.data or []

        except Exception as e:
            logger.error("list_rules_failed", error=str(e))
            raise DatabaseError("select", str(e))

    def get_rule(self, rule_id: str) -> dict:
        try:
            result = self.db.table(self.table).select("*").eq("id", rule_id).execute()
        except Exception as e:
            logger.error("get_rule_failed", rule_id=rule_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            raise RuleNotFoundError(rule_id)
        return result.data[0]

    def create_rule(self, data: RuleCreate) -> dict:
        logger.info("creating_rule", name=data.name, trigger_event=data.trigger_event)

        row = data.model_dump(mode="json")
        row["trigger_count"] = 0

        try:
            result = self.db.table(self.table).insert(row).execute()
            rule = result.data[0]
            logger.info("rule_created", rule_id=rule["id"])
            return rule

        except Exception as e:
            logger.error("create_rule_failed", error=str(e))
            raise DatabaseError("insert", str(e))

    def update_rule(self, rule_id: str, data: RuleUpdate) -> dict:
        updates = data.model_dump(exclude_unset=True, mode="json")
        if not updates:
            return self.get_rule(rule_id)

        updates["updated_at"] = datetime.utcnow().isoformat()

        try:
            result = self.db.table(self.table).update(updates).eq("id", rule_id).execute()
        except Exception as e:
            logger.error("update_rule_failed", rule_id=rule_id, error=str(e))
            raise DatabaseError("update", str(e))

        if not result.data:
            raise RuleNotFoundError(rule_id)

        logger.info("rule_updated", rule_id=rule_id, fields=sorted(updates))
        return result.data[0]

    def delete_rule(self, rule_id: str) -> bool:
        self.get_rule(rule_id)

        try:
            self.db.table(self.table).delete().eq("id", rule_id).execute()
            logger.info("rule_deleted", rule_id=rule_id)
            return True

        except Exception as e:
            logger.error("delete_rule_failed", rule_id=rule_id, error=str(e))
            raise DatabaseError("delete", str(e))

    def get_logs(self, rule_id: Optional[str] = None, limit: int = 50) -> list[dict]:
        """Execution logs, newest first."""
        try:
            query = self.db.table("automation_logs").select("*")
            if rule_id:
                query = query.eq("rule_id", rule_id)

            result = query.order("created_at", desc=True).limit(limit).execute()
            return result.data or []

        except Exception as e:
            logger.error("get_automation_logs_failed", rule_id=rule_id, error=str(e))
            raise DatabaseError("select", str(e))

    def execute(
        self,
        trigger_event: Optional[str] = None,
        rule_id: Optional[str] = None,
        trigger_data: Optional[dict] = None
    ) -> list[dict]:
        """
        Run one rule by id, or every active rule for an event.

        Raises:
            Whatever an action raised; the failure is already logged
        """
        processor = get_rule_processor()

        if rule_id:
            rule = self.get_rule(rule_id)
            results = processor.process_rule(rule, trigger_data)
            return [{
                "rule_id": rule["id"],
                "rule_name": rule.get("name"),
                "executed": results is not None,
                "results": results or [],
            }]

        return processor.process_rules(trigger_event, trigger_data)


# Singleton instances
_rule_processor: Optional[AutomationRuleProcessor] = None
_automation_service: Optional[AutomationService] = None


def get_rule_processor() -> AutomationRuleProcessor:
    """Get or create AutomationRuleProcessor instance."""
    global _rule_processor
    if _rule_processor is None:
        _rule_processor = AutomationRuleProcessor()
    return _rule_processor


def get_automation_service() -> AutomationService:
    """Get or create AutomationService instance."""
    global _automation_service
    if _automation_service is None:
        _automation_service = AutomationService()
    return _automation_service
