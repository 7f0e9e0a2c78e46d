"""
SMS campaign manager.

Campaign lifecycle: draft/scheduled -> active -> completed.
Execution sends in fixed-size chunks; within a chunk messages go out in
parallel on a thread pool, and progress is written after every chunk.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Optional
import re
import structlog

from config import get_admin_client, settings
from exceptions import (
    AppError,
    CampaignNotFoundError,
    DatabaseError,
    SMSOptedOutError,
)
from models.sms import CampaignCreate, CampaignMetrics, CampaignResults
from services.sms_provider_service import SMSProviderService

logger = structlog.get_logger(__name__)


PLACEHOLDER_PATTERN = re.compile(r"{{\s*([\w.]+)\s*}}")


def personalize_message(template: str, recipient: dict) -> str:
    """
    Fill {{company_name}}, {{first_name}}, {{last_name}} and any metadata key.

    Unknown placeholders are left in place.
    """
    metadata = recipient.get("metadata") or {}
    values = {
        "company_name": recipient.get("company_name") or "",
        "first_name": metadata.get("first_name") or "",
        "last_name": metadata.get("last_name") or "",
    }
    for key, value in metadata.items():
        if key not in values:
            values[key] = "" if value is None else str(value)

    def replace(match: re.Match) -> str:
        key = match.group(1)
        if key in values:
            return values[key]
        return match.group(0)

    return PLACEHOLDER_PATTERN.sub(replace, template or "")


def chunk(items: list, size: int) -> list[list]:
    """Split into consecutive chunks of at most `size`."""
    return [items[i:i + size] for i in range(0, len(items), size)]


def calculate_metrics(campaign: dict, cost_per_message: float) -> CampaignMetrics:
    """Rates are percentages of total recipients; 0 when there are none."""
    total = int(campaign.get("total_recipients") or 0)
    sent = int(campaign.get("sent_count") or 0)
    failed = int(campaign.get("failed_count") or 0)
    opted_out = int(campaign.get("opt_out_count") or 0)

    def rate(count: int) -> float:
        return round(count / total * 100, 2) if total > 0 else 0

    return CampaignMetrics(
        delivery_rate=rate(sent),
        failure_rate=rate(failed),
        opt_out_rate=rate(opted_out),
        total_cost=round(sent * cost_per_message, 2),
    )


class SMSCampaignManager:
    """
    SMS campaign business logic.

    Handles recipient resolution, scheduling, execution and analytics.
    """

    def __init__(self, sms_service: Optional[SMSProviderService] = None):
        self.db = get_admin_client()
        self.table = "sms_campaigns"
        self.sms_service = sms_service or SMSProviderService()

    # ===================
    # RECIPIENTS
    # ===================

    def get_target_recipients(self, target_audience: Optional[dict]) -> list[dict]:
        """
        Customers with a phone, narrowed by audience segments, minus opt-outs.
        """
        segments = (target_audience or {}).get("segments") or []

        try:
            query = (
                self.db.table("customers")
                .select("id, company_name, phone, metadata")
                .not_.is_("phone", "null")
            )

            for segment in segments:
                segment_type = segment.get("type")
                value = segment.get("value")
                if segment_type == "tag":
                    query = query.contains("tags", [value])
                elif segment_type == "status":
                    query = query.eq("status", value)
                elif segment_type == "created_after":
                    query = query.gte("created_at", value)
                else:
                    logger.warning("unknown_audience_segment", segment_type=segment_type)

            result = query.execute()

        except Exception as e:
            logger.error("get_target_recipients_failed", error=str(e))
            raise DatabaseError("select", str(e))

        opted_out = self.sms_service.opted_out_numbers()
        recipients = [
            row for row in result.data or []
            if row.get("phone") and row["phone"] not in opted_out
        ]

        logger.info(
            "recipients_resolved",
            segments=len(segments),
            recipients=len(recipients),
            opted_out_excluded=len(result.data or []) - len(recipients)
        )
        return recipients

    # ===================
    # LIFECYCLE
    # ===================

    def create_campaign(self, data: CampaignCreate) -> dict:
        """
        Create a campaign. A scheduled date makes it `scheduled` and queues a job.
        """
        logger.info("creating_sms_campaign", name=data.name)

        audience = data.target_audience.model_dump()
        recipients = self.get_target_recipients(audience)
        scheduled = data.scheduled_date.isoformat() if data.scheduled_date else None

        try:
            result = self.db.table(self.table).insert({
                "campaign_name": data.name,
                "campaign_type": data.type,
                "template_id": data.template_id,
                "target_audience": audience,
                "scheduled_date": scheduled,
                "status": "scheduled" if scheduled else "draft",
                "total_recipients": len(recipients),
            }).execute()
        except Exception as e:
            logger.error("create_campaign_failed", error=str(e))
            raise DatabaseError("insert", str(e))

        campaign = result.data[0]

        if scheduled:
            self._schedule_campaign(campaign["id"], scheduled, recipients)

        logger.info(
            "sms_campaign_created",
            campaign_id=campaign["id"],
            status=campaign.get("status"),
            recipients=len(recipients)
        )
        return campaign

    def get_campaign(self, campaign_id: str) -> dict:
        try:
            result = (
                self.db.table(self.table)
                .select("*, template:sms_templates(*)")
                .eq("id", campaign_id)
                .execute()
            )
        except Exception as e:
            logger.error("get_campaign_failed", campaign_id=campaign_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            raise CampaignNotFoundError(campaign_id)
        return result.data[0]

    def list_campaigns(self, status: Optional[str] = None, limit: int = 50) -> list[dict]:
        try:
            query = self.db.table(self.table).select("*").order("created_at", desc=True).limit(limit)
            if status and status != "all":
                query = query.eq("status", status)
            return query.execute().data or []
        except Exception as e:
            logger.error("list_campaigns_failed", error=str(e))
            raise DatabaseError("select", str(e))

    def execute_campaign(self, campaign_id: str) -> CampaignResults:
        """
        Send the campaign to every current recipient.

        Recipients are re-resolved at send time so late opt-outs are honoured.
        """
        campaign = self.get_campaign(campaign_id)
        template = (campaign.get("template") or {}).get("message") or ""

        self._update_campaign(campaign_id, {"status": "active"})

        recipients = self.get_target_recipients(campaign.get("target_audience"))
        self.sms_service.initialize()

        results = CampaignResults()
        batches = chunk(recipients, settings.sms_batch_size)

        logger.info(
            "executing_sms_campaign",
            campaign_id=campaign_id,
            recipients=len(recipients),
            batches=len(batches)
        )

        with ThreadPoolExecutor(max_workers=settings.sms_max_workers) as pool:
            for batch in batches:
                outcomes = list(pool.map(
                    lambda recipient: self._send_to_recipient(campaign_id, template, recipient),
                    batch
                ))

                results.sent += outcomes.count("sent")
                results.failed += outcomes.count("failed")
                results.opted_out += outcomes.count("opted_out")

                # Provider counters are written here, off the worker threads
                self.sms_service.flush_provider_stats()

                self._update_campaign(campaign_id, {
                    "sent_count": results.sent,
                    "failed_count": results.failed,
                    "opt_out_count": results.opted_out,
                    "updated_at": datetime.utcnow().isoformat(),
                })

        self._update_campaign(campaign_id, {
            "status": "completed",
            "sent_count": results.sent,
            "failed_count": results.failed,
            "opt_out_count": results.opted_out,
            "completed_at": datetime.utcnow().isoformat(),
        })

        logger.info(
            "sms_campaign_completed",
            campaign_id=campaign_id,
            sent=results.sent,
            failed=results.failed,
            opted_out=results.opted_out
        )
        return results

    def _send_to_recipient(self, campaign_id: str, template: str, recipient: dict) -> str:
        """Send one personalized message. Returns sent / failed / opted_out."""
        try:
            message = personalize_message(template, recipient)
            self.sms_service.send_sms(recipient["phone"], message, campaign_id, defer_stats=True)
            return "sent"
        except SMSOptedOutError:
            return "opted_out"
        except AppError as e:
            logger.warning(
                "campaign_message_failed",
                campaign_id=campaign_id,
                customer_id=recipient.get("id"),
                error=e.message
            )
            return "failed"

    # ===================
    # ANALYTICS
    # ===================

    def get_campaign_analytics(self, campaign_id: str) -> dict:
        """Campaign row, derived rates and delivery-log breakdown."""
        try:
            result = self.db.table(self.table).select("*").eq("id", campaign_id).execute()
        except Exception as e:
            logger.error("get_campaign_analytics_failed", campaign_id=campaign_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            raise CampaignNotFoundError(campaign_id)
        campaign = result.data[0]

        try:
            logs = (
                self.db.table("sms_logs")
                .select("status")
                .eq("campaign_id", campaign_id)
                .execute()
            )
        except Exception as e:
            logger.error("get_campaign_logs_failed", campaign_id=campaign_id, error=str(e))
            raise DatabaseError("select", str(e))

        delivery_stats: dict[str, int] = {}
        for row in logs.data or []:
            status = row.get("status") or "unknown"
            delivery_stats[status] = delivery_stats.get(status, 0) + 1

        metrics = calculate_metrics(campaign, settings.sms_cost_per_message)

        return {
            "campaign": campaign,
            "metrics": metrics.model_dump(),
            "delivery_stats": delivery_stats,
        }

    # ===================
    # HELPERS
    # ===================

    def _schedule_campaign(self, campaign_id: str, scheduled: str, recipients: list[dict]):
        try:
            self.db.table("sms_scheduled_jobs").insert({
                "job_type": "campaign",
                "recipient_list": [r["phone"] for r in recipients],
                "scheduled_time": scheduled,
                "status": "pending",
                "metadata": {"campaign_id": campaign_id},
            }).execute()
        except Exception as e:
            logger.error("schedule_campaign_failed", campaign_id=campaign_id, error=str(e))
            raise DatabaseError("insert", str(e))

        logger.info("sms_campaign_scheduled", campaign_id=campaign_id, scheduled_time=scheduled)

    def _update_campaign(self, campaign_id: str, update: dict):
        try:
            self.db.table(self.table).update(update).eq("id", campaign_id).execute()
        except Exception as e:
            logger.error("update_campaign_failed", campaign_id=campaign_id, error=str(e))
            raise DatabaseError("update", str(e))


# Singleton instance
_manager: Optional[SMSCampaignManager] = None


def get_sms_campaign_manager() -> SMSCampaignManager:
    """Get or create SMSCampaignManager instance."""
    global _manager
    if _manager is None:
        _manager = SMSCampaignManager()
    return _manager
