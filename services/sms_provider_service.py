"""
SMS provider service with failover.

Providers come from the sms_providers table, tried in priority order until
one accepts the message. Every message gets an sms_logs row and every
attempt an sms_delivery_logs row.
"""

from datetime import datetime
from threading import Lock
from typing import Optional
import structlog

from config import get_admin_client
from exceptions import DatabaseError, SMSOptedOutError, SMSDeliveryError
from integrations import twilio

logger = structlog.get_logger(__name__)


# Provider types with a sending implementation
SUPPORTED_PROVIDER_TYPES = ("twilio",)

DEFAULT_COST_PER_SMS = 0.01


class SMSProviderService:
    """
    Outbound SMS with provider failover.

    Call initialize() before send_sms(); the provider list is loaded once.
    Provider success-rate and usage counters are accumulated in memory and
    written by flush_provider_stats(), so parallel sends never race on the
    same sms_providers row.
    """

    def __init__(self):
        self.db = get_admin_client()
        self.providers: list[dict] = []
        self._initialized = False
        self._stats_lock = Lock()
        self._pending_stats: dict[str, list[int]] = {}

    # ===================
    # PROVIDERS
    # ===================

    def initialize(self) -> list[dict]:
        """
        Load active providers ordered by priority, primary first.

        Returns:
            Providers that can actually send
        """
        try:
            result = (
                self.db.table("sms_providers")
                .select("*")
                .eq("is_active", True)
                .order("priority_order")
                .execute()
            )
        except Exception as e:
            logger.error("load_sms_providers_failed", error=str(e))
            raise DatabaseError("select", str(e))

        providers = []
        for row in result.data or []:
            if row.get("provider_type") not in SUPPORTED_PROVIDER_TYPES:
                logger.warning(
                    "sms_provider_type_unsupported",
                    provider_id=row.get("id"),
                    provider_type=row.get("provider_type")
                )
                continue
            providers.append(row)

        # Primary provider goes first, the rest keep priority order
        providers.sort(key=lambda p: 0 if p.get("is_primary") else 1)

        self.providers = providers
        self._initialized = True

        logger.info("sms_providers_initialized", count=len(providers))
        return providers

    def _send_with_provider(self, provider: dict, to: str, message: str) -> dict:
        return twilio.send_message(to, message, from_number=provider.get("from_number"))

    # ===================
    # SENDING
    # ===================

    def send_sms(
        self,
        to: str,
        message: str,
        campaign_id: Optional[str] = None,
        defer_stats: bool = False
    ) -> dict:
        """
        Send one SMS, failing over across providers.

        Only the provider call is retried on the next provider. Once a
        provider has accepted the message it is never sent again, even if
        recording the delivery fails.

        Args:
            defer_stats: Leave provider counters for the caller to flush

        Raises:
            SMSOptedOutError: Recipient opted out
            SMSDeliveryError: Every provider failed
        """
        if not self._initialized:
            self.initialize()

        if self.is_opted_out(to):
            logger.info("sms_recipient_opted_out", to=twilio.mask_phone(to))
            raise SMSOptedOutError(to)

        sms_log = self._create_sms_log(to, message, campaign_id)

        last_error: Optional[Exception] = None
        result: Optional[dict] = None
        sent_with: Optional[dict] = None

        for provider in self.providers:
            try:
                result = self._send_with_provider(provider, to, message)
            except Exception as e:
                logger.warning(
                    "sms_provider_failed",
                    provider_id=provider["id"],
                    error=str(e)
                )
                last_error = e

                self._insert_delivery_log({
                    "sms_log_id": sms_log["id"],
                    "provider_id": provider["id"],
                    "delivery_status": "failed",
                    "provider_status_message": str(e),
                })
                self._record_outcome(provider["id"], False)
                continue

            sent_with = provider
            break

        if sent_with is not None:
            self._record_outcome(sent_with["id"], True)
            self._record_delivery(sms_log["id"], sent_with, result)
            if not defer_stats:
                self.flush_provider_stats()
            return result

        if not defer_stats:
            self.flush_provider_stats()

        error_message = str(last_error) if last_error else "No SMS providers configured"
        self._update_sms_log(sms_log["id"], "failed", None, error_message)

        logger.error("sms_all_providers_failed", to=twilio.mask_phone(to), error=error_message)
        raise SMSDeliveryError(
            f"All SMS providers failed. Last error: {error_message}",
            details={"sms_log_id": sms_log["id"]}
        )

    # ===================
    # OPT-OUT
    # ===================

    def is_opted_out(self, phone: str) -> bool:
        try:
            result = (
                self.db.table("sms_opt_outs")
                .select("id")
                .eq("phone_number", phone)
                .limit(1)
                .execute()
            )
            return bool(result.data)
        except Exception as e:
            logger.error("check_opt_out_failed", error=str(e))
            raise DatabaseError("select", str(e))

    def opted_out_numbers(self) -> set[str]:
        """Every opted-out phone number."""
        try:
            result = self.db.table("sms_opt_outs").select("phone_number").execute()
            return {row["phone_number"] for row in result.data or []}
        except Exception as e:
            logger.error("list_opt_outs_failed", error=str(e))
            raise DatabaseError("select", str(e))

    def handle_opt_out(self, phone: str, method: str = "sms_reply") -> bool:
        """Record an opt-out. Repeated opt-outs overwrite the previous row."""
        try:
            self.db.table("sms_opt_outs").upsert(
                {
                    "phone_number": phone,
                    "opt_out_date": datetime.utcnow().isoformat(),
                    "opt_out_method": method,
                },
                on_conflict="phone_number"
            ).execute()
        except Exception as e:
            logger.error("opt_out_failed", error=str(e))
            raise DatabaseError("upsert", str(e))

        logger.info("sms_opt_out_recorded", phone=twilio.mask_phone(phone), method=method)
        return True

    # ===================
    # BOOKKEEPING
    # ===================

    def _create_sms_log(self, to: str, message: str, campaign_id: Optional[str]) -> dict:
        try:
            result = self.db.table("sms_logs").insert({
                "recipient_phone": to,
                "message": message,
                "campaign_id": campaign_id,
                "status": "pending",
            }).execute()
            return result.data[0]
        except Exception as e:
            logger.error("create_sms_log_failed", error=str(e))
            raise DatabaseError("insert", str(e))

    def _update_sms_log(
        self,
        log_id: str,
        status: str,
        provider_id: Optional[str],
        error_message: Optional[str] = None
    ):
        update = {
            "status": status,
            "provider_id": provider_id,
            "sent_at": datetime.utcnow().isoformat() if status == "sent" else None,
            "error_message": error_message if status == "failed" else None,
        }
        try:
            self.db.table("sms_logs").update(update).eq("id", log_id).execute()
        except Exception as e:
            logger.error("update_sms_log_failed", log_id=log_id, error=str(e))
            raise DatabaseError("update", str(e))

    def _insert_delivery_log(self, row: dict):
        try:
            self.db.table("sms_delivery_logs").insert(row).execute()
        except Exception as e:
            logger.error("insert_delivery_log_failed", error=str(e))
            raise DatabaseError("insert", str(e))

    def _record_delivery(self, sms_log_id: str, provider: dict, result: dict):
        """
        Mark the message sent. The SMS is already out, so a failed write is
        logged and not retried through another provider.
        """
        try:
            self._insert_delivery_log({
                "sms_log_id": sms_log_id,
                "provider_id": provider["id"],
                "delivery_status": "sent",
                "provider_message_id": result.get("sid") or result.get("id"),
                "delivery_timestamp": datetime.utcnow().isoformat(),
                "cost": provider.get("cost_per_sms") or DEFAULT_COST_PER_SMS,
            })
            self._update_sms_log(sms_log_id, "sent", provider["id"])
        except DatabaseError as e:
            logger.error(
                "sms_delivery_not_recorded",
                sms_log_id=sms_log_id,
                provider_id=provider["id"],
                error=e.message
            )

    def _record_outcome(self, provider_id: str, succeeded: bool):
        with self._stats_lock:
            counts = self._pending_stats.setdefault(provider_id, [0, 0])
            counts[0 if succeeded else 1] += 1

    def flush_provider_stats(self) -> dict[str, list[int]]:
        """
        Write accumulated outcomes to sms_providers: +0.1 success rate per
        success, -0.5 per failure, and one usage per attempt.

        Counts for a provider whose row cannot be written stay queued for
        the next flush.

        Returns:
            The written {provider_id: [successes, failures]} counts
        """
        written = {}
        with self._stats_lock:
            pending, self._pending_stats = self._pending_stats, {}

            for provider_id, (successes, failures) in pending.items():
                try:
                    self._apply_provider_stats(provider_id, successes, failures)
                except DatabaseError:
                    self._pending_stats[provider_id] = [successes, failures]
                    continue
                written[provider_id] = [successes, failures]

        return written

    def _apply_provider_stats(self, provider_id: str, successes: int, failures: int):
        try:
            result = (
                self.db.table("sms_providers")
                .select("success_rate, current_month_usage")
                .eq("id", provider_id)
                .execute()
            )
            if not result.data:
                return

            row = result.data[0]
            rate = float(row.get("success_rate") or 0) + successes * 0.1 - failures * 0.5

            self.db.table("sms_providers").update({
                "success_rate": round(max(0.0, min(100.0, rate)), 2),
                "current_month_usage": int(row.get("current_month_usage") or 0) + successes + failures,
                "updated_at": datetime.utcnow().isoformat(),
            }).eq("id", provider_id).execute()

        except Exception as e:
            logger.error("update_provider_stats_failed", provider_id=provider_id, error=str(e))
            raise DatabaseError("update", str(e))


# Singleton instance
_service: Optional[SMSProviderService] = None


def get_sms_provider_service() -> SMSProviderService:
    """Get or create SMSProviderService instance."""
    global _service
    if _service is None:
        _service = SMSProviderService()
    return _service
