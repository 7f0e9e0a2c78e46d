"""
Unit tests for SMS campaigns and provider failover.

Run: pytest tests/unit/test_sms_services.py -v
"""

import pytest
from unittest.mock import MagicMock, patch
from concurrent.futures import ThreadPoolExecutor

from services.sms_campaign_service import (
    SMSCampaignManager,
    calculate_metrics,
    chunk,
    personalize_message,
)
from services.sms_provider_service import SMSProviderService
from models.sms import CampaignCreate
from exceptions import CampaignNotFoundError, DatabaseError, SMSDeliveryError, SMSOptedOutError


# ===================
# FIXTURES
# ===================

@pytest.fixture
def recipients():
    return [
        {"id": "c1", "company_name": "Oakline", "phone": "+15550000001", "metadata": {"first_name": "Ana"}},
        {"id": "c2", "company_name": "Birchwood", "phone": "+15550000002", "metadata": {}},
        {"id": "c3", "company_name": "Maple & Co", "phone": "+15550000003", "metadata": None},
        {"id": "c4", "company_name": "No Phone", "phone": None, "metadata": {}},
    ]


@pytest.fixture
def sms_service():
    service = MagicMock()
    service.opted_out_numbers.return_value = set()
    service.send_sms.return_value = {"sid": "SM1"}
    return service


@pytest.fixture
def manager(mock_supabase, sms_service):
    with patch("services.sms_campaign_service.get_admin_client", return_value=mock_supabase):
        yield SMSCampaignManager(sms_service=sms_service)


@pytest.fixture
def provider_service(mock_supabase):
    with patch("services.sms_provider_service.get_admin_client", return_value=mock_supabase):
        yield SMSProviderService()


# ===================
# HELPERS
# ===================

class TestPersonalizeMessage:

    def test_fills_known_placeholders(self):
        recipient = {"company_name": "Oakline", "metadata": {"first_name": "Ana", "last_name": "Ruiz"}}

        message = personalize_message("Hi {{first_name}} {{last_name}} at {{company_name}}", recipient)

        assert message == "Hi Ana Ruiz at Oakline"

    def test_metadata_keys_are_placeholders(self):
        recipient = {"company_name": "Oakline", "metadata": {"order_number": "SO-9"}}

        assert personalize_message("Order {{ order_number }} shipped", recipient) == "Order SO-9 shipped"

    def test_missing_values_render_empty(self):
        assert personalize_message("Hi {{first_name}}!", {"company_name": "X"}) == "Hi !"

    def test_unknown_placeholder_left_in_place(self):
        assert personalize_message("Code {{promo}}", {"metadata": {}}) == "Code {{promo}}"


class TestChunk:

    def test_even_split(self):
        assert chunk([1, 2, 3, 4], 2) == [[1, 2], [3, 4]]

    def test_remainder(self):
        assert chunk([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]

    def test_empty(self):
        assert chunk([], 100) == []


class TestCalculateMetrics:

    def test_rates(self):
        metrics = calculate_metrics(
            {"total_recipients": 200, "sent_count": 150, "failed_count": 30, "opt_out_count": 20},
            0.01
        )

        assert metrics.delivery_rate == 75
        assert metrics.failure_rate == 15
        assert metrics.opt_out_rate == 10
        assert metrics.total_cost == 1.5

    def test_no_recipients(self):
        metrics = calculate_metrics({"total_recipients": 0, "sent_count": 0}, 0.01)

        assert metrics.delivery_rate == 0
        assert metrics.total_cost == 0


# ===================
# CAMPAIGN MANAGER
# ===================

class TestSMSCampaignManager:

    def test_recipients_exclude_opted_out_and_phoneless(self, manager, mock_supabase, sms_service, recipients):
        mock_supabase.set_table_data("customers", recipients)
        sms_service.opted_out_numbers.return_value = {"+15550000002"}

        result = manager.get_target_recipients({"segments": [{"type": "tag", "value": "vip"}]})

        assert [r["id"] for r in result] == ["c1", "c3"]

    def test_create_draft_campaign(self, manager, mock_supabase, recipients):
        mock_supabase.set_table_data("customers", recipients)

        campaign = manager.create_campaign(CampaignCreate(name="Spring sale", template_id="tpl-1"))

        assert campaign["status"] == "draft"
        assert campaign["total_recipients"] == 3
        assert "sms_scheduled_jobs" not in mock_supabase.inserted

    def test_scheduled_campaign_queues_job(self, manager, mock_supabase, recipients):
        mock_supabase.set_table_data("customers", recipients)

        campaign = manager.create_campaign(CampaignCreate(
            name="Spring sale",
            template_id="tpl-1",
            scheduled_date="2025-04-01T09:00:00",
        ))

        assert campaign["status"] == "scheduled"
        job = mock_supabase.inserted["sms_scheduled_jobs"][0]
        assert job["status"] == "pending"
        assert len(job["recipient_list"]) == 3

    def test_get_missing_campaign(self, manager):
        with pytest.raises(CampaignNotFoundError):
            manager.get_campaign("missing")

    def test_execute_counts_outcomes(self, manager, mock_supabase, sms_service, recipients):
        mock_supabase.set_table_data("sms_campaigns", [{
            "id": "camp-1",
            "target_audience": {"segments": []},
            "template": {"message": "Hi {{company_name}}"},
        }])
        mock_supabase.set_table_data("customers", recipients)

        def send(phone, message, campaign_id, defer_stats=False):
            if phone == "+15550000002":
                raise SMSOptedOutError(phone)
            if phone == "+15550000003":
                raise SMSDeliveryError("All SMS providers failed")
            return {"sid": "SM1"}

        sms_service.send_sms.side_effect = send

        results = manager.execute_campaign("camp-1")

        assert (results.sent, results.failed, results.opted_out) == (1, 1, 1)
        sms_service.send_sms.assert_any_call("+15550000001", "Hi Oakline", "camp-1", defer_stats=True)
        sms_service.flush_provider_stats.assert_called_once()

        updates = mock_supabase.updated["sms_campaigns"]
        assert updates[0] == {"status": "active"}
        assert updates[-1]["status"] == "completed"
        assert updates[-1]["sent_count"] == 1

    def test_execute_writes_progress_per_chunk(self, manager, mock_supabase, recipients):
        mock_supabase.set_table_data("sms_campaigns", [{"id": "camp-1", "template": {"message": "x"}}])
        mock_supabase.set_table_data("customers", recipients)

        with patch("services.sms_campaign_service.settings") as settings:
            settings.sms_batch_size = 1
            settings.sms_max_workers = 2
            manager.execute_campaign("camp-1")

        # active + one progress write per recipient + completed
        assert len(mock_supabase.updated["sms_campaigns"]) == 5

    def test_analytics(self, manager, mock_supabase):
        mock_supabase.set_table_data("sms_campaigns", [{
            "id": "camp-1", "total_recipients": 4, "sent_count": 2, "failed_count": 1, "opt_out_count": 1,
        }])
        mock_supabase.set_table_data("sms_logs", [
            {"status": "sent"}, {"status": "sent"}, {"status": "failed"},
        ])

        analytics = manager.get_campaign_analytics("camp-1")

        assert analytics["metrics"]["delivery_rate"] == 50
        assert analytics["delivery_stats"] == {"sent": 2, "failed": 1}


# ===================
# PROVIDER SERVICE
# ===================

class TestSMSProviderService:

    def test_unsupported_providers_skipped_and_primary_first(self, provider_service, mock_supabase):
        mock_supabase.set_table_data("sms_providers", [
            {"id": "p1", "provider_type": "twilio", "is_primary": False},
            {"id": "p2", "provider_type": "carrier_pigeon"},
            {"id": "p3", "provider_type": "twilio", "is_primary": True},
        ])

        providers = provider_service.initialize()

        assert [p["id"] for p in providers] == ["p3", "p1"]

    def test_opted_out_recipient(self, provider_service, mock_supabase):
        mock_supabase.set_table_data("sms_opt_outs", [{"id": "o1"}])

        with pytest.raises(SMSOptedOutError):
            provider_service.send_sms("+15550000001", "hello")

        assert "sms_logs" not in mock_supabase.inserted

    def test_failover_to_next_provider(self, provider_service, mock_supabase):
        mock_supabase.set_table_data("sms_providers", [
            {"id": "p1", "provider_type": "twilio", "success_rate": 90},
            {"id": "p2", "provider_type": "twilio", "success_rate": 90},
        ])

        with patch(
            "services.sms_provider_service.twilio.send_message",
            side_effect=[RuntimeError("p1 down"), {"sid": "SM2"}],
        ):
            result = provider_service.send_sms("+15550000001", "hello")

        assert result == {"sid": "SM2"}
        statuses = [row["delivery_status"] for row in mock_supabase.inserted["sms_delivery_logs"]]
        assert statuses == ["failed", "sent"]

    def test_all_providers_fail(self, provider_service, mock_supabase):
        mock_supabase.set_table_data("sms_providers", [{"id": "p1", "provider_type": "twilio"}])

        with patch("services.sms_provider_service.twilio.send_message", side_effect=RuntimeError("down")):
            with pytest.raises(SMSDeliveryError):
                provider_service.send_sms("+15550000001", "hello")

        log_update = mock_supabase.updated["sms_logs"][-1]
        assert log_update["status"] == "failed"
        assert log_update["error_message"] == "down"

    def test_opt_out_upserts(self, provider_service, mock_supabase):
        assert provider_service.handle_opt_out("+15550000001", "web_form") is True

        row = mock_supabase.upserted["sms_opt_outs"][0]
        assert row["phone_number"] == "+15550000001"
        assert row["opt_out_method"] == "web_form"

    def test_accepted_message_not_resent_when_logging_fails(self, provider_service, mock_supabase):
        mock_supabase.set_table_data("sms_providers", [
            {"id": "p1", "provider_type": "twilio", "success_rate": 90},
            {"id": "p2", "provider_type": "twilio", "success_rate": 90},
        ])

        with patch("services.sms_provider_service.twilio.send_message", return_value={"sid": "SM1"}) as send, \
             patch.object(provider_service, "_update_sms_log", side_effect=DatabaseError("update", "timeout")):
            result = provider_service.send_sms("+15550000001", "hello")

        assert result == {"sid": "SM1"}
        assert send.call_count == 1
        statuses = [row["delivery_status"] for row in mock_supabase.inserted["sms_delivery_logs"]]
        assert statuses == ["sent"]
        assert mock_supabase.updated["sms_providers"][0]["success_rate"] == 90.1

    def test_single_send_writes_provider_stats(self, provider_service, mock_supabase):
        mock_supabase.set_table_data("sms_providers", [
            {"id": "p1", "provider_type": "twilio", "success_rate": 90, "current_month_usage": 10},
        ])

        with patch("services.sms_provider_service.twilio.send_message", return_value={"sid": "SM1"}):
            provider_service.send_sms("+15550000001", "hello")

        written = mock_supabase.updated["sms_providers"]
        assert len(written) == 1
        assert written[0]["current_month_usage"] == 11

    def test_parallel_sends_counted_once_per_flush(self, provider_service, mock_supabase):
        mock_supabase.set_table_data("sms_providers", [
            {"id": "p1", "provider_type": "twilio", "success_rate": 90, "current_month_usage": 10},
        ])
        provider_service.initialize()

        with patch("services.sms_provider_service.twilio.send_message", return_value={"sid": "SM1"}):
            with ThreadPoolExecutor(max_workers=4) as pool:
                list(pool.map(
                    lambda i: provider_service.send_sms(f"+1555000000{i}", "hello", defer_stats=True),
                    range(8)
                ))

        assert "sms_providers" not in mock_supabase.updated

        assert provider_service.flush_provider_stats() == {"p1": [8, 0]}
        written = mock_supabase.updated["sms_providers"]
        assert len(written) == 1
        assert written[0]["current_month_usage"] == 18
        assert written[0]["success_rate"] == 90.8

    def test_unwritten_stats_stay_queued(self, provider_service, mock_supabase):
        mock_supabase.set_table_data("sms_providers", [{"id": "p1", "provider_type": "twilio"}])
        provider_service.initialize()
        mock_supabase.set_table_error("sms_providers", RuntimeError("connection reset"))

        with patch("services.sms_provider_service.twilio.send_message", return_value={"sid": "SM1"}):
            assert provider_service.send_sms("+15550000001", "hello") == {"sid": "SM1"}

        mock_supabase.errors.pop("sms_providers")

        assert provider_service.flush_provider_stats() == {"p1": [1, 0]}
