"""
Unit tests for payment summaries and order tracking.

Run: pytest tests/unit/test_payment_and_order_services.py -v
"""

import pytest
from unittest.mock import patch
from datetime import datetime

from services.payment_service import (
    PaymentService,
    breakdown_by_method,
    period_start,
    summarize_transactions,
)
from services.order_tracking_service import (
    OrderTrackingService,
    compute_status,
    flatten_order,
)
from models.payment import TransactionFilters
from exceptions import DatabaseError, InvalidChoiceError


TODAY = "2025-06-30"


def txn(type_, net, status="completed", method="ach", created="2025-06-20T10:00:00", sync=None):
    return {
        "type": type_,
        "net_amount": net,
        "status": status,
        "method": method,
        "created_date": created,
        "quickbooks_sync_status": sync,
    }


# ===================
# PAYMENTS
# ===================

class TestPeriodStart:

    def test_trailing_window(self):
        assert period_start("7d", datetime(2025, 6, 30)) == datetime(2025, 6, 23)

    def test_year(self):
        assert period_start("1y", datetime(2025, 6, 30)) == datetime(2024, 6, 30)

    def test_unknown_period(self):
        with pytest.raises(InvalidChoiceError):
            period_start("2w")


class TestSummarizeTransactions:

    def test_totals_use_net_amount(self):
        summary = summarize_transactions([
            txn("incoming", 1000),
            txn("incoming", 250.5, status="pending"),
            txn("outgoing", 400),
            txn("outgoing", 100, status="processing"),
        ], TODAY)

        assert summary.total_incoming == 1250.5
        assert summary.total_outgoing == 500
        assert summary.net_position == 750.5
        assert summary.pending_incoming == 250.5
        assert summary.pending_outgoing == 100

    def test_counts(self):
        summary = summarize_transactions([
            txn("incoming", 10, created="2025-06-30T08:00:00"),
            txn("incoming", 10, created="2025-06-29T08:00:00"),
            txn("incoming", 10, status="failed", sync="failed"),
            txn("outgoing", 10, sync="pending"),
            txn("outgoing", 10, sync="synced"),
        ], TODAY)

        assert summary.completed_today == 1
        assert summary.failed_count == 1
        assert summary.reconciliation_pending == 2

    def test_empty(self):
        summary = summarize_transactions([], TODAY)

        assert summary.net_position == 0
        assert summary.completed_today == 0


class TestBreakdownByMethod:

    def test_largest_total_first(self):
        breakdown = breakdown_by_method([
            txn("incoming", 100, method="card"),
            txn("incoming", 300, method="ach"),
            txn("incoming", 100, method="ach", status="failed"),
        ])

        assert [b.method for b in breakdown] == ["ach", "card"]
        assert breakdown[0].count == 2
        assert breakdown[0].total_amount == 400
        assert breakdown[0].success_rate == 50
        assert breakdown[0].percentage == 80
        assert breakdown[1].percentage == 20

    def test_missing_method_grouped_as_unknown(self):
        breakdown = breakdown_by_method([txn("incoming", 0, method=None)])

        assert breakdown[0].method == "unknown"
        assert breakdown[0].percentage == 0


class TestPaymentService:

    @pytest.fixture
    def mock_db_payments(self, mock_supabase):
        with patch("services.payment_service.get_supabase_client", return_value=mock_supabase):
            yield mock_supabase

    def test_get_summary(self, mock_db_payments):
        mock_db_payments.set_table_data("payment_transactions", [txn("incoming", 50), txn("outgoing", 20)])

        summary, count = PaymentService().get_summary("30d")

        assert count == 2
        assert summary.net_position == 30

    def test_transactions_carry_names(self, mock_db_payments):
        mock_db_payments.set_table_data("payment_transactions", [{
            **txn("incoming", 50),
            "customers": {"company_name": "Oakline"},
            "invoices": {"invoice_number": "INV-7"},
        }])

        rows = PaymentService().get_transactions(TransactionFilters(status="all"))

        assert rows[0]["customer_name"] == "Oakline"
        assert rows[0]["invoice_number"] == "INV-7"

    def test_export_csv(self, mock_db_payments):
        mock_db_payments.set_table_data("payment_transactions", [{
            **txn("incoming", 1200), "amount": 1250, "fee_amount": 50,
        }])

        body = PaymentService().export("csv", {"status": "completed"})

        header, line = body.strip().split("\n")
        assert header.startswith("Date,Type,Method,Status")
        assert '"1,250.00",50.00,"1,200.00"' in line

    def test_database_error(self, mock_db_payments):
        mock_db_payments.set_table_error("payment_transactions", RuntimeError("boom"))

        with pytest.raises(DatabaseError):
            PaymentService().get_summary()


# ===================
# ORDER TRACKING
# ===================

class TestComputeStatus:

    @pytest.mark.parametrize("order_status,production,shipment,expected", [
        ("confirmed", {"status": "in_progress"}, {"shipping_status": "delivered"}, "delivered"),
        ("confirmed", {"status": "in_progress"}, {"shipping_status": "in_transit"}, "shipped"),
        ("confirmed", {"status": "active"}, {"shipping_status": "label_created"}, "processing"),
        ("confirmed", {"status": "complete"}, {}, "confirmed"),
        (None, {}, {}, "pending"),
    ])
    def test_precedence(self, order_status, production, shipment, expected):
        assert compute_status(order_status, production, shipment) == expected


class TestFlattenOrder:

    def test_full_order(self):
        row = flatten_order({
            "id": "o1",
            "order_number": "SO-100",
            "status": "confirmed",
            "total_amount": 900,
            "customer": {"name": "Oakline", "email": "ap@oakline.test"},
            "order_items": [{"id": "i1"}, {"id": "i2"}],
            "production_status": [{"status": "in_progress", "stage": "Assembly", "progress": 40}],
            "shipments": [],
            "shipping_address": {"city": "Austin", "state": "TX", "country": "US"},
        })

        assert row.computed_status == "processing"
        assert row.production_stage == "Assembly"
        assert row.production_progress == 40
        assert row.item_count == 2
        assert row.shipping_address["city"] == "Austin"

    def test_defaults(self):
        row = flatten_order({"id": "o2"})

        assert row.customer_name == "Unknown Customer"
        assert row.customer_email == "Unknown Email"
        assert row.production_stage == "Not Started"
        assert row.shipping_address == {"city": "", "state": "", "country": ""}
        assert row.tracking_number is None


class TestOrderTrackingService:

    def test_search_filters_fetched_page(self, mock_supabase):
        mock_supabase.set_table_data("orders", [
            {"id": "o1", "order_number": "SO-100", "customer": {"name": "Oakline"}},
            {"id": "o2", "order_number": "SO-200", "customer": {"name": "Birchwood"},
             "shipments": [{"tracking_number": "1ZOAK", "shipping_status": "shipped"}]},
            {"id": "o3", "order_number": "SO-300", "customer": {"name": "Maple"}},
        ])

        with patch("services.order_tracking_service.get_supabase_client", return_value=mock_supabase):
            rows = OrderTrackingService().get_orders(search="oak")

        assert [r.id for r in rows] == ["o1", "o2"]
        assert rows[1].computed_status == "shipped"
