"""
Unit tests for AR aging calculations and ARAgingService.

Run: pytest tests/unit/test_ar_aging_service.py -v
"""

import pytest
from unittest.mock import patch
from datetime import date

from services.ar_aging_service import (
    ARAgingService,
    SUMMARY_BUCKETS,
    build_customer_aging,
    calculate_customer_buckets,
    calculate_risk_score,
    calculate_summary,
    customer_bucket_name,
    days_outstanding,
    determine_collection_status,
    filter_customers,
    sort_customers,
    summary_bucket_for,
    with_aging,
)
from models.ar_aging import CollectionStatus, CustomerBuckets
from exceptions import (
    DatabaseError,
    InvalidChoiceError,
    MissingFieldsError,
    NoExportDataError,
    UnsupportedExportTypeError,
)


TODAY = date(2025, 6, 30)


def invoice(amount_due, due_date, status="sent", **extra):
    return {"id": extra.pop("id", "inv"), "amount_due": amount_due, "due_date": due_date, "status": status, **extra}


# ===================
# FIXTURES
# ===================

@pytest.fixture
def mixed_invoices():
    """One invoice per summary bucket plus rows that are not outstanding."""
    return [
        invoice(1000, "2025-07-10"),              # not yet due -> 0 days
        invoice(500, "2025-06-10"),               # 20 days
        invoice(250, "2025-05-20", "overdue"),    # 41 days
        invoice(300, "2025-05-05", "partial"),    # 56 days
        invoice(400, "2025-04-15", "overdue"),    # 76 days
        invoice(600, "2025-01-01", "overdue"),    # 180 days
        invoice(999, "2025-01-01", "paid"),       # ignored: status
        invoice(0, "2025-01-01", "sent"),         # ignored: nothing due
    ]


@pytest.fixture
def mock_db_ar(mock_supabase):
    with patch("services.ar_aging_service.get_supabase_client", return_value=mock_supabase):
        yield mock_supabase


# ===================
# DAYS / BUCKETS
# ===================

class TestDaysOutstanding:

    def test_past_due(self):
        assert days_outstanding("2025-06-01", TODAY) == 29

    def test_not_yet_due_is_zero(self):
        assert days_outstanding("2025-07-15", TODAY) == 0

    def test_missing_due_date_is_zero(self):
        assert days_outstanding(None, TODAY) == 0

    def test_accepts_timestamps(self):
        assert days_outstanding("2025-06-20T12:00:00Z", TODAY) == 10


class TestSummaryBucketFor:

    @pytest.mark.parametrize("days,expected", [
        (0, 0), (15, 0), (16, 1), (30, 1), (31, 2), (45, 2),
        (46, 3), (60, 3), (61, 4), (90, 4), (91, 5), (1000, 5),
    ])
    def test_boundaries(self, days, expected):
        assert summary_bucket_for(days) == expected


class TestCustomerBucketName:

    @pytest.mark.parametrize("days,expected", [
        (0, "current"),
        (1, "days_1_15"),
        (15, "days_1_15"),
        (16, "days_16_30"),
        (45, "days_31_45"),
        (60, "days_46_60"),
        (90, "days_61_90"),
        (91, "days_over_90"),
    ])
    def test_boundaries(self, days, expected):
        assert customer_bucket_name(days) == expected


# ===================
# SUMMARY
# ===================

class TestCalculateSummary:

    def test_buckets_sum_to_total(self, mixed_invoices):
        summary = calculate_summary(mixed_invoices, TODAY)

        assert summary.total_outstanding == 3050
        assert sum(b.total_amount for b in summary.aging_buckets) == summary.total_outstanding

    def test_every_bucket_reported(self, mixed_invoices):
        summary = calculate_summary(mixed_invoices, TODAY)

        assert len(summary.aging_buckets) == len(SUMMARY_BUCKETS)
        assert [b.count for b in summary.aging_buckets] == [1, 1, 1, 1, 1, 1]

    def test_overdue_excludes_first_bucket(self, mixed_invoices):
        summary = calculate_summary(mixed_invoices, TODAY)

        assert summary.total_overdue == 2050

    def test_ignores_paid_and_zero_balance(self, mixed_invoices):
        aged = with_aging(mixed_invoices, TODAY)

        assert len(aged) == 6

    def test_empty_portfolio(self):
        summary = calculate_summary([], TODAY)

        assert summary.total_outstanding == 0
        assert all(b.percentage == 0 for b in summary.aging_buckets)
        assert summary.trending.current_vs_prior == 0

    def test_trend_deteriorating_when_mostly_overdue(self, mixed_invoices):
        summary = calculate_summary(mixed_invoices, TODAY)

        # 2050 / 3050 overdue is above 40%
        assert summary.trending.improvement_trend == "deteriorating"

    def test_trend_improving_when_mostly_current(self):
        invoices = [invoice(1000, "2025-07-10"), invoice(100, "2025-05-01")]

        summary = calculate_summary(invoices, TODAY)

        assert summary.trending.improvement_trend == "improving"
        assert summary.collection_efficiency == 91


# ===================
# PER CUSTOMER
# ===================

class TestCustomerAging:

    def test_collection_status_follows_oldest_band(self):
        assert determine_collection_status(CustomerBuckets(days_over_90=1)) == CollectionStatus.LEGAL
        assert determine_collection_status(CustomerBuckets(days_46_60=1)) == CollectionStatus.COLLECTIONS
        assert determine_collection_status(CustomerBuckets(days_16_30=1)) == CollectionStatus.FOLLOW_UP
        assert determine_collection_status(CustomerBuckets(days_1_15=5)) == CollectionStatus.CURRENT

    def test_risk_score_all_over_90(self):
        assert calculate_risk_score(CustomerBuckets(days_over_90=100)) == 40

    def test_risk_score_mixed(self):
        buckets = CustomerBuckets(current=50, days_61_90=50)

        assert calculate_risk_score(buckets) == 13  # 0.5 * 25 rounded half up

    def test_risk_score_empty(self):
        assert calculate_risk_score(CustomerBuckets()) == 0

    def test_customer_buckets_sum_to_total(self, mixed_invoices):
        buckets = calculate_customer_buckets(with_aging(mixed_invoices, TODAY))

        assert buckets.total == 3050
        assert buckets.current == 1000
        assert buckets.days_over_90 == 600

    def test_build_customer_aging(self, mixed_invoices):
        row = build_customer_aging(
            {"id": 7, "name": "Acme", "email": "ap@acme.test", "invoices": mixed_invoices},
            TODAY
        )

        assert row.customer_id == "7"
        assert row.company_name == "Acme"
        assert row.invoice_count == 6
        assert row.oldest_invoice_days == 180
        assert row.payment_terms == "Net 30"
        assert row.collection_status == CollectionStatus.LEGAL

    def test_customer_without_outstanding_invoices_is_skipped(self):
        row = build_customer_aging(
            {"id": 1, "name": "Paid Up", "invoices": [invoice(100, "2025-01-01", "paid")]},
            TODAY
        )

        assert row is None


class TestFilterAndSort:

    @pytest.fixture
    def rows(self):
        return [
            build_customer_aging({"id": 1, "name": "Oak & Co", "invoices": [invoice(500, "2025-06-25")]}, TODAY),
            build_customer_aging({"id": 2, "name": "Birch Ltd", "invoices": [invoice(900, "2025-01-01")]}, TODAY),
            build_customer_aging({"id": 3, "name": "Maple Inc", "invoices": [invoice(100, "2025-05-20")]}, TODAY),
        ]

    def test_search_is_case_insensitive(self, rows):
        result = filter_customers(rows, search="BIRCH")

        assert [r.customer_name for r in result] == ["Birch Ltd"]

    def test_filter_by_collection_status(self, rows):
        result = filter_customers(rows, collection_status="legal")

        assert [r.customer_id for r in result] == ["2"]

    def test_all_means_no_filter(self, rows):
        assert len(filter_customers(rows, collection_status="all", days_outstanding="all")) == 3

    def test_filter_by_days_band(self, rows):
        result = filter_customers(rows, days_outstanding="moderate")

        assert [r.customer_id for r in result] == ["3"]

    def test_default_sort_is_total_desc(self, rows):
        result = sort_customers(rows)

        assert [r.total_outstanding for r in result] == [900, 500, 100]

    def test_sort_by_name_ascending(self, rows):
        result = sort_customers(rows, "customer_name", "asc")

        assert [r.customer_name for r in result] == ["Birch Ltd", "Maple Inc", "Oak & Co"]

    def test_unknown_sort_field_falls_back(self, rows):
        result = sort_customers(rows, "nonsense", "asc")

        assert [r.total_outstanding for r in result] == [100, 500, 900]


# ===================
# SERVICE
# ===================

class TestARAgingService:

    def test_get_summary_counts_invoices(self, mock_db_ar, mixed_invoices):
        mock_db_ar.set_table_data("invoices", mixed_invoices)

        summary, count = ARAgingService().get_summary(TODAY)

        assert count == len(mixed_invoices)
        assert summary.total_outstanding == 3050

    def test_get_summary_wraps_client_errors(self, mock_db_ar):
        mock_db_ar.set_table_error("invoices", RuntimeError("boom"))

        with pytest.raises(DatabaseError):
            ARAgingService().get_summary(TODAY)

    def test_export_rejects_unknown_type(self, mock_db_ar):
        with pytest.raises(UnsupportedExportTypeError):
            ARAgingService().export("pdf", {}, TODAY)

    def test_export_without_rows(self, mock_db_ar):
        mock_db_ar.set_table_data("customers", [])

        with pytest.raises(NoExportDataError):
            ARAgingService().export("csv", {}, TODAY)

    def test_export_csv(self, mock_db_ar):
        mock_db_ar.set_table_data("customers", [
            {"id": 1, "name": "Acme, Inc", "invoices": [invoice(1234.5, "2025-06-01")]},
        ])

        body = ARAgingService().export("csv", {}, TODAY)

        assert body.splitlines()[0].startswith("Customer Name,Company Name")
        assert '"Acme, Inc"' in body
        assert '"1,234.50"' in body

    def test_create_collection_activity_requires_fields(self, mock_db_ar):
        with pytest.raises(MissingFieldsError) as exc:
            ARAgingService().create_collection_activity({"customer_id": "c1"})

        assert exc.value.details["missing"] == ["activity_type", "description"]

    def test_create_collection_activity_rejects_unknown_type(self, mock_db_ar):
        with pytest.raises(InvalidChoiceError):
            ARAgingService().create_collection_activity({
                "customer_id": "c1",
                "activity_type": "carrier_pigeon",
                "description": "Sent a bird",
            })

    def test_create_collection_activity(self, mock_db_ar):
        mock_db_ar.set_table_data("customers", [{"id": "c1", "name": "Acme"}])

        activity = ARAgingService().create_collection_activity({
            "customer_id": "c1",
            "activity_type": "call",
            "description": "Left voicemail",
        })

        assert activity["customer_name"] == "Acme"
        row = mock_db_ar.inserted["collection_activities"][0]
        assert row["status"] == "completed"
        assert row["created_by"] == "system"
