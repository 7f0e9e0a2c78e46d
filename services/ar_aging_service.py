"""
Accounts-receivable aging service.

The calculations are plain functions over already-fetched invoice rows so
they can be tested without a database. ARAgingService does the fetching.

Outstanding invoice: status in (sent, overdue, partial) and amount_due > 0.
Days outstanding: whole days past the due date, never negative.
"""

from datetime import date, datetime
from typing import Optional
import structlog

from config import get_supabase_client
from exceptions import (
    DatabaseError,
    InvalidChoiceError,
    MissingFieldsError,
    NoExportDataError,
)
from models.activity import COLLECTION_ACTIVITY_TYPES, CollectionActivityCreate
from models.ar_aging import (
    AgingBucket,
    AgingTrend,
    ARSummary,
    CollectionStatus,
    CustomerAging,
    CustomerBuckets,
    RiskLevel,
)
from services.export_service import render_table, validate_export_type
from utils.numbers import round_half_up

logger = structlog.get_logger(__name__)


OUTSTANDING_STATUSES = ("sent", "overdue", "partial")

# (label, days_min, days_max, color, risk); days_max None means "> previous max"
SUMMARY_BUCKETS = [
    ("Current (0-15 days)", 0, 15, "#10B981", RiskLevel.LOW),
    ("16-30 days", 16, 30, "#3B82F6", RiskLevel.LOW),
    ("31-45 days", 31, 45, "#F59E0B", RiskLevel.MEDIUM),
    ("46-60 days", 46, 60, "#EF4444", RiskLevel.HIGH),
    ("61-90 days", 61, 90, "#DC2626", RiskLevel.HIGH),
    ("90+ days", 91, None, "#991B1B", RiskLevel.CRITICAL),
]

# Invoices older than this count as overdue in the summary
OVERDUE_AFTER_DAYS = 15

# Weight of each bucket's share of the balance in the 0-100 risk score
RISK_WEIGHTS = {
    "days_over_90": 40,
    "days_61_90": 25,
    "days_46_60": 15,
    "days_31_45": 10,
    "days_16_30": 5,
}

SORT_FIELDS = ["customer_name", "total_outstanding", "oldest_invoice_days", "risk_score"]

DAYS_OUTSTANDING_FILTERS = {
    "current": ("current", "days_1_15"),
    "early": ("days_16_30",),
    "moderate": ("days_31_45", "days_46_60"),
    "late": ("days_61_90", "days_over_90"),
}

EXPORT_MONEY_COLUMNS = [
    "Credit Limit",
    "Total Outstanding",
    "Current (0 days)",
    "1-15 Days",
    "16-30 Days",
    "31-45 Days",
    "46-60 Days",
    "61-90 Days",
    "90+ Days",
]


# ===================
# PURE CALCULATIONS
# ===================

def parse_date(value) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def days_outstanding(due_date, today: date) -> int:
    """Whole days past due; 0 when not yet due or no due date."""
    due = parse_date(due_date)
    if due is None:
        return 0
    return max(0, (today - due).days)


def is_outstanding(invoice: dict) -> bool:
    return (
        invoice.get("status") in OUTSTANDING_STATUSES
        and float(invoice.get("amount_due") or 0) > 0
    )


def with_aging(invoices: list[dict], today: date) -> list[dict]:
    """Outstanding invoices with days_outstanding attached."""
    return [
        {**inv, "days_outstanding": days_outstanding(inv.get("due_date"), today)}
        for inv in invoices
        if is_outstanding(inv)
    ]


def summary_bucket_for(days: int) -> int:
    """Index into SUMMARY_BUCKETS. Every day count maps to exactly one bucket."""
    for index, (_, _, days_max, _, _) in enumerate(SUMMARY_BUCKETS):
        if days_max is None or days <= days_max:
            return index
    return len(SUMMARY_BUCKETS) - 1


def calculate_summary(invoices: list[dict], today: date) -> ARSummary:
    """
    Portfolio summary over all outstanding invoices.

    total_outstanding is the sum of the bucket totals.
    """
    aged = with_aging(invoices, today)

    counts = [0] * len(SUMMARY_BUCKETS)
    totals = [0.0] * len(SUMMARY_BUCKETS)
    for inv in aged:
        index = summary_bucket_for(inv["days_outstanding"])
        counts[index] += 1
        totals[index] += float(inv.get("amount_due") or 0)

    totals = [round(t, 2) for t in totals]
    total_outstanding = round(sum(totals), 2)

    total_overdue = round(sum(
        float(inv.get("amount_due") or 0)
        for inv in aged
        if inv["days_outstanding"] > OVERDUE_AFTER_DAYS
    ), 2)

    buckets = []
    for index, (label, days_min, days_max, color, risk) in enumerate(SUMMARY_BUCKETS):
        percentage = (
            round_half_up(totals[index] / total_outstanding * 100)
            if total_outstanding > 0 else 0
        )
        buckets.append(AgingBucket(
            range=label,
            days_min=days_min,
            days_max=days_max,
            color=color,
            risk_level=risk,
            count=counts[index],
            total_amount=totals[index],
            percentage=percentage,
        ))

    if total_outstanding <= 0:
        return ARSummary(aging_buckets=buckets)

    weighted_days = sum(
        inv["days_outstanding"] * float(inv.get("amount_due") or 0) for inv in aged
    )
    weighted_average = round_half_up(weighted_days / total_outstanding)

    efficiency = max(0.0, min(100.0, 100 - total_overdue / total_outstanding * 100))

    if total_overdue < total_outstanding * 0.2:
        trend = "improving"
    elif total_overdue > total_outstanding * 0.4:
        trend = "deteriorating"
    else:
        trend = "stable"

    return ARSummary(
        total_outstanding=total_outstanding,
        total_overdue=total_overdue,
        weighted_average_days=weighted_average,
        dso=weighted_average,
        collection_efficiency=round_half_up(efficiency),
        aging_buckets=buckets,
        trending=AgingTrend(current_vs_prior=0, improvement_trend=trend),
    )


def customer_bucket_name(days: int) -> str:
    if days <= 0:
        return "current"
    if days <= 15:
        return "days_1_15"
    if days <= 30:
        return "days_16_30"
    if days <= 45:
        return "days_31_45"
    if days <= 60:
        return "days_46_60"
    if days <= 90:
        return "days_61_90"
    return "days_over_90"


def calculate_customer_buckets(aged_invoices: list[dict]) -> CustomerBuckets:
    """Sum amount_due per age band. Expects rows from with_aging()."""
    sums = {name: 0.0 for name in CustomerBuckets.model_fields}
    for inv in aged_invoices:
        sums[customer_bucket_name(inv["days_outstanding"])] += float(inv.get("amount_due") or 0)
    return CustomerBuckets(**{k: round(v, 2) for k, v in sums.items()})


def determine_collection_status(buckets: CustomerBuckets) -> CollectionStatus:
    """Oldest non-empty band decides the collection stage."""
    if buckets.days_over_90 > 0:
        return CollectionStatus.LEGAL
    if buckets.days_61_90 > 0 or buckets.days_46_60 > 0:
        return CollectionStatus.COLLECTIONS
    if buckets.days_31_45 > 0 or buckets.days_16_30 > 0:
        return CollectionStatus.FOLLOW_UP
    return CollectionStatus.CURRENT


def calculate_risk_score(buckets: CustomerBuckets) -> int:
    """0-100: weighted share of the balance sitting in the older bands."""
    total = buckets.total
    if total <= 0:
        return 0
    score = sum(
        getattr(buckets, name) / total * weight
        for name, weight in RISK_WEIGHTS.items()
    )
    return round_half_up(score)


def build_customer_aging(customer: dict, today: date) -> Optional[CustomerAging]:
    """Aging row for one customer, or None when nothing is outstanding."""
    aged = with_aging(customer.get("invoices") or [], today)
    if not aged:
        return None

    buckets = calculate_customer_buckets(aged)
    name = customer.get("name") or customer.get("company_name") or "Unknown"

    return CustomerAging(
        customer_id=str(customer["id"]),
        customer_name=name,
        company_name=customer.get("company_name") or customer.get("name") or "Unknown",
        total_outstanding=buckets.total,
        oldest_invoice_days=max(inv["days_outstanding"] for inv in aged),
        invoice_count=len(aged),
        contact_email=customer.get("email") or "",
        contact_phone=customer.get("phone") or "",
        credit_limit=float(customer.get("credit_limit") or 0),
        payment_terms=customer.get("payment_terms") or "Net 30",
        risk_score=calculate_risk_score(buckets),
        collection_status=determine_collection_status(buckets),
        buckets=buckets,
    )


def filter_customers(
    rows: list[CustomerAging],
    search: Optional[str] = None,
    collection_status: Optional[str] = None,
    days_outstanding: Optional[str] = None,
) -> list[CustomerAging]:
    """Apply the collections-table filters. "all" or empty means no filter."""
    if search:
        term = search.lower()
        rows = [
            r for r in rows
            if term in r.customer_name.lower() or term in r.company_name.lower()
        ]

    if collection_status and collection_status != "all":
        rows = [r for r in rows if r.collection_status.value == collection_status]

    if days_outstanding and days_outstanding != "all":
        bands = DAYS_OUTSTANDING_FILTERS.get(days_outstanding)
        if bands:
            rows = [r for r in rows if any(getattr(r.buckets, b) > 0 for b in bands)]

    return rows


def sort_customers(
    rows: list[CustomerAging],
    sort_by: str = "total_outstanding",
    sort_order: str = "desc"
) -> list[CustomerAging]:
    if sort_by not in SORT_FIELDS:
        sort_by = "total_outstanding"
    reverse = sort_order != "asc"

    if sort_by == "customer_name":
        return sorted(rows, key=lambda r: r.customer_name.lower(), reverse=reverse)
    return sorted(rows, key=lambda r: getattr(r, sort_by), reverse=reverse)


def to_export_rows(rows: list[CustomerAging], today: date) -> list[dict]:
    """Collections table as labelled export columns."""
    return [
        {
            "Customer Name": r.customer_name,
            "Company Name": r.company_name,
            "Email": r.contact_email,
            "Phone": r.contact_phone,
            "Credit Limit": r.credit_limit,
            "Payment Terms": r.payment_terms,
            "Total Outstanding": r.total_outstanding,
            "Current (0 days)": r.buckets.current,
            "1-15 Days": r.buckets.days_1_15,
            "16-30 Days": r.buckets.days_16_30,
            "31-45 Days": r.buckets.days_31_45,
            "46-60 Days": r.buckets.days_46_60,
            "61-90 Days": r.buckets.days_61_90,
            "90+ Days": r.buckets.days_over_90,
            "Invoice Count": r.invoice_count,
            "Risk Score": r.risk_score,
            "Collection Status": r.collection_status.value,
            "Export Date": today.isoformat(),
        }
        for r in rows
    ]


def _customer_name(row: dict) -> str:
    customer = row.get("customers") or {}
    return customer.get("name") or customer.get("company_name") or "Unknown Customer"


# ===================
# SERVICE
# ===================

class ARAgingService:
    """
    AR aging business logic.

    Handles summary, per-customer aging, exports and collection activities.
    """

    def __init__(self):
        self.db = get_supabase_client()

    def _fetch_outstanding_invoices(self) -> list[dict]:
        try:
            result = (
                self.db.table("invoices")
                .select(
                    "id, invoice_number, total_amount, amount_paid, amount_due, "
                    "invoice_date, due_date, status, customer_id"
                )
                .in_("status", list(OUTSTANDING_STATUSES))
                .gt("amount_due", 0)
                .execute()
            )
            return result.data or []
        except Exception as e:
            logger.error("fetch_outstanding_invoices_failed", error=str(e))
            raise DatabaseError("select", str(e))

    def _fetch_customers_with_invoices(self) -> list[dict]:
        try:
            result = (
                self.db.table("customers")
                .select(
                    "id, name, company_name, email, phone, credit_limit, payment_terms, "
                    "invoices:invoices!customer_id(id, invoice_number, total_amount, "
                    "amount_paid, amount_due, invoice_date, due_date, status)"
                )
                .execute()
            )
            return result.data or []
        except Exception as e:
            logger.error("fetch_customers_with_invoices_failed", error=str(e))
            raise DatabaseError("select", str(e))

    def _last_contact_dates(self) -> dict[str, date]:
        """Most recent collection activity per customer."""
        try:
            result = (
                self.db.table("collection_activities")
                .select("customer_id, created_date")
                .order("created_date", desc=True)
                .execute()
            )
        except Exception as e:
            logger.error("fetch_last_contacts_failed", error=str(e))
            raise DatabaseError("select", str(e))

        latest: dict[str, date] = {}
        for row in result.data or []:
            customer_id = row.get("customer_id")
            if customer_id and customer_id not in latest and row.get("created_date"):
                latest[customer_id] = parse_date(row["created_date"])
        return latest

    # ===================
    # SUMMARY / CUSTOMERS
    # ===================

    def get_summary(self, today: Optional[date] = None) -> tuple[ARSummary, int]:
        """
        Returns:
            Tuple of (summary, outstanding invoice count)
        """
        today = today or date.today()
        invoices = self._fetch_outstanding_invoices()
        summary = calculate_summary(invoices, today)

        logger.info(
            "ar_summary_calculated",
            invoices=len(invoices),
            total_outstanding=summary.total_outstanding,
            total_overdue=summary.total_overdue
        )
        return summary, len(invoices)

    def get_customer_aging(
        self,
        search: Optional[str] = None,
        collection_status: Optional[str] = None,
        days_outstanding: Optional[str] = None,
        sort_by: str = "total_outstanding",
        sort_order: str = "desc",
        today: Optional[date] = None,
    ) -> list[CustomerAging]:
        today = today or date.today()

        rows = []
        for customer in self._fetch_customers_with_invoices():
            aging = build_customer_aging(customer, today)
            if aging is not None:
                rows.append(aging)

        if rows:
            contacts = self._last_contact_dates()
            for row in rows:
                row.last_contact_date = contacts.get(row.customer_id)

        rows = filter_customers(rows, search, collection_status, days_outstanding)
        rows = sort_customers(rows, sort_by, sort_order)

        logger.info("customer_aging_calculated", customers=len(rows))
        return rows

    def export(self, export_type: str, filters: Optional[dict] = None, today: Optional[date] = None):
        """
        Render the filtered collections table.

        Returns:
            File body (str for csv/tsv, bytes for excel)

        Raises:
            UnsupportedExportTypeError: Unknown export type
            NoExportDataError: No rows after filtering
        """
        validate_export_type(export_type)
        filters = filters or {}
        today = today or date.today()

        rows = self.get_customer_aging(
            search=filters.get("search"),
            collection_status=filters.get("collection_status"),
            days_outstanding=filters.get("days_outstanding"),
            sort_by=filters.get("sort_by") or "total_outstanding",
            sort_order=filters.get("sort_order") or "desc",
            today=today,
        )
        if not rows:
            raise NoExportDataError("No data matches the current filters")

        return render_table(
            to_export_rows(rows, today),
            export_type,
            money_columns=EXPORT_MONEY_COLUMNS,
            sheet_title="AR Aging",
        )

    # ===================
    # COLLECTION ACTIVITIES
    # ===================

    def get_collection_activities(self, limit: int = 100) -> list[dict]:
        try:
            result = (
                self.db.table("collection_activities")
                .select(
                    "id, customer_id, activity_type, description, created_date, created_by, "
                    "next_action_date, status, customers:customer_id(id, name, company_name)"
                )
                .order("created_date", desc=True)
                .limit(limit)
                .execute()
            )
        except Exception as e:
            logger.error("get_collection_activities_failed", error=str(e))
            raise DatabaseError("select", str(e))

        return [{**row, "customer_name": _customer_name(row)} for row in result.data or []]

    def create_collection_activity(self, payload: dict) -> dict:
        """
        Record a collection effort.

        Raises:
            MissingFieldsError: customer_id, activity_type or description absent
            InvalidChoiceError: activity_type not in the fixed list
        """
        required = ["customer_id", "activity_type", "description"]
        missing = [field for field in required if not payload.get(field)]
        if missing:
            raise MissingFieldsError(missing)

        if payload["activity_type"] not in COLLECTION_ACTIVITY_TYPES:
            raise InvalidChoiceError("activity_type", payload["activity_type"], COLLECTION_ACTIVITY_TYPES)

        data = CollectionActivityCreate(**payload)

        row = {
            "customer_id": data.customer_id,
            "activity_type": data.activity_type,
            "description": data.description,
            "created_date": datetime.utcnow().isoformat(),
            "created_by": data.created_by or "system",
            "next_action_date": data.next_action_date.isoformat() if data.next_action_date else None,
            "status": "completed",
            "metadata": data.metadata,
        }

        logger.info("creating_collection_activity", customer_id=data.customer_id, type=data.activity_type)

        try:
            result = (
                self.db.table("collection_activities")
                .insert(row)
                .execute()
            )
            activity = result.data[0]
        except Exception as e:
            logger.error("create_collection_activity_failed", error=str(e))
            raise DatabaseError("insert", str(e))

        return {**activity, "customer_name": self._lookup_customer_name(data.customer_id)}

    def _lookup_customer_name(self, customer_id: str) -> str:
        try:
            result = (
                self.db.table("customers")
                .select("id, name, company_name")
                .eq("id", customer_id)
                .execute()
            )
        except Exception as e:
            logger.error("lookup_customer_failed", customer_id=customer_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            return "Unknown Customer"
        return _customer_name({"customers": result.data[0]})


# Singleton instance
_ar_aging_service: Optional[ARAgingService] = None


def get_ar_aging_service() -> ARAgingService:
    """Get or create ARAgingService instance."""
    global _ar_aging_service
    if _ar_aging_service is None:
        _ar_aging_service = ARAgingService()
    return _ar_aging_service
