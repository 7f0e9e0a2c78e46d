"""
Payment transaction service.

Summaries use net_amount (amount after fees). Periods are trailing windows
ending now.
"""

from datetime import datetime, timedelta
from typing import Optional
import structlog

from config import get_supabase_client
from exceptions import DatabaseError, InvalidChoiceError
from models.payment import (
    MethodBreakdown,
    PaymentSummary,
    PENDING_STATUSES,
    PERIODS,
    RECONCILIATION_PENDING_STATUSES,
    TransactionFilters,
)
from services.export_service import render_table, validate_export_type
from utils.filters import ilike_any

logger = structlog.get_logger(__name__)


PERIOD_DAYS = {
    "7d": 7,
    "30d": 30,
    "90d": 90,
    "1y": 365,
}

TRANSACTION_COLUMNS = (
    "id, type, amount, currency, status, method, reference_number, description, "
    "customer_id, invoice_id, quickbooks_id, quickbooks_sync_status, processed_date, "
    "created_date, batch_id, fee_amount, net_amount, metadata"
)

EXPORT_MONEY_COLUMNS = ["Amount", "Fee", "Net Amount"]


def period_start(period: str, now: Optional[datetime] = None) -> datetime:
    """Start of a trailing period window."""
    if period not in PERIOD_DAYS:
        raise InvalidChoiceError("period", period, PERIODS)
    now = now or datetime.utcnow()
    return now - timedelta(days=PERIOD_DAYS[period])


def _net(row: dict) -> float:
    return float(row.get("net_amount") or 0)


def summarize_transactions(transactions: list[dict], today: str) -> PaymentSummary:
    """
    Cash-flow summary.

    Args:
        transactions: payment_transactions rows
        today: ISO date (YYYY-MM-DD) used for completed_today
    """
    incoming = [t for t in transactions if t.get("type") == "incoming"]
    outgoing = [t for t in transactions if t.get("type") == "outgoing"]

    total_incoming = round(sum(_net(t) for t in incoming), 2)
    total_outgoing = round(sum(_net(t) for t in outgoing), 2)

    return PaymentSummary(
        total_incoming=total_incoming,
        total_outgoing=total_outgoing,
        net_position=round(total_incoming - total_outgoing, 2),
        pending_incoming=round(sum(_net(t) for t in incoming if t.get("status") in PENDING_STATUSES), 2),
        pending_outgoing=round(sum(_net(t) for t in outgoing if t.get("status") in PENDING_STATUSES), 2),
        completed_today=sum(
            1 for t in transactions
            if t.get("status") == "completed" and str(t.get("created_date") or "").startswith(today)
        ),
        failed_count=sum(1 for t in transactions if t.get("status") == "failed"),
        reconciliation_pending=sum(
            1 for t in transactions
            if t.get("quickbooks_sync_status") in RECONCILIATION_PENDING_STATUSES
        ),
    )


def breakdown_by_method(transactions: list[dict]) -> list[MethodBreakdown]:
    """Count, total, success rate and share of total per method, largest first."""
    groups: dict[str, list[dict]] = {}
    for t in transactions:
        groups.setdefault(t.get("method") or "unknown", []).append(t)

    grand_total = sum(_net(t) for t in transactions)

    breakdown = []
    for method, rows in groups.items():
        total = round(sum(_net(t) for t in rows), 2)
        completed = sum(1 for t in rows if t.get("status") == "completed")
        breakdown.append(MethodBreakdown(
            method=method,
            count=len(rows),
            total_amount=total,
            success_rate=round(completed / len(rows) * 100),
            percentage=round(total / grand_total * 100, 1) if grand_total else 0,
        ))

    breakdown.sort(key=lambda b: b.total_amount, reverse=True)
    return breakdown


def _with_names(row: dict) -> dict:
    customer = row.get("customers") or {}
    invoice = row.get("invoices") or {}
    return {
        **row,
        "customer_name": customer.get("name") or customer.get("company_name") or "Unknown",
        "invoice_number": invoice.get("invoice_number"),
    }


class PaymentService:
    """
    Payment transaction business logic.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "payment_transactions"

    def _fetch_period(self, columns: str, period: str) -> list[dict]:
        now = datetime.utcnow()
        start = period_start(period, now)
        try:
            result = (
                self.db.table(self.table)
                .select(columns)
                .gte("created_date", start.isoformat())
                .lte("created_date", now.isoformat())
                .execute()
            )
            return result.data or []
        except Exception as e:
            logger.error("fetch_transactions_failed", period=period, error=str(e))
            raise DatabaseError("select", str(e))

    def get_summary(self, period: str = "30d") -> tuple[PaymentSummary, int]:
        """
        Returns:
            Tuple of (summary, transaction count)
        """
        transactions = self._fetch_period(
            "type, amount, status, quickbooks_sync_status, created_date, net_amount",
            period
        )
        today = datetime.utcnow().date().isoformat()
        summary = summarize_transactions(transactions, today)

        logger.info("payment_summary_calculated", period=period, transactions=len(transactions))
        return summary, len(transactions)

    def get_methods_breakdown(self, period: str = "30d") -> tuple[list[MethodBreakdown], int]:
        transactions = self._fetch_period("method, amount, status, net_amount", period)
        return breakdown_by_method(transactions), len(transactions)

    def get_transactions(
        self,
        filters: TransactionFilters,
        limit: int = 100,
        offset: int = 0,
        include_customer: bool = True,
        include_invoice: bool = True,
    ) -> list[dict]:
        """Filtered transactions, newest first."""
        columns = TRANSACTION_COLUMNS
        if include_customer:
            columns += ", customers:customer_id(id, name, company_name)"
        if include_invoice:
            columns += ", invoices:invoice_id(id, invoice_number, total_amount)"

        logger.info("getting_transactions", **filters.model_dump(exclude_none=True))

        try:
            query = self.db.table(self.table).select(columns)

            if filters.date_range:
                query = query.gte("created_date", period_start(filters.date_range).isoformat())
            if filters.status and filters.status != "all":
                query = query.eq("status", filters.status)
            if filters.type and filters.type != "all":
                query = query.eq("type", filters.type)
            if filters.method and filters.method != "all":
                query = query.eq("method", filters.method)
            if filters.search:
                query = query.or_(ilike_any(["reference_number", "description"], filters.search))

            result = (
                query.order("created_date", desc=True)
                .range(offset, offset + limit - 1)
                .execute()
            )

        except InvalidChoiceError:
            raise
        except Exception as e:
            logger.error("get_transactions_failed", error=str(e))
            raise DatabaseError("select", str(e))

        return [_with_names(row) for row in result.data or []]

    def export(self, export_type: str, filters: Optional[dict] = None):
        """Render filtered transactions as csv / tsv / excel."""
        validate_export_type(export_type)
        parsed = TransactionFilters(**(filters or {}))

        rows = self.get_transactions(parsed, limit=10000)

        table = [
            {
                "Date": str(row.get("created_date") or "")[:10],
                "Type": row.get("type"),
                "Method": row.get("method"),
                "Status": row.get("status"),
                "Reference": row.get("reference_number") or "",
                "Description": row.get("description") or "",
                "Customer": row.get("customer_name"),
                "Invoice": row.get("invoice_number") or "",
                "Currency": row.get("currency") or "USD",
                "Amount": row.get("amount"),
                "Fee": row.get("fee_amount"),
                "Net Amount": row.get("net_amount"),
                "QuickBooks Sync": row.get("quickbooks_sync_status") or "",
            }
            for row in rows
        ]

        return render_table(
            table,
            export_type,
            money_columns=EXPORT_MONEY_COLUMNS,
            sheet_title="Payments",
        )


# Singleton instance
_payment_service: Optional[PaymentService] = None


def get_payment_service() -> PaymentService:
    """Get or create PaymentService instance."""
    global _payment_service
    if _payment_service is None:
        _payment_service = PaymentService()
    return _payment_service
