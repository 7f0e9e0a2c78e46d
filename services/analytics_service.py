"""
Business analytics computed from live tables.

Counts, revenue, monthly growth, order pipeline, production load and
inventory alerts. Each source table is read once; a table that does not
exist yet contributes nothing instead of failing the whole report.
"""

from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Optional
import calendar
import structlog

from config import get_supabase_client
from exceptions import DatabaseError
from models.analytics import (
    BusinessAnalytics,
    ClientLifetimeValue,
    InventoryMetrics,
    MonthlyGrowth,
    OrderMetrics,
    ProductionMetrics,
)
from services.task_service import is_missing_table

logger = structlog.get_logger(__name__)


PRODUCTION_CAPACITY = 100
ON_TIME_DELIVERY_DAYS = 30
DEFAULT_MIN_STOCK_LEVEL = 10
TOP_CLIENTS = 5
CLOSED_ORDER_STATUSES = ("completed", "cancelled")

SOURCES = {
    "collections": "id, created_at",
    "customers": "id, created_at, company_name",
    "orders": "id, total_amount, status, financial_stage, created_at, customer_id, delivery_date",
    "production_tracking": "id, status, stage, created_at",
    "items": "id, created_at, stock_quantity, min_stock_level",
}


# ===================
# PURE CALCULATIONS
# ===================

def _parse_timestamp(value) -> Optional[datetime]:
    if not value:
        return None
    parsed = value if isinstance(value, datetime) else datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _amount(value) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def one_month_before(now: datetime) -> datetime:
    """Same day and time one calendar month earlier, clamped to month end."""
    year, month = (now.year, now.month - 1) if now.month > 1 else (now.year - 1, 12)
    day = min(now.day, calendar.monthrange(year, month)[1])
    return now.replace(year=year, month=month, day=day)


def _created_since(row: dict, since: datetime) -> bool:
    created = _parse_timestamp(row.get("created_at"))
    return created is not None and created >= since


def growth_share(rows: list[dict], since: datetime) -> float:
    """Percentage of rows created on or after `since`."""
    if not rows:
        return 0
    recent = sum(1 for row in rows if _created_since(row, since))
    return round(recent / len(rows) * 100, 1)


def on_time_delivery_rate(orders: list[dict]) -> float:
    """Completed orders delivered within 30 days of creation, as a percentage."""
    delivered = [o for o in orders if o.get("status") == "completed" and o.get("delivery_date")]
    if not delivered:
        return 0

    on_time = 0
    for order in delivered:
        created = _parse_timestamp(order.get("created_at"))
        delivery = _parse_timestamp(order.get("delivery_date"))
        if created and delivery and delivery - created <= timedelta(days=ON_TIME_DELIVERY_DAYS):
            on_time += 1
    return round(on_time / len(delivered) * 100, 1)


def client_lifetime_values(orders: list[dict], customers: list[dict], top: int = TOP_CLIENTS) -> list[ClientLifetimeValue]:
    """Highest-spending customers by total order value."""
    names = {row.get("id"): row.get("company_name") for row in customers}
    totals: dict = defaultdict(lambda: [0.0, 0])

    for order in orders:
        customer_id = order.get("customer_id")
        if not customer_id:
            continue
        totals[customer_id][0] += _amount(order.get("total_amount"))
        totals[customer_id][1] += 1

    ranked = sorted(totals.items(), key=lambda kv: kv[1][0], reverse=True)[:top]
    return [
        ClientLifetimeValue(
            client_name=names.get(customer_id) or "Unknown Customer",
            total_value=round(total, 2),
            orders_count=count,
            avg_order_value=round(total / count, 2),
        )
        for customer_id, (total, count) in ranked
    ]


def calculate_analytics(
    collections: list[dict],
    customers: list[dict],
    orders: list[dict],
    production: list[dict],
    items: list[dict],
    now: Optional[datetime] = None
) -> BusinessAnalytics:
    """Build the analytics report from already-fetched rows."""
    now = now or datetime.now(timezone.utc)
    last_month = one_month_before(now)
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)

    total_revenue = round(sum(_amount(o.get("total_amount")) for o in orders), 2)
    pipeline = round(sum(
        _amount(o.get("total_amount"))
        for o in orders
        if o.get("status") not in CLOSED_ORDER_STATUSES
    ), 2)

    in_production = [
        p for p in production
        if p.get("status") == "in_progress" or p.get("stage") == "production"
    ]
    completed_this_month = [
        p for p in production
        if p.get("status") == "completed" and _created_since(p, month_start)
    ]

    low_stock = [
        i for i in items
        if (i.get("stock_quantity") or 0) <= (i.get("min_stock_level") or DEFAULT_MIN_STOCK_LEVEL)
    ]
    out_of_stock = [i for i in items if (i.get("stock_quantity") or 0) == 0]

    return BusinessAnalytics(
        totalCollections=len(collections),
        totalProducts=len(items),
        totalOrders=len(orders),
        totalCustomers=len(customers),
        totalRevenue=total_revenue,
        monthlyGrowth=MonthlyGrowth(
            collections=growth_share(collections, last_month),
            products=growth_share(items, last_month),
            orders=growth_share(orders, last_month),
            customers=growth_share(customers, last_month),
        ),
        orderMetrics=OrderMetrics(
            ordersPipelineValue=pipeline,
            averageOrderValue=round(total_revenue / len(orders), 2) if orders else 0,
            onTimeDeliveryRate=on_time_delivery_rate(orders),
            productionCapacityUtilization=round(len(in_production) / PRODUCTION_CAPACITY * 100, 1),
            clientLifetimeValue=client_lifetime_values(orders, customers),
            productionMetrics=ProductionMetrics(
                items_in_production=min(len(in_production), PRODUCTION_CAPACITY),
                items_completed_this_month=len(completed_this_month),
            ),
            inventoryMetrics=InventoryMetrics(
                total_items=len(items),
                low_stock_alerts=len(low_stock),
                out_of_stock_items=len(out_of_stock),
            ),
        ),
    )


class AnalyticsService:
    """
    Reads the source tables and builds the analytics report.
    """

    def __init__(self):
        self.db = get_supabase_client()

    def _fetch(self, table: str) -> list[dict]:
        try:
            result = self.db.table(table).select(SOURCES[table]).execute()
            return result.data or []

        except Exception as e:
            if is_missing_table(e):
                logger.warning("analytics_source_missing", table=table)
                return []
            logger.error("analytics_fetch_failed", table=table, error=str(e))
            raise DatabaseError("select", str(e))

    def get_analytics(self, now: Optional[datetime] = None) -> BusinessAnalytics:
        rows = {table: self._fetch(table) for table in SOURCES}

        analytics = calculate_analytics(
            rows["collections"],
            rows["customers"],
            rows["orders"],
            rows["production_tracking"],
            rows["items"],
            now=now,
        )

        logger.info(
            "analytics_computed",
            collections=analytics.totalCollections,
            orders=analytics.totalOrders,
            revenue=analytics.totalRevenue
        )
        return analytics


# Singleton instance
_analytics_service: Optional[AnalyticsService] = None


def get_analytics_service() -> AnalyticsService:
    """Get or create AnalyticsService instance."""
    global _analytics_service
    if _analytics_service is None:
        _analytics_service = AnalyticsService()
    return _analytics_service
