"""
Order tracking service.

Joins orders with customer, items, production status and shipments, and
derives a single computed status for the tracking page.
"""

from typing import Optional
import structlog

from config import get_supabase_client
from exceptions import DatabaseError
from models.order_tracking import OrderTrackingRow

logger = structlog.get_logger(__name__)


ORDER_TRACKING_SELECT = """
    id,
    order_number,
    status,
    total_amount,
    created_at,
    updated_at,
    shipping_address,
    customer:customers(id, name, email),
    order_items(id, quantity, price, item:items(id, name, sku_base)),
    production_status(id, status, stage, progress, actual_start_date, actual_completion_date),
    shipments(id, tracking_number, carrier, shipping_status:status, estimated_delivery, actual_delivery)
"""

SHIPPED_STATUSES = ("shipped", "in_transit")
ACTIVE_PRODUCTION_STATUSES = ("in_progress", "active")


def compute_status(order_status: Optional[str], production: dict, shipment: dict) -> str:
    """
    Shipping beats production beats the stored order status.
    """
    shipping_status = shipment.get("shipping_status")
    if shipping_status == "delivered":
        return "delivered"
    if shipping_status in SHIPPED_STATUSES:
        return "shipped"
    if production.get("status") in ACTIVE_PRODUCTION_STATUSES:
        return "processing"
    return order_status or "pending"


def flatten_order(order: dict) -> OrderTrackingRow:
    """Flatten an order row with its joins into a tracking row."""
    customer = order.get("customer") or {}
    order_items = order.get("order_items") or []
    production = order.get("production_status") or []
    shipments = order.get("shipments") or []

    latest_production = production[0] if production else {}
    latest_shipment = shipments[0] if shipments else {}

    row = OrderTrackingRow(
        id=order["id"],
        order_number=order.get("order_number") or "",
        customer_name=customer.get("name") or "Unknown Customer",
        customer_email=customer.get("email") or "Unknown Email",
        status=order.get("status") or "pending",
        computed_status=compute_status(order.get("status"), latest_production, latest_shipment),
        tracking_number=latest_shipment.get("tracking_number"),
        carrier_name=latest_shipment.get("carrier"),
        shipping_status=latest_shipment.get("shipping_status"),
        total_amount=order.get("total_amount") or 0,
        created_at=order.get("created_at"),
        estimated_delivery=latest_shipment.get("estimated_delivery"),
        production_stage=latest_production.get("stage") or "Not Started",
        production_progress=latest_production.get("progress") or 0,
        item_count=len(order_items),
        customer=order.get("customer"),
        order_items=order_items,
        production=production,
        shipment=shipments,
    )
    if order.get("shipping_address"):
        row.shipping_address = order["shipping_address"]
    return row


def matches_search(row: OrderTrackingRow, term: str) -> bool:
    """Case-insensitive match on order number, customer and tracking number."""
    term = term.lower()
    return any(
        term in (value or "").lower()
        for value in (row.order_number, row.customer_name, row.customer_email, row.tracking_number)
    )


class OrderTrackingService:
    """
    Order tracking reads.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "orders"

    def get_orders(
        self,
        status: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 50,
        offset: int = 0
    ) -> list[OrderTrackingRow]:
        """
        List orders for tracking, newest first.

        Search runs over the page after flattening, so it only matches
        orders inside the requested window.
        """
        logger.info("getting_order_tracking", status=status, search=search, limit=limit, offset=offset)

        try:
            query = self.db.table(self.table).select(ORDER_TRACKING_SELECT)

            if status and status != "all":
                query = query.eq("status", status)

            result = (
                query.order("created_at", desc=True)
                .range(offset, offset + limit - 1)
                .execute()
            )

        except Exception as e:
            logger.error("get_order_tracking_failed", error=str(e))
            raise DatabaseError("select", str(e))

        rows = [flatten_order(order) for order in result.data or []]

        if search:
            rows = [row for row in rows if matches_search(row, search)]

        logger.info("order_tracking_loaded", count=len(rows))
        return rows


# Singleton instance
_order_tracking_service: Optional[OrderTrackingService] = None


def get_order_tracking_service() -> OrderTrackingService:
    """Get or create OrderTrackingService instance."""
    global _order_tracking_service
    if _order_tracking_service is None:
        _order_tracking_service = OrderTrackingService()
    return _order_tracking_service
