"""
Order tracking view model.

One row per order, flattened from orders + customer + items +
production_status + shipments.
"""

from datetime import datetime
from typing import Any, Optional
from pydantic import Field

from models.base import BaseSchema


class OrderTrackingRow(BaseSchema):
    """Order as the tracking page sees it."""

    id: str
    order_number: str = ""
    customer_name: str = "Unknown Customer"
    customer_email: str = "Unknown Email"
    status: str = "pending"
    computed_status: str = "pending"
    tracking_number: Optional[str] = None
    carrier_name: Optional[str] = None
    shipping_status: Optional[str] = None
    total_amount: float = 0
    created_at: Optional[datetime] = None
    estimated_delivery: Optional[str] = None
    shipping_address: dict[str, Any] = Field(
        default_factory=lambda: {"city": "", "state": "", "country": ""}
    )
    production_stage: str = "Not Started"
    production_progress: float = 0
    item_count: int = 0
    customer: Optional[dict[str, Any]] = None
    order_items: list[dict[str, Any]] = Field(default_factory=list)
    production: list[dict[str, Any]] = Field(default_factory=list)
    shipment: list[dict[str, Any]] = Field(default_factory=list)
