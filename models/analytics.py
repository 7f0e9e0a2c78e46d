"""
Business analytics models.

Top-level and order metrics use the dashboard's camelCase keys; the
nested production, shipping and inventory blocks are snake_case.
"""

from pydantic import Field

from models.base import BaseSchema


class MonthlyGrowth(BaseSchema):
    """Share of each table's rows created in the last month, as a percentage."""

    collections: float = 0
    products: float = 0
    orders: float = 0
    customers: float = 0


class RevenueByCategory(BaseSchema):
    furniture: float = 0
    decking: float = 0
    cladding: float = 0
    fixtures: float = 0
    custom_millwork: float = 0


class ClientLifetimeValue(BaseSchema):
    client_name: str
    total_value: float
    orders_count: int
    avg_order_value: float


class ProductionMetrics(BaseSchema):
    items_in_production: int = 0
    items_completed_this_month: int = 0
    quality_check_pass_rate: float = 85.0
    average_production_time: float = 14


class ShippingMetrics(BaseSchema):
    ready_to_ship: int = 0
    in_transit: int = 0
    delivered_this_month: int = 0
    damage_claim_rate: float = 2.1


class InventoryMetrics(BaseSchema):
    total_items: int = 0
    low_stock_alerts: int = 0
    out_of_stock_items: int = 0
    inventory_turnover_rate: float = 4.2


class OrderMetrics(BaseSchema):
    ordersPipelineValue: float = 0
    averageOrderValue: float = 0
    onTimeDeliveryRate: float = 0
    productionCapacityUtilization: float = 0
    revenueByCategory: RevenueByCategory = Field(default_factory=RevenueByCategory)
    clientLifetimeValue: list[ClientLifetimeValue] = Field(default_factory=list)
    productionMetrics: ProductionMetrics = Field(default_factory=ProductionMetrics)
    shippingMetrics: ShippingMetrics = Field(default_factory=ShippingMetrics)
    inventoryMetrics: InventoryMetrics = Field(default_factory=InventoryMetrics)


class BusinessAnalytics(BaseSchema):
    totalCollections: int = 0
    totalProducts: int = 0
    totalOrders: int = 0
    totalCustomers: int = 0
    totalRevenue: float = 0
    monthlyGrowth: MonthlyGrowth = Field(default_factory=MonthlyGrowth)
    orderMetrics: OrderMetrics = Field(default_factory=OrderMetrics)
