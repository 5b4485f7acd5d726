"""
Shared Pydantic schemas used across the application.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from rest_api.services.finance.promotions import AppliedPromotion, load_promotions


# =============================================================================
# Common Types
# =============================================================================

OrderTypeLiteral = Literal["dine_in", "takeaway", "online"]
RemoteOrderType = Literal["takeaway", "online"]
OrderStatusLiteral = Literal["pending_validation", "in_progress", "finalized"]
KitchenStatusLiteral = Literal["not_sent", "received", "ready", "served", "delivered"]
LineStatusLiteral = Literal["waiting", "sent_to_kitchen"]
TableStatusLiteral = Literal["free", "in_kitchen", "ready_to_serve", "ready_to_pay"]
PaymentMethodLiteral = Literal["cash", "card", "transfer"]
IngredientUnitLiteral = Literal["kg", "g", "L", "ml", "piece"]
DashboardPeriodLiteral = Literal["week", "month"]


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str


# =============================================================================
# Table Schemas
# =============================================================================


class TableCreate(BaseModel):
    name: str = Field(min_length=1)
    capacity: int = Field(default=4, gt=0)


class TableUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    capacity: int | None = Field(default=None, gt=0)


class SeatTableRequest(BaseModel):
    """Covers are checked by the service so the failure is a 400, not a 422."""

    covers: Any = None


class TableOutput(BaseModel):
    """Table with its derived status."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    capacity: int
    covers: int | None = None
    order_id: int | None = None
    status: TableStatusLiteral
    kitchen_status: KitchenStatusLiteral | None = None
    sent_to_kitchen_at: datetime | None = None


# =============================================================================
# Order Schemas
# =============================================================================


class OrderLineInput(BaseModel):
    """
    A line to add to an order.

    Either a catalog ``product_id`` (name and price are then snapshotted from
    the catalog unless given) or an ad hoc item with name and price.
    """

    product_id: int | None = None
    product_ref: str | None = None
    product_name: str | None = None
    unit_price: float | None = Field(default=None, ge=0)
    quantity: int
    excluded_ingredient_ids: list[int] = Field(default_factory=list)
    comment: str | None = None

    @model_validator(mode="after")
    def _product_or_ad_hoc(self) -> "OrderLineInput":
        if self.product_id is None and (self.product_name is None or self.unit_price is None):
            raise ValueError("Ad hoc lines need product_name and unit_price")
        return self


class OrderLineUpdate(OrderLineInput):
    """A line of the replacement set; ``id`` refers to an existing line."""

    id: int | None = None


class ReplaceLinesRequest(BaseModel):
    lines: list[OrderLineUpdate]


class AddLinesRequest(BaseModel):
    lines: list[OrderLineInput] = Field(min_length=1)


class SendToKitchenRequest(BaseModel):
    """Send only these waiting lines; all waiting lines when omitted."""

    line_ids: list[int] | None = None


class PaymentRequest(BaseModel):
    payment_method: PaymentMethodLiteral | None = None


class CustomerOrderRequest(BaseModel):
    """Takeaway / online checkout."""

    order_type: RemoteOrderType = "takeaway"
    lines: list[OrderLineInput]
    client_name: str | None = None
    client_phone: str | None = None
    client_address: str | None = None
    promo_code: str | None = None
    applied_promotions: list[AppliedPromotion] = Field(default_factory=list)
    total_discount: float | None = None
    shipping_cost: float = Field(default=0.0, ge=0)


class OrderLineOutput(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    position: int
    product_id: int | None = None
    product_ref: str | None = None
    product_name: str
    unit_price: float
    quantity: int
    excluded_ingredient_ids: list[int] = Field(default_factory=list)
    comment: str | None = None
    status: LineStatusLiteral
    sent_at: datetime | None = None


class OrderOutput(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_type: OrderTypeLiteral
    table_id: int | None = None
    table_name: str | None = None
    covers: int
    status: OrderStatusLiteral
    kitchen_status: KitchenStatusLiteral
    created_at: datetime
    sent_to_kitchen_at: datetime | None = None
    ready_at: datetime | None = None
    served_at: datetime | None = None
    finalized_at: datetime | None = None
    payment_status: Literal["unpaid", "paid"]
    payment_method: PaymentMethodLiteral | None = None
    subtotal: float
    total_discount: float
    shipping_cost: float
    promo_code: str | None = None
    applied_promotions: list[AppliedPromotion] = Field(default_factory=list)
    client_name: str | None = None
    client_phone: str | None = None
    client_address: str | None = None
    total: float | None = None
    profit: float | None = None
    lines: list[OrderLineOutput] = Field(default_factory=list)

    @field_validator("applied_promotions", mode="before")
    @classmethod
    def _decode_promotions(cls, value: Any) -> list[AppliedPromotion]:
        return load_promotions(value)


class InventoryDeductionOutput(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    consumption: dict[int, float] = Field(default_factory=dict)
    updated: dict[int, float] = Field(default_factory=dict)
    skipped: list[int] = Field(default_factory=list)
    failed: bool = False
    error: str | None = None


class FinalizeOutput(BaseModel):
    order: OrderOutput
    inventory: InventoryDeductionOutput | None = None


class KitchenTicketOutput(BaseModel):
    """Lines of one order sharing a send-to-kitchen timestamp."""

    key: str
    order_id: int
    order_type: OrderTypeLiteral
    table_name: str | None = None
    kitchen_status: KitchenStatusLiteral
    sent_at: datetime
    lines: list[OrderLineOutput]


class TakeawayOrdersOutput(BaseModel):
    pending: list[OrderOutput]
    ready: list[OrderOutput]


class NotificationCountsOutput(BaseModel):
    pending_takeaway: int
    ready_takeaway: int
    kitchen_orders: int
    low_stock_ingredients: int
    ready_for_service: int


# =============================================================================
# Inventory Schemas
# =============================================================================


class IngredientOutput(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    unit: IngredientUnitLiteral
    minimum_stock: float
    current_stock: float
    unit_price: float


class ResupplyRequest(BaseModel):
    """Validated by the service (400 on non-positive quantity or negative price)."""

    quantity: float
    unit_price: float


class ResupplyOutput(BaseModel):
    ingredient: IngredientOutput
    purchase_id: int
    total_price: float


# =============================================================================
# Reporting Schemas
# =============================================================================


class SalesDataPoint(BaseModel):
    name: str
    value: float


class SeriesPoint(BaseModel):
    """One day of the revenue series with the matching day of the previous window."""

    name: str
    revenue: float
    previous_revenue: float


class ProductSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    sale_price: float
    category_id: int | None = None
    best_seller_rank: int | None = None


class DashboardStatsOutput(BaseModel):
    period: DashboardPeriodLiteral
    period_label: str
    period_start: datetime
    period_end: datetime

    today_revenue: float
    today_profit: float
    today_covers: int
    today_average_ticket: float

    revenue: float
    previous_revenue: float
    revenue_change: float
    profit: float
    previous_profit: float
    profit_change: float
    covers: int
    previous_covers: int
    covers_change: float
    orders: int
    previous_orders: int
    orders_change: float
    average_ticket: float
    previous_average_ticket: float
    average_ticket_change: float

    occupied_tables: int
    current_covers: int
    orders_in_kitchen: int
    low_stock_ingredients: list[IngredientOutput]
    revenue_series: list[SeriesPoint]
    revenue_by_category: list[SalesDataPoint]
    recent_orders: list[OrderOutput]
    best_sellers: list[ProductSummary]


class LedgerRowOutput(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_id: int
    line_position: int
    product_id: int
    product_name: str
    category_id: str
    category_name: str
    quantity: int
    unit_revenue: float
    total_revenue: float
    unit_cost: float
    total_cost: float
    profit: float
    payment_method: str | None = None
    sale_date: datetime


class SoldProduct(BaseModel):
    name: str
    quantity: int


class CategorySales(BaseModel):
    category_name: str
    products: list[SoldProduct]


class DailyReportOutput(BaseModel):
    business_day_start: datetime
    generated_at: datetime
    orders: int
    covers_on_site: int
    online_clients: int
    total_clients: int
    revenue: float
    average_ticket: float
    total_promotions: float
    sold_products: list[CategorySales]
    low_stock_ingredients: list[IngredientOutput]
