"""Pydantic schemas for the analytics engine.

Input records mirror the rows a record source hands over for one tenant and
window. Output schemas make up the immutable ``AnalyticsSnapshot`` and
serialize to flat, camelCase JSON for dashboards and exporters.
"""

from datetime import date as date_type
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

# =============================================================================
# Enums
# =============================================================================


class OrderStatus(str, Enum):
    """Lifecycle status of a storefront order."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    PACKED = "packed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class TimeGranularity(str, Enum):
    """Bucket size for revenue time series."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class PeriodPreset(str, Enum):
    """Named relative periods resolved against ``now``."""

    TODAY = "today"
    LAST_7_DAYS = "7d"
    LAST_30_DAYS = "30d"
    LAST_90_DAYS = "90d"
    LAST_YEAR = "1y"


# =============================================================================
# Input Records
# =============================================================================


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True)


class Order(_Record):
    """A storefront order.

    ``total_amount`` is not range-checked here; a negative amount is a record
    source bug and surfaces as ``DataIntegrityError`` during aggregation.
    """

    id: str = Field(..., min_length=1, description="Order identifier.")
    tenant_id: str = Field(..., min_length=1, description="Owning tenant.")
    customer_id: str | None = Field(None, description="Ordering customer. Null for guest checkouts.")
    total_amount: Decimal = Field(..., description="Order total in the store currency.")
    status: OrderStatus = Field(OrderStatus.PENDING, description="Order lifecycle status.")
    created_at: datetime = Field(..., description="Placement timestamp. Naive values are UTC.")
    delivery_city: str | None = Field(None, description="Delivery city, if known.")


class OrderItem(_Record):
    """A single order line."""

    order_id: str = Field(..., min_length=1, description="Parent order identifier.")
    product_id: str = Field(..., min_length=1, description="Purchased product.")
    quantity: int = Field(..., description="Units purchased.")
    line_total: Decimal = Field(..., description="Line total in the store currency.")
    category_name: str | None = Field(None, description="Product category at time of sale.")
    tenant_id: str | None = Field(
        None,
        description="Owning tenant, used by in-memory sources to resolve order ids shared across tenants.",
    )


class Customer(_Record):
    """A registered storefront customer."""

    id: str = Field(..., min_length=1)
    tenant_id: str = Field(..., min_length=1)
    created_at: datetime = Field(..., description="Signup timestamp. Naive values are UTC.")


class Product(_Record):
    """A catalog product with its current stock level."""

    id: str = Field(..., min_length=1)
    name: str
    inventory_count: int = Field(..., description="Units currently in stock.")
    tenant_id: str | None = Field(None, description="Owning tenant, used by in-memory sources.")


class SearchEvent(_Record):
    """A storefront search, optionally followed by a product click."""

    query: str
    clicked_product_id: str | None = None
    tenant_id: str | None = Field(None, description="Owning tenant, used by in-memory sources.")
    created_at: datetime | None = Field(
        None,
        description="Search timestamp. Events without one are kept for every window.",
    )


class RecordBatch(BaseModel):
    """The five row sets a record source supplies."""

    orders: list[Order] = Field(default_factory=list)
    order_items: list[OrderItem] = Field(default_factory=list)
    customers: list[Customer] = Field(default_factory=list)
    products: list[Product] = Field(default_factory=list)
    search_events: list[SearchEvent] = Field(default_factory=list)


# =============================================================================
# Window
# =============================================================================


class AnalyticsWindow(BaseModel):
    """Half-open reporting window ``[start, end)`` with timezone-aware bounds."""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @model_validator(mode="after")
    def validate_bounds(self) -> "AnalyticsWindow":
        """Ensure both bounds are aware and ``end > start``."""
        if self.start.tzinfo is None or self.end.tzinfo is None:
            msg = "window bounds must be timezone-aware"
            raise ValueError(msg)
        if self.end <= self.start:
            msg = "window end must be after window start"
            raise ValueError(msg)
        return self

    @property
    def duration(self) -> timedelta:
        """Length of the window."""
        return self.end - self.start

    def contains(self, moment: datetime) -> bool:
        """Check whether an aware timestamp falls inside the window."""
        return self.start <= moment < self.end


# =============================================================================
# Snapshot Schemas
# =============================================================================


class _SnapshotModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class RevenuePoint(_SnapshotModel):
    """Revenue for one date bucket. Buckets without orders are omitted."""

    date: date_type = Field(..., description="Bucket start date in the reporting timezone.")
    revenue: Decimal = Field(..., description="Sum of order totals in the bucket.")
    orders: int = Field(..., description="Orders placed in the bucket.")
    average_order_value: Decimal = Field(..., description="revenue / orders.")
    unique_customers: int = Field(..., description="Distinct ordering customers in the bucket.")


class ProductPerformanceItem(_SnapshotModel):
    """Sales of one product within the window."""

    product_id: str
    name: str
    units_sold: int
    revenue: Decimal


class LowStockItem(_SnapshotModel):
    """A product below the low-stock threshold with its window sales."""

    product_id: str
    name: str
    inventory_count: int
    units_sold: int = Field(..., description="Units sold in the window. Informational only.")


class SearchTermItem(_SnapshotModel):
    """Search volume and click-through for one case-folded query."""

    query: str
    count: int
    conversions: int
    conversion_rate: float = Field(..., description="conversions / count * 100, 2 decimals.")


class CategoryBreakdownItem(_SnapshotModel):
    """Item revenue and order reach for one category.

    An order touching two categories counts once in each.
    """

    category: str
    revenue: Decimal
    orders: int
    revenue_share_pct: float = Field(..., description="Share of item revenue, 2 decimals.")


class CityBreakdownItem(_SnapshotModel):
    """Order revenue for one delivery city."""

    city: str
    revenue: Decimal
    orders: int
    unique_customers: int


class OrderStatusItem(_SnapshotModel):
    """Order count and share for one lifecycle status."""

    status: OrderStatus
    count: int
    percentage: float = Field(..., description="Share of the window's orders, 2 decimals.")


class TopCustomerItem(_SnapshotModel):
    """Order spend of one customer within the window."""

    customer_id: str
    orders: int
    revenue: Decimal = Field(..., description="Sum of the customer's order totals.")


class PeriodTotals(_SnapshotModel):
    """The reduced metric set compared across periods."""

    revenue: Decimal
    orders: int
    customers: int


class PreviousPeriod(PeriodTotals):
    """Totals for the equal-length window immediately before the current one."""

    start: datetime
    end: datetime


class PeriodDeltas(_SnapshotModel):
    """Percentage change versus the previous period.

    ``None`` marks a metric that is new this period (previous value was zero
    and current value is positive).
    """

    revenue_pct: float | None
    orders_pct: float | None
    customers_pct: float | None


class AnalyticsSnapshot(_SnapshotModel):
    """Complete analytics result for one (tenant, window) pair."""

    tenant_id: str
    period_start: datetime
    period_end: datetime
    timezone: str

    total_revenue: Decimal = Field(..., description="Sum of order totals.")
    total_orders: int
    average_order_value: Decimal
    item_revenue: Decimal = Field(..., description="Sum of order line totals.")

    conversion_rate: float = Field(..., description="Ordering customers / customers * 100.")
    total_customers: int
    new_customers: int
    returning_customers: int = Field(..., description="Approximate; clamped at zero.")
    customer_lifetime_value: Decimal
    top_customers: list[TopCustomerItem] = Field(..., description="Highest spenders, at most 10.")

    top_products: list[ProductPerformanceItem]
    low_stock_products: list[LowStockItem]
    top_searches: list[SearchTermItem]
    daily_revenue: list[RevenuePoint]
    category_breakdown: list[CategoryBreakdownItem]
    top_cities: list[CityBreakdownItem]
    order_status_breakdown: list[OrderStatusItem]

    previous_period: PreviousPeriod
    deltas: PeriodDeltas


# =============================================================================
# Request / Response Schemas
# =============================================================================


class SnapshotRequest(BaseModel):
    """Request body for computing a snapshot over posted records.

    Either give both ``start`` and ``end`` or a ``period`` preset. The
    records should cover the previous period too if deltas matter.
    """

    tenant_id: str = Field(..., min_length=1, description="Tenant to report on.")
    start: datetime | None = Field(None, description="Window start (inclusive).")
    end: datetime | None = Field(None, description="Window end (exclusive).")
    period: PeriodPreset | None = Field(None, description="Relative period preset.")
    now: datetime | None = Field(None, description="Reference time for presets.")
    timezone: str | None = Field(None, description="IANA timezone for date buckets.")
    records: RecordBatch = Field(default_factory=RecordBatch)


class RevenueSeriesRequest(SnapshotRequest):
    """Request body for a revenue series at a chosen granularity."""

    granularity: TimeGranularity = TimeGranularity.DAY


class RevenueSeriesResponse(_SnapshotModel):
    """Revenue series for one window."""

    tenant_id: str
    period_start: datetime
    period_end: datetime
    granularity: TimeGranularity
    points: list[RevenuePoint]
    total_revenue: Decimal
    total_orders: int
