"""Pure aggregators over scoped analytics records.

Each aggregator reads shared immutable rows, accumulates into its own
private buckets keyed by a normalized grouping key, and sorts only at the
end. None of them depends on another, so they can run concurrently.

CRITICAL: Every ratio has an explicit zero-denominator policy. No aggregator
ever emits NaN or infinity.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date as date_type
from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal
from zoneinfo import ZoneInfo

from storefront_analytics.core.exceptions import DataIntegrityError
from storefront_analytics.features.analytics.schemas import (
    AnalyticsWindow,
    CategoryBreakdownItem,
    CityBreakdownItem,
    Customer,
    LowStockItem,
    Order,
    OrderItem,
    OrderStatus,
    OrderStatusItem,
    Product,
    ProductPerformanceItem,
    RevenuePoint,
    SearchEvent,
    SearchTermItem,
    TimeGranularity,
    TopCustomerItem,
)
from storefront_analytics.features.analytics.window import ensure_aware

UNCATEGORIZED = "Uncategorized"
UNKNOWN_CITY = "Unknown"
UNKNOWN_PRODUCT = "Unknown"

CENT = Decimal("0.01")
ZERO = Decimal("0")


# =============================================================================
# Numeric helpers
# =============================================================================


def quantize_money(value: Decimal) -> Decimal:
    """Round a derived money value to currency-unit precision."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def safe_average(total: Decimal, count: int) -> Decimal:
    """Average per unit, ``0.00`` when ``count`` is zero."""
    if count <= 0:
        return quantize_money(ZERO)
    return quantize_money(total / count)


def safe_percentage(numerator: Decimal | int, denominator: Decimal | int) -> float:
    """``numerator / denominator * 100`` to 2 decimals, ``0.0`` for a zero denominator."""
    if denominator <= 0:
        return 0.0
    return round(float(Decimal(numerator) / Decimal(denominator) * 100), 2)


def _require_non_negative(value: Decimal | int, field_name: str, record_id: str) -> None:
    if value < 0:
        raise DataIntegrityError(
            message=f"Negative {field_name} on record '{record_id}'",
            details={"field": field_name, "record_id": record_id, "value": str(value)},
        )


def _require_positive_quantity(item: OrderItem) -> None:
    if item.quantity <= 0:
        raise DataIntegrityError(
            message=f"Non-positive quantity on order item for order '{item.order_id}'",
            details={
                "field": "quantity",
                "record_id": item.order_id,
                "product_id": item.product_id,
                "value": str(item.quantity),
            },
        )


# =============================================================================
# RevenueTimeSeries
# =============================================================================


@dataclass
class _RevenueBucket:
    revenue: Decimal = ZERO
    orders: int = 0
    customers: set[str] = field(default_factory=lambda: set())


@dataclass(frozen=True)
class RevenueSeriesResult:
    """Revenue per date bucket plus the totals the buckets sum to.

    Attributes:
        points: Non-empty buckets in ascending date order.
        total_revenue: Sum of bucket revenues.
        total_orders: Sum of bucket order counts.
    """

    points: list[RevenuePoint]
    total_revenue: Decimal
    total_orders: int


def bucket_start(day: date_type, granularity: TimeGranularity) -> date_type:
    """Map a local calendar date to the first day of its bucket.

    Weeks start on ISO Monday; months on the 1st.
    """
    if granularity == TimeGranularity.WEEK:
        return day - timedelta(days=day.weekday())
    if granularity == TimeGranularity.MONTH:
        return day.replace(day=1)
    return day


def revenue_time_series(
    orders: Sequence[Order],
    tz: ZoneInfo,
    granularity: TimeGranularity = TimeGranularity.DAY,
) -> RevenueSeriesResult:
    """Group order revenue by local calendar bucket.

    Buckets without orders are omitted rather than zero-filled; callers that
    need a dense series backfill themselves.

    Args:
        orders: Orders inside the window.
        tz: Timezone defining day boundaries.
        granularity: Bucket size.

    Returns:
        Sorted series with totals.

    Raises:
        DataIntegrityError: If an order total is negative.
    """
    buckets: dict[date_type, _RevenueBucket] = {}

    for order in orders:
        _require_non_negative(order.total_amount, "total_amount", order.id)
        local_day = ensure_aware(order.created_at).astimezone(tz).date()
        bucket = buckets.setdefault(bucket_start(local_day, granularity), _RevenueBucket())
        bucket.revenue += order.total_amount
        bucket.orders += 1
        if order.customer_id:
            bucket.customers.add(order.customer_id)

    points = [
        RevenuePoint(
            date=key,
            revenue=bucket.revenue,
            orders=bucket.orders,
            average_order_value=safe_average(bucket.revenue, bucket.orders),
            unique_customers=len(bucket.customers),
        )
        for key, bucket in sorted(buckets.items())
    ]

    return RevenueSeriesResult(
        points=points,
        total_revenue=sum((p.revenue for p in points), ZERO),
        total_orders=sum(p.orders for p in points),
    )


# =============================================================================
# ProductPerformance
# =============================================================================


@dataclass
class _ProductBucket:
    units_sold: int = 0
    revenue: Decimal = ZERO


@dataclass(frozen=True)
class ProductPerformanceResult:
    """Ranked product sales and the low-stock view.

    Attributes:
        top_products: Best sellers by revenue.
        low_stock_products: Products under the stock threshold, lowest first.
        products_sold: Distinct products with at least one sale.
    """

    top_products: list[ProductPerformanceItem]
    low_stock_products: list[LowStockItem]
    products_sold: int


def product_performance(
    items: Sequence[OrderItem],
    products: Sequence[Product],
    top_n: int = 10,
    low_stock_threshold: int = 10,
) -> ProductPerformanceResult:
    """Accumulate per-product sales and derive top-N and low-stock lists.

    Top products rank by revenue, then units sold (both descending), then
    product id ascending. Low stock is an inventory view: a product below the
    threshold is listed even with no sales in the window.

    Args:
        items: Order items inside the window.
        products: Catalog products for names and inventory.
        top_n: Maximum entries per list.
        low_stock_threshold: Products with fewer units in stock are low.

    Returns:
        Product performance result.

    Raises:
        DataIntegrityError: On a non-positive quantity, negative line total,
            negative inventory count or duplicate product id.
    """
    catalog: dict[str, Product] = {}
    for product in products:
        if product.id in catalog:
            raise DataIntegrityError(
                message=f"Duplicate product id '{product.id}'",
                details={"product_id": product.id},
            )
        catalog[product.id] = product
    buckets: dict[str, _ProductBucket] = {}

    for item in items:
        _require_positive_quantity(item)
        _require_non_negative(item.line_total, "line_total", item.order_id)
        bucket = buckets.setdefault(item.product_id, _ProductBucket())
        bucket.units_sold += item.quantity
        bucket.revenue += item.line_total

    ranked = sorted(
        buckets.items(),
        key=lambda entry: (-entry[1].revenue, -entry[1].units_sold, entry[0]),
    )
    top_products = [
        ProductPerformanceItem(
            product_id=product_id,
            name=catalog[product_id].name if product_id in catalog else UNKNOWN_PRODUCT,
            units_sold=bucket.units_sold,
            revenue=bucket.revenue,
        )
        for product_id, bucket in ranked[:top_n]
    ]

    low_stock: list[Product] = []
    for product in catalog.values():
        _require_non_negative(product.inventory_count, "inventory_count", product.id)
        if product.inventory_count < low_stock_threshold:
            low_stock.append(product)
    low_stock.sort(key=lambda p: (p.inventory_count, p.id))

    low_stock_products = [
        LowStockItem(
            product_id=product.id,
            name=product.name,
            inventory_count=product.inventory_count,
            units_sold=buckets[product.id].units_sold if product.id in buckets else 0,
        )
        for product in low_stock[:top_n]
    ]

    return ProductPerformanceResult(
        top_products=top_products,
        low_stock_products=low_stock_products,
        products_sold=len(buckets),
    )


# =============================================================================
# CategoryBreakdown
# =============================================================================


@dataclass
class _CategoryBucket:
    revenue: Decimal = ZERO
    order_ids: set[str] = field(default_factory=lambda: set())


@dataclass(frozen=True)
class CategoryBreakdownResult:
    """Category breakdown and the item revenue it partitions.

    Attributes:
        categories: All categories, highest revenue first.
        item_revenue: Sum of line totals across every item.
    """

    categories: list[CategoryBreakdownItem]
    item_revenue: Decimal


def category_key(name: str | None) -> str:
    """Normalize a category name, defaulting to ``Uncategorized``."""
    if name is None or not name.strip():
        return UNCATEGORIZED
    return name.strip()


def category_breakdown(items: Sequence[OrderItem]) -> CategoryBreakdownResult:
    """Group item revenue by category.

    Revenue is never double-counted. Order counts are: an order with items in
    two categories counts once in each.

    Raises:
        DataIntegrityError: On a negative line total.
    """
    buckets: dict[str, _CategoryBucket] = {}

    for item in items:
        _require_non_negative(item.line_total, "line_total", item.order_id)
        bucket = buckets.setdefault(category_key(item.category_name), _CategoryBucket())
        bucket.revenue += item.line_total
        bucket.order_ids.add(item.order_id)

    item_revenue = sum((bucket.revenue for bucket in buckets.values()), ZERO)

    categories = [
        CategoryBreakdownItem(
            category=name,
            revenue=bucket.revenue,
            orders=len(bucket.order_ids),
            revenue_share_pct=safe_percentage(bucket.revenue, item_revenue),
        )
        for name, bucket in sorted(buckets.items(), key=lambda e: (-e[1].revenue, e[0]))
    ]

    return CategoryBreakdownResult(categories=categories, item_revenue=item_revenue)


# =============================================================================
# GeoBreakdown
# =============================================================================


@dataclass
class _CityBucket:
    revenue: Decimal = ZERO
    orders: int = 0
    customers: set[str] = field(default_factory=lambda: set())


@dataclass(frozen=True)
class GeoBreakdownResult:
    """Top delivery cities by revenue.

    Attributes:
        top_cities: Highest-revenue cities.
        city_count: Distinct cities seen, before truncation.
    """

    top_cities: list[CityBreakdownItem]
    city_count: int


def city_key(city: str | None) -> str:
    """Normalize a delivery city, defaulting to ``Unknown``."""
    if city is None or not city.strip():
        return UNKNOWN_CITY
    return city.strip()


def geo_breakdown(orders: Sequence[Order], top_n: int = 10) -> GeoBreakdownResult:
    """Group order revenue by delivery city.

    Raises:
        DataIntegrityError: If an order total is negative.
    """
    buckets: dict[str, _CityBucket] = {}

    for order in orders:
        _require_non_negative(order.total_amount, "total_amount", order.id)
        bucket = buckets.setdefault(city_key(order.delivery_city), _CityBucket())
        bucket.revenue += order.total_amount
        bucket.orders += 1
        if order.customer_id:
            bucket.customers.add(order.customer_id)

    ranked = sorted(buckets.items(), key=lambda e: (-e[1].revenue, e[0]))

    return GeoBreakdownResult(
        top_cities=[
            CityBreakdownItem(
                city=name,
                revenue=bucket.revenue,
                orders=bucket.orders,
                unique_customers=len(bucket.customers),
            )
            for name, bucket in ranked[:top_n]
        ],
        city_count=len(buckets),
    )


# =============================================================================
# SearchConversion
# =============================================================================


@dataclass
class _SearchBucket:
    count: int = 0
    conversions: int = 0


@dataclass(frozen=True)
class SearchConversionResult:
    """Most frequent searches with click-through.

    Attributes:
        top_searches: Most searched queries.
        total_searches: Events counted (blank queries excluded).
    """

    top_searches: list[SearchTermItem]
    total_searches: int


def search_key(query: str) -> str:
    """Normalize a search query for grouping."""
    return query.strip().casefold()


def search_conversion(events: Sequence[SearchEvent], top_n: int = 10) -> SearchConversionResult:
    """Group search events by case-folded query.

    Blank queries carry no term to rank and are skipped.
    """
    buckets: dict[str, _SearchBucket] = {}

    for event in events:
        key = search_key(event.query)
        if not key:
            continue
        bucket = buckets.setdefault(key, _SearchBucket())
        bucket.count += 1
        if event.clicked_product_id:
            bucket.conversions += 1

    ranked = sorted(buckets.items(), key=lambda e: (-e[1].count, e[0]))

    return SearchConversionResult(
        top_searches=[
            SearchTermItem(
                query=query,
                count=bucket.count,
                conversions=bucket.conversions,
                conversion_rate=safe_percentage(bucket.conversions, bucket.count),
            )
            for query, bucket in ranked[:top_n]
        ],
        total_searches=sum(bucket.count for bucket in buckets.values()),
    )


# =============================================================================
# CustomerMetrics
# =============================================================================


@dataclass(frozen=True)
class CustomerMetricsResult:
    """Customer counts and value metrics.

    Attributes:
        total_customers: Customers supplied for the window.
        new_customers: Customers whose signup falls inside the window.
        ordering_customers: Distinct customers with an order in the window.
        returning_customers_raw: ``ordering_customers - total_customers``.
            Approximate and may be negative.
        conversion_rate: ordering / total * 100.
        customer_lifetime_value: Order revenue per ordering customer.
        total_revenue: Order revenue the lifetime value is based on.
    """

    total_customers: int
    new_customers: int
    ordering_customers: int
    returning_customers_raw: int
    conversion_rate: float
    customer_lifetime_value: Decimal
    total_revenue: Decimal

    @property
    def returning_customers(self) -> int:
        """Returning customers clamped at zero."""
        return max(0, self.returning_customers_raw)


def customer_metrics(
    orders: Sequence[Order],
    customers: Sequence[Customer],
    window: AnalyticsWindow,
) -> CustomerMetricsResult:
    """Compute customer totals, conversion and lifetime value.

    Raises:
        DataIntegrityError: If an order total is negative.
    """
    total_revenue = ZERO
    ordering: set[str] = set()
    for order in orders:
        _require_non_negative(order.total_amount, "total_amount", order.id)
        total_revenue += order.total_amount
        if order.customer_id:
            ordering.add(order.customer_id)

    total_customers = len(customers)
    new_customers = sum(1 for c in customers if window.contains(ensure_aware(c.created_at)))

    return CustomerMetricsResult(
        total_customers=total_customers,
        new_customers=new_customers,
        ordering_customers=len(ordering),
        returning_customers_raw=len(ordering) - total_customers,
        conversion_rate=safe_percentage(len(ordering), total_customers),
        customer_lifetime_value=safe_average(total_revenue, len(ordering)),
        total_revenue=total_revenue,
    )


# =============================================================================
# TopCustomers
# =============================================================================


@dataclass
class _CustomerBucket:
    orders: int = 0
    revenue: Decimal = ZERO


@dataclass(frozen=True)
class TopCustomersResult:
    """Highest-spending customers in the window.

    Attributes:
        top_customers: Customers ranked by order revenue.
        ranked_customers: Distinct ordering customers, before truncation.
    """

    top_customers: list[TopCustomerItem]
    ranked_customers: int


def top_customers(orders: Sequence[Order], top_n: int = 10) -> TopCustomersResult:
    """Rank ordering customers by order revenue.

    Ties break on order count descending, then customer id ascending. Guest
    orders have no customer to rank and are skipped.

    Raises:
        DataIntegrityError: If an order total is negative.
    """
    buckets: dict[str, _CustomerBucket] = {}

    for order in orders:
        _require_non_negative(order.total_amount, "total_amount", order.id)
        if not order.customer_id:
            continue
        bucket = buckets.setdefault(order.customer_id, _CustomerBucket())
        bucket.orders += 1
        bucket.revenue += order.total_amount

    ranked = sorted(buckets.items(), key=lambda e: (-e[1].revenue, -e[1].orders, e[0]))

    return TopCustomersResult(
        top_customers=[
            TopCustomerItem(customer_id=customer_id, orders=bucket.orders, revenue=bucket.revenue)
            for customer_id, bucket in ranked[:top_n]
        ],
        ranked_customers=len(buckets),
    )


# =============================================================================
# OrderStatusBreakdown
# =============================================================================


@dataclass(frozen=True)
class StatusBreakdownResult:
    """Order counts per lifecycle status.

    Attributes:
        statuses: Every status seen, most frequent first.
        total_orders: Orders counted; equals the sum of status counts.
    """

    statuses: list[OrderStatusItem]
    total_orders: int


def status_breakdown(orders: Sequence[Order]) -> StatusBreakdownResult:
    """Count orders per status with each status's share of the window."""
    counts: dict[OrderStatus, int] = {}
    for order in orders:
        counts[order.status] = counts.get(order.status, 0) + 1

    total = len(orders)
    ranked = sorted(counts.items(), key=lambda e: (-e[1], e[0].value))

    return StatusBreakdownResult(
        statuses=[
            OrderStatusItem(status=status, count=count, percentage=safe_percentage(count, total))
            for status, count in ranked
        ],
        total_orders=total,
    )
