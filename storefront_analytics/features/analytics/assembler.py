"""Snapshot assembly.

Merges aggregator outputs into one immutable ``AnalyticsSnapshot`` without
recomputing anything, after cross-checking that the pieces agree. Any
disagreement is a programming error and aborts the snapshot.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import Decimal

from storefront_analytics.core.exceptions import AssemblyError
from storefront_analytics.features.analytics.aggregators import (
    CategoryBreakdownResult,
    CustomerMetricsResult,
    GeoBreakdownResult,
    ProductPerformanceResult,
    RevenueSeriesResult,
    SearchConversionResult,
    StatusBreakdownResult,
    TopCustomersResult,
    safe_average,
)
from storefront_analytics.features.analytics.comparator import PeriodComparison
from storefront_analytics.features.analytics.schemas import AnalyticsSnapshot, AnalyticsWindow

MAX_RANKED_ENTRIES = 10


@dataclass(frozen=True)
class AggregateResults:
    """Outputs of every aggregator for one window."""

    revenue: RevenueSeriesResult
    products: ProductPerformanceResult
    categories: CategoryBreakdownResult
    geo: GeoBreakdownResult
    searches: SearchConversionResult
    customers: CustomerMetricsResult
    top_customers: TopCustomersResult
    statuses: StatusBreakdownResult
    comparison: PeriodComparison


def _fail(message: str, **details: object) -> AssemblyError:
    return AssemblyError(message=message, details={k: str(v) for k, v in details.items()})


def _check_non_negative(**values: Decimal | int | float) -> None:
    for name, value in values.items():
        if isinstance(value, float) and not math.isfinite(value):
            raise _fail(f"{name} is not finite", field=name, value=value)
        if value < 0:
            raise _fail(f"{name} is negative", field=name, value=value)


def _check_bounded(**lists: list[object]) -> None:
    for name, entries in lists.items():
        if len(entries) > MAX_RANKED_ENTRIES:
            raise _fail(f"{name} exceeds {MAX_RANKED_ENTRIES} entries", field=name, size=len(entries))


def validate_results(results: AggregateResults) -> None:
    """Cross-check aggregator outputs.

    Raises:
        AssemblyError: If any internal invariant is violated.
    """
    revenue = results.revenue
    customers = results.customers
    current = results.comparison.current

    _check_non_negative(
        total_revenue=revenue.total_revenue,
        total_orders=revenue.total_orders,
        item_revenue=results.categories.item_revenue,
        total_customers=customers.total_customers,
        new_customers=customers.new_customers,
        ordering_customers=customers.ordering_customers,
        conversion_rate=customers.conversion_rate,
        customer_lifetime_value=customers.customer_lifetime_value,
    )
    for point in revenue.points:
        _check_non_negative(daily_revenue=point.revenue, daily_orders=point.orders)
    for category in results.categories.categories:
        _check_non_negative(category_revenue=category.revenue, category_orders=category.orders)
    for city in results.geo.top_cities:
        _check_non_negative(city_revenue=city.revenue, city_orders=city.orders)
    for search in results.searches.top_searches:
        _check_non_negative(search_count=search.count, search_conversion_rate=search.conversion_rate)
    for product in results.products.top_products:
        _check_non_negative(product_revenue=product.revenue, product_units=product.units_sold)
    for customer in results.top_customers.top_customers:
        _check_non_negative(customer_revenue=customer.revenue, customer_orders=customer.orders)
    for status in results.statuses.statuses:
        _check_non_negative(status_count=status.count, status_percentage=status.percentage)

    _check_bounded(
        top_products=list(results.products.top_products),
        low_stock_products=list(results.products.low_stock_products),
        top_searches=list(results.searches.top_searches),
        top_cities=list(results.geo.top_cities),
        top_customers=list(results.top_customers.top_customers),
    )

    daily_sum = sum((p.revenue for p in revenue.points), Decimal("0"))
    if daily_sum != revenue.total_revenue:
        raise _fail("daily revenue does not sum to total revenue", daily=daily_sum, total=revenue.total_revenue)

    category_sum = sum((c.revenue for c in results.categories.categories), Decimal("0"))
    if category_sum != results.categories.item_revenue:
        raise _fail(
            "category revenue does not sum to item revenue",
            categories=category_sum,
            item_revenue=results.categories.item_revenue,
        )

    status_sum = sum(status.count for status in results.statuses.statuses)
    if status_sum != results.statuses.total_orders or status_sum != revenue.total_orders:
        raise _fail(
            "status counts do not sum to total orders",
            statuses=status_sum,
            total_orders=revenue.total_orders,
        )

    if results.top_customers.ranked_customers != customers.ordering_customers:
        raise _fail(
            "customer ranking disagrees with ordering customers",
            ranked=results.top_customers.ranked_customers,
            ordering=customers.ordering_customers,
        )

    if customers.total_revenue != revenue.total_revenue:
        raise _fail(
            "customer metrics revenue disagrees with revenue series",
            customers=customers.total_revenue,
            series=revenue.total_revenue,
        )

    if (current.revenue, current.orders, current.customers) != (
        revenue.total_revenue,
        revenue.total_orders,
        customers.total_customers,
    ):
        raise _fail(
            "period comparison totals disagree with aggregators",
            comparison_revenue=current.revenue,
            comparison_orders=current.orders,
            comparison_customers=current.customers,
        )


def assemble_snapshot(
    tenant_id: str,
    window: AnalyticsWindow,
    timezone: str,
    results: AggregateResults,
) -> AnalyticsSnapshot:
    """Merge aggregator outputs into one immutable snapshot.

    Args:
        tenant_id: Tenant the snapshot belongs to.
        window: Current reporting window.
        timezone: Timezone used for date buckets.
        results: Every aggregator's output.

    Returns:
        The analytics snapshot.

    Raises:
        AssemblyError: If the results are internally inconsistent.
    """
    validate_results(results)

    revenue = results.revenue
    customers = results.customers

    return AnalyticsSnapshot(
        tenant_id=tenant_id,
        period_start=window.start,
        period_end=window.end,
        timezone=timezone,
        total_revenue=revenue.total_revenue,
        total_orders=revenue.total_orders,
        average_order_value=safe_average(revenue.total_revenue, revenue.total_orders),
        item_revenue=results.categories.item_revenue,
        conversion_rate=customers.conversion_rate,
        total_customers=customers.total_customers,
        new_customers=customers.new_customers,
        returning_customers=customers.returning_customers,
        customer_lifetime_value=customers.customer_lifetime_value,
        top_customers=results.top_customers.top_customers,
        top_products=results.products.top_products,
        low_stock_products=results.products.low_stock_products,
        top_searches=results.searches.top_searches,
        daily_revenue=revenue.points,
        category_breakdown=results.categories.categories,
        top_cities=results.geo.top_cities,
        order_status_breakdown=results.statuses.statuses,
        previous_period=results.comparison.previous,
        deltas=results.comparison.deltas,
    )
