"""Tests for snapshot assembly and its consistency checks."""

from dataclasses import replace
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest

from storefront_analytics.core.exceptions import AssemblyError
from storefront_analytics.features.analytics.aggregators import (
    category_breakdown,
    customer_metrics,
    geo_breakdown,
    product_performance,
    revenue_time_series,
    search_conversion,
    status_breakdown,
    top_customers,
)
from storefront_analytics.features.analytics.assembler import AggregateResults, assemble_snapshot
from storefront_analytics.features.analytics.comparator import compare_periods
from storefront_analytics.features.analytics.records import scope_records
from storefront_analytics.features.analytics.schemas import (
    AnalyticsWindow,
    ProductPerformanceItem,
    RecordBatch,
)
from storefront_analytics.features.analytics.window import previous_window


@pytest.fixture
def results(scenario_a_batch, window: AnalyticsWindow) -> AggregateResults:
    """Consistent aggregator outputs for scenario A."""
    scoped = scope_records(scenario_a_batch, window)
    previous = scope_records(RecordBatch(), previous_window(window))
    return AggregateResults(
        revenue=revenue_time_series(scoped.orders, ZoneInfo("UTC")),
        products=product_performance(scoped.order_items, scoped.products),
        categories=category_breakdown(scoped.order_items),
        geo=geo_breakdown(scoped.orders),
        searches=search_conversion(scoped.search_events),
        customers=customer_metrics(scoped.orders, scoped.customers, window),
        top_customers=top_customers(scoped.orders),
        statuses=status_breakdown(scoped.orders),
        comparison=compare_periods(scoped, previous),
    )


class TestAssembleSnapshot:
    """Tests for assemble_snapshot."""

    def test_merges_without_recomputing(self, results: AggregateResults, window) -> None:
        """Aggregator outputs should be copied into the snapshot as computed."""
        snapshot = assemble_snapshot("tenant-pharmacy", window, "UTC", results)

        assert snapshot.total_revenue == Decimal("600")
        assert snapshot.total_orders == 3
        assert snapshot.average_order_value == Decimal("200.00")
        assert snapshot.item_revenue == Decimal("600")
        assert snapshot.daily_revenue == results.revenue.points
        assert snapshot.top_products == results.products.top_products
        assert snapshot.top_cities[0].city == "Pune"
        assert snapshot.previous_period == results.comparison.previous
        assert snapshot.period_start == window.start
        assert snapshot.timezone == "UTC"

    def test_low_stock_and_searches(self, results: AggregateResults, window) -> None:
        """Low stock and search lists should carry through unchanged."""
        snapshot = assemble_snapshot("tenant-pharmacy", window, "UTC", results)

        assert [p.product_id for p in snapshot.low_stock_products] == [
            "prod-inhaler",
            "prod-paracetamol",
        ]
        assert snapshot.top_searches[0].query == "paracetamol"
        assert snapshot.top_searches[0].conversion_rate == 50.0

    def test_daily_sum_mismatch(self, results: AggregateResults, window) -> None:
        """Daily points that do not sum to total revenue should abort."""
        forged = replace(results, revenue=replace(results.revenue, total_revenue=Decimal("601")))

        with pytest.raises(AssemblyError) as exc_info:
            assemble_snapshot("tenant-pharmacy", window, "UTC", forged)

        assert exc_info.value.status_code == 500

    def test_category_sum_mismatch(self, results: AggregateResults, window) -> None:
        """Categories that do not sum to item revenue should abort."""
        forged = replace(
            results, categories=replace(results.categories, item_revenue=Decimal("1"))
        )

        with pytest.raises(AssemblyError):
            assemble_snapshot("tenant-pharmacy", window, "UTC", forged)

    def test_comparison_mismatch(self, results: AggregateResults, window) -> None:
        """Comparison totals that disagree with the aggregators should abort."""
        current = results.comparison.current.model_copy(update={"orders": 99})
        forged = replace(results, comparison=replace(results.comparison, current=current))

        with pytest.raises(AssemblyError):
            assemble_snapshot("tenant-pharmacy", window, "UTC", forged)

    def test_oversized_ranked_list(self, results: AggregateResults, window) -> None:
        """A ranked list longer than ten entries should abort."""
        entries = [
            ProductPerformanceItem(
                product_id=f"p{i}", name="x", units_sold=1, revenue=Decimal("0")
            )
            for i in range(11)
        ]
        forged = replace(results, products=replace(results.products, top_products=entries))

        with pytest.raises(AssemblyError):
            assemble_snapshot("tenant-pharmacy", window, "UTC", forged)

    def test_negative_metric(self, results: AggregateResults, window) -> None:
        """A negative count should abort."""
        forged = replace(results, customers=replace(results.customers, new_customers=-1))

        with pytest.raises(AssemblyError):
            assemble_snapshot("tenant-pharmacy", window, "UTC", forged)

    def test_non_finite_rate(self, results: AggregateResults, window) -> None:
        """A NaN rate should abort."""
        forged = replace(
            results, customers=replace(results.customers, conversion_rate=float("nan"))
        )

        with pytest.raises(AssemblyError):
            assemble_snapshot("tenant-pharmacy", window, "UTC", forged)

    def test_status_and_top_customers_surface(self, results: AggregateResults, window) -> None:
        """Status counts and the customer ranking should reach the snapshot."""
        snapshot = assemble_snapshot("tenant-pharmacy", window, "UTC", results)

        assert [(s.status.value, s.count, s.percentage) for s in snapshot.order_status_breakdown] == [
            ("delivered", 3, 100.0),
        ]
        assert [c.customer_id for c in snapshot.top_customers] == ["cust-3", "cust-2", "cust-1"]

    def test_status_sum_mismatch(self, results: AggregateResults, window) -> None:
        """Status counts that do not add up to total orders should abort."""
        forged = replace(results, statuses=replace(results.statuses, statuses=[]))

        with pytest.raises(AssemblyError):
            assemble_snapshot("tenant-pharmacy", window, "UTC", forged)

    def test_customer_ranking_mismatch(self, results: AggregateResults, window) -> None:
        """A ranking that disagrees with ordering customers should abort."""
        forged = replace(results, top_customers=replace(results.top_customers, ranked_customers=7))

        with pytest.raises(AssemblyError):
            assemble_snapshot("tenant-pharmacy", window, "UTC", forged)
