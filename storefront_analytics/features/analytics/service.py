"""Service layer for analytics snapshots.

Fans the independent aggregators and the period comparator out over shared,
immutable scoped records, joins on all of them, then assembles the snapshot.
Either every task succeeds and a complete snapshot is returned, or the first
failure propagates and nothing is returned.
"""

import asyncio
from collections.abc import Callable
from functools import partial
from typing import Any

from storefront_analytics.core.config import Settings, get_settings
from storefront_analytics.core.exceptions import StorefrontAnalyticsError
from storefront_analytics.core.logging import get_logger, tenant_id_ctx
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
from storefront_analytics.features.analytics.records import RecordSource, scope_records
from storefront_analytics.features.analytics.schemas import (
    AnalyticsSnapshot,
    AnalyticsWindow,
    RecordBatch,
    RevenueSeriesResponse,
    TimeGranularity,
)
from storefront_analytics.features.analytics.window import load_timezone, previous_window

logger = get_logger(__name__)


class AnalyticsService:
    """Service for computing tenant analytics snapshots.

    The computation is a pure function of its inputs: identical records,
    window and timezone always produce an identical snapshot.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        """Initialize analytics service.

        Args:
            settings: Settings override (defaults to cached settings).
        """
        self.settings = settings or get_settings()

    async def build_snapshot(
        self,
        source: RecordSource,
        tenant_id: str,
        window: AnalyticsWindow,
        timezone: str | None = None,
    ) -> AnalyticsSnapshot:
        """Fetch both periods from a record source and compute the snapshot.

        Args:
            source: Record source for the tenant's rows.
            tenant_id: Tenant to report on.
            window: Current reporting window.
            timezone: IANA timezone for date buckets (optional).

        Returns:
            The analytics snapshot.
        """
        current, previous = await asyncio.gather(
            source.fetch(tenant_id, window),
            source.fetch(tenant_id, previous_window(window)),
        )
        return await self.compute_snapshot(
            tenant_id=tenant_id,
            window=window,
            current=current,
            previous=previous,
            timezone=timezone,
        )

    async def compute_snapshot(
        self,
        tenant_id: str,
        window: AnalyticsWindow,
        current: RecordBatch,
        previous: RecordBatch | None = None,
        timezone: str | None = None,
    ) -> AnalyticsSnapshot:
        """Compute a snapshot from materialized row sets.

        Args:
            tenant_id: Tenant to report on.
            window: Current reporting window.
            current: Rows for the current window.
            previous: Rows for the preceding window. Missing means an empty
                baseline.
            timezone: IANA timezone for date buckets (optional).

        Returns:
            The analytics snapshot.

        Raises:
            DataIntegrityError: If an input row violates the source contract.
            AssemblyError: If aggregator outputs are inconsistent.
        """
        tz_name = timezone or self.settings.analytics_timezone
        tz = load_timezone(tz_name)
        token = tenant_id_ctx.set(tenant_id)

        try:
            logger.info(
                "analytics.snapshot_started",
                period_start=window.start.isoformat(),
                period_end=window.end.isoformat(),
                timezone=tz_name,
                orders=len(current.orders),
                order_items=len(current.order_items),
                customers=len(current.customers),
                search_events=len(current.search_events),
            )

            scoped = scope_records(current, window)
            scoped_previous = scope_records(previous or RecordBatch(), previous_window(window))

            tasks: dict[str, Callable[[], Any]] = {
                "revenue": partial(revenue_time_series, scoped.orders, tz),
                "products": partial(
                    product_performance,
                    scoped.order_items,
                    scoped.products,
                    self.settings.analytics_top_n,
                    self.settings.analytics_low_stock_threshold,
                ),
                "categories": partial(category_breakdown, scoped.order_items),
                "geo": partial(geo_breakdown, scoped.orders, self.settings.analytics_top_n),
                "searches": partial(
                    search_conversion, scoped.search_events, self.settings.analytics_top_n
                ),
                "customers": partial(customer_metrics, scoped.orders, scoped.customers, window),
                "top_customers": partial(
                    top_customers, scoped.orders, self.settings.analytics_top_n
                ),
                "statuses": partial(status_breakdown, scoped.orders),
                "comparison": partial(compare_periods, scoped, scoped_previous),
            }
            results = AggregateResults(**await self._run_tasks(tasks))

            snapshot = assemble_snapshot(
                tenant_id=tenant_id,
                window=window,
                timezone=tz_name,
                results=results,
            )
        except StorefrontAnalyticsError as e:
            logger.warning(
                "analytics.snapshot_failed",
                error=e.message,
                error_code=e.code,
                details=e.details,
            )
            raise
        finally:
            tenant_id_ctx.reset(token)

        logger.info(
            "analytics.snapshot_computed",
            tenant_id=tenant_id,
            total_revenue=str(snapshot.total_revenue),
            total_orders=snapshot.total_orders,
            excluded_orders=scoped.excluded_orders,
            products_sold=results.products.products_sold,
            city_count=results.geo.city_count,
            total_searches=results.searches.total_searches,
            ranked_customers=results.top_customers.ranked_customers,
            revenue_delta_pct=snapshot.deltas.revenue_pct,
        )
        return snapshot

    async def compute_revenue_series(
        self,
        tenant_id: str,
        window: AnalyticsWindow,
        current: RecordBatch,
        granularity: TimeGranularity = TimeGranularity.DAY,
        timezone: str | None = None,
    ) -> RevenueSeriesResponse:
        """Compute only the revenue series at a chosen granularity.

        Args:
            tenant_id: Tenant to report on.
            window: Reporting window.
            current: Rows for the window.
            granularity: Bucket size.
            timezone: IANA timezone for date buckets (optional).

        Returns:
            Revenue series response.
        """
        tz = load_timezone(timezone or self.settings.analytics_timezone)
        scoped = scope_records(current, window)
        series = revenue_time_series(scoped.orders, tz, granularity)

        logger.info(
            "analytics.revenue_series_computed",
            tenant_id=tenant_id,
            granularity=granularity.value,
            points=len(series.points),
            total_orders=series.total_orders,
        )

        return RevenueSeriesResponse(
            tenant_id=tenant_id,
            period_start=window.start,
            period_end=window.end,
            granularity=granularity,
            points=series.points,
            total_revenue=series.total_revenue,
            total_orders=series.total_orders,
        )

    async def _run_tasks(self, tasks: dict[str, Callable[[], Any]]) -> dict[str, Any]:
        """Run independent aggregation tasks and join on all of them.

        Tasks run in worker threads when parallel aggregation is enabled;
        each reads shared immutable records and owns its accumulators.
        """
        if self.settings.analytics_parallel_aggregators:
            values = await asyncio.gather(*(asyncio.to_thread(task) for task in tasks.values()))
        else:
            values = [task() for task in tasks.values()]
        return dict(zip(tasks, values, strict=True))

