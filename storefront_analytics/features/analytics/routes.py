"""API routes for analytics snapshots.

The caller posts the tenant's rows (covering the previous period too, when
deltas matter) and gets back a computed snapshot. Fetching the rows is the
caller's job; these endpoints only aggregate.
"""

from fastapi import APIRouter, Depends

from storefront_analytics.core.config import Settings, get_settings
from storefront_analytics.core.logging import get_logger
from storefront_analytics.features.analytics.records import InMemoryRecordSource
from storefront_analytics.features.analytics.schemas import (
    AnalyticsSnapshot,
    RevenueSeriesRequest,
    RevenueSeriesResponse,
    SnapshotRequest,
)
from storefront_analytics.features.analytics.service import AnalyticsService
from storefront_analytics.features.analytics.window import resolve_window

logger = get_logger(__name__)

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.post(
    "/snapshots",
    response_model=AnalyticsSnapshot,
    summary="Compute an analytics snapshot",
    description="""
Compute the full business-metrics snapshot for one tenant and window.

**Window**: give `start` and `end` (end exclusive), or a `period` preset
(`today`, `7d`, `30d`, `90d`, `1y`) resolved against `now`.

**Records**: orders, order items, customers, products and search events.
Rows for other tenants or outside the window are ignored. Rows in the
equal-length window before `start` feed the previous-period comparison.

**Errors**:
- 400 when the window cannot be resolved
- 422 `DATA_INTEGRITY_ERROR` for negative amounts, non-positive quantities or
  items referencing unknown orders
""",
)
async def create_snapshot(
    request: SnapshotRequest,
    settings: Settings = Depends(get_settings),
) -> AnalyticsSnapshot:
    """Compute a snapshot over posted records.

    Args:
        request: Snapshot request with window and records.
        settings: Application settings.

    Returns:
        The analytics snapshot.
    """
    window = resolve_window(
        start=request.start,
        end=request.end,
        period=request.period,
        now=request.now,
        timezone=request.timezone,
        settings=settings,
    )
    service = AnalyticsService(settings=settings)
    return await service.build_snapshot(
        source=InMemoryRecordSource(request.records),
        tenant_id=request.tenant_id,
        window=window,
        timezone=request.timezone,
    )


@router.post(
    "/revenue-series",
    response_model=RevenueSeriesResponse,
    summary="Compute a revenue series",
    description="""
Revenue and order counts per day, ISO week or month for one tenant and window.
Buckets without orders are omitted; backfill client-side for a dense chart.
""",
)
async def create_revenue_series(
    request: RevenueSeriesRequest,
    settings: Settings = Depends(get_settings),
) -> RevenueSeriesResponse:
    """Compute a revenue series over posted records.

    Args:
        request: Revenue series request.
        settings: Application settings.

    Returns:
        Revenue series response.
    """
    window = resolve_window(
        start=request.start,
        end=request.end,
        period=request.period,
        now=request.now,
        timezone=request.timezone,
        settings=settings,
    )
    source = InMemoryRecordSource(request.records)
    service = AnalyticsService(settings=settings)
    return await service.compute_revenue_series(
        tenant_id=request.tenant_id,
        window=window,
        current=await source.fetch(request.tenant_id, window),
        granularity=request.granularity,
        timezone=request.timezone,
    )
