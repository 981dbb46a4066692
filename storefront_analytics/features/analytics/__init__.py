"""Analytics module for tenant business-metrics snapshots.

Aggregates orders, order items, customers, products and search events for
one tenant and window into an immutable ``AnalyticsSnapshot``.
"""

from storefront_analytics.features.analytics.records import InMemoryRecordSource, RecordSource
from storefront_analytics.features.analytics.routes import router
from storefront_analytics.features.analytics.schemas import (
    AnalyticsSnapshot,
    AnalyticsWindow,
    PeriodPreset,
    RecordBatch,
    TimeGranularity,
)
from storefront_analytics.features.analytics.service import AnalyticsService

__all__ = [
    "AnalyticsService",
    "AnalyticsSnapshot",
    "AnalyticsWindow",
    "InMemoryRecordSource",
    "PeriodPreset",
    "RecordBatch",
    "RecordSource",
    "TimeGranularity",
    "router",
]
