"""Period-over-period comparison.

The previous period is the equal-length window immediately before the
current one (see ``window.previous_window``). Only a reduced metric set is
compared: order revenue, order count and customer count.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from storefront_analytics.core.exceptions import DataIntegrityError
from storefront_analytics.features.analytics.records import ScopedRecords
from storefront_analytics.features.analytics.schemas import (
    Customer,
    Order,
    PeriodDeltas,
    PeriodTotals,
    PreviousPeriod,
)


@dataclass(frozen=True)
class PeriodComparison:
    """Totals for both periods and the deltas between them.

    Attributes:
        current: Reduced totals of the current window.
        previous: Reduced totals and bounds of the previous window.
        deltas: Percentage changes, ``None`` for metrics new this period.
    """

    current: PeriodTotals
    previous: PreviousPeriod
    deltas: PeriodDeltas


def period_totals(orders: Sequence[Order], customers: Sequence[Customer]) -> PeriodTotals:
    """Sum order revenue and count orders and customers.

    Raises:
        DataIntegrityError: If an order total is negative.
    """
    revenue = Decimal("0")
    for order in orders:
        if order.total_amount < 0:
            raise DataIntegrityError(
                message=f"Negative total_amount on record '{order.id}'",
                details={"field": "total_amount", "record_id": order.id},
            )
        revenue += order.total_amount
    return PeriodTotals(revenue=revenue, orders=len(orders), customers=len(customers))


def percentage_delta(current: Decimal | int, previous: Decimal | int) -> float | None:
    """Percentage change from ``previous`` to ``current``.

    Returns:
        The change rounded to 2 decimals; ``None`` when there is no baseline
        (previous is zero, current positive); ``0.0`` when both are zero.
    """
    if previous > 0:
        change = (Decimal(current) - Decimal(previous)) / Decimal(previous) * 100
        return round(float(change), 2)
    if current > 0:
        return None
    return 0.0


def compare_periods(current: ScopedRecords, previous: ScopedRecords) -> PeriodComparison:
    """Compare reduced totals of two scoped windows.

    Args:
        current: Records of the current window.
        previous: Records of the preceding window.

    Returns:
        Period comparison.
    """
    current_totals = period_totals(current.orders, current.customers)
    previous_totals = period_totals(previous.orders, previous.customers)

    return PeriodComparison(
        current=current_totals,
        previous=PreviousPeriod(
            start=previous.window.start,
            end=previous.window.end,
            revenue=previous_totals.revenue,
            orders=previous_totals.orders,
            customers=previous_totals.customers,
        ),
        deltas=PeriodDeltas(
            revenue_pct=percentage_delta(current_totals.revenue, previous_totals.revenue),
            orders_pct=percentage_delta(current_totals.orders, previous_totals.orders),
            customers_pct=percentage_delta(current_totals.customers, previous_totals.customers),
        ),
    )
