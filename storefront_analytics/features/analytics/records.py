"""Record sources and window scoping.

A record source hands over the five row sets for one tenant and window. The
engine trusts the tenant filter but re-checks window membership and order
references before any aggregation starts.
"""

from dataclasses import dataclass
from typing import Protocol

from storefront_analytics.core.exceptions import DataIntegrityError
from storefront_analytics.core.logging import get_logger
from storefront_analytics.features.analytics.schemas import (
    AnalyticsWindow,
    Customer,
    Order,
    OrderItem,
    Product,
    RecordBatch,
    SearchEvent,
)
from storefront_analytics.features.analytics.window import ensure_aware

logger = get_logger(__name__)


class RecordSource(Protocol):
    """Supplies tenant rows for a window."""

    async def fetch(self, tenant_id: str, window: AnalyticsWindow) -> RecordBatch:
        """Fetch rows for ``tenant_id`` within ``window``."""
        ...


class InMemoryRecordSource:
    """Record source over an already-materialized batch.

    Filters by tenant and window the way a database-backed source would.
    Orders are keyed by tenant and id, so an item is matched only against its
    own tenant's orders; items of another tenant's order are dropped. Items
    whose order id is unknown to the batch are passed through so the engine
    can reject them.
    """

    def __init__(self, batch: RecordBatch) -> None:
        """Initialize the source.

        Args:
            batch: Rows for one or more tenants, any time range.
        """
        self.batch = batch

    async def fetch(self, tenant_id: str, window: AnalyticsWindow) -> RecordBatch:
        """Return the rows belonging to ``tenant_id`` and ``window``.

        Raises:
            DataIntegrityError: If an item without a tenant references an
                order id that several tenants share.
        """
        orders = [
            order
            for order in self.batch.orders
            if order.tenant_id == tenant_id and window.contains(ensure_aware(order.created_at))
        ]
        in_scope = {order.id for order in orders}
        owners: dict[str, set[str]] = {}
        for order in self.batch.orders:
            owners.setdefault(order.id, set()).add(order.tenant_id)

        return RecordBatch(
            orders=orders,
            order_items=[
                item
                for item in self.batch.order_items
                if self._item_belongs(item, tenant_id, owners, in_scope)
            ],
            customers=[
                customer
                for customer in self.batch.customers
                if customer.tenant_id == tenant_id
                and window.contains(ensure_aware(customer.created_at))
            ],
            products=[
                product
                for product in self.batch.products
                if product.tenant_id is None or product.tenant_id == tenant_id
            ],
            search_events=[
                event
                for event in self.batch.search_events
                if (event.tenant_id is None or event.tenant_id == tenant_id)
                and (event.created_at is None or window.contains(ensure_aware(event.created_at)))
            ],
        )

    @staticmethod
    def _item_belongs(
        item: OrderItem,
        tenant_id: str,
        owners: dict[str, set[str]],
        in_scope: set[str],
    ) -> bool:
        # Orders are identified by (tenant_id, order id); an item is resolved
        # against its own tenant's orders only.
        tenants = owners.get(item.order_id)
        if tenants is None:
            return True
        if item.tenant_id is not None:
            if item.tenant_id != tenant_id:
                return False
            return item.order_id in in_scope or tenant_id not in tenants
        if tenant_id not in tenants:
            return False
        if len(tenants) > 1:
            raise DataIntegrityError(
                message=f"Order item for order '{item.order_id}' has no tenant and the order id "
                "is shared by several tenants",
                details={"order_id": item.order_id, "product_id": item.product_id},
            )
        return item.order_id in in_scope


@dataclass(frozen=True)
class ScopedRecords:
    """Immutable, window-checked row sets shared by all aggregators.

    Attributes:
        window: Window the rows were scoped to.
        orders: Orders placed inside the window.
        order_items: Items whose order is inside the window.
        customers: Customers as supplied.
        products: Catalog products as supplied.
        search_events: Search events as supplied.
        excluded_orders: Supplied orders dropped for falling outside the window.
    """

    window: AnalyticsWindow
    orders: tuple[Order, ...]
    order_items: tuple[OrderItem, ...]
    customers: tuple[Customer, ...]
    products: tuple[Product, ...]
    search_events: tuple[SearchEvent, ...]
    excluded_orders: int = 0


def scope_records(batch: RecordBatch, window: AnalyticsWindow) -> ScopedRecords:
    """Check references and drop rows outside the window.

    Args:
        batch: Rows supplied by a record source.
        window: Reporting window.

    Returns:
        Scoped, immutable row sets.

    Raises:
        DataIntegrityError: On duplicate order ids or an item referencing an
            order that was not supplied.
    """
    seen: set[str] = set()
    in_window: list[Order] = []
    outside: set[str] = set()

    for order in batch.orders:
        if order.id in seen:
            raise DataIntegrityError(
                message=f"Duplicate order id '{order.id}'",
                details={"order_id": order.id},
            )
        seen.add(order.id)
        if window.contains(ensure_aware(order.created_at)):
            in_window.append(order)
        else:
            outside.add(order.id)

    items: list[OrderItem] = []
    for item in batch.order_items:
        if item.order_id not in seen:
            raise DataIntegrityError(
                message=f"Order item references unknown order '{item.order_id}'",
                details={"order_id": item.order_id, "product_id": item.product_id},
            )
        if item.order_id not in outside:
            items.append(item)

    if outside:
        logger.debug(
            "analytics.orders_out_of_window",
            excluded_orders=len(outside),
            excluded_items=len(batch.order_items) - len(items),
        )

    return ScopedRecords(
        window=window,
        orders=tuple(in_window),
        order_items=tuple(items),
        customers=tuple(batch.customers),
        products=tuple(batch.products),
        search_events=tuple(batch.search_events),
        excluded_orders=len(outside),
    )
