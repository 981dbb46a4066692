"""Tests for record scoping and the in-memory record source."""

from datetime import UTC, datetime

import pytest

from storefront_analytics.core.exceptions import DataIntegrityError
from storefront_analytics.features.analytics.records import (
    InMemoryRecordSource,
    scope_records,
)
from storefront_analytics.features.analytics.schemas import (
    AnalyticsWindow,
    Product,
    RecordBatch,
    SearchEvent,
)

TENANT = "tenant-pharmacy"
OTHER = "tenant-other"


class TestScopeRecords:
    """Tests for scope_records."""

    def test_keeps_in_window_rows(self, scenario_a_batch, window: AnalyticsWindow) -> None:
        """Rows inside the window should be kept as immutable tuples."""
        scoped = scope_records(scenario_a_batch, window)

        assert len(scoped.orders) == 3
        assert len(scoped.order_items) == 3
        assert scoped.excluded_orders == 0
        assert isinstance(scoped.orders, tuple)

    def test_drops_out_of_window_orders_and_their_items(
        self, make_order, make_item, window: AnalyticsWindow
    ) -> None:
        """An order at the exclusive end bound should be dropped with its items."""
        batch = RecordBatch(
            orders=[
                make_order(order_id="ord-in"),
                make_order(order_id="ord-late", created_at=window.end),
            ],
            order_items=[make_item("ord-in"), make_item("ord-late")],
        )

        scoped = scope_records(batch, window)

        assert [o.id for o in scoped.orders] == ["ord-in"]
        assert [i.order_id for i in scoped.order_items] == ["ord-in"]
        assert scoped.excluded_orders == 1

    def test_item_referencing_unknown_order_raises(
        self, make_order, make_item, window: AnalyticsWindow
    ) -> None:
        """An item whose order was never supplied should be rejected."""
        batch = RecordBatch(orders=[make_order(order_id="ord-1")], order_items=[make_item("ord-x")])

        with pytest.raises(DataIntegrityError) as exc_info:
            scope_records(batch, window)

        assert exc_info.value.details["order_id"] == "ord-x"

    def test_duplicate_order_id_raises(self, make_order, window: AnalyticsWindow) -> None:
        """Two orders with the same id should be rejected."""
        batch = RecordBatch(orders=[make_order(order_id="ord-1"), make_order(order_id="ord-1")])

        with pytest.raises(DataIntegrityError):
            scope_records(batch, window)

    def test_empty_batch(self, window: AnalyticsWindow) -> None:
        """An empty batch should scope to empty tuples."""
        scoped = scope_records(RecordBatch(), window)

        assert scoped.orders == ()
        assert scoped.window == window


class TestInMemoryRecordSource:
    """Tests for InMemoryRecordSource."""

    @pytest.mark.asyncio
    async def test_filters_tenant_and_window(
        self, make_order, make_item, make_customer, window: AnalyticsWindow
    ) -> None:
        """Only the tenant's rows inside the window should be returned."""
        batch = RecordBatch(
            orders=[
                make_order(order_id="ord-mine"),
                make_order(order_id="ord-other", tenant_id=OTHER),
                make_order(order_id="ord-old", created_at=datetime(2024, 2, 1, tzinfo=UTC)),
            ],
            order_items=[make_item("ord-mine"), make_item("ord-other"), make_item("ord-old")],
            customers=[
                make_customer("c1"),
                make_customer("c2", tenant_id=OTHER),
                make_customer("c3", created_at=datetime(2024, 1, 1, tzinfo=UTC)),
            ],
            products=[
                Product(id="p-shared", name="Shared", inventory_count=5),
                Product(id="p-mine", name="Mine", inventory_count=5, tenant_id=TENANT),
                Product(id="p-other", name="Other", inventory_count=5, tenant_id=OTHER),
            ],
            search_events=[
                SearchEvent(query="a"),
                SearchEvent(query="b", tenant_id=OTHER),
                SearchEvent(query="c", created_at=datetime(2024, 1, 1, tzinfo=UTC)),
            ],
        )

        fetched = await InMemoryRecordSource(batch).fetch(TENANT, window)

        assert [o.id for o in fetched.orders] == ["ord-mine"]
        assert [i.order_id for i in fetched.order_items] == ["ord-mine"]
        assert [c.id for c in fetched.customers] == ["c1"]
        assert [p.id for p in fetched.products] == ["p-shared", "p-mine"]
        assert [e.query for e in fetched.search_events] == ["a"]

    @pytest.mark.asyncio
    async def test_passes_through_orphan_items(
        self, make_order, make_item, window: AnalyticsWindow
    ) -> None:
        """Items of an unknown order should reach scoping and be rejected there."""
        batch = RecordBatch(orders=[make_order(order_id="ord-1")], order_items=[make_item("ord-ghost")])

        fetched = await InMemoryRecordSource(batch).fetch(TENANT, window)

        assert [i.order_id for i in fetched.order_items] == ["ord-ghost"]
        with pytest.raises(DataIntegrityError):
            scope_records(fetched, window)

    @pytest.mark.asyncio
    async def test_shared_order_id_resolved_per_tenant(
        self, make_order, make_item, window: AnalyticsWindow
    ) -> None:
        """Items of another tenant's order with the same id should not leak in."""
        batch = RecordBatch(
            orders=[
                make_order("100.00", order_id="o1"),
                make_order("900.00", order_id="o1", tenant_id=OTHER),
            ],
            order_items=[
                make_item("o1", "100.00", category="A-cat").model_copy(update={"tenant_id": TENANT}),
                make_item("o1", "900.00", category="B-cat").model_copy(update={"tenant_id": OTHER}),
            ],
        )
        source = InMemoryRecordSource(batch)

        mine = await source.fetch(TENANT, window)
        theirs = await source.fetch(OTHER, window)

        assert [i.category_name for i in mine.order_items] == ["A-cat"]
        assert [i.category_name for i in theirs.order_items] == ["B-cat"]
        assert len(scope_records(mine, window).order_items) == 1

    @pytest.mark.asyncio
    async def test_item_of_other_tenant_order_dropped(
        self, make_order, make_item, window: AnalyticsWindow
    ) -> None:
        """An untagged item whose order belongs only to another tenant should be dropped."""
        batch = RecordBatch(
            orders=[make_order(order_id="o1"), make_order(order_id="o2", tenant_id=OTHER)],
            order_items=[make_item("o1"), make_item("o2")],
        )

        fetched = await InMemoryRecordSource(batch).fetch(TENANT, window)

        assert [i.order_id for i in fetched.order_items] == ["o1"]

    @pytest.mark.asyncio
    async def test_untagged_item_of_shared_order_id_raises(
        self, make_order, make_item, window: AnalyticsWindow
    ) -> None:
        """An untagged item cannot be attributed when tenants share its order id."""
        batch = RecordBatch(
            orders=[make_order(order_id="o1"), make_order(order_id="o1", tenant_id=OTHER)],
            order_items=[make_item("o1")],
        )

        with pytest.raises(DataIntegrityError) as exc_info:
            await InMemoryRecordSource(batch).fetch(TENANT, window)

        assert exc_info.value.details["order_id"] == "o1"

    @pytest.mark.asyncio
    async def test_tagged_item_without_own_order_is_orphan(
        self, make_order, make_item, window: AnalyticsWindow
    ) -> None:
        """An item tagged for this tenant but pointing at another tenant's order is an orphan."""
        batch = RecordBatch(
            orders=[make_order(order_id="o2", tenant_id=OTHER)],
            order_items=[make_item("o2").model_copy(update={"tenant_id": TENANT})],
        )

        fetched = await InMemoryRecordSource(batch).fetch(TENANT, window)

        with pytest.raises(DataIntegrityError):
            scope_records(fetched, window)
