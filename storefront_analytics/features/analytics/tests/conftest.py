"""Test fixtures for analytics module."""

import itertools
from collections.abc import Callable
from datetime import UTC, datetime
from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient

from storefront_analytics.core.config import Settings
from storefront_analytics.features.analytics.schemas import (
    AnalyticsWindow,
    Customer,
    Order,
    OrderItem,
    OrderStatus,
    Product,
    RecordBatch,
    SearchEvent,
)
from storefront_analytics.main import app

TENANT = "tenant-pharmacy"


@pytest.fixture
async def client():
    """Create async HTTP client for testing analytics endpoints."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def settings() -> Settings:
    """Settings with defaults and parallel aggregation on."""
    return Settings(analytics_parallel_aggregators=True, analytics_timezone="UTC")


@pytest.fixture
def window() -> AnalyticsWindow:
    """One-week window, 1-8 March 2024 UTC."""
    return AnalyticsWindow(
        start=datetime(2024, 3, 1, tzinfo=UTC),
        end=datetime(2024, 3, 8, tzinfo=UTC),
    )


@pytest.fixture
def make_order() -> Callable[..., Order]:
    """Factory for orders with sequential ids."""
    counter = itertools.count(1)

    def _make(
        total: str = "100.00",
        *,
        order_id: str | None = None,
        created_at: datetime = datetime(2024, 3, 2, 10, 0, tzinfo=UTC),
        customer_id: str | None = "cust-1",
        city: str | None = None,
        tenant_id: str = TENANT,
    ) -> Order:
        return Order(
            id=order_id or f"ord-{next(counter):03d}",
            tenant_id=tenant_id,
            customer_id=customer_id,
            total_amount=Decimal(total),
            status=OrderStatus.DELIVERED,
            created_at=created_at,
            delivery_city=city,
        )

    return _make


@pytest.fixture
def make_item() -> Callable[..., OrderItem]:
    """Factory for order items."""

    def _make(
        order_id: str,
        line_total: str = "100.00",
        *,
        product_id: str = "prod-1",
        quantity: int = 1,
        category: str | None = "Medicines",
    ) -> OrderItem:
        return OrderItem(
            order_id=order_id,
            product_id=product_id,
            quantity=quantity,
            line_total=Decimal(line_total),
            category_name=category,
        )

    return _make


@pytest.fixture
def make_customer() -> Callable[..., Customer]:
    """Factory for customers."""

    def _make(
        customer_id: str,
        created_at: datetime = datetime(2024, 3, 1, 9, 0, tzinfo=UTC),
        tenant_id: str = TENANT,
    ) -> Customer:
        return Customer(id=customer_id, tenant_id=tenant_id, created_at=created_at)

    return _make


@pytest.fixture
def scenario_a_batch(make_order, make_item, make_customer) -> RecordBatch:
    """Three same-day orders of 100/200/300, one Medicines item each."""
    orders = [
        make_order("100.00", order_id="ord-a", customer_id="cust-1", city="Pune"),
        make_order("200.00", order_id="ord-b", customer_id="cust-2", city="Pune"),
        make_order("300.00", order_id="ord-c", customer_id="cust-3", city="Mumbai"),
    ]
    return RecordBatch(
        orders=orders,
        order_items=[
            make_item("ord-a", "100.00", product_id="prod-paracetamol", quantity=2),
            make_item("ord-b", "200.00", product_id="prod-vitamin-c", quantity=1),
            make_item("ord-c", "300.00", product_id="prod-inhaler", quantity=1),
        ],
        customers=[make_customer("cust-1"), make_customer("cust-2"), make_customer("cust-3")],
        products=[
            Product(id="prod-paracetamol", name="Paracetamol 500mg", inventory_count=4),
            Product(id="prod-vitamin-c", name="Vitamin C", inventory_count=120),
            Product(id="prod-inhaler", name="Inhaler", inventory_count=0),
        ],
        search_events=[
            SearchEvent(query="paracetamol", clicked_product_id="prod-paracetamol"),
            SearchEvent(query="Paracetamol"),
        ],
    )
