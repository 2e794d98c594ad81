"""Pytest configuration and fixtures"""
import os
from decimal import Decimal

import pytest

# Set test environment variables before findora modules are imported
os.environ.setdefault("CART_STORAGE_BACKEND", "memory")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ["UPSTASH_REDIS_REST_URL"] = ""
os.environ["UPSTASH_REDIS_REST_TOKEN"] = ""

from findora.cart import (  # noqa: E402
    CartEngine,
    CartItem,
    CartSettings,
    CartStorage,
    MemoryStore,
    QueueNotificationSink,
    SellerInfo,
)


@pytest.fixture
def settings():
    """Storefront defaults: 8% tax, free shipping from 50, 9.99 flat."""
    return CartSettings(
        tax_rate=Decimal("0.08"),
        free_shipping_threshold=Decimal("50"),
        flat_shipping_rate=Decimal("9.99"),
    )


@pytest.fixture
def make_item():
    """Factory for cart line payloads."""
    def _make(
        line_id="prod-a_default",
        product_id="prod-a",
        name="Walnut Desk Organizer",
        price="20",
        max_quantity=5,
        **kwargs,
    ):
        return CartItem(
            id=line_id,
            product_id=product_id,
            name=name,
            slug=kwargs.pop("slug", name.lower().replace(" ", "-")),
            price=Decimal(price),
            max_quantity=max_quantity,
            seller=kwargs.pop("seller", SellerInfo(id="seller-1", business_name="Oak & Pine")),
            **kwargs,
        )
    return _make


@pytest.fixture
def item_a(make_item):
    """Item A: price 20, 5 in stock."""
    return make_item()


@pytest.fixture
def item_b(make_item):
    """Item B: price 10, 2 in stock."""
    return make_item(line_id="prod-b_default", product_id="prod-b", name="Ceramic Mug", price="10", max_quantity=2)


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def storage(memory_store):
    return CartStorage(memory_store, "findora-cart")


@pytest.fixture
def sink():
    return QueueNotificationSink()


@pytest.fixture
def engine(storage, sink, settings):
    """Engine over an empty in-memory store."""
    return CartEngine(storage=storage, notifier=sink, settings=settings)
