"""
Tests for CartEngine - effect running, persistence and queries
"""

import json
import threading
import pytest
from decimal import Decimal
from unittest.mock import Mock

from findora.cart import (
    AdjustmentKind,
    CartEngine,
    CartStorage,
    CatalogListing,
    NotificationKind,
    QueueNotificationSink,
)


def _kinds(notifications):
    return [n.kind for n in notifications]


class TestEngineCommands:
    """Tests for commands routed through the engine."""

    def test_add_item_notifies_sink(self, engine, sink, item_a):
        """Test notifications reach the sink after the add."""
        state = engine.add_item(item_a)

        assert state.total_price == Decimal("31.59")
        assert _kinds(sink.drain()) == [NotificationKind.ITEM_ADDED]

    def test_state_committed_before_effects(self, storage, settings, item_a):
        """Test the sink sees the already-updated state."""
        seen = []
        engine = None

        class Recorder:
            def notify(self, notification):
                seen.append(engine.state.total_items)

        engine = CartEngine(storage=storage, notifier=Recorder(), settings=settings)
        engine.add_item(item_a, quantity=2)

        assert seen == [2]

    def test_clamped_add_notifies_max_quantity(self, engine, sink, item_b):
        """Test adding beyond stock clamps to max with a toast."""
        engine.add_item(item_b)
        engine.add_item(item_b, quantity=5)

        assert engine.get_line_quantity(item_b.id) == 2
        assert NotificationKind.MAX_QUANTITY_REACHED in _kinds(sink.drain())

    def test_clear_cart(self, engine, sink, item_a, item_b):
        """Test clear empties the cart and notifies once."""
        engine.add_item(item_a)
        engine.add_item(item_b)
        sink.drain()

        engine.clear_cart()
        engine.clear_cart()

        assert engine.state.is_empty
        assert _kinds(sink.drain()) == [NotificationKind.CART_CLEARED]

    def test_visibility(self, engine):
        """Test open, close and toggle through the engine."""
        assert engine.open_cart().is_open is True
        assert engine.close_cart().is_open is False
        assert engine.toggle_cart().is_open is True

    def test_apply_discount_with_code(self, engine, item_a):
        """Test discount and code land on the state."""
        engine.add_item(item_a)

        state = engine.apply_discount(Decimal("5"), "SPRING5")

        assert state.discount_code == "SPRING5"
        assert state.total_price == Decimal("26.59")

    def test_update_shipping(self, engine, item_a):
        """Test explicit shipping amount."""
        engine.add_item(item_a)

        assert engine.update_shipping(Decimal("3")).shipping == Decimal("3.00")

    def test_snapshot_is_current_state(self, engine, item_a):
        """Test snapshot returns the committed immutable state."""
        engine.add_item(item_a)

        assert engine.snapshot() is engine.state


class TestEnginePersistence:
    """Tests for durable storage behavior."""

    def test_changes_written_to_store(self, engine, memory_store, item_a):
        """Test the item list is persisted after an add."""
        engine.add_item(item_a, quantity=2)

        record = json.loads(memory_store.read("findora-cart"))
        assert record[0]["id"] == "prod-a_default"
        assert record[0]["quantity"] == 2
        assert record[0]["maxQuantity"] == 5

    def test_visibility_not_persisted(self, engine, memory_store):
        """Test open/close do not write to the store."""
        engine.toggle_cart()

        assert memory_store.read("findora-cart") is None

    def test_restore_round_trip(self, engine, storage, settings, item_a, item_b):
        """Test a new engine rebuilds the same items and totals."""
        engine.add_item(item_a, quantity=2)
        engine.add_item(item_b)
        before = engine.state

        restored = CartEngine(storage=storage, notifier=QueueNotificationSink(), settings=settings)

        assert restored.state.items == before.items
        assert restored.state.subtotal == before.subtotal
        assert restored.state.tax == before.tax
        assert restored.state.total_price == before.total_price

    def test_restore_emits_no_notifications(self, engine, storage, settings, item_a):
        """Test replaying items is silent."""
        engine.add_item(item_a)
        sink = QueueNotificationSink()

        CartEngine(storage=storage, notifier=sink, settings=settings)

        assert len(sink) == 0

    def test_clear_persists_empty_list(self, engine, memory_store, item_a):
        """Test clear writes an empty array."""
        engine.add_item(item_a)
        engine.clear_cart()

        assert json.loads(memory_store.read("findora-cart")) == []

    def test_corrupt_record_starts_empty(self, memory_store, storage, sink, settings):
        """Test a malformed record is discarded."""
        memory_store.write("findora-cart", "{not json")

        engine = CartEngine(storage=storage, notifier=sink, settings=settings)

        assert engine.state.is_empty
        assert memory_store.read("findora-cart") is None

    def test_write_failure_keeps_in_memory_cart(self, sink, settings, item_a):
        """Test a failing store never breaks the cart."""
        store = Mock()
        store.read.return_value = None
        store.write.side_effect = RuntimeError("quota exceeded")

        engine = CartEngine(storage=CartStorage(store, "findora-cart"), notifier=sink, settings=settings)
        state = engine.add_item(item_a)

        assert state.total_items == 1
        assert _kinds(sink.drain()) == [NotificationKind.ITEM_ADDED]

    def test_read_failure_starts_empty(self, sink, settings):
        """Test an unreadable store yields an empty cart."""
        store = Mock()
        store.read.side_effect = RuntimeError("unavailable")

        engine = CartEngine(storage=CartStorage(store, "findora-cart"), notifier=sink, settings=settings)

        assert engine.state.is_empty

    def test_restore_disabled(self, engine, storage, settings, item_a):
        """Test restore=False ignores the stored record."""
        engine.add_item(item_a)

        fresh = CartEngine(storage=storage, notifier=QueueNotificationSink(), settings=settings, restore=False)

        assert fresh.state.is_empty


class TestEngineNotifications:
    """Tests for notification sink failures."""

    def test_sink_failure_is_swallowed(self, storage, settings, memory_store, item_a):
        """Test a raising sink does not block persistence."""
        notifier = Mock()
        notifier.notify.side_effect = RuntimeError("toast service down")

        engine = CartEngine(storage=storage, notifier=notifier, settings=settings)
        engine.add_item(item_a)

        assert engine.state.total_items == 1
        assert memory_store.read("findora-cart") is not None

    def test_default_sink_logs(self, storage, settings, item_a):
        """Test the engine works with the logging sink."""
        engine = CartEngine(storage=storage, settings=settings)

        assert engine.add_item(item_a).total_items == 1


class FakeCatalog:
    def __init__(self, listings, failing=()):
        self.listings = listings
        self.failing = set(failing)
        self.calls = []

    def get_listing(self, product_id):
        self.calls.append(product_id)
        if product_id in self.failing:
            raise ConnectionError("catalog timeout")
        return self.listings.get(product_id)


class TestRevalidate:
    """Tests for catalog revalidation before checkout."""

    def test_revalidate_reports_adjustments(self, engine, sink, memory_store, item_a, item_b):
        """Test price and stock refresh with persisted result."""
        engine.add_item(item_a, quantity=4)
        engine.add_item(item_b)
        sink.drain()
        catalog = FakeCatalog({
            "prod-a": CatalogListing(product_id="prod-a", price=Decimal("18"), available_stock=3),
            "prod-b": None,
        })

        adjustments = engine.revalidate(catalog)

        kinds = {a.kind for a in adjustments}
        assert kinds == {
            AdjustmentKind.QUANTITY_REDUCED,
            AdjustmentKind.PRICE_CHANGED,
            AdjustmentKind.REMOVED,
        }
        assert engine.get_line_quantity(item_a.id) == 3
        assert not engine.is_in_cart("prod-b")
        assert engine.state.subtotal == Decimal("54.00")
        assert json.loads(memory_store.read("findora-cart"))[0]["price"] == "18"

    def test_revalidate_looks_up_each_product_once(self, engine, make_item):
        """Test variants of one product share a lookup."""
        engine.add_item(make_item(line_id="prod-a_red"))
        engine.add_item(make_item(line_id="prod-a_blue"))
        catalog = FakeCatalog({
            "prod-a": CatalogListing(product_id="prod-a", price=Decimal("20"), available_stock=5),
        })

        assert engine.revalidate(catalog) == []
        assert catalog.calls == ["prod-a"]

    def test_failing_lookup_leaves_line(self, engine, item_a, item_b):
        """Test a catalog error skips that product only."""
        engine.add_item(item_a)
        engine.add_item(item_b)
        catalog = FakeCatalog({"prod-b": None}, failing=["prod-a"])

        adjustments = engine.revalidate(catalog)

        assert [a.line_id for a in adjustments] == [item_b.id]
        assert engine.is_in_cart("prod-a")


class TestEngineQueries:
    """Tests for read-only helpers."""

    def test_item_count_across_variants(self, engine, make_item):
        """Test count sums every line of a product."""
        engine.add_item(make_item(line_id="prod-a_red"), quantity=2)
        engine.add_item(make_item(line_id="prod-a_blue"), quantity=1)

        assert engine.get_item_count("prod-a") == 3
        assert engine.get_item_count("prod-z") == 0
        assert engine.is_in_cart("prod-a")
        assert not engine.is_in_cart("prod-z")

    def test_line_quantity_unknown(self, engine):
        """Test unknown lines report zero."""
        assert engine.get_line_quantity("ghost") == 0

    def test_free_shipping_progress(self, engine, item_a):
        """Test progress is derived from the subtotal."""
        engine.add_item(item_a)

        progress = engine.get_free_shipping_progress()

        assert progress.remaining == Decimal("30.00")
        assert progress.qualified is False

    def test_cart_summary(self, engine, make_item):
        """Test summary exposes floats for API consumers."""
        engine.add_item(make_item(compare_at_price=Decimal("25"), max_quantity=3), quantity=3)

        summary = engine.get_cart_summary()

        assert summary["total_items"] == 3
        assert summary["subtotal"] == 60.0
        assert summary["tax"] == 4.8
        assert summary["shipping"] == 0.0
        assert summary["total_price"] == 64.8
        assert summary["free_shipping"]["qualified"] is True
        line = summary["items"][0]
        assert line["savings"] == 15.0
        assert line["is_low_stock"] is True
        assert line["is_saturated"] is True
        assert line["seller"] == {"id": "seller-1", "businessName": "Oak & Pine"}

    def test_empty_summary(self, engine):
        """Test summary of an empty cart."""
        summary = engine.get_cart_summary()

        assert summary["is_empty"] is True
        assert summary["items"] == []
        assert summary["total_price"] == 0.0


@pytest.mark.parametrize("quantity", [1, 2, 5])
def test_round_trip_after_clear(engine, storage, settings, item_a, item_b, quantity):
    """Serialize items, clear, reload: totals match the pre-clear state."""
    engine.add_item(item_a, quantity=quantity)
    engine.add_item(item_b)
    before = engine.state
    saved = storage.load_items()

    engine.clear_cart()
    storage.save_items(saved)
    engine.restore()

    assert engine.state.items == before.items
    assert engine.state.total_price == before.total_price


def test_package_exports_engine_lazily():
    """The top-level package resolves CartEngine on first access."""
    import findora

    assert findora.CartEngine is CartEngine
    with pytest.raises(AttributeError):
        findora.missing_attribute


def test_load_items_is_silent(engine, sink, memory_store, make_item):
    """Loading a list derives totals without toasts or writes."""
    state = engine.load_items([make_item(quantity=3)])

    assert state.subtotal == Decimal("60.00")
    assert state.shipping == Decimal("0")
    assert len(sink) == 0
    assert memory_store.read("findora-cart") is None


class TestEngineWiring:
    """Tests for injected collaborators and concurrent callers."""

    def test_empty_queue_sink_is_kept(self, storage, settings):
        """Test an empty (falsy) queue sink is used, not replaced."""
        sink = QueueNotificationSink()

        engine = CartEngine(storage=storage, notifier=sink, settings=settings)

        assert engine.notifier is sink

    def test_concurrent_adds_are_not_lost(self, engine, make_item):
        """Test adds from many threads all land on the same line."""
        item = make_item(max_quantity=100000)

        def worker():
            for _ in range(300):
                engine.add_item(item)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert engine.get_line_quantity(item.id) == 2400
        assert engine.state.total_items == 2400
