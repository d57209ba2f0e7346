"""Tests for orderflow.inventory.reservation — all-or-nothing stock reservation."""

from __future__ import annotations

import threading
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from orderflow.core.errors import (
    InsufficientStockError,
    OrderNotFoundError,
    ProductNotFoundError,
    StoreUnavailableError,
    ValidationError,
)
from orderflow.core.repositories import NewOrder, NewOrderItem, StockRecord
from orderflow.core.store import InMemoryStore, RedisStore
from orderflow.inventory.reservation import (
    RESERVE_LUA,
    RESERVE_SCRIPT,
    InventoryReservationEngine,
    LineItem,
    inventory_key,
    release_key,
)


def _counter(store, product) -> int:
    return int(store.get(inventory_key(product.id, product.inventory.id)))


class TestReserveScript:
    def test_local_all_pass(self):
        store = InMemoryStore()
        store.set("a", 5)
        store.set("b", 2)
        assert store.eval_script(RESERVE_SCRIPT, ["a", "b"], [3, 2]) == 1
        assert (store.get("a"), store.get("b")) == ("2", "0")

    def test_local_reports_first_failing_key_and_changes_nothing(self):
        store = InMemoryStore()
        store.set("a", 5)
        store.set("b", 1)
        assert store.eval_script(RESERVE_SCRIPT, ["a", "b"], [3, 2]) == -2
        assert (store.get("a"), store.get("b")) == ("5", "1")

    def test_local_missing_key_fails(self):
        assert InMemoryStore().eval_script(RESERVE_SCRIPT, ["missing"], [1]) == -1

    def test_lua_checks_before_decrementing(self):
        check = RESERVE_LUA.index("return -i")
        decrement = RESERVE_LUA.index("DECRBY")
        assert check < decrement


class TestReserve:
    def test_decrements_every_product(self, reservations, store, catalog):
        a, b = catalog(quantity=5), catalog(quantity=3)
        reservation = reservations.reserve([LineItem(a.id, 2), LineItem(b.id, 3)])

        assert reservation.quantities == {a.id: 2, b.id: 3}
        assert reservation.keys[a.id] == f"product:{a.id}:inventory:{a.inventory.id}"
        assert _counter(store, a) == 3
        assert _counter(store, b) == 0

    def test_shortfall_changes_nothing(self, reservations, store, catalog):
        a, b = catalog(quantity=5), catalog(quantity=1)
        with pytest.raises(InsufficientStockError) as exc_info:
            reservations.reserve([LineItem(a.id, 2), LineItem(b.id, 2)])

        assert exc_info.value.product_id == b.id
        assert exc_info.value.requested == 2
        assert _counter(store, a) == 5
        assert _counter(store, b) == 1

    def test_duplicate_lines_are_aggregated(self, reservations, store, catalog):
        a = catalog(quantity=3)
        with pytest.raises(InsufficientStockError) as exc_info:
            reservations.reserve([LineItem(a.id, 2), LineItem(a.id, 2)])
        assert exc_info.value.requested == 4
        assert _counter(store, a) == 3

        reservations.reserve([LineItem(a.id, 1), LineItem(a.id, 2)])
        assert _counter(store, a) == 0

    def test_unknown_product(self, reservations, catalog):
        a = catalog()
        with pytest.raises(ProductNotFoundError) as exc_info:
            reservations.reserve([LineItem(a.id, 1), LineItem(999, 1)])
        assert exc_info.value.product_id == 999

    @pytest.mark.parametrize("items", [[], [LineItem(1, 0)], [LineItem(1, -2)]])
    def test_invalid_items(self, reservations, items):
        with pytest.raises(ValidationError):
            reservations.reserve(items)

    def test_seeding_never_overwrites_live_counter(self, reservations, store, catalog, inventories):
        a = catalog(quantity=10)
        reservations.reserve([LineItem(a.id, 4)])
        inventories.update_quantity(a.inventory.id, 100)

        reservations.reserve([LineItem(a.id, 1)])
        assert _counter(store, a) == 5

    def test_store_outage_is_transient(self, products, inventories, catalog):
        a = catalog()
        store = MagicMock()
        store.set_if_absent.side_effect = StoreUnavailableError("down")
        engine = InventoryReservationEngine(store, products, inventories)
        with pytest.raises(StoreUnavailableError) as exc_info:
            engine.reserve([LineItem(a.id, 1)])
        assert exc_info.value.retryable is True

    def test_redis_store_script_invocation(self, products, inventories, catalog):
        a, b = catalog(quantity=5), catalog(quantity=5)
        client = MagicMock()
        script = MagicMock(return_value=-2)
        client.register_script.return_value = script
        engine = InventoryReservationEngine(RedisStore(client=client), products, inventories)

        with pytest.raises(InsufficientStockError) as exc_info:
            engine.reserve([LineItem(a.id, 1), LineItem(b.id, 9)])

        assert exc_info.value.product_id == b.id
        client.register_script.assert_called_once_with(RESERVE_LUA)
        script.assert_called_once_with(
            keys=[inventory_key(a.id, a.inventory.id), inventory_key(b.id, b.inventory.id)],
            args=[1, 9],
        )
        assert client.set.call_count == 2


class StaticStock:
    """Product lookups without a database, so threads only contend on the store."""

    def __init__(self, *records: StockRecord):
        self.records = {r.product_id: r for r in records}

    def find_stock(self, product_ids):
        return [self.records[pid] for pid in product_ids if pid in self.records]


class TestConcurrency:
    def test_parallel_reservations_never_oversell(self, store):
        a, b = StockRecord(1, 11, 10), StockRecord(2, 12, 10)
        reservations = InventoryReservationEngine(store, StaticStock(a, b), inventories=None)
        results: list[bool] = []
        lock = threading.Lock()
        start = threading.Barrier(20)

        def attempt():
            start.wait()
            try:
                reservations.reserve([LineItem(a.product_id, 1), LineItem(b.product_id, 1)])
                ok = True
            except InsufficientStockError:
                ok = False
            with lock:
                results.append(ok)

        threads = [threading.Thread(target=attempt) for _ in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(True) == 10
        assert store.get(inventory_key(1, 11)) == "0"
        assert store.get(inventory_key(2, 12)) == "0"

    def test_last_unit_goes_to_exactly_one(self, store):
        a = StockRecord(1, 11, 1)
        reservations = InventoryReservationEngine(store, StaticStock(a), inventories=None)
        outcomes: list[str] = []
        start = threading.Barrier(2)

        def attempt():
            start.wait()
            try:
                reservations.reserve([LineItem(a.product_id, 1)])
                outcomes.append("ok")
            except InsufficientStockError:
                outcomes.append("short")

        threads = [threading.Thread(target=attempt) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert sorted(outcomes) == ["ok", "short"]


class TestCompensation:
    def test_restore(self, reservations, store, catalog):
        a = catalog(quantity=5)
        reservations.reserve([LineItem(a.id, 3)])
        assert reservations.restore(a.id, 3) == 5
        assert _counter(store, a) == 5

    def test_restore_unknown_product(self, reservations):
        assert reservations.restore(999, 1) is None

    def test_restore_requires_positive_quantity(self, reservations, catalog):
        with pytest.raises(ValidationError):
            reservations.restore(catalog().id, 0)

    def test_reserve_and_release_order(self, reservations, store, catalog, orders):
        a, b = catalog(quantity=4), catalog(quantity=4)
        order = orders.create_with_items(
            NewOrder(
                user_id=1,
                shipping_address="s",
                billing_address="b",
                items=[
                    NewOrderItem(a.id, 1, Decimal("1")),
                    NewOrderItem(a.id, 2, Decimal("1")),
                    NewOrderItem(b.id, 4, Decimal("1")),
                ],
            )
        )
        reservations.reserve_order(order.id)
        assert (_counter(store, a), _counter(store, b)) == (1, 0)

        reservations.release_order(order.id)
        assert (_counter(store, a), _counter(store, b)) == (4, 4)

    def _two_line_order(self, catalog, orders, reservations):
        a, b = catalog(quantity=5), catalog(quantity=5)
        order = orders.create_with_items(
            NewOrder(
                user_id=1,
                shipping_address="s",
                billing_address="b",
                items=[NewOrderItem(a.id, 2, Decimal("1")), NewOrderItem(b.id, 2, Decimal("1"))],
            )
        )
        reservations.reserve_order(order.id)
        return a, b, order

    def test_release_order_restores_once(self, reservations, store, catalog, orders):
        a, b, order = self._two_line_order(catalog, orders, reservations)

        assert reservations.release_order(order.id) == 2
        assert reservations.release_order(order.id) == 0
        assert (_counter(store, a), _counter(store, b)) == (5, 5)
        assert store.exists(release_key(order.id, a.id))

    def test_interrupted_release_resumes_where_it_stopped(self, reservations, store, catalog, orders):
        a, b, order = self._two_line_order(catalog, orders, reservations)
        store.fail_next_incr(inventory_key(b.id, b.inventory.id))

        with pytest.raises(StoreUnavailableError):
            reservations.release_order(order.id)
        assert (_counter(store, a), _counter(store, b)) == (5, 3)
        assert not store.exists(release_key(order.id, b.id))

        assert reservations.release_order(order.id) == 1
        assert (_counter(store, a), _counter(store, b)) == (5, 5)

    def test_order_lookup_errors(self, reservations, store, products, inventories):
        with pytest.raises(OrderNotFoundError):
            reservations.reserve_order(999)
        with pytest.raises(ValidationError):
            InventoryReservationEngine(store, products, inventories).reserve_order(1)


class TestSeedingAndSync:
    def test_seed_all_writes_missing_counters_only(self, reservations, store, catalog):
        a, b = catalog(quantity=5), catalog(quantity=7)
        reservations.reserve([LineItem(a.id, 2)])

        assert reservations.seed_all() == 1
        assert _counter(store, a) == 3
        assert _counter(store, b) == 7

    def test_available(self, reservations, catalog):
        a = catalog(quantity=5)
        assert reservations.available(a.id) is None
        reservations.reserve([LineItem(a.id, 2)])
        assert reservations.available(a.id) == 3
        assert reservations.available(999) is None

    def test_sync_to_db_last_write_wins(self, reservations, catalog, inventories):
        a = catalog(quantity=10)
        reservations.reserve([LineItem(a.id, 4)])
        inventories.update_quantity(a.inventory.id, 50)

        assert reservations.sync_to_db(a.inventory.id) == 6
        assert inventories.get(a.inventory.id).quantity == 6

    def test_sync_skips_uncached_and_unknown(self, reservations, catalog, inventories):
        a = catalog(quantity=10)
        assert reservations.sync_to_db(a.inventory.id) is None
        assert inventories.get(a.inventory.id).quantity == 10
        assert reservations.sync_to_db(999) is None

    def test_sync_all(self, reservations, catalog):
        a, _ = catalog(quantity=3), catalog(quantity=3)
        reservations.reserve([LineItem(a.id, 1)])
        assert reservations.sync_all() == 1
