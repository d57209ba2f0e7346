"""
Atomic multi-product stock reservation.

Manifesto:
    Two orders racing for the last unit must never both succeed, and an
    order for three products must never take stock for two of them and
    then fail on the third. Both guarantees come from running the whole
    check-then-decrement as one script on the key-value store: every key is
    checked first, and only if all pass is any key decremented.

Architecture:
    ::

        reserve([(product_id, qty), ...])
            │
            ├─ aggregate quantities per product (duplicate lines summed)
            ├─ load StockRecord(product_id, inventory_id, quantity) from the DB
            │     missing product ──► ProductNotFoundError
            ├─ seed each counter with SET NX (first writer wins, no expiry)
            ├─ RESERVE_SCRIPT(keys, quantities)
            │     1   ──► all keys decremented
            │    -i   ──► key i (1-based) short; nothing modified
            │            ──► InsufficientStockError(product)
            └─ store outage ──► StoreUnavailableError (transient)

    Counter key:  ``product:{product_id}:inventory:{inventory_id}``

    The counter is the live stock figure; the DB quantity is a baseline that
    only seeds missing counters and is overwritten by ``sync_to_db``.

Guardrails:
    ❌ DON'T: Read a counter, compare in Python, then DECRBY
    ✅ DO: Go through ``reserve`` so the check and the write are one script

    ❌ DON'T: Treat ``restore`` as atomic across products
    ✅ DO: Use it only as a compensating action after a later step failed

Tags:
    inventory, reservation, redis, lua, atomicity, orderflow

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from orderflow.core.errors import (
    InsufficientStockError,
    OrderNotFoundError,
    ProductNotFoundError,
    ValidationError,
)
from orderflow.core.logging import get_logger
from orderflow.core.repositories import InventoryRepository, OrderRepository, ProductRepository, StockRecord
from orderflow.core.store import AtomicScript, InMemoryStore, KeyValueStore

logger = get_logger(__name__)


RESERVE_LUA = """
for i = 1, #KEYS do
  local current = tonumber(redis.call("GET", KEYS[i]))
  local quantity = tonumber(ARGV[i])
  if not current or current < quantity then
    return -i
  end
end
for i = 1, #KEYS do
  redis.call("DECRBY", KEYS[i], ARGV[i])
end
return 1
"""


def _reserve_local(store: InMemoryStore, keys: Sequence[str], args: Sequence[str]) -> int:
    for i, (key, quantity) in enumerate(zip(keys, args), start=1):
        raw = store.get(key)
        try:
            current = int(raw) if raw is not None else None
        except ValueError:
            current = None
        if current is None or current < int(quantity):
            return -i
    for key, quantity in zip(keys, args):
        store.decr_by(key, int(quantity))
    return 1


RESERVE_SCRIPT = AtomicScript(name="reserve_stock", source=RESERVE_LUA, local=_reserve_local)


def inventory_key(product_id: int, inventory_id: int) -> str:
    return f"product:{product_id}:inventory:{inventory_id}"


def release_key(order_id: int, product_id: int) -> str:
    return f"release:{order_id}:{product_id}"


@dataclass(frozen=True)
class LineItem:
    product_id: int
    quantity: int


@dataclass(frozen=True)
class Reservation:
    """What ``reserve`` took, per product."""

    quantities: dict[int, int]
    keys: dict[int, str]


class InventoryReservationEngine:
    """All-or-nothing stock reservation over the key-value store.

    Example:
        >>> engine = InventoryReservationEngine(store, products, inventories)
        >>> engine.reserve([LineItem(product_id=1, quantity=2), LineItem(product_id=2, quantity=1)])
    """

    def __init__(
        self,
        store: KeyValueStore,
        products: ProductRepository,
        inventories: InventoryRepository,
        orders: OrderRepository | None = None,
        *,
        release_ttl_seconds: int = 7 * 86400,
    ) -> None:
        self.store = store
        self.products = products
        self.inventories = inventories
        self.orders = orders
        self.release_ttl_seconds = release_ttl_seconds

    # ── Reservation ──────────────────────────────────────────────────────

    def reserve(self, items: Iterable[LineItem]) -> Reservation:
        """Decrement every product's counter, or none of them.

        Raises:
            ValidationError: empty item list or a non-positive quantity.
            ProductNotFoundError: a product has no stock record.
            InsufficientStockError: a product's counter is below the requested total.
            StoreUnavailableError: the store could not be reached.
        """
        quantities = self._aggregate(items)
        records = {r.product_id: r for r in self.products.find_stock(quantities)}
        for product_id in quantities:
            if product_id not in records:
                raise ProductNotFoundError(product_id)

        product_ids = list(quantities)
        keys = [inventory_key(pid, records[pid].inventory_id) for pid in product_ids]
        for pid, key in zip(product_ids, keys):
            if self.store.set_if_absent(key, records[pid].quantity):
                logger.debug("inventory.seeded", product_id=pid, key=key, quantity=records[pid].quantity)

        result = self.store.eval_script(RESERVE_SCRIPT, keys, [quantities[pid] for pid in product_ids])
        if result != 1:
            index = -result - 1
            if not 0 <= index < len(product_ids):
                raise InsufficientStockError(
                    product_ids[0], quantities[product_ids[0]],
                    message=f"Stock reservation rejected (script returned {result})",
                )
            failed = product_ids[index]
            logger.info(
                "inventory.insufficient",
                product_id=failed,
                requested=quantities[failed],
            )
            raise InsufficientStockError(failed, quantities[failed])

        logger.info("inventory.reserved", items=quantities)
        return Reservation(quantities=quantities, keys=dict(zip(product_ids, keys)))

    def reserve_order(self, order_id: int) -> Reservation:
        """Reserve stock for every line item of an order."""
        order = self._load_order(order_id)
        return self.reserve(LineItem(i.product_id, i.quantity) for i in order.items)

    # ── Compensation ─────────────────────────────────────────────────────

    def restore(self, product_id: int, quantity: int) -> int | None:
        """Add ``quantity`` back to a product's counter.

        Returns the new counter value, or None if the product has no stock
        record. Not atomic across products.
        """
        if quantity <= 0:
            raise ValidationError("Restore quantity must be positive", field="quantity", value=quantity)
        records = self.products.find_stock([product_id])
        if not records:
            logger.warning("inventory.restore_unknown_product", product_id=product_id)
            return None
        key = inventory_key(product_id, records[0].inventory_id)
        new_value = self.store.incr_by(key, quantity)
        logger.info("inventory.restored", product_id=product_id, quantity=quantity, counter=new_value)
        return new_value

    def release_order(self, order_id: int) -> int:
        """Restore every line item of an order, each product at most once.

        A ``release:{order_id}:{product_id}`` marker is claimed before each
        increment, so a retried release only restores the products an earlier
        attempt did not reach. If an increment fails its marker is removed
        and the error propagates. Returns how many products were restored.
        """
        order = self._load_order(order_id)
        restored = 0
        for product_id, quantity in self._aggregate(
            LineItem(i.product_id, i.quantity) for i in order.items
        ).items():
            key = release_key(order_id, product_id)
            if not self.store.set_if_absent(key, quantity, ttl_seconds=self.release_ttl_seconds):
                logger.info("inventory.release_skipped", order_id=order_id, product_id=product_id)
                continue
            try:
                self.restore(product_id, quantity)
            except Exception:
                self.store.delete(key)
                raise
            restored += 1
        return restored

    # ── Seeding & reconciliation ─────────────────────────────────────────

    def seed(self, record: StockRecord) -> bool:
        """Seed one counter from its DB baseline; never overwrites."""
        return self.store.set_if_absent(inventory_key(record.product_id, record.inventory_id), record.quantity)

    def seed_all(self) -> int:
        """Seed every counter that is missing. Returns how many were written."""
        return sum(1 for record in self.inventories.list_all() if self.seed(record))

    def available(self, product_id: int) -> int | None:
        """Current counter value, or None if the counter is not cached."""
        records = self.products.find_stock([product_id])
        if not records:
            return None
        raw = self.store.get(inventory_key(product_id, records[0].inventory_id))
        return int(raw) if raw is not None else None

    def sync_to_db(self, inventory_id: int) -> int | None:
        """Overwrite the DB quantity with the cached counter (last write wins).

        Returns the synced quantity, or None when the counter is not cached
        or the inventory row does not exist.
        """
        record = self.inventories.get(inventory_id)
        if record is None:
            logger.warning("inventory.sync_unknown", inventory_id=inventory_id)
            return None
        raw = self.store.get(inventory_key(record.product_id, record.inventory_id))
        if raw is None:
            logger.debug("inventory.sync_skipped", inventory_id=inventory_id, reason="not cached")
            return None
        quantity = int(raw)
        self.inventories.update_quantity(inventory_id, quantity)
        logger.info(
            "inventory.synced",
            inventory_id=inventory_id,
            product_id=record.product_id,
            previous=record.quantity,
            quantity=quantity,
        )
        return quantity

    def sync_all(self) -> int:
        """Reconcile every cached counter. Returns how many rows were written."""
        synced = 0
        for record in self.inventories.list_all():
            if self.sync_to_db(record.inventory_id) is not None:
                synced += 1
        return synced

    # ── Helpers ──────────────────────────────────────────────────────────

    @staticmethod
    def _aggregate(items: Iterable[LineItem]) -> dict[int, int]:
        quantities: dict[int, int] = {}
        for item in items:
            if item.quantity <= 0:
                raise ValidationError(
                    f"Quantity for product {item.product_id} must be positive",
                    field="quantity",
                    value=item.quantity,
                    constraint="> 0",
                )
            quantities[item.product_id] = quantities.get(item.product_id, 0) + item.quantity
        if not quantities:
            raise ValidationError("No items to reserve", field="items", constraint="non-empty")
        return quantities

    def _load_order(self, order_id: int):
        if self.orders is None:
            raise ValidationError("Order lookups need an order repository")
        order = self.orders.get_with_items(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order


__all__ = [
    "RESERVE_LUA",
    "RESERVE_SCRIPT",
    "InventoryReservationEngine",
    "LineItem",
    "Reservation",
    "inventory_key",
    "release_key",
]
