"""
Shared pytest fixtures for orderflow tests.

This module provides:
- An in-memory SQLite engine with the orderflow schema
- Repositories bound to that engine
- In-memory store (with injectable increment failures), queue and event bus
- A fully wired, frozen handler registry plus a synchronous worker
- Catalog seeding helpers

Usage:
    def test_something(wired, catalog):
        product = catalog(quantity=5)
        ...
"""

from __future__ import annotations

from collections.abc import Callable, Generator
from dataclasses import dataclass
from decimal import Decimal
from itertools import count
from pathlib import Path
from typing import Any

import pytest

from orderflow.bootstrap import build_registry
from orderflow.core.events.memory import InMemoryEventBus
from orderflow.core.orm import create_all, create_orderflow_engine, orderflow_session_factory
from orderflow.core.orm.tables import ProductStatus, ProductTable
from orderflow.core.repositories import InventoryRepository, OrderRepository, ProductRepository
from orderflow.core.errors import StoreUnavailableError
from orderflow.core.store import InMemoryStore
from orderflow.execution.queue import MemoryQueueClient
from orderflow.execution.registry import HandlerRegistry
from orderflow.execution.retry import NoRetry
from orderflow.execution.worker import MemoryWorker
from orderflow.inventory.reservation import InventoryReservationEngine
from orderflow.orchestration.ledger import StepLedger
from orderflow.orders.payments import FakePaymentGateway, PaymentService
from orderflow.orders.service import OrderService


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    for item in items:
        test_path = Path(item.fspath).relative_to(Path(__file__).parent)
        if "integration" in str(test_path):
            item.add_marker(pytest.mark.integration)
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def engine() -> Generator[Any, None, None]:
    eng = create_orderflow_engine("sqlite://")
    create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return orderflow_session_factory(engine)


@pytest.fixture
def products(session_factory) -> ProductRepository:
    return ProductRepository(session_factory)


@pytest.fixture
def inventories(session_factory) -> InventoryRepository:
    return InventoryRepository(session_factory)


@pytest.fixture
def orders(session_factory) -> OrderRepository:
    return OrderRepository(session_factory)


@pytest.fixture
def catalog(products) -> Callable[..., ProductTable]:
    """Create products with stock rows: ``catalog(quantity=5, price="9.99")``."""
    seq = count(1)

    def _create(
        *,
        quantity: int = 10,
        price: str = "10.00",
        status: ProductStatus = ProductStatus.ACTIVE,
    ) -> ProductTable:
        n = next(seq)
        return products.create(
            name=f"Product {n}",
            sku=f"SKU-{n:04d}",
            price=Decimal(price),
            quantity=quantity,
            status=status,
        )

    return _create


# =============================================================================
# Infrastructure doubles
# =============================================================================


class FaultInjectingStore(InMemoryStore):
    """``InMemoryStore`` whose increments can be made to fail for chosen keys."""

    def __init__(self) -> None:
        super().__init__()
        self.incr_failures: dict[str, int] = {}

    def fail_next_incr(self, key: str, times: int = 1) -> None:
        self.incr_failures[key] = times

    def incr_by(self, key: str, amount: int) -> int:
        remaining = self.incr_failures.get(key, 0)
        if remaining:
            self.incr_failures[key] = remaining - 1
            raise StoreUnavailableError(f"injected failure on {key}")
        return super().incr_by(key, amount)


@pytest.fixture
def store() -> FaultInjectingStore:
    return FaultInjectingStore()


@pytest.fixture
def queue(store) -> MemoryQueueClient:
    return MemoryQueueClient(store)


@pytest.fixture
def bus() -> Generator[InMemoryEventBus, None, None]:
    b = InMemoryEventBus()
    yield b
    b.close()


@pytest.fixture
def reservations(store, products, inventories, orders) -> InventoryReservationEngine:
    return InventoryReservationEngine(store, products, inventories, orders)


@pytest.fixture
def gateway() -> FakePaymentGateway:
    return FakePaymentGateway()


# =============================================================================
# Fully wired system
# =============================================================================


@dataclass
class Wired:
    registry: HandlerRegistry
    queue: MemoryQueueClient
    worker: MemoryWorker
    service: OrderService
    reservations: InventoryReservationEngine
    orders: OrderRepository
    gateway: FakePaymentGateway
    bus: InMemoryEventBus
    store: FaultInjectingStore


@pytest.fixture
def wired(store, queue, bus, orders, products, reservations, gateway) -> Wired:
    """Registry, worker and order service over in-memory backends.

    The worker ignores step delays and never retries, so one
    ``run_until_idle()`` drives a chain to its end.
    """
    registry = build_registry(
        queue=queue,
        orders=orders,
        engine=reservations,
        payments=PaymentService(gateway),
        events=bus,
        ledger=StepLedger(store),
    )
    worker = MemoryWorker(queue, registry, NoRetry())
    service = OrderService(products, orders, queue, registry=registry, events=bus)
    return Wired(
        registry=registry,
        queue=queue,
        worker=worker,
        service=service,
        reservations=reservations,
        orders=orders,
        gateway=gateway,
        bus=bus,
        store=store,
    )


@pytest.fixture
def order_request() -> Callable[..., dict[str, Any]]:
    """Build a raw create-order request from ``(product_id, quantity)`` pairs."""

    def _build(*items: tuple[int, int], user_id: int = 1) -> dict[str, Any]:
        return {
            "user_id": user_id,
            "items": [{"product_id": pid, "quantity": qty} for pid, qty in items],
            "shipping_address": "1 Main St",
            "billing_address": "1 Main St",
        }

    return _build
