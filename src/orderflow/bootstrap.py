"""Startup wiring: build the handler registry once and freeze it.

The registry holds the chain orchestrator under ``chain:orchestrator`` plus
one handler per order task type. It is built before any worker starts
consuming and is read-only afterwards.
"""

from __future__ import annotations

from orderflow.core.events import EventBus
from orderflow.core.repositories import OrderRepository
from orderflow.execution.queue import JobQueueClient
from orderflow.execution.registry import HandlerRegistry
from orderflow.inventory.reservation import InventoryReservationEngine
from orderflow.orchestration.ledger import StepLedger
from orderflow.orchestration.orchestrator import ChainOrchestrator
from orderflow.orchestration.payload import ORCHESTRATOR_TASK_TYPE
from orderflow.orders.payments import PaymentService
from orderflow.orders.tasks import InventoryCheckHandler, ProcessPaymentHandler, TaskType


def build_registry(
    *,
    queue: JobQueueClient,
    orders: OrderRepository,
    engine: InventoryReservationEngine,
    payments: PaymentService,
    events: EventBus | None = None,
    ledger: StepLedger | None = None,
    step_delay: float = 1.0,
    freeze: bool = True,
) -> HandlerRegistry:
    registry = HandlerRegistry()
    registry.register(
        ORCHESTRATOR_TASK_TYPE,
        ChainOrchestrator(registry, queue, step_delay=step_delay, ledger=ledger, events=events),
        description="Runs one chain step and enqueues the next",
    )
    registry.register(
        TaskType.INVENTORY_CHECK.value,
        InventoryCheckHandler(orders, engine),
        description="Reserve stock for a pending order",
    )
    registry.register(
        TaskType.PROCESS_PAYMENT.value,
        ProcessPaymentHandler(orders, payments, engine),
        description="Charge a reserved order and confirm it",
    )
    if freeze:
        registry.freeze()
    return registry


__all__ = ["build_registry"]
