"""Order-processing tasks and their handlers.

Two steps make up the order chain, in this order:

1. ``inventory:check``  — reserve stock for every line item; order → ``reserved``
2. ``process:payment``  — charge the order total; order → ``confirmed``

Both handlers check the order's status first and return early if the step
already happened, so a redelivered message does not reserve or charge twice.
When a step fails for a business reason the order is cancelled and the
error is re-raised unchanged. A payment step that will not be retried
(declined, or out of attempts) also releases the stock the first step took.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar

from orderflow.core.errors import (
    InsufficientStockError,
    OrderNotFoundError,
    PaymentDeclinedError,
    ProductNotFoundError,
    ValidationError,
    is_retryable,
)
from orderflow.core.logging import get_logger
from orderflow.core.orm.tables import OrderStatus, OrderTable
from orderflow.core.repositories import OrderRepository
from orderflow.execution.context import TaskContext
from orderflow.execution.message import TaskMessage
from orderflow.inventory.reservation import InventoryReservationEngine
from orderflow.orchestration.task import BaseTask
from orderflow.orders.payments import PaymentService

logger = get_logger(__name__)


class TaskType(str, Enum):
    INVENTORY_CHECK = "inventory:check"
    PROCESS_PAYMENT = "process:payment"


class QueueName(str, Enum):
    DEFAULT = "default"
    CRITICAL = "critical"
    LOW = "low"
    PAYMENTS = "payments"
    INVENTORY_CHECK = "inventory_check"
    ORDER_PROCESSING_CHAIN = "order_processing_chain"


@dataclass
class InventoryCheckTask(BaseTask):
    task_type: ClassVar[str] = TaskType.INVENTORY_CHECK.value

    order_id: int


@dataclass
class ProcessPaymentTask(BaseTask):
    task_type: ClassVar[str] = TaskType.PROCESS_PAYMENT.value

    order_id: int


def _load_order(orders: OrderRepository, order_id: int) -> OrderTable:
    order = orders.get_with_items(order_id)
    if order is None:
        raise OrderNotFoundError(order_id)
    return order


class InventoryCheckHandler:
    """Reserves stock for a pending order."""

    def __init__(self, orders: OrderRepository, engine: InventoryReservationEngine) -> None:
        self.orders = orders
        self.engine = engine

    def process(self, ctx: TaskContext, message: TaskMessage) -> None:
        task = InventoryCheckTask.from_message(message)
        order = _load_order(self.orders, task.order_id)

        if order.status != OrderStatus.PENDING.value:
            logger.info("order.inventory_check_skipped", order_id=order.id, status=order.status)
            return

        ctx.check()
        try:
            self.engine.reserve_order(order.id)
        except (InsufficientStockError, ProductNotFoundError) as exc:
            self.orders.update_status(order.id, OrderStatus.CANCELLED)
            logger.info("order.cancelled", order_id=order.id, reason=exc.message)
            exc.with_context(order_id=order.id)
            raise

        self.orders.update_status(order.id, OrderStatus.RESERVED)
        logger.info("order.reserved", order_id=order.id)


class ProcessPaymentHandler:
    """Charges a reserved order and confirms it."""

    def __init__(
        self,
        orders: OrderRepository,
        payments: PaymentService,
        engine: InventoryReservationEngine,
    ) -> None:
        self.orders = orders
        self.payments = payments
        self.engine = engine

    def process(self, ctx: TaskContext, message: TaskMessage) -> None:
        task = ProcessPaymentTask.from_message(message)
        order = _load_order(self.orders, task.order_id)

        if order.status == OrderStatus.CONFIRMED.value:
            logger.info("order.payment_skipped", order_id=order.id, status=order.status)
            return
        if order.status != OrderStatus.RESERVED.value:
            raise ValidationError(
                f"Order {order.id} cannot be charged in status '{order.status}'",
                field="status",
                value=order.status,
                constraint=OrderStatus.RESERVED.value,
            ).with_context(order_id=order.id)

        try:
            ctx.check()
            self.payments.charge_order(order.id, order.total_amount)
        except Exception as exc:
            if not is_retryable(exc) or ctx.is_final_attempt:
                self._compensate(order.id, exc)
            raise

        self.orders.update_status(order.id, OrderStatus.CONFIRMED)
        logger.info("order.confirmed", order_id=order.id)

    def _compensate(self, order_id: int, exc: Exception) -> None:
        """Give back the stock the inventory step took, then cancel the order."""
        released = self.engine.release_order(order_id)
        self.orders.update_status(order_id, OrderStatus.CANCELLED)
        logger.info(
            "order.cancelled",
            order_id=order_id,
            reason="payment declined" if isinstance(exc, PaymentDeclinedError) else "payment failed",
            error_type=type(exc).__name__,
            products_released=released,
        )


__all__ = [
    "TaskType",
    "QueueName",
    "InventoryCheckTask",
    "ProcessPaymentTask",
    "InventoryCheckHandler",
    "ProcessPaymentHandler",
]
