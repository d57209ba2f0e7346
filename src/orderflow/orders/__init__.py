"""Order processing: the inventory → payment chain and the service that starts it."""

from orderflow.orders.payments import ChargeResult, FakePaymentGateway, PaymentGateway, PaymentService
from orderflow.orders.service import CreatedOrder, CreateOrderRequest, OrderChainPolicy, OrderService
from orderflow.orders.tasks import (
    InventoryCheckHandler,
    InventoryCheckTask,
    ProcessPaymentHandler,
    ProcessPaymentTask,
    QueueName,
    TaskType,
)

__all__ = [
    "ChargeResult",
    "FakePaymentGateway",
    "PaymentGateway",
    "PaymentService",
    "CreatedOrder",
    "CreateOrderRequest",
    "OrderChainPolicy",
    "OrderService",
    "InventoryCheckHandler",
    "InventoryCheckTask",
    "ProcessPaymentHandler",
    "ProcessPaymentTask",
    "QueueName",
    "TaskType",
]
