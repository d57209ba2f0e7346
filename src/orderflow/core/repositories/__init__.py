"""Durable-store repositories.

Each repository owns one aggregate and opens a short-lived session per call
from the ``sessionmaker`` it was given. Callers never see a session.

Tags:
    orderflow, repository, sqlalchemy

Doc-Types:
    api-reference
"""

from orderflow.core.repositories.inventory import InventoryRepository
from orderflow.core.repositories.orders import NewOrder, NewOrderItem, OrderRepository
from orderflow.core.repositories.products import ProductRepository, StockRecord

__all__ = [
    "InventoryRepository",
    "NewOrder",
    "NewOrderItem",
    "OrderRepository",
    "ProductRepository",
    "StockRecord",
]
