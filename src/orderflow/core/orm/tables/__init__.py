"""ORM table package — re-exports all table classes.

Tags:
    orderflow, orm, sqlalchemy, tables

Doc-Types:
    api-reference
"""

from orderflow.core.orm.tables.commerce import (  # noqa: F401
    InventoryTable,
    OrderItemTable,
    OrderStatus,
    OrderTable,
    ProductStatus,
    ProductTable,
)

__all__ = [
    "InventoryTable",
    "OrderItemTable",
    "OrderStatus",
    "OrderTable",
    "ProductStatus",
    "ProductTable",
]
