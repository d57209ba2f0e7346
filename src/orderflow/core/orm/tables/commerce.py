"""Catalog, stock and order tables.

Tags:
    orderflow, orm, sqlalchemy, tables, orders, inventory

Doc-Types:
    api-reference, data-model
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum

from sqlalchemy import ForeignKey, Integer, Numeric, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from orderflow.core.orm.base import OrderflowBase, TimestampMixin


class ProductStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    DISCONTINUED = "discontinued"


class OrderStatus(str, Enum):
    """Order lifecycle.

    ``pending`` → ``reserved`` (stock held) → ``confirmed`` (paid).
    ``cancelled`` is terminal for failed reservations and declined payments.
    """

    PENDING = "pending"
    RESERVED = "reserved"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class ProductTable(TimestampMixin, OrderflowBase):
    __tablename__ = "products"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    sku: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[str] = mapped_column(Text, default=ProductStatus.ACTIVE.value, nullable=False)

    # --- relationships ---
    inventory: Mapped[InventoryTable | None] = relationship(
        "InventoryTable", back_populates="product", uselist=False
    )


class InventoryTable(TimestampMixin, OrderflowBase):
    __tablename__ = "inventories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("products.id"), unique=True, nullable=False
    )
    quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    reorder_point: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    reorder_amount: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    location: Mapped[str | None] = mapped_column(Text)

    # --- relationships ---
    product: Mapped[ProductTable] = relationship("ProductTable", back_populates="inventory")


class OrderTable(TimestampMixin, OrderflowBase):
    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    status: Mapped[str] = mapped_column(Text, default=OrderStatus.PENDING.value, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    shipping_address: Mapped[str] = mapped_column(Text, nullable=False)
    billing_address: Mapped[str] = mapped_column(Text, nullable=False)
    tracking_number: Mapped[str | None] = mapped_column(Text)
    notes: Mapped[str | None] = mapped_column(Text)

    # --- relationships ---
    items: Mapped[list[OrderItemTable]] = relationship(
        "OrderItemTable", back_populates="order", cascade="all, delete-orphan", lazy="selectin"
    )


class OrderItemTable(OrderflowBase):
    __tablename__ = "order_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id: Mapped[int] = mapped_column(Integer, ForeignKey("products.id"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    # --- relationships ---
    order: Mapped[OrderTable] = relationship("OrderTable", back_populates="items")
