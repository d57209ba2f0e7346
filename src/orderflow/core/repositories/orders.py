"""Order repository — orders and their line items.

Tags:
    orderflow, repository, orders

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import update
from sqlalchemy.orm import Session, sessionmaker

from orderflow.core.orm.tables import OrderItemTable, OrderStatus, OrderTable


@dataclass(frozen=True)
class NewOrderItem:
    product_id: int
    quantity: int
    unit_price: Decimal


@dataclass(frozen=True)
class NewOrder:
    user_id: int
    shipping_address: str
    billing_address: str
    items: Sequence[NewOrderItem]
    notes: str | None = None


class OrderRepository:
    """Reads and writes for ``orders`` / ``order_items``."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    # -- reads -----------------------------------------------------------------

    def get_with_items(self, order_id: int) -> OrderTable | None:
        """Fetch an order with its line items loaded."""
        with self._session_factory() as session:
            order = session.get(OrderTable, order_id)
            if order is not None:
                # selectin relationship; touch it while the session is open
                list(order.items)
            return order

    # -- writes ----------------------------------------------------------------

    def create_with_items(self, new_order: NewOrder) -> OrderTable:
        """Insert an order and its items in one transaction; totals are computed here."""
        items = [
            OrderItemTable(
                product_id=item.product_id,
                quantity=item.quantity,
                unit_price=item.unit_price,
                total_price=item.unit_price * item.quantity,
            )
            for item in new_order.items
        ]
        order = OrderTable(
            user_id=new_order.user_id,
            status=OrderStatus.PENDING.value,
            shipping_address=new_order.shipping_address,
            billing_address=new_order.billing_address,
            notes=new_order.notes,
            total_amount=sum((i.total_price for i in items), Decimal("0")),
            items=items,
        )
        with self._session_factory() as session:
            session.add(order)
            session.commit()
            list(order.items)
        return order

    def update_status(self, order_id: int, status: OrderStatus) -> bool:
        """Set an order's status. Returns False if the order does not exist."""
        with self._session_factory() as session:
            result = session.execute(
                update(OrderTable).where(OrderTable.id == order_id).values(status=status.value)
            )
            session.commit()
            return result.rowcount > 0
