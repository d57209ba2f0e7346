"""Inventory repository — durable stock quantities.

Tags:
    orderflow, repository, inventory

Doc-Types:
    api-reference
"""

from __future__ import annotations

from sqlalchemy import select, update
from sqlalchemy.orm import Session, sessionmaker

from orderflow.core.orm.tables import InventoryTable
from orderflow.core.repositories.products import StockRecord


class InventoryRepository:
    """Reads and writes for the ``inventories`` table."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def get(self, inventory_id: int) -> StockRecord | None:
        with self._session_factory() as session:
            row = session.get(InventoryTable, inventory_id)
            if row is None:
                return None
            return StockRecord(row.product_id, row.id, row.quantity)

    def list_all(self) -> list[StockRecord]:
        stmt = select(InventoryTable.product_id, InventoryTable.id, InventoryTable.quantity).order_by(
            InventoryTable.id
        )
        with self._session_factory() as session:
            return [StockRecord(pid, iid, qty) for pid, iid, qty in session.execute(stmt)]

    def update_quantity(self, inventory_id: int, quantity: int) -> bool:
        """Overwrite the durable quantity. Returns False if the row does not exist."""
        with self._session_factory() as session:
            result = session.execute(
                update(InventoryTable)
                .where(InventoryTable.id == inventory_id)
                .values(quantity=quantity)
            )
            session.commit()
            return result.rowcount > 0
