"""Product repository — products joined with their stock rows.

Tags:
    orderflow, repository, products

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from orderflow.core.orm.tables import InventoryTable, ProductStatus, ProductTable


@dataclass(frozen=True)
class StockRecord:
    """Durable stock baseline for one product."""

    product_id: int
    inventory_id: int
    quantity: int


class ProductRepository:
    """Reads and writes for the ``products`` table."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    # -- reads -----------------------------------------------------------------

    def find_by_ids(self, product_ids: Iterable[int]) -> dict[int, ProductTable]:
        """Fetch products keyed by id. Missing ids are simply absent."""
        ids = list(set(product_ids))
        if not ids:
            return {}
        with self._session_factory() as session:
            rows = session.scalars(select(ProductTable).where(ProductTable.id.in_(ids))).all()
        return {row.id: row for row in rows}

    def find_stock(self, product_ids: Iterable[int]) -> list[StockRecord]:
        """Fetch ``(product_id, inventory_id, quantity)`` for products that have stock rows."""
        ids = list(set(product_ids))
        if not ids:
            return []
        stmt = (
            select(InventoryTable.product_id, InventoryTable.id, InventoryTable.quantity)
            .where(InventoryTable.product_id.in_(ids))
            .order_by(InventoryTable.product_id)
        )
        with self._session_factory() as session:
            return [StockRecord(pid, iid, qty) for pid, iid, qty in session.execute(stmt)]

    # -- writes ----------------------------------------------------------------

    def create(
        self,
        *,
        name: str,
        sku: str,
        price: Decimal,
        quantity: int = 0,
        description: str | None = None,
        status: ProductStatus = ProductStatus.ACTIVE,
    ) -> ProductTable:
        """Insert a product together with its stock row."""
        with self._session_factory() as session:
            product = ProductTable(
                name=name, sku=sku, price=price, description=description, status=status.value
            )
            product.inventory = InventoryTable(quantity=quantity)
            session.add(product)
            session.commit()
            return product
