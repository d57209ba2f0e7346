"""SQLAlchemy 2.0 ORM layer for orderflow.

Usage::

    from orderflow.core.orm import create_orderflow_engine, orderflow_session_factory, create_all

    engine = create_orderflow_engine("sqlite:///orderflow.db")
    create_all(engine)
    Session = orderflow_session_factory(engine)
"""

from orderflow.core.orm.base import OrderflowBase, TimestampMixin
from orderflow.core.orm.session import (
    OrderflowSession,
    create_all,
    create_orderflow_engine,
    orderflow_session_factory,
)

__all__ = [
    "OrderflowBase",
    "TimestampMixin",
    "OrderflowSession",
    "create_all",
    "create_orderflow_engine",
    "orderflow_session_factory",
]
