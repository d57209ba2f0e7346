"""SQLAlchemy engine factory and session factory.

* ``create_orderflow_engine``   -- Create an engine from a URL.
* ``OrderflowSession``          -- Session with ``expire_on_commit=False``.
* ``orderflow_session_factory`` -- ``sessionmaker`` producing the above.

Tags:
    orderflow, orm, sqlalchemy, session, engine

Doc-Types:
    api-reference
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import create_engine as _sa_create_engine
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool


def create_orderflow_engine(
    url: str = "sqlite:///orderflow.db",
    *,
    echo: bool = False,
    **kwargs: Any,
) -> Engine:
    """Create a SQLAlchemy engine with sane defaults.

    SQLite connections get foreign keys enabled; an in-memory SQLite URL
    uses a single shared connection so every session sees the same data.
    """
    if not url.startswith("sqlite"):
        return _sa_create_engine(url, echo=echo, pool_pre_ping=True, **kwargs)

    kwargs.setdefault("connect_args", {"check_same_thread": False})
    if url in ("sqlite://", "sqlite:///:memory:"):
        kwargs.setdefault("poolclass", StaticPool)
    engine = _sa_create_engine(url, echo=echo, **kwargs)

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection: Any, _rec: Any) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


class OrderflowSession(Session):
    """Pre-configured session with ``expire_on_commit=False``.

    Repositories hand ORM objects back to callers after commit; expiring
    them would trigger lazy loads on a closed session.
    """

    def __init__(self, bind: Engine | None = None, **kwargs: Any) -> None:
        kwargs.setdefault("expire_on_commit", False)
        super().__init__(bind=bind, **kwargs)


def orderflow_session_factory(engine: Engine) -> sessionmaker[OrderflowSession]:
    """Return a ``sessionmaker`` bound to *engine* that produces ``OrderflowSession`` instances."""
    return sessionmaker(bind=engine, class_=OrderflowSession, expire_on_commit=False)


def create_all(engine: Engine) -> None:
    """Create every orderflow table that does not exist yet."""
    from orderflow.core.orm import tables  # noqa: F401  (registers models)
    from orderflow.core.orm.base import OrderflowBase

    OrderflowBase.metadata.create_all(engine)
