"""Declarative base, mixins and type-map for all orderflow ORM models.

Uses SQLAlchemy 2.0 ``DeclarativeBase`` with a ``type_annotation_map``
that maps Python types to portable column types.

Mixins
------
* **TimestampMixin** — ``created_at`` / ``updated_at`` with server defaults.
"""

from __future__ import annotations

import datetime
from decimal import Decimal

from sqlalchemy import JSON, DateTime, Integer, Numeric, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class OrderflowBase(DeclarativeBase):
    """Shared declarative base for every orderflow table.

    * ``str``     → ``Text``
    * ``int``     → ``Integer``
    * ``Decimal`` → ``Numeric(12, 2)`` (money)
    * ``dict``    → ``JSON``
    """

    type_annotation_map = {
        str: Text,
        int: Integer,
        Decimal: Numeric(12, 2),
        datetime.datetime: DateTime,
        dict: JSON,
    }


class TimestampMixin:
    """Mixin that adds ``created_at`` and ``updated_at`` with server defaults."""

    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime,
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime,
        nullable=True,
        server_default=func.now(),
        onupdate=func.now(),
    )
