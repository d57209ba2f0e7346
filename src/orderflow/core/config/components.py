"""
Backend enumerations and compatibility validation.

Each enum is one pluggable dimension of an orderflow deployment.
:func:`validate_component_combination` rejects combinations that cannot work
across processes (e.g. Celery workers sharing an in-memory store).

Example::

    from orderflow.core.config.components import (
        QueueBackend, StoreBackend, validate_component_combination,
    )

    warnings = validate_component_combination(
        store=StoreBackend.REDIS,
        queue=QueueBackend.CELERY,
    )
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


# ── Backend enumerations ─────────────────────────────────────────────────


class StoreBackend(str, Enum):
    """Key-value store holding the inventory counters."""

    MEMORY = "memory"
    REDIS = "redis"


class QueueBackend(str, Enum):
    """Job queue carrying task and orchestrator messages."""

    MEMORY = "memory"
    CELERY = "celery"


class EventBackend(str, Enum):
    """Event bus used for chain completion callbacks."""

    NONE = "none"
    MEMORY = "memory"
    REDIS = "redis"


# ── Compatibility validation ─────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class ComponentWarning:
    """A warning raised by component-combination validation."""

    severity: str  # "info" or "warning"
    message: str
    suggestion: str


def validate_component_combination(
    *,
    store: StoreBackend = StoreBackend.MEMORY,
    queue: QueueBackend = QueueBackend.MEMORY,
    events: EventBackend = EventBackend.MEMORY,
    database_url: str = "",
) -> list[ComponentWarning]:
    """Return compatibility warnings for the given backend choices.

    Raises :class:`ValueError` for combinations that cannot work at runtime.
    """
    warnings: list[ComponentWarning] = []

    # Counters must be shared by every worker process
    if queue == QueueBackend.CELERY and store == StoreBackend.MEMORY:
        raise ValueError(
            "Celery workers cannot share an in-memory inventory store. "
            "Set store_backend='redis' when using queue_backend='celery'."
        )

    if queue == QueueBackend.CELERY and events == EventBackend.MEMORY:
        warnings.append(
            ComponentWarning(
                severity="warning",
                message="In-memory events are not visible outside the worker that published them.",
                suggestion="Set event_backend='redis' so chain callbacks fire in the dispatching process.",
            )
        )

    if queue == QueueBackend.CELERY and database_url.startswith("sqlite"):
        warnings.append(
            ComponentWarning(
                severity="warning",
                message="SQLite with Celery workers may cause lock contention on order updates.",
                suggestion="Use PostgreSQL for production Celery workloads.",
            )
        )

    return warnings
