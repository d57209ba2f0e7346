"""
Factory functions that create component instances from settings.

Manifesto:
    Each factory maps one settings field to a concrete backend, importing
    the heavier client libraries (``celery``, ``redis``) only when that
    backend is selected.

Features:
    - ``create_database_engine()`` — SQLAlchemy engine from settings
    - ``create_store()``           — InMemory / Redis counter store
    - ``create_event_bus()``       — None / InMemory / Redis event bus
    - ``create_celery_app()``      — Celery app for the configured broker
    - ``create_queue_client()``    — Memory / Celery job queue client
    - ``create_retry_strategy()``  — exponential backoff from settings

Tags:
    orderflow, configuration, factory-pattern, lazy-imports,
    sqlalchemy, redis, celery

Doc-Types:
    api-reference
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .components import EventBackend, QueueBackend, StoreBackend

if TYPE_CHECKING:
    from orderflow.core.store import KeyValueStore

    from .settings import OrderflowSettings


def create_database_engine(settings: OrderflowSettings) -> Any:
    """Create a SQLAlchemy :class:`~sqlalchemy.engine.Engine`."""
    from orderflow.core.orm.session import create_orderflow_engine

    return create_orderflow_engine(settings.database_url, echo=settings.database_echo)


def create_store(settings: OrderflowSettings) -> KeyValueStore:
    """Create the counter store based on *settings.store_backend*."""
    match settings.store_backend:
        case StoreBackend.MEMORY:
            from orderflow.core.store import InMemoryStore

            return InMemoryStore()
        case StoreBackend.REDIS:
            from orderflow.core.store import RedisStore

            return RedisStore(settings.redis_url)


def create_event_bus(settings: OrderflowSettings) -> Any:
    """Create an event bus based on *settings.event_backend* (``None`` when disabled)."""
    match settings.event_backend:
        case EventBackend.NONE:
            return None
        case EventBackend.MEMORY:
            from orderflow.core.events.memory import InMemoryEventBus

            return InMemoryEventBus()
        case EventBackend.REDIS:
            from orderflow.core.events.redis import RedisEventBus

            return RedisEventBus(settings.event_redis_url, channel_prefix=settings.event_channel_prefix)


def create_celery_app(settings: OrderflowSettings) -> Any:
    """Create the Celery app for the configured broker."""
    from orderflow.execution.tasks import create_celery_app as _create

    return _create(settings)


def create_queue_client(settings: OrderflowSettings, store: KeyValueStore, celery_app: Any = None) -> Any:
    """Create a job queue client based on *settings.queue_backend*."""
    match settings.queue_backend:
        case QueueBackend.MEMORY:
            from orderflow.execution.queue import MemoryQueueClient

            return MemoryQueueClient(store)
        case QueueBackend.CELERY:
            from orderflow.execution.queue import CeleryQueueClient

            app = celery_app if celery_app is not None else create_celery_app(settings)
            return CeleryQueueClient(app, store, priorities=settings.queue_priorities)


def create_retry_strategy(settings: OrderflowSettings) -> Any:
    from orderflow.execution.retry import ExponentialBackoff

    return ExponentialBackoff(
        base_delay=settings.retry_base_delay_seconds,
        max_delay=settings.retry_max_delay_seconds,
    )
