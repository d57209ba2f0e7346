"""
Configuration: settings, backend selection and the dependency container.

Usage::

    from orderflow.core.config import get_settings, OrderflowContainer

    settings = get_settings()
    with OrderflowContainer(settings) as c:
        c.order_service.create_order(request)
"""

from .components import (
    ComponentWarning,
    EventBackend,
    QueueBackend,
    StoreBackend,
    validate_component_combination,
)
from .container import OrderflowContainer, get_container
from .factory import (
    create_celery_app,
    create_database_engine,
    create_event_bus,
    create_queue_client,
    create_retry_strategy,
    create_store,
)
from .settings import OrderflowSettings, clear_settings_cache, get_settings

__all__ = [
    "ComponentWarning",
    "EventBackend",
    "QueueBackend",
    "StoreBackend",
    "validate_component_combination",
    "OrderflowContainer",
    "get_container",
    "create_celery_app",
    "create_database_engine",
    "create_event_bus",
    "create_queue_client",
    "create_retry_strategy",
    "create_store",
    "OrderflowSettings",
    "clear_settings_cache",
    "get_settings",
]
