"""
Lazy-initialised dependency-injection container.

:class:`OrderflowContainer` builds every major component (engine, store,
event bus, queue client, registry, reservation engine, order service) on
first access from one :class:`OrderflowSettings`.

Usage::

    from orderflow.core.config import OrderflowContainer

    with OrderflowContainer() as c:
        c.order_service.create_order({...})

    # Tests: inject settings and a payment gateway
    container = OrderflowContainer(OrderflowSettings(database_url="sqlite://"),
                                   payment_gateway=FakePaymentGateway())
"""

from __future__ import annotations

from typing import Any

from orderflow.core.errors import InvalidConfigError
from orderflow.core.logging import get_logger

from .factory import (
    create_celery_app,
    create_database_engine,
    create_event_bus,
    create_queue_client,
    create_retry_strategy,
    create_store,
)
from .settings import OrderflowSettings, get_settings

logger = get_logger(__name__)


class OrderflowContainer:
    """Lazy-initialised dependency container.

    Components are created on first property access and disposed via
    :meth:`close` (or the context-manager protocol).
    """

    def __init__(
        self,
        settings: OrderflowSettings | None = None,
        *,
        payment_gateway: Any | None = None,
    ) -> None:
        self._settings = settings
        self._payment_gateway = payment_gateway
        self._engine: Any | None = None
        self._session_factory: Any | None = None
        self._store: Any | None = None
        self._event_bus: Any | None = None
        self._events_built = False
        self._celery_app: Any | None = None
        self._queue: Any | None = None
        self._registry: Any | None = None
        self._reservations: Any | None = None
        self._order_service: Any | None = None

    # ── Properties (lazy) ────────────────────────────────────────

    @property
    def settings(self) -> OrderflowSettings:
        if self._settings is None:
            self._settings = get_settings()
        return self._settings

    @property
    def engine(self) -> Any:
        """SQLAlchemy :class:`~sqlalchemy.engine.Engine`."""
        if self._engine is None:
            self._engine = create_database_engine(self.settings)
        return self._engine

    @property
    def session_factory(self) -> Any:
        if self._session_factory is None:
            from orderflow.core.orm.session import orderflow_session_factory

            self._session_factory = orderflow_session_factory(self.engine)
        return self._session_factory

    @property
    def store(self) -> Any:
        """Counter store (in-memory or Redis)."""
        if self._store is None:
            self._store = create_store(self.settings)
        return self._store

    @property
    def event_bus(self) -> Any:
        """Event bus (in-memory, Redis, or None)."""
        if not self._events_built:
            self._event_bus = create_event_bus(self.settings)
            self._events_built = True
        return self._event_bus

    @property
    def celery_app(self) -> Any:
        """Celery app with ``orderflow.execute`` installed against :attr:`registry`.

        Raises:
            InvalidConfigError: the queue backend is not ``celery``. A worker
                built on the in-process queue would enqueue chain continuations
                into a queue only it can see.
        """
        if self._celery_app is None:
            from orderflow.execution.tasks import install_execute_task

            from .components import QueueBackend

            if self.settings.queue_backend != QueueBackend.CELERY:
                raise InvalidConfigError(
                    "queue_backend",
                    self.settings.queue_backend.value,
                    "Celery workers need ORDERFLOW_QUEUE_BACKEND=celery",
                )
            self._celery_app = create_celery_app(self.settings)
            install_execute_task(self._celery_app, self.registry, create_retry_strategy(self.settings))
        return self._celery_app

    @property
    def queue(self) -> Any:
        """Job queue client."""
        if self._queue is None:
            from .components import QueueBackend

            app = self.celery_app if self.settings.queue_backend == QueueBackend.CELERY else None
            self._queue = create_queue_client(self.settings, self.store, app)
        return self._queue

    @property
    def products(self) -> Any:
        from orderflow.core.repositories import ProductRepository

        return ProductRepository(self.session_factory)

    @property
    def orders(self) -> Any:
        from orderflow.core.repositories import OrderRepository

        return OrderRepository(self.session_factory)

    @property
    def inventories(self) -> Any:
        from orderflow.core.repositories import InventoryRepository

        return InventoryRepository(self.session_factory)

    @property
    def reservations(self) -> Any:
        """Inventory reservation engine."""
        if self._reservations is None:
            from orderflow.inventory.reservation import InventoryReservationEngine

            self._reservations = InventoryReservationEngine(
                self.store, self.products, self.inventories, self.orders
            )
        return self._reservations

    @property
    def registry(self) -> Any:
        """Frozen handler registry."""
        if self._registry is None:
            from orderflow.bootstrap import build_registry
            from orderflow.orchestration.ledger import StepLedger
            from orderflow.orders.payments import FakePaymentGateway, PaymentService

            settings = self.settings
            ledger = (
                StepLedger(self.store, ttl_seconds=settings.step_ledger_ttl_seconds)
                if settings.step_ledger_enabled
                else None
            )
            self._registry = build_registry(
                queue=_LazyQueue(self),
                orders=self.orders,
                engine=self.reservations,
                payments=PaymentService(self._payment_gateway or FakePaymentGateway()),
                events=self.event_bus,
                ledger=ledger,
                step_delay=settings.chain_step_delay_seconds,
            )
        return self._registry

    @property
    def order_service(self) -> Any:
        if self._order_service is None:
            from orderflow.orders.service import OrderChainPolicy, OrderService

            settings = self.settings
            self._order_service = OrderService(
                self.products,
                self.orders,
                self.queue,
                registry=self.registry,
                events=self.event_bus,
                policy=OrderChainPolicy(
                    queue=settings.order_chain_queue,
                    max_retries=settings.order_chain_max_retries,
                    timeout=settings.order_chain_timeout_seconds,
                ),
            )
        return self._order_service

    # ── Lifecycle ────────────────────────────────────────────────

    def close(self) -> None:
        """Dispose of managed resources."""
        if self._event_bus is not None:
            self._event_bus.close()
        if self._store is not None and hasattr(self._store, "close"):
            self._store.close()
        if self._engine is not None:
            self._engine.dispose()

    def __enter__(self) -> OrderflowContainer:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


class _LazyQueue:
    """Defers queue construction; the Celery queue needs the registry and vice versa."""

    def __init__(self, container: OrderflowContainer) -> None:
        self._container = container

    def enqueue(self, task_type: str, payload: bytes, options: Any = None) -> str:
        return self._container.queue.enqueue(task_type, payload, options)


# ── Global convenience ───────────────────────────────────────────────────

_global_container: OrderflowContainer | None = None


def get_container() -> OrderflowContainer:
    """Get (or create) a module-level :class:`OrderflowContainer`."""
    global _global_container
    if _global_container is None:
        _global_container = OrderflowContainer()
    return _global_container
